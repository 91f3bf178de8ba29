import orjson
import pytest

from gamerelay.core import codec


# -----------------------------
# Control tokens
# -----------------------------

@pytest.mark.parametrize(
    "data, kind",
    [
        (b"login", codec.Kind.LOGIN),
        (b"logout", codec.Kind.LOGOUT),
        (b"login\n", codec.Kind.PAYLOAD),
        (b"LOGIN", codec.Kind.PAYLOAD),
        (b'"login"', codec.Kind.PAYLOAD),
        (b"", codec.Kind.PAYLOAD),
    ],
)
def test_classify_matches_exact_bytes_only(data, kind):
    assert codec.classify(data) is kind


# -----------------------------
# Server-origin messages
# -----------------------------

def test_login_order_wire_shape():
    data = codec.encode(codec.LoginOrder(id=5003, players=[5001, 5002]))
    assert data == b'{"event":"login_order","id":5003,"players":[5001,5002]}'


def test_register_and_logout_order_wire_shape():
    assert codec.encode(codec.RegisterOrder(player=7)) == b'{"event":"register_order","player":7}'
    assert codec.encode(codec.LogoutOrder(player=7)) == b'{"event":"logout_order","player":7}'


def test_decode_dispatches_on_event():
    assert isinstance(codec.decode(b'{"event":"login_order","id":1,"players":[]}'), codec.LoginOrder)
    assert isinstance(codec.decode(b'{"event":"register_order","player":2}'), codec.RegisterOrder)
    assert isinstance(codec.decode(b'{"event":"logout_order","player":2}'), codec.LogoutOrder)
    assert isinstance(codec.decode(b'{"event":"move","condition":0}'), codec.StateUpdate)


# -----------------------------
# State updates
# -----------------------------

def test_state_update_field_order_and_aliases():
    update = codec.StateUpdate(event="move", condition=2, id=9, position_x=1.5, position_y=-2.0, position_z=0.25, rotation_z=90.0)
    obj = orjson.loads(codec.encode(update))
    assert list(obj) == ["event", "condition", "id", "positionX", "positionY", "positionZ", "rotationZ"]
    assert obj["positionX"] == 1.5
    assert obj["rotationZ"] == 90.0


def test_missing_fields_default_and_unknown_fields_drop():
    update = codec.decode_state_update(b'{"condition":1,"extra":"x"}')
    assert update.event == ""
    assert update.id == 0
    assert update.position_x == 0.0
    assert "extra" not in orjson.loads(codec.encode(update))


def test_event_is_carried_through_uninterpreted():
    update = codec.decode_state_update(b'{"event":"login_order","condition":0}')
    assert isinstance(update, codec.StateUpdate)
    assert update.event == "login_order"


def test_integer_positions_accepted():
    update = codec.decode_state_update(b'{"positionX":3,"rotationZ":-1}')
    assert update.position_x == 3.0
    assert update.rotation_z == -1.0


def test_null_fields_take_zero_values():
    update = codec.decode_state_update(
        b'{"event":null,"condition":null,"id":null,"positionX":null,"rotationZ":null}'
    )
    assert update == codec.StateUpdate()


def test_largest_float32_is_accepted():
    # how a float32 serializer writes the largest finite value
    update = codec.decode_state_update(b'{"positionX":3.4028235e+38,"rotationZ":-3.4028235e+38}')
    assert update.position_x == 3.4028235e38
    assert update.rotation_z == -3.4028235e38


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        b"\xff\xfe",
        b"[1,2,3]",
        b"null",
        b'{"condition":3}',
        b'{"condition":-1}',
        b'{"condition":"1"}',
        b'{"condition":1.5}',
        b'{"condition":true}',
        b'{"id":"5001"}',
        b'{"event":5}',
        b'{"positionX":"1.0"}',
        b'{"positionX":3.4028236e38}',
        b'{"positionY":1e39}',
    ],
)
def test_invalid_state_updates_raise_codec_error(payload):
    with pytest.raises(codec.CodecError):
        codec.decode_state_update(payload)


def test_codec_error_is_a_value_error():
    assert issubclass(codec.CodecError, ValueError)
