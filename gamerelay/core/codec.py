from __future__ import annotations

import enum
from typing import Any, Dict, List, Literal, Union

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator


# ---------------------------------------------------------------------------
# Control datagrams
# ---------------------------------------------------------------------------

LOGIN = b"login"
LOGOUT = b"logout"


class Kind(enum.Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    PAYLOAD = "payload"


def classify(data: bytes) -> Kind:
    """Control tokens must match byte for byte; everything else is payload."""

    if data == LOGIN:
        return Kind.LOGIN
    if data == LOGOUT:
        return Kind.LOGOUT
    return Kind.PAYLOAD


# ---------------------------------------------------------------------------
# Structured messages
# ---------------------------------------------------------------------------

EV_LOGIN_ORDER = "login_order"
EV_REGISTER_ORDER = "register_order"
EV_LOGOUT_ORDER = "logout_order"

CONDITION_ALL = 0           # every registered client, sender included
CONDITION_OWNER = 1         # echo back to the sender only
CONDITION_SKIP_OWNER = 2    # every registered client except the sender
CONDITIONS = frozenset({CONDITION_ALL, CONDITION_OWNER, CONDITION_SKIP_OWNER})

# Smallest magnitude that rounds to infinity as a float32; anything below
# it rounds to the largest finite float32.
FLOAT32_OVERFLOW = 3.4028235677973366e38


class CodecError(ValueError):
    """Raised when a datagram cannot be decoded or a message cannot be encoded."""


class LoginOrder(BaseModel):
    """Admission reply: the newcomer's id and the ids already present."""

    model_config = ConfigDict(strict=True)

    event: Literal["login_order"] = EV_LOGIN_ORDER
    id: int
    players: List[int] = Field(default_factory=list)


class RegisterOrder(BaseModel):
    """Tells existing clients that `player` joined."""

    model_config = ConfigDict(strict=True)

    event: Literal["register_order"] = EV_REGISTER_ORDER
    player: int


class LogoutOrder(BaseModel):
    """Tells remaining clients that `player` left."""

    model_config = ConfigDict(strict=True)

    event: Literal["logout_order"] = EV_LOGOUT_ORDER
    player: int


class StateUpdate(BaseModel):
    """Position/rotation payload relayed between clients.

    Absent or null fields take zero values and unknown fields are dropped, so a
    relayed update always carries exactly the fields below in this order.
    """

    model_config = ConfigDict(strict=True, populate_by_name=True)

    event: str = ""
    condition: int = CONDITION_ALL
    id: int = 0
    position_x: float = Field(0.0, alias="positionX")
    position_y: float = Field(0.0, alias="positionY")
    position_z: float = Field(0.0, alias="positionZ")
    rotation_z: float = Field(0.0, alias="rotationZ")

    @field_validator(
        "event", "condition", "id", "position_x", "position_y", "position_z", "rotation_z", mode="before"
    )
    @classmethod
    def _null_is_zero(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("condition")
    @classmethod
    def _known_condition(cls, value: int) -> int:
        if value not in CONDITIONS:
            raise ValueError(f"unknown routing condition {value}")
        return value

    @field_validator("position_x", "position_y", "position_z", "rotation_z")
    @classmethod
    def _fits_float32(cls, value: float) -> float:
        if abs(value) >= FLOAT32_OVERFLOW:
            raise ValueError("value out of 32-bit float range")
        return float(value)


Message = Union[LoginOrder, RegisterOrder, LogoutOrder, StateUpdate]

_BY_EVENT = {
    EV_LOGIN_ORDER: LoginOrder,
    EV_REGISTER_ORDER: RegisterOrder,
    EV_LOGOUT_ORDER: LogoutOrder,
}


# ---------------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------------

def encode(message: Message) -> bytes:
    try:
        return orjson.dumps(message.model_dump(by_alias=True))
    except (TypeError, orjson.JSONEncodeError) as exc:
        raise CodecError(f"cannot encode {type(message).__name__}: {exc}") from exc


def decode(data: bytes) -> Message:
    """Decode any structured message, choosing the model from `event`."""

    obj = _load(data)
    event = obj.get("event")
    model = _BY_EVENT.get(event, StateUpdate) if isinstance(event, str) else StateUpdate
    return _validate(model, obj)


def decode_state_update(data: bytes) -> StateUpdate:
    """Decode an inbound payload; `event` is carried through, never interpreted."""

    return _validate(StateUpdate, _load(data))


def _load(data: bytes) -> Dict[str, Any]:
    try:
        obj = orjson.loads(data)
    except orjson.JSONDecodeError as exc:
        raise CodecError(f"invalid JSON: {exc}") from exc
    if not isinstance(obj, dict):
        raise CodecError(f"expected a JSON object, got {type(obj).__name__}")
    return obj


def _validate(model: type, obj: Dict[str, Any]) -> Any:
    try:
        return model.model_validate(obj)
    except ValidationError as exc:
        raise CodecError(f"invalid {model.__name__}: {exc.error_count()} error(s): {exc.errors()[0]['msg']}") from exc


__all__ = [
    "LOGIN",
    "LOGOUT",
    "Kind",
    "classify",
    "CONDITION_ALL",
    "CONDITION_OWNER",
    "CONDITION_SKIP_OWNER",
    "CONDITIONS",
    "CodecError",
    "LoginOrder",
    "RegisterOrder",
    "LogoutOrder",
    "StateUpdate",
    "Message",
    "encode",
    "decode",
    "decode_state_update",
]
