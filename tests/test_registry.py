from gamerelay.core.registry import SessionRegistry, client_id


def test_admissions_keep_order_and_uniqueness(clients):
    reg = SessionRegistry()
    for c in clients:
        assert reg.add(c) is True
    assert len(reg) == 3
    assert reg.addresses() == clients
    assert list(reg) == clients


def test_duplicate_add_is_rejected(clients):
    reg = SessionRegistry()
    reg.add(clients[0])
    assert reg.add(clients[0]) is False
    assert reg.addresses() == [clients[0]]


def test_remove_requires_exact_match(clients):
    """A lone entry is not removed by a departure from some other address."""
    reg = SessionRegistry()
    reg.add(clients[0])
    assert reg.remove(clients[1]) is False
    assert reg.addresses() == [clients[0]]
    assert reg.remove(clients[0]) is True
    assert len(reg) == 0


def test_equality_covers_every_address_component():
    reg = SessionRegistry()
    reg.add(("::1", 6000, 0, 1))
    assert ("::1", 6000, 0, 2) not in reg
    assert ("::1", 6000, 0, 1) in reg
    assert ("127.0.0.1", 6000) not in reg


def test_ids_follow_admission_order_and_can_exclude(clients):
    reg = SessionRegistry()
    for c in reversed(clients):
        reg.add(c)
    assert reg.ids() == [5003, 5002, 5001]
    assert reg.ids(exclude=clients[1]) == [5003, 5001]


def test_client_id_is_port():
    assert client_id(("127.0.0.1", 4242)) == 4242
    assert client_id(("::1", 4243, 0, 0)) == 4243


def test_iteration_is_a_snapshot(clients):
    reg = SessionRegistry()
    for c in clients:
        reg.add(c)
    for c in reg:
        reg.remove(c)
    assert len(reg) == 0
