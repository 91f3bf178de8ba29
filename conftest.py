import pytest

from gamerelay.core import codec, routing
from gamerelay.core.events import EventHandlers, Session


class RecordingTransport:
    """Stands in for the socket: records sends, can fail for chosen addresses."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()

    def __call__(self, data, addr):
        if addr in self.fail_for:
            raise OSError("unreachable")
        self.sent.append((addr, data))

    def to(self, addr):
        return [codec.decode(data) for a, data in self.sent if a == addr]

    def messages(self):
        return [(a, codec.decode(data)) for a, data in self.sent]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def session(transport):
    handlers = EventHandlers()
    routing.install(handlers)
    handlers.freeze()
    return Session(send=transport, handlers=handlers)


@pytest.fixture
def clients():
    """Three loopback participants, ids 5001..5003."""
    return [("127.0.0.1", 5001), ("127.0.0.1", 5002), ("127.0.0.1", 5003)]
