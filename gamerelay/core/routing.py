from __future__ import annotations

import logging
from typing import Iterable

from . import codec
from .events import EventHandlers, Session
from .registry import Address, client_id


"""
Session routing policy
----------------------
Decides which registered clients receive which message:

  • Admission   → newcomer gets LoginOrder(id, players=<everyone else>);
                  from the third participant on, everyone else also gets
                  RegisterOrder(newcomer)
  • Departure   → every remaining client gets LogoutOrder(leaver)
  • StateUpdate → id overwritten with the transport sender, then fanned out by
                  condition: 0 all, 1 sender only, 2 all except sender

Sends are independent: a failed send is logged and the fan-out continues.
Every handler returns the number of datagrams that actually went out.
"""


log = logging.getLogger("gamerelay.routing")

# Below this many prior participants nobody is told about a newcomer.
ANNOUNCE_AFTER = 2


class Router:
    """Game-session protocol bound to a Session's registry and transport."""

    def on_admission(self, session: Session, newcomer: Address) -> int:
        registry = session.registry
        prior = len(registry) - 1
        reply = codec.LoginOrder(id=client_id(newcomer), players=registry.ids(exclude=newcomer))
        try:
            reply_data = codec.encode(reply)
        except codec.CodecError as exc:
            log.warning("Dropping admission of %s: %s", client_id(newcomer), exc)
            return 0

        if prior < ANNOUNCE_AFTER:
            return self._send_all(session, reply_data, [newcomer], what="login order")

        try:
            register_data = codec.encode(codec.RegisterOrder(player=client_id(newcomer)))
        except codec.CodecError as exc:
            log.warning("Dropping admission of %s: %s", client_id(newcomer), exc)
            return 0

        sent = self._send_all(session, reply_data, [newcomer], what="login order")
        others = [c for c in registry if c != newcomer]
        sent += self._send_all(session, register_data, others, what="register order")
        return sent

    def on_departure(self, session: Session, leaver: Address) -> int:
        registry = session.registry
        if len(registry) == 0:
            return 0
        try:
            data = codec.encode(codec.LogoutOrder(player=client_id(leaver)))
        except codec.CodecError as exc:
            log.warning("Dropping departure of %s: %s", client_id(leaver), exc)
            return 0
        return self._send_all(session, data, registry, what="logout order")

    def on_state_update(self, session: Session, sender: Address, data: bytes) -> int:
        try:
            message = codec.decode_state_update(data)
        except codec.CodecError as exc:
            log.warning("Dropping payload from %s: %s", client_id(sender), exc)
            return 0

        message.id = client_id(sender)
        try:
            out = codec.encode(message)
        except codec.CodecError as exc:
            log.warning("Dropping payload from %s: %s", client_id(sender), exc)
            return 0

        targets = self.targets(session, sender, message.condition)
        log.debug("Relaying %d bytes from %s (condition=%d) to %d client(s)",
                  len(out), message.id, message.condition, len(targets))
        return self._send_all(session, out, targets, what="message")

    @staticmethod
    def targets(session: Session, sender: Address, condition: int) -> list[Address]:
        if condition == codec.CONDITION_OWNER:
            return [sender]
        if condition == codec.CONDITION_ALL:
            return list(session.registry)
        if condition == codec.CONDITION_SKIP_OWNER:
            return [c for c in session.registry if c != sender]
        return []

    @staticmethod
    def _send_all(session: Session, data: bytes, recipients: Iterable[Address], *, what: str) -> int:
        sent = 0
        for addr in recipients:
            try:
                session.send(data, addr)
            except OSError as exc:
                log.warning("Error trying to send %s to %s: %s", what, client_id(addr), exc)
                continue
            sent += 1
        return sent


def install(handlers: EventHandlers, router: Router | None = None) -> Router:
    """Register the routing policy on `handlers` and return the router."""

    router = router or Router()
    handlers.add_admission_handler(router.on_admission)
    handlers.add_departure_handler(router.on_departure)
    handlers.add_payload_handler(router.on_state_update)
    return router


__all__ = ["Router", "install", "ANNOUNCE_AFTER"]
