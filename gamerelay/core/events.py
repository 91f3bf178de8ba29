from __future__ import annotations

import logging
from typing import Callable, List, Tuple

from .registry import Address, SessionRegistry, client_id


"""
Session events
--------------
The transport loop reports three things: a client asked to join, a client
asked to leave, a client sent something else. This module turns those into
registry mutations followed by calls to policy handlers.

Handlers are plain callables collected once at startup in an EventHandlers
instance and handed to the Session by composition. Every handler receives the
Session itself as its context, which is the only place the registry and the
outbound transport live.
"""


log = logging.getLogger("gamerelay.events")

# ---- types ----
SendFn = Callable[[bytes, Address], None]                       # raises OSError on failure
AdmissionHandler = Callable[["Session", Address], None]
DepartureHandler = Callable[["Session", Address], None]
PayloadHandler = Callable[["Session", Address, bytes], None]


class EventHandlers:
    """Ordered handler lists, additive until frozen."""

    def __init__(self) -> None:
        self._admission: List[AdmissionHandler] = []
        self._departure: List[DepartureHandler] = []
        self._payload: List[PayloadHandler] = []
        self._frozen = False

    def add_admission_handler(self, handler: AdmissionHandler) -> None:
        self._check_open()
        self._admission.append(handler)

    def add_departure_handler(self, handler: DepartureHandler) -> None:
        self._check_open()
        self._departure.append(handler)

    def add_payload_handler(self, handler: PayloadHandler) -> None:
        self._check_open()
        self._payload.append(handler)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def admission(self) -> Tuple[AdmissionHandler, ...]:
        return tuple(self._admission)

    @property
    def departure(self) -> Tuple[DepartureHandler, ...]:
        return tuple(self._departure)

    @property
    def payload(self) -> Tuple[PayloadHandler, ...]:
        return tuple(self._payload)

    def _check_open(self) -> None:
        if self._frozen:
            raise RuntimeError("handlers must be registered before the relay starts")


class Session:
    """Server context threaded through every handler."""

    def __init__(
        self,
        send: SendFn,
        handlers: EventHandlers,
        registry: SessionRegistry | None = None,
    ) -> None:
        self.send = send
        self.handlers = handlers
        self.registry = registry if registry is not None else SessionRegistry()

    def admit(self, addr: Address) -> None:
        if not self.registry.add(addr):
            log.info("%s re-admitted; registry unchanged", client_id(addr))
        log.info("%s -> login (total clients: %d)", client_id(addr), len(self.registry))
        for handler in self.handlers.admission:
            self._invoke(handler, addr)

    def depart(self, addr: Address) -> None:
        if not self.registry.remove(addr):
            log.info("%s sent logout but was not registered", client_id(addr))
        log.info("%s -> logout (total clients: %d)", client_id(addr), len(self.registry))
        for handler in self.handlers.departure:
            self._invoke(handler, addr)

    def on_data(self, addr: Address, data: bytes) -> None:
        for handler in self.handlers.payload:
            self._invoke(handler, addr, data)

    def _invoke(self, handler: Callable[..., object], *args: object) -> None:
        try:
            handler(self, *args)
        except Exception:
            log.exception("handler %r failed", getattr(handler, "__name__", handler))


__all__ = [
    "SendFn",
    "AdmissionHandler",
    "DepartureHandler",
    "PayloadHandler",
    "EventHandlers",
    "Session",
]
