from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Tuple, Union

log = logging.getLogger("gamerelay.registry")

# (host, port) for IPv4, (host, port, flowinfo, scope_id) for IPv6
Address = Union[Tuple[str, int], Tuple[str, int, int, int]]


def client_id(addr: Address) -> int:
    """Wire id of a client: the port of its transport address.

    Only unique while every participant shares one IP (e.g. loopback).
    """

    return int(addr[1])


class SessionRegistry:
    """Insertion-ordered set of connected client addresses."""

    def __init__(self) -> None:
        self._clients: Dict[Address, None] = {}

    def add(self, addr: Address) -> bool:
        if addr in self._clients:
            log.debug("Address %s already registered", addr)
            return False
        self._clients[addr] = None
        return True

    def remove(self, addr: Address) -> bool:
        try:
            del self._clients[addr]
        except KeyError:
            log.debug("Address %s not registered; nothing removed", addr)
            return False
        return True

    def addresses(self) -> List[Address]:
        return list(self._clients)

    def ids(self, exclude: Optional[Address] = None) -> List[int]:
        return [client_id(a) for a in self._clients if a != exclude]

    def __contains__(self, addr: object) -> bool:
        return addr in self._clients

    def __len__(self) -> int:
        return len(self._clients)

    def __iter__(self) -> Iterator[Address]:
        # snapshot so handlers may mutate while iterating
        return iter(list(self._clients))

    def __repr__(self) -> str:
        return f"SessionRegistry({self.addresses()!r})"


__all__ = ["Address", "SessionRegistry", "client_id"]
