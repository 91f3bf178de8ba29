from __future__ import annotations

import asyncio
import logging
import socket
from typing import Any, Dict, Optional

from gamerelay.core import codec, routing
from gamerelay.core.events import EventHandlers, Session
from gamerelay.core.registry import Address

log = logging.getLogger("gamerelay.server.runtime")

DEFAULT_LISTEN = "localhost:3000"
DEFAULT_RECV_TIMEOUT = 1.0
DEFAULT_BUFFER_SIZE = 1024


class RelayRuntime:
    """UDP relay: one socket, one receive loop, routing via a Session."""

    def __init__(self, config: Dict[str, Any], handlers: Optional[EventHandlers] = None) -> None:
        self.cfg = config
        self.listen_host, self.listen_port = self._parse_listen(config.get("listen", DEFAULT_LISTEN))
        self.recv_timeout = float(config.get("recv_timeout", DEFAULT_RECV_TIMEOUT))
        self.buffer_size = int(config.get("buffer_size", DEFAULT_BUFFER_SIZE))
        if self.recv_timeout <= 0:
            raise ValueError("recv_timeout must be positive")
        if self.buffer_size <= 0:
            raise ValueError("buffer_size must be positive")

        if handlers is None:
            handlers = EventHandlers()
            routing.install(handlers)
        self.session = Session(send=self.send, handlers=handlers)

        self._sock: Optional[socket.socket] = None
        self._stopping = False
        self._tasks: list[asyncio.Task] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Bind the socket and start the receive loop; OSError if binding fails."""

        self.session.handlers.freeze()
        self._sock = self._bind(self.listen_host, self.listen_port)
        self._stopping = False
        log.info("UDP relay listening on %s:%d", *self.address[:2])
        self._tasks.append(asyncio.create_task(self.listen(), name="listen"))

    async def stop(self) -> None:
        self._stopping = True
        if self._tasks:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._tasks, return_exceptions=True),
                    timeout=self.recv_timeout * 2,
                )
            except asyncio.TimeoutError:
                log.warning("receive loop did not stop in time; cancelled")
            self._tasks.clear()

        if self._sock is not None:
            self._sock.close()
            self._sock = None
            log.info("UDP relay stopped")

    async def wait(self) -> None:
        """Block until the receive loop exits."""

        await asyncio.gather(*self._tasks, return_exceptions=True)

    @property
    def address(self) -> Address:
        if self._sock is None:
            raise RuntimeError("relay is not bound")
        return self._sock.getsockname()

    # ------------------------------------------------------------------
    # Receive loop
    # ------------------------------------------------------------------

    async def listen(self) -> None:
        loop = asyncio.get_running_loop()
        while not self._stopping:
            sock = self._sock
            if sock is None or sock.fileno() == -1:
                break
            try:
                data, addr = await asyncio.wait_for(
                    loop.sock_recvfrom(sock, self.buffer_size),
                    timeout=self.recv_timeout,
                )
            except asyncio.TimeoutError:
                continue
            except OSError as exc:
                if self._stopping:
                    break
                log.warning("Error trying to read data: %s", exc)
                continue
            self.dispatch(data, addr)

    def dispatch(self, data: bytes, addr: Address) -> None:
        kind = codec.classify(data)
        if kind is codec.Kind.LOGIN:
            self.session.admit(addr)
        elif kind is codec.Kind.LOGOUT:
            self.session.depart(addr)
        else:
            self.session.on_data(addr, data)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def send(self, data: bytes, addr: Address) -> None:
        if self._sock is None:
            raise OSError("relay socket is closed")
        self._sock.sendto(data, addr)

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    @staticmethod
    def _bind(host: str, port: int) -> socket.socket:
        # prefer IPv4 when a name such as "localhost" resolves to both families
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
        family, type_, proto, _, sockaddr = min(infos, key=lambda info: info[0] != socket.AF_INET)
        sock = socket.socket(family, type_, proto)
        try:
            sock.setblocking(False)
            sock.bind(sockaddr)
        except OSError:
            sock.close()
            raise
        return sock

    @staticmethod
    def _parse_listen(value: str) -> tuple[str, int]:
        host, port = value.rsplit(":", 1)
        return host.strip("[]"), int(port)


__all__ = ["RelayRuntime", "DEFAULT_LISTEN", "DEFAULT_RECV_TIMEOUT", "DEFAULT_BUFFER_SIZE"]
