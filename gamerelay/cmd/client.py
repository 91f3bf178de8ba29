from __future__ import annotations

import argparse
import asyncio
import logging
import socket
from typing import Optional, Set

from gamerelay.core import codec

log = logging.getLogger("gamerelay.cmd.client")


class RelayClient:
    """Minimal session participant: join, stream state updates, leave."""

    def __init__(self, host: str, port: int, buffer_size: int = 1024) -> None:
        self.host = host
        self.port = port
        self.buffer_size = buffer_size
        self.id: Optional[int] = None
        self.peers: Set[int] = set()
        self._sock: Optional[socket.socket] = None

    async def connect(self) -> None:
        infos = socket.getaddrinfo(self.host, self.port, type=socket.SOCK_DGRAM)
        family, type_, proto, _, sockaddr = min(infos, key=lambda info: info[0] != socket.AF_INET)
        sock = socket.socket(family, type_, proto)
        sock.setblocking(False)
        try:
            await asyncio.get_running_loop().sock_connect(sock, sockaddr)
        except OSError:
            sock.close()
            raise
        self._sock = sock

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    @property
    def local_port(self) -> int:
        return self._require_sock().getsockname()[1]

    async def login(self) -> None:
        await self._send(codec.LOGIN)

    async def logout(self) -> None:
        await self._send(codec.LOGOUT)

    async def send_state(
        self,
        condition: int,
        x: float = 0.0,
        y: float = 0.0,
        z: float = 0.0,
        rot_z: float = 0.0,
    ) -> None:
        update = codec.StateUpdate(
            event="message",
            condition=condition,
            id=self.id or 0,
            position_x=x,
            position_y=y,
            position_z=z,
            rotation_z=rot_z,
        )
        await self._send(codec.encode(update))

    async def receive(self, timeout: float = 1.0) -> Optional[codec.Message]:
        """Next decoded message from the relay, or None if nothing arrives in time."""

        loop = asyncio.get_running_loop()
        try:
            data = await asyncio.wait_for(loop.sock_recv(self._require_sock(), self.buffer_size), timeout)
        except asyncio.TimeoutError:
            return None
        message = codec.decode(data)
        self._track(message)
        return message

    def _track(self, message: codec.Message) -> None:
        if isinstance(message, codec.LoginOrder):
            self.id = message.id
            self.peers = set(message.players)
        elif isinstance(message, codec.RegisterOrder):
            self.peers.add(message.player)
        elif isinstance(message, codec.LogoutOrder):
            self.peers.discard(message.player)

    async def _send(self, data: bytes) -> None:
        await asyncio.get_running_loop().sock_sendall(self._require_sock(), data)

    def _require_sock(self) -> socket.socket:
        if self._sock is None:
            raise RuntimeError("client is not connected")
        return self._sock


async def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="UDP relay test client")
    parser.add_argument("--server", default="localhost:3000", help="host:port of the relay")
    parser.add_argument("--condition", type=int, default=codec.CONDITION_ALL, choices=sorted(codec.CONDITIONS))
    parser.add_argument("--count", type=int, default=5, help="State updates to send")
    parser.add_argument("--interval", type=float, default=0.5, help="Seconds between updates")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    host, port = args.server.rsplit(":", 1)
    client = RelayClient(host, int(port))
    await client.connect()
    try:
        await client.login()
        for step in range(args.count):
            await client.send_state(args.condition, x=float(step), y=0.0, z=0.0, rot_z=0.0)
            deadline = asyncio.get_running_loop().time() + args.interval
            while (remaining := deadline - asyncio.get_running_loop().time()) > 0:
                try:
                    message = await client.receive(timeout=remaining)
                except codec.CodecError as exc:
                    log.warning("Ignoring undecodable datagram: %s", exc)
                    continue
                except OSError as exc:
                    log.warning("Error trying to read data: %s", exc)
                    break
                if message is not None:
                    log.info("<- %s", message.model_dump(by_alias=True))
        await client.logout()
    finally:
        client.close()


def cli(argv: list[str] | None = None) -> None:
    asyncio.run(main(argv))


if __name__ == "__main__":
    cli()
