import asyncio

import pytest

from streamroute.client.transport import TcpTransport
from streamroute.core.protocol import Command, pack_message, read_message


class SlowFirstReplyServer:
    """Echoes the request tag back, holding the very first reply for `delay` seconds."""

    def __init__(self, delay: float):
        self.delay = delay
        self.connections = 0
        self.requests = 0
        self._server = None

    async def handle(self, reader, writer):
        self.connections += 1
        try:
            while True:
                version, command, body = await read_message(reader)
                self.requests += 1
                if self.requests == 1:
                    await asyncio.sleep(self.delay)
                writer.write(pack_message(command, {"reply_to": body["tag"]}))
                await writer.drain()
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            writer.close()

    async def start(self) -> int:
        self._server = await asyncio.start_server(self.handle, "127.0.0.1", 0)
        return self._server.sockets[0].getsockname()[1]

    async def stop(self):
        self._server.close()
        await self._server.wait_closed()


@pytest.mark.asyncio
async def test_timed_out_reply_is_not_read_by_next_request():
    server = SlowFirstReplyServer(delay=0.5)
    port = await server.start()
    transport = TcpTransport("127.0.0.1", port, timeout=0.2)
    try:
        with pytest.raises(asyncio.TimeoutError):
            await transport.request(Command.PUSH, {"tag": "first"})

        reply = await transport.request(Command.PUSH, {"tag": "second"})

        assert reply == {"reply_to": "second"}
        assert server.connections == 2
    finally:
        await transport.close()
        await server.stop()


@pytest.mark.asyncio
async def test_connection_is_reused_between_requests():
    server = SlowFirstReplyServer(delay=0)
    port = await server.start()
    transport = TcpTransport("127.0.0.1", port, timeout=1.0)
    try:
        first = await transport.request(Command.PUSH, {"tag": "a"})
        second = await transport.request(Command.PUSH, {"tag": "b"})

        assert (first, second) == ({"reply_to": "a"}, {"reply_to": "b"})
        assert server.connections == 1
    finally:
        await transport.close()
        await server.stop()
