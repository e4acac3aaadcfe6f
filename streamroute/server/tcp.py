import asyncio
import logging
from typing import Any, Optional
from streamroute.core.protocol import Command, read_message, pack_message
from .registry import StreamRegistry

logger = logging.getLogger(__name__)


class TcpFrontend:
    def __init__(self, registry: StreamRegistry, host: str = "0.0.0.0", port: int = 9000):
        self.registry = registry
        self.host = host
        self.port = port
        self._server: Optional[asyncio.Server] = None

    async def handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ):
        addr = writer.get_extra_info("peername")
        logger.debug(f"New connection from {addr}")

        try:
            while True:
                try:
                    version, command, body = await read_message(reader)
                except asyncio.IncompleteReadError:
                    break

                response_body = await self.process_command(command, body)
                writer.write(pack_message(command, response_body))
                await writer.drain()
        except Exception as e:
            logger.error(f"Error handling client {addr}: {e}")
        finally:
            writer.close()
            await writer.wait_closed()

    async def process_command(self, command: int, body: dict) -> Any:
        try:
            router = await self.registry.get_router(body["stream"])

            if command == Command.PUSH:
                message_id = await router.push(body["fields"], body.get("id", "*"))
                return {"message_id": message_id}

            elif command == Command.ROUTE:
                await router.load_routing_table()
                result = await router.msg_group()
                return result.model_dump(mode="json")

            elif command == Command.SET_ROUTING:
                table = await router.set_routing_table(body["routes"])
                return {"routes": dict(table.routes)}

            elif command == Command.READ_PENDING:
                entries = await router.read_consumer_pending_msg(
                    body["group"],
                    body.get("consumer"),
                    body.get("count", 10),
                    body.get("start", "-"),
                    body.get("end", "+"),
                )
                return {"entries": [e.model_dump() for e in entries]}

            elif command == Command.READ_CONSUMER:
                messages = await router.read_group_msg(
                    router.config.group,
                    body["consumer"],
                    body.get("after_id"),
                    body.get("count", 10),
                )
                return {"messages": [m.model_dump() for m in messages]}

            elif command == Command.ACK:
                acked = await router.ack(body["group"], body["ids"])
                return {"acked": acked}

            return {"error": f"Unknown command: {command}"}
        except Exception as e:
            logger.exception("Error processing command")
            return {"error": str(e)}

    async def start(self):
        self._server = await asyncio.start_server(
            self.handle_client, self.host, self.port
        )
        addr = self._server.sockets[0].getsockname()
        logger.info(f"TCP Frontend serving on {addr}")
        async with self._server:
            await self._server.serve_forever()

    async def stop(self):
        if self._server:
            self._server.close()
            await self._server.wait_closed()
