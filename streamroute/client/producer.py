from typing import Any, Dict, Union
from streamroute.core.protocol import Command
from ._connect import resolve_transport
from .transport import ITransport


class ProducerClient:
    def __init__(self, transport_or_url: Union[str, ITransport], stream: str):
        self.transport = resolve_transport(transport_or_url)
        self.stream = stream

    async def close(self):
        await self.transport.close()

    async def send(self, fields: Dict[str, Any], id: str = "*") -> str:
        response = await self.transport.request(
            Command.PUSH,
            {
                "stream": self.stream,
                "fields": {str(k): str(v) for k, v in fields.items()},
                "id": id,
            },
        )
        return response["message_id"]

    async def route(self) -> Dict[str, Any]:
        """Asks the server to hand intake messages out to their typed consumers."""
        return await self.transport.request(Command.ROUTE, {"stream": self.stream})

    async def set_routing_table(self, routes: Dict[str, str]) -> Dict[str, str]:
        response = await self.transport.request(
            Command.SET_ROUTING, {"stream": self.stream, "routes": routes}
        )
        return response["routes"]
