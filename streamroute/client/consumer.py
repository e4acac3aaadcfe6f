from typing import Any, Dict, List, Optional, Union
from streamroute.core.models import Message, PendingEntry
from streamroute.core.protocol import Command
from ._connect import resolve_transport
from .transport import ITransport


class ConsumerClient:
    def __init__(
        self,
        transport_or_url: Union[str, ITransport],
        stream: str,
        consumer: str,
        group: str = "mainGroup",
    ):
        self.transport = resolve_transport(transport_or_url)
        self.stream = stream
        self.consumer = consumer
        self.group = group

    async def close(self):
        await self.transport.close()

    async def pending(
        self, count: int = 10, start: str = "-", end: str = "+"
    ) -> List[PendingEntry]:
        response = await self.transport.request(
            Command.READ_PENDING,
            {
                "stream": self.stream,
                "group": self.group,
                "consumer": self.consumer,
                "count": count,
                "start": start,
                "end": end,
            },
        )
        return [PendingEntry(**entry) for entry in response["entries"]]

    async def read(self, after_id: Optional[str] = "0", count: int = 10) -> List[Message]:
        """Reads messages already assigned to this consumer after after_id.

        Pass after_id=None to take new, never-delivered messages instead.
        """
        response = await self.transport.request(
            Command.READ_CONSUMER,
            {
                "stream": self.stream,
                "consumer": self.consumer,
                "after_id": after_id,
                "count": count,
            },
        )
        return [Message(**msg) for msg in response["messages"]]

    async def ack(self, ids: List[str]) -> int:
        response: Dict[str, Any] = await self.transport.request(
            Command.ACK, {"stream": self.stream, "group": self.group, "ids": ids}
        )
        return response["acked"]
