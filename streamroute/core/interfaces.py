from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from .models import Message, PendingEntry


class ILogStore(ABC):
    """Append-only stream store with consumer-group bookkeeping."""

    @abstractmethod
    async def append(self, stream: str, fields: Dict[str, str], id: str = "*") -> str:
        """Appends one entry and returns the ID assigned to it."""
        pass

    @abstractmethod
    async def stream_exists(self, stream: str) -> bool:
        pass

    @abstractmethod
    async def group_exists(self, stream: str, group: str) -> bool:
        pass

    @abstractmethod
    async def create_group(
        self, stream: str, group: str, start_id: str = "$", mkstream: bool = True
    ) -> bool:
        """Creates a consumer group. Returns False if it already exists."""
        pass

    @abstractmethod
    async def destroy_group(self, stream: str, group: str) -> bool:
        pass

    @abstractmethod
    async def delete_consumer(self, stream: str, group: str, consumer: str) -> int:
        """Removes a consumer and returns how many pending entries it owned."""
        pass

    @abstractmethod
    async def set_group_id(self, stream: str, group: str, last_id: str) -> bool:
        pass

    @abstractmethod
    async def read_group_new(
        self, stream: str, group: str, consumer: str, count: int
    ) -> List[Message]:
        """Delivers entries never delivered to any consumer of the group."""
        pass

    @abstractmethod
    async def read_group_from(
        self, stream: str, group: str, consumer: str, after_id: str, count: int
    ) -> List[Message]:
        """Re-delivers entries pending on the consumer with an ID after after_id."""
        pass

    @abstractmethod
    async def claim(
        self,
        stream: str,
        group: str,
        consumer: str,
        min_idle_ms: int,
        ids: List[str],
    ) -> List[str]:
        """Transfers ownership of pending entries. Returns the IDs actually claimed."""
        pass

    @abstractmethod
    async def ack(self, stream: str, group: str, ids: List[str]) -> int:
        pass

    @abstractmethod
    async def pending_range(
        self,
        stream: str,
        group: str,
        start: str = "-",
        end: str = "+",
        count: int = 10,
        consumer: Optional[str] = None,
    ) -> List[PendingEntry]:
        pass

    @abstractmethod
    async def range(
        self, stream: str, start: str = "-", end: str = "+", count: Optional[int] = None
    ) -> List[Message]:
        pass

    @abstractmethod
    async def rev_range(
        self, stream: str, end: str = "+", start: str = "-", count: Optional[int] = None
    ) -> List[Message]:
        pass

    @abstractmethod
    async def delete(self, stream: str, ids: List[str]) -> int:
        pass

    @abstractmethod
    async def get_blob(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set_blob(self, key: str, value: str) -> bool:
        pass

    async def close(self):
        pass
