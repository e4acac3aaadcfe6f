import logging
from typing import AsyncIterator, List
from streamroute.core.errors import ConfigurationError
from streamroute.core.interfaces import ILogStore
from streamroute.core.models import DrainSignal, PendingEntry, PendingPage

logger = logging.getLogger(__name__)

RANGE_START = "-"
RANGE_END = "+"


class PendingDrainer:
    """Pages through a consumer's pending entries in ID order.

    The cursor is inclusive: every page after the first starts at the last
    ID of the previous page, so the boundary entry comes back and is skipped
    by ID. A page that is empty, or holds nothing but that boundary, ends
    the walk.
    """

    def __init__(self, store: ILogStore, stream: str):
        self.store = store
        self.stream = stream

    async def read_page(
        self,
        group: str,
        consumer: str,
        page_size: int,
        start: str = RANGE_START,
        end: str = RANGE_END,
    ) -> PendingPage:
        entries = await self.store.pending_range(
            self.stream, group, start, end, page_size, consumer
        )
        if not entries:
            return PendingPage(signal=DrainSignal.EXHAUSTED)
        if len(entries) == 1:
            signal = DrainSignal.EXHAUSTED
        else:
            signal = DrainSignal.MORE_DATA
        return PendingPage(
            entries=entries, next_start=entries[-1].message_id, signal=signal
        )

    async def iter_pending(
        self,
        group: str,
        consumer: str,
        page_size: int = 20,
        start: str = RANGE_START,
        end: str = RANGE_END,
    ) -> AsyncIterator[PendingEntry]:
        if page_size < 2:
            raise ConfigurationError("page_size must be at least 2 for inclusive paging")

        boundary = None
        cursor = start
        while True:
            page = await self.read_page(group, consumer, page_size, cursor, end)
            for entry in page.entries:
                if entry.message_id == boundary:
                    continue
                yield entry

            if page.signal != DrainSignal.MORE_DATA:
                return
            boundary = cursor = page.next_start
            logger.debug(f"Pending cursor for {consumer} moved to {cursor}")

    async def collect(
        self, group: str, consumer: str, page_size: int = 20
    ) -> List[PendingEntry]:
        return [entry async for entry in self.iter_pending(group, consumer, page_size)]
