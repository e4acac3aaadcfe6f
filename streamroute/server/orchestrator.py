import logging
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Union
from streamroute.core.config import RouterConfig
from streamroute.core.errors import StoreError
from streamroute.core.interfaces import ILogStore
from streamroute.core.models import (
    AckResult,
    GroupResult,
    InitResult,
    Message,
    PendingEntry,
)
from streamroute.core.routing import RoutingTable
from .consumption import AckConsumer, MessageHandler
from .pending import RANGE_END, RANGE_START, PendingDrainer
from .router import GroupRouter

logger = logging.getLogger(__name__)


class StreamRouter:
    """Type-based routing and consumption for a single stream."""

    def __init__(
        self,
        store: ILogStore,
        config: RouterConfig,
        routing_table: Optional[RoutingTable] = None,
    ):
        self.store = store
        self.config = config
        self.routing_table = routing_table
        self.group_router = GroupRouter(store, config)
        self.drainer = PendingDrainer(store, config.stream)
        self.consumer = AckConsumer(store, config)

    @classmethod
    def create(
        cls,
        store: ILogStore,
        routing_table: Optional[RoutingTable] = None,
        **settings: Any,
    ) -> "StreamRouter":
        return cls(store, RouterConfig.build(**settings), routing_table)

    @property
    def stream(self) -> str:
        return self.config.stream

    async def ensure_initialized(self) -> InitResult:
        """Creates the stream and the intake group if they do not exist yet."""
        cfg = self.config
        result = InitResult(stream=cfg.stream, group=cfg.group)
        try:
            if await self.store.group_exists(cfg.stream, cfg.group):
                return result
            result.group_created = await self.store.create_group(
                cfg.stream, cfg.group, cfg.group_start_id, mkstream=True
            )
        except StoreError as e:
            logger.exception(f"Failed to initialize {cfg.stream}/{cfg.group}")
            result.ok = False
            result.error = str(e)
            return result

        if result.group_created:
            logger.info(f"Created group {cfg.group} on {cfg.stream}")
        return result

    # Routing table

    async def load_routing_table(self) -> Optional[RoutingTable]:
        """Replaces the routing table with the cached blob, if there is one."""
        blob = await self.store.get_blob(self.config.routing_cache_key)
        if blob is None:
            return self.routing_table
        self.routing_table = RoutingTable.load(blob)
        return self.routing_table

    async def set_routing_table(
        self, table: Union[RoutingTable, Mapping[str, str], str, bytes]
    ) -> RoutingTable:
        if isinstance(table, RoutingTable):
            routing_table = table
        elif isinstance(table, (str, bytes)):
            routing_table = RoutingTable.load(table)
        else:
            routing_table = RoutingTable(table)

        await self.store.set_blob(self.config.routing_cache_key, routing_table.dump())
        self.routing_table = routing_table
        return routing_table

    async def set_consumer_type_cache(self, blob: Union[str, bytes]) -> bool:
        await self.set_routing_table(blob)
        return True

    # Core operations

    async def push(self, fields: Dict[str, str], id: str = "*") -> str:
        return await self.store.append(self.config.stream, fields, id)

    async def msg_group(self, routing_table: Optional[RoutingTable] = None) -> GroupResult:
        if routing_table is None:
            routing_table = self.routing_table
        return await self.group_router.run(routing_table)

    async def read_consumer_pending_msg(
        self,
        group: str,
        consumer: Optional[str] = None,
        count: int = 10,
        start: str = RANGE_START,
        end: str = RANGE_END,
    ) -> List[PendingEntry]:
        return await self.store.pending_range(
            self.config.stream, group, start, end, count, consumer
        )

    def iter_consumer_pending(
        self, group: str, consumer: str, page_size: int = 20
    ) -> AsyncIterator[PendingEntry]:
        return self.drainer.iter_pending(group, consumer, page_size)

    async def count_consumer_pending(
        self, group: str, consumer: str, page_size: int = 20
    ) -> int:
        return len(await self.drainer.collect(group, consumer, page_size))

    async def ack_consumer_msg(
        self, consumer: str, handler: Optional[MessageHandler]
    ) -> AckResult:
        return await self.consumer.consume(consumer, handler)

    # Log and group maintenance

    async def delete(self, ids: Union[str, List[str]]) -> int:
        if isinstance(ids, str):
            ids = [ids]
        return await self.store.delete(self.config.stream, ids)

    async def read_msg_asc(
        self, start: str = "-", end: str = "+", count: Optional[int] = None
    ) -> List[Message]:
        return await self.store.range(self.config.stream, start, end, count)

    async def read_msg_desc(
        self, end: str = "+", start: str = "-", count: Optional[int] = None
    ) -> List[Message]:
        return await self.store.rev_range(self.config.stream, end, start, count)

    async def create_group(self, group: str, start_id: str = "$") -> bool:
        return await self.store.create_group(self.config.stream, group, start_id)

    async def del_group(self, group: str) -> bool:
        return await self.store.destroy_group(self.config.stream, group)

    async def del_consumer(self, consumer: str, group: Optional[str] = None) -> int:
        return await self.store.delete_consumer(
            self.config.stream, group or self.config.group, consumer
        )

    async def set_group_last_delivered_id(self, group: str, last_id: str) -> bool:
        return await self.store.set_group_id(self.config.stream, group, last_id)

    async def read_group_msg(
        self,
        group: str,
        consumer: str,
        after_id: Optional[str] = None,
        count: int = 10,
    ) -> List[Message]:
        if after_id is None:
            return await self.store.read_group_new(
                self.config.stream, group, consumer, count
            )
        return await self.store.read_group_from(
            self.config.stream, group, consumer, after_id, count
        )

    async def ack(self, group: str, ids: List[str]) -> int:
        return await self.store.ack(self.config.stream, group, ids)

    async def claim(
        self, group: str, consumer: str, ids: List[str], min_idle_ms: int = 0
    ) -> List[str]:
        return await self.store.claim(
            self.config.stream, group, consumer, min_idle_ms, ids
        )
