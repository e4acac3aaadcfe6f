import logging
from typing import Dict, List, Optional
from streamroute.core.config import RouterConfig
from streamroute.core.errors import StoreError
from streamroute.core.interfaces import ILogStore
from streamroute.core.models import DrainSignal, GroupResult, Message
from streamroute.core.routing import RoutingTable

logger = logging.getLogger(__name__)


class GroupRouter:
    """Moves messages from the intake consumer to their per-type consumers.

    Each pass reads a batch of never-delivered messages as the intake
    consumer, buckets the IDs by the consumer the routing table maps their
    type to, and claims every bucket in one call. Messages with an unknown
    or missing type are left pending on the intake consumer.
    """

    def __init__(self, store: ILogStore, config: RouterConfig):
        self.store = store
        self.config = config

    def bucket(self, batch: List[Message], routing_table: RoutingTable) -> Dict[str, List[str]]:
        buckets: Dict[str, List[str]] = {}
        for msg in batch:
            consumer = routing_table.lookup(msg.fields.get(self.config.type_key))
            if consumer is not None:
                buckets.setdefault(consumer, []).append(msg.id)
        return buckets

    async def route_batch(self, routing_table: RoutingTable, total: GroupResult) -> bool:
        """Routes a single batch into total. Returns False once the intake group is drained.

        Counters are updated as each store call returns, so a failure part-way
        through a batch still leaves total describing what was done.
        """
        cfg = self.config
        batch = await self.store.read_group_new(
            cfg.stream, cfg.group, cfg.main_consumer, cfg.batch_size
        )
        if not batch:
            return False

        total.all_msg_num += len(batch)
        total.batches += 1
        for consumer, ids in self.bucket(batch, routing_table).items():
            result = await self.store.claim(
                cfg.stream, cfg.group, consumer, cfg.min_idle_ms, ids
            )
            if len(result) < len(ids):
                logger.debug(
                    f"Claimed {len(result)}/{len(ids)} messages for {consumer}, "
                    "the rest were already reassigned or acknowledged"
                )
            total.claim_msg_num += len(result)
        return True

    async def run(self, routing_table: Optional[RoutingTable] = None) -> GroupResult:
        if routing_table is None:
            logger.warning(
                f"No routing table for {self.config.stream}; "
                "messages will stay on the intake consumer"
            )
            routing_table = RoutingTable()

        total = GroupResult(signal=DrainSignal.MORE_DATA)
        while True:
            try:
                more = await self.route_batch(routing_table, total)
            except StoreError as e:
                logger.exception(f"Routing stopped on {self.config.stream}")
                total.signal = DrainSignal.ERROR
                total.error = str(e)
                return total

            if not more:
                total.signal = DrainSignal.EXHAUSTED
                break

        logger.debug(
            f"Routed {total.claim_msg_num}/{total.all_msg_num} messages "
            f"on {self.config.stream} in {total.batches} batches"
        )
        return total
