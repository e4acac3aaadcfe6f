import asyncio

import pytest

from conftest import GROUP, INTAKE, STREAM, TYPES, push_round_robin
from streamroute.core.errors import StoreUnavailable
from streamroute.core.models import DrainSignal
from streamroute.core.routing import RoutingTable
from streamroute.server.orchestrator import StreamRouter
from streamroute.server.storage.in_memory import InMemoryLogStore


async def count_pending(router, consumer):
    return await router.count_consumer_pending(GROUP, consumer, page_size=50)


@pytest.mark.asyncio
async def test_all_types_mapped_claims_everything(router):
    await push_round_robin(router, 1000)

    result = await router.msg_group()

    assert result.all_msg_num == 1000
    assert result.claim_msg_num == 1000
    assert result.batches == 20
    assert result.signal == DrainSignal.EXHAUSTED
    for t in TYPES:
        assert await count_pending(router, f"consumer{t}") == 125
    assert await count_pending(router, INTAKE) == 0


@pytest.mark.asyncio
async def test_unmapped_types_stay_on_intake_consumer(router):
    await push_round_robin(router, 1000)
    partial = RoutingTable({f"type{t}": f"consumer{t}" for t in "ABCD"})

    result = await router.msg_group(partial)

    assert result.all_msg_num == 1000
    assert result.claim_msg_num == 500
    assert await count_pending(router, INTAKE) == 500
    for t in "EFGH":
        assert await count_pending(router, f"consumer{t}") == 0

    leftovers = await router.read_group_msg(GROUP, INTAKE, after_id="0", count=1000)
    assert {msg.fields["type"] for msg in leftovers} == {"typeE", "typeF", "typeG", "typeH"}


@pytest.mark.asyncio
async def test_missing_or_empty_type_is_scanned_but_not_claimed(router):
    await router.push({"value": "no type"})
    await router.push({"type": "", "value": "empty type"})
    await router.push({"type": "typeA", "value": "routed"})

    result = await router.msg_group()

    assert result.all_msg_num == 3
    assert result.claim_msg_num == 1
    assert await count_pending(router, INTAKE) == 2


@pytest.mark.asyncio
async def test_without_routing_table_nothing_is_claimed(store):
    mq = StreamRouter.create(store, stream="bare")
    await mq.ensure_initialized()
    await push_round_robin(mq, 30)

    result = await mq.msg_group()

    assert result.all_msg_num == 30
    assert result.claim_msg_num == 0
    assert await count_pending(mq, INTAKE) == 30


@pytest.mark.asyncio
async def test_second_pass_sees_only_new_messages(router):
    await push_round_robin(router, 16)
    first = await router.msg_group()
    await push_round_robin(router, 8)
    second = await router.msg_group()
    third = await router.msg_group()

    assert (first.all_msg_num, first.claim_msg_num) == (16, 16)
    assert (second.all_msg_num, second.claim_msg_num) == (8, 8)
    assert (third.all_msg_num, third.claim_msg_num, third.batches) == (0, 0, 0)


@pytest.mark.asyncio
async def test_concurrent_routers_never_double_count(store, routing_table):
    first = StreamRouter.create(store, routing_table, stream=STREAM, batch_size=7)
    second = StreamRouter.create(store, routing_table, stream=STREAM, batch_size=11)
    await first.ensure_initialized()
    await second.ensure_initialized()
    await push_round_robin(first, 400)

    a, b = await asyncio.gather(first.msg_group(), second.msg_group())

    assert a.all_msg_num + b.all_msg_num == 400
    assert a.claim_msg_num + b.claim_msg_num == 400
    total = 0
    for t in TYPES:
        total += await count_pending(first, f"consumer{t}")
    assert total == 400


@pytest.mark.asyncio
async def test_claim_skips_ids_already_acknowledged(router):
    ids = await push_round_robin(router, 4)
    await router.read_group_msg(GROUP, INTAKE, count=4)
    await router.ack(GROUP, ids[:2])

    claimed = await router.claim(GROUP, "consumerA", ids)

    assert claimed == ids[2:]


@pytest.mark.asyncio
async def test_idle_threshold_blocks_recent_messages(store, routing_table):
    mq = StreamRouter.create(store, routing_table, stream="idle", min_idle_ms=60_000)
    await mq.ensure_initialized()
    await push_round_robin(mq, 8)

    result = await mq.msg_group()

    assert result.all_msg_num == 8
    assert result.claim_msg_num == 0
    assert await count_pending(mq, INTAKE) == 8


class FlakyClaimStore(InMemoryLogStore):
    def __init__(self, fail_after: int):
        super().__init__()
        self.claims = 0
        self.fail_after = fail_after

    async def claim(self, stream, group, consumer, min_idle_ms, ids):
        self.claims += 1
        if self.claims > self.fail_after:
            raise StoreUnavailable("connection lost")
        return await super().claim(stream, group, consumer, min_idle_ms, ids)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fail_after,claimed",
    [
        # Fails on the first claim of the second batch
        (8, 16),
        # Fails after one bucket of the second batch was claimed
        (9, 18),
        (13, 26),
    ],
)
async def test_store_failure_stops_loop_with_partial_counts(routing_table, fail_after, claimed):
    store = FlakyClaimStore(fail_after=fail_after)
    mq = StreamRouter.create(store, routing_table, stream=STREAM, batch_size=16)
    await mq.ensure_initialized()
    await push_round_robin(mq, 64)

    result = await mq.msg_group()

    assert result.signal == DrainSignal.ERROR
    assert "connection lost" in result.error
    assert result.batches == 2
    assert result.all_msg_num == 32
    assert result.claim_msg_num == claimed
    # Whatever was read but not claimed is still owned by the intake consumer
    assert await count_pending(mq, INTAKE) == 32 - claimed
