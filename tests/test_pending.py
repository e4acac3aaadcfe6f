import pytest

from conftest import GROUP, INTAKE, push_round_robin
from streamroute.core.errors import ConfigurationError
from streamroute.core.models import DrainSignal


async def backlog(router, size):
    """Leaves `size` messages pending on the intake consumer."""
    ids = await push_round_robin(router, size)
    await router.read_group_msg(GROUP, INTAKE, count=size)
    return ids


@pytest.mark.asyncio
@pytest.mark.parametrize("size,page_size", [(45, 20), (40, 20), (20, 20), (7, 2), (1, 5)])
async def test_pagination_yields_every_entry_once(router, size, page_size):
    ids = await backlog(router, size)

    entries = [e async for e in router.iter_consumer_pending(GROUP, INTAKE, page_size)]

    assert [e.message_id for e in entries] == ids
    assert all(e.consumer == INTAKE for e in entries)
    assert all(e.delivery_count == 1 for e in entries)


@pytest.mark.asyncio
async def test_counting_with_boundary_correction(router):
    # Walk the pages by hand: every page after the first re-fetches its
    # boundary entry, so one is subtracted whenever the cursor has moved.
    await backlog(router, 53)
    start, seen = "-", 0

    while True:
        data = await router.read_consumer_pending_msg(GROUP, INTAKE, 20, start, "+")
        seen += len(data)
        if start != "-":
            seen -= 1
        if not data:
            break
        start = data[-1].message_id
        if len(data) <= 1:
            break

    assert seen == 53


@pytest.mark.asyncio
async def test_empty_backlog(router):
    entries = [e async for e in router.iter_consumer_pending(GROUP, "nobody", 10)]

    assert entries == []


@pytest.mark.asyncio
async def test_page_signals(router):
    ids = await backlog(router, 5)
    drainer = router.drainer

    first = await drainer.read_page(GROUP, INTAKE, 3)
    last = await drainer.read_page(GROUP, INTAKE, 3, start=ids[-1])
    empty = await drainer.read_page(GROUP, "nobody", 3)

    assert first.signal == DrainSignal.MORE_DATA
    assert first.next_start == ids[2]
    assert [e.message_id for e in last.entries] == [ids[-1]]
    assert last.signal == DrainSignal.EXHAUSTED
    assert empty.signal == DrainSignal.EXHAUSTED
    assert empty.entries == []


@pytest.mark.asyncio
async def test_iteration_restarts_from_the_beginning(router):
    await backlog(router, 12)

    first = [e.message_id async for e in router.iter_consumer_pending(GROUP, INTAKE, 5)]
    second = [e.message_id async for e in router.iter_consumer_pending(GROUP, INTAKE, 5)]

    assert first == second
    assert len(first) == 12


@pytest.mark.asyncio
async def test_boundary_acked_between_pages_is_not_lost(router):
    ids = await backlog(router, 10)
    seen = []

    async for entry in router.iter_consumer_pending(GROUP, INTAKE, 4):
        seen.append(entry.message_id)
        if entry.message_id == ids[3]:
            # Boundary of the first page disappears before the second fetch
            await router.ack(GROUP, [ids[3]])

    assert seen == ids


@pytest.mark.asyncio
async def test_page_size_below_two_is_rejected(router):
    await backlog(router, 3)

    with pytest.raises(ConfigurationError):
        [e async for e in router.iter_consumer_pending(GROUP, INTAKE, 1)]


@pytest.mark.asyncio
async def test_pending_filters_by_consumer(router):
    await push_round_robin(router, 16)
    await router.msg_group()

    entries = await router.read_consumer_pending_msg(GROUP, "consumerB", count=100)
    everyone = await router.read_consumer_pending_msg(GROUP, count=100)

    assert len(entries) == 2
    assert {e.consumer for e in entries} == {"consumerB"}
    assert len(everyone) == 16


@pytest.mark.asyncio
async def test_single_entry_first_page_is_exhausted(router):
    await backlog(router, 1)

    page = await router.drainer.read_page(GROUP, INTAKE, 5)

    assert len(page.entries) == 1
    assert page.signal == DrainSignal.EXHAUSTED
