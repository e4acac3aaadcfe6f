"""Shared fixtures for the streamroute test-suite.

Everything runs against the in-memory store, which reproduces the Redis
stream consumer-group semantics the router depends on.
"""

from typing import Dict, List

import pytest
import pytest_asyncio

from streamroute.core.routing import RoutingTable
from streamroute.server.orchestrator import StreamRouter
from streamroute.server.storage.in_memory import InMemoryLogStore

STREAM = "testStream"
GROUP = "mainGroup"
INTAKE = "mainConsumer"
TYPES = "ABCDEFGH"


def full_routes() -> Dict[str, str]:
    return {f"type{t}": f"consumer{t}" for t in TYPES}


async def push_round_robin(router: StreamRouter, total: int = 1000) -> List[str]:
    """Pushes `total` messages cycling through typeA..typeH."""
    ids = []
    for i in range(1, total + 1):
        type_name = "type" + TYPES[(i - 1) % len(TYPES)]
        ids.append(
            await router.push({"type": type_name, "value": f"value{i}", "status": str(i)})
        )
    return ids


@pytest.fixture
def store() -> InMemoryLogStore:
    return InMemoryLogStore()


@pytest.fixture
def routing_table() -> RoutingTable:
    return RoutingTable(full_routes())


@pytest_asyncio.fixture
async def router(store: InMemoryLogStore, routing_table: RoutingTable) -> StreamRouter:
    """An initialized router over an empty stream with all eight types mapped."""
    mq = StreamRouter.create(store, routing_table, stream=STREAM)
    result = await mq.ensure_initialized()
    assert result.ok
    return mq
