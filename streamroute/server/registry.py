from typing import Any, Dict, Optional
from streamroute.core.config import RouterConfig
from streamroute.core.errors import StoreError
from streamroute.core.interfaces import ILogStore
from .orchestrator import StreamRouter
from .storage.in_memory import InMemoryLogStore


class StreamRegistry:
    def __init__(self, store: Optional[ILogStore] = None, **defaults: Any):
        self._routers: Dict[str, StreamRouter] = {}
        self._store = store or InMemoryLogStore()
        self._defaults = defaults

    @classmethod
    def from_redis(cls, url: str, **defaults: Any) -> "StreamRegistry":
        from .storage.redis_streams import RedisLogStore

        return cls(RedisLogStore(url=url), **defaults)

    async def get_router(self, stream: str) -> StreamRouter:
        """Returns the router for a stream, initializing it on first use."""
        router = self._routers.get(stream)
        if router is None:
            config = RouterConfig.build(stream=stream, **self._defaults)
            router = StreamRouter(self._store, config)
            result = await router.ensure_initialized()
            if not result.ok:
                raise StoreError(result.error)
            await router.load_routing_table()
            self._routers[stream] = router
        return router

    async def close(self):
        await self._store.close()
