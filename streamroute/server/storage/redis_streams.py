import functools
import logging
from typing import Any, Dict, List, Optional
from redis import asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError, TimeoutError as RedisTimeoutError
from streamroute.core.errors import StoreCommandError, StoreUnavailable
from streamroute.core.interfaces import ILogStore
from streamroute.core.models import Message, PendingEntry

logger = logging.getLogger(__name__)


def _translate_errors(func):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StoreUnavailable(f"{func.__name__}: {e}") from e
        except ResponseError as e:
            raise StoreCommandError(f"{func.__name__}: {e}") from e
        except RedisError as e:
            raise StoreUnavailable(f"{func.__name__}: {e}") from e

    return wrapper


def _to_messages(entries: Any) -> List[Message]:
    return [Message(id=entry_id, fields=fields or {}) for entry_id, fields in entries]


def _unwrap_read(response: Any, stream: str) -> List[Message]:
    # [[stream, [(id, fields), ...]]], or None when nothing was delivered
    if not response:
        return []
    for name, entries in response:
        if name == stream:
            return _to_messages(entries)
    return []


class RedisLogStore(ILogStore):
    """ILogStore backed by Redis streams."""

    def __init__(self, client: Optional[aioredis.Redis] = None, url: str = "redis://localhost:6379/0"):
        self.client = client or aioredis.Redis.from_url(url, decode_responses=True)

    async def close(self):
        await self.client.aclose()

    @_translate_errors
    async def append(self, stream: str, fields: Dict[str, str], id: str = "*") -> str:
        return await self.client.xadd(stream, fields, id=id)

    @_translate_errors
    async def stream_exists(self, stream: str) -> bool:
        return bool(await self.client.exists(stream))

    @_translate_errors
    async def group_exists(self, stream: str, group: str) -> bool:
        try:
            groups = await self.client.xinfo_groups(stream)
        except ResponseError:
            # No such key
            return False
        return any(g["name"] == group for g in groups)

    @_translate_errors
    async def create_group(
        self, stream: str, group: str, start_id: str = "$", mkstream: bool = True
    ) -> bool:
        try:
            await self.client.xgroup_create(stream, group, id=start_id, mkstream=mkstream)
        except ResponseError as e:
            if "BUSYGROUP" in str(e):
                logger.debug(f"Group {group} already exists on {stream}")
                return False
            raise
        return True

    @_translate_errors
    async def destroy_group(self, stream: str, group: str) -> bool:
        return bool(await self.client.xgroup_destroy(stream, group))

    @_translate_errors
    async def delete_consumer(self, stream: str, group: str, consumer: str) -> int:
        return await self.client.xgroup_delconsumer(stream, group, consumer)

    @_translate_errors
    async def set_group_id(self, stream: str, group: str, last_id: str) -> bool:
        return bool(await self.client.xgroup_setid(stream, group, last_id))

    @_translate_errors
    async def read_group_new(
        self, stream: str, group: str, consumer: str, count: int
    ) -> List[Message]:
        response = await self.client.xreadgroup(group, consumer, {stream: ">"}, count=count)
        return _unwrap_read(response, stream)

    @_translate_errors
    async def read_group_from(
        self, stream: str, group: str, consumer: str, after_id: str, count: int
    ) -> List[Message]:
        response = await self.client.xreadgroup(
            group, consumer, {stream: after_id}, count=count
        )
        return _unwrap_read(response, stream)

    @_translate_errors
    async def claim(
        self,
        stream: str,
        group: str,
        consumer: str,
        min_idle_ms: int,
        ids: List[str],
    ) -> List[str]:
        if not ids:
            return []
        claimed = await self.client.xclaim(
            stream, group, consumer, min_idle_ms, ids, justid=True
        )
        return list(claimed or [])

    @_translate_errors
    async def ack(self, stream: str, group: str, ids: List[str]) -> int:
        if not ids:
            return 0
        return await self.client.xack(stream, group, *ids)

    @_translate_errors
    async def pending_range(
        self,
        stream: str,
        group: str,
        start: str = "-",
        end: str = "+",
        count: int = 10,
        consumer: Optional[str] = None,
    ) -> List[PendingEntry]:
        rows = await self.client.xpending_range(
            stream, group, min=start, max=end, count=count, consumername=consumer
        )
        return [
            PendingEntry(
                message_id=row["message_id"],
                consumer=row["consumer"],
                idle_ms=row["time_since_delivered"],
                delivery_count=row["times_delivered"],
            )
            for row in rows
        ]

    @_translate_errors
    async def range(
        self, stream: str, start: str = "-", end: str = "+", count: Optional[int] = None
    ) -> List[Message]:
        return _to_messages(await self.client.xrange(stream, start, end, count=count))

    @_translate_errors
    async def rev_range(
        self, stream: str, end: str = "+", start: str = "-", count: Optional[int] = None
    ) -> List[Message]:
        return _to_messages(await self.client.xrevrange(stream, end, start, count=count))

    @_translate_errors
    async def delete(self, stream: str, ids: List[str]) -> int:
        if not ids:
            return 0
        return await self.client.xdel(stream, *ids)

    @_translate_errors
    async def get_blob(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    @_translate_errors
    async def set_blob(self, key: str, value: str) -> bool:
        return bool(await self.client.set(key, value))
