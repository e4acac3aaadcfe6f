import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from streamroute.core.errors import StoreCommandError
from streamroute.core.interfaces import ILogStore
from streamroute.core.models import (
    Message,
    PendingEntry,
    format_stream_id,
    parse_stream_id,
)

StreamId = Tuple[int, int]

_MAX_SEQ = 2**64 - 1
_MIN_ID: StreamId = (0, 0)
_MAX_ID: StreamId = (_MAX_SEQ, _MAX_SEQ)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _parse(value: str) -> StreamId:
    try:
        return parse_stream_id(value)
    except ValueError as e:
        raise StoreCommandError(str(e))


def _lower_bound(value: str) -> Tuple[StreamId, bool]:
    """Returns (id, exclusive) for a range start."""
    if value == "-":
        return _MIN_ID, False
    if value.startswith("("):
        return _parse(value[1:]), True
    return _parse(value), False


def _upper_bound(value: str) -> Tuple[StreamId, bool]:
    if value == "+":
        return _MAX_ID, False
    exclusive = value.startswith("(")
    raw = value[1:] if exclusive else value
    ms, seq = _parse(raw)
    if "-" not in raw:
        seq = _MAX_SEQ
    return (ms, seq), exclusive


def _in_range(
    entry_id: StreamId, low: Tuple[StreamId, bool], high: Tuple[StreamId, bool]
) -> bool:
    (lo, lo_ex), (hi, hi_ex) = low, high
    if entry_id < lo or (lo_ex and entry_id == lo):
        return False
    if entry_id > hi or (hi_ex and entry_id == hi):
        return False
    return True


@dataclass
class _PendingRecord:
    consumer: str
    delivered_at: int
    delivery_count: int = 1


@dataclass
class _Group:
    last_delivered: StreamId
    pending: Dict[StreamId, _PendingRecord] = field(default_factory=dict)
    consumers: Dict[str, int] = field(default_factory=dict)


@dataclass
class _Stream:
    entries: Dict[StreamId, Dict[str, str]] = field(default_factory=dict)
    last_id: StreamId = _MIN_ID
    groups: Dict[str, _Group] = field(default_factory=dict)

    def sorted_ids(self) -> List[StreamId]:
        return sorted(self.entries)


class InMemoryLogStore(ILogStore):
    """Process-local store reproducing Redis stream consumer-group semantics."""

    def __init__(self):
        # stream -> _Stream
        self._streams: Dict[str, _Stream] = {}
        self._blobs: Dict[str, str] = {}
        # stream -> Lock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    def _get_lock(self, stream: str) -> asyncio.Lock:
        if stream not in self._locks:
            self._locks[stream] = asyncio.Lock()
        return self._locks[stream]

    async def _lock_for(self, stream: str) -> asyncio.Lock:
        async with self._global_lock:
            return self._get_lock(stream)

    def _get_group(self, stream: str, group: str) -> Tuple[_Stream, _Group]:
        log = self._streams.get(stream)
        if log is None or group not in log.groups:
            raise StoreCommandError(
                f"NOGROUP No such key '{stream}' or consumer group '{group}'"
            )
        return log, log.groups[group]

    def _next_id(self, log: _Stream, requested: str) -> StreamId:
        if requested == "*":
            ms = _now_ms()
            last_ms, last_seq = log.last_id
            if ms > last_ms:
                return ms, 0
            return last_ms, last_seq + 1

        if requested.endswith("-*"):
            ms = _parse(requested[:-2])[0]
            last_ms, last_seq = log.last_id
            new_id = (ms, last_seq + 1) if ms == last_ms else (ms, 0)
        else:
            new_id = _parse(requested)
        if new_id == _MIN_ID:
            raise StoreCommandError("The ID specified must be greater than 0-0")
        if new_id <= log.last_id:
            raise StoreCommandError(
                "The ID specified is equal or smaller than the target stream top item"
            )
        return new_id

    async def append(self, stream: str, fields: Dict[str, str], id: str = "*") -> str:
        if not fields:
            raise StoreCommandError("Cannot append an entry without fields")

        lock = await self._lock_for(stream)
        async with lock:
            log = self._streams.setdefault(stream, _Stream())
            entry_id = self._next_id(log, id)
            log.entries[entry_id] = {str(k): str(v) for k, v in fields.items()}
            log.last_id = entry_id
            return format_stream_id(*entry_id)

    async def stream_exists(self, stream: str) -> bool:
        return stream in self._streams

    async def group_exists(self, stream: str, group: str) -> bool:
        log = self._streams.get(stream)
        return log is not None and group in log.groups

    async def create_group(
        self, stream: str, group: str, start_id: str = "$", mkstream: bool = True
    ) -> bool:
        lock = await self._lock_for(stream)
        async with lock:
            log = self._streams.get(stream)
            if log is None:
                if not mkstream:
                    raise StoreCommandError(
                        "The XGROUP subcommand requires the key to exist"
                    )
                log = self._streams[stream] = _Stream()
            if group in log.groups:
                return False
            last = log.last_id if start_id == "$" else _parse(start_id)
            log.groups[group] = _Group(last_delivered=last)
            return True

    async def destroy_group(self, stream: str, group: str) -> bool:
        lock = await self._lock_for(stream)
        async with lock:
            log = self._streams.get(stream)
            if log is None:
                raise StoreCommandError(f"No such key '{stream}'")
            return log.groups.pop(group, None) is not None

    async def delete_consumer(self, stream: str, group: str, consumer: str) -> int:
        lock = await self._lock_for(stream)
        async with lock:
            _, grp = self._get_group(stream, group)
            owned = [i for i, rec in grp.pending.items() if rec.consumer == consumer]
            for entry_id in owned:
                del grp.pending[entry_id]
            grp.consumers.pop(consumer, None)
            return len(owned)

    async def set_group_id(self, stream: str, group: str, last_id: str) -> bool:
        lock = await self._lock_for(stream)
        async with lock:
            log, grp = self._get_group(stream, group)
            grp.last_delivered = log.last_id if last_id == "$" else _parse(last_id)
            return True

    async def read_group_new(
        self, stream: str, group: str, consumer: str, count: int
    ) -> List[Message]:
        lock = await self._lock_for(stream)
        async with lock:
            log, grp = self._get_group(stream, group)
            now = _now_ms()
            grp.consumers[consumer] = now
            messages = []
            for entry_id in log.sorted_ids():
                if entry_id <= grp.last_delivered:
                    continue
                if len(messages) >= count:
                    break
                grp.pending[entry_id] = _PendingRecord(consumer, now)
                grp.last_delivered = entry_id
                messages.append(
                    Message(id=format_stream_id(*entry_id), fields=log.entries[entry_id])
                )
            return messages

    async def read_group_from(
        self, stream: str, group: str, consumer: str, after_id: str, count: int
    ) -> List[Message]:
        after = _parse(after_id)
        lock = await self._lock_for(stream)
        async with lock:
            log, grp = self._get_group(stream, group)
            grp.consumers[consumer] = _now_ms()
            owned = sorted(
                entry_id
                for entry_id, rec in grp.pending.items()
                if rec.consumer == consumer and entry_id > after
            )
            return [
                Message(
                    id=format_stream_id(*entry_id),
                    fields=log.entries.get(entry_id, {}),
                )
                for entry_id in owned[:count]
            ]

    async def claim(
        self,
        stream: str,
        group: str,
        consumer: str,
        min_idle_ms: int,
        ids: List[str],
    ) -> List[str]:
        lock = await self._lock_for(stream)
        async with lock:
            log, grp = self._get_group(stream, group)
            now = _now_ms()
            grp.consumers.setdefault(consumer, now)
            claimed = []
            for raw_id in ids:
                entry_id = _parse(raw_id)
                record = grp.pending.get(entry_id)
                if record is None:
                    continue
                if entry_id not in log.entries:
                    # Entry was deleted from the log; drop the dangling reference
                    del grp.pending[entry_id]
                    continue
                if now - record.delivered_at < min_idle_ms:
                    continue
                record.consumer = consumer
                record.delivered_at = now
                claimed.append(format_stream_id(*entry_id))
            return claimed

    async def ack(self, stream: str, group: str, ids: List[str]) -> int:
        lock = await self._lock_for(stream)
        async with lock:
            _, grp = self._get_group(stream, group)
            acked = 0
            for raw_id in ids:
                if grp.pending.pop(_parse(raw_id), None) is not None:
                    acked += 1
            return acked

    async def pending_range(
        self,
        stream: str,
        group: str,
        start: str = "-",
        end: str = "+",
        count: int = 10,
        consumer: Optional[str] = None,
    ) -> List[PendingEntry]:
        low, high = _lower_bound(start), _upper_bound(end)
        lock = await self._lock_for(stream)
        async with lock:
            _, grp = self._get_group(stream, group)
            now = _now_ms()
            entries = []
            for entry_id in sorted(grp.pending):
                if len(entries) >= count:
                    break
                record = grp.pending[entry_id]
                if consumer is not None and record.consumer != consumer:
                    continue
                if not _in_range(entry_id, low, high):
                    continue
                entries.append(
                    PendingEntry(
                        message_id=format_stream_id(*entry_id),
                        consumer=record.consumer,
                        idle_ms=max(0, now - record.delivered_at),
                        delivery_count=record.delivery_count,
                    )
                )
            return entries

    async def range(
        self, stream: str, start: str = "-", end: str = "+", count: Optional[int] = None
    ) -> List[Message]:
        low, high = _lower_bound(start), _upper_bound(end)
        lock = await self._lock_for(stream)
        async with lock:
            log = self._streams.get(stream)
            if log is None:
                return []
            ids = [i for i in log.sorted_ids() if _in_range(i, low, high)]
            if count is not None:
                ids = ids[:count]
            return [
                Message(id=format_stream_id(*i), fields=log.entries[i]) for i in ids
            ]

    async def rev_range(
        self, stream: str, end: str = "+", start: str = "-", count: Optional[int] = None
    ) -> List[Message]:
        low, high = _lower_bound(start), _upper_bound(end)
        lock = await self._lock_for(stream)
        async with lock:
            log = self._streams.get(stream)
            if log is None:
                return []
            ids = [i for i in reversed(log.sorted_ids()) if _in_range(i, low, high)]
            if count is not None:
                ids = ids[:count]
            return [
                Message(id=format_stream_id(*i), fields=log.entries[i]) for i in ids
            ]

    async def delete(self, stream: str, ids: List[str]) -> int:
        lock = await self._lock_for(stream)
        async with lock:
            log = self._streams.get(stream)
            if log is None:
                return 0
            deleted = 0
            for raw_id in ids:
                if log.entries.pop(_parse(raw_id), None) is not None:
                    deleted += 1
            return deleted

    async def get_blob(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    async def set_blob(self, key: str, value: str) -> bool:
        self._blobs[key] = value
        return True
