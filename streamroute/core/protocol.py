import msgpack
import struct
import asyncio
from enum import IntEnum
from typing import Any, Tuple


class Command(IntEnum):
    PUSH = 1
    ROUTE = 2
    READ_PENDING = 3
    READ_CONSUMER = 4
    ACK = 5
    SET_ROUTING = 6


PROTOCOL_VERSION = 1
MAX_FRAME_SIZE = 10 * 1024 * 1024  # 10MB limit


def pack_message(command: int, body: Any) -> bytes:
    """Pack a frame as [length(4)][version(1)][command(1)][msgpack_body]."""
    packed_body = msgpack.packb(body)
    if not isinstance(packed_body, bytes):
        raise TypeError("msgpack.packb did not return bytes")

    header = struct.pack("!BB", PROTOCOL_VERSION, command)
    full_body = header + packed_body
    return struct.pack("!I", len(full_body)) + full_body


async def read_message(reader: asyncio.StreamReader) -> Tuple[int, int, Any]:
    """Read one frame from an asyncio reader."""
    length_bytes = await reader.readexactly(4)
    length = struct.unpack("!I", length_bytes)[0]

    if length > MAX_FRAME_SIZE:
        raise ValueError(f"Frame size {length} exceeds limit {MAX_FRAME_SIZE}")
    if length < 2:
        raise ValueError(f"Frame size {length} is too short for a header")

    data = await reader.readexactly(length)
    version, command = struct.unpack("!BB", data[:2])
    body = msgpack.unpackb(data[2:])
    return version, command, body
