from enum import Enum
from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Tuple


class DrainSignal(str, Enum):
    MORE_DATA = "more_data"
    EXHAUSTED = "exhausted"
    ERROR = "error"


class Message(BaseModel):
    id: str
    fields: Dict[str, str] = Field(default_factory=dict)


class PendingEntry(BaseModel):
    message_id: str
    consumer: str
    idle_ms: int
    delivery_count: int


class PendingPage(BaseModel):
    entries: List[PendingEntry] = Field(default_factory=list)
    next_start: Optional[str] = None
    signal: DrainSignal = DrainSignal.EXHAUSTED


class GroupResult(BaseModel):
    all_msg_num: int = 0
    claim_msg_num: int = 0
    batches: int = 0
    signal: DrainSignal = DrainSignal.EXHAUSTED
    error: Optional[str] = None


class AckResult(BaseModel):
    success_count: int = 0
    pages: int = 0
    signal: DrainSignal = DrainSignal.EXHAUSTED
    error: Optional[str] = None


class InitResult(BaseModel):
    stream: str
    group: str
    group_created: bool = False
    ok: bool = True
    error: Optional[str] = None


def parse_stream_id(value: str) -> Tuple[int, int]:
    """Parse a "<ms>-<seq>" stream ID (or bare "<ms>") into a sortable tuple."""
    ms, _, seq = str(value).partition("-")
    try:
        return int(ms), int(seq) if seq else 0
    except ValueError:
        raise ValueError(f"Invalid stream ID: {value!r}")


def format_stream_id(ms: int, seq: int) -> str:
    return f"{ms}-{seq}"
