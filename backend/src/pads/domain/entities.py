from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

SERVER_DEVICE_ID = "server"

Clock = Callable[[], datetime]


def truncate_to_millis(value: datetime) -> datetime:
    """Normalize an aware datetime to UTC at millisecond resolution."""
    value = value.astimezone(UTC)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def utc_now() -> datetime:
    return truncate_to_millis(datetime.now(UTC))


@dataclass(frozen=True)
class SnapshotCandidate:
    text: str
    last_modified: datetime
    device_id: str


@dataclass(frozen=True)
class Snapshot:
    text: str
    last_modified: datetime
    device_id: str
    version: int
