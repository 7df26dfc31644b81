import re
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Path
from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, StrictStr
from pydantic_core import PydanticCustomError

from pads.domain.entities import Snapshot, SnapshotCandidate, truncate_to_millis
from shared.config import settings

PAD_ID_PATTERN = r"^[A-Za-z0-9._~-]+$"
ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")

PadId = Annotated[
    str,
    Path(min_length=1, max_length=settings.PAD_ID_MAX_LENGTH, pattern=PAD_ID_PATTERN),
]


def _invalid_timestamp() -> PydanticCustomError:
    return PydanticCustomError("datetime_parsing", "lastModified must be an ISO 8601 timestamp")


def _parse_iso_timestamp(value: Any) -> datetime:
    if not isinstance(value, str):
        raise ValueError("lastModified must be a string")
    # Epoch-style digit strings are not timestamps
    if not ISO_DATE_PREFIX.match(value):
        raise _invalid_timestamp()
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise _invalid_timestamp() from None


def _as_utc_millis(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return truncate_to_millis(value)


Timestamp = Annotated[datetime, BeforeValidator(_parse_iso_timestamp), AfterValidator(_as_utc_millis)]


def format_timestamp(value: datetime) -> str:
    """Render as `2024-01-01T00:00:00.000Z`."""
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WriteSnapshotRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: StrictStr
    last_modified: Timestamp = Field(alias="lastModified")
    device_id: StrictStr = Field(alias="deviceID")

    def to_candidate(self) -> SnapshotCandidate:
        return SnapshotCandidate(
            text=self.text,
            last_modified=self.last_modified,
            device_id=self.device_id,
        )


class SnapshotResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    last_modified: str = Field(alias="lastModified")
    device_id: str = Field(alias="deviceID")
    version: int

    @classmethod
    def from_entity(cls, snapshot: Snapshot) -> "SnapshotResponse":
        return cls(
            text=snapshot.text,
            last_modified=format_timestamp(snapshot.last_modified),
            device_id=snapshot.device_id,
            version=snapshot.version,
        )
