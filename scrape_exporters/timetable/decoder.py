"""
Decoder for the timetable schedule document.

Document layout (YAML):

    events:
      - id: keynote
        name: Opening keynote
        location: Hall A
        start: "2025-09-20T10:00:00+09:00"
        end: "2025-09-20T11:00:00+09:00"

Acceptance is all-or-nothing: one bad item rejects the whole batch so a
stale schedule keeps serving instead of a half-applied one.
"""
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from scrape_exporters.common.exceptions import (
    DecodeIncompleteError,
    DecodeMalformedError,
)
from scrape_exporters.common.sample import RawSample

_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:(Z)|([+-])(\d{2}):(\d{2}))$"
)


def parse_rfc3339(value: str) -> datetime:
    """
    Parse an RFC 3339 timestamp with a mandatory offset, returned in UTC.

    Raises:
        ValueError: Value does not match the format or is out of range
    """
    match = _RFC3339.fullmatch(value)
    if not match:
        raise ValueError(f"not an RFC3339 timestamp: {value!r}")
    year, month, day, hour, minute, second, fraction, zulu, sign, off_h, off_m = match.groups()
    micro = int((fraction or "0")[:6].ljust(6, "0"))
    if zulu:
        tz = timezone.utc
    else:
        if int(off_h) > 23 or int(off_m) > 59:
            raise ValueError(f"invalid offset in {value!r}")
        offset = timedelta(hours=int(off_h), minutes=int(off_m))
        tz = timezone(-offset if sign == "-" else offset)
    parsed = datetime(
        int(year), int(month), int(day),
        int(hour), int(minute), int(second), micro, tzinfo=tz,
    )
    return parsed.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------

class EventEntry(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str = ""
    name: str = ""
    location: str = ""
    start: str = ""
    end: str = ""

    @field_validator("id", "name", "location", "start", "end", mode="before")
    @classmethod
    def _scalar_to_str(cls, value: Any) -> Any:
        if value is None:
            return ""
        # YAML turns unquoted timestamps into datetime/date objects
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return value


class EventDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    events: List[EventEntry] = []


# ---------------------------------------------------------------------------
# Published record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScheduleItem:
    """One time-bounded event with its parsed (UTC) boundaries."""
    id: str
    name: str
    location: str
    start: datetime
    end: datetime

    @property
    def labels(self) -> List[str]:
        return [self.id, self.name, self.location]

    @property
    def start_seconds(self) -> float:
        return float(math.floor(self.start.timestamp()))

    @property
    def end_seconds(self) -> float:
        return float(math.floor(self.end.timestamp()))

    @property
    def duration_seconds(self) -> float:
        """End minus start, clamped to zero when end precedes start."""
        return max(0.0, (self.end - self.start).total_seconds())

    def is_active(self, now: datetime) -> bool:
        """Closed interval: both boundary instants count as active."""
        return now == self.start or now == self.end or self.start < now < self.end


@dataclass(frozen=True)
class Schedule:
    """A fully validated schedule batch."""
    items: Tuple[ScheduleItem, ...] = ()
    source: str = ""
    loaded_at: Optional[datetime] = field(default=None, compare=False)

    def __len__(self) -> int:
        return len(self.items)


def _to_item(entry: EventEntry) -> ScheduleItem:
    if not entry.start or not entry.end:
        raise DecodeIncompleteError(
            f"start and end must be provided in RFC3339 format for each event (id={entry.id})"
        )
    try:
        start = parse_rfc3339(entry.start)
    except ValueError as e:
        raise DecodeMalformedError(f"parse start time for id={entry.id}: {e}") from e
    try:
        end = parse_rfc3339(entry.end)
    except ValueError as e:
        raise DecodeMalformedError(f"parse end time for id={entry.id}: {e}") from e
    return ScheduleItem(
        id=entry.id, name=entry.name, location=entry.location, start=start, end=end,
    )


def decode_schedule(sample: RawSample) -> Schedule:
    """
    Decode a schedule document.

    Args:
        sample: Raw file contents

    Returns:
        Schedule with every item validated

    Raises:
        DecodeMalformedError: Not YAML, wrong structure, or unparseable timestamp
        DecodeIncompleteError: Missing start/end, or duplicate label set
    """
    try:
        raw = yaml.safe_load(sample.payload)
    except yaml.YAMLError as e:
        raise DecodeMalformedError(f"invalid YAML in {sample.source}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise DecodeMalformedError(
            f"{sample.source}: top level must be a mapping with an 'events' list"
        )
    if raw.get("events") is None:
        raw = {**raw, "events": []}

    try:
        document = EventDocument.model_validate(raw)
    except ValidationError as e:
        raise DecodeMalformedError(f"invalid schedule structure in {sample.source}: {e}") from e

    items = tuple(_to_item(entry) for entry in document.events)

    seen = set()
    for item in items:
        key = tuple(item.labels)
        if key in seen:
            raise DecodeIncompleteError(
                f"duplicate event labels id={item.id} name={item.name} location={item.location}"
            )
        seen.add(key)

    return Schedule(items=items, source=sample.source, loaded_at=sample.captured_at)
