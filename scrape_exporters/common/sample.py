"""
Raw payload handed from a source adapter to a decoder.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class RawSample:
    """
    Opaque bytes plus provenance.

    Attributes:
        payload: Raw bytes exactly as produced by the source
        source: Identifier of the source (command line or file path)
        captured_at: When the payload was captured (UTC)
    """
    payload: bytes
    source: str
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
