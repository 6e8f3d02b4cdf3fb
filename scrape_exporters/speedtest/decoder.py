"""
Decoder for speedtest CLI JSON output.

Unit normalization happens here and only here: the CLI reports latency in
milliseconds and bandwidth in bytes per second; the published record
carries seconds and bits per second.
"""
from dataclasses import dataclass
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from scrape_exporters.common.logging_config import get_logger
from scrape_exporters.common.exceptions import (
    DecodeIncompleteError,
    DecodeMalformedError,
)
from scrape_exporters.common.sample import RawSample

logger = get_logger(__name__)

MS_PER_SECOND = 1000.0
BITS_PER_BYTE = 8.0


# ---------------------------------------------------------------------------
# Wire models (CLI units)
# ---------------------------------------------------------------------------

class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False, populate_by_name=True)


class TransferLatency(_WireModel):
    iqm: float = 0.0
    low: float = 0.0
    high: float = 0.0
    jitter: float = 0.0


class TransferResult(_WireModel):
    bandwidth: float = 0.0
    bytes: float = 0.0
    elapsed: float = 0.0
    latency: TransferLatency = Field(default_factory=TransferLatency)


class PingResult(_WireModel):
    jitter: float = 0.0
    latency: float = 0.0
    low: float = 0.0
    high: float = 0.0


class SpeedtestResult(_WireModel):
    """Subset of the `speedtest -f json` result document we publish."""
    type: str = ""
    timestamp: str = ""
    ping: PingResult = Field(default_factory=PingResult)
    download: TransferResult = Field(default_factory=TransferResult)
    upload: TransferResult = Field(default_factory=TransferResult)
    packet_loss: Optional[float] = Field(default=None, alias="packetLoss")


# ---------------------------------------------------------------------------
# Published record (exposition units)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LatencyStats:
    """Transfer latency statistics in seconds."""
    iqm: float
    low: float
    high: float
    jitter: float

    def as_labels(self) -> Dict[str, float]:
        return {"iqm": self.iqm, "low": self.low, "high": self.high, "jitter": self.jitter}


@dataclass(frozen=True)
class PingStats:
    """Idle ping statistics in seconds."""
    latency: float
    low: float
    high: float
    jitter: float

    def as_labels(self) -> Dict[str, float]:
        return {"latency": self.latency, "low": self.low, "high": self.high}


@dataclass(frozen=True)
class SpeedtestMeasurement:
    """One validated speedtest run, already in exposition units."""
    download_bandwidth_bps: float
    upload_bandwidth_bps: float
    download_latency: LatencyStats
    upload_latency: LatencyStats
    ping: PingStats
    packet_loss: float
    timestamp: str = ""


def _latency(wire: TransferLatency) -> LatencyStats:
    return LatencyStats(
        iqm=wire.iqm / MS_PER_SECOND,
        low=wire.low / MS_PER_SECOND,
        high=wire.high / MS_PER_SECOND,
        jitter=wire.jitter / MS_PER_SECOND,
    )


def to_measurement(result: SpeedtestResult) -> SpeedtestMeasurement:
    """Convert a wire result to published units."""
    return SpeedtestMeasurement(
        download_bandwidth_bps=result.download.bandwidth * BITS_PER_BYTE,
        upload_bandwidth_bps=result.upload.bandwidth * BITS_PER_BYTE,
        download_latency=_latency(result.download.latency),
        upload_latency=_latency(result.upload.latency),
        ping=PingStats(
            latency=result.ping.latency / MS_PER_SECOND,
            low=result.ping.low / MS_PER_SECOND,
            high=result.ping.high / MS_PER_SECOND,
            jitter=result.ping.jitter / MS_PER_SECOND,
        ),
        packet_loss=result.packet_loss if result.packet_loss is not None else 0.0,
        timestamp=result.timestamp,
    )


def decode_speedtest(sample: RawSample) -> SpeedtestMeasurement:
    """
    Decode CLI output into a measurement.

    Args:
        sample: Raw combined output of the speedtest command

    Returns:
        Validated SpeedtestMeasurement

    Raises:
        DecodeMalformedError: Output is not the expected JSON document
        DecodeIncompleteError: Both bandwidth figures are zero, or a value
            is not finite
    """
    try:
        result = SpeedtestResult.model_validate_json(sample.payload)
    except ValidationError as e:
        if any(err.get("type") == "finite_number" for err in e.errors()):
            raise DecodeIncompleteError(f"speedtest output has non-finite values: {e}") from e
        raise DecodeMalformedError(f"failed to decode speedtest output: {e}") from e

    # The CLI emits an all-zero document on some failure modes
    if result.download.bandwidth == 0 and result.upload.bandwidth == 0:
        raise DecodeIncompleteError("speedtest output missing bandwidth data")

    logger.debug(f"speedtest result: {result.model_dump()}")
    return to_measurement(result)
