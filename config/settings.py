"""
Configuration management using Pydantic Settings.
Loads configuration from environment variables with validation.
"""
import re
import shlex
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from scrape_exporters.common.logging_config import get_logger

# Load .env file into os.environ so all nested BaseSettings pick up values
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)

logger = get_logger(__name__)

DEFAULT_SPEEDTEST_TIMEOUT_SECONDS = 90.0

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9, "us": 1e-6, "µs": 1e-6, "ms": 1e-3, "s": 1.0, "m": 60.0, "h": 3600.0,
}


def parse_duration(value) -> float:
    """
    Parse a duration into seconds.

    Accepts bare numbers (seconds) and Go-style strings such as
    "500ms", "90s", "2m" or "1h30m".

    Raises:
        ValueError: Value is not a positive duration
    """
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        try:
            seconds = float(text)
        except ValueError:
            pos = 0
            seconds = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != pos:
                    break
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                pos = match.end()
            if not text or pos != len(text):
                raise ValueError(f"invalid duration {value!r}")
    if seconds <= 0:
        raise ValueError(f"duration must be positive, got {value!r}")
    return seconds


class SpeedtestSettings(BaseSettings):
    """Speedtest CLI invocation"""
    model_config = SettingsConfigDict(env_prefix="SPEEDTEST_")

    command: str = Field(default="speedtest")
    args: str = Field(default="")
    timeout: float = Field(default=DEFAULT_SPEEDTEST_TIMEOUT_SECONDS)
    metric_namespace: str = Field(default="")

    @field_validator("command", mode="before")
    @classmethod
    def _default_command(cls, value):
        value = (value or "").strip()
        return value or "speedtest"

    @field_validator("timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, value):
        try:
            return parse_duration(value)
        except ValueError as e:
            logger.warning(f"failed to parse SPEEDTEST_TIMEOUT={value!r}: {e}")
            return DEFAULT_SPEEDTEST_TIMEOUT_SECONDS

    @property
    def extra_args(self) -> List[str]:
        """Whitespace-separated SPEEDTEST_ARGS (shell quoting honored)."""
        return shlex.split(self.args)


class ListenSettings(BaseSettings):
    """Speedtest exporter HTTP listener"""
    model_config = SettingsConfigDict(env_prefix="")

    listen_address: str = Field(default=":9801")

    @field_validator("listen_address", mode="before")
    @classmethod
    def _default_listen(cls, value):
        value = (value or "").strip()
        return value or ":9801"


class TimetableSettings(BaseSettings):
    """Timetable exporter: schedule file, polling and listener"""
    model_config = SettingsConfigDict(env_prefix="TIMETABLE_")

    listen_address: str = Field(default=":9100")
    events_path: str = Field(default="events.yaml")
    reload_interval: float = Field(default=10.0, gt=0)
    metric_namespace: str = Field(default="")


class LoggingSettings(BaseSettings):
    """Logging configuration"""
    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="json")

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {value!r}")
        return value


class Settings(BaseSettings):
    """Main settings aggregating all configuration sections"""
    model_config = SettingsConfigDict(extra="ignore")

    speedtest: SpeedtestSettings = Field(default_factory=SpeedtestSettings)
    listen: ListenSettings = Field(default_factory=ListenSettings)
    timetable: TimetableSettings = Field(default_factory=TimetableSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings() -> Settings:
    """Build a fresh Settings from the current environment."""
    return Settings()
