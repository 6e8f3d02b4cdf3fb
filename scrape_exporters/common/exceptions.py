"""
Custom exceptions for the scrape exporters.
Hierarchical exception structure mirroring the refresh pipeline:
source failures, decode failures and configuration problems.
"""
from typing import List, Optional


class ExporterError(Exception):
    """Base exception for the scrape exporters"""
    kind = "exporter"


class SourceError(ExporterError):
    """Error acquiring a raw sample from the external data source"""
    kind = "source"

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        args: Optional[List[str]] = None,
        output: str = "",
        path: Optional[str] = None
    ):
        """
        Initialize source error with diagnostic context.

        Args:
            message: Human readable description
            command: External command that was executed (process sources)
            args: Arguments passed to the command
            output: Captured combined stdout/stderr, if any
            path: File path that was read (file sources)
        """
        super().__init__(message)
        self.command = command
        self.args_list = list(args or [])
        self.output = output
        self.path = path

    def __str__(self) -> str:
        message = super().__str__()
        if self.output:
            return f"{message}: {self.output.strip()}"
        return message


class SourceUnavailableError(SourceError):
    """Process failed to start or exited non-zero, or file is missing/unreadable"""
    kind = "source_unavailable"


class SourceTimeoutError(SourceError):
    """External process exceeded its execution budget and was killed"""
    kind = "source_timeout"


class DecodeError(ExporterError):
    """Error turning a raw sample into a validated record"""
    kind = "decode"


class DecodeMalformedError(DecodeError):
    """Payload does not parse as the expected structure"""
    kind = "decode_malformed"


class DecodeIncompleteError(DecodeError):
    """Payload parses but required fields are zero, missing or invalid"""
    kind = "decode_incomplete"


class ConfigurationError(ExporterError):
    """Error in configuration loading or validation"""
    kind = "configuration"
