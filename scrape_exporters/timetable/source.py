"""
File source adapter for the timetable exporter.
"""
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

from scrape_exporters.common.exceptions import SourceUnavailableError
from scrape_exporters.common.sample import RawSample


class ScheduleFile:
    """
    Reads the schedule document from disk.

    ``stat()`` is the cheap change check; ``read()`` returns the full
    contents. Both raise SourceUnavailableError when the file is missing
    or unreadable.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def stat(self) -> int:
        """
        Return the file's modification time in nanoseconds.

        Raises:
            SourceUnavailableError: File is absent or cannot be stat'ed
        """
        try:
            return os.stat(self.path).st_mtime_ns
        except OSError as e:
            raise SourceUnavailableError(
                f"stat events file: {e}", path=str(self.path)
            ) from e

    def read(self) -> RawSample:
        """
        Read the whole file.

        Raises:
            SourceUnavailableError: File is absent, a directory, or unreadable
        """
        try:
            payload = self.path.read_bytes()
        except OSError as e:
            raise SourceUnavailableError(
                f"read events file: {e}", path=str(self.path)
            ) from e
        return RawSample(
            payload=payload,
            source=str(self.path),
            captured_at=datetime.now(timezone.utc),
        )

    def __repr__(self) -> str:
        return f"ScheduleFile({str(self.path)!r})"
