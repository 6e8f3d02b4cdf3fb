"""
Process source adapter for the speedtest exporter.

Runs the Ookla speedtest CLI with a fixed argument template plus
configurable extra arguments, under a wall-clock deadline. The child runs
in its own session; on deadline expiry the whole process group is killed
before the child is reaped.
"""
import os
import shlex
import signal
import subprocess
from typing import List, Optional, Sequence

from scrape_exporters.common.logging_config import get_logger
from scrape_exporters.common.exceptions import (
    SourceTimeoutError,
    SourceUnavailableError,
)
from scrape_exporters.common.sample import RawSample

logger = get_logger(__name__)

DEFAULT_COMMAND = "speedtest"
BASE_ARGS = ("-f", "json-pretty", "--accept-license")
DEFAULT_TIMEOUT_SECONDS = 90.0


class CommandRunner:
    """
    Executes the measurement command and captures its combined output.

    Usage:
        runner = CommandRunner("speedtest", extra_args=["--server-id", "1234"])
        sample = runner.run()
    """

    def __init__(
        self,
        command: str = DEFAULT_COMMAND,
        extra_args: Optional[Sequence[str]] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        base_args: Sequence[str] = BASE_ARGS
    ):
        """
        Initialize command runner.

        Args:
            command: Executable name or path
            extra_args: Arguments appended after the fixed template
            timeout: Wall-clock budget in seconds for one invocation
            base_args: Fixed argument template (JSON output, license accepted)
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.command = command
        self.args: List[str] = list(base_args) + list(extra_args or [])
        self.timeout = timeout

    @property
    def command_line(self) -> str:
        return " ".join(shlex.quote(part) for part in [self.command, *self.args])

    def run(self) -> RawSample:
        """
        Run the command once.

        Returns:
            RawSample with the combined stdout/stderr bytes

        Raises:
            SourceUnavailableError: Command could not start or exited non-zero
            SourceTimeoutError: Command exceeded the timeout and was killed
        """
        logger.info(f"running command: {self.command_line}")

        try:
            proc = subprocess.Popen(
                [self.command, *self.args],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise SourceUnavailableError(
                f"command failed to start: {e}",
                command=self.command,
                args=self.args,
            ) from e

        with proc:
            try:
                output, _ = proc.communicate(timeout=self.timeout)
            except subprocess.TimeoutExpired:
                _kill_group(proc)
                output, _ = proc.communicate()
                raise SourceTimeoutError(
                    f"command timed out after {self.timeout:g}s",
                    command=self.command,
                    args=self.args,
                    output=_decode(output),
                )
            finally:
                if proc.poll() is None:
                    _kill_group(proc)

        if proc.returncode != 0:
            raise SourceUnavailableError(
                f"command failed: exit status {proc.returncode}",
                command=self.command,
                args=self.args,
                output=_decode(output),
            )

        return RawSample(payload=output or b"", source=self.command_line)


def _kill_group(proc: subprocess.Popen) -> None:
    """SIGKILL every process in the child's session, grandchildren included."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        # Group already exited
        pass


def _decode(output: Optional[bytes]) -> str:
    if not output:
        return ""
    return output.decode("utf-8", errors="replace")
