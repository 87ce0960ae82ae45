"""Operation task models.

A task is either a TransferTask or a CommandTask; the scheduler
dispatches on the concrete type.
"""

import posixpath
from dataclasses import dataclass
from pathlib import Path

from fleetops.errors import SourceFileError

DEFAULT_FILE_MODE = 0o644
DEFAULT_COMMAND_TIMEOUT = 30.0
ELEVATION_PREFIX = "sudo"


@dataclass(frozen=True)
class TransferTask:
    """Push one local file into a directory on every host."""

    source_path: str
    dest_dir: str
    file_size: int
    mode: int = DEFAULT_FILE_MODE
    verify: bool = False
    timeout: float | None = None

    @classmethod
    def from_source(
        cls,
        source_path: str,
        dest_dir: str,
        verify: bool = False,
        mode: int = DEFAULT_FILE_MODE,
        timeout: float | None = None,
    ) -> "TransferTask":
        """Validate the source file and measure its size once.

        Raises:
            SourceFileError: If the source is missing or is a directory
        """
        path = Path(source_path)
        try:
            stat = path.stat()
        except OSError as e:
            raise SourceFileError(f"Source file not found: {source_path} ({e})") from e
        if path.is_dir():
            raise SourceFileError(
                f"Source path is a directory, only single files can be copied: "
                f"{source_path}"
            )
        return cls(
            source_path=str(path),
            dest_dir=dest_dir,
            file_size=stat.st_size,
            mode=mode,
            verify=verify,
            timeout=timeout,
        )

    @property
    def file_name(self) -> str:
        return Path(self.source_path).name

    @property
    def remote_path(self) -> str:
        """Full destination path on the remote host."""
        return posixpath.join(self.dest_dir, self.file_name)


@dataclass(frozen=True)
class CommandTask:
    """Run one shell command on every host."""

    command: str
    elevate: bool = False
    timeout: float = DEFAULT_COMMAND_TIMEOUT

    @property
    def command_line(self) -> str:
        """Command text as sent to the remote side."""
        if self.elevate:
            return f"{ELEVATION_PREFIX} {self.command}"
        return self.command


Task = TransferTask | CommandTask
