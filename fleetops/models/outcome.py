"""Per-host outcome data models."""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Classification of a non-successful host outcome."""

    CONNECTION = "connection"
    PROTOCOL = "protocol"
    LOCAL_IO = "local_io"
    COMMAND = "command"
    TIMEOUT = "timeout"
    CHECKSUM_MISMATCH = "checksum_mismatch"


@dataclass(frozen=True)
class ChecksumResult:
    """Local vs remote digest comparison for one host."""

    local_digest: str
    remote_digest: str = ""
    verified: bool = False
    method: str = ""
    error: str | None = None


@dataclass(frozen=True)
class Success:
    """Host task ran to completion.

    For commands ``exit_code`` carries the remote exit status, which may be
    non-zero. For transfers ``exit_code`` is None.
    """

    host: str
    duration: float
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    bytes_transferred: int = 0
    checksum: ChecksumResult | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code in (None, 0)

    @property
    def error_kind(self) -> ErrorKind | None:
        if not self.ok:
            return ErrorKind.COMMAND
        if self.checksum is not None and not self.checksum.verified:
            return ErrorKind.CHECKSUM_MISMATCH
        return None


@dataclass(frozen=True)
class Failure:
    """Host task aborted by a transport, protocol or local error."""

    host: str
    error_kind: ErrorKind
    message: str
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True)
class Timeout:
    """Host task exceeded its deadline."""

    host: str
    elapsed: float

    @property
    def ok(self) -> bool:
        return False

    @property
    def error_kind(self) -> ErrorKind:
        return ErrorKind.TIMEOUT


NodeOutcome = Success | Failure | Timeout
