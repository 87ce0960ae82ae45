"""Exception taxonomy for fleet operations.

Configuration-phase errors (credentials, local source file) abort the
whole operation before any host task starts. Per-host errors are raised
inside a host task and converted into that host's outcome by the
scheduler; they never reach the caller directly.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fleetops.models import OperationResult


class FleetOpsError(Exception):
    """Base class for all fleetops errors."""


class AuthConfigError(FleetOpsError):
    """SSH client configuration could not be built."""


class NoAuthMethodAvailable(AuthConfigError):
    """The credential chain produced zero usable authentication methods."""

    def __init__(self) -> None:
        super().__init__(
            "No usable SSH authentication method found "
            "(provide a password or identity file, or make sure ssh-agent "
            "or a default key in ~/.ssh is available)"
        )


class SourceFileError(FleetOpsError):
    """Local source file is missing, unreadable or not a regular file."""


class ConnectionError(FleetOpsError):
    """Failed to dial a host or open a session on it."""

    def __init__(self, host: str, original_error: Exception):
        """Initialize connection error.

        Args:
            host: Host the connection was attempted to
            original_error: Original exception that caused the failure
        """
        self.host = host
        self.original_error = original_error
        super().__init__(f"Cannot connect to {host}: {original_error}")


class ProtocolError(FleetOpsError):
    """Transfer handshake failed.

    ``code`` is the non-zero acknowledgment byte sent by the remote side,
    or None when the channel itself failed (short read, write error).
    """

    def __init__(self, message: str, code: int | None = None):
        self.code = code
        self.message = message
        if code == 1:
            text = f"scp error: {message}"
        elif code is not None:
            text = f"scp fatal error: {message}"
        else:
            text = message
        super().__init__(text)


class CommandError(FleetOpsError):
    """Remote command exited with a non-zero status."""

    def __init__(self, command: str, exit_code: int, stderr: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"'{command}' exited with code {exit_code}{detail}")


class OperationCancelled(FleetOpsError):
    """Sequential run stopped early; ``partial`` holds the finished hosts."""

    def __init__(self, partial: "OperationResult"):
        self.partial = partial
        super().__init__(
            f"Operation cancelled after {len(partial.host_results)} host(s)"
        )
