"""Protocol interfaces for the SSH transport seam.

The scheduler only needs a connector that turns a HostTarget into an
open connection, and a connection that can start remote processes.
asyncssh satisfies both; tests substitute in-memory fakes.

Usage Example:

    async def failing_connector(target, config):
        raise ConnectionError(target.name, OSError("unreachable"))

    scheduler = FanOutScheduler(config, connector=failing_connector)
"""

from typing import Any, Protocol, runtime_checkable

from fleetops.models import ClientConfig, HostTarget


@runtime_checkable
class SSHConnection(Protocol):
    """Subset of ``asyncssh.SSHClientConnection`` used by the engine."""

    async def create_process(self, command: str, **kwargs: Any) -> Any:
        """Start ``command`` in a new exec session.

        Returns:
            Process exposing ``stdin``, ``stdout``, ``stderr``, ``wait()``,
            ``kill()`` and ``close()``
        """
        ...

    async def run(self, command: str, **kwargs: Any) -> Any:
        """Run ``command`` to completion in a new exec session.

        Returns:
            Completed process with ``exit_status``, ``returncode``,
            ``stdout`` and ``stderr``
        """
        ...

    def close(self) -> None:
        """Start closing the connection."""
        ...

    async def wait_closed(self) -> None:
        """Wait until the connection is fully closed."""
        ...


@runtime_checkable
class Connector(Protocol):
    """Callable that opens one connection per host task."""

    async def __call__(self, target: HostTarget, config: ClientConfig) -> SSHConnection:
        """Open a connection to ``target``.

        Raises:
            ConnectionError: If the host cannot be reached or authentication fails
        """
        ...
