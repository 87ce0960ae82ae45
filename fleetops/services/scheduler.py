"""Fan-out scheduling and result aggregation.

Each requested host gets one independent unit of work: parse address,
connect, run the transfer or command, optionally verify. Every unit
converts its own errors into a NodeOutcome, so exactly one outcome is
recorded per host and no host can fail another.

Concurrency:
- Parallel: one asyncio task per host, unbounded unless max_concurrency
  is set. All units share one deadline derived from the task timeout.
- Sequential: one host at a time with a fresh deadline each; an optional
  cancel event stops new hosts from being launched.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import asyncssh

from fleetops.errors import (
    ConnectionError,
    OperationCancelled,
    ProtocolError,
    SourceFileError,
)
from fleetops.models import (
    CommandTask,
    ErrorKind,
    EventType,
    Failure,
    NodeEvent,
    NodeOutcome,
    OperationOptions,
    OperationResult,
    Success,
    Timeout,
    TransferTask,
)
from fleetops.services.checksum import verify_remote_file
from fleetops.services.connection import close_connection, open_connection
from fleetops.services.executors import execute_command
from fleetops.services.transfer import push_file
from fleetops.utils.parser import parse_host_target

if TYPE_CHECKING:
    from fleetops.models import ClientConfig, HostTarget, Task
    from fleetops.protocols import Connector

logger = logging.getLogger(__name__)


def _error_kind(error: Exception) -> ErrorKind:
    if isinstance(error, ProtocolError):
        return ErrorKind.PROTOCOL
    if isinstance(error, SourceFileError):
        return ErrorKind.LOCAL_IO
    return ErrorKind.CONNECTION


def _operation_label(task: "Task") -> str:
    if isinstance(task, CommandTask):
        return task.command_line
    return f"{task.source_path} -> {task.dest_dir}"


class FanOutScheduler:
    """Runs one task across many hosts with a shared client config."""

    def __init__(
        self,
        config: "ClientConfig",
        connector: "Connector | None" = None,
        max_concurrency: int = 0,
    ) -> None:
        """Initialize scheduler.

        Args:
            config: Read-only client configuration shared by all hosts
            connector: Opens a connection per host (defaults to asyncssh)
            max_concurrency: Maximum simultaneous hosts, 0 for unbounded
        """
        if max_concurrency < 0:
            raise ValueError(f"max_concurrency must be >= 0, got {max_concurrency}")
        self._config = config
        self._connector = connector or open_connection
        self._max_concurrency = max_concurrency

    def _emit(self, options: OperationOptions, event: NodeEvent) -> None:
        """Deliver an event; a failing callback never aborts the unit."""
        if options.on_event is None:
            return
        try:
            options.on_event(event)
        except Exception:
            logger.exception("Event callback failed for %s (%s)", event.host, event.type.value)

    def _progress_reporter(
        self, options: OperationOptions, host: str, total: int
    ) -> Callable[[int], None] | None:
        if options.on_progress is None:
            return None

        def report(written: int) -> None:
            percent = written / total * 100 if total else 100.0
            try:
                options.on_progress(host, written, total, percent)
            except Exception:
                logger.exception("Progress callback failed for %s", host)

        return report

    async def _run_transfer(
        self,
        conn: Any,
        target: "HostTarget",
        task: TransferTask,
        options: OperationOptions,
        started: float,
        local_digest: str | None,
    ) -> NodeOutcome:
        self._emit(
            options,
            NodeEvent(
                EventType.EXECUTING,
                target.name,
                f"scp {task.file_name} -> {task.remote_path}",
            ),
        )
        written = await push_file(
            conn,
            task,
            self._progress_reporter(options, target.name, task.file_size),
        )

        checksum = None
        if task.verify and local_digest is not None:
            checksum = await verify_remote_file(conn, task.remote_path, local_digest)

        return Success(
            host=target.name,
            duration=time.monotonic() - started,
            bytes_transferred=written,
            checksum=checksum,
        )

    async def _run_command(
        self,
        conn: Any,
        target: "HostTarget",
        task: CommandTask,
        options: OperationOptions,
        started: float,
        deadline: float | None,
    ) -> NodeOutcome:
        self._emit(options, NodeEvent(EventType.EXECUTING, target.name, task.command_line))

        remaining = None
        if deadline is not None:
            remaining = deadline - asyncio.get_running_loop().time()

        outcome = await execute_command(conn, target.name, task, remaining, started)
        if isinstance(outcome, Success) and outcome.stdout:
            self._emit(options, NodeEvent(EventType.OUTPUT, target.name, outcome.stdout))
        return outcome

    async def _operate(
        self,
        target: "HostTarget",
        options: OperationOptions,
        started: float,
        deadline: float | None,
        local_digest: str | None,
    ) -> NodeOutcome:
        async with asyncio.timeout_at(deadline):
            conn = await self._connector(target, self._config)
        self._emit(options, NodeEvent(EventType.CONNECTED, target.name))

        try:
            task = options.task
            if isinstance(task, CommandTask):
                # the executor races its own copy of the deadline so it
                # can signal the remote process before giving up
                return await self._run_command(
                    conn, target, task, options, started, deadline
                )
            if isinstance(task, TransferTask):
                async with asyncio.timeout_at(deadline):
                    return await self._run_transfer(
                        conn, target, task, options, started, local_digest
                    )
            raise TypeError(f"Unsupported task type: {type(task).__name__}")
        finally:
            try:
                await close_connection(conn)
            except (OSError, asyncssh.Error) as e:
                logger.debug("Error closing connection to %s: %s", target.name, e)

    async def run_host(
        self,
        node: str,
        options: OperationOptions,
        deadline: float | None,
        local_digest: str | None = None,
    ) -> NodeOutcome:
        """Run the whole host task and always return exactly one outcome."""
        started = time.monotonic()
        self._emit(options, NodeEvent(EventType.CONNECTING, node))

        try:
            target = parse_host_target(node, options.port)
        except ValueError as e:
            outcome = Failure(host=node, error_kind=ErrorKind.CONNECTION, message=str(e))
            self._emit(options, NodeEvent(EventType.FAILED, node, str(e), outcome=outcome))
            return outcome

        try:
            outcome = await self._operate(
                target, options, started, deadline, local_digest
            )
        except TimeoutError:
            outcome = Timeout(host=node, elapsed=time.monotonic() - started)
        except (
            ConnectionError,
            ProtocolError,
            SourceFileError,
            OSError,
            asyncssh.Error,
        ) as e:
            outcome = Failure(
                host=node,
                error_kind=_error_kind(e),
                message=str(e),
                duration=time.monotonic() - started,
            )
        except Exception as e:
            logger.exception("Unexpected error on %s", node)
            outcome = Failure(
                host=node,
                error_kind=ErrorKind.CONNECTION,
                message=str(e) or type(e).__name__,
                duration=time.monotonic() - started,
            )

        if outcome.ok:
            self._emit(options, NodeEvent(EventType.COMPLETED, node, outcome=outcome))
        else:
            message = outcome.message if isinstance(outcome, Failure) else ""
            self._emit(
                options,
                NodeEvent(EventType.FAILED, node, message, outcome=outcome),
            )
        return outcome

    async def run_parallel(
        self,
        options: OperationOptions,
        local_digest: str | None = None,
    ) -> OperationResult:
        """Run every host concurrently and wait for all of them.

        Returns:
            OperationResult with one entry per unique requested host
        """
        start = time.monotonic()
        hosts = options.unique_hosts()
        timeout = options.task.timeout
        deadline = None
        if timeout is not None:
            deadline = asyncio.get_running_loop().time() + timeout

        semaphore = (
            asyncio.Semaphore(self._max_concurrency) if self._max_concurrency else None
        )
        results: dict[str, NodeOutcome] = {}

        async def unit(node: str) -> None:
            if semaphore is None:
                results[node] = await self.run_host(node, options, deadline, local_digest)
                return
            async with semaphore:
                results[node] = await self.run_host(node, options, deadline, local_digest)

        logger.info(
            "Fan-out to %d host(s): %s (timeout=%s, max_concurrency=%s)",
            len(hosts),
            _operation_label(options.task),
            timeout,
            self._max_concurrency or "unbounded",
        )
        await asyncio.gather(*(unit(node) for node in hosts))

        result = OperationResult(
            operation=_operation_label(options.task),
            host_results={node: results[node] for node in hosts},
            total_duration=time.monotonic() - start,
            local_digest=local_digest,
        )
        logger.info(
            "Fan-out finished in %.3fs: %d ok, %d failed, %d timed out",
            result.total_duration,
            *result.summary(),
        )
        return result

    async def run_sequential(
        self,
        options: OperationOptions,
        cancel_event: asyncio.Event | None = None,
        local_digest: str | None = None,
    ) -> OperationResult:
        """Run hosts one at a time, each with its own deadline.

        Raises:
            OperationCancelled: If ``cancel_event`` is set before every host
                ran; ``partial`` holds the hosts that finished
        """
        start = time.monotonic()
        hosts = options.unique_hosts()
        timeout = options.task.timeout
        result = OperationResult(
            operation=_operation_label(options.task),
            local_digest=local_digest,
        )

        for node in hosts:
            if cancel_event is not None and cancel_event.is_set():
                result.total_duration = time.monotonic() - start
                logger.warning(
                    "Sequential run cancelled after %d/%d host(s)",
                    len(result.host_results),
                    len(hosts),
                )
                raise OperationCancelled(result)

            deadline = None
            if timeout is not None:
                deadline = asyncio.get_running_loop().time() + timeout
            result.host_results[node] = await self.run_host(
                node, options, deadline, local_digest
            )

        result.total_duration = time.monotonic() - start
        return result
