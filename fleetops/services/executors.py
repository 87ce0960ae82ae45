"""Remote command execution with a per-host timeout."""

import asyncio
import logging
import time
from typing import Any

import asyncssh

from fleetops.models import (
    CommandTask,
    ErrorKind,
    Failure,
    NodeOutcome,
    Success,
    Timeout,
)

logger = logging.getLogger(__name__)


def _as_text(data: Any) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _kill(process: Any, host: str) -> None:
    """Best-effort KILL delivery.

    Most sshd configurations ignore signal requests on exec channels, so
    the remote process may keep running after this returns.
    """
    try:
        process.kill()
    except (OSError, asyncssh.Error) as e:
        logger.debug("Could not signal command on %s: %s", host, e)


async def execute_command(
    conn: Any,
    host: str,
    task: CommandTask,
    timeout: float | None = None,
    started: float | None = None,
) -> NodeOutcome:
    """Run ``task`` on one host, racing completion against the timeout.

    Args:
        conn: Open SSH connection owned by the calling host task
        host: Host name used to key the outcome
        task: Command parameters
        timeout: Seconds left for this host, defaults to ``task.timeout``
        started: ``time.monotonic()`` at host task start, for durations

    Returns:
        Success (any exit code), Failure on transport errors including a
        channel that closed without an exit status, or Timeout
    """
    start = time.monotonic() if started is None else started
    limit = task.timeout if timeout is None else max(timeout, 0.0)
    command = task.command_line

    try:
        process = await conn.create_process(command, encoding="utf-8", errors="replace")
    except (OSError, asyncssh.Error) as e:
        return Failure(
            host=host,
            error_kind=ErrorKind.CONNECTION,
            message=f"Failed to open session: {e}",
            duration=time.monotonic() - start,
        )

    waiter = asyncio.ensure_future(process.wait())
    try:
        done, _ = await asyncio.wait({waiter}, timeout=limit)

        if not done:
            waiter.cancel()
            _kill(process, host)
            elapsed = time.monotonic() - start
            logger.warning("Command on %s timed out after %.3fs", host, elapsed)
            return Timeout(host=host, elapsed=elapsed)

        try:
            completed = waiter.result()
        except (OSError, asyncssh.Error) as e:
            return Failure(
                host=host,
                error_kind=ErrorKind.CONNECTION,
                message=f"Session failed: {e}",
                duration=time.monotonic() - start,
            )
    finally:
        if not waiter.done():
            waiter.cancel()
        process.close()

    duration = time.monotonic() - start
    exit_code = completed.returncode
    if exit_code is None:
        # asyncssh reports a dropped channel as a missing exit status
        logger.warning("Command on %s ended without an exit status", host)
        return Failure(
            host=host,
            error_kind=ErrorKind.CONNECTION,
            message="channel closed without exit status",
            duration=duration,
        )

    logger.debug("Command on %s exited with %d in %.3fs", host, exit_code, duration)
    return Success(
        host=host,
        duration=duration,
        exit_code=exit_code,
        stdout=_as_text(completed.stdout),
        stderr=_as_text(completed.stderr),
    )
