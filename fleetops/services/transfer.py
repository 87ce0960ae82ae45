"""SCP sink-mode file push.

The remote side runs ``scp -t <dir>`` and expects a strictly
acknowledgment-gated exchange on its stdin/stdout:

    <- ack                     WaitInitialAck
    -> C0644 <size> <name>\\n   SendHeader
    <- ack                     WaitHeaderAck
    -> <size bytes>            StreamBody
    -> \\x00                    SendTerminator
    <- ack                     WaitFinalAck

An ack is one byte: 0 ok, 1 error, 2 fatal error. Non-zero acks are
followed by a message terminated by a newline. Nothing is written past
an unacknowledged phase.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, BinaryIO

import asyncssh

from fleetops.errors import ProtocolError, SourceFileError
from fleetops.models import TransferTask
from fleetops.utils.shell import quote_path

logger = logging.getLogger(__name__)

CHUNK_SIZE = 32 * 1024
PROGRESS_INTERVAL = 0.1
MAX_ERROR_MESSAGE = 1024
STDERR_DRAIN_TIMEOUT = 5.0

ACK_OK = 0


def build_header(file_name: str, file_size: int, mode: int = 0o644) -> bytes:
    """Build the ``C<mode> <size> <name>`` file header line.

    Raises:
        ValueError: If the name would break the line framing
    """
    if not file_name or "\n" in file_name or "/" in file_name:
        raise ValueError(f"Invalid file name for transfer: {file_name!r}")
    return f"C{mode & 0o7777:04o} {file_size} {file_name}\n".encode()


async def _read_error_message(reader: Any) -> str:
    """Read an error message up to newline, capped at MAX_ERROR_MESSAGE bytes."""
    buf = bytearray()
    while len(buf) < MAX_ERROR_MESSAGE:
        try:
            ch = await reader.read(1)
        except (OSError, asyncssh.Error):
            break
        if not ch or ch == b"\n":
            break
        buf += ch
    return buf.decode("utf-8", errors="replace")


async def read_ack(reader: Any, phase: str) -> None:
    """Read one acknowledgment byte.

    Args:
        reader: Remote stdout stream (binary)
        phase: Phase name used in error messages

    Raises:
        ProtocolError: If the ack is non-zero or the channel fails
    """
    try:
        data = await reader.readexactly(1)
    except asyncio.IncompleteReadError as e:
        raise ProtocolError(
            f"{phase}: channel closed before acknowledgment"
        ) from e
    except (OSError, asyncssh.Error) as e:
        raise ProtocolError(f"{phase}: failed to read acknowledgment: {e}") from e

    code = data[0]
    if code == ACK_OK:
        return

    message = await _read_error_message(reader)
    raise ProtocolError(message, code=code)


async def _write(writer: Any, data: bytes, phase: str) -> None:
    try:
        writer.write(data)
        await writer.drain()
    except (OSError, asyncssh.Error) as e:
        raise ProtocolError(f"{phase}: write failed: {e}") from e


async def _stream_body(
    writer: Any,
    source: BinaryIO,
    file_size: int,
    progress: Callable[[int], None] | None,
) -> int:
    """Copy exactly ``file_size`` bytes from source to the channel.

    File reads run in a worker thread, off the event loop.

    Progress is reported at most every PROGRESS_INTERVAL seconds, then
    once more with the final total.
    """
    written = 0
    last_report = time.monotonic()

    while written < file_size:
        try:
            chunk = await asyncio.to_thread(
                source.read, min(CHUNK_SIZE, file_size - written)
            )
        except OSError as e:
            raise SourceFileError(f"Failed to read source file: {e}") from e
        if not chunk:
            raise SourceFileError(
                f"Source file shrank during transfer ({written}/{file_size} bytes)"
            )

        await _write(writer, chunk, "stream body")
        written += len(chunk)

        now = time.monotonic()
        if progress is not None and now - last_report > PROGRESS_INTERVAL:
            progress(written)
            last_report = now

    if progress is not None:
        progress(written)
    return written


async def send_file(
    process: Any,
    source: BinaryIO,
    file_name: str,
    file_size: int,
    mode: int = 0o644,
    progress: Callable[[int], None] | None = None,
) -> int:
    """Run the sink handshake on a started ``scp -t`` process.

    Returns:
        Number of body bytes written

    Raises:
        ProtocolError: On any non-zero ack or channel failure
        SourceFileError: If the local file cannot be read to the end
    """
    stdin, stdout = process.stdin, process.stdout

    await read_ack(stdout, "initial response")
    await _write(stdin, build_header(file_name, file_size, mode), "send header")
    await read_ack(stdout, "header response")
    written = await _stream_body(stdin, source, file_size, progress)
    await _write(stdin, b"\x00", "send terminator")
    await read_ack(stdout, "final response")
    return written


def _decode(data: Any) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


async def _drain_stderr(process: Any) -> str:
    """Close stdin, wait for the remote scp and return its stderr."""
    try:
        process.stdin.write_eof()
    except (OSError, asyncssh.Error) as e:
        logger.debug("Could not send EOF after failed transfer: %s", e)
    try:
        completed = await asyncio.wait_for(process.wait(), STDERR_DRAIN_TIMEOUT)
    except (TimeoutError, OSError, asyncssh.Error) as e:
        logger.debug("Remote scp did not finish after failed transfer: %s", e)
        return ""
    return _decode(completed.stderr).strip()


async def push_file(
    conn: Any,
    task: TransferTask,
    progress: Callable[[int], None] | None = None,
) -> int:
    """Push ``task.source_path`` into ``task.dest_dir`` on one host.

    Args:
        conn: Open SSH connection owned by the calling host task
        task: Transfer parameters, size already measured
        progress: Called with cumulative bytes written

    Returns:
        Number of bytes transferred

    Raises:
        ProtocolError: If the handshake fails or remote scp exits non-zero
        SourceFileError: If the local file cannot be read
    """
    try:
        source = await asyncio.to_thread(open, task.source_path, "rb")
    except OSError as e:
        raise SourceFileError(f"Failed to open source file {task.source_path}: {e}") from e

    command = f"scp -t {quote_path(task.dest_dir)}"
    with source:
        process = await conn.create_process(command, encoding=None)
        try:
            try:
                written = await send_file(
                    process,
                    source,
                    task.file_name,
                    task.file_size,
                    task.mode,
                    progress,
                )
            except ProtocolError as e:
                stderr = await _drain_stderr(process)
                if stderr and stderr not in str(e):
                    raise ProtocolError(f"{e.message} ({stderr})", code=e.code) from e
                raise

            process.stdin.write_eof()
            completed = await process.wait()
            if completed.exit_status not in (0, None):
                stderr = _decode(completed.stderr).strip()
                raise ProtocolError(
                    f"remote scp exited with status {completed.exit_status}"
                    + (f": {stderr}" if stderr else "")
                )
        finally:
            process.close()

    logger.debug("Pushed %d bytes to %s", written, task.remote_path)
    return written
