"""xxHash64 integrity verification for pushed files.

Digests are rendered as 16 lower-case hex digits. The remote digest comes
from ``xxhsum``/``xxh64sum`` when installed; otherwise the remote file is
streamed back over a second session and hashed locally, which costs one
extra file-size worth of network traffic.
"""

import logging
import re
from pathlib import Path
from typing import Any

import asyncssh
import xxhash

from fleetops.errors import CommandError
from fleetops.models import ChecksumResult
from fleetops.utils.shell import quote_path

logger = logging.getLogger(__name__)

ALGORITHM = "xxHash64"
HASH_CHUNK_SIZE = 64 * 1024

_DIGEST_PATTERN = re.compile(r"^[0-9a-fA-F]{16}$")


def digest_bytes(data: bytes) -> str:
    return xxhash.xxh64(data).hexdigest()


def digest_file(path: str | Path) -> str:
    """Stream a local file through xxHash64.

    Raises:
        OSError: If the file cannot be read
    """
    hasher = xxhash.xxh64()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def parse_digest_output(output: str) -> str | None:
    """Return the first field of the first line if it is a 64-bit hex digest."""
    lines = output.strip().splitlines()
    if not lines:
        return None
    fields = lines[0].split()
    if not fields or not _DIGEST_PATTERN.match(fields[0]):
        return None
    return fields[0]


async def remote_digest_with_tool(conn: Any, remote_path: str) -> str | None:
    """Ask the remote xxhsum tool for the digest.

    Returns:
        Digest string, or None if the tool output could not be parsed

    Raises:
        CommandError: If neither xxhsum nor xxh64sum succeeded
    """
    path = quote_path(remote_path)
    command = f"xxhsum {path} 2>/dev/null || xxh64sum {path} 2>/dev/null"
    result = await conn.run(command, check=False)

    if result.exit_status != 0:
        raise CommandError(command, result.exit_status, result.stderr or "")

    stdout = result.stdout
    if isinstance(stdout, bytes):
        stdout = stdout.decode("utf-8", errors="replace")
    return parse_digest_output(stdout or "")


async def remote_digest_via_stream(conn: Any, remote_path: str) -> str:
    """Stream the remote file back with ``cat`` and hash it locally.

    Raises:
        CommandError: If ``cat`` exits non-zero
    """
    command = f"cat {quote_path(remote_path)}"
    process = await conn.create_process(command, encoding=None)
    hasher = xxhash.xxh64()
    try:
        while True:
            chunk = await process.stdout.read(HASH_CHUNK_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
        completed = await process.wait()
    finally:
        process.close()

    if completed.returncode not in (0, None):
        stderr = completed.stderr
        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", errors="replace")
        raise CommandError(command, completed.returncode, stderr or "")
    return hasher.hexdigest()


async def verify_remote_file(
    conn: Any,
    remote_path: str,
    local_digest: str,
) -> ChecksumResult:
    """Compare the remote file's digest with ``local_digest``.

    Verification problems never raise; they are reported through
    ``ChecksumResult.error`` with ``verified`` False.
    """
    remote_digest: str | None = None
    method = "xxhsum"

    try:
        remote_digest = await remote_digest_with_tool(conn, remote_path)
    except (CommandError, OSError, asyncssh.Error) as e:
        logger.debug("xxhsum unavailable for %s: %s", remote_path, e)

    if remote_digest is None:
        method = "stream"
        try:
            remote_digest = await remote_digest_via_stream(conn, remote_path)
        except (CommandError, OSError, asyncssh.Error) as e:
            logger.warning("Remote checksum of %s failed: %s", remote_path, e)
            return ChecksumResult(
                local_digest=local_digest,
                method=method,
                error=f"Remote checksum failed: {e}",
            )

    verified = remote_digest == local_digest
    if not verified:
        logger.warning(
            "Checksum mismatch for %s (expected %s, got %s)",
            remote_path,
            local_digest,
            remote_digest,
        )
    return ChecksumResult(
        local_digest=local_digest,
        remote_digest=remote_digest,
        verified=verified,
        method=method,
    )
