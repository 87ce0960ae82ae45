"""Tests for xxHash64 integrity verification."""

from pathlib import Path

import pytest
from conftest import FakeConnection, FakeProcess, completed

from fleetops.services.checksum import (
    digest_bytes,
    digest_file,
    parse_digest_output,
    verify_remote_file,
)

EMPTY_DIGEST = "ef46db3751d8e999"


class TestDigest:
    """Local digest helpers."""

    def test_empty_input(self) -> None:
        assert digest_bytes(b"") == EMPTY_DIGEST

    def test_deterministic_and_sixteen_hex_digits(self) -> None:
        first = digest_bytes(b"hello fleet")
        assert first == digest_bytes(b"hello fleet")
        assert len(first) == 16
        assert int(first, 16) >= 0

    def test_single_byte_change_alters_digest(self) -> None:
        data = bytearray(b"a" * 4096)
        original = digest_bytes(bytes(data))
        data[2048] ^= 0x01
        assert digest_bytes(bytes(data)) != original

    def test_file_matches_bytes(self, tmp_path: Path) -> None:
        """Chunked file hashing agrees with one-shot hashing."""
        payload = bytes(range(256)) * 1000
        path = tmp_path / "blob"
        path.write_bytes(payload)
        assert digest_file(path) == digest_bytes(payload)

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            digest_file(tmp_path / "missing")


@pytest.mark.parametrize(
    "output,expected",
    [
        ("ef46db3751d8e999  /tmp/f\n", "ef46db3751d8e999"),
        ("EF46DB3751D8E999  /tmp/f\n", "EF46DB3751D8E999"),
        ("", None),
        ("xxhsum: /tmp/f: No such file\n", None),
        ("abc /tmp/f\n", None),
    ],
)
def test_parse_digest_output(output: str, expected: str | None) -> None:
    assert parse_digest_output(output) == expected


class TestVerifyRemoteFile:
    """Remote digest comparison with tool and streaming fallback."""

    @pytest.mark.asyncio
    async def test_tool_digest_matches(self) -> None:
        digest = digest_bytes(b"payload")
        conn = FakeConnection(run_results=[completed(0, f"{digest}  /srv/app.bin\n")])

        result = await verify_remote_file(conn, "/srv/app.bin", digest)

        assert result.verified
        assert result.method == "xxhsum"
        assert result.remote_digest == digest
        assert result.error is None
        assert conn.commands[0].startswith("xxhsum /srv/app.bin")

    @pytest.mark.asyncio
    async def test_falls_back_to_stream(self) -> None:
        """Without xxhsum the file is read back and hashed locally."""
        payload = b"x" * 200_000
        conn = FakeConnection(
            run_results=[completed(127, "", "command not found")],
            processes=[FakeProcess(stdout=payload)],
        )

        result = await verify_remote_file(conn, "/srv/app.bin", digest_bytes(payload))

        assert result.verified
        assert result.method == "stream"
        assert conn.commands[-1] == "cat /srv/app.bin"

    @pytest.mark.asyncio
    async def test_unparseable_tool_output_falls_back(self) -> None:
        payload = b"data"
        conn = FakeConnection(
            run_results=[completed(0, "garbage\n")],
            processes=[FakeProcess(stdout=payload)],
        )

        result = await verify_remote_file(conn, "/srv/f", digest_bytes(payload))

        assert result.verified
        assert result.method == "stream"

    @pytest.mark.asyncio
    async def test_mismatch_is_reported_not_raised(self) -> None:
        conn = FakeConnection(run_results=[completed(0, "0000000000000000  /srv/f\n")])

        result = await verify_remote_file(conn, "/srv/f", EMPTY_DIGEST)

        assert not result.verified
        assert result.remote_digest == "0000000000000000"
        assert result.local_digest == EMPTY_DIGEST
        assert result.error is None

    @pytest.mark.asyncio
    async def test_both_methods_fail(self) -> None:
        conn = FakeConnection(
            run_results=[completed(1)],
            processes=[FakeProcess(stderr=b"cat: /srv/f: Permission denied", returncode=1)],
        )

        result = await verify_remote_file(conn, "/srv/f", EMPTY_DIGEST)

        assert not result.verified
        assert result.method == "stream"
        assert "Permission denied" in result.error

    @pytest.mark.asyncio
    async def test_path_is_quoted(self) -> None:
        conn = FakeConnection(run_results=[completed(0, f"{EMPTY_DIGEST}  x\n")])

        await verify_remote_file(conn, "/srv/my file", EMPTY_DIGEST)

        assert "'/srv/my file'" in conn.commands[0]
