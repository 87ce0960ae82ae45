"""Shared fixtures and in-memory SSH fakes."""

import asyncio
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import pytest

from fleetops.errors import ConnectionError
from fleetops.models import AuthKind, AuthMethod, ClientConfig


class FakeReader:
    """Binary stream preloaded with the bytes the remote side sends."""

    def __init__(self, data: bytes = b"") -> None:
        self._buf = bytearray(data)

    async def read(self, n: int = -1) -> bytes:
        if n < 0:
            n = len(self._buf)
        chunk = bytes(self._buf[:n])
        del self._buf[:n]
        return chunk

    async def readexactly(self, n: int) -> bytes:
        if len(self._buf) < n:
            partial = bytes(self._buf)
            self._buf.clear()
            raise asyncio.IncompleteReadError(partial, n)
        return await self.read(n)


class FakeWriter:
    """Collects everything written to the remote side's stdin."""

    def __init__(self, fail_after: int | None = None) -> None:
        self.data = bytearray()
        self.eof = False
        self._fail_after = fail_after

    def write(self, data: bytes) -> None:
        if self._fail_after is not None and len(self.data) + len(data) > self._fail_after:
            raise BrokenPipeError("channel closed")
        self.data += data

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def write_eof(self) -> None:
        self.eof = True


class FakeProcess:
    """Stand-in for ``asyncssh.SSHClientProcess``."""

    def __init__(
        self,
        stdout: bytes | str = b"",
        stderr: bytes | str = "",
        returncode: int | None = 0,
        block: bool = False,
        wait_error: Exception | None = None,
        fail_after: int | None = None,
    ) -> None:
        raw = stdout.encode() if isinstance(stdout, str) else stdout
        self.stdin = FakeWriter(fail_after=fail_after)
        self.stdout = FakeReader(raw)
        self._stdout_text = stdout
        self._stderr = stderr
        self._returncode = returncode
        self._block = block
        self._wait_error = wait_error
        self.killed = False
        self.closed = False

    async def wait(self) -> SimpleNamespace:
        if self._block:
            await asyncio.Event().wait()
        if self._wait_error is not None:
            raise self._wait_error
        return SimpleNamespace(
            exit_status=self._returncode,
            returncode=self._returncode,
            stdout=self._stdout_text,
            stderr=self._stderr,
        )

    def kill(self) -> None:
        self.killed = True

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    """Stand-in for ``asyncssh.SSHClientConnection``.

    ``processes`` are handed out in order by create_process; ``run_results``
    in order by run. Every command text is recorded.
    """

    def __init__(
        self,
        processes: list[FakeProcess] | None = None,
        run_results: list[SimpleNamespace] | None = None,
        process_factory: Callable[[str], FakeProcess] | None = None,
    ) -> None:
        self.processes = list(processes or [])
        self.run_results = list(run_results or [])
        self.process_factory = process_factory
        self.commands: list[str] = []
        self.closed = False

    async def create_process(self, command: str, **kwargs: Any) -> FakeProcess:
        self.commands.append(command)
        if self.process_factory is not None:
            return self.process_factory(command)
        return self.processes.pop(0)

    async def run(self, command: str, **kwargs: Any) -> SimpleNamespace:
        self.commands.append(command)
        return self.run_results.pop(0)

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None


def completed(exit_status: int = 0, stdout: str = "", stderr: str = "") -> SimpleNamespace:
    return SimpleNamespace(
        exit_status=exit_status,
        returncode=exit_status,
        stdout=stdout,
        stderr=stderr,
    )


def make_connector(
    behaviour: dict[str, FakeConnection | Exception | Callable[[], FakeConnection]],
    delay: float = 0.0,
) -> Callable[..., Any]:
    """Connector serving a FakeConnection (or failure) per host name."""
    seen: list[str] = []

    async def connector(target: Any, config: ClientConfig) -> FakeConnection:
        seen.append(target.name)
        item = behaviour[target.name]
        if isinstance(item, Exception):
            raise ConnectionError(target.name, item)
        if delay:
            await asyncio.sleep(delay)
        if callable(item):
            return item()
        return item

    connector.seen = seen  # type: ignore[attr-defined]
    return connector


@pytest.fixture
def client_config() -> ClientConfig:
    """Password-only client config with host key checking disabled."""
    return ClientConfig(
        username="tester",
        auth_methods=(AuthMethod(kind=AuthKind.PASSWORD, password="secret"),),
        known_hosts=None,
        connect_timeout=5.0,
    )


@pytest.fixture(autouse=True)
def no_agent(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's ssh-agent out of credential resolution."""
    monkeypatch.delenv("SSH_AUTH_SOCK", raising=False)
