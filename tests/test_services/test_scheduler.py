"""Tests for fan-out scheduling and aggregation."""

import asyncio
import time
from pathlib import Path

import pytest
from conftest import FakeConnection, FakeProcess, completed, make_connector

from fleetops.errors import OperationCancelled
from fleetops.models import (
    CommandTask,
    ErrorKind,
    EventType,
    Failure,
    NodeEvent,
    OperationOptions,
    Success,
    Timeout,
    TransferTask,
)
from fleetops.services.checksum import digest_bytes
from fleetops.services.scheduler import FanOutScheduler


def command_conn(stdout: str = "ok\n", returncode: int = 0, block: bool = False):
    """Factory producing a fresh connection with one scripted process."""
    return lambda: FakeConnection(
        processes=[FakeProcess(stdout=stdout, returncode=returncode, block=block)]
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [0, 1, 5])
async def test_one_entry_per_host(client_config, count: int) -> None:
    """Result holds exactly one outcome per requested host."""
    hosts = tuple(f"node{i}" for i in range(count))
    connector = make_connector({h: command_conn() for h in hosts})
    scheduler = FanOutScheduler(client_config, connector=connector)

    result = await scheduler.run_parallel(
        OperationOptions(hosts=hosts, task=CommandTask("hostname"))
    )

    assert list(result.host_results) == list(hosts)
    assert result.summary() == (count, 0, 0)


@pytest.mark.asyncio
async def test_failing_hosts_do_not_affect_others(client_config) -> None:
    connector = make_connector(
        {
            "good1": command_conn("one\n"),
            "bad": OSError("No route to host"),
            "good2": command_conn("two\n"),
        }
    )
    scheduler = FanOutScheduler(client_config, connector=connector)

    result = await scheduler.run_parallel(
        OperationOptions(hosts=("good1", "bad", "good2"), task=CommandTask("echo"))
    )

    assert result.host_results["good1"].stdout == "one\n"
    assert result.host_results["good2"].stdout == "two\n"
    bad = result.host_results["bad"]
    assert isinstance(bad, Failure)
    assert bad.error_kind is ErrorKind.CONNECTION
    assert "No route to host" in bad.message
    assert result.summary() == (2, 1, 0)


@pytest.mark.asyncio
async def test_duplicate_hosts_run_once(client_config) -> None:
    connector = make_connector({"web1": command_conn(), "web2": command_conn()})
    scheduler = FanOutScheduler(client_config, connector=connector)

    result = await scheduler.run_parallel(
        OperationOptions(hosts=("web1", "web2", "web1"), task=CommandTask("id"))
    )

    assert list(result.host_results) == ["web1", "web2"]
    assert sorted(connector.seen) == ["web1", "web2"]


@pytest.mark.asyncio
async def test_mixed_outcomes_summary(client_config) -> None:
    """Two succeed, one exits non-zero, one times out."""
    connector = make_connector(
        {
            "a": command_conn(),
            "b": command_conn(),
            "c": command_conn(returncode=1),
            "d": command_conn(block=True),
        }
    )
    scheduler = FanOutScheduler(client_config, connector=connector)

    result = await scheduler.run_parallel(
        OperationOptions(hosts=("a", "b", "c", "d"), task=CommandTask("x", timeout=0.2))
    )

    assert result.summary() == (2, 1, 1)
    assert result.host_results["c"].exit_code == 1
    assert isinstance(result.host_results["d"], Timeout)


@pytest.mark.asyncio
async def test_slow_connect_times_out(client_config) -> None:
    """Connecting counts against the shared deadline."""
    connector = make_connector({"slow": command_conn()}, delay=1.0)
    scheduler = FanOutScheduler(client_config, connector=connector)

    start = time.monotonic()
    result = await scheduler.run_parallel(
        OperationOptions(hosts=("slow",), task=CommandTask("true", timeout=0.1))
    )

    assert isinstance(result.host_results["slow"], Timeout)
    assert time.monotonic() - start < 0.5


@pytest.mark.asyncio
async def test_deadline_is_shared_not_per_phase(client_config) -> None:
    """Time spent connecting is subtracted from the command's allowance."""
    connector = make_connector({"h": command_conn(block=True)}, delay=0.15)
    scheduler = FanOutScheduler(client_config, connector=connector)

    start = time.monotonic()
    result = await scheduler.run_parallel(
        OperationOptions(hosts=("h",), task=CommandTask("sleep 9", timeout=0.3))
    )
    elapsed = time.monotonic() - start

    assert isinstance(result.host_results["h"], Timeout)
    assert elapsed < 0.45


@pytest.mark.asyncio
async def test_events_in_lifecycle_order(client_config) -> None:
    events: list[NodeEvent] = []
    connector = make_connector({"web1": command_conn("hello\n")})
    scheduler = FanOutScheduler(client_config, connector=connector)

    await scheduler.run_parallel(
        OperationOptions(hosts=("web1",), task=CommandTask("echo hello"), on_event=events.append)
    )

    assert [e.type for e in events] == [
        EventType.CONNECTING,
        EventType.CONNECTED,
        EventType.EXECUTING,
        EventType.OUTPUT,
        EventType.COMPLETED,
    ]
    assert events[2].message == "echo hello"
    assert events[3].message == "hello\n"
    assert isinstance(events[-1].outcome, Success)


@pytest.mark.asyncio
async def test_failed_connect_emits_failed_event(client_config) -> None:
    events: list[NodeEvent] = []
    connector = make_connector({"down": OSError("refused")})
    scheduler = FanOutScheduler(client_config, connector=connector)

    await scheduler.run_parallel(
        OperationOptions(hosts=("down",), task=CommandTask("ls"), on_event=events.append)
    )

    assert [e.type for e in events] == [EventType.CONNECTING, EventType.FAILED]
    assert "refused" in events[-1].message


@pytest.mark.asyncio
async def test_raising_callback_is_contained(client_config) -> None:
    def explode(event: NodeEvent) -> None:
        raise RuntimeError("renderer broke")

    connector = make_connector({"web1": command_conn()})
    scheduler = FanOutScheduler(client_config, connector=connector)

    result = await scheduler.run_parallel(
        OperationOptions(hosts=("web1",), task=CommandTask("ls"), on_event=explode)
    )

    assert result.host_results["web1"].ok


@pytest.mark.asyncio
async def test_invalid_host_string_is_a_failure(client_config) -> None:
    connector = make_connector({"ok": command_conn()})
    scheduler = FanOutScheduler(client_config, connector=connector)

    result = await scheduler.run_parallel(
        OperationOptions(hosts=("ok", "bad:port"), task=CommandTask("ls"))
    )

    assert result.host_results["ok"].ok
    bad = result.host_results["bad:port"]
    assert isinstance(bad, Failure)
    assert "Invalid port" in bad.message
    assert connector.seen == ["ok"]


@pytest.mark.asyncio
async def test_port_override_applies_to_bare_hosts(client_config) -> None:
    ports: dict[str, int] = {}

    async def connector(target, config):
        ports[target.name] = target.port
        return command_conn()()

    scheduler = FanOutScheduler(client_config, connector=connector)
    await scheduler.run_parallel(
        OperationOptions(hosts=("a", "b:2200"), task=CommandTask("ls"), port=2222)
    )

    assert ports == {"a": 2222, "b:2200": 2200}


@pytest.mark.asyncio
async def test_max_concurrency_bounds_active_hosts(client_config) -> None:
    active = 0
    peak = 0

    async def connector(target, config):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.02)
        active -= 1
        return command_conn()()

    scheduler = FanOutScheduler(client_config, connector=connector, max_concurrency=2)
    result = await scheduler.run_parallel(
        OperationOptions(hosts=tuple(f"n{i}" for i in range(6)), task=CommandTask("ls"))
    )

    assert result.summary().successful == 6
    assert peak == 2


def test_negative_max_concurrency_rejected(client_config) -> None:
    with pytest.raises(ValueError):
        FanOutScheduler(client_config, max_concurrency=-1)


@pytest.mark.asyncio
async def test_connection_closed_after_use(client_config) -> None:
    conns: list[FakeConnection] = []

    def factory() -> FakeConnection:
        conn = command_conn()()
        conns.append(conn)
        return conn

    scheduler = FanOutScheduler(client_config, connector=make_connector({"h": factory}))
    await scheduler.run_parallel(OperationOptions(hosts=("h",), task=CommandTask("ls")))

    assert conns[0].closed


class TestTransferFanOut:
    """File pushes through the scheduler."""

    @pytest.mark.asyncio
    async def test_push_with_progress_and_verify(self, client_config, tmp_path: Path) -> None:
        payload = b"config-data" * 100
        source = tmp_path / "app.conf"
        source.write_bytes(payload)
        digest = digest_bytes(payload)
        task = TransferTask.from_source(str(source), "/etc/app", verify=True)

        def factory() -> FakeConnection:
            return FakeConnection(
                processes=[FakeProcess(stdout=b"\x00\x00\x00")],
                run_results=[completed(0, f"{digest}  /etc/app/app.conf\n")],
            )

        progress: list[tuple[str, int, int, float]] = []
        scheduler = FanOutScheduler(
            client_config, connector=make_connector({"a": factory, "b": factory})
        )

        result = await scheduler.run_parallel(
            OperationOptions(
                hosts=("a", "b"),
                task=task,
                on_progress=lambda *args: progress.append(args),
            ),
            local_digest=digest,
        )

        assert result.local_digest == digest
        for host in ("a", "b"):
            outcome = result.host_results[host]
            assert isinstance(outcome, Success)
            assert outcome.bytes_transferred == len(payload)
            assert outcome.checksum.verified
        final = [p for p in progress if p[1] == len(payload)]
        assert {p[0] for p in final} == {"a", "b"}
        assert all(p[3] == 100.0 for p in final)

    @pytest.mark.asyncio
    async def test_remote_rejection_is_protocol_failure(
        self, client_config, tmp_path: Path
    ) -> None:
        source = tmp_path / "f.bin"
        source.write_bytes(b"data")
        task = TransferTask.from_source(str(source), "/readonly")

        def factory() -> FakeConnection:
            return FakeConnection(
                processes=[FakeProcess(stdout=b"\x01scp: /readonly: Permission denied\n")]
            )

        scheduler = FanOutScheduler(client_config, connector=make_connector({"h": factory}))
        result = await scheduler.run_parallel(OperationOptions(hosts=("h",), task=task))

        outcome = result.host_results["h"]
        assert isinstance(outcome, Failure)
        assert outcome.error_kind is ErrorKind.PROTOCOL
        assert "Permission denied" in outcome.message

    @pytest.mark.asyncio
    async def test_checksum_mismatch_is_annotation(self, client_config, tmp_path: Path) -> None:
        source = tmp_path / "f.bin"
        source.write_bytes(b"data")
        task = TransferTask.from_source(str(source), "/tmp", verify=True)

        def factory() -> FakeConnection:
            return FakeConnection(
                processes=[FakeProcess(stdout=b"\x00\x00\x00")],
                run_results=[completed(0, "0123456789abcdef  /tmp/f.bin\n")],
            )

        scheduler = FanOutScheduler(client_config, connector=make_connector({"h": factory}))
        result = await scheduler.run_parallel(
            OperationOptions(hosts=("h",), task=task), local_digest=digest_bytes(b"data")
        )

        outcome = result.host_results["h"]
        assert isinstance(outcome, Success)
        assert outcome.error_kind is ErrorKind.CHECKSUM_MISMATCH
        assert result.checksum_mismatches() == ["h"]


class TestSequential:
    """One-host-at-a-time variant."""

    @pytest.mark.asyncio
    async def test_runs_in_order(self, client_config) -> None:
        connector = make_connector({h: command_conn() for h in ("c", "a", "b")})
        scheduler = FanOutScheduler(client_config, connector=connector)

        result = await scheduler.run_sequential(
            OperationOptions(hosts=("c", "a", "b"), task=CommandTask("ls"))
        )

        assert connector.seen == ["c", "a", "b"]
        assert result.summary() == (3, 0, 0)

    @pytest.mark.asyncio
    async def test_cancel_stops_new_hosts(self, client_config) -> None:
        """Setting the event mid-run raises with the finished hosts."""
        cancel = asyncio.Event()

        def on_event(event: NodeEvent) -> None:
            if event.type is EventType.COMPLETED:
                cancel.set()

        connector = make_connector({h: command_conn() for h in ("a", "b", "c")})
        scheduler = FanOutScheduler(client_config, connector=connector)

        with pytest.raises(OperationCancelled) as exc_info:
            await scheduler.run_sequential(
                OperationOptions(hosts=("a", "b", "c"), task=CommandTask("ls"), on_event=on_event),
                cancel_event=cancel,
            )

        assert list(exc_info.value.partial.host_results) == ["a"]
        assert connector.seen == ["a"]

    @pytest.mark.asyncio
    async def test_each_host_gets_fresh_deadline(self, client_config) -> None:
        connector = make_connector(
            {"a": command_conn(block=True), "b": command_conn()}, delay=0.05
        )
        scheduler = FanOutScheduler(client_config, connector=connector)

        result = await scheduler.run_sequential(
            OperationOptions(hosts=("a", "b"), task=CommandTask("ls", timeout=0.15))
        )

        assert isinstance(result.host_results["a"], Timeout)
        assert result.host_results["b"].ok
