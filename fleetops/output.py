"""Human-readable rendering of fan-out events and results.

OutputWriter is safe to share between concurrent host tasks: every
write holds one lock, so lines from different hosts never interleave.
Pass ``writer.write_event`` as the ``on_event`` callback.
"""

import sys
import threading
from enum import Enum
from typing import TextIO

from fleetops.models import (
    EventType,
    Failure,
    NodeEvent,
    OperationResult,
    Success,
    Timeout,
)


class OutputMode(Enum):
    """How per-host output is presented."""

    STREAM = "stream"  # live, line-by-line per event
    GROUPED = "grouped"  # progress lines, then output grouped per host


def format_bytes(size: int) -> str:
    """Format a byte count as ``512 B``, ``1.5 KB``, ``10.0 MB``..."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'KMGTPE'[exp]}B"


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    return f"{seconds:.1f}s"


class OutputWriter:
    """Lock-serialized writer for events, progress and summaries."""

    def __init__(
        self,
        stream: TextIO | None = None,
        mode: OutputMode = OutputMode.STREAM,
        verbose: bool = False,
    ) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self.mode = mode
        self.verbose = verbose
        self._lock = threading.Lock()

    def _write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def write_header(self, operation: str, hosts: list[str]) -> None:
        with self._lock:
            self._write(f"Operation: {operation}\n")
            self._write(f"Hosts: {', '.join(hosts)}\n\n")

    def write_event(self, event: NodeEvent) -> None:
        """Render one lifecycle event (stream mode) or progress line (grouped)."""
        if self.mode is OutputMode.GROUPED:
            if event.type in (EventType.COMPLETED, EventType.FAILED):
                self._write_progress(event)
            return

        with self._lock:
            if event.type is EventType.CONNECTING:
                self._write(f"[{event.host}] connecting...\n")
            elif event.type is EventType.CONNECTED:
                self._write(f"[{event.host}] ✓ connected\n")
            elif event.type is EventType.EXECUTING:
                if self.verbose:
                    self._write(f"[{event.host}] executing: {event.message}\n")
            elif event.type is EventType.OUTPUT:
                for line in event.message.split("\n"):
                    if line:
                        self._write(f"[{event.host}] {line}\n")
            elif event.type is EventType.COMPLETED:
                self._write(f"[{event.host}] ✓ done{self._detail(event)}\n")
            elif event.type is EventType.FAILED:
                self._write(f"[{event.host}] ✗ {self._failure_text(event)}\n")

    def _detail(self, event: NodeEvent) -> str:
        outcome = event.outcome
        if not isinstance(outcome, Success):
            return ""
        duration = format_duration(outcome.duration)
        if outcome.exit_code is None:
            return f" ({format_bytes(outcome.bytes_transferred)}, {duration})"
        return f" (exit: {outcome.exit_code}, {duration})"

    def _failure_text(self, event: NodeEvent) -> str:
        outcome = event.outcome
        if isinstance(outcome, Timeout):
            return f"timed out after {format_duration(outcome.elapsed)}"
        if isinstance(outcome, Success):
            return f"failed (exit: {outcome.exit_code})"
        if isinstance(outcome, Failure):
            return f"failed: {outcome.message}"
        return f"failed: {event.message}" if event.message else "failed"

    def _write_progress(self, event: NodeEvent) -> None:
        with self._lock:
            outcome = event.outcome
            if isinstance(outcome, Success) and outcome.ok:
                self._write(f"[✓] {event.host} done ({format_duration(outcome.duration)})\n")
            else:
                self._write(f"[✗] {event.host} {self._failure_text(event)}\n")

    def write_transfer_progress(
        self, host: str, written: int, total: int, percent: float
    ) -> None:
        """Progress callback for transfers (usable as ``on_progress``)."""
        with self._lock:
            self._write(
                f"[{host}] {percent:5.1f}% ({format_bytes(written)} / {format_bytes(total)})\n"
            )

    def write_grouped_results(self, result: OperationResult, hosts: list[str]) -> None:
        """Print each host's output in request order."""
        with self._lock:
            self._write("\n")
            for host in hosts:
                outcome = result.host_results.get(host)
                if outcome is None:
                    continue

                self._write(f"========== {host} ==========\n")
                if isinstance(outcome, Failure):
                    self._write(f"error: {outcome.message}\n")
                elif isinstance(outcome, Timeout):
                    self._write(f"timed out after {format_duration(outcome.elapsed)}\n")
                else:
                    if outcome.stdout:
                        self._write(outcome.stdout)
                        if not outcome.stdout.endswith("\n"):
                            self._write("\n")
                    if self.verbose and outcome.stderr and outcome.stderr != outcome.stdout:
                        self._write(f"[stderr] {outcome.stderr}")
                        if not outcome.stderr.endswith("\n"):
                            self._write("\n")
                self._write("\n")

    def write_checksum_report(self, result: OperationResult) -> None:
        with self._lock:
            if result.local_digest:
                self._write(f"Local checksum (xxHash64): {result.local_digest}\n")
            for host, outcome in result.host_results.items():
                if not isinstance(outcome, Success) or outcome.checksum is None:
                    continue
                checksum = outcome.checksum
                if checksum.verified:
                    self._write(f"[{host}] ✓ checksum ok ({checksum.remote_digest})\n")
                elif checksum.error:
                    self._write(f"[{host}] ✗ checksum error: {checksum.error}\n")
                else:
                    self._write(
                        f"[{host}] ✗ checksum mismatch (expected {checksum.local_digest}, "
                        f"got {checksum.remote_digest})\n"
                    )

    def write_summary(self, result: OperationResult) -> None:
        successful, failed, timed_out = result.summary()
        total = len(result.host_results)

        with self._lock:
            self._write("========== Summary ==========\n")
            if successful == total:
                self._write(f"Successful: {successful}/{total}\n")
            else:
                if successful:
                    self._write(f"Successful: {successful}/{total}\n")
                if failed:
                    self._write(f"Failed: {failed}/{total}\n")
                if timed_out:
                    self._write(f"Timeout: {timed_out}/{total}\n")
            self._write(f"Total time: {format_duration(result.total_duration)}\n")
