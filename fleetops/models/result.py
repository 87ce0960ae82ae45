"""Aggregated multi-host operation result."""

from dataclasses import dataclass, field
from typing import NamedTuple

from fleetops.models.outcome import Failure, NodeOutcome, Success, Timeout


class Summary(NamedTuple):
    """Outcome counts derived from an OperationResult."""

    successful: int
    failed: int
    timed_out: int


@dataclass
class OperationResult:
    """One outcome per requested host plus overall timing."""

    operation: str
    host_results: dict[str, NodeOutcome] = field(default_factory=dict)
    total_duration: float = 0.0
    local_digest: str | None = None

    def summary(self) -> Summary:
        """Count successes, failures and timeouts.

        A command that ran but exited non-zero counts as failed.
        """
        successful = failed = timed_out = 0
        for outcome in self.host_results.values():
            if isinstance(outcome, Timeout):
                timed_out += 1
            elif isinstance(outcome, Success) and outcome.ok:
                successful += 1
            else:
                failed += 1
        return Summary(successful, failed, timed_out)

    @property
    def all_succeeded(self) -> bool:
        summary = self.summary()
        return summary.successful == len(self.host_results)

    def failures(self) -> dict[str, Failure]:
        return {
            host: outcome
            for host, outcome in self.host_results.items()
            if isinstance(outcome, Failure)
        }

    def checksum_mismatches(self) -> list[str]:
        """Hosts whose transfer completed but failed verification."""
        return [
            host
            for host, outcome in self.host_results.items()
            if isinstance(outcome, Success)
            and outcome.checksum is not None
            and not outcome.checksum.verified
        ]
