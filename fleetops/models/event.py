"""Host lifecycle events emitted during fan-out."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from fleetops.models.outcome import NodeOutcome


class EventType(Enum):
    """Per-host lifecycle stage."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    EXECUTING = "executing"
    OUTPUT = "output"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class NodeEvent:
    """One lifecycle event for a host.

    ``outcome`` is only set for COMPLETED and FAILED.
    """

    type: EventType
    host: str
    message: str = ""
    outcome: NodeOutcome | None = None


EventCallback = Callable[[NodeEvent], None]

# (host, bytes_written, total_bytes, percent)
ProgressCallback = Callable[[str, int, int, float], None]
