"""Data models for fleetops."""

from fleetops.models.event import (
    EventCallback,
    EventType,
    NodeEvent,
    ProgressCallback,
)
from fleetops.models.options import OperationOptions
from fleetops.models.outcome import (
    ChecksumResult,
    ErrorKind,
    Failure,
    NodeOutcome,
    Success,
    Timeout,
)
from fleetops.models.result import OperationResult, Summary
from fleetops.models.ssh import AuthKind, AuthMethod, ClientConfig
from fleetops.models.target import HostTarget
from fleetops.models.task import CommandTask, Task, TransferTask

__all__ = [
    "AuthKind",
    "AuthMethod",
    "ChecksumResult",
    "ClientConfig",
    "CommandTask",
    "ErrorKind",
    "EventCallback",
    "EventType",
    "Failure",
    "HostTarget",
    "NodeEvent",
    "NodeOutcome",
    "OperationOptions",
    "OperationResult",
    "ProgressCallback",
    "Success",
    "Summary",
    "Task",
    "Timeout",
    "TransferTask",
]
