"""fleetops: push files and run commands on many SSH hosts at once."""

from fleetops.engine import Engine
from fleetops.errors import (
    AuthConfigError,
    CommandError,
    ConnectionError,
    FleetOpsError,
    NoAuthMethodAvailable,
    OperationCancelled,
    ProtocolError,
    SourceFileError,
)
from fleetops.models import (
    ChecksumResult,
    CommandTask,
    ErrorKind,
    EventType,
    Failure,
    NodeEvent,
    OperationOptions,
    OperationResult,
    Success,
    Timeout,
    TransferTask,
)
from fleetops.output import OutputMode, OutputWriter

__version__ = "0.1.0"

__all__ = [
    "AuthConfigError",
    "ChecksumResult",
    "CommandError",
    "CommandTask",
    "ConnectionError",
    "Engine",
    "ErrorKind",
    "EventType",
    "Failure",
    "FleetOpsError",
    "NoAuthMethodAvailable",
    "NodeEvent",
    "OperationCancelled",
    "OperationOptions",
    "OperationResult",
    "OutputMode",
    "OutputWriter",
    "ProtocolError",
    "Success",
    "Timeout",
    "TransferTask",
]
