"""Services for fleetops."""

from fleetops.services.checksum import (
    digest_bytes,
    digest_file,
    verify_remote_file,
)
from fleetops.services.connection import close_connection, open_connection
from fleetops.services.executors import execute_command
from fleetops.services.scheduler import FanOutScheduler
from fleetops.services.transfer import push_file, send_file

__all__ = [
    "FanOutScheduler",
    "close_connection",
    "digest_bytes",
    "digest_file",
    "execute_command",
    "open_connection",
    "push_file",
    "send_file",
    "verify_remote_file",
]
