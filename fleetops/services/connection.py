"""SSH connection helper."""

import logging
from typing import TYPE_CHECKING

import asyncssh

from fleetops.errors import ConnectionError

if TYPE_CHECKING:
    from fleetops.models import ClientConfig, HostTarget

logger = logging.getLogger(__name__)


async def open_connection(
    target: "HostTarget",
    config: "ClientConfig",
) -> asyncssh.SSHClientConnection:
    """Dial a host with the shared client configuration.

    No retry is attempted; each host task owns the returned connection
    and must close it.

    Args:
        target: Parsed host address
        config: Shared, read-only client configuration

    Returns:
        Active SSH connection

    Raises:
        ConnectionError: If dialing, key exchange or authentication fails
    """
    kwargs = config.connect_kwargs(target.user)
    logger.info(
        "Opening SSH connection to %s (%s@%s)",
        target.name,
        kwargs["username"],
        target.address,
    )
    try:
        conn = await asyncssh.connect(target.host, port=target.port, **kwargs)
    except (OSError, asyncssh.Error, TimeoutError) as e:
        logger.warning("Connection to %s failed: %s", target.name, e)
        raise ConnectionError(target.name, e) from e

    logger.debug("SSH connection established to %s", target.name)
    return conn


async def close_connection(conn: asyncssh.SSHClientConnection) -> None:
    """Close a connection and wait for the transport to shut down."""
    conn.close()
    await conn.wait_closed()
