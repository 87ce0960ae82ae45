"""SSH host key verification policy.

Uses a known_hosts file when one is present and parses, otherwise
accepts any host key.
"""

import logging
import os
from pathlib import Path

import asyncssh

logger = logging.getLogger(__name__)


class HostKeyPolicy:
    """Resolves the known_hosts file handed to asyncssh.

    A resolved path of None means host keys are not verified.
    """

    def __init__(self, known_hosts_path: str | None = None):
        """Initialize host key policy.

        Args:
            known_hosts_path: Path to known_hosts file, 'none' to disable,
                or None for ~/.ssh/known_hosts
        """
        self._known_hosts = self._resolve_known_hosts(known_hosts_path)

    def _resolve_known_hosts(self, value: str | None) -> str | None:
        """Resolve known_hosts path, falling back to accept-any.

        Returns:
            Path to a parseable known_hosts file or None to disable verification
        """
        if value and value.lower() == "none":
            logger.warning(
                "SSH host key verification disabled explicitly, "
                "connections are vulnerable to MITM attacks"
            )
            return None

        if value:
            path = Path(os.path.expanduser(value))
        else:
            path = Path.home() / ".ssh" / "known_hosts"

        if not path.is_file():
            logger.warning(
                "known_hosts not found at %s, accepting any host key", path
            )
            return None

        try:
            asyncssh.read_known_hosts(str(path))
        except (OSError, ValueError) as e:
            logger.warning(
                "known_hosts at %s could not be parsed (%s), accepting any host key",
                path,
                e,
            )
            return None

        logger.debug("Verifying host keys against %s", path)
        return str(path)

    def get_known_hosts_path(self) -> str | None:
        """Get path to known_hosts file.

        Returns:
            Path string or None if verification disabled
        """
        return self._known_hosts

    def is_enabled(self) -> bool:
        return self._known_hosts is not None
