"""Credential resolution for the SSH client configuration.

The chain is built once per operation, in priority order:

1. explicit password
2. explicit identity file
3. ssh-agent (only when neither of the above was given)
4. default key files in ~/.ssh (same condition)

The resulting ClientConfig is frozen and shared by every host task.
"""

import logging
import os
from pathlib import Path

import asyncssh

from fleetops.config.host_keys import HostKeyPolicy
from fleetops.errors import AuthConfigError, NoAuthMethodAvailable
from fleetops.models import AuthKind, AuthMethod, ClientConfig

logger = logging.getLogger(__name__)

DEFAULT_KEY_FILES = ("id_rsa", "id_ed25519", "id_ecdsa")
DEFAULT_USER = "root"


def resolve_username(declared: str = "") -> str:
    """Return the declared username, else $USER, $USERNAME, else root."""
    if declared:
        return declared
    return os.getenv("USER") or os.getenv("USERNAME") or DEFAULT_USER


def load_private_key(path: str | Path) -> asyncssh.SSHKey | None:
    """Load an unencrypted private key, returning None if unusable."""
    try:
        return asyncssh.read_private_key(str(path))
    except (OSError, ValueError) as e:
        logger.debug("Skipping private key %s: %s", path, e)
        return None


def find_agent_socket() -> str | None:
    """Return the ssh-agent socket path if SSH_AUTH_SOCK points at one."""
    socket_path = os.getenv("SSH_AUTH_SOCK", "")
    if socket_path and Path(socket_path).exists():
        return socket_path
    return None


def build_auth_methods(
    password: str = "",
    identity_file: str = "",
    ssh_dir: Path | None = None,
) -> tuple[AuthMethod, ...]:
    """Build the ordered authentication method list.

    Args:
        password: Explicit password, empty if not given
        identity_file: Explicit private key path, empty if not given
        ssh_dir: Directory holding default keys (defaults to ~/.ssh)

    Returns:
        Ordered tuple of usable methods, possibly empty

    Raises:
        AuthConfigError: If an explicit identity file cannot be loaded
    """
    methods: list[AuthMethod] = []

    if password:
        methods.append(AuthMethod(kind=AuthKind.PASSWORD, password=password))

    if identity_file:
        path = Path(os.path.expanduser(identity_file))
        key = load_private_key(path)
        if key is None:
            raise AuthConfigError(f"Failed to load private key: {identity_file}")
        methods.append(AuthMethod(kind=AuthKind.IDENTITY, source=str(path), key=key))

    if methods:
        return tuple(methods)

    agent_socket = find_agent_socket()
    if agent_socket:
        methods.append(AuthMethod(kind=AuthKind.AGENT, source=agent_socket))

    key_dir = ssh_dir if ssh_dir is not None else Path.home() / ".ssh"
    for name in DEFAULT_KEY_FILES:
        path = key_dir / name
        if not path.is_file():
            continue
        key = load_private_key(path)
        if key is not None:
            methods.append(AuthMethod(kind=AuthKind.DEFAULT_KEY, source=str(path), key=key))

    return tuple(methods)


def resolve_client_config(
    password: str = "",
    identity_file: str = "",
    username: str = "",
    known_hosts: str | None = None,
    connect_timeout: float = 30.0,
    ssh_dir: Path | None = None,
) -> ClientConfig:
    """Resolve credentials and host key policy into a ClientConfig.

    Reads local key files and checks the agent socket; never writes.

    Raises:
        AuthConfigError: If an explicit identity file is unusable
        NoAuthMethodAvailable: If the chain yields no method at all
    """
    methods = build_auth_methods(password, identity_file, ssh_dir)
    if not methods:
        raise NoAuthMethodAvailable()

    config = ClientConfig(
        username=resolve_username(username),
        auth_methods=methods,
        known_hosts=HostKeyPolicy(known_hosts).get_known_hosts_path(),
        connect_timeout=connect_timeout,
    )
    logger.info(
        "Resolved SSH client config (user=%s, auth=%s, host_key_checking=%s)",
        config.username,
        ",".join(m.kind.value for m in methods),
        config.host_key_checking,
    )
    return config
