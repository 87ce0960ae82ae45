"""SSH client configuration models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AuthKind(Enum):
    """Authentication method kinds, in the order they are tried."""

    PASSWORD = "password"
    IDENTITY = "identity"
    AGENT = "agent"
    DEFAULT_KEY = "default_key"


@dataclass(frozen=True)
class AuthMethod:
    """One entry of the credential chain."""

    kind: AuthKind
    source: str = ""
    password: str = field(default="", repr=False)
    key: Any = field(default=None, repr=False, compare=False)

    @property
    def is_public_key(self) -> bool:
        return self.kind is not AuthKind.PASSWORD


@dataclass(frozen=True)
class ClientConfig:
    """Immutable SSH client configuration shared by every host task."""

    username: str
    auth_methods: tuple[AuthMethod, ...]
    known_hosts: str | None = None
    connect_timeout: float = 30.0

    @property
    def host_key_checking(self) -> bool:
        """True when host keys are verified against a known_hosts file."""
        return self.known_hosts is not None

    def connect_kwargs(self, username: str | None = None) -> dict[str, Any]:
        """Build keyword arguments for ``asyncssh.connect``.

        Args:
            username: Per-host override of the configured username

        Returns:
            Dict with username, credentials, auth preference order and
            host key policy
        """
        password = next(
            (m.password for m in self.auth_methods if m.kind is AuthKind.PASSWORD),
            None,
        )
        client_keys = [
            m.key
            for m in self.auth_methods
            if m.kind in (AuthKind.IDENTITY, AuthKind.DEFAULT_KEY)
        ]
        agent_path = next(
            (m.source for m in self.auth_methods if m.kind is AuthKind.AGENT),
            None,
        )

        preferred_auth: list[str] = []
        for method in self.auth_methods:
            if method.kind is AuthKind.PASSWORD:
                names = ["password", "keyboard-interactive"]
            else:
                names = ["publickey"]
            for name in names:
                if name not in preferred_auth:
                    preferred_auth.append(name)

        # asyncssh drops agent_path when client_keys is None; an empty tuple
        # keeps public-key auth (and with it the agent) enabled
        if client_keys:
            keys: list[Any] | tuple[()] | None = client_keys
        elif agent_path:
            keys = ()
        else:
            keys = None

        return {
            "username": username or self.username,
            "password": password,
            "client_keys": keys,
            "agent_path": agent_path,
            "preferred_auth": preferred_auth,
            "known_hosts": self.known_hosts,
            "connect_timeout": self.connect_timeout,
        }
