"""Configuration module for fleetops.

- Settings: Environment variable configuration
- HostKeyPolicy: known_hosts resolution
- resolve_client_config: Credential chain into an immutable ClientConfig
"""

from fleetops.config.credentials import (
    DEFAULT_KEY_FILES,
    build_auth_methods,
    resolve_client_config,
    resolve_username,
)
from fleetops.config.host_keys import HostKeyPolicy
from fleetops.config.settings import Settings

__all__ = [
    "DEFAULT_KEY_FILES",
    "HostKeyPolicy",
    "Settings",
    "build_auth_methods",
    "resolve_client_config",
    "resolve_username",
]
