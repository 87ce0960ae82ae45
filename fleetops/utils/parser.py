"""Host address parsing."""

from fleetops.models import HostTarget

DEFAULT_PORT = 22


def parse_host_target(node: str, default_port: int | None = None) -> HostTarget:
    """Parse a host string into a HostTarget.

    Formats:
        - "host"                 -> default port
        - "host:2222"            -> explicit port
        - "[fe80::1]:2222"       -> bracketed IPv6 with port
        - "fe80::1"              -> bare IPv6, default port
        - "deploy@host:2222"     -> per-host user

    Returns:
        HostTarget keyed by the original string.

    Raises:
        ValueError: If the host is empty or the port is not a valid number.
    """
    name = node
    text = node.strip()
    port = default_port or DEFAULT_PORT
    user = None

    if "@" in text:
        user, text = text.rsplit("@", 1)
        user = user or None

    host = text
    if text.startswith("["):
        end = text.find("]")
        if end == -1:
            raise ValueError(f"Invalid host '{node}': missing ']'")
        host = text[1:end]
        rest = text[end + 1 :]
        if rest:
            if not rest.startswith(":"):
                raise ValueError(f"Invalid host '{node}'")
            port = _parse_port(rest[1:], node)
    elif text.count(":") == 1:
        host, port_text = text.split(":", 1)
        port = _parse_port(port_text, node)

    if not host:
        raise ValueError(f"Invalid host '{node}': empty host name")

    return HostTarget(name=name, host=host, port=port, user=user)


def _parse_port(value: str, node: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise ValueError(f"Invalid port in '{node}': {value!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"Invalid port in '{node}': {port}")
    return port
