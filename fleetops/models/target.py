"""Host target data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class HostTarget:
    """Parsed host address.

    ``name`` is the host string exactly as requested; results and events
    are keyed by it.
    """

    name: str
    host: str
    port: int = 22
    user: str | None = None

    @property
    def address(self) -> str:
        """Return ``host:port``, bracketing IPv6 literals."""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"
