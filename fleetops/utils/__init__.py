"""Utilities for fleetops."""

from fleetops.utils.console import ColorfulFormatter, configure_logging
from fleetops.utils.parser import parse_host_target
from fleetops.utils.shell import quote_path

__all__ = [
    "ColorfulFormatter",
    "configure_logging",
    "parse_host_target",
    "quote_path",
]
