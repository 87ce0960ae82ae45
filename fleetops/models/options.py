"""Caller-facing operation options."""

from dataclasses import dataclass, field

from fleetops.models.event import EventCallback, ProgressCallback
from fleetops.models.task import Task


@dataclass(frozen=True)
class OperationOptions:
    """Everything the engine needs for one multi-host operation.

    Built once by the caller and never mutated. Empty ``user``,
    ``password`` and ``identity_file`` mean "not given".
    """

    hosts: tuple[str, ...]
    task: Task
    user: str = ""
    password: str = field(default="", repr=False)
    identity_file: str = ""
    port: int | None = None
    on_event: EventCallback | None = field(default=None, compare=False)
    on_progress: ProgressCallback | None = field(default=None, compare=False)

    def unique_hosts(self) -> list[str]:
        """Requested hosts with duplicates dropped, first occurrence kept."""
        return list(dict.fromkeys(self.hosts))
