"""Entry point for multi-host operations.

Engine is a small dependency container: settings plus the connector used
to reach hosts. It keeps no state between calls; every operation
resolves its own client configuration and returns a fresh result.

Example:
    engine = Engine.from_env()
    result = await engine.execute_on_nodes("uptime", ["web1", "web2:2222"])
    print(result.summary())
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from fleetops.config import Settings, resolve_client_config
from fleetops.errors import SourceFileError
from fleetops.models import (
    ClientConfig,
    CommandTask,
    OperationOptions,
    OperationResult,
    TransferTask,
)
from fleetops.protocols import Connector
from fleetops.services.checksum import digest_file
from fleetops.services.connection import open_connection
from fleetops.services.scheduler import FanOutScheduler
from fleetops.utils.console import configure_logging

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """Runs file pushes and commands across many hosts."""

    settings: Settings = field(default_factory=Settings)
    connector: Connector = field(default=open_connection)

    @classmethod
    def from_env(cls) -> "Engine":
        """Create an engine with settings from FLEETOPS_* variables.

        Also attaches the console log handler at the configured level.
        """
        settings = Settings.from_env()
        configure_logging(settings.log_level, settings.log_colors)
        return cls(settings=settings)

    def build_client_config(self, options: OperationOptions) -> ClientConfig:
        """Resolve the shared client configuration for one operation.

        Raises:
            AuthConfigError: If no usable credential is available
        """
        return resolve_client_config(
            password=options.password,
            identity_file=options.identity_file,
            username=options.user,
            known_hosts=self.settings.known_hosts,
            connect_timeout=self.settings.connect_timeout,
        )

    async def _prepare(
        self, options: OperationOptions
    ) -> tuple[FanOutScheduler, str | None]:
        """Run configuration-phase checks before any host task starts."""
        local_digest = None
        task = options.task
        if isinstance(task, TransferTask):
            if not Path(task.source_path).is_file():
                raise SourceFileError(f"Source file not found: {task.source_path}")
            if task.verify:
                try:
                    local_digest = await asyncio.to_thread(digest_file, task.source_path)
                except OSError as e:
                    raise SourceFileError(
                        f"Failed to checksum {task.source_path}: {e}"
                    ) from e
                logger.info("Local checksum of %s: %s", task.source_path, local_digest)

        config = self.build_client_config(options)
        scheduler = FanOutScheduler(
            config,
            connector=self.connector,
            max_concurrency=self.settings.max_concurrency,
        )
        return scheduler, local_digest

    async def run(self, options: OperationOptions) -> OperationResult:
        """Run ``options.task`` on every host concurrently.

        Raises:
            AuthConfigError: Before fan-out, if credentials cannot be resolved
            SourceFileError: Before fan-out, if the source file is unusable
        """
        scheduler, local_digest = await self._prepare(options)
        return await scheduler.run_parallel(options, local_digest)

    async def run_sequential(
        self,
        options: OperationOptions,
        cancel_event: asyncio.Event | None = None,
    ) -> OperationResult:
        """Run ``options.task`` one host at a time.

        Raises:
            OperationCancelled: If ``cancel_event`` fires before all hosts ran
        """
        scheduler, local_digest = await self._prepare(options)
        return await scheduler.run_sequential(options, cancel_event, local_digest)

    async def copy_to_nodes(
        self,
        source_path: str,
        dest_dir: str,
        hosts: Sequence[str],
        verify: bool = False,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> OperationResult:
        """Push one local file into ``dest_dir`` on every host.

        Extra keyword arguments are passed to OperationOptions
        (user, password, identity_file, port, on_event, on_progress).
        """
        task = TransferTask.from_source(source_path, dest_dir, verify=verify, timeout=timeout)
        return await self.run(OperationOptions(hosts=tuple(hosts), task=task, **kwargs))

    async def execute_on_nodes(
        self,
        command: str,
        hosts: Sequence[str],
        elevate: bool = False,
        timeout: float | None = None,
        sequential: bool = False,
        **kwargs: Any,
    ) -> OperationResult:
        """Run one command on every host.

        ``timeout`` defaults to ``settings.command_timeout``.
        """
        task = CommandTask(
            command=command,
            elevate=elevate,
            timeout=timeout if timeout is not None else self.settings.command_timeout,
        )
        options = OperationOptions(hosts=tuple(hosts), task=task, **kwargs)
        if sequential:
            return await self.run_sequential(options)
        return await self.run(options)
