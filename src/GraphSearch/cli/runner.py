"""Command runner for coordinating CLI execution.

Manages component lifecycle, logging configuration, database cleanup and
error handling for command execution.
"""

from __future__ import annotations

from typing import Callable

import click

from GraphSearch.config import AppConfig
from GraphSearch.llm import create_expansion_service
from GraphSearch.renderers import create_output_writer
from GraphSearch.services import GraphSearchService, create_search_service
from GraphSearch.storage import DatabaseManager, create_storage
from GraphSearch.utils.log import configure_logging, log

CommandFactory = Callable[[GraphSearchService, DatabaseManager], object]


class CommandRunner:
    """Orchestrates command execution with proper resource management."""

    def __init__(self, config: AppConfig) -> None:
        """Initialize command runner.

        Args:
            config: Application configuration.
        """
        self.config = config

    def run(self, action: str, build_command: CommandFactory) -> None:
        """Build and execute one command, then write its result.

        Args:
            action: The CLI command name (used for log and output file names).
            build_command: Creates the command from the service and database.

        Raises:
            click.Abort: When the command fails.
        """
        configure_logging(
            level=self.config.runtime.level,
            action=action,
            log_to_file=self.config.runtime.to_file,
            log_dir=self.config.runtime.dir,
        )
        try:
            db_manager, backend, result_store = create_storage(self.config)
            expansion = create_expansion_service(self.config)
            service = create_search_service(
                self.config,
                backend,
                result_store=result_store,
                expansion=expansion,
            )
            output_writer = create_output_writer(self.config)

            with db_manager:
                command = build_command(service, db_manager)
                result = command.execute()
                output_writer.write_result(result)
                output_writer.finalize(action)
        except Exception as e:  # noqa: BLE001 - cli boundary
            log.error("%s failed: %s", action.capitalize(), e)
            raise click.Abort from e

        if not result.success:
            log.error("%s failed: %s", action.capitalize(), result.error)
            raise click.Abort
