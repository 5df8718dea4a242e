# migrator/cli/context.py

"""
CLI Context

Single point for building the migration context from the environment and
releasing the staging connection when the command finishes, whatever the
outcome.
"""

import logging
import sys
from functools import wraps
from typing import Mapping, Optional

import click

from .. import create_migration_context
from ..clients.interfaces import LedgerClientInterface
from ..core.context import MigrationContext
from ..core.errors import MigrationError
from ..core.logging import MigratorLogger, log_with_context


class CLIContext:
    def __init__(self, verbose: bool = False,
                 env_vars: Optional[Mapping[str, str]] = None,
                 ledger: Optional[LedgerClientInterface] = None):
        self.verbose = verbose
        self.env_vars = env_vars
        self.logger = MigratorLogger.get_logger('cli.context')
        self._ledger = ledger
        self._migration: Optional[MigrationContext] = None

    @property
    def migration(self) -> MigrationContext:
        if self._migration is None:
            self._migration = create_migration_context(
                env_vars=self.env_vars,
                verbose=self.verbose,
                ledger=self._ledger,
            )
        return self._migration

    def shutdown(self) -> None:
        if self._migration is not None:
            self._migration.close()
            self._migration = None


def migration_command(func):
    """Run a command with the CLIContext; any failure prints 'Error: ...' and exits 1"""
    @wraps(func)
    @click.pass_obj
    def wrapper(obj, *args, **kwargs):
        cli_context: CLIContext = obj['cli_context']
        try:
            return func(cli_context, *args, **kwargs)
        except MigrationError as e:
            log_with_context(cli_context.logger, logging.ERROR, "Command failed",
                             error=str(e), exception_type=type(e).__name__)
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        except Exception as e:
            cli_context.logger.exception("Unexpected failure")
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    return wrapper
