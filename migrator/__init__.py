# migrator/__init__.py

import logging
from typing import Mapping, Optional

from .core.config import MigratorConfig, configure_logging
from .core.context import MigrationContext
from .core.errors import MigrationError, TransportError, RemoteCallError, IntegrityError, ConfigError
from .core.logging import MigratorLogger, log_with_context
from .clients.interfaces import LedgerClientInterface
from .database.connection import DatabaseManager
from .database.repository import StagingRepository
from .pipeline.extractor import Extractor
from .pipeline.reindexer import Reindexer
from .pipeline.replay_loader import ReplayLoader
from .pipeline.runner import StageRunner


def create_migration_context(env_vars: Optional[Mapping[str, str]] = None,
                             verbose: bool = False,
                             ledger: Optional[LedgerClientInterface] = None,
                             db_manager: Optional[DatabaseManager] = None) -> MigrationContext:
    config = MigratorConfig.from_env(env_vars)
    configure_logging(config.log, verbose=verbose)

    logger = MigratorLogger.get_logger('core.init')
    log_with_context(logger, logging.INFO, "Creating migration context",
                     network=config.ledger.network,
                     contract=config.ledger.contract_address)

    return MigrationContext(config, db_manager=db_manager, ledger=ledger)


__all__ = [
    "create_migration_context",
    "MigratorConfig",
    "MigrationContext",
    "MigrationError",
    "TransportError",
    "RemoteCallError",
    "IntegrityError",
    "ConfigError",
    "LedgerClientInterface",
    "DatabaseManager",
    "StagingRepository",
    "Extractor",
    "Reindexer",
    "ReplayLoader",
    "StageRunner",
]
