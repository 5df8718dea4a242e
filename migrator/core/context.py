# migrator/core/context.py

"""
Migration context

Owns the two shared resources of a run, the staging database connection
and the ledger client, and hands them to the pipeline stages. Built once
per process and closed on exit.
"""

import logging
from pathlib import Path
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..clients.abi_loader import ABILoader
from ..clients.interfaces import LedgerClientInterface
from ..database.connection import DatabaseManager
from ..database.repository import StagingRepository
from .config import MigratorConfig
from .errors import MigrationError
from .logging import MigratorLogger, log_with_context


class MigrationContext:
    """Lazily connects to staging and the ledger; either may be injected for tests"""

    def __init__(self, config: MigratorConfig,
                 db_manager: Optional[DatabaseManager] = None,
                 ledger: Optional[LedgerClientInterface] = None,
                 abi_base_path: Optional[Path] = None):
        self.config = config
        self.logger = MigratorLogger.get_logger('core.context')
        self._db_manager = db_manager
        self._repository: Optional[StagingRepository] = None
        self._ledger = ledger
        self._abi_loader = ABILoader(abi_base_path)

    @property
    def db_manager(self) -> DatabaseManager:
        if self._db_manager is None:
            db_manager = DatabaseManager(self.config.database)
            try:
                db_manager.initialize()
            except SQLAlchemyError as e:
                raise MigrationError("Failed to connect to staging database", {
                    "location": db_manager.location,
                    "error": type(e).__name__,
                }) from e
            self._db_manager = db_manager
        return self._db_manager

    @property
    def repository(self) -> StagingRepository:
        if self._repository is None:
            self._repository = StagingRepository(self.db_manager)
        return self._repository

    @property
    def ledger(self) -> LedgerClientInterface:
        if self._ledger is None:
            from ..clients.ledger_rpc import Web3LedgerClient

            abi = self._abi_loader.load_abi(self.config.ledger.abi_path)
            self._ledger = Web3LedgerClient(self.config.ledger, abi)
            log_with_context(self.logger, logging.INFO, "Ledger client ready",
                             network=self.config.ledger.network,
                             contract=self.config.ledger.contract_address)
        return self._ledger

    def close(self) -> None:
        """Release the staging connection; safe to call more than once"""
        if self._db_manager is not None:
            self._db_manager.shutdown()
        self._repository = None
        log_with_context(self.logger, logging.DEBUG, "Migration context closed")
