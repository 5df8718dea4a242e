# migrator/core/config.py

import os
import logging
from pathlib import Path
from typing import Mapping, Optional

from msgspec import Struct

from ..types import (
    DatabaseConfig,
    CredentialsConfig,
    LedgerMethods,
    LedgerConfig,
    ReplayConfig,
    LoggingConfig,
)
from .errors import ConfigError
from .logging import MigratorLogger, log_with_context


NETWORK_ENDPOINTS = {
    "mainnet": "https://api.avax.network/ext/bc/C/rpc",
    "testnet": "https://api.avax-test.network/ext/bc/C/rpc",
}

DEFAULT_STAGING_DB_URL = "postgresql+psycopg://localhost:5432/claims_migration"
# Shipped with the package; relative overrides resolve against the working directory
DEFAULT_ABI_PATH = Path(__file__).resolve().parent.parent / "abis" / "bounties.json"


class MigratorConfig(Struct):
    ledger: LedgerConfig
    database: DatabaseConfig
    replay: ReplayConfig
    log: LoggingConfig

    @classmethod
    def from_env(cls, env_vars: Optional[Mapping[str, str]] = None) -> 'MigratorConfig':
        if env_vars is None:
            from dotenv import load_dotenv
            load_dotenv()
            env_vars = os.environ
        env = env_vars

        config = cls(
            ledger=cls._create_ledger_config(env),
            database=cls._create_database_config(env),
            replay=cls._create_replay_config(env),
            log=cls._create_logging_config(env),
        )

        logger = MigratorLogger.get_logger('core.config')
        log_with_context(logger, logging.DEBUG, "Configuration loaded",
                         network=config.ledger.network,
                         batch_size=config.replay.batch_size)
        return config

    @staticmethod
    def _create_ledger_config(env: Mapping[str, str]) -> LedgerConfig:
        network = env.get("MIGRATOR_LEDGER_NETWORK", "mainnet").lower()
        if network not in NETWORK_ENDPOINTS:
            raise ConfigError(f"Unknown ledger network '{network}'",
                              {"expected": "/".join(NETWORK_ENDPOINTS)})

        contract_address = env.get("MIGRATOR_CONTRACT_ADDRESS")
        if not contract_address:
            raise ConfigError("MIGRATOR_CONTRACT_ADDRESS environment variable required")

        defaults = LedgerMethods()
        methods = LedgerMethods(
            list_parents=env.get("MIGRATOR_METHOD_LIST_PARENTS", defaults.list_parents),
            list_details=env.get("MIGRATOR_METHOD_LIST_DETAILS", defaults.list_details),
            purge_owner_index=env.get("MIGRATOR_METHOD_PURGE_OWNERS", defaults.purge_owner_index),
            purge_parent_index=env.get("MIGRATOR_METHOD_PURGE_PARENTS", defaults.purge_parent_index),
            load_details=env.get("MIGRATOR_METHOD_LOAD_DETAILS", defaults.load_details),
        )

        keystore_path = env.get("MIGRATOR_KEYSTORE_PATH")
        credentials = CredentialsConfig(
            private_key=env.get("MIGRATOR_PRIVATE_KEY") or None,
            keystore_path=Path(keystore_path).expanduser() if keystore_path else None,
            keystore_password=env.get("MIGRATOR_KEYSTORE_PASSWORD"),
        )

        return LedgerConfig(
            network=network,
            endpoint_url=env.get("MIGRATOR_LEDGER_RPC") or NETWORK_ENDPOINTS[network],
            contract_address=contract_address,
            abi_path=Path(env.get("MIGRATOR_ABI_PATH", str(DEFAULT_ABI_PATH))),
            gas_limit=_positive_int(env, "MIGRATOR_GAS_LIMIT", 8_000_000),
            timeout=_positive_int(env, "MIGRATOR_RPC_TIMEOUT", 30),
            max_retries=_positive_int(env, "MIGRATOR_RPC_MAX_RETRIES", 3),
            methods=methods,
            credentials=credentials,
        )

    @staticmethod
    def _create_database_config(env: Mapping[str, str]) -> DatabaseConfig:
        return DatabaseConfig(url=env.get("MIGRATOR_STAGING_DB_URL", DEFAULT_STAGING_DB_URL))

    @staticmethod
    def _create_replay_config(env: Mapping[str, str]) -> ReplayConfig:
        return ReplayConfig(
            batch_size=_positive_int(env, "CLAIMS_FOR_ONE_ITERATION", 20),
            parent_page_size=_positive_int(env, "MIGRATOR_PAGE_SIZE", 100),
        )

    @staticmethod
    def _create_logging_config(env: Mapping[str, str]) -> LoggingConfig:
        return LoggingConfig(
            log_dir=Path(env.get("MIGRATOR_LOG_DIR", str(Path.cwd() / "logs"))),
            log_level=env.get("MIGRATOR_LOG_LEVEL", "INFO"),
            console_enabled=_flag(env, "MIGRATOR_LOG_CONSOLE", True),
            file_enabled=_flag(env, "MIGRATOR_LOG_FILE", False),
            structured_format=_flag(env, "MIGRATOR_LOG_STRUCTURED", False),
        )


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer", {"value": raw}) from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive", {"value": raw})
    return value


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def configure_logging(config: LoggingConfig, verbose: bool = False) -> None:
    MigratorLogger.configure(
        log_dir=config.log_dir,
        log_level="DEBUG" if verbose else config.log_level,
        console_enabled=config.console_enabled,
        file_enabled=config.file_enabled,
        structured_format=config.structured_format,
        force=True,
    )
