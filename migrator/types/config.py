# migrator/types/config.py

from typing import Optional
from pathlib import Path

from msgspec import Struct, field


class DatabaseConfig(Struct):
    url: str
    pool_size: int = 5
    max_overflow: int = 10


class CredentialsConfig(Struct):
    private_key: Optional[str] = None
    keystore_path: Optional[Path] = None
    keystore_password: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.private_key or self.keystore_path)


class LedgerMethods(Struct):
    list_parents: str = "get_bounties"
    list_details: str = "get_bounty_claims_by_id"
    purge_owner_index: str = "clean_bounty_claimers"
    purge_parent_index: str = "clean_bounty_claimer_accounts"
    load_details: str = "migrate_claims"


class LedgerConfig(Struct):
    network: str
    endpoint_url: str
    contract_address: str
    abi_path: Path
    gas_limit: int = 8_000_000
    timeout: int = 30
    max_retries: int = 3
    retry_backoff: float = 0.5
    methods: LedgerMethods = field(default_factory=LedgerMethods)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)


class ReplayConfig(Struct):
    batch_size: int = 20
    parent_page_size: int = 100


class LoggingConfig(Struct):
    log_dir: Path
    log_level: str = "INFO"
    console_enabled: bool = True
    file_enabled: bool = False
    structured_format: bool = False
