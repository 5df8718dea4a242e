# migrator/types/__init__.py

from .config import (
    DatabaseConfig,
    CredentialsConfig,
    LedgerMethods,
    LedgerConfig,
    ReplayConfig,
    LoggingConfig,
)

from .records import (
    PARENTS,
    DETAILS,
    OWNER_INDEX,
    PARENT_INDEX,
    REPLAY_CHECKPOINTS,
    ParentRecord,
    DetailRecord,
    FieldRule,
    ExtractStats,
    ReindexStats,
    PhaseStats,
    ReplayStats,
)
