# migrator/database/__init__.py

from .base import StagingBase, DBStagingDocument
from .connection import DatabaseManager
from .tables import (
    DBParent,
    DBDetail,
    DBOwnerIndex,
    DBParentIndex,
    DBReplayCheckpoint,
    COLLECTIONS,
)
from .repository import StagingRepository, index_name_for
