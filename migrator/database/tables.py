# migrator/database/tables.py

from sqlalchemy import Column, String, Integer, BigInteger, Boolean

from .base import DBStagingDocument, TimestampMixin, JSONDocument
from ..types import PARENTS, DETAILS, OWNER_INDEX, PARENT_INDEX, REPLAY_CHECKPOINTS


class DBParent(DBStagingDocument):
    __tablename__ = PARENTS

    id = Column(BigInteger, nullable=False)
    attributes = Column(JSONDocument, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Parent(id={self.id})>"


class DBDetail(DBStagingDocument):
    __tablename__ = DETAILS

    owner = Column(String(128), nullable=False)
    parent_id = Column(BigInteger, nullable=False)
    created_at = Column(BigInteger, nullable=True)
    canonical_id = Column(Integer, nullable=True)
    attributes = Column(JSONDocument, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Detail(owner={self.owner}, parent_id={self.parent_id}, canonical_id={self.canonical_id})>"


class DBOwnerIndex(DBStagingDocument):
    __tablename__ = OWNER_INDEX

    owner = Column(String(128), nullable=False)
    canonical_ids = Column(JSONDocument, nullable=False, default=list)


class DBParentIndex(DBStagingDocument):
    __tablename__ = PARENT_INDEX

    parent_id = Column(BigInteger, nullable=False)
    canonical_ids = Column(JSONDocument, nullable=False, default=list)


class DBReplayCheckpoint(DBStagingDocument, TimestampMixin):
    __tablename__ = REPLAY_CHECKPOINTS

    phase = Column(String(64), nullable=False)
    next_offset = Column(Integer, nullable=False, default=0)
    batches = Column(Integer, nullable=False, default=0)
    completed = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<ReplayCheckpoint(phase={self.phase}, next_offset={self.next_offset}, completed={self.completed})>"


COLLECTIONS = {
    PARENTS: DBParent,
    DETAILS: DBDetail,
    OWNER_INDEX: DBOwnerIndex,
    PARENT_INDEX: DBParentIndex,
    REPLAY_CHECKPOINTS: DBReplayCheckpoint,
}
