# migrator/types/records.py

from typing import Any, Dict, List, Optional

from msgspec import Struct, field


# Staging collection names
PARENTS = "parents"
DETAILS = "details"
OWNER_INDEX = "owner_index"
PARENT_INDEX = "parent_index"
REPLAY_CHECKPOINTS = "replay_checkpoints"


class ParentRecord(Struct):
    """A bounty as listed by the ledger; immutable during migration"""
    id: int
    attributes: Dict[str, Any] = field(default_factory=dict)


class DetailRecord(Struct):
    """A claim belonging to one parent and one owner"""
    owner: str
    parent_id: int
    created_at: Optional[int]
    attributes: Dict[str, Any] = field(default_factory=dict)
    canonical_id: Optional[int] = None
    seq: Optional[int] = None


class FieldRule(Struct, frozen=True):
    """How one field of the load payload is sourced and normalized"""
    name: str
    zero_valid: bool = False
    source: Optional[str] = None

    @property
    def source_key(self) -> str:
        return self.source or self.name


class ExtractStats(Struct):
    parents: int = 0
    details: int = 0


class ReindexStats(Struct):
    details: int = 0
    owners: int = 0
    parents: int = 0


class PhaseStats(Struct):
    phase: str
    batches: int = 0
    records: int = 0
    skipped: bool = False


class ReplayStats(Struct):
    dry_run: bool = False
    phases: List[PhaseStats] = field(default_factory=list)

    def get_phase(self, phase: str) -> Optional[PhaseStats]:
        for stats in self.phases:
            if stats.phase == phase:
                return stats
        return None
