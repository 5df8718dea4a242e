# migrator/pipeline/extractor.py

from typing import Any, Dict, List, Mapping, Optional, Tuple

import msgspec

from ..clients.interfaces import LedgerClientInterface
from ..core.errors import TransportError
from ..core.logging import LoggingMixin
from ..database.repository import StagingRepository
from ..types import (
    PARENTS,
    DETAILS,
    REPLAY_CHECKPOINTS,
    DetailRecord,
    ExtractStats,
    LedgerMethods,
    ParentRecord,
)
from ..utils.paging import iterate_pages


# Indexes the later stages sort and look up by
PARENT_INDEXES = [[("id", 1)]]
DETAIL_INDEXES = [[("created_at", 1)], [("canonical_id", 1)]]


def split_entry(entry: Any) -> Tuple[Any, Any]:
    """A listing entry is a (key, value) pair, either as a sequence or a decoded struct"""
    if isinstance(entry, Mapping):
        values = list(entry.values())
    else:
        values = list(entry)
    if len(values) != 2:
        raise ValueError(f"Expected a (key, value) pair, got {len(values)} items")
    return values[0], values[1]


def parse_timestamp(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class Extractor(LoggingMixin):
    """
    Snapshot of the ledger's parents and their details into staging.

    Both collections are reset before anything is written, so re-running
    from scratch after an aborted walk reproduces a complete snapshot.
    """

    def __init__(self, ledger: LedgerClientInterface, repository: StagingRepository,
                 methods: LedgerMethods, page_size: int = 100,
                 parent_field: str = "bounty_id"):
        self.ledger = ledger
        self.repository = repository
        self.methods = methods
        self.page_size = page_size
        self.parent_field = parent_field

    def prepare_collections(self) -> None:
        for collection, indexes in ((PARENTS, PARENT_INDEXES), (DETAILS, DETAIL_INDEXES)):
            self.repository.reset_collection(collection)
            self.repository.ensure_collection(collection)
            for key_spec in indexes:
                self.repository.ensure_index(collection, key_spec)

        # Checkpoints refer to the previous snapshot
        self.repository.reset_collection(REPLAY_CHECKPOINTS)

    def _read_parent_page(self, offset: int, limit: int) -> List[Any]:
        try:
            return self.ledger.read_page(self.methods.list_parents, offset, limit)
        except TransportError as e:
            raise e.at_position("extract", page_index=offset // limit, offset=offset) from e

    def fetch_parents(self) -> List[ParentRecord]:
        parents: List[ParentRecord] = []
        for page_index, offset, page in iterate_pages(self._read_parent_page, self.page_size):
            for entry in page:
                parent_id, attributes = split_entry(entry)
                parents.append(ParentRecord(id=int(parent_id), attributes=dict(attributes or {})))
            self.log_debug("Parent page read", page_index=page_index, offset=offset, count=len(page))

        self.log_info("Parents listed", count=len(parents))
        return parents

    def fetch_details(self, parent: ParentRecord) -> List[DetailRecord]:
        try:
            entries = self.ledger.view(self.methods.list_details, {"id": parent.id}) or []
        except TransportError as e:
            raise e.at_position("extract", parent_id=parent.id) from e

        details = []
        for entry in entries:
            owner, attributes = split_entry(entry)
            attributes = dict(attributes or {})
            parent_id = attributes.get(self.parent_field)
            details.append(DetailRecord(
                owner=str(owner),
                parent_id=int(parent_id) if parent_id is not None else parent.id,
                created_at=parse_timestamp(attributes.get("created_at")),
                attributes=attributes,
            ))
        return details

    def run(self) -> ExtractStats:
        parents = self.fetch_parents()
        self.prepare_collections()

        stats = ExtractStats(parents=len(parents))

        for parent in parents:
            self.repository.insert_one(PARENTS, msgspec.structs.asdict(parent))
            details = self.fetch_details(parent)
            stats.details += self.repository.insert_many(
                DETAILS, (self._detail_document(detail) for detail in details)
            )
            self.log_debug("Parent extracted", parent_id=parent.id, count=len(details))

        self.log_info("Extraction complete", stage="extract",
                      count=stats.details, parents=stats.parents)
        return stats

    @staticmethod
    def _detail_document(detail: DetailRecord) -> Dict[str, Any]:
        document = msgspec.structs.asdict(detail)
        document.pop("seq")
        return document
