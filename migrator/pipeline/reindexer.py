# migrator/pipeline/reindexer.py

from collections import Counter
from typing import Any, Dict, List

from ..core.errors import IntegrityError
from ..core.logging import LoggingMixin
from ..database.repository import StagingRepository
from ..types import PARENTS, DETAILS, OWNER_INDEX, PARENT_INDEX, ReindexStats


# Creation order, then extraction order for identical timestamps
CANONICAL_ORDER = [("created_at", 1), ("seq", 1)]

# (collection, key field on the index, matching field on the detail)
DERIVED_INDEXES = (
    (OWNER_INDEX, "owner", "owner"),
    (PARENT_INDEX, "parent_id", "parent_id"),
)

_SAMPLE_SIZE = 10


class Reindexer(LoggingMixin):
    """
    Assigns gap-free canonical ids to the staged details and rebuilds the
    owner and parent indexes from them.

    A pure function of the staged snapshot: running it twice on the same
    extraction yields identical ids and identical indexes.
    """

    def __init__(self, repository: StagingRepository):
        self.repository = repository

    def verify_snapshot(self, details: List[Dict[str, Any]]) -> None:
        missing_created_at = [d["seq"] for d in details if d["created_at"] is None]
        if missing_created_at:
            raise IntegrityError("Detail records without created_at", {
                "count": len(missing_created_at),
                "seq": missing_created_at[:_SAMPLE_SIZE],
            })

        parent_ids = {parent["id"] for parent in self.repository.find_sorted(PARENTS)}
        orphans = sorted({d["parent_id"] for d in details if d["parent_id"] not in parent_ids})
        if orphans:
            orphan_count = sum(1 for d in details if d["parent_id"] not in parent_ids)
            raise IntegrityError("Detail records reference parents missing from the snapshot", {
                "count": orphan_count,
                "parent_ids": orphans[:_SAMPLE_SIZE],
            })

    def assign_canonical_ids(self, details: List[Dict[str, Any]]) -> int:
        updates = [
            {"seq": detail["seq"], "canonical_id": position}
            for position, detail in enumerate(details)
        ]
        self.repository.bulk_update(DETAILS, updates)
        self.log_info("Canonical ids assigned", count=len(updates))
        return len(updates)

    def rebuild_indexes(self) -> None:
        for collection, key_field, _ in DERIVED_INDEXES:
            self.repository.reset_collection(collection)
            self.repository.ensure_collection(collection)
            self.repository.ensure_index(collection, [(key_field, 1)], unique=True)

        for detail in self.repository.find_all_sorted(DETAILS, sort=[("canonical_id", 1)]):
            for collection, key_field, detail_field in DERIVED_INDEXES:
                self.repository.upsert_append(
                    collection,
                    {key_field: detail[detail_field]},
                    "canonical_ids",
                    detail["canonical_id"],
                )

    def verify_indexes(self) -> None:
        details = self.repository.find_sorted(DETAILS, sort=[("canonical_id", 1)])
        ids = [detail["canonical_id"] for detail in details]
        if ids != list(range(len(details))):
            raise IntegrityError("Canonical ids are not a gap-free sequence",
                                 {"count": len(details)})

        problems: List[str] = []
        for collection, key_field, detail_field in DERIVED_INDEXES:
            occurrences: Counter = Counter()
            for entry in self.repository.find_sorted(collection):
                for canonical_id in entry["canonical_ids"]:
                    occurrences[(entry[key_field], canonical_id)] += 1
                    if not 0 <= canonical_id < len(details):
                        problems.append(f"{collection}[{entry[key_field]}] has unknown id {canonical_id}")
                    elif details[canonical_id][detail_field] != entry[key_field]:
                        problems.append(f"{collection}[{entry[key_field]}] has foreign id {canonical_id}")

            for detail in details:
                seen = occurrences[(detail[detail_field], detail["canonical_id"])]
                if seen != 1:
                    problems.append(f"{collection} lists id {detail['canonical_id']} {seen} times")

        if problems:
            raise IntegrityError("Derived indexes do not match the details", {
                "count": len(problems),
                "problems": problems[:_SAMPLE_SIZE],
            })

    def run(self) -> ReindexStats:
        details = self.repository.find_sorted(DETAILS, sort=CANONICAL_ORDER)
        self.verify_snapshot(details)

        assigned = self.assign_canonical_ids(details)
        self.rebuild_indexes()
        self.verify_indexes()

        stats = ReindexStats(
            details=assigned,
            owners=self.repository.count(OWNER_INDEX),
            parents=self.repository.count(PARENT_INDEX),
        )
        self.log_info("Reindex complete", stage="reindex",
                      count=stats.details, owners=stats.owners, parents=stats.parents)
        return stats
