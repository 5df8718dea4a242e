# migrator/pipeline/replay_loader.py

import json
import logging
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from ..clients.interfaces import LedgerClientInterface
from ..core.errors import IntegrityError, TransportError
from ..core.logging import LoggingMixin
from ..database.repository import KeySpec, StagingRepository
from ..types import (
    DETAILS,
    OWNER_INDEX,
    PARENT_INDEX,
    REPLAY_CHECKPOINTS,
    LedgerMethods,
    PhaseStats,
    ReplayStats,
)
from ..utils.paging import iterate_pages
from .transform import build_batch_payload


CLEANUP_OWNERS = "cleanup_owners"
CLEANUP_PARENTS = "cleanup_parents"
LOAD_DETAILS = "load_details"


class ReplayPhase(NamedTuple):
    name: str
    collection: str
    sort: KeySpec
    method: str
    argument: str
    build: Callable[[List[Dict[str, Any]]], List[Any]]


class ReplayLoader(LoggingMixin):
    """
    Replays the staged snapshot onto the ledger.

    Phases run strictly in order: purge the previous owner index keys, purge
    the previous parent index keys, then load the details by canonical id.
    Each batch is one mutating call. A failed call aborts the run; batches
    already applied stay applied, and the checkpoint of the last good batch
    lets ``run(resume=True)`` continue from there.
    """

    def __init__(self, ledger: Optional[LedgerClientInterface], repository: StagingRepository,
                 methods: LedgerMethods, batch_size: int = 20, dry_run: bool = False):
        if batch_size <= 0:
            raise ValueError("Replay batch size must be positive")
        if ledger is None and not dry_run:
            raise ValueError("A ledger client is required unless running dry")

        self.ledger = ledger
        self.repository = repository
        self.methods = methods
        self.batch_size = batch_size
        self.dry_run = dry_run

    def phases(self) -> List[ReplayPhase]:
        return [
            ReplayPhase(CLEANUP_OWNERS, OWNER_INDEX, [("seq", 1)],
                        self.methods.purge_owner_index, "claimers",
                        lambda documents: [d["owner"] for d in documents]),
            ReplayPhase(CLEANUP_PARENTS, PARENT_INDEX, [("seq", 1)],
                        self.methods.purge_parent_index, "bounties",
                        lambda documents: [d["parent_id"] for d in documents]),
            ReplayPhase(LOAD_DETAILS, DETAILS, [("canonical_id", 1)],
                        self.methods.load_details, "claims",
                        build_batch_payload),
        ]

    def check_ready(self) -> None:
        """Refuse to replay a snapshot that was never reindexed"""
        unassigned = self.repository.count(DETAILS, {"canonical_id": None})
        if unassigned:
            raise IntegrityError("Detail records have no canonical id; run the extract stage first",
                                 {"count": unassigned})

    def run(self, resume: bool = False) -> ReplayStats:
        self.check_ready()

        if not self.dry_run:
            if not resume:
                self.repository.reset_collection(REPLAY_CHECKPOINTS)
            self.repository.ensure_collection(REPLAY_CHECKPOINTS)

        stats = ReplayStats(dry_run=self.dry_run)
        for phase in self.phases():
            stats.phases.append(self.run_phase(phase, resume=resume))

        self.log_info("Replay complete", stage="replay", dry_run=self.dry_run,
                      count=sum(p.records for p in stats.phases))
        return stats

    def run_phase(self, phase: ReplayPhase, resume: bool = False) -> PhaseStats:
        stats = PhaseStats(phase=phase.name)
        next_offset = 0

        if resume:
            checkpoint = self.repository.find_one(REPLAY_CHECKPOINTS, {"phase": phase.name})
            if checkpoint is not None:
                if checkpoint["completed"]:
                    self.log_info("Phase already replayed, skipping", phase=phase.name,
                                  batch_index=checkpoint["batches"])
                    stats.batches = checkpoint["batches"]
                    stats.skipped = True
                    return stats
                next_offset = checkpoint["next_offset"]
                stats.batches = checkpoint["batches"]
                self.log_info("Resuming phase", phase=phase.name, offset=next_offset)

        def fetch(offset: int, limit: int) -> List[Dict[str, Any]]:
            return self.repository.find_sorted(phase.collection, sort=phase.sort,
                                               skip=offset, limit=limit)

        for _, offset, documents in iterate_pages(fetch, self.batch_size, start=next_offset):
            payload = phase.build(documents)
            self.submit(phase, payload, batch_index=stats.batches, offset=offset)

            next_offset = offset + len(documents)
            stats.batches += 1
            stats.records += len(documents)
            self._save_checkpoint(phase.name, next_offset, stats.batches, completed=False)

        self._save_checkpoint(phase.name, next_offset, stats.batches, completed=True)
        self.log_info("Phase complete", phase=phase.name,
                      batch_index=stats.batches, count=stats.records)
        return stats

    def submit(self, phase: ReplayPhase, payload: List[Any], batch_index: int, offset: int) -> None:
        self.log_info("Submitting batch", phase=phase.name, method=phase.method,
                      batch_index=batch_index, offset=offset, count=len(payload))
        if self.logger.isEnabledFor(logging.DEBUG):
            self.log_debug(json.dumps(payload, default=str), phase=phase.name, batch_index=batch_index)

        if self.dry_run:
            return

        try:
            self.ledger.mutate(phase.method, {phase.argument: payload})
        except TransportError as e:
            self.log_error("Batch failed; re-run from the start or resume from the checkpoint",
                           phase=phase.name, batch_index=batch_index, offset=offset, error=e.message)
            raise e.at_position("replay", phase=phase.name,
                                batch_index=batch_index, offset=offset) from e

    def _save_checkpoint(self, phase: str, next_offset: int, batches: int, completed: bool) -> None:
        if self.dry_run:
            return
        self.repository.upsert(REPLAY_CHECKPOINTS, {"phase": phase}, {
            "next_offset": next_offset,
            "batches": batches,
            "completed": completed,
        })
