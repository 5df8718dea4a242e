# migrator/pipeline/runner.py

"""
Stage runner

Stage 1 (extract): snapshot the ledger into staging, then reindex.
Stage 2 (replay): purge the legacy ledger indexes and load the reindexed details.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..core.context import MigrationContext
from ..core.logging import MigratorLogger, log_with_context
from ..database.tables import COLLECTIONS
from ..types import REPLAY_CHECKPOINTS, ExtractStats, ReindexStats, ReplayStats
from .extractor import Extractor
from .reindexer import Reindexer
from .replay_loader import ReplayLoader


class StageRunner:
    """Wires the pipeline components to one migration context"""

    def __init__(self, context: MigrationContext):
        self.context = context
        self.config = context.config
        self.logger = MigratorLogger.get_logger('pipeline.runner')

    def run_extract(self) -> Dict[str, Any]:
        log_with_context(self.logger, logging.INFO, "Stage 1 started", stage="extract",
                         network=self.config.ledger.network)

        extractor = Extractor(
            ledger=self.context.ledger,
            repository=self.context.repository,
            methods=self.config.ledger.methods,
            page_size=self.config.replay.parent_page_size,
        )
        extract_stats: ExtractStats = extractor.run()

        reindex_stats: ReindexStats = Reindexer(self.context.repository).run()

        log_with_context(self.logger, logging.INFO, "Stage 1 finished", stage="extract",
                         count=reindex_stats.details, parents=extract_stats.parents)
        return {"extract": extract_stats, "reindex": reindex_stats}

    def run_replay(self, resume: bool = False, dry_run: bool = False,
                   batch_size: Optional[int] = None) -> ReplayStats:
        batch_size = batch_size or self.config.replay.batch_size
        log_with_context(self.logger, logging.INFO, "Stage 2 started", stage="replay",
                         batch_size=batch_size, resume=resume, dry_run=dry_run)

        loader = ReplayLoader(
            ledger=None if dry_run else self.context.ledger,
            repository=self.context.repository,
            methods=self.config.ledger.methods,
            batch_size=batch_size,
            dry_run=dry_run,
        )
        stats = loader.run(resume=resume)

        log_with_context(self.logger, logging.INFO, "Stage 2 finished", stage="replay",
                         count=sum(phase.records for phase in stats.phases))
        return stats

    def collection_counts(self) -> Dict[str, int]:
        repository = self.context.repository
        return {name: repository.count(name) for name in COLLECTIONS}

    def checkpoints(self) -> List[Mapping[str, Any]]:
        return self.context.repository.find_sorted(REPLAY_CHECKPOINTS, sort=[("seq", 1)])
