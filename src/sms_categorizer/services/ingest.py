import asyncio
from time import perf_counter
from typing import Any

from sms_categorizer.core import settings
from sms_categorizer.domain.timefmt import format_duration
from sms_categorizer.logger import get_logger
from sms_categorizer.services.categorization import CategorizationPipeline, PatternStats
from sms_categorizer.storage.base import InboxReader, PatternStore, TransactionStore

logger = get_logger(__name__)


class InboxIngestor:
    def __init__(
        self,
        reader: InboxReader,
        pipeline: CategorizationPipeline,
        transaction_store: TransactionStore,
        pattern_store: PatternStore | None = None,
        batch_limit: int | None = None,
    ) -> None:
        self.reader = reader
        self.pipeline = pipeline
        self.transaction_store = transaction_store
        self.pattern_store = pattern_store
        self.batch_limit = batch_limit or settings.INGEST_BATCH_LIMIT
        self.status: dict[str, Any] = {"stage": "idle"}

    def get_status(self) -> dict[str, Any]:
        return dict(self.status)

    def _record_stats(self, stats: PatternStats) -> None:
        if self.pattern_store is None:
            return
        self.pattern_store.update_stats(stats.pattern_id, stats.success_count, stats.fail_count)

    def ingest(self, limit: int | None = None) -> dict[str, Any]:
        """
        Read the inbox, parse and categorize unseen messages, store the results.
        Reader failures propagate to the caller.
        """
        limit = limit or self.batch_limit
        logger.info("[INGEST] Reading up to %s messages...", limit)
        self.status.clear()
        self.status.update({"stage": "reading"})

        start = perf_counter()
        try:
            messages = self.reader.read_messages(limit)
        except Exception:
            self.status.clear()
            self.status.update({"stage": "error"})
            raise

        known_ids = self.transaction_store.stored_message_ids()
        stored = 0
        skipped_duplicate = 0
        unparsed = 0
        self.status.update({"stage": "processing", "total": len(messages)})

        for message in messages:
            if message.id in known_ids:
                skipped_duplicate += 1
                continue

            outcome = self.pipeline.process(message)
            if outcome.pattern_stats is not None:
                self._record_stats(outcome.pattern_stats)
            if outcome.categorized is None:
                unparsed += 1
                continue

            if self.transaction_store.insert(outcome.categorized):
                stored += 1
            known_ids.add(message.id)

        elapsed = perf_counter() - start
        logger.info(
            "[INGEST] Complete! Stored: %s, Skipped (already stored): %s, "
            "Not a transaction: %s, Took: %s",
            stored,
            skipped_duplicate,
            unparsed,
            format_duration(elapsed),
        )

        result = {
            "status": "success",
            "read": len(messages),
            "stored": stored,
            "skipped": skipped_duplicate,
            "unparsed": unparsed,
            "duration": format_duration(elapsed),
        }
        self.status.clear()
        self.status.update({"stage": "complete", **result})
        return result

    async def ingest_async(self, limit: int | None = None) -> dict[str, Any]:
        return await asyncio.to_thread(self.ingest, limit)
