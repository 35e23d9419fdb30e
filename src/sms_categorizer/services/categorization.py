import asyncio
from dataclasses import dataclass
from datetime import datetime

from sms_categorizer.core import settings
from sms_categorizer.domain.transactions import build_transaction_from_match
from sms_categorizer.logger import get_logger, preview_message
from sms_categorizer.manager import CategorizerService
from sms_categorizer.models import (
    CategorizedTransaction,
    LearnedBankPattern,
    SmsMessage,
    TransactionInfo,
)
from sms_categorizer.parsers.registry import ParserRegistry, default_registry
from sms_categorizer.patterns.matcher import FuzzyPatternMatcher
from sms_categorizer.storage.base import PatternStore

logger = get_logger(__name__)

SOURCE_PARSER = "parser"
SOURCE_PATTERN = "pattern"
SOURCE_GENERIC = "generic"


@dataclass(frozen=True)
class PatternStats:
    pattern_id: str
    success_count: int
    fail_count: int


@dataclass(frozen=True)
class ParseOutcome:
    categorized: CategorizedTransaction | None
    source: str | None = None
    pattern_stats: PatternStats | None = None

    @property
    def matched(self) -> bool:
        return self.categorized is not None


def next_pattern_stats(pattern: LearnedBankPattern, success: bool) -> PatternStats:
    """Counter values the pattern store should record after one use of ``pattern``."""
    if success:
        return PatternStats(pattern.id, pattern.success_count + 1, pattern.fail_count)
    return PatternStats(pattern.id, pattern.success_count, pattern.fail_count + 1)


class CategorizationPipeline:
    """
    Parse then categorize a single message. Storage is only read (learned
    patterns); counter updates are reported on the outcome for the caller.
    """

    def __init__(
        self,
        service: CategorizerService,
        registry: ParserRegistry | None = None,
        pattern_store: PatternStore | None = None,
        matcher: FuzzyPatternMatcher | None = None,
        max_message_length: int | None = None,
    ) -> None:
        self.service = service
        self.registry = registry or default_registry
        self.pattern_store = pattern_store
        self.matcher = matcher or FuzzyPatternMatcher()
        self.max_message_length = max_message_length or settings.MAX_MESSAGE_LENGTH

    def _learned_pattern(self, sender_id: str) -> LearnedBankPattern | None:
        if self.pattern_store is None:
            return None
        return self.pattern_store.by_sender(sender_id)

    def parse_transaction(
        self,
        sender_id: str,
        body: str,
        timestamp: datetime,
    ) -> tuple[TransactionInfo | None, str | None, PatternStats | None]:
        if not body or not body.strip():
            return None, None, None
        if len(body) > self.max_message_length:
            logger.debug(
                "[PARSE] Ignoring message from %s: %s chars exceeds limit %s",
                sender_id,
                len(body),
                self.max_message_length,
            )
            return None, None, None

        parser = self.registry.get_parser(sender_id)
        if parser is not None:
            transaction = parser.parse(body, timestamp)
            if transaction is not None:
                return transaction, SOURCE_PARSER, None
            logger.debug("[PARSE] %s parser found no transaction in '%s'", parser.bank_name, preview_message(body))
        else:
            pattern = self._learned_pattern(sender_id)
            if pattern is not None:
                result = self.matcher.match(body, pattern.inferred_pattern, pattern.id)
                transaction = None
                if result is not None:
                    transaction = build_transaction_from_match(result, pattern, body, timestamp)
                stats = next_pattern_stats(pattern, transaction is not None)
                if transaction is not None:
                    logger.debug("[MATCH] Learned pattern %s parsed message from %s", pattern.id, sender_id)
                    return transaction, SOURCE_PATTERN, stats
                logger.debug("[MATCH] Learned pattern %s did not match '%s'", pattern.id, preview_message(body))
                return self._generic(body, timestamp, stats)

        return self._generic(body, timestamp, None)

    def _generic(
        self, body: str, timestamp: datetime, stats: PatternStats | None
    ) -> tuple[TransactionInfo | None, str | None, PatternStats | None]:
        if not self.registry.can_generic_parse(body):
            return None, None, stats
        transaction = self.registry.generic.parse(body, timestamp)
        if transaction is None:
            return None, None, stats
        return transaction, SOURCE_GENERIC, stats

    def parse(
        self,
        sender_id: str,
        body: str,
        timestamp: datetime,
        message_id: str | None = None,
    ) -> ParseOutcome:
        transaction, source, stats = self.parse_transaction(sender_id, body, timestamp)
        if transaction is None:
            return ParseOutcome(categorized=None, pattern_stats=stats)

        transaction = transaction.model_copy(update={"message_id": message_id, "sender_id": sender_id})
        categorized = self.service.categorize(transaction, sender_id=sender_id)
        logger.debug(
            "[PARSE] %s via %s: %s %.2f -> %s (%s)",
            transaction.bank_name,
            source,
            transaction.type.value,
            transaction.amount,
            categorized.category.value,
            categorized.match_type.value,
        )
        return ParseOutcome(categorized=categorized, source=source, pattern_stats=stats)

    def process(self, message: SmsMessage) -> ParseOutcome:
        return self.parse(message.sender, message.body, message.timestamp, message_id=message.id)

    def recategorize(self, items: list[CategorizedTransaction]) -> list[CategorizedTransaction]:
        """Run categorization again; user-corrected records come back untouched."""
        results = []
        for item in items:
            if item.user_corrected:
                results.append(item)
                continue
            results.append(self.service.categorize(item.transaction, sender_id=item.transaction.sender_id))
        return results

    async def parse_async(
        self,
        sender_id: str,
        body: str,
        timestamp: datetime,
        message_id: str | None = None,
    ) -> ParseOutcome:
        return await asyncio.to_thread(self.parse, sender_id, body, timestamp, message_id)

    async def recategorize_async(self, items: list[CategorizedTransaction]) -> list[CategorizedTransaction]:
        return await asyncio.to_thread(self.recategorize, items)
