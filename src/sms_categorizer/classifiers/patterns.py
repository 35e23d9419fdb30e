from collections.abc import Callable, Iterable

from sms_categorizer.logger import get_logger
from sms_categorizer.models import (
    CategorizationResult,
    LearnedBankPattern,
    MatchType,
    TransactionInfo,
)
from sms_categorizer.patterns.matcher import FuzzyPatternMatcher

from .base import Classifier

logger = get_logger(__name__)


def find_pattern_for_sender(
    patterns: Iterable[LearnedBankPattern], sender_id: str | None
) -> LearnedBankPattern | None:
    for pattern in patterns:
        if pattern.enabled and pattern.handles(sender_id):
            return pattern
    return None


class LearnedPatternClassifier(Classifier):
    """
    Re-matches the raw message against the learned pattern registered for the
    sender and, on success, uses that pattern's default category.
    """

    def __init__(
        self,
        patterns: Callable[[], Iterable[LearnedBankPattern]],
        matcher: FuzzyPatternMatcher | None = None,
    ):
        self.patterns = patterns
        self.matcher = matcher or FuzzyPatternMatcher()

    def classify(
        self, transaction: TransactionInfo, sender_id: str | None = None
    ) -> CategorizationResult | None:
        sender = sender_id or transaction.sender_id or transaction.bank_name
        pattern = find_pattern_for_sender(self.patterns(), sender)
        if pattern is None or pattern.default_category is None:
            return None
        result = self.matcher.match(transaction.raw_message, pattern.inferred_pattern, pattern.id)
        if result is None:
            return None
        logger.debug("[MATCH] Pattern %s matched with confidence %.2f", pattern.id, result.confidence)
        return CategorizationResult(
            category=pattern.default_category,
            confidence=result.confidence,
            match_type=MatchType.FUZZY,
        )
