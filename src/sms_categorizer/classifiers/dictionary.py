from sms_categorizer.core import settings
from sms_categorizer.domain.merchants import (
    find_containing_merchant,
    find_merchant_in_text,
    find_similar_merchant,
    lookup_keyword,
    lookup_merchant,
)
from sms_categorizer.models import CategorizationResult, MatchType, TransactionInfo

from .base import Classifier


class ExactMerchantClassifier(Classifier):
    """Normalized merchant name looked up verbatim in the merchant dictionary."""

    def classify(
        self, transaction: TransactionInfo, sender_id: str | None = None
    ) -> CategorizationResult | None:
        category = lookup_merchant(transaction.merchant)
        if category is None:
            return None
        return CategorizationResult(category=category, confidence=1.0, match_type=MatchType.EXACT)


class SimilarMerchantClassifier(Classifier):
    """Merchant names that are a shortened or misspelled form of a known merchant."""

    def __init__(self, threshold: float | None = None, partial_confidence: float = 0.9, weight: float = 0.9):
        self.threshold = settings.MERCHANT_SIMILARITY_THRESHOLD if threshold is None else threshold
        self.partial_confidence = partial_confidence
        self.weight = weight

    def classify(
        self, transaction: TransactionInfo, sender_id: str | None = None
    ) -> CategorizationResult | None:
        category = find_containing_merchant(transaction.merchant)
        if category is not None:
            return CategorizationResult(
                category=category, confidence=self.partial_confidence, match_type=MatchType.FUZZY
            )
        similar = find_similar_merchant(transaction.merchant, self.threshold)
        if similar is None:
            return None
        category, score = similar
        return CategorizationResult(category=category, confidence=score * self.weight, match_type=MatchType.FUZZY)

class KeywordClassifier(Classifier):
    """
    Category keywords in merchant + description, then known merchant names
    appearing as whole words inside a longer merchant string
    (``ALMACEN EXITO`` -> ``EXITO``).
    """

    def __init__(self, confidence: float | None = None):
        self.confidence = settings.KEYWORD_MATCH_CONFIDENCE if confidence is None else confidence

    def classify(
        self, transaction: TransactionInfo, sender_id: str | None = None
    ) -> CategorizationResult | None:
        text = " ".join(part for part in (transaction.merchant, transaction.description) if part)
        category = lookup_keyword(text) or find_merchant_in_text(transaction.merchant)
        if category is None:
            return None
        return CategorizationResult(
            category=category,
            confidence=self.confidence,
            match_type=MatchType.KEYWORD,
        )
