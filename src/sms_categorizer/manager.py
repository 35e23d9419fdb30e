from sms_categorizer.classifiers.base import Classifier
from sms_categorizer.classifiers.dictionary import (
    ExactMerchantClassifier,
    KeywordClassifier,
    SimilarMerchantClassifier,
)
from sms_categorizer.classifiers.patterns import LearnedPatternClassifier
from sms_categorizer.classifiers.rules import UserRuleClassifier, learn_rule
from sms_categorizer.domain import transactions as tx_domain
from sms_categorizer.logger import get_logger
from sms_categorizer.models import (
    CategorizedTransaction,
    Category,
    MatchType,
    TransactionInfo,
    TransactionType,
    UserCategorizationRule,
)
from sms_categorizer.patterns.matcher import FuzzyPatternMatcher
from sms_categorizer.storage.base import PatternStore, RuleStore

logger = get_logger(__name__)


class CategorizerService:
    """
    Layered categorization; the first layer that answers wins:
    exact merchant, user rules, learned pattern, similar merchant, keywords,
    then UNCATEGORIZED.
    """

    def __init__(self,
                 pattern_store: PatternStore | None = None,
                 rule_store: RuleStore | None = None,
                 matcher: FuzzyPatternMatcher | None = None,
                 keyword_confidence: float | None = None):
        self.pattern_store = pattern_store
        self.rule_store = rule_store
        self.classifiers: list[Classifier] = []

        # 1. Dictionary exact match
        self.exact = ExactMerchantClassifier()
        self.classifiers.append(self.exact)

        # 2. User rules
        self.rules = UserRuleClassifier(rules=rule_store.enabled if rule_store else list)
        self.classifiers.append(self.rules)

        # 3. Learned pattern for the sender
        self.patterns = LearnedPatternClassifier(
            patterns=pattern_store.all if pattern_store else list,
            matcher=matcher,
        )
        self.classifiers.append(self.patterns)

        # 4. Shortened or misspelled known merchant
        self.similar = SimilarMerchantClassifier()
        self.classifiers.append(self.similar)

        # 5. Keywords
        self.keywords = KeywordClassifier(confidence=keyword_confidence)
        self.classifiers.append(self.keywords)

    def categorize(self, transaction: TransactionInfo, sender_id: str | None = None) -> CategorizedTransaction:
        for classifier in self.classifiers:
            classifier_name = classifier.__class__.__name__
            result = classifier.classify(transaction, sender_id=sender_id)
            if result:
                logger.debug(
                    "%s returned '%s' (confidence: %.2f) for merchant '%s'",
                    classifier_name,
                    result.category.value,
                    result.confidence,
                    transaction.merchant,
                )
                return CategorizedTransaction(
                    transaction=transaction,
                    category=result.category,
                    confidence=result.confidence,
                    match_type=result.match_type,
                )

        logger.debug("No classifier matched merchant '%s'", transaction.merchant)
        return CategorizedTransaction(
            transaction=transaction,
            category=Category.UNCATEGORIZED,
            confidence=0.0,
            match_type=MatchType.DEFAULT,
        )

    def categorize_all(self, transactions: list[TransactionInfo]) -> list[CategorizedTransaction]:
        return [self.categorize(transaction) for transaction in transactions]

    def apply_user_correction(
        self,
        categorized: CategorizedTransaction,
        category: Category | None = None,
        transaction_type: TransactionType | None = None,
    ) -> CategorizedTransaction:
        return tx_domain.apply_user_correction(categorized, category=category, transaction_type=transaction_type)

    def learn_rule(
        self,
        examples: list[CategorizedTransaction],
        category: Category,
        name: str | None = None,
    ) -> UserCategorizationRule | None:
        """
        Learn a rule from examples and persist it when a rule store is configured.
        """
        rule = learn_rule(examples, category, name=name)
        if rule is not None and self.rule_store is not None:
            self.rule_store.save(rule)
        return rule
