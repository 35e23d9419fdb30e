from collections.abc import Callable, Iterable

from sms_categorizer.domain.similarity import normalize_merchant_name
from sms_categorizer.logger import get_logger
from sms_categorizer.models import (
    AmountRange,
    AnyKeyword,
    CategorizationResult,
    CategorizedTransaction,
    Category,
    MatchType,
    MerchantContains,
    MerchantEquals,
    RuleCondition,
    SenderContains,
    TransactionInfo,
    UserCategorizationRule,
)

from .base import Classifier

logger = get_logger(__name__)

MIN_RULE_EXAMPLES = 2
DEFAULT_RULE_PRIORITY = 100

GENERIC_WORDS = frozenset({
    "DE", "LA", "EL", "LOS", "LAS", "DEL", "AL",
    "SAS", "S.A.S", "SA", "S.A", "LTDA", "LIMITADA",
    "INC", "LLC", "CO", "CORPORATION", "CORP",
    "Y", "E", "O", "EN", "CON", "POR", "PARA",
    "THE", "AND", "OR", "OF", "TO", "IN", "FOR",
})


def resolve_sender(transaction: TransactionInfo, sender_id: str | None = None) -> str | None:
    """Explicit sender, then the one stamped on the transaction, then the message's first word."""
    sender = sender_id or transaction.sender_id
    if sender:
        return sender.upper()
    words = transaction.raw_message.split()
    if words and len(words[0]) >= 3:
        return words[0].upper()
    return None


def matches_condition(
    transaction: TransactionInfo, condition: RuleCondition, sender_id: str | None = None
) -> bool:
    merchant = transaction.merchant
    if isinstance(condition, MerchantEquals):
        return bool(merchant) and normalize_merchant_name(merchant) == normalize_merchant_name(condition.name)
    if isinstance(condition, MerchantContains):
        return bool(merchant) and condition.keyword.lower() in merchant.lower()
    if isinstance(condition, AnyKeyword):
        if not merchant:
            return False
        normalized = normalize_merchant_name(merchant)
        return any(keyword.upper() in normalized for keyword in condition.keywords)
    if isinstance(condition, SenderContains):
        sender = resolve_sender(transaction, sender_id)
        return bool(sender) and condition.keyword.upper() in sender
    if isinstance(condition, AmountRange):
        low = condition.min if condition.min is not None else float("-inf")
        high = condition.max if condition.max is not None else float("inf")
        return low <= transaction.amount <= high
    return False


def matches_rule(
    transaction: TransactionInfo, rule: UserCategorizationRule, sender_id: str | None = None
) -> bool:
    if not rule.enabled:
        return False
    return all(matches_condition(transaction, condition, sender_id) for condition in rule.conditions)


def _common_keywords(merchants: list[str]) -> list[str]:
    token_sets = [set(merchant.split()) for merchant in merchants]
    common = set.intersection(*token_sets)
    first_order = merchants[0].split()
    return [
        token
        for token in dict.fromkeys(first_order)
        if token in common and len(token) >= 3 and token not in GENERIC_WORDS
    ]


def _rule_name(conditions: list[RuleCondition], category: Category) -> str:
    first = conditions[0]
    if isinstance(first, MerchantEquals):
        subject = f'"{first.name}"'
    elif isinstance(first, AnyKeyword):
        subject = ", ".join(first.keywords)
    elif isinstance(first, SenderContains):
        subject = f"from {first.keyword}"
    else:
        subject = "transactions"
    return f"Categorize {subject} as {category.value.lower()}"


def learn_rule(
    transactions: list[CategorizedTransaction],
    category: Category,
    name: str | None = None,
) -> UserCategorizationRule | None:
    """
    Generalize a rule from transactions the user filed under ``category``.

    Identical merchants give a ``merchantEquals`` condition, differing ones
    share their meaningful words as ``anyKeyword``; a single common sender adds
    ``senderContains``. Returns ``None`` for fewer than two transactions or
    when nothing is shared.
    """
    if len(transactions) < MIN_RULE_EXAMPLES:
        return None

    conditions: list[RuleCondition] = []
    merchants = [
        normalize_merchant_name(item.transaction.merchant)
        for item in transactions
        if item.transaction.merchant
    ]
    if merchants:
        unique = list(dict.fromkeys(merchants))
        if len(unique) == 1:
            conditions.append(MerchantEquals(name=unique[0]))
        else:
            keywords = _common_keywords(merchants)
            if keywords:
                conditions.append(AnyKeyword(keywords=keywords))

    senders = {resolve_sender(item.transaction) for item in transactions}
    senders.discard(None)
    if len(senders) == 1:
        conditions.append(SenderContains(keyword=senders.pop()))

    if not conditions:
        return None

    rule = UserCategorizationRule(
        name=name or _rule_name(conditions, category),
        conditions=conditions,
        category=category,
        priority=DEFAULT_RULE_PRIORITY,
        learned_from_examples=[
            item.transaction.message_id for item in transactions if item.transaction.message_id
        ],
    )
    logger.info("[RULE] Learned rule '%s' from %s transactions", rule.name, len(transactions))
    return rule


class UserRuleClassifier(Classifier):
    """Enabled user rules in ascending priority; equal priorities keep their stored order."""

    def __init__(self, rules: Callable[[], Iterable[UserCategorizationRule]]):
        self.rules = rules

    def ordered_rules(self) -> list[UserCategorizationRule]:
        enabled = [rule for rule in self.rules() if rule.enabled]
        return sorted(enabled, key=lambda rule: rule.priority)

    def classify(
        self, transaction: TransactionInfo, sender_id: str | None = None
    ) -> CategorizationResult | None:
        for rule in self.ordered_rules():
            if matches_rule(transaction, rule, sender_id):
                logger.debug("[RULE] '%s' matched", rule.name)
                return CategorizationResult(
                    category=rule.category,
                    confidence=1.0,
                    match_type=MatchType.USER_RULE,
                )
        return None
