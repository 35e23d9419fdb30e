from datetime import datetime

from sms_categorizer.classifiers.rules import (
    UserRuleClassifier,
    learn_rule,
    matches_condition,
    resolve_sender,
)
from sms_categorizer.models import (
    AmountRange,
    AnyKeyword,
    CategorizedTransaction,
    Category,
    MatchType,
    MerchantContains,
    MerchantEquals,
    SenderContains,
    TransactionInfo,
    TransactionType,
    UserCategorizationRule,
)


def _tx(merchant: str | None = "RAPPI", amount: float = 20000.0, sender_id: str | None = None) -> TransactionInfo:
    return TransactionInfo(
        type=TransactionType.DEBIT,
        amount=amount,
        merchant=merchant,
        bank_name="Nequi",
        timestamp=datetime(2024, 5, 2, 9, 0),
        raw_message="Nequi: Pagaste $20.000 en RAPPI",
        sender_id=sender_id,
    )


def _categorized(tx: TransactionInfo) -> CategorizedTransaction:
    return CategorizedTransaction(
        transaction=tx, category=Category.UNCATEGORIZED, confidence=0.0, match_type=MatchType.DEFAULT
    )


def test_condition_types():
    tx = _tx(merchant="Rappi Colombia SAS", amount=15000.0, sender_id="85954")

    assert matches_condition(tx, MerchantContains(keyword="rappi"))
    assert matches_condition(tx, MerchantEquals(name="RAPPI COLOMBIA"))
    assert not matches_condition(tx, MerchantEquals(name="RAPPI"))
    assert matches_condition(tx, AnyKeyword(keywords=["UBER", "COLOMBIA"]))
    assert matches_condition(tx, SenderContains(keyword="859"))
    assert matches_condition(tx, AmountRange(min=10000.0, max=20000.0))
    assert matches_condition(tx, AmountRange(max=15000.0))
    assert not matches_condition(tx, AmountRange(min=15000.01))


def test_merchant_conditions_need_a_merchant():
    tx = _tx(merchant=None)
    assert not matches_condition(tx, MerchantContains(keyword="x"))
    assert not matches_condition(tx, AnyKeyword(keywords=["X"]))


def test_resolve_sender_falls_back_to_first_word():
    assert resolve_sender(_tx(sender_id="nequi")) == "NEQUI"
    assert resolve_sender(_tx(), sender_id="Bancolombia") == "BANCOLOMBIA"
    assert resolve_sender(_tx()) == "NEQUI:"


def test_rules_sorted_by_priority_with_stable_ties():
    rules = [
        UserCategorizationRule(name="late", conditions=[MerchantContains(keyword="rappi")],
                               category=Category.GROCERIES, priority=50),
        UserCategorizationRule(name="first tie", conditions=[MerchantContains(keyword="rappi")],
                               category=Category.COFFEE, priority=10),
        UserCategorizationRule(name="second tie", conditions=[MerchantContains(keyword="rappi")],
                               category=Category.RESTAURANT, priority=10),
        UserCategorizationRule(name="disabled", conditions=[MerchantContains(keyword="rappi")],
                               category=Category.GAS, priority=1, enabled=False),
    ]
    classifier = UserRuleClassifier(rules=lambda: rules)

    assert [r.name for r in classifier.ordered_rules()] == ["first tie", "second tie", "late"]
    result = classifier.classify(_tx())
    assert result.category == Category.COFFEE
    assert result.match_type == MatchType.USER_RULE


def test_all_conditions_must_match():
    rule = UserCategorizationRule(
        name="big rappi",
        conditions=[MerchantContains(keyword="rappi"), AmountRange(min=50000.0)],
        category=Category.RESTAURANT,
    )
    classifier = UserRuleClassifier(rules=lambda: [rule])
    assert classifier.classify(_tx(amount=20000.0)) is None
    assert classifier.classify(_tx(amount=60000.0)).category == Category.RESTAURANT


def test_learn_rule_needs_two_examples():
    assert learn_rule([_categorized(_tx())], Category.RESTAURANT) is None


def test_learn_rule_from_identical_merchants():
    rule = learn_rule([_categorized(_tx()), _categorized(_tx())], Category.RESTAURANT)
    assert rule is not None
    assert rule.conditions[0] == MerchantEquals(name="RAPPI")
    assert rule.category == Category.RESTAURANT


def test_learn_rule_from_shared_keywords():
    examples = [
        _categorized(_tx(merchant="PANADERIA LA ESPIGA NORTE", sender_id="85954")),
        _categorized(_tx(merchant="PANADERIA LA ESPIGA SUR", sender_id="85954")),
    ]
    rule = learn_rule(examples, Category.RESTAURANT, name="Espiga")
    assert rule.name == "Espiga"
    assert rule.conditions[0] == AnyKeyword(keywords=["PANADERIA", "ESPIGA"])
    assert rule.conditions[1] == SenderContains(keyword="85954")


def test_learn_rule_without_anything_shared():
    examples = [
        _categorized(_tx(merchant="AB", sender_id="111")),
        _categorized(_tx(merchant="CD", sender_id="222")),
    ]
    assert learn_rule(examples, Category.GAS) is None
