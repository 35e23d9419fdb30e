from datetime import datetime
from unittest.mock import patch

import pytest

from sms_categorizer.manager import CategorizerService
from sms_categorizer.models import (
    CategorizationResult,
    CategorizedTransaction,
    Category,
    FieldType,
    FixedText,
    InferredPattern,
    LearnedBankPattern,
    MatchType,
    MerchantContains,
    TransactionInfo,
    TransactionType,
    UserCategorizationRule,
    Variable,
)
from sms_categorizer.patterns.matcher import FuzzyPatternMatcher
from sms_categorizer.storage.json_store import JsonPatternStore, JsonRuleStore


def _tx(merchant=None, description=None, raw="Compra por $10.000", **kwargs) -> TransactionInfo:
    return TransactionInfo(
        type=kwargs.pop("type", TransactionType.DEBIT),
        amount=kwargs.pop("amount", 10000.0),
        merchant=merchant,
        description=description,
        bank_name=kwargs.pop("bank_name", "Bancolombia"),
        timestamp=datetime(2024, 3, 1, 12, 0),
        raw_message=raw,
        **kwargs,
    )


@pytest.fixture
def mock_classifiers():
    with patch("sms_categorizer.manager.ExactMerchantClassifier") as mock_exact, \
         patch("sms_categorizer.manager.UserRuleClassifier") as mock_rules, \
         patch("sms_categorizer.manager.LearnedPatternClassifier") as mock_patterns, \
         patch("sms_categorizer.manager.SimilarMerchantClassifier") as mock_similar, \
         patch("sms_categorizer.manager.KeywordClassifier") as mock_keywords:

        yield mock_exact, mock_rules, mock_patterns, mock_similar, mock_keywords


def test_manager_orchestration_priority(mock_classifiers):
    mock_exact_cls, mock_rules_cls, mock_patterns_cls, mock_similar_cls, mock_keywords_cls = mock_classifiers
    exact = mock_exact_cls.return_value
    rules = mock_rules_cls.return_value
    patterns = mock_patterns_cls.return_value
    similar = mock_similar_cls.return_value
    keywords = mock_keywords_cls.return_value

    service = CategorizerService()
    t = _tx(merchant="ANYTHING")

    # Case 1: exact dictionary hit stops the chain
    exact.classify.return_value = CategorizationResult(
        category=Category.GROCERIES, confidence=1.0, match_type=MatchType.EXACT
    )
    res = service.categorize(t)
    assert res.category == Category.GROCERIES
    assert res.match_type == MatchType.EXACT
    rules.classify.assert_not_called()

    # Case 2: user rule
    exact.classify.return_value = None
    rules.classify.return_value = CategorizationResult(
        category=Category.COFFEE, confidence=1.0, match_type=MatchType.USER_RULE
    )
    res = service.categorize(t)
    assert res.category == Category.COFFEE
    patterns.classify.assert_not_called()

    # Case 3: learned pattern
    rules.classify.return_value = None
    patterns.classify.return_value = CategorizationResult(
        category=Category.GAS, confidence=0.9, match_type=MatchType.FUZZY
    )
    res = service.categorize(t)
    assert res.category == Category.GAS
    assert res.confidence == 0.9
    similar.classify.assert_not_called()

    # Case 4: similar merchant name
    patterns.classify.return_value = None
    similar.classify.return_value = CategorizationResult(
        category=Category.PHARMACY, confidence=0.8, match_type=MatchType.FUZZY
    )
    res = service.categorize(t)
    assert res.category == Category.PHARMACY
    keywords.classify.assert_not_called()

    # Case 5: keywords
    similar.classify.return_value = None
    keywords.classify.return_value = CategorizationResult(
        category=Category.RESTAURANT, confidence=0.7, match_type=MatchType.KEYWORD
    )
    res = service.categorize(t)
    assert res.category == Category.RESTAURANT

    # Case 6: nothing matches
    keywords.classify.return_value = None
    res = service.categorize(t)
    assert res.category == Category.UNCATEGORIZED
    assert res.confidence == 0.0
    assert res.match_type == MatchType.DEFAULT


def test_exact_merchant_match():
    res = CategorizerService().categorize(_tx(merchant="Juan Valdez S.A.S."))
    assert res.category == Category.COFFEE
    assert res.confidence == 1.0
    assert res.match_type == MatchType.EXACT


def test_keyword_match_on_longer_merchant():
    res = CategorizerService().categorize(_tx(merchant="CARULLA CALLE 85 BOGOTA"))
    assert res.category == Category.GROCERIES
    assert res.confidence == 0.7
    assert res.match_type == MatchType.KEYWORD


@pytest.mark.parametrize(
    "merchant, category",
    [
        ("CARULA", Category.GROCERIES),
        ("STARBUCK", Category.COFFEE),
        ("Juan Valdes", Category.COFFEE),
    ],
)
def test_misspelled_merchant_is_similar_match(merchant, category):
    res = CategorizerService().categorize(_tx(merchant=merchant))
    assert res.category == category
    assert res.match_type == MatchType.FUZZY
    assert 0.75 < res.confidence < 0.9


def test_shortened_merchant_resolves_to_containing_name():
    res = CategorizerService().categorize(_tx(merchant="MAS POR MENOS"))
    assert res.category == Category.GROCERIES
    assert res.confidence == 0.9
    assert res.match_type == MatchType.FUZZY


def test_short_names_are_not_expanded():
    res = CategorizerService().categorize(_tx(merchant="EPS"))
    assert res.match_type == MatchType.DEFAULT


def test_keyword_match_on_description():
    res = CategorizerService().categorize(_tx(merchant="LOCAL 22", description="Restaurante"))
    assert res.category == Category.RESTAURANT
    assert res.match_type == MatchType.KEYWORD


def test_unknown_merchant_is_uncategorized():
    res = CategorizerService().categorize(_tx(merchant="FERRETERIA LUNA"))
    assert res.category == Category.UNCATEGORIZED
    assert res.match_type == MatchType.DEFAULT


def test_user_rule_beats_keywords_but_not_exact(tmp_path):
    rule_store = JsonRuleStore(str(tmp_path / "rules.json"))
    rule_store.save(UserCategorizationRule(
        name="Exito is restaurant",
        conditions=[MerchantContains(keyword="exito")],
        category=Category.RESTAURANT,
    ))
    service = CategorizerService(rule_store=rule_store)

    res = service.categorize(_tx(merchant="ALMACEN EXITO"))
    assert res.category == Category.RESTAURANT
    assert res.match_type == MatchType.USER_RULE

    res = service.categorize(_tx(merchant="EXITO"))
    assert res.match_type == MatchType.EXACT


def test_learned_pattern_layer(tmp_path):
    pattern_store = JsonPatternStore(str(tmp_path / "patterns.json"))
    pattern_store.save(LearnedBankPattern(
        bank_name="MiBanco",
        sender_ids=["MiBanco"],
        inferred_pattern=InferredPattern(segments=[
            FixedText(text="Compra por "),
            Variable(field_type=FieldType.AMOUNT),
            FixedText(text=" en "),
            Variable(field_type=FieldType.MERCHANT),
        ]),
        default_category=Category.PHARMACY,
    ))
    matcher = FuzzyPatternMatcher(min_confidence=0.65, fuzzy_text_threshold=0.75, scan_window=100)
    service = CategorizerService(pattern_store=pattern_store, matcher=matcher)
    t = _tx(merchant="FERRETERIA LUNA", raw="Compra por $10.000 en FERRETERIA LUNA", bank_name="MiBanco")

    res = service.categorize(t, sender_id="MiBanco")
    assert res.category == Category.PHARMACY
    assert res.match_type == MatchType.FUZZY

    res = service.categorize(t, sender_id="OtroBanco")
    assert res.match_type == MatchType.DEFAULT


def test_apply_user_correction_marks_record():
    categorized = CategorizerService().categorize(_tx(merchant="FERRETERIA LUNA"))
    corrected = CategorizerService().apply_user_correction(
        categorized, category=Category.GAS, transaction_type=TransactionType.WITHDRAWAL
    )

    assert corrected.user_corrected
    assert corrected.category == Category.GAS
    assert corrected.confidence == 1.0
    assert corrected.match_type == MatchType.USER_RULE
    assert corrected.transaction.type == TransactionType.WITHDRAWAL
    assert not categorized.user_corrected


def test_learn_rule_persists(tmp_path):
    rule_store = JsonRuleStore(str(tmp_path / "rules.json"))
    service = CategorizerService(rule_store=rule_store)
    examples = [
        CategorizedTransaction(
            transaction=_tx(merchant="FERRETERIA LUNA", sender_id="MiBanco"),
            category=Category.UNCATEGORIZED,
            confidence=0.0,
            match_type=MatchType.DEFAULT,
        )
        for _ in range(2)
    ]

    rule = service.learn_rule(examples, Category.UTILITIES)
    assert rule is not None
    assert rule_store.get(rule.id) == rule

    res = service.categorize(_tx(merchant="Ferreteria  Luna", sender_id="MiBanco"))
    assert res.category == Category.UTILITIES
    assert res.match_type == MatchType.USER_RULE


def test_categorize_all():
    results = CategorizerService().categorize_all([_tx(merchant="EXITO"), _tx(merchant="FERRETERIA LUNA")])
    assert [r.category for r in results] == [Category.GROCERIES, Category.UNCATEGORIZED]
