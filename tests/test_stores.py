import json
from datetime import datetime

import pytest

from sms_categorizer.models import (
    AmountRange,
    CategorizedTransaction,
    Category,
    FieldType,
    FixedText,
    InferredPattern,
    LearnedBankPattern,
    MatchType,
    MerchantContains,
    TeachingExample,
    TransactionInfo,
    TransactionType,
    UserCategorizationRule,
    Variable,
)
from sms_categorizer.storage.base import InboxReadError
from sms_categorizer.storage.json_store import JsonPatternStore, JsonRuleStore
from sms_categorizer.storage.memory import InMemoryTransactionStore, JsonInboxReader


def _pattern(sender: str = "MiBanco") -> LearnedBankPattern:
    return LearnedBankPattern(
        bank_name="Mi Banco",
        sender_ids=[sender],
        inferred_pattern=InferredPattern(segments=[
            FixedText(text="Compra por "),
            Variable(field_type=FieldType.AMOUNT),
        ]),
    )


def _categorized(message_id: str | None, when: datetime, category=Category.GROCERIES, amount=1000.0):
    return CategorizedTransaction(
        transaction=TransactionInfo(
            type=TransactionType.DEBIT,
            amount=amount,
            bank_name="Nequi",
            timestamp=when,
            raw_message="Pagaste",
            message_id=message_id,
        ),
        category=category,
        confidence=0.7,
        match_type=MatchType.KEYWORD,
    )


class TestJsonPatternStore:
    def test_persists_camel_case_shape(self, tmp_path):
        path = tmp_path / "data" / "patterns.json"
        store = JsonPatternStore(str(path))
        pattern = _pattern()
        store.save(pattern)

        data = json.loads(path.read_text(encoding="utf-8"))
        saved = data["patterns"][0]
        assert saved["bankName"] == "Mi Banco"
        assert saved["senderIds"] == ["MiBanco"]
        assert saved["inferredPattern"]["segments"] == [
            {"type": "fixedText", "text": "Compra por ", "fuzzyAllowed": True},
            {"type": "variable", "fieldType": "AMOUNT"},
        ]

        reloaded = JsonPatternStore(str(path))
        assert reloaded.get(pattern.id) == pattern

    def test_by_sender_and_stats(self, tmp_path):
        store = JsonPatternStore(str(tmp_path / "patterns.json"))
        pattern = _pattern()
        store.save(pattern)

        assert store.by_sender("MIBANCO-891").id == pattern.id
        assert store.by_sender("Otro") is None

        assert store.update_stats(pattern.id, 3, 1)
        assert store.get(pattern.id).success_count == 3
        assert store.get(pattern.id).fail_count == 1
        assert not store.update_stats("missing", 1, 0)

    def test_delete(self, tmp_path):
        path = tmp_path / "patterns.json"
        store = JsonPatternStore(str(path))
        pattern = _pattern()
        store.save(pattern)

        assert store.delete(pattern.id)
        assert not store.delete(pattern.id)
        assert JsonPatternStore(str(path)).all() == []

    def test_examples_filtered_by_sender(self, tmp_path):
        store = JsonPatternStore(str(tmp_path / "patterns.json"))
        store.save_example(TeachingExample(sms_body="hola", sender_id="A"))
        store.save_example(TeachingExample(sms_body="chao", sender_id="B"))

        assert len(store.examples()) == 2
        assert [e.sms_body for e in store.examples("B")] == ["chao"]

    def test_invalid_entries_are_skipped(self, tmp_path):
        path = tmp_path / "patterns.json"
        valid = _pattern().model_dump(mode="json", by_alias=True)
        path.write_text(json.dumps({"patterns": [{"bankName": "broken"}, valid], "examples": [{}]}))

        store = JsonPatternStore(str(path))
        assert [p.id for p in store.all()] == [valid["id"]]
        assert store.examples() == []

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "patterns.json"
        path.write_text("{not json")
        assert JsonPatternStore(str(path)).all() == []


class TestJsonRuleStore:
    def test_round_trip_and_enabled(self, tmp_path):
        path = tmp_path / "rules.json"
        store = JsonRuleStore(str(path))
        active = UserCategorizationRule(
            name="Rappi",
            conditions=[MerchantContains(keyword="rappi"), AmountRange(max=50000.0)],
            category=Category.RESTAURANT,
        )
        paused = UserCategorizationRule(
            name="Paused",
            conditions=[MerchantContains(keyword="x")],
            category=Category.GAS,
            enabled=False,
        )
        store.save(active)
        store.save(paused)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["rules"][0]["conditions"][0] == {"type": "merchantContains", "keyword": "rappi"}

        reloaded = JsonRuleStore(str(path))
        assert reloaded.get(active.id) == active
        assert [r.id for r in reloaded.enabled()] == [active.id]

    def test_update_priority_and_delete(self, tmp_path):
        store = JsonRuleStore(str(tmp_path / "rules.json"))
        rule = UserCategorizationRule(
            name="Rappi", conditions=[MerchantContains(keyword="rappi")], category=Category.RESTAURANT
        )
        store.save(rule)

        assert store.update_priority(rule.id, 5)
        assert store.get(rule.id).priority == 5
        assert not store.update_priority("missing", 1)
        assert store.delete(rule.id)
        assert store.get(rule.id) is None


class TestInMemoryTransactionStore:
    def test_insert_and_order(self):
        store = InMemoryTransactionStore()
        store.insert(_categorized("a", datetime(2024, 1, 5)))
        store.insert(_categorized("b", datetime(2024, 2, 5)))

        assert [item.transaction.message_id for item in store.all()] == ["b", "a"]
        assert store.stored_message_ids() == {"a", "b"}
        assert store.count() == 2

    def test_missing_message_id_is_generated(self):
        store = InMemoryTransactionStore()
        assert store.insert(_categorized(None, datetime(2024, 1, 5)))
        assert store.all()[0].transaction.message_id

    def test_user_correction_is_never_overwritten(self):
        store = InMemoryTransactionStore()
        store.insert(_categorized("a", datetime(2024, 1, 5)))
        corrected = store.update_category("a", Category.PHARMACY)

        assert corrected.user_corrected
        assert not store.insert(_categorized("a", datetime(2024, 1, 5), category=Category.COFFEE))
        assert store.get("a").category == Category.PHARMACY

    def test_update_type(self):
        store = InMemoryTransactionStore()
        store.insert(_categorized("a", datetime(2024, 1, 5)))
        updated = store.update_type("a", TransactionType.WITHDRAWAL)

        assert updated.transaction.type == TransactionType.WITHDRAWAL
        assert updated.category == Category.GROCERIES
        assert store.update_type("missing", TransactionType.CREDIT) is None

    def test_by_date_range_is_half_open(self):
        store = InMemoryTransactionStore()
        store.insert(_categorized("jan", datetime(2024, 1, 31, 23, 59)))
        store.insert(_categorized("feb", datetime(2024, 2, 1)))

        items = store.by_date_range(datetime(2024, 1, 1), datetime(2024, 2, 1))
        assert [item.transaction.message_id for item in items] == ["jan"]

    def test_delete_all(self):
        store = InMemoryTransactionStore()
        store.insert_many([_categorized("a", datetime(2024, 1, 5)), _categorized("b", datetime(2024, 1, 6))])
        assert store.delete_all() == 2
        assert store.all() == []


class TestJsonInboxReader:
    def test_reads_newest_first_with_limit(self, tmp_path):
        path = tmp_path / "inbox.json"
        path.write_text(json.dumps([
            {"id": 1, "sender": "Nequi", "body": "viejo", "timestampMillis": 1700000000000},
            {"id": 2, "sender": "Nequi", "body": "nuevo", "timestampMillis": 1700000600000, "read": True},
            {"id": 3, "sender": "Nequi", "body": "medio", "timestampMillis": 1700000300000},
        ]))

        messages = JsonInboxReader(str(path)).read_messages(2)
        assert [m.body for m in messages] == ["nuevo", "medio"]
        assert messages[0].id == "2"
        assert messages[0].is_read

    def test_missing_file(self, tmp_path):
        with pytest.raises(InboxReadError, match="not found"):
            JsonInboxReader(str(tmp_path / "nope.json")).read_messages(10)

    def test_malformed_entry(self, tmp_path):
        path = tmp_path / "inbox.json"
        path.write_text(json.dumps([{"id": 1, "sender": "Nequi"}]))
        with pytest.raises(InboxReadError):
            JsonInboxReader(str(path)).read_messages(10)
