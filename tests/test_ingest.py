from datetime import datetime
from unittest.mock import MagicMock

import pytest

from sms_categorizer.manager import CategorizerService
from sms_categorizer.models import (
    Category,
    FieldType,
    FixedText,
    InferredPattern,
    LearnedBankPattern,
    SmsMessage,
    Variable,
)
from sms_categorizer.patterns.matcher import FuzzyPatternMatcher
from sms_categorizer.services.categorization import CategorizationPipeline
from sms_categorizer.services.ingest import InboxIngestor
from sms_categorizer.storage.base import InboxReader, InboxReadError
from sms_categorizer.storage.json_store import JsonPatternStore
from sms_categorizer.storage.memory import InMemoryTransactionStore, ListInboxReader


def _sms(message_id: str, sender: str, body: str, minute: int) -> SmsMessage:
    return SmsMessage(id=message_id, sender=sender, body=body, timestamp=datetime(2024, 6, 1, 9, minute))


MESSAGES = [
    _sms("1", "Bancolombia", "Compra por $150.000 con TC *1234 en ALMACEN EXITO. Consulte saldo: $500.000", 1),
    _sms("2", "85954", "Pagaste $12.500 en TOSTAO CAFE.", 2),
    _sms("3", "Amigo", "Hola, nos vemos a las 5", 3),
    _sms("4", "MiBanco", "Compra por $10.000 en FERRETERIA LUNA", 4),
]


@pytest.fixture
def pattern_store(tmp_path):
    store = JsonPatternStore(str(tmp_path / "patterns.json"))
    store.save(LearnedBankPattern(
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
    return store


@pytest.fixture
def ingestor(pattern_store):
    matcher = FuzzyPatternMatcher(min_confidence=0.65, fuzzy_text_threshold=0.75, scan_window=100)
    service = CategorizerService(pattern_store=pattern_store, matcher=matcher)
    pipeline = CategorizationPipeline(service, pattern_store=pattern_store, matcher=matcher)
    return InboxIngestor(
        ListInboxReader(MESSAGES),
        pipeline,
        InMemoryTransactionStore(),
        pattern_store=pattern_store,
        batch_limit=100,
    )


def test_ingest_stores_transactions(ingestor, pattern_store):
    result = ingestor.ingest()

    assert result["status"] == "success"
    assert result["read"] == 4
    assert result["stored"] == 3
    assert result["unparsed"] == 1
    assert result["skipped"] == 0
    assert ingestor.transaction_store.stored_message_ids() == {"1", "2", "4"}
    assert ingestor.get_status()["stage"] == "complete"

    pattern = pattern_store.all()[0]
    assert pattern.success_count == 1
    assert pattern.fail_count == 0


def test_second_ingest_skips_stored_messages(ingestor):
    ingestor.ingest()
    result = ingestor.ingest()

    assert result["stored"] == 0
    assert result["skipped"] == 3
    assert result["unparsed"] == 1


def test_ingest_keeps_user_corrections(ingestor):
    ingestor.ingest()
    ingestor.transaction_store.update_category("2", Category.RESTAURANT)
    ingestor.ingest()
    assert ingestor.transaction_store.get("2").category == Category.RESTAURANT


def test_limit_is_passed_to_reader(ingestor):
    result = ingestor.ingest(limit=2)
    assert result["read"] == 2
    assert ingestor.transaction_store.stored_message_ids() == {"4"}


def test_reader_failure_propagates(ingestor):
    reader = MagicMock(spec=InboxReader)
    reader.read_messages.side_effect = InboxReadError("permission denied")
    ingestor.reader = reader

    with pytest.raises(InboxReadError):
        ingestor.ingest()
    assert ingestor.get_status() == {"stage": "error"}
    assert ingestor.transaction_store.count() == 0


@pytest.mark.anyio
async def test_ingest_async(ingestor):
    result = await ingestor.ingest_async()
    assert result["stored"] == 3
