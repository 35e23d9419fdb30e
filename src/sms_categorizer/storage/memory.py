import json
import os
import threading

from pydantic import ValidationError

from sms_categorizer.domain.timefmt import from_epoch_millis, naive
from sms_categorizer.domain.transactions import apply_user_correction
from sms_categorizer.logger import get_logger
from sms_categorizer.models import (
    CategorizedTransaction,
    Category,
    MonthlyTotal,
    SmsMessage,
    TransactionType,
    new_id,
)
from sms_categorizer.services.summary import monthly_totals

from .base import InboxReader, InboxReadError, TransactionStore

logger = get_logger(__name__)


class InMemoryTransactionStore(TransactionStore):
    def __init__(self) -> None:
        self._items: dict[str, CategorizedTransaction] = {}
        self._lock = threading.Lock()

    def insert(self, item: CategorizedTransaction) -> bool:
        message_id = item.transaction.message_id or new_id()
        if item.transaction.message_id is None:
            item = item.model_copy(
                update={"transaction": item.transaction.model_copy(update={"message_id": message_id})}
            )
        with self._lock:
            existing = self._items.get(message_id)
            if existing is not None and existing.user_corrected and not item.user_corrected:
                return False
            self._items[message_id] = item
        return True

    def get(self, message_id: str) -> CategorizedTransaction | None:
        return self._items.get(message_id)

    def all(self) -> list[CategorizedTransaction]:
        with self._lock:
            items = list(self._items.values())
        return sorted(items, key=lambda item: naive(item.transaction.timestamp), reverse=True)

    def stored_message_ids(self) -> set[str]:
        with self._lock:
            return set(self._items)

    def _correct(self, message_id: str, **changes) -> CategorizedTransaction | None:
        with self._lock:
            existing = self._items.get(message_id)
            if existing is None:
                return None
            corrected = apply_user_correction(existing, **changes)
            self._items[message_id] = corrected
            return corrected

    def update_category(self, message_id: str, category: Category) -> CategorizedTransaction | None:
        return self._correct(message_id, category=category)

    def update_type(
        self, message_id: str, transaction_type: TransactionType
    ) -> CategorizedTransaction | None:
        return self._correct(message_id, transaction_type=transaction_type)

    def monthly_totals(self) -> list[MonthlyTotal]:
        return monthly_totals(self.all())

    def count(self) -> int:
        return len(self._items)

    def delete_all(self) -> int:
        with self._lock:
            removed = len(self._items)
            self._items.clear()
        return removed


class ListInboxReader(InboxReader):
    def __init__(self, messages: list[SmsMessage] | None = None):
        self.messages = list(messages or [])

    def read_messages(self, limit: int) -> list[SmsMessage]:
        ordered = sorted(self.messages, key=lambda message: naive(message.timestamp), reverse=True)
        return ordered[:limit]


class JsonInboxReader(InboxReader):
    """
    Reads an exported inbox: a JSON list of
    ``{"id", "sender", "body", "timestampMillis", "read"}`` objects.
    """

    def __init__(self, data_path: str):
        self.data_path = data_path

    def read_messages(self, limit: int) -> list[SmsMessage]:
        if not os.path.exists(self.data_path):
            raise InboxReadError(f"Inbox file not found: {self.data_path}")
        try:
            with open(self.data_path, encoding="utf-8") as f:
                raw = json.load(f)
            messages = [
                SmsMessage(
                    id=str(entry["id"]),
                    sender=entry["sender"],
                    body=entry["body"],
                    timestamp=from_epoch_millis(entry["timestampMillis"]),
                    is_read=bool(entry.get("read", False)),
                )
                for entry in raw
            ]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValidationError) as exc:
            raise InboxReadError(f"Could not read inbox {self.data_path}: {exc}") from exc
        logger.debug("[INGEST] Read %s messages from %s", len(messages), self.data_path)
        return ListInboxReader(messages).read_messages(limit)
