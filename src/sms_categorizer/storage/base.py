from abc import ABC, abstractmethod
from datetime import datetime

from sms_categorizer.domain.timefmt import naive
from sms_categorizer.models import (
    CategorizedTransaction,
    Category,
    LearnedBankPattern,
    MonthlyTotal,
    SmsMessage,
    TeachingExample,
    TransactionType,
    UserCategorizationRule,
)


class InboxReadError(RuntimeError):
    """The message source could not be read."""


class InboxReader(ABC):
    @abstractmethod
    def read_messages(self, limit: int) -> list[SmsMessage]:
        """Newest messages first, at most ``limit``."""


class TransactionStore(ABC):
    @abstractmethod
    def insert(self, item: CategorizedTransaction) -> bool:
        """Store or replace by message id. A user-corrected record is never replaced."""

    def insert_many(self, items: list[CategorizedTransaction]) -> int:
        return sum(1 for item in items if self.insert(item))

    @abstractmethod
    def get(self, message_id: str) -> CategorizedTransaction | None: ...

    @abstractmethod
    def all(self) -> list[CategorizedTransaction]: ...

    def by_date_range(self, start: datetime, end: datetime) -> list[CategorizedTransaction]:
        start, end = naive(start), naive(end)
        return [item for item in self.all() if start <= naive(item.transaction.timestamp) < end]

    @abstractmethod
    def stored_message_ids(self) -> set[str]: ...

    @abstractmethod
    def update_category(self, message_id: str, category: Category) -> CategorizedTransaction | None: ...

    @abstractmethod
    def update_type(
        self, message_id: str, transaction_type: TransactionType
    ) -> CategorizedTransaction | None: ...

    @abstractmethod
    def monthly_totals(self) -> list[MonthlyTotal]: ...

    def count(self) -> int:
        return len(self.all())

    @abstractmethod
    def delete_all(self) -> int: ...


class PatternStore(ABC):
    @abstractmethod
    def save(self, pattern: LearnedBankPattern) -> None: ...

    @abstractmethod
    def all(self) -> list[LearnedBankPattern]: ...

    @abstractmethod
    def get(self, pattern_id: str) -> LearnedBankPattern | None: ...

    def by_sender(self, sender_id: str) -> LearnedBankPattern | None:
        return next((p for p in self.all() if p.enabled and p.handles(sender_id)), None)

    @abstractmethod
    def update_stats(self, pattern_id: str, success_count: int, fail_count: int) -> bool: ...

    @abstractmethod
    def delete(self, pattern_id: str) -> bool: ...

    @abstractmethod
    def save_example(self, example: TeachingExample) -> None: ...

    @abstractmethod
    def examples(self, sender_id: str | None = None) -> list[TeachingExample]: ...


class RuleStore(ABC):
    @abstractmethod
    def save(self, rule: UserCategorizationRule) -> None: ...

    @abstractmethod
    def all(self) -> list[UserCategorizationRule]: ...

    def enabled(self) -> list[UserCategorizationRule]:
        return [rule for rule in self.all() if rule.enabled]

    @abstractmethod
    def get(self, rule_id: str) -> UserCategorizationRule | None: ...

    @abstractmethod
    def delete(self, rule_id: str) -> bool: ...

    @abstractmethod
    def update_priority(self, rule_id: str, priority: int) -> bool: ...
