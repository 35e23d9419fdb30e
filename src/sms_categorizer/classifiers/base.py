from abc import ABC, abstractmethod

from sms_categorizer.models import CategorizationResult, TransactionInfo


class Classifier(ABC):
    @abstractmethod
    def classify(
        self, transaction: TransactionInfo, sender_id: str | None = None
    ) -> CategorizationResult | None:
        """Attempt to categorize the transaction."""
        pass
