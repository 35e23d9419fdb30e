import re
from datetime import datetime

from sms_categorizer.models import TransactionInfo, TransactionType
from sms_categorizer.parsers.base import BankParser, find_balance, first_amount

_DEBIT_WORDS = re.compile(r"(compra|d[eé]bito|pago|retiro|enviaste|pagaste)", re.IGNORECASE)
_CREDIT_WORDS = re.compile(
    r"(abono|consignaci[oó]n|dep[oó]sito|recibiste|te\s+lleg[oó]|recargaste)", re.IGNORECASE
)

_MERCHANT = re.compile(r"\ben\s+([^.]+)", re.IGNORECASE)
_RECIPIENT = re.compile(r"\ba\s+([^.]+)", re.IGNORECASE)
_SENDER = re.compile(r"\bde\s+([^.$][^.]*)", re.IGNORECASE)

# Specific verbs first; generic debit/credit words only when none of them appear.
_TYPE_CHAIN = (
    ("enviaste", TransactionType.TRANSFER),
    ("recibiste", TransactionType.CREDIT),
    ("pagaste", TransactionType.DEBIT),
    ("retiraste", TransactionType.WITHDRAWAL),
    ("recargaste", TransactionType.CREDIT),
    ("compra", TransactionType.DEBIT),
)


class NequiParser(BankParser):
    bank_name = "Nequi"
    sender_ids = ("Nequi", "85954")

    def parse(self, body: str, timestamp: datetime) -> TransactionInfo | None:
        amount = first_amount(body)
        if amount is None:
            return None
        lower = body.lower()
        tx_type = self._transaction_type(lower)
        if tx_type is None:
            return None

        merchant, description = self._merchant_and_description(body, lower, tx_type)
        return self._build(
            body,
            timestamp,
            tx_type,
            amount,
            balance=find_balance(body),
            merchant=merchant,
            description=description,
        )

    @staticmethod
    def _transaction_type(lower: str) -> TransactionType | None:
        for keyword, tx_type in _TYPE_CHAIN:
            if keyword in lower:
                return tx_type
        if _DEBIT_WORDS.search(lower):
            return TransactionType.DEBIT
        if _CREDIT_WORDS.search(lower):
            return TransactionType.CREDIT
        return None

    def _merchant_and_description(
        self, body: str, lower: str, tx_type: TransactionType
    ) -> tuple[str | None, str]:
        if tx_type == TransactionType.TRANSFER:
            description = "Transferencia enviada" if "enviaste" in lower else "Transferencia"
            return self.find_field(_RECIPIENT, body), description
        if tx_type == TransactionType.CREDIT:
            if "recibiste" in lower:
                return self.find_field(_SENDER, body), "Transferencia recibida"
            if "recargaste" in lower:
                return None, "Recarga Nequi"
            return None, "Crédito"
        if tx_type == TransactionType.WITHDRAWAL:
            return self.find_field(_MERCHANT, body), "Retiro Nequi"
        return self.find_field(_MERCHANT, body), "Pago Nequi"
