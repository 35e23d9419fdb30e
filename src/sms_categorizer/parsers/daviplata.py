import re
from datetime import datetime

from sms_categorizer.models import TransactionInfo, TransactionType
from sms_categorizer.parsers.base import BankParser, find_balance, first_amount

_MERCHANT = re.compile(r"\ben\s+([^.$]+)", re.IGNORECASE)
_RECIPIENT = re.compile(r"\ba\s+(\d{10}|[^.$]+)", re.IGNORECASE)
_SENDER = re.compile(r"\b(?:desde|de)\s+(\d{10}|[^.$]+)", re.IGNORECASE)
_PHONE = re.compile(r"\d{10}")

_TYPE_CHAIN = (
    ("pagaste", TransactionType.DEBIT),
    ("compra", TransactionType.DEBIT),
    ("enviaste", TransactionType.TRANSFER),
    ("transferiste", TransactionType.TRANSFER),
    ("te enviaron", TransactionType.CREDIT),
    ("recibiste", TransactionType.CREDIT),
    ("retiraste", TransactionType.WITHDRAWAL),
    ("recargaste", TransactionType.CREDIT),
    ("recarga", TransactionType.CREDIT),
)


def mask_phone_number(value: str | None) -> str | None:
    """``3001234567`` -> ``300****567``; anything else is returned unchanged."""
    if value and _PHONE.fullmatch(value):
        return f"{value[:3]}****{value[-3:]}"
    return value


class DaviplataParser(BankParser):
    """Daviplata wallet messages such as ``Enviaste $50.000 a 3001234567. Saldo: $150.000``."""

    bank_name = "Daviplata"
    sender_ids = ("Daviplata", "Davivienda", "85594")

    def parse(self, body: str, timestamp: datetime) -> TransactionInfo | None:
        amount = first_amount(body)
        if amount is None:
            return None
        lower = body.lower()
        tx_type = next((t for keyword, t in _TYPE_CHAIN if keyword in lower), None)
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

    def _merchant_and_description(
        self, body: str, lower: str, tx_type: TransactionType
    ) -> tuple[str | None, str]:
        if tx_type == TransactionType.DEBIT:
            return self.find_field(_MERCHANT, body), "Pago Daviplata"
        if tx_type == TransactionType.TRANSFER:
            recipient = mask_phone_number(self.find_field(_RECIPIENT, body))
            if "transferiste" in lower:
                return recipient, "Transferencia de saldo"
            return recipient, "Transferencia enviada"
        if tx_type == TransactionType.WITHDRAWAL:
            return None, "Retiro Daviplata"
        if "te enviaron" in lower or "recibiste" in lower:
            return mask_phone_number(self.find_field(_SENDER, body)), "Transferencia recibida"
        if "recarga" in lower:
            return None, "Recarga Daviplata"
        return None, "Crédito"
