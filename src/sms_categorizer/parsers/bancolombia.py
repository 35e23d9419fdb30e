import re
from datetime import datetime

from sms_categorizer.models import TransactionInfo, TransactionType
from sms_categorizer.parsers.base import BankParser, contains_any, find_balance, first_amount

_CARD = re.compile(r"(?:TC|TD|tarjeta|\*)\s*\*?(\d{4})", re.IGNORECASE)
_MERCHANT = re.compile(r"\ben\s+([^.$]+)", re.IGNORECASE)
_RECIPIENT = re.compile(r"\ba\s+(?:cuenta\s+)?([^.$]+)", re.IGNORECASE)
_SENDER = re.compile(r"\b(?:de|desde)\s+([A-Za-zÁÉÍÓÚÑáéíóúñ][^.$]*?)(?=\s+en\s|[.$]|$)", re.IGNORECASE)
_REFERENCE = re.compile(r"\b(?:ref|referencia)\b[.:\s]*(\w+)", re.IGNORECASE)


class BancolombiaParser(BankParser):
    """
    Bancolombia notifications, e.g.
    ``Compra por $150.000 con TC *1234 en ALMACEN EXITO. Consulte saldo: $500.000``.
    """

    bank_name = "Bancolombia"
    sender_ids = ("Bancolombia", "85432")
    trailing_noise = re.compile(r"\s*(?:Consulte|Saldo).*$", re.IGNORECASE)

    def parse(self, body: str, timestamp: datetime) -> TransactionInfo | None:
        amount = first_amount(body)
        if amount is None:
            return None
        lower = body.lower()
        tx_type = self._transaction_type(lower)
        if tx_type is None:
            return None

        merchant, description = self._merchant_and_description(body, lower, tx_type)
        card = _CARD.search(body)
        reference = _REFERENCE.search(body)
        return self._build(
            body,
            timestamp,
            tx_type,
            amount,
            balance=find_balance(body),
            card_last4=card.group(1) if card else None,
            merchant=merchant,
            description=description,
            reference=reference.group(1) if reference else None,
        )

    @staticmethod
    def _transaction_type(lower: str) -> TransactionType | None:
        if "compra" in lower or "pago" in lower:
            return TransactionType.DEBIT
        if "retiro" in lower:
            return TransactionType.WITHDRAWAL
        if "transferencia" in lower:
            if contains_any(lower, "recibiste", "le consignaron"):
                return TransactionType.CREDIT
            return TransactionType.TRANSFER
        if contains_any(lower, "consignación", "consignacion", "abono"):
            return TransactionType.CREDIT
        if contains_any(lower, "débito", "debito"):
            return TransactionType.DEBIT
        return None

    def _merchant_and_description(
        self, body: str, lower: str, tx_type: TransactionType
    ) -> tuple[str | None, str]:
        if tx_type == TransactionType.DEBIT:
            return self.find_field(_MERCHANT, body), "Compra" if "compra" in lower else "Pago"
        if tx_type == TransactionType.WITHDRAWAL:
            return self.find_field(_MERCHANT, body), "Retiro"
        if tx_type == TransactionType.TRANSFER:
            return self.find_field(_RECIPIENT, body), "Transferencia enviada"
        sender = self.find_field(_SENDER, body)
        if contains_any(lower, "consignación", "consignacion", "consignaron"):
            return sender, "Consignación"
        if "transferencia" in lower:
            return sender, "Transferencia recibida"
        return sender, "Abono"
