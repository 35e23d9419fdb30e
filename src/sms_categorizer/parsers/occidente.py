import re
from datetime import datetime

from sms_categorizer.models import TransactionInfo, TransactionType
from sms_categorizer.parsers.base import BankParser, contains_any, first_amount

_CARD = re.compile(r"(?:Credencial|tarjeta|\*)\s*\*?(\d{4})", re.IGNORECASE)
# Merchant names may contain "POR" themselves ("SUPERM MAS POR MENOS"), so anchor on "por $".
_MERCHANT = re.compile(r"\ben\s+(.+?)\s+por\s+\$")
_PLACE = re.compile(r"\ben\s+([^.$,]+)")

_DESCRIPTIONS = {
    TransactionType.DEBIT: "Compra",
    TransactionType.WITHDRAWAL: "Retiro",
    TransactionType.TRANSFER: "Transferencia",
    TransactionType.CREDIT: "Abono",
}


class BancoOccidenteParser(BankParser):
    """
    Banco de Occidente messages, e.g.
    ``Ud realizo una compra en SUPERM MAS POR MENOS C por $11.440.T. Credencial *4115``.
    """

    bank_name = "Banco de Occidente"
    sender_ids = ("85722", "Bco. Occidente", "BcoOccidente")

    def parse(self, body: str, timestamp: datetime) -> TransactionInfo | None:
        amount = first_amount(body)
        if amount is None:
            return None
        tx_type = self._transaction_type(body.lower())
        if tx_type is None:
            return None

        merchant = None
        if tx_type in (TransactionType.DEBIT, TransactionType.WITHDRAWAL):
            merchant = self.find_field(_MERCHANT, body) or self.find_field(_PLACE, body)
        card = _CARD.search(body)
        return self._build(
            body,
            timestamp,
            tx_type,
            amount,
            card_last4=card.group(1) if card else None,
            merchant=merchant,
            description=_DESCRIPTIONS[tx_type],
        )

    @staticmethod
    def _transaction_type(lower: str) -> TransactionType | None:
        if contains_any(lower, "compra", "pago", "pagaste", "pagó"):
            return TransactionType.DEBIT
        if contains_any(lower, "retiro", "retiraste"):
            return TransactionType.WITHDRAWAL
        if contains_any(lower, "transferencia", "transferiste"):
            if contains_any(lower, "recibiste", "recibió"):
                return TransactionType.CREDIT
            return TransactionType.TRANSFER
        if contains_any(lower, "consignación", "consignacion", "abono", "recibiste"):
            return TransactionType.CREDIT
        return None
