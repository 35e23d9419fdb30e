"""
Keyword-driven fallback for senders no bank parser recognizes.

It never claims a sender; callers check ``can_parse_body`` first and only then
call ``parse``.
"""
import re
from datetime import datetime

from sms_categorizer.logger import get_logger, preview_message
from sms_categorizer.models import TransactionInfo, TransactionType
from sms_categorizer.parsers.base import BankParser, contains_any, parse_amount_token

logger = get_logger(__name__)

EXPENSE_KEYWORDS = (
    "compra", "compraste", "compró",
    "pago", "pagaste", "pagó", "pagado",
    "cobro", "cobraste", "cobró", "cobrado",
    "cargo", "cargado",
    "débito", "debito", "debitado", "debitó",
    "retiro", "retiraste", "retiró", "retirado",
    "transacción", "transaccion", "transf",
    "gastaste", "gastó", "gasto",
)

INCOME_KEYWORDS = (
    "recibiste", "recibió", "recibido",
    "consignación", "consignacion", "consignado",
    "abono", "abonado", "abonó",
    "depósito", "deposito", "depositado",
    "ingreso", "ingresado",
    "te pagaron", "le pagaron",
)

# Summaries, marketing, OTP codes and account alerts. Any hit rejects the message.
EXCLUSION_KEYWORDS = (
    "suman tus gastos",
    "suman tus ingresos",
    "resumen del mes",
    "resumen mensual",
    "resumen anual",
    "balance del mes",
    "balance anual",
    "#tuinforme",
    "tus informes",
    "tu informe",
    "aprovecha",
    "promoción",
    "promocion",
    "descuento especial",
    "nuevo beneficio",
    "tu clave dinámica",
    "tu clave dinamica",
    "cambio de clave",
    "actualiza tus datos",
    "encuesta",
    "código de verificación",
    "codigo de verificacion",
    "código otp",
    "codigo otp",
)
_YEAR_SUMMARY = re.compile(r"durante el \d{4}")

AMOUNT_PATTERNS = (
    re.compile(r"\$\s*([\d.,]+)"),
    re.compile(r"COP\s*([\d.,]+)", re.IGNORECASE),
    re.compile(r"(\d[\d.,]*)\s*COP", re.IGNORECASE),
    re.compile(r"por\s+(?:valor\s+de\s+)?\$?\s*([\d.,]+)", re.IGNORECASE),
    re.compile(r"de\s+\$\s*([\d.,]+)"),
)

MERCHANT_PATTERNS = (
    re.compile(r"\ben\s+([A-Z][A-Z0-9\s]{2,30}?)(?:\s+por|\s*[.,]|\s+el|\s+con|$)", re.IGNORECASE),
    re.compile(r"establecimiento\s+([A-Z][A-Z0-9\s]{2,30}?)(?:\s*[.,]|\s+por|$)", re.IGNORECASE),
    re.compile(r"comercio\s+([A-Z][A-Z0-9\s]{2,30}?)(?:\s*[.,]|\s+por|$)", re.IGNORECASE),
)

_CARD = re.compile(r"(?:tarjeta|tc|td|credencial|cuenta|\*)\s*\*?(\d{4})", re.IGNORECASE)


def infer_transaction_type(text: str) -> TransactionType:
    lower = text.lower()
    if contains_any(lower, *INCOME_KEYWORDS):
        return TransactionType.CREDIT
    if contains_any(lower, "retiro", "retiraste", "cajero", "atm"):
        return TransactionType.WITHDRAWAL
    if contains_any(lower, "transferencia", "transferiste", "transf"):
        return TransactionType.TRANSFER
    return TransactionType.DEBIT


class GenericParser(BankParser):
    bank_name = "Otro"
    sender_ids = ()

    def can_handle(self, sender_id: str | None) -> bool:
        return False

    def is_excluded(self, body: str) -> bool:
        lower = body.lower()
        return contains_any(lower, *EXCLUSION_KEYWORDS) or bool(_YEAR_SUMMARY.search(lower))

    def can_parse_body(self, body: str) -> bool:
        if not body:
            return False
        if self.is_excluded(body):
            logger.debug("[PARSE] Generic parser excluded: '%s'", preview_message(body))
            return False
        lower = body.lower()
        has_keyword = contains_any(lower, *EXPENSE_KEYWORDS) or contains_any(lower, *INCOME_KEYWORDS)
        return has_keyword and self._amount(body) is not None

    def parse(self, body: str, timestamp: datetime) -> TransactionInfo | None:
        if not self.can_parse_body(body):
            return None
        amount = self._amount(body)
        if amount is None:
            return None
        lower = body.lower()
        tx_type = infer_transaction_type(lower)
        card = _CARD.search(body)
        return self._build(
            body,
            timestamp,
            tx_type,
            amount,
            card_last4=card.group(1) if card else None,
            merchant=self._merchant(body),
            description=self._description(lower, tx_type),
        )

    @staticmethod
    def _amount(body: str) -> float | None:
        for pattern in AMOUNT_PATTERNS:
            match = pattern.search(body)
            if match:
                amount = parse_amount_token(match.group(1))
                if amount is not None:
                    return amount
        return None

    @staticmethod
    def _merchant(body: str) -> str | None:
        for pattern in MERCHANT_PATTERNS:
            match = pattern.search(body)
            if match:
                merchant = " ".join(match.group(1).split())
                if len(merchant) >= 2:
                    return merchant
        return None

    @staticmethod
    def _description(lower: str, tx_type: TransactionType) -> str:
        if "qr" in lower:
            return "Pago QR"
        if "pse" in lower:
            return "Pago PSE"
        if "nequi" in lower:
            return "Pago Nequi"
        if "daviplata" in lower:
            return "Pago Daviplata"
        if tx_type == TransactionType.WITHDRAWAL:
            return "Retiro"
        if tx_type == TransactionType.CREDIT:
            return "Ingreso"
        if tx_type == TransactionType.TRANSFER:
            return "Transferencia"
        return "Transacción"
