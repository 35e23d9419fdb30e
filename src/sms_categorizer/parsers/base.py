import re
from abc import ABC, abstractmethod
from datetime import datetime

from sms_categorizer.domain.amounts import normalize_amount
from sms_categorizer.models import TransactionInfo, TransactionType

AMOUNT_PATTERN = re.compile(r"\$\s*([\d.,]+)")
BALANCE_PATTERN = re.compile(r"(?:saldo|disponible)[:\s]*\$?\s*([\d.,]+)", re.IGNORECASE)

_EDGE_NOISE = re.compile(r"^[.\s]+|[.\s]+$")
_TRAILING_LETTERS = re.compile(r"[A-Za-z]+$")


class BankParser(ABC):
    """Turns one bank's notification text into a ``TransactionInfo``."""

    bank_name: str = ""
    sender_ids: tuple[str, ...] = ()
    currency: str = "COP"

    # Clause stripped from the end of extracted names (e.g. a trailing balance notice).
    trailing_noise: re.Pattern[str] = re.compile(r"\s*Saldo.*$", re.IGNORECASE)

    def can_handle(self, sender_id: str | None) -> bool:
        if not sender_id:
            return False
        lowered = sender_id.lower()
        return any(known.lower() in lowered for known in self.sender_ids)

    @abstractmethod
    def parse(self, body: str, timestamp: datetime) -> TransactionInfo | None:
        """Return the parsed transaction or ``None`` when the body is not recognized."""

    def clean_field(self, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = _EDGE_NOISE.sub("", value)
        cleaned = self.trailing_noise.sub("", cleaned).strip()
        if len(cleaned) <= 1:
            return None
        return cleaned

    def find_field(self, pattern: re.Pattern[str], body: str) -> str | None:
        match = pattern.search(body)
        if not match:
            return None
        return self.clean_field(match.group(1))

    def _build(
        self,
        body: str,
        timestamp: datetime,
        tx_type: TransactionType,
        amount: float,
        **fields: object,
    ) -> TransactionInfo:
        return TransactionInfo(
            type=tx_type,
            amount=amount,
            currency=self.currency,
            bank_name=self.bank_name,
            timestamp=timestamp,
            raw_message=body,
            **fields,
        )


def parse_amount_token(token: str | None) -> float | None:
    """Normalize a captured amount, dropping artifacts like a trailing ``.T``."""
    if not token:
        return None
    value = normalize_amount(_TRAILING_LETTERS.sub("", token).rstrip("."))
    if value is None or value <= 0:
        return None
    return value


def first_amount(body: str, pattern: re.Pattern[str] = AMOUNT_PATTERN) -> float | None:
    match = pattern.search(body)
    if not match:
        return None
    return parse_amount_token(match.group(1))


def find_balance(body: str) -> float | None:
    match = BALANCE_PATTERN.search(body)
    if not match:
        return None
    return normalize_amount(match.group(1))


def contains_any(text: str, *keywords: str) -> bool:
    return any(keyword in text for keyword in keywords)
