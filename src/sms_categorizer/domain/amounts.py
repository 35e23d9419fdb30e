"""
Locale-aware amount parsing for bank notifications.

Colombian messages write ``$1.234.567,89`` while others use ``1,234,567.89``.
A lone separator is read as decimal only when exactly two characters follow
its last occurrence; otherwise it groups thousands.
"""
import re
from collections import Counter
from collections.abc import Iterable

from sms_categorizer.models import AmountFormat, CurrencyPosition

# Longest tokens first so "R$" wins over "$".
CURRENCY_SYMBOLS = ("R$", "USD", "COP", "€", "£", "$")

_CURRENCY_RE = re.compile(r"R\$|USD|COP|€|£|\$", re.IGNORECASE)
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_AMOUNT_TOKEN_RE = re.compile(r"\$?\s*\d[\d.,]*")


def normalize_amount(text: str | None) -> float | None:
    if text is None:
        return None
    cleaned = _CURRENCY_RE.sub("", text)
    cleaned = "".join(cleaned.split()).rstrip(".,")
    if not cleaned:
        return None

    last_dot = cleaned.rfind(".")
    last_comma = cleaned.rfind(",")

    if last_dot < 0 and last_comma < 0:
        candidate = cleaned
    elif last_comma < 0:
        candidate = _single_separator(cleaned, ".", last_dot)
    elif last_dot < 0:
        candidate = _single_separator(cleaned, ",", last_comma)
    elif last_dot > last_comma:
        candidate = cleaned.replace(",", "")
    else:
        candidate = cleaned.replace(".", "").replace(",", ".")

    if not _NUMBER_RE.fullmatch(candidate):
        return None
    return float(candidate)


def _single_separator(cleaned: str, separator: str, last_index: int) -> str:
    if len(cleaned) - last_index == 3:
        head, tail = cleaned[:last_index], cleaned[last_index + 1:]
        return f"{head.replace(separator, '')}.{tail}"
    return cleaned.replace(separator, "")


def extract_amount(text: str | None) -> float | None:
    """Return the first amount-looking token in free text that parses."""
    if not text:
        return None
    for match in _AMOUNT_TOKEN_RE.finditer(text):
        value = normalize_amount(match.group(0))
        if value is not None:
            return value
    return None


def _decimal_vote(sample: str) -> str | None:
    digits = "".join(_CURRENCY_RE.sub("", sample).split()).rstrip(".,")
    last_dot = digits.rfind(".")
    last_comma = digits.rfind(",")
    if last_dot >= 0 and last_comma >= 0:
        return "." if last_dot > last_comma else ","
    for separator, index in ((".", last_dot), (",", last_comma)):
        if index < 0:
            continue
        if len(digits) - index == 3:
            return separator
        # Three trailing digits means the separator groups thousands.
        return "," if separator == "." else "."
    return None


def detect_amount_format(samples: Iterable[str]) -> AmountFormat:
    samples = [sample for sample in samples if sample and sample.strip()]

    votes = Counter(vote for vote in map(_decimal_vote, samples) if vote)
    decimal = ","
    if votes and votes["."] > votes[","]:
        decimal = "."
    thousands = "," if decimal == "." else "."

    symbol: str | None = None
    position = CurrencyPosition.NONE
    for candidate in CURRENCY_SYMBOLS:
        holder = next((s for s in samples if candidate.lower() in s.lower()), None)
        if holder is None:
            continue
        symbol = candidate
        symbol_at = holder.lower().find(candidate.lower())
        first_digit = next((i for i, ch in enumerate(holder) if ch.isdigit()), len(holder))
        position = CurrencyPosition.BEFORE if symbol_at < first_digit else CurrencyPosition.AFTER
        break

    return AmountFormat(
        thousands_separator=thousands,
        decimal_separator=decimal,
        currency_symbol=symbol,
        currency_position=position,
    )


def format_amount(value: float, amount_format: AmountFormat | None = None) -> str:
    """Render ``value`` so that ``normalize_amount`` reads it back unchanged.

    Round-trips whole amounts and amounts with two fractional digits.
    """
    if value < 0:
        raise ValueError("amounts are non-negative")
    fmt = amount_format or AmountFormat()
    if fmt.thousands_separator == fmt.decimal_separator:
        raise ValueError("thousands and decimal separators must differ")

    whole, fraction = f"{value:.2f}".split(".")
    groups = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    number = fmt.thousands_separator.join(groups)
    if fraction != "00":
        number = f"{number}{fmt.decimal_separator}{fraction}"

    symbol = fmt.currency_symbol
    if not symbol or fmt.currency_position == CurrencyPosition.NONE:
        return number
    gap = " " if symbol.isalpha() else ""
    if fmt.currency_position == CurrencyPosition.BEFORE:
        return f"{symbol}{gap}{number}"
    return f"{number}{gap}{symbol}"
