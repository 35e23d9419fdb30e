import re
from datetime import datetime

from sms_categorizer.domain.amounts import extract_amount
from sms_categorizer.models import (
    CategorizedTransaction,
    Category,
    FieldType,
    LearnedBankPattern,
    MatchType,
    PatternMatchResult,
    TransactionInfo,
    TransactionType,
)
from sms_categorizer.parsers.generic import infer_transaction_type

_CARD_DIGITS = re.compile(r"\d{4}")


def build_transaction_from_match(
    result: PatternMatchResult,
    pattern: LearnedBankPattern,
    body: str,
    timestamp: datetime,
) -> TransactionInfo | None:
    """Turn fields extracted by a learned pattern into a transaction; ``None`` without an amount."""
    fields = result.extracted_fields
    amount = extract_amount(fields.get(FieldType.AMOUNT))
    if amount is None or amount <= 0:
        return None

    type_text = fields.get(FieldType.TRANSACTION_TYPE) or body
    card = _CARD_DIGITS.search(fields.get(FieldType.CARD_LAST_4) or "")
    merchant = fields.get(FieldType.MERCHANT)
    return TransactionInfo(
        type=infer_transaction_type(type_text),
        amount=amount,
        balance=extract_amount(fields.get(FieldType.BALANCE)),
        card_last4=card.group(0) if card else None,
        merchant=" ".join(merchant.split()) if merchant else None,
        description=fields.get(FieldType.TRANSACTION_TYPE),
        bank_name=pattern.bank_name,
        timestamp=timestamp,
        raw_message=body,
    )


def apply_user_correction(
    categorized: CategorizedTransaction,
    category: Category | None = None,
    transaction_type: TransactionType | None = None,
) -> CategorizedTransaction:
    """Copy carrying the user's category and/or type, marked as user-corrected."""
    transaction = categorized.transaction
    if transaction_type is not None and transaction_type != transaction.type:
        transaction = transaction.model_copy(update={"type": transaction_type})
    return categorized.model_copy(
        update={
            "transaction": transaction,
            "category": category if category is not None else categorized.category,
            "confidence": 1.0,
            "match_type": MatchType.USER_RULE,
            "user_corrected": True,
        }
    )
