from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def new_id() -> str:
    return uuid4().hex


class TransactionType(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"
    TRANSFER = "TRANSFER"
    WITHDRAWAL = "WITHDRAWAL"


SPENDING_TYPES = frozenset({TransactionType.DEBIT, TransactionType.WITHDRAWAL, TransactionType.TRANSFER})


class PrimaryCategory(str, Enum):
    FOOD_AND_DRINK = "FOOD_AND_DRINK"
    TRANSPORTATION = "TRANSPORTATION"
    RENT_AND_UTILITIES = "RENT_AND_UTILITIES"
    BANK_FEES = "BANK_FEES"
    MEDICAL = "MEDICAL"
    GENERAL_MERCHANDISE = "GENERAL_MERCHANDISE"
    INTERNAL_TRANSFERS = "INTERNAL_TRANSFERS"

    @property
    def display_name(self) -> str:
        return _PRIMARY_DISPLAY_NAMES[self]


_PRIMARY_DISPLAY_NAMES = {
    PrimaryCategory.FOOD_AND_DRINK: "Food & Drink",
    PrimaryCategory.TRANSPORTATION: "Transportation",
    PrimaryCategory.RENT_AND_UTILITIES: "Rent & Utilities",
    PrimaryCategory.BANK_FEES: "Bank Fees",
    PrimaryCategory.MEDICAL: "Medical",
    PrimaryCategory.GENERAL_MERCHANDISE: "General",
    PrimaryCategory.INTERNAL_TRANSFERS: "Transfers",
}


class Category(str, Enum):
    GROCERIES = "GROCERIES"
    RESTAURANT = "RESTAURANT"
    COFFEE = "COFFEE"
    GAS = "GAS"
    TAXI_RIDESHARE = "TAXI_RIDESHARE"
    TRANSMILENIO = "TRANSMILENIO"
    ADMINISTRACION = "ADMINISTRACION"
    UTILITIES = "UTILITIES"
    CUATRO_X_MIL = "CUATRO_X_MIL"
    EPS_HEALTH = "EPS_HEALTH"
    PHARMACY = "PHARMACY"
    CREDIT_CARD_PAYMENT = "CREDIT_CARD_PAYMENT"
    UNCATEGORIZED = "UNCATEGORIZED"

    @property
    def primary_category(self) -> PrimaryCategory:
        return _CATEGORY_INFO[self][0]

    @property
    def display_name(self) -> str:
        return _CATEGORY_INFO[self][1]

    @property
    def exclude_from_spending(self) -> bool:
        return _CATEGORY_INFO[self][2]


# category -> (primary category, display name, excluded from spending totals)
_CATEGORY_INFO = {
    Category.GROCERIES: (PrimaryCategory.FOOD_AND_DRINK, "Groceries", False),
    Category.RESTAURANT: (PrimaryCategory.FOOD_AND_DRINK, "Restaurants", False),
    Category.COFFEE: (PrimaryCategory.FOOD_AND_DRINK, "Coffee", False),
    Category.GAS: (PrimaryCategory.TRANSPORTATION, "Gas", False),
    Category.TAXI_RIDESHARE: (PrimaryCategory.TRANSPORTATION, "Taxi & Rideshare", False),
    Category.TRANSMILENIO: (PrimaryCategory.TRANSPORTATION, "TransMilenio", False),
    Category.ADMINISTRACION: (PrimaryCategory.RENT_AND_UTILITIES, "Administración", False),
    Category.UTILITIES: (PrimaryCategory.RENT_AND_UTILITIES, "Utilities", False),
    Category.CUATRO_X_MIL: (PrimaryCategory.BANK_FEES, "4x1000", False),
    Category.EPS_HEALTH: (PrimaryCategory.MEDICAL, "EPS & Health", False),
    Category.PHARMACY: (PrimaryCategory.MEDICAL, "Pharmacy", False),
    Category.CREDIT_CARD_PAYMENT: (PrimaryCategory.INTERNAL_TRANSFERS, "Credit Card Payment", True),
    Category.UNCATEGORIZED: (PrimaryCategory.GENERAL_MERCHANDISE, "Uncategorized", False),
}


class MatchType(str, Enum):
    EXACT = "EXACT"
    KEYWORD = "KEYWORD"
    FUZZY = "FUZZY"
    USER_RULE = "USER_RULE"
    DEFAULT = "DEFAULT"


class FieldType(str, Enum):
    AMOUNT = "AMOUNT"
    MERCHANT = "MERCHANT"
    BALANCE = "BALANCE"
    CARD_LAST_4 = "CARD_LAST_4"
    DATE = "DATE"
    TRANSACTION_TYPE = "TRANSACTION_TYPE"


class CurrencyPosition(str, Enum):
    BEFORE = "BEFORE"
    AFTER = "AFTER"
    NONE = "NONE"


class TransactionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: TransactionType
    amount: float = Field(gt=0)
    currency: str = "COP"
    balance: float | None = None
    card_last4: str | None = Field(default=None, pattern=r"^\d{4}$")
    merchant: str | None = None
    description: str | None = None
    reference: str | None = None
    bank_name: str
    timestamp: datetime
    raw_message: str
    message_id: str | None = None
    sender_id: str | None = None


class CategorizationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: Category
    confidence: float = Field(ge=0.0, le=1.0)
    match_type: MatchType


class CategorizedTransaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction: TransactionInfo
    category: Category
    confidence: float = Field(ge=0.0, le=1.0)
    match_type: MatchType
    user_corrected: bool = False


class SmsMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    sender: str
    body: str
    timestamp: datetime
    is_read: bool = False


# Persisted shapes below use camelCase keys on the wire.
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AmountFormat(CamelModel):
    model_config = ConfigDict(frozen=True)

    thousands_separator: str = "."
    decimal_separator: str = ","
    currency_symbol: str | None = "$"
    currency_position: CurrencyPosition = CurrencyPosition.BEFORE


class FixedText(CamelModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["fixedText"] = "fixedText"
    text: str
    fuzzy_allowed: bool = True


class Variable(CamelModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["variable"] = "variable"
    field_type: FieldType


PatternSegment = Annotated[Union[FixedText, Variable], Field(discriminator="type")]


class InferredPattern(CamelModel):
    segments: list[PatternSegment]
    amount_format: AmountFormat = Field(default_factory=AmountFormat)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("segments")
    @classmethod
    def _require_segments(cls, value: list) -> list:
        if not value:
            raise ValueError("pattern needs at least one segment")
        return value

    @property
    def field_types(self) -> list[FieldType]:
        return [segment.field_type for segment in self.segments if isinstance(segment, Variable)]


class FieldSelection(CamelModel):
    model_config = ConfigDict(frozen=True)

    field_type: FieldType
    start_index: int = Field(ge=0)
    end_index: int
    selected_text: str | None = None

    @model_validator(mode="after")
    def _check_order(self) -> "FieldSelection":
        if self.end_index <= self.start_index:
            raise ValueError("selection end must be after its start")
        return self


class TeachingExample(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    sms_body: str
    sender_id: str
    selections: list[FieldSelection] = Field(default_factory=list)
    category: Category | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def _check_bounds(self) -> "TeachingExample":
        for selection in self.selections:
            if selection.end_index > len(self.sms_body):
                raise ValueError(
                    f"{selection.field_type.value} selection "
                    f"[{selection.start_index}, {selection.end_index}) exceeds message length"
                )
        return self

    def text_of(self, selection: FieldSelection) -> str:
        return self.sms_body[selection.start_index:selection.end_index]


class LearnedBankPattern(CamelModel):
    id: str = Field(default_factory=new_id)
    bank_name: str
    sender_ids: list[str] = Field(min_length=1)
    examples: list[TeachingExample] = Field(default_factory=list)
    inferred_pattern: InferredPattern
    default_category: Category | None = None
    enabled: bool = True
    success_count: int = Field(default=0, ge=0)
    fail_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def handles(self, sender_id: str | None) -> bool:
        if not sender_id:
            return False
        lowered = sender_id.lower()
        return any(known.lower() in lowered for known in self.sender_ids if known)


class MerchantContains(CamelModel):
    type: Literal["merchantContains"] = "merchantContains"
    keyword: str


class MerchantEquals(CamelModel):
    type: Literal["merchantEquals"] = "merchantEquals"
    name: str


class SenderContains(CamelModel):
    type: Literal["senderContains"] = "senderContains"
    keyword: str


class AmountRange(CamelModel):
    type: Literal["amountRange"] = "amountRange"
    min: float | None = None
    max: float | None = None


class AnyKeyword(CamelModel):
    type: Literal["anyKeyword"] = "anyKeyword"
    keywords: list[str] = Field(min_length=1)


RuleCondition = Annotated[
    Union[MerchantContains, MerchantEquals, SenderContains, AmountRange, AnyKeyword],
    Field(discriminator="type"),
]


class UserCategorizationRule(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str
    conditions: list[RuleCondition] = Field(min_length=1)
    category: Category
    priority: int = 100
    enabled: bool = True
    learned_from_examples: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)


class PatternMatchResult(BaseModel):
    extracted_fields: dict[FieldType, str]
    confidence: float = Field(ge=0.0, le=1.0)
    pattern_id: str | None = None


class CategorySpending(BaseModel):
    category: Category
    display_name: str
    total: float
    count: int


class SpendingSummary(BaseModel):
    total: float
    count: int
    by_category: list[CategorySpending]


class MonthlySpendingSummary(BaseModel):
    year: int
    month: int
    income: float
    expenses: float
    net: float
    by_category: list[CategorySpending]


class MonthlyTotal(BaseModel):
    year: int
    month: int
    income: float
    expenses: float
