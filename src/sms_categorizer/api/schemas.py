from datetime import datetime

from pydantic import BaseModel, Field

from sms_categorizer.models import (
    CategorizedTransaction,
    Category,
    FieldType,
    InferredPattern,
    LearnedBankPattern,
    TeachingExample,
    TransactionInfo,
    TransactionType,
)


class ParseRequest(BaseModel):
    sender_id: str
    body: str
    timestamp: datetime | None = None
    message_id: str | None = None


class ParseResponse(BaseModel):
    matched: bool
    source: str | None = None
    result: CategorizedTransaction | None = None


class CategorizeRequest(BaseModel):
    transaction: TransactionInfo
    sender_id: str | None = None


class InferRequest(BaseModel):
    examples: list[TeachingExample]


class MatchRequest(BaseModel):
    body: str
    pattern: InferredPattern | None = None
    pattern_id: str | None = None


class LearnRuleRequest(BaseModel):
    transactions: list[CategorizedTransaction]
    category: Category
    name: str | None = None


class MessageInput(BaseModel):
    sender: str
    body: str
    id: str | None = None
    timestamp: datetime | None = None


class TeachingAction(BaseModel):
    message: MessageInput | None = None
    field_type: FieldType | None = None
    start: int | None = None
    end: int | None = None
    category: Category | None = None
    bank_name: str | None = None


class TeachingSessionView(BaseModel):
    id: str
    step: str
    error: str | None = None
    current_message: str | None = None
    current_selections: list[dict] = Field(default_factory=list)
    example_count: int = 0
    inferred_pattern: InferredPattern | None = None
    category: Category | None = None
    suggested_bank_name: str = ""
    learned_pattern: LearnedBankPattern | None = None


class TransactionUpdate(BaseModel):
    category: Category | None = None
    type: TransactionType | None = None


class IngestRequest(BaseModel):
    limit: int | None = Field(default=None, ge=1)
