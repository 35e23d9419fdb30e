from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException

from sms_categorizer.api.dependencies import get_ingestor, get_transaction_store
from sms_categorizer.api.schemas import IngestRequest, TransactionUpdate
from sms_categorizer.domain.timefmt import month_bounds
from sms_categorizer.logger import get_logger
from sms_categorizer.models import (
    CategorizedTransaction,
    MonthlySpendingSummary,
    MonthlyTotal,
    SpendingSummary,
)
from sms_categorizer.services.ingest import InboxIngestor
from sms_categorizer.services.summary import monthly_summary, spending_by_category
from sms_categorizer.storage.base import InboxReadError, TransactionStore

logger = get_logger(__name__)

router = APIRouter()


@router.post("/ingest")
async def ingest_inbox(
    ingestor: Annotated[InboxIngestor, Depends(get_ingestor)],
    req: IngestRequest | None = None,
) -> dict[str, Any]:
    try:
        return await ingestor.ingest_async(req.limit if req else None)
    except InboxReadError as exc:
        logger.error("[INGEST] Inbox read failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/transactions", response_model=list[CategorizedTransaction])
async def list_transactions(
    store: Annotated[TransactionStore, Depends(get_transaction_store)],
    year: int | None = None,
    month: int | None = None,
) -> list[CategorizedTransaction]:
    if year is None and month is None:
        return store.all()
    if year is None or month is None:
        raise HTTPException(status_code=400, detail="Provide both 'year' and 'month'")
    try:
        start, end = month_bounds(year, month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return store.by_date_range(start, end)


@router.patch("/transactions/{message_id}", response_model=CategorizedTransaction)
async def update_transaction(
    message_id: str,
    req: TransactionUpdate,
    store: Annotated[TransactionStore, Depends(get_transaction_store)],
) -> CategorizedTransaction:
    if req.category is None and req.type is None:
        raise HTTPException(status_code=400, detail="Provide 'category' and/or 'type'")
    updated = None
    if req.category is not None:
        updated = store.update_category(message_id, req.category)
    if req.type is not None:
        updated = store.update_type(message_id, req.type)
    if updated is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    logger.info(
        "[CATEGORIZE] Transaction %s corrected by user -> %s / %s",
        message_id,
        updated.category.value,
        updated.transaction.type.value,
    )
    return updated


@router.get("/summary", response_model=SpendingSummary)
async def get_summary(
    store: Annotated[TransactionStore, Depends(get_transaction_store)],
    start: datetime | None = None,
    end: datetime | None = None,
) -> SpendingSummary:
    return spending_by_category(store.all(), start, end)


@router.get("/summary/monthly", response_model=MonthlySpendingSummary)
async def get_monthly_summary(
    store: Annotated[TransactionStore, Depends(get_transaction_store)],
    year: int,
    month: int,
) -> MonthlySpendingSummary:
    try:
        return monthly_summary(store.all(), year, month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/summary/months", response_model=list[MonthlyTotal])
async def get_monthly_totals(
    store: Annotated[TransactionStore, Depends(get_transaction_store)],
) -> list[MonthlyTotal]:
    return store.monthly_totals()
