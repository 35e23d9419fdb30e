import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends

from sms_categorizer.api.dependencies import get_service
from sms_categorizer.api.schemas import CategorizeRequest
from sms_categorizer.manager import CategorizerService
from sms_categorizer.models import CategorizedTransaction, Category, PrimaryCategory

router = APIRouter()


@router.post("/categorize", response_model=CategorizedTransaction)
async def categorize_transaction(
    req: CategorizeRequest,
    service: Annotated[CategorizerService, Depends(get_service)],
) -> CategorizedTransaction:
    return await asyncio.to_thread(service.categorize, req.transaction, req.sender_id)


@router.get("/categories")
async def get_categories() -> list[dict]:
    groups = []
    for primary in PrimaryCategory:
        members = [category for category in Category if category.primary_category == primary]
        if not members:
            continue
        groups.append({
            "primary": primary.value,
            "display_name": primary.display_name,
            "categories": [
                {
                    "name": category.value,
                    "display_name": category.display_name,
                    "exclude_from_spending": category.exclude_from_spending,
                }
                for category in members
            ],
        })
    return groups
