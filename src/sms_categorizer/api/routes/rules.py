from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from sms_categorizer.api.dependencies import get_rule_store, get_service
from sms_categorizer.api.schemas import LearnRuleRequest
from sms_categorizer.logger import get_logger
from sms_categorizer.manager import CategorizerService
from sms_categorizer.models import UserCategorizationRule
from sms_categorizer.storage.base import RuleStore

logger = get_logger(__name__)

router = APIRouter()


@router.get("/rules", response_model=list[UserCategorizationRule])
async def list_rules(
    store: Annotated[RuleStore, Depends(get_rule_store)],
) -> list[UserCategorizationRule]:
    return store.all()


@router.get("/rules/{rule_id}", response_model=UserCategorizationRule)
async def get_rule(
    rule_id: str,
    store: Annotated[RuleStore, Depends(get_rule_store)],
) -> UserCategorizationRule:
    rule = store.get(rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule


@router.post("/rules", response_model=UserCategorizationRule)
async def save_rule(
    rule: UserCategorizationRule,
    store: Annotated[RuleStore, Depends(get_rule_store)],
) -> UserCategorizationRule:
    store.save(rule)
    logger.info("[RULE] Saved rule '%s' -> %s (priority %s)", rule.name, rule.category.value, rule.priority)
    return rule


@router.delete("/rules/{rule_id}")
async def delete_rule(
    rule_id: str,
    store: Annotated[RuleStore, Depends(get_rule_store)],
) -> dict[str, str]:
    if not store.delete(rule_id):
        raise HTTPException(status_code=404, detail="Rule not found")
    return {"status": "deleted"}


@router.post("/rules/learn", response_model=UserCategorizationRule)
async def learn_rule(
    req: LearnRuleRequest,
    service: Annotated[CategorizerService, Depends(get_service)],
) -> UserCategorizationRule:
    rule = service.learn_rule(req.transactions, req.category, name=req.name)
    if rule is None:
        raise HTTPException(status_code=422, detail="Need at least two examples sharing a merchant, keyword or sender")
    return rule
