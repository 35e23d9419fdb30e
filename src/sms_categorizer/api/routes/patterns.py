import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from sms_categorizer.api.dependencies import get_inference_engine, get_matcher, get_pattern_store
from sms_categorizer.api.schemas import InferRequest, MatchRequest
from sms_categorizer.logger import get_logger
from sms_categorizer.models import InferredPattern, LearnedBankPattern, PatternMatchResult
from sms_categorizer.patterns.inference import PatternInferenceEngine, PatternInferenceError
from sms_categorizer.patterns.matcher import FuzzyPatternMatcher
from sms_categorizer.storage.base import PatternStore

logger = get_logger(__name__)

router = APIRouter()


@router.get("/patterns", response_model=list[LearnedBankPattern])
async def list_patterns(
    store: Annotated[PatternStore, Depends(get_pattern_store)],
) -> list[LearnedBankPattern]:
    return store.all()


@router.get("/patterns/{pattern_id}", response_model=LearnedBankPattern)
async def get_pattern(
    pattern_id: str,
    store: Annotated[PatternStore, Depends(get_pattern_store)],
) -> LearnedBankPattern:
    pattern = store.get(pattern_id)
    if pattern is None:
        raise HTTPException(status_code=404, detail="Pattern not found")
    return pattern


@router.delete("/patterns/{pattern_id}")
async def delete_pattern(
    pattern_id: str,
    store: Annotated[PatternStore, Depends(get_pattern_store)],
) -> dict[str, str]:
    if not store.delete(pattern_id):
        raise HTTPException(status_code=404, detail="Pattern not found")
    logger.info("[INFER] Deleted learned pattern %s", pattern_id)
    return {"status": "deleted"}


@router.post("/patterns/infer", response_model=InferredPattern)
async def infer_pattern(
    req: InferRequest,
    engine: Annotated[PatternInferenceEngine, Depends(get_inference_engine)],
) -> InferredPattern:
    try:
        return await asyncio.to_thread(engine.infer, req.examples)
    except PatternInferenceError as exc:
        raise HTTPException(status_code=422, detail=exc.reason) from exc


@router.post("/patterns/match", response_model=PatternMatchResult | None)
async def match_pattern(
    req: MatchRequest,
    matcher: Annotated[FuzzyPatternMatcher, Depends(get_matcher)],
    store: Annotated[PatternStore, Depends(get_pattern_store)],
) -> PatternMatchResult | None:
    pattern = req.pattern
    if req.pattern_id is not None:
        learned = store.get(req.pattern_id)
        if learned is None:
            raise HTTPException(status_code=404, detail="Pattern not found")
        pattern = learned.inferred_pattern
    if pattern is None:
        raise HTTPException(status_code=400, detail="Provide a pattern or a pattern_id")
    return await asyncio.to_thread(matcher.match, req.body, pattern, req.pattern_id)
