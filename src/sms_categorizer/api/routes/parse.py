from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends

from sms_categorizer.api.dependencies import get_pipeline, get_registry
from sms_categorizer.api.schemas import ParseRequest, ParseResponse
from sms_categorizer.logger import get_logger, preview_message
from sms_categorizer.parsers.registry import ParserRegistry
from sms_categorizer.services.categorization import CategorizationPipeline

logger = get_logger(__name__)

router = APIRouter()


@router.post("/parse", response_model=ParseResponse)
async def parse_message(
    req: ParseRequest,
    pipeline: Annotated[CategorizationPipeline, Depends(get_pipeline)],
) -> ParseResponse:
    logger.debug("[PARSE] Request from %s: '%s'", req.sender_id, preview_message(req.body))
    outcome = await pipeline.parse_async(
        req.sender_id,
        req.body,
        req.timestamp or datetime.now(),
        req.message_id,
    )
    if outcome.pattern_stats is not None and pipeline.pattern_store is not None:
        stats = outcome.pattern_stats
        pipeline.pattern_store.update_stats(stats.pattern_id, stats.success_count, stats.fail_count)
    return ParseResponse(matched=outcome.matched, source=outcome.source, result=outcome.categorized)


@router.get("/banks")
async def list_banks(
    registry: Annotated[ParserRegistry, Depends(get_registry)],
) -> list[dict]:
    return [
        {"bank_name": parser.bank_name, "sender_ids": list(parser.sender_ids)}
        for parser in registry.parsers
    ]
