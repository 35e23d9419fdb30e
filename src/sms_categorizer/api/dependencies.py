from fastapi import HTTPException, Request

from sms_categorizer.manager import CategorizerService
from sms_categorizer.parsers.registry import ParserRegistry
from sms_categorizer.patterns.inference import PatternInferenceEngine
from sms_categorizer.patterns.matcher import FuzzyPatternMatcher
from sms_categorizer.services.categorization import CategorizationPipeline
from sms_categorizer.services.ingest import InboxIngestor
from sms_categorizer.services.teaching import TeachingSessionRegistry
from sms_categorizer.storage.base import PatternStore, RuleStore, TransactionStore


def _require(request: Request, name: str, detail: str = "Service not initialized"):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=500, detail=detail)
    return value


def get_service(request: Request) -> CategorizerService:
    return _require(request, "service")


def get_pipeline(request: Request) -> CategorizationPipeline:
    return _require(request, "pipeline")


def get_registry(request: Request) -> ParserRegistry:
    return _require(request, "registry")


def get_matcher(request: Request) -> FuzzyPatternMatcher:
    return _require(request, "matcher")


def get_inference_engine(request: Request) -> PatternInferenceEngine:
    return _require(request, "inference_engine")


def get_pattern_store(request: Request) -> PatternStore:
    return _require(request, "pattern_store")


def get_rule_store(request: Request) -> RuleStore:
    return _require(request, "rule_store")


def get_transaction_store(request: Request) -> TransactionStore:
    return _require(request, "transaction_store")


def get_teaching_sessions(request: Request) -> TeachingSessionRegistry:
    return _require(request, "teaching_sessions")


def get_ingestor(request: Request) -> InboxIngestor:
    return _require(request, "ingestor", detail="Inbox not configured")
