import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sms_categorizer.api.routes import categorize, parse, patterns, rules, teaching, transactions
from sms_categorizer.core import settings
from sms_categorizer.logger import get_logger, setup_logging
from sms_categorizer.manager import CategorizerService
from sms_categorizer.parsers.registry import default_registry
from sms_categorizer.patterns.inference import PatternInferenceEngine
from sms_categorizer.patterns.matcher import FuzzyPatternMatcher
from sms_categorizer.services.categorization import CategorizationPipeline
from sms_categorizer.services.ingest import InboxIngestor
from sms_categorizer.services.teaching import TeachingSessionRegistry
from sms_categorizer.storage.json_store import JsonPatternStore, JsonRuleStore
from sms_categorizer.storage.memory import InMemoryTransactionStore, JsonInboxReader

logger = get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        matcher = FuzzyPatternMatcher()
        pattern_store = JsonPatternStore(os.path.join(settings.DATA_DIR, "patterns.json"))
        rule_store = JsonRuleStore(os.path.join(settings.DATA_DIR, "rules.json"))
        transaction_store = InMemoryTransactionStore()

        service = CategorizerService(pattern_store=pattern_store, rule_store=rule_store, matcher=matcher)
        pipeline = CategorizationPipeline(
            service=service,
            registry=default_registry,
            pattern_store=pattern_store,
            matcher=matcher,
        )

        ingestor = None
        if settings.INBOX_PATH:
            ingestor = InboxIngestor(
                reader=JsonInboxReader(settings.INBOX_PATH),
                pipeline=pipeline,
                transaction_store=transaction_store,
                pattern_store=pattern_store,
            )
        else:
            logger.info("INBOX_PATH not set. Inbox ingestion will be disabled.")

        app.state.registry = default_registry
        app.state.matcher = matcher
        app.state.inference_engine = PatternInferenceEngine(matcher)
        app.state.pattern_store = pattern_store
        app.state.rule_store = rule_store
        app.state.transaction_store = transaction_store
        app.state.service = service
        app.state.pipeline = pipeline
        app.state.ingestor = ingestor
        app.state.teaching_sessions = TeachingSessionRegistry(app.state.inference_engine)

        logger.info(
            "Services initialized. Banks: %s, learned patterns: %s, rules: %s",
            ", ".join(default_registry.supported_banks()),
            len(pattern_store.all()),
            len(rule_store.all()),
        )
        yield
        logger.info("Service shutting down.")

    app = FastAPI(title="SMS Categorizer", lifespan=lifespan)

    app.include_router(parse.router)
    app.include_router(categorize.router)
    app.include_router(patterns.router)
    app.include_router(rules.router)
    app.include_router(teaching.router)
    app.include_router(transactions.router)

    return app


app = create_app()
