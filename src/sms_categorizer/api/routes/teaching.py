import asyncio
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from sms_categorizer.api.dependencies import get_pattern_store, get_teaching_sessions
from sms_categorizer.api.schemas import MessageInput, TeachingAction, TeachingSessionView
from sms_categorizer.logger import get_logger
from sms_categorizer.models import SmsMessage, new_id
from sms_categorizer.services.teaching import TeachingSession, TeachingSessionRegistry
from sms_categorizer.storage.base import PatternStore

logger = get_logger(__name__)

router = APIRouter(prefix="/teaching")


def _view(session: TeachingSession) -> TeachingSessionView:
    return TeachingSessionView(
        id=session.id,
        step=session.step.value,
        error=session.error,
        current_message=session.current_message.body if session.current_message else None,
        current_selections=[
            selection.model_dump(mode="json", by_alias=True) for selection in session.current_selections
        ],
        example_count=len(session.examples),
        inferred_pattern=session.inferred_pattern,
        category=session.category,
        suggested_bank_name=session.suggested_bank_name,
        learned_pattern=session.learned_pattern,
    )


def _message(data: MessageInput | None) -> SmsMessage:
    if data is None:
        raise HTTPException(status_code=400, detail="'message' is required for this action")
    return SmsMessage(
        id=data.id or new_id(),
        sender=data.sender,
        body=data.body,
        timestamp=data.timestamp or datetime.now(),
    )


def _session(registry: TeachingSessionRegistry, session_id: str) -> TeachingSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Teaching session not found")
    return session


@router.post("/sessions", response_model=TeachingSessionView)
async def create_session(
    registry: Annotated[TeachingSessionRegistry, Depends(get_teaching_sessions)],
) -> TeachingSessionView:
    return _view(registry.create())


def _locked_view(session: TeachingSession) -> TeachingSessionView:
    with session.lock:
        return _view(session)


@router.get("/sessions/{session_id}", response_model=TeachingSessionView)
async def get_session(
    session_id: str,
    registry: Annotated[TeachingSessionRegistry, Depends(get_teaching_sessions)],
) -> TeachingSessionView:
    return await asyncio.to_thread(_locked_view, _session(registry, session_id))


@router.delete("/sessions/{session_id}")
async def delete_session(
    session_id: str,
    registry: Annotated[TeachingSessionRegistry, Depends(get_teaching_sessions)],
) -> dict:
    if not registry.discard(session_id):
        raise HTTPException(status_code=404, detail="Teaching session not found")
    return {"status": "deleted"}


def _apply(session: TeachingSession, action: str, req: TeachingAction, store: PatternStore) -> bool:
    if action == "start":
        return session.start(_message(req.message))
    if action == "select":
        if req.field_type is None or req.start is None or req.end is None:
            raise HTTPException(status_code=400, detail="'field_type', 'start' and 'end' are required")
        return session.select_text(req.field_type, req.start, req.end)
    if action == "skip":
        return session.skip_field()
    if action == "confirm":
        return session.confirm_example()
    if action == "add-example":
        return session.add_another_example(_message(req.message))
    if action == "review":
        return session.proceed_to_review()
    if action == "category":
        if req.category is None:
            raise HTTPException(status_code=400, detail="'category' is required")
        return session.set_category(req.category)
    if action == "finish":
        pattern = session.finish(req.bank_name)
        if pattern is None:
            return False
        store.save(pattern)
        for example in pattern.examples:
            store.save_example(example)
        logger.info("[TEACH] Saved learned pattern %s for %s", pattern.id, pattern.bank_name)
        return True
    if action == "reset":
        session.reset()
        return True
    raise HTTPException(status_code=404, detail=f"Unknown teaching action '{action}'")


def _run_locked(
    session: TeachingSession, action: str, req: TeachingAction, store: PatternStore
) -> TeachingSessionView:
    with session.lock:
        if not _apply(session, action, req, store):
            raise HTTPException(status_code=422, detail=session.error)
        return _view(session)


@router.post("/sessions/{session_id}/{action}", response_model=TeachingSessionView)
async def run_action(
    session_id: str,
    action: str,
    req: TeachingAction,
    registry: Annotated[TeachingSessionRegistry, Depends(get_teaching_sessions)],
    store: Annotated[PatternStore, Depends(get_pattern_store)],
) -> TeachingSessionView:
    session = _session(registry, session_id)
    view = await asyncio.to_thread(_run_locked, session, action, req, store)
    if action == "finish":
        # A finished session has nothing left to do.
        registry.discard(session_id)
    return view
