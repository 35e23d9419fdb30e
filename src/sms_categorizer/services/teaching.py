"""
Teaching workflow: the user marks fields in two or more messages from a bank
the parsers do not know, a pattern is inferred from them and saved as a
LearnedBankPattern.

Every operation validates the current step and its inputs. On a violated
precondition the session keeps its step, stores a readable message in
``error`` and returns ``False``.
"""
import threading
from enum import Enum

from pydantic import ValidationError

from sms_categorizer.logger import get_logger
from sms_categorizer.models import (
    Category,
    FieldSelection,
    FieldType,
    InferredPattern,
    LearnedBankPattern,
    SmsMessage,
    TeachingExample,
    new_id,
)
from sms_categorizer.patterns.inference import PatternInferenceEngine, PatternInferenceError

logger = get_logger(__name__)


class TeachingStep(str, Enum):
    SELECT_SMS = "SELECT_SMS"
    SELECT_AMOUNT = "SELECT_AMOUNT"
    SELECT_MERCHANT = "SELECT_MERCHANT"
    SELECT_OPTIONAL_FIELDS = "SELECT_OPTIONAL_FIELDS"
    ADD_MORE_EXAMPLES = "ADD_MORE_EXAMPLES"
    REVIEW_PATTERN = "REVIEW_PATTERN"
    SET_CATEGORY = "SET_CATEGORY"
    DONE = "DONE"


SELECTION_STEPS = frozenset({
    TeachingStep.SELECT_AMOUNT,
    TeachingStep.SELECT_MERCHANT,
    TeachingStep.SELECT_OPTIONAL_FIELDS,
})

_NEXT_SELECTION_STEP = {
    TeachingStep.SELECT_AMOUNT: TeachingStep.SELECT_MERCHANT,
    TeachingStep.SELECT_MERCHANT: TeachingStep.SELECT_OPTIONAL_FIELDS,
    TeachingStep.SELECT_OPTIONAL_FIELDS: TeachingStep.SELECT_OPTIONAL_FIELDS,
}

MIN_EXAMPLES = 2
MAX_OPEN_SESSIONS = 50


class TeachingSession:
    """One teaching conversation. Callers that share a session hold ``lock`` around each action."""

    def __init__(self, engine: PatternInferenceEngine | None = None, session_id: str | None = None):
        self.id = session_id or new_id()
        self.engine = engine or PatternInferenceEngine()
        self.lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        self.step = TeachingStep.SELECT_SMS
        self.current_message: SmsMessage | None = None
        self.current_selections: list[FieldSelection] = []
        self.examples: list[TeachingExample] = []
        self.inferred_pattern: InferredPattern | None = None
        self.category: Category | None = None
        self.suggested_bank_name = ""
        self.learned_pattern: LearnedBankPattern | None = None
        self.error: str | None = None

    def _fail(self, message: str) -> bool:
        self.error = message
        logger.debug("[TEACH] Session %s rejected at %s: %s", self.id, self.step.value, message)
        return False

    def _ok(self, step: TeachingStep | None = None) -> bool:
        if step is not None:
            self.step = step
        self.error = None
        return True

    def _expect(self, *steps: TeachingStep) -> bool:
        if self.step in steps:
            return True
        expected = ", ".join(step.value for step in steps)
        self._fail(f"Not allowed at step {self.step.value} (expected {expected})")
        return False

    def _check_body(self, message: SmsMessage) -> bool:
        if not message.body.strip():
            return self._fail("Message body is empty")
        limit = self.engine.max_message_length
        if len(message.body) > limit:
            return self._fail(f"Message is longer than {limit} characters")
        return True

    def start(self, message: SmsMessage) -> bool:
        if not self._expect(TeachingStep.SELECT_SMS):
            return False
        if not self._check_body(message):
            return False
        self.current_message = message
        self.current_selections = []
        self.examples = []
        self.suggested_bank_name = message.sender
        logger.info("[TEACH] Session %s started with a message from %s", self.id, message.sender)
        return self._ok(TeachingStep.SELECT_AMOUNT)

    def select_text(self, field_type: FieldType, start: int, end: int) -> bool:
        if not self._expect(*SELECTION_STEPS):
            return False
        body = self.current_message.body
        if start < 0 or end > len(body) or start >= end:
            return self._fail(f"Selection [{start}, {end}) is outside the message (length {len(body)})")
        for existing in self.current_selections:
            if existing.field_type == field_type:
                return self._fail(f"{field_type.value} is already selected in this message")
            if start < existing.end_index and existing.start_index < end:
                return self._fail(f"Selection overlaps the {existing.field_type.value} selection")
        self.current_selections.append(
            FieldSelection(
                field_type=field_type,
                start_index=start,
                end_index=end,
                selected_text=body[start:end],
            )
        )
        return self._ok(_NEXT_SELECTION_STEP[self.step])

    def skip_field(self) -> bool:
        if not self._expect(*SELECTION_STEPS):
            return False
        if self.step == TeachingStep.SELECT_OPTIONAL_FIELDS:
            return self.confirm_example()
        return self._ok(_NEXT_SELECTION_STEP[self.step])

    def confirm_example(self) -> bool:
        if not self._expect(*SELECTION_STEPS):
            return False
        if not self.current_selections:
            return self._fail("No fields selected")
        try:
            example = TeachingExample(
                sms_body=self.current_message.body,
                sender_id=self.current_message.sender,
                selections=sorted(self.current_selections, key=lambda s: s.start_index),
            )
        except ValidationError as exc:
            return self._fail(f"Invalid example: {exc.errors()[0]['msg']}")
        self.examples.append(example)
        self.current_selections = []
        return self._ok(TeachingStep.ADD_MORE_EXAMPLES)

    def add_another_example(self, message: SmsMessage) -> bool:
        if not self._expect(TeachingStep.ADD_MORE_EXAMPLES):
            return False
        if not self._check_body(message):
            return False
        self.current_message = message
        self.current_selections = []
        self.inferred_pattern = None
        return self._ok(TeachingStep.SELECT_AMOUNT)

    def proceed_to_review(self) -> bool:
        if not self._expect(TeachingStep.ADD_MORE_EXAMPLES):
            return False
        if len(self.examples) < MIN_EXAMPLES:
            return self._fail(f"Need at least {MIN_EXAMPLES} examples to infer a pattern")
        try:
            self.inferred_pattern = self.engine.infer(self.examples)
        except PatternInferenceError as exc:
            return self._fail(exc.reason)
        return self._ok(TeachingStep.REVIEW_PATTERN)

    def set_category(self, category: Category) -> bool:
        if not self._expect(TeachingStep.REVIEW_PATTERN, TeachingStep.SET_CATEGORY):
            return False
        self.category = category
        return self._ok(TeachingStep.SET_CATEGORY)

    def finish(self, bank_name: str | None = None) -> LearnedBankPattern | None:
        """Build the learned pattern and close the session; ``None`` when not ready."""
        if not self._expect(TeachingStep.REVIEW_PATTERN, TeachingStep.SET_CATEGORY):
            return None
        if self.inferred_pattern is None:
            self._fail("No pattern to save")
            return None
        if len(self.examples) < MIN_EXAMPLES:
            self._fail(f"Need at least {MIN_EXAMPLES} examples to save a pattern")
            return None

        name = (bank_name or "").strip() or self.suggested_bank_name
        examples = [example.model_copy(update={"category": self.category}) for example in self.examples]
        self.learned_pattern = LearnedBankPattern(
            bank_name=name,
            sender_ids=list(dict.fromkeys(example.sender_id for example in self.examples)),
            examples=examples,
            inferred_pattern=self.inferred_pattern,
            default_category=self.category,
        )
        logger.info(
            "[TEACH] Session %s learned pattern %s for %s from %s examples",
            self.id,
            self.learned_pattern.id,
            name,
            len(examples),
        )
        self._ok(TeachingStep.DONE)
        return self.learned_pattern


class TeachingSessionRegistry:
    """Open teaching sessions by id."""

    def __init__(self, engine: PatternInferenceEngine | None = None, max_sessions: int = MAX_OPEN_SESSIONS):
        self.engine = engine or PatternInferenceEngine()
        self.max_sessions = max_sessions
        self._sessions: dict[str, TeachingSession] = {}
        self._lock = threading.Lock()

    def create(self) -> TeachingSession:
        """Open a session, dropping the oldest ones once ``max_sessions`` are open."""
        session = TeachingSession(self.engine)
        with self._lock:
            while len(self._sessions) >= self.max_sessions:
                oldest = next(iter(self._sessions))
                del self._sessions[oldest]
                logger.warning("[TEACH] Too many open sessions, dropped %s", oldest)
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> TeachingSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def discard(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)
