"""
Applies a learned extraction template to a new message.

Fixed anchors are located left to right (exact first, then a bounded fuzzy
scan); each variable field spans from the cursor to the next anchor.
"""
import re
from dataclasses import dataclass

from sms_categorizer.core import settings
from sms_categorizer.domain.amounts import extract_amount
from sms_categorizer.domain.similarity import similarity
from sms_categorizer.logger import get_logger, preview_message
from sms_categorizer.models import (
    FieldType,
    FixedText,
    InferredPattern,
    PatternMatchResult,
    PatternSegment,
    Variable,
)

logger = get_logger(__name__)

_WHITESPACE_SPLIT = re.compile(r"(\s+)")
_AMOUNT_RUN = re.compile(r"[\d.,\s$€£]+")
_NAME_END = re.compile(r"[.;:\-\d]")
_CARD_DIGITS = re.compile(r"\d{4}")

MERCHANT_HEURISTIC_LENGTH = 30
DATE_HEURISTIC_LENGTH = 15
CARD_LENGTH = 4
LENGTH_SLACK = 2


@dataclass(frozen=True)
class AnchorHit:
    start: int
    end: int
    score: float


def fold_case(text: str) -> str:
    """Lowercase without changing length, so indices stay valid for the original."""
    folded = []
    for char in text:
        lowered = char.lower()
        folded.append(lowered if len(lowered) == 1 else char)
    return "".join(folded)


def _anchor_regex(text: str) -> re.Pattern[str]:
    parts = [
        r"\s+" if part.isspace() else re.escape(part)
        for part in _WHITESPACE_SPLIT.split(fold_case(text))
        if part
    ]
    return re.compile("".join(parts))


class FuzzyPatternMatcher:
    def __init__(
        self,
        min_confidence: float | None = None,
        fuzzy_text_threshold: float | None = None,
        scan_window: int | None = None,
    ) -> None:
        self.min_confidence = settings.FUZZY_MIN_CONFIDENCE if min_confidence is None else min_confidence
        self.fuzzy_text_threshold = (
            settings.FUZZY_TEXT_THRESHOLD if fuzzy_text_threshold is None else fuzzy_text_threshold
        )
        self.scan_window = settings.FUZZY_SCAN_WINDOW if scan_window is None else scan_window

    def match(
        self,
        body: str,
        pattern: InferredPattern,
        pattern_id: str | None = None,
    ) -> PatternMatchResult | None:
        if not body:
            return None
        folded = fold_case(body)
        segments = pattern.segments
        cursor = 0
        scores: list[float] = []
        fields: dict[FieldType, str] = {}
        pending: AnchorHit | None = None

        for index, segment in enumerate(segments):
            if isinstance(segment, FixedText):
                if not segment.text.strip():
                    scores.append(1.0)
                    continue
                hit = pending or self.find_anchor(folded, segment, cursor)
                pending = None
                if hit is None:
                    logger.debug("[MATCH] Anchor '%s' not found in '%s'", segment.text, preview_message(body))
                    return None
                cursor = hit.end
                scores.append(hit.score)
                continue

            next_segment = segments[index + 1] if index + 1 < len(segments) else None
            end, pending = self._field_end(body, folded, cursor, segment, next_segment)
            if end is None:
                return None
            value = body[cursor:end].strip()
            if not value or not self.is_valid(segment.field_type, value):
                logger.debug("[MATCH] Field %s rejected value '%s'", segment.field_type.value, value[:30])
                return None
            fields[segment.field_type] = value
            scores.append(1.0)
            cursor = end

        confidence = sum(scores) / len(scores)
        if confidence < self.min_confidence:
            logger.debug("[MATCH] Confidence %.2f below %.2f", confidence, self.min_confidence)
            return None
        return PatternMatchResult(
            extracted_fields=fields,
            confidence=min(confidence, 1.0),
            pattern_id=pattern_id,
        )

    def find_anchor(self, folded: str, segment: FixedText, start: int) -> AnchorHit | None:
        if start > len(folded):
            return None
        exact = _anchor_regex(segment.text).search(folded, start)
        if exact:
            return AnchorHit(exact.start(), exact.end(), 1.0)
        if not segment.fuzzy_allowed:
            return None
        return self._fuzzy_scan(folded, fold_case(segment.text), start)

    def _fuzzy_scan(self, folded: str, anchor: str, start: int) -> AnchorHit | None:
        best: AnchorHit | None = None
        best_gap = 0
        size = len(anchor)
        last_offset = min(start + self.scan_window, len(folded))
        for offset in range(start, last_offset):
            for length in range(max(1, size - LENGTH_SLACK), size + LENGTH_SLACK + 1):
                end = offset + length
                if end > len(folded):
                    break
                score = similarity(anchor, folded[offset:end])
                if score < self.fuzzy_text_threshold:
                    continue
                gap = abs(length - size)
                # Strictly better score wins; ties keep the earlier offset, then the closer length.
                if best is None or score > best.score or (
                    score == best.score and offset == best.start and gap < best_gap
                ):
                    best = AnchorHit(offset, end, score)
                    best_gap = gap
        return best

    def _field_end(
        self,
        body: str,
        folded: str,
        start: int,
        segment: Variable,
        next_segment: PatternSegment | None,
    ) -> tuple[int | None, AnchorHit | None]:
        if start >= len(body):
            return None, None
        if next_segment is None:
            return len(body), None
        if isinstance(next_segment, FixedText) and next_segment.text.strip():
            hit = self.find_anchor(folded, next_segment, start)
            if hit is None:
                return None, None
            return hit.start, hit
        return self.heuristic_end(body, start, segment.field_type), None

    @staticmethod
    def heuristic_end(body: str, start: int, field_type: FieldType) -> int:
        rest = body[start:]
        offset = len(rest) - len(rest.lstrip())
        if field_type in (FieldType.AMOUNT, FieldType.BALANCE):
            run = _AMOUNT_RUN.match(rest)
            return start + (run.end() if run else min(10, len(rest)))
        if field_type == FieldType.CARD_LAST_4:
            return min(len(body), start + offset + CARD_LENGTH)
        if field_type in (FieldType.MERCHANT, FieldType.TRANSACTION_TYPE):
            stop = _NAME_END.search(rest, offset)
            if stop:
                return start + stop.start()
            return start + min(offset + MERCHANT_HEURISTIC_LENGTH, len(rest))
        return start + min(offset + DATE_HEURISTIC_LENGTH, len(rest))

    @staticmethod
    def is_valid(field_type: FieldType, value: str) -> bool:
        if field_type in (FieldType.AMOUNT, FieldType.BALANCE):
            return extract_amount(value) is not None
        if field_type == FieldType.CARD_LAST_4:
            return bool(_CARD_DIGITS.fullmatch(value))
        return bool(value.strip())
