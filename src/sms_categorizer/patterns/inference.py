"""
Derives an extraction template from a few user-labeled messages.

Each example marks where fields (amount, merchant, ...) sit in its text.
The text between fields becomes fixed anchors. Digits inside a gap belong to
values the user did not select, so anchors are cut to the digit-free part
next to the field they delimit.
"""
import re

from sms_categorizer.core import settings
from sms_categorizer.domain.amounts import detect_amount_format, extract_amount
from sms_categorizer.domain.similarity import (
    common_prefix,
    common_suffix,
    longest_common_substring,
    similarity,
)
from sms_categorizer.logger import get_logger
from sms_categorizer.models import (
    FieldSelection,
    FieldType,
    FixedText,
    InferredPattern,
    PatternSegment,
    TeachingExample,
    Variable,
)
from sms_categorizer.patterns.matcher import FuzzyPatternMatcher

logger = get_logger(__name__)

MIN_EXAMPLES = 2
MIN_ANCHOR_LENGTH = 2
NO_ANCHOR_CONFIDENCE = 0.4

_WHITESPACE = re.compile(r"\s+")
_DIGIT = re.compile(r"\d")


class PatternInferenceError(ValueError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class PatternInferenceEngine:
    def __init__(
        self,
        matcher: FuzzyPatternMatcher | None = None,
        max_message_length: int | None = None,
    ) -> None:
        self.matcher = matcher or FuzzyPatternMatcher()
        self.max_message_length = max_message_length or settings.MAX_MESSAGE_LENGTH

    def infer(self, examples: list[TeachingExample]) -> InferredPattern:
        if len(examples) < MIN_EXAMPLES:
            raise PatternInferenceError(f"Need at least {MIN_EXAMPLES} examples to infer a pattern")

        for number, example in enumerate(examples, start=1):
            if len(example.sms_body) > self.max_message_length:
                raise PatternInferenceError(
                    f"Example {number} is longer than {self.max_message_length} characters"
                )
            self._check_selections(number, example)

        shared = set.intersection(*({s.field_type for s in ex.selections} for ex in examples))
        if not shared:
            raise PatternInferenceError("No field was selected in every example")

        ordered = [
            sorted((s for s in ex.selections if s.field_type in shared), key=lambda s: s.start_index)
            for ex in examples
        ]
        field_order = [s.field_type for s in ordered[0]]
        for number, selections in enumerate(ordered[1:], start=2):
            if [s.field_type for s in selections] != field_order:
                raise PatternInferenceError(
                    f"Fields appear in a different order in example {number}"
                )

        segments = self._build_segments(examples, ordered, field_order)
        amount_samples = [
            example.text_of(selection)
            for example, selections in zip(examples, ordered)
            for selection in selections
            if selection.field_type == FieldType.AMOUNT
        ]
        pattern = InferredPattern(
            segments=segments,
            amount_format=detect_amount_format(amount_samples),
            confidence=self._confidence(examples, segments),
        )
        self._verify(examples, ordered, pattern)
        logger.info(
            "[INFER] Pattern inferred from %s examples: %s fields, %s anchors, confidence %.2f",
            len(examples),
            len(field_order),
            len(segments) - len(field_order),
            pattern.confidence,
        )
        return pattern

    @staticmethod
    def _check_selections(number: int, example: TeachingExample) -> None:
        if not example.selections:
            raise PatternInferenceError(f"Example {number} has no selected fields")
        seen: set[FieldType] = set()
        previous: FieldSelection | None = None
        for selection in sorted(example.selections, key=lambda s: s.start_index):
            if selection.end_index > len(example.sms_body):
                raise PatternInferenceError(f"Selection outside the message in example {number}")
            if selection.field_type in seen:
                raise PatternInferenceError(
                    f"{selection.field_type.value} selected more than once in example {number}"
                )
            if previous is not None and selection.start_index < previous.end_index:
                raise PatternInferenceError(f"Selections overlap in example {number}")
            seen.add(selection.field_type)
            previous = selection

    def _build_segments(
        self,
        examples: list[TeachingExample],
        ordered: list[list[FieldSelection]],
        field_order: list[FieldType],
    ) -> list[PatternSegment]:
        field_count = len(field_order)
        segments: list[PatternSegment] = []
        for gap in range(field_count + 1):
            trailing = gap == field_count
            parts = [
                self._gap_parts(example.sms_body, selections, gap, trailing)
                for example, selections in zip(examples, ordered)
            ]
            heads = [head for head, _, _ in parts]
            tails = [tail for _, tail, _ in parts]
            if trailing:
                anchors = [self._consensus(heads, from_start=True)]
            elif not any(has_digits for _, _, has_digits in parts):
                anchors = [self._consensus(tails, from_start=False)]
            else:
                # Head closes the previous field, tail opens the next one;
                # the unselected digits between them are skipped by the matcher.
                head_texts = [head if has_digits else "" for head, _, has_digits in parts]
                anchors = [
                    self._consensus(head_texts, from_start=True) if gap > 0 else "",
                    self._consensus(tails, from_start=False),
                ]
            for anchor in anchors:
                if anchor.strip():
                    segments.append(FixedText(text=anchor, fuzzy_allowed=True))
            if not trailing:
                segments.append(Variable(field_type=field_order[gap]))
        return segments

    @staticmethod
    def _gap_parts(
        body: str, selections: list[FieldSelection], gap: int, trailing: bool
    ) -> tuple[str, str, bool]:
        """Digit-free head and tail of the text around one gap."""
        start = selections[gap - 1].end_index if gap > 0 else 0
        end = len(body) if trailing else selections[gap].start_index
        text = body[start:end]
        digits = list(_DIGIT.finditer(text))
        if not digits:
            collapsed = _WHITESPACE.sub(" ", text)
            return collapsed, collapsed, False
        head = _WHITESPACE.sub(" ", text[:digits[0].start()])
        tail = _WHITESPACE.sub(" ", text[digits[-1].end():])
        return head, tail, True

    def _consensus(self, texts: list[str], from_start: bool) -> str:
        reference = texts[0]
        if not reference.strip():
            return ""
        threshold = self.matcher.fuzzy_text_threshold
        if all(similarity(reference, other) >= threshold for other in texts[1:]):
            return reference
        # Keep the side touching the field it delimits.
        edge = common_prefix(texts) if from_start else common_suffix(texts)
        if len(edge.strip()) >= MIN_ANCHOR_LENGTH:
            return edge
        shared = longest_common_substring(texts)
        if len(shared.strip()) >= MIN_ANCHOR_LENGTH:
            return shared
        return ""

    @staticmethod
    def _confidence(examples: list[TeachingExample], segments: list[PatternSegment]) -> float:
        anchors = [segment for segment in segments if isinstance(segment, FixedText)]
        if not anchors:
            return NO_ANCHOR_CONFIDENCE
        average_length = sum(len(example.sms_body) for example in examples) / len(examples)
        base = min(1.0, sum(len(anchor.text) for anchor in anchors) / max(average_length, 1.0))
        example_bonus = 0.1 if len(examples) >= 3 else 0.05
        anchor_bonus = 0.1 if len(anchors) >= 3 else 0.05 if len(anchors) == 2 else 0.0
        return max(0.0, min(1.0, base + example_bonus + anchor_bonus))

    def _verify(
        self,
        examples: list[TeachingExample],
        ordered: list[list[FieldSelection]],
        pattern: InferredPattern,
    ) -> None:
        for number, (example, selections) in enumerate(zip(examples, ordered), start=1):
            result = self.matcher.match(example.sms_body, pattern)
            if result is None:
                raise PatternInferenceError(f"Inferred pattern does not match example {number}")
            for selection in selections:
                expected = example.text_of(selection)
                extracted = result.extracted_fields.get(selection.field_type)
                if not _same_value(selection.field_type, expected, extracted):
                    raise PatternInferenceError(
                        f"Inferred pattern extracts '{extracted}' instead of '{expected.strip()}' "
                        f"for {selection.field_type.value} in example {number}"
                    )


def _same_value(field_type: FieldType, expected: str, extracted: str | None) -> bool:
    if extracted is None:
        return False
    if field_type in (FieldType.AMOUNT, FieldType.BALANCE):
        return extract_amount(expected) == extract_amount(extracted)
    return " ".join(expected.split()).lower() == " ".join(extracted.split()).lower()
