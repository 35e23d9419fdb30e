"""
JSON-file persistence for learned patterns and user rules.

Files keep the camelCase shape of the models so they stay readable by other
clients, e.g. segments are ``{"type": "fixedText", "text", "fuzzyAllowed"}``
or ``{"type": "variable", "fieldType"}``.
"""
import json
import os
import threading
from datetime import datetime

from pydantic import BaseModel, ValidationError

from sms_categorizer.logger import get_logger
from sms_categorizer.models import LearnedBankPattern, TeachingExample, UserCategorizationRule

from .base import PatternStore, RuleStore

logger = get_logger(__name__)


def _dump(items: list[BaseModel]) -> list[dict]:
    return [item.model_dump(mode="json", by_alias=True) for item in items]


class _JsonFile:
    def __init__(self, data_path: str):
        self.data_path = data_path
        self.lock = threading.RLock()

    def read(self) -> dict:
        if not os.path.exists(self.data_path):
            return {}
        try:
            with open(self.data_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Could not decode %s; starting empty.", self.data_path)
            return {}
        return data if isinstance(data, dict) else {}

    def write(self, data: dict) -> None:
        directory = os.path.dirname(self.data_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.data_path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.data_path)


class JsonPatternStore(PatternStore):
    def __init__(self, data_path: str = "patterns.json"):
        self._file = _JsonFile(data_path)
        self.patterns: dict[str, LearnedBankPattern] = {}
        self.teaching_examples: list[TeachingExample] = []
        self.load()

    @property
    def data_path(self) -> str:
        return self._file.data_path

    def load(self) -> None:
        data = self._file.read()
        patterns: dict[str, LearnedBankPattern] = {}
        for raw in data.get("patterns", []):
            try:
                pattern = LearnedBankPattern.model_validate(raw)
            except ValidationError as exc:
                logger.warning("Skipping invalid stored pattern: %s", exc.errors()[:1])
                continue
            patterns[pattern.id] = pattern
        examples = []
        for raw in data.get("examples", []):
            try:
                examples.append(TeachingExample.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Skipping invalid stored example: %s", exc.errors()[:1])
        self.patterns = patterns
        self.teaching_examples = examples

    def _save(self) -> None:
        self._file.write({
            "patterns": _dump(list(self.patterns.values())),
            "examples": _dump(self.teaching_examples),
        })

    def save(self, pattern: LearnedBankPattern) -> None:
        with self._file.lock:
            self.patterns[pattern.id] = pattern
            self._save()

    def all(self) -> list[LearnedBankPattern]:
        return list(self.patterns.values())

    def get(self, pattern_id: str) -> LearnedBankPattern | None:
        return self.patterns.get(pattern_id)

    def update_stats(self, pattern_id: str, success_count: int, fail_count: int) -> bool:
        with self._file.lock:
            pattern = self.patterns.get(pattern_id)
            if pattern is None:
                return False
            self.patterns[pattern_id] = pattern.model_copy(update={
                "success_count": success_count,
                "fail_count": fail_count,
                "updated_at": datetime.now(),
            })
            self._save()
        return True

    def delete(self, pattern_id: str) -> bool:
        with self._file.lock:
            if self.patterns.pop(pattern_id, None) is None:
                return False
            self._save()
        return True

    def save_example(self, example: TeachingExample) -> None:
        with self._file.lock:
            self.teaching_examples = [e for e in self.teaching_examples if e.id != example.id]
            self.teaching_examples.append(example)
            self._save()

    def examples(self, sender_id: str | None = None) -> list[TeachingExample]:
        if sender_id is None:
            return list(self.teaching_examples)
        return [example for example in self.teaching_examples if example.sender_id == sender_id]


class JsonRuleStore(RuleStore):
    def __init__(self, data_path: str = "rules.json"):
        self._file = _JsonFile(data_path)
        self.rules: dict[str, UserCategorizationRule] = {}
        self.load()

    def load(self) -> None:
        rules: dict[str, UserCategorizationRule] = {}
        for raw in self._file.read().get("rules", []):
            try:
                rule = UserCategorizationRule.model_validate(raw)
            except ValidationError as exc:
                logger.warning("Skipping invalid stored rule: %s", exc.errors()[:1])
                continue
            rules[rule.id] = rule
        self.rules = rules

    def _save(self) -> None:
        self._file.write({"rules": _dump(list(self.rules.values()))})

    def save(self, rule: UserCategorizationRule) -> None:
        with self._file.lock:
            self.rules[rule.id] = rule
            self._save()

    def all(self) -> list[UserCategorizationRule]:
        return list(self.rules.values())

    def get(self, rule_id: str) -> UserCategorizationRule | None:
        return self.rules.get(rule_id)

    def delete(self, rule_id: str) -> bool:
        with self._file.lock:
            if self.rules.pop(rule_id, None) is None:
                return False
            self._save()
        return True

    def update_priority(self, rule_id: str, priority: int) -> bool:
        with self._file.lock:
            rule = self.rules.get(rule_id)
            if rule is None:
                return False
            self.rules[rule_id] = rule.model_copy(update={"priority": priority})
            self._save()
        return True
