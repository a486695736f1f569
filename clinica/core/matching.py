from dataclasses import dataclass
from typing import Any, Iterable, Optional


@dataclass(frozen=True)
class Rule:
    pattern: str
    result: Any
    kind: str = "contains"  # contains | equals

    def matches(self, text: str) -> bool:
        if self.kind == "equals":
            return text == self.pattern
        return self.pattern in text


class PatternTable:
    """
    Ordered list of (pattern, classification) rules matched against free text.

    Text is lower-cased and trimmed before matching; the first matching rule
    wins, so more specific patterns must come first.
    """

    def __init__(self, rules: Iterable[Rule], default: Any = None):
        self.rules = list(rules)
        self.default = default

    def classify(self, text: Optional[str]) -> Any:
        if not text:
            return self.default
        normalized = text.strip().lower()
        for rule in self.rules:
            if rule.matches(normalized):
                return rule.result
        return self.default

    def matches_any(self, text: Optional[str]) -> bool:
        if not text:
            return False
        normalized = text.strip().lower()
        return any(rule.matches(normalized) for rule in self.rules)


def contains(pattern: str, result: Any) -> Rule:
    return Rule(pattern=pattern.lower(), result=result, kind="contains")


def equals(pattern: str, result: Any) -> Rule:
    return Rule(pattern=pattern.lower(), result=result, kind="equals")
