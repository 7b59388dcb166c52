"""Snippet trigger matcher: finds the trigger a piece of typed text ends with."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from .errors import InvalidRulesError
from .metrics import LatencyTimer, MetricsCollector, get_metrics
from .models import MatchResult, TriggerRule

_RULES_ADAPTER = TypeAdapter(List[TriggerRule])


class _TrieNode:
    __slots__ = ("children", "rule")

    def __init__(self):
        self.children: Dict[str, "_TrieNode"] = {}
        self.rule: Optional[TriggerRule] = None


@dataclass(frozen=True)
class _RuleSet:
    """One loaded configuration. Swapped as a whole on update."""
    rules: Tuple[TriggerRule, ...] = ()
    root: _TrieNode = field(default_factory=_TrieNode)
    enabled: int = 0


def parse_rules(payload: Any) -> List[TriggerRule]:
    """
    Decode and validate a rule payload.

    Accepts a JSON document (str or UTF-8 bytes) holding an array of rule
    objects, or an already decoded list of mappings / TriggerRule.

    Raises:
        InvalidRulesError: on any decoding or validation failure.
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidRulesError(f"payload is not valid UTF-8: {e}") from e
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except (ValueError, RecursionError) as e:
            # JSONDecodeError, over-long integer literals and runaway nesting
            raise InvalidRulesError(f"payload is not valid JSON: {e}") from e
    if not isinstance(payload, (list, tuple)):
        raise InvalidRulesError(
            f"payload must be an array of rules, got {type(payload).__name__}"
        )
    try:
        return _RULES_ADAPTER.validate_python(list(payload))
    except ValidationError as e:
        raise InvalidRulesError(f"invalid rule: {e.errors()[0]['msg']}") from e


class TriggerMatcher:
    """
    Holds the last loaded trigger rules and finds the longest enabled
    trigger that the input text ends with.

    Enabled triggers are stored reversed in a trie, so a lookup walks the
    text backwards from its end and never reads more characters than the
    longest trigger has. Matching is literal and case-sensitive.
    """

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self._state = _RuleSet()
        self._metrics = metrics or get_metrics()

    def update(self, payload: Any) -> bool:
        """
        Replace the whole rule set.

        On malformed input nothing changes and False is returned.
        """
        try:
            rules = parse_rules(payload)
        except InvalidRulesError as e:
            logger.error(f"Rejected trigger rules: {e}")
            self._metrics.increment_counter("trigger.rejected_updates")
            return False

        self._state = self._build(rules)
        logger.info(
            f"Loaded {len(rules)} trigger rules ({self._state.enabled} enabled)"
        )
        return True

    @staticmethod
    def _build(rules: List[TriggerRule]) -> _RuleSet:
        root = _TrieNode()
        enabled = 0
        for rule in rules:
            if not rule.enabled:
                continue
            enabled += 1
            node = root
            for ch in reversed(rule.trigger):
                node = node.children.setdefault(ch, _TrieNode())
            if node.rule is not None:
                logger.warning(
                    f"Duplicate trigger {rule.trigger!r}: keeping the first rule"
                )
                continue
            node.rule = rule
        return _RuleSet(rules=tuple(rules), root=root, enabled=enabled)

    def find(self, text: str) -> Optional[MatchResult]:
        """Return the longest enabled trigger ending at the end of text, or None."""
        if not text:
            return None

        with LatencyTimer("trigger.find", self._metrics):
            node = self._state.root
            best = None
            for ch in reversed(text):
                node = node.children.get(ch)
                if node is None:
                    break
                if node.rule is not None:
                    best = node.rule

        if best is None:
            return None
        self._metrics.increment_counter("trigger.matches")
        return MatchResult(trigger=best.trigger, content=best.content, match_end=len(text))

    def clear(self) -> None:
        self._state = _RuleSet()

    @property
    def rules(self) -> Tuple[TriggerRule, ...]:
        return self._state.rules

    def stats(self) -> Tuple[int, int]:
        """(loaded rules, enabled rules)."""
        return len(self._state.rules), self._state.enabled

    def categories(self) -> List[str]:
        return sorted({r.category for r in self._state.rules if r.category})
