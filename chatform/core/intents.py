from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..llm.client import TextGenerator, render_prompt
from ..llm.context_builder import (
    build_collected_block,
    build_field_details,
    build_fields_list,
    build_intent_examples,
)
from ..llm.json_parser import JSONParseError, parse_json_strict
from .constants import (
    CANCEL_PHRASES,
    COMPLETION_PHRASES,
    CONFIRM_WORDS,
    INTENT_PROVIDE_VALUE,
    INTENT_UNCLEAR,
    INTENTS,
    REJECT_WORDS,
)
from .mapping import label_map
from .types import CollectionConfig, FieldSpec

logger = logging.getLogger(__name__)


CONFIRM = "confirm"
REJECT = "reject"
OTHER = "other"

_MOD_VERBS = r"(?:change|modify|edit|update|correct|fix|redo|replace|adjust)"

REJECTION_PATTERNS = [
    re.compile(rf"\b(?:i\s+want\s+to|i'?d\s+like\s+to|i\s+would\s+like\s+to|i\s+need\s+to|let\s+me|can\s+i|could\s+i|can\s+we|please)\s+{_MOD_VERBS}\b", re.IGNORECASE),
    re.compile(rf"^\s*{_MOD_VERBS}\s+(?:it|that|this)(?:\s+(?:one|answer|value|please))?\s*$", re.IGNORECASE),
    re.compile(r"\b(?:that'?s|that\s+is|it'?s|it\s+is)\s+(?:wrong|incorrect|not\s+right|not\s+correct)\b", re.IGNORECASE),
    re.compile(r"\bactually\b.*\b(?:should|change|instead)\b", re.IGNORECASE),
    re.compile(r"(?:أريد|اريد|ممكن)\s+(?:تغيير|تعديل)"),
    re.compile(r"\b(?:değiştirmek|düzeltmek)\s+istiyorum\b", re.IGNORECASE),
]

# "fix the X", "update my Y": only a request when X names a field
IMPERATIVE_RE = re.compile(rf"^\s*{_MOD_VERBS}\s+(?:the|my)\b", re.IGNORECASE)

# Bare messages that only ever mean "modify"
REJECTION_WORDS = ("change", "modify", "edit", "wrong", "incorrect", "تغيير", "تعديل", "değiştir", "yanlış")


def _normalize(message: Optional[str]) -> str:
    t = (message or "").strip().lower()
    t = re.sub(r"[!.?,;:]+$", "", t).strip()
    return re.sub(r"\s+", " ", t)


def _first_token(text: str) -> str:
    t = re.sub(r"[^\w\s']", " ", text, flags=re.UNICODE)
    t = re.sub(r"\s+", " ", t).strip()
    return t.split(" ")[0] if t else ""


@dataclass
class IntentResult:
    intent: str
    confidence: float = 0.0
    extracted_value: Optional[str] = None
    reasoning: str = ""

    @classmethod
    def fallback(cls, message: str, reason: str) -> "IntentResult":
        return cls(
            intent=INTENT_PROVIDE_VALUE,
            confidence=0.5,
            extracted_value=(message or "").strip(),
            reasoning=reason,
        )


class IntentClassifier:
    """
    Per-turn intent detection. `classify` delegates to the text generator
    and always degrades to "provide_value" with the raw message; the other
    detectors are deterministic phrase rules.
    """

    def __init__(self, generator: TextGenerator):
        self.generator = generator

    # -----------------------------
    # Field-level intent (model-backed)
    # -----------------------------
    def classify(
        self,
        message: str,
        current_field: Optional[str],
        spec: Optional[FieldSpec],
        collected: Dict[str, Any],
    ) -> IntentResult:
        if spec is None or not current_field:
            return IntentResult(intent=INTENT_UNCLEAR, reasoning="no field in focus")

        prompt = render_prompt(
            "intent_analysis.txt",
            {
                "message": message,
                "field_name": current_field,
                "description": spec.label,
                "field_type": spec.type,
                "required": "YES" if spec.is_required else "NO",
                "field_details": build_field_details(spec),
                "collected": build_collected_block(collected),
                "examples": build_intent_examples(spec),
            },
        )

        result = self.generator.generate(
            "You classify user intent. Return only JSON.",
            prompt,
            max_output_tokens=200,
        )
        if not result.success:
            logger.warning("[Intent] generation failed field=%s: %s", current_field, result.error)
            return IntentResult.fallback(message, "analysis failed, using raw message")

        try:
            data = parse_json_strict(result.content)
        except JSONParseError as e:
            logger.warning("[Intent] unparsable output field=%s: %s", current_field, e)
            return IntentResult.fallback(message, "JSON parsing failed, using raw message")

        intent = str(data.get("intent") or "").strip().lower()
        if intent not in INTENTS:
            logger.warning("[Intent] unknown intent %r field=%s", intent, current_field)
            return IntentResult.fallback(message, "unknown intent, using raw message")

        try:
            confidence = float(data.get("confidence", 0.0) or 0.0)
        except (TypeError, ValueError):
            confidence = 0.0

        value = data.get("extracted_value")
        if value is not None:
            value = str(value).strip()
            if value.lower() in ("", "null", "none"):
                value = None

        logger.info("[Intent] field=%s intent=%s confidence=%.2f has_value=%s", current_field, intent, confidence, value is not None)
        return IntentResult(
            intent=intent,
            confidence=confidence,
            extracted_value=value,
            reasoning=str(data.get("reasoning") or ""),
        )

    # -----------------------------
    # Deterministic detectors
    # -----------------------------
    def detect_rejection_intent(self, message: str, config: Optional[CollectionConfig] = None) -> bool:
        """
        'I want to change X' style requests, never a literal field value.
        Given a config, a bare imperative ("update the ...") only counts
        when it names one of the config's fields.
        """
        text = _normalize(message)
        if not text:
            return False
        if text in REJECTION_WORDS or any(p.search(text) for p in REJECTION_PATTERNS):
            return True
        if not IMPERATIVE_RE.search(text):
            return False
        return config is None or self._match_field_label(text, config) is not None

    def detect_completion_intent(self, message: str) -> bool:
        text = _normalize(message)
        if not text:
            return False
        for phrase in COMPLETION_PHRASES:
            if text == phrase or re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text):
                return True
        return False

    def classify_confirmation(self, message: str) -> str:
        text = _normalize(message)
        if not text:
            return OTHER
        if text in CONFIRM_WORDS:
            return CONFIRM
        if text in REJECT_WORDS:
            return REJECT
        if self.detect_rejection_intent(text):
            return REJECT

        first = _first_token(text)
        if first in CONFIRM_WORDS:
            return CONFIRM
        if first in REJECT_WORDS:
            return REJECT
        return OTHER

    # -----------------------------
    # Which field does a modification target?
    # -----------------------------
    def detect_target_field(
        self,
        message: str,
        config: CollectionConfig,
        collected: Dict[str, Any],
    ) -> Optional[str]:
        prompt = render_prompt(
            "detect_field.txt",
            {"message": message, "fields": build_fields_list(config)},
        )
        result = self.generator.generate(
            "You map change requests to field names. Return only the field name.",
            prompt,
            max_output_tokens=20,
        )
        if result.success:
            candidate = re.sub(r"[^\w]", "", (result.content or "").strip().split("\n")[0].strip().strip("'\"`"))
            if config.get_field(candidate):
                return candidate
            logger.warning("[Intent] field detection returned unknown field %r", candidate)

        return self._match_field_label(message, config)

    def _match_field_label(self, message: str, config: CollectionConfig) -> Optional[str]:
        text = (message or "").lower()
        for label, name in sorted(label_map(config).items(), key=lambda p: -len(p[0])):
            if re.search(rf"(?<!\w){re.escape(label)}(?!\w)", text):
                return name
        return None


def is_cancellation(message: str) -> bool:
    """Exact phrase, or the phrase followed by more words ("cancel please")."""
    text = _normalize(message)
    if not text:
        return False
    return any(text == p or text.startswith(p + " ") for p in CANCEL_PHRASES)
