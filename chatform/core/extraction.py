from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .constants import (
    CANCEL_SIGNAL,
    COMPLETE_SIGNAL,
    FIELD_SELECT,
    INTENT_PROVIDE_VALUE,
)
from .intents import IntentResult
from .mapping import is_empty, resolve_label
from .types import CollectionConfig, FieldSpec

logger = logging.getLogger(__name__)


MARKER_RE = re.compile(r"FIELD_COLLECTED:(\w+)=(.+?)(?=\n|FIELD_COLLECTED:|$)", re.DOTALL)
LABELLED_RE = re.compile(r"\*\*([^*:]+):?\*\*:?\s*(.+?)(?=\n|$)", re.IGNORECASE)
NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
GROUPED_RE = re.compile(r"\d,\d")
NUMBERED_ITEM_RE = re.compile(r"^\s*(\d+)\s*[.:\-)]\s*(.+)$")
SELECTION_RE = re.compile(r"^\s*(\d+)\s*[.)]?\s*$")

INLINE_VERB_RE = re.compile(
    r"^(?:please\s+)?(?:change|set|update|make|edit)\s+(?:the\s+|my\s+)?(?P<label>.+?)\s+(?:to|as|=)\s+(?P<value>.+)$",
    re.IGNORECASE | re.DOTALL,
)
INLINE_SHOULD_RE = re.compile(
    r"^(?:the\s+|my\s+)?(?P<label>.+?)\s+(?:should be|must be|is)\s+(?P<value>.+)$",
    re.IGNORECASE | re.DOTALL,
)
INLINE_PAIR_RE = re.compile(r"^(?P<label>[^:=\n]{1,60})\s*[:=]\s*(?P<value>.+)$", re.DOTALL)


# -----------------------------
# Helpers
# -----------------------------
def _clean_value(value: str) -> str:
    v = re.sub(r"\s*\(.*?\)\s*$", "", value.strip())
    return v.rstrip(".,;:").strip()


def match_option(spec: FieldSpec, text: str) -> Optional[str]:
    lower = (text or "").strip().lower()
    if not lower:
        return None
    for option in spec.options:
        if str(option).lower() == lower:
            return option
    for option in spec.options:
        if str(option).lower() in lower:
            return option
    return None


def single_number(text: str) -> Optional[str]:
    """
    "about 12.5 hours" -> "12.5", "-5" -> "-5". Several numbers or digit
    grouping ("1,500", "2-3") are ambiguous: None, so the raw text goes on
    to validation unchanged.
    """
    if GROUPED_RE.search(text or ""):
        return None
    numbers = NUMBER_RE.findall(text or "")
    return numbers[0] if len(numbers) == 1 else None


def _normalize_for_field(spec: Optional[FieldSpec], value: str) -> str:
    if spec is None:
        return value
    if spec.type == FIELD_SELECT and spec.options:
        return match_option(spec, value) or value
    if spec.is_numeric:
        return single_number(value) or value
    return value


# -----------------------------
# Strategies over generated text
# -----------------------------
def parse_markers(text: Optional[str]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for name, value in MARKER_RE.findall(text or ""):
        value = value.strip()
        if value:
            out[name.strip()] = value
    return out


def parse_labelled_summary(text: Optional[str], config: CollectionConfig) -> Dict[str, str]:
    """
    Picks up "**Course Name**: Laravel Basics" / "- **Duration:** 10 hours"
    lines and maps labels onto config fields.
    """
    out: Dict[str, str] = {}
    for label, raw in LABELLED_RE.findall(text or ""):
        name = resolve_label(label, config)
        if not name:
            continue
        value = _normalize_for_field(config.get_field(name), _clean_value(raw))
        if value:
            out[name] = value
    return out


def extract_from_generated(text: Optional[str], config: CollectionConfig) -> Dict[str, str]:
    """
    Markers first; the labelled-summary parser only runs when at least one
    marker was present, and only fills fields the markers left empty.
    """
    extracted = parse_markers(text)
    if not extracted:
        return {}

    for name, value in parse_labelled_summary(text, config).items():
        if is_empty(extracted.get(name)):
            extracted[name] = value
    return extracted


def filter_to_current_field(
    extracted: Dict[str, Any],
    current_field: Optional[str],
    collected: Dict[str, Any],
) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name, value in extracted.items():
        if not is_empty(collected.get(name)):
            logger.warning("[Extract] ignoring already collected field=%s", name)
            continue
        if name != current_field:
            logger.warning("[Extract] ignoring field=%s (current=%s)", name, current_field)
            continue
        out[name] = value
    return out


# -----------------------------
# Strategies over the user message
# -----------------------------
def direct_extract(spec: FieldSpec, message: str) -> Optional[str]:
    value = (message or "").strip()

    if spec.type == FIELD_SELECT and spec.options:
        opt = match_option(spec, value)
        if opt is not None:
            return opt

    if spec.is_numeric:
        number = single_number(value)
        if number is not None:
            return number
        return value if value and not value.endswith("?") else None

    if len(value) >= 2 and not value.endswith("?"):
        return value
    return None


def parse_inline_update(message: str, config: CollectionConfig) -> Optional[Tuple[str, str]]:
    """
    "change the duration to 12", "name: Laravel Pro", "level should be advanced"
    -> (field_name, value) when the label resolves to a config field.
    """
    text = (message or "").strip()
    for pattern in (INLINE_VERB_RE, INLINE_SHOULD_RE, INLINE_PAIR_RE):
        m = pattern.match(text)
        if not m:
            continue
        name = resolve_label(m.group("label"), config)
        if not name:
            continue
        value = _normalize_for_field(config.get_field(name), _clean_value(m.group("value").strip("\"'")))
        if value:
            return name, value
    return None


def parse_numbered_items(text: Optional[str]) -> List[str]:
    items: List[str] = []
    for line in (text or "").splitlines():
        m = NUMBERED_ITEM_RE.match(line)
        if m:
            item = m.group(2).replace("**", "").strip()
            if item:
                items.append(item)
    return items


def select_suggestion(message: str, items: List[str]) -> Optional[str]:
    """A bare number (Latin or Arabic-Indic digits) picks a 1-based suggestion."""
    m = SELECTION_RE.match(message or "")
    if not m or not items:
        return None
    idx = int(m.group(1))
    if 1 <= idx <= len(items):
        return items[idx - 1]
    return None


# -----------------------------
# Response hygiene
# -----------------------------
def clean_response(text: Optional[str]) -> str:
    clean = MARKER_RE.sub("", text or "")
    clean = clean.replace(COMPLETE_SIGNAL, "").replace(CANCEL_SIGNAL, "")
    clean = re.sub(r"\n{3,}", "\n\n", clean)
    return clean.strip()


def has_completion_signal(text: Optional[str]) -> bool:
    return COMPLETE_SIGNAL in (text or "")


def has_cancellation_signal(text: Optional[str]) -> bool:
    return CANCEL_SIGNAL in (text or "")


# -----------------------------
# Pipeline
# -----------------------------
@dataclass
class ExtractionResult:
    field: str
    value: Any
    source: str                   # "marker" | "summary" | "intent" | "direct"


class ExtractionPipeline:
    """
    Fixed order, first success wins:
      1) FIELD_COLLECTED markers in generated text
      2) labelled summary (only when 1 found markers)
      3) intent-provided value
      4) direct extraction from the raw message
    Every candidate passes the current-field filter.
    """

    def run(
        self,
        message: str,
        config: CollectionConfig,
        current_field: Optional[str],
        collected: Dict[str, Any],
        intent: Optional[IntentResult] = None,
        generated_text: Optional[str] = None,
        is_modification: bool = False,
    ) -> Optional[ExtractionResult]:
        if is_modification or not current_field:
            return None
        spec = config.get_field(current_field)
        if spec is None:
            return None

        markers = parse_markers(generated_text)
        found = filter_to_current_field(markers, current_field, collected)
        if found:
            return ExtractionResult(current_field, found[current_field], "marker")

        if markers:
            summary = parse_labelled_summary(generated_text, config)
            found = filter_to_current_field(summary, current_field, collected)
            if found:
                return ExtractionResult(current_field, found[current_field], "summary")

        if intent is not None and intent.intent != INTENT_PROVIDE_VALUE:
            return None

        if intent is not None and not is_empty(intent.extracted_value):
            value = _normalize_for_field(spec, str(intent.extracted_value).strip())
            found = filter_to_current_field({current_field: value}, current_field, collected)
            if found:
                return ExtractionResult(current_field, found[current_field], "intent")

        value = direct_extract(spec, message)
        if value is not None:
            found = filter_to_current_field({current_field: value}, current_field, collected)
            if found:
                return ExtractionResult(current_field, found[current_field], "direct")
        return None
