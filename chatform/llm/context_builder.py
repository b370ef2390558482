from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..core.constants import COMPLETE_SIGNAL, FIELD_MARKER, FIELD_SELECT
from ..core.locale import locale_name
from ..core.mapping import is_empty, remaining_fields
from ..core.types import CollectionConfig, FieldSpec, SessionState


DEFAULT_SYSTEM_PROMPT = (
    "You are a friendly assistant collecting information for {title} through a conversation.\n"
    "{description}\n"
    "Ask for one field at a time, keep answers short, and help with examples when the user is unsure."
)


def _as_text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, list):
        return ", ".join([str(x) for x in v if x is not None]).strip()
    return str(v).strip()


def _clip(s: str, n: int) -> str:
    s = (s or "").strip()
    if len(s) <= n:
        return s
    return s[:n].rstrip() + "…"


def build_collected_block(
    data: Dict[str, Any],
    max_chars: int = 1800,
    *,
    max_chars_per_field: int = 400,
    empty: str = "(none)",
) -> str:
    """
    Token-safe: limits BOTH per-field and total characters.
    """
    lines: List[str] = []
    used = 0
    for k, v in (data or {}).items():
        v_str = _as_text(v)
        if not v_str:
            continue

        line = f"- {k}: {_clip(v_str, max_chars_per_field)}"
        # +1 for newline
        if used + len(line) + 1 > max_chars:
            break
        lines.append(line)
        used += len(line) + 1

    return "\n".join(lines) if lines else empty


def build_field_details(spec: FieldSpec) -> str:
    lines: List[str] = []
    if spec.options:
        lines.append(f"- Valid Options: {', '.join(spec.options)}")
    if spec.examples:
        lines.append(f"- Examples: {', '.join(spec.examples)}")
    if spec.validation:
        lines.append(f"- Validation: {spec.validation}")
    return ("\n".join(lines) + "\n") if lines else ""


def build_intent_examples(spec: FieldSpec) -> str:
    name = spec.name
    if spec.type == FIELD_SELECT and spec.options:
        first = spec.options[0]
        return (
            f"Field: {name} (select from: {', '.join(spec.options)})\n"
            f"- User: '{first}' -> intent: provide_value, value: '{first}'\n"
            f"- User: 'what are the options?' -> intent: question, value: null"
        )
    if spec.is_numeric:
        return (
            f"Field: {name} (numeric)\n"
            f"- User: '10 hours' -> intent: provide_value, value: '10'\n"
            f"- User: 'about ten' -> intent: provide_value, value: '10'\n"
            f"- User: 'not sure yet' -> intent: unclear, value: null"
        )
    return (
        f"Field: {name} (text)\n"
        f"- User: 'Learn Laravel basics' -> intent: provide_value, value: 'Learn Laravel basics'\n"
        f"- User: 'what should I write?' -> intent: question, value: null\n"
        f"- User: 'give me some ideas' -> intent: suggest, value: null"
    )


def build_fields_list(config: CollectionConfig) -> str:
    lines = []
    for f in config.fields:
        extra = f" (options: {', '.join(f.options)})" if f.options else ""
        lines.append(f"- {f.name}: {f.label}{extra}")
    return "\n".join(lines)


def language_instruction(locale: Optional[str]) -> str:
    return f"Always respond in {locale_name(locale)}."


def build_system_prompt(config: CollectionConfig, locale: Optional[str] = None) -> str:
    base = config.system_prompt or DEFAULT_SYSTEM_PROMPT.format(
        title=config.display_title,
        description=config.description or "",
    )
    return f"{base.strip()}\n\n{language_instruction(locale)}"


def build_context_prompt(state: SessionState, config: CollectionConfig) -> str:
    """
    Per-turn collection context: what is already recorded, the one field in
    focus, and the marker contract the reply must follow.
    """
    parts: List[str] = ["CURRENT COLLECTION STATUS:"]

    collected = {k: v for k, v in state.collected_data.items() if not is_empty(v)}
    if collected:
        parts.append("Already collected (DO NOT ask for these again):")
        parts.append(build_collected_block(collected))

    spec = config.get_field(state.current_field)
    if spec is not None:
        parts.append("")
        parts.append("FOCUS: you are ONLY collecting this ONE field right now:")
        parts.append(f"  Field name: {spec.name}")
        parts.append(f"  Description: {spec.label}")
        parts.append(f"  Required: {'YES' if spec.is_required else 'NO'}")
        details = build_field_details(spec)
        if details:
            parts.append(details.rstrip())
        parts.append("")
        parts.append("RULES:")
        parts.append(f"  1. ONLY ask for and acknowledge '{spec.name}' ({spec.label}).")
        parts.append("  2. NEVER mention other field names or descriptions.")
        parts.append(f"  3. When acknowledging, say: 'I've recorded {spec.label}: [value]'.")
        parts.append("  4. If the user gives information for other fields, ignore it for now.")

        others = [n for n in remaining_fields(config, state.collected_data) if n != spec.name]
        if others:
            parts.append("")
            parts.append("Still to collect later (not now): " + ", ".join(others))

    if state.validation_errors:
        parts.append("")
        parts.append("Validation errors to address:")
        for name, errs in state.validation_errors.items():
            parts.append(f"  - {name}: " + "; ".join(e.message for e in errs))

    if spec is not None:
        parts.append("")
        parts.append("FORMAT REQUIREMENT:")
        parts.append(f"When you accept a value for '{spec.name}', end your reply with:")
        parts.append(f"{FIELD_MARKER}{spec.name}=value")
        parts.append(f"If every required field is collected, also add {COMPLETE_SIGNAL}.")

    return "\n".join(parts)
