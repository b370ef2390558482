from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .constants import LABEL_SYNONYMS
from .types import CollectionConfig, FieldSpec


def is_empty(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, str):
        return v.strip() == ""
    if isinstance(v, (list, dict, tuple)):
        return len(v) == 0
    return False


def first_uncollected_field(config: CollectionConfig, data: Dict[str, Any]) -> Optional[str]:
    """Cursor for a new session: the first field in config order without a value."""
    for f in config.fields:
        if is_empty(data.get(f.name)):
            return f.name
    return None


def missing_required(config: CollectionConfig, data: Dict[str, Any]) -> List[FieldSpec]:
    return [f for f in config.required_fields if is_empty(data.get(f.name))]


def remaining_fields(
    config: CollectionConfig,
    data: Dict[str, Any],
    skipped: Iterable[str] = (),
) -> List[str]:
    skipped = set(skipped or ())
    return [f.name for f in config.fields if is_empty(data.get(f.name)) and f.name not in skipped]


def pick_next_field(
    config: CollectionConfig,
    data: Dict[str, Any],
    skipped: Iterable[str] = (),
) -> Optional[str]:
    """
    Priority order:
    1) first missing required field (config order)
    2) if optional fields may not be skipped: first optional field that has
       neither a value nor an explicit skip
    """
    missing = missing_required(config, data)
    if missing:
        return missing[0].name

    if config.allow_skip_optional:
        return None

    skipped = set(skipped or ())
    for f in config.optional_fields:
        if is_empty(data.get(f.name)) and f.name not in skipped:
            return f.name
    return None


# -----------------------------
# Label -> field resolution
# -----------------------------
def label_map(config: CollectionConfig) -> Dict[str, str]:
    """lowercase label -> field name (names, descriptions, static synonyms)."""
    out: Dict[str, str] = {}
    for f in config.fields:
        out[f.name.lower()] = f.name
        out[f.name.replace("_", " ").lower()] = f.name
        if f.description:
            out[f.description.strip().lower()] = f.name
        for syn in LABEL_SYNONYMS.get(f.name, []):
            out.setdefault(syn, f.name)
    return out


def resolve_label(label: str, config: CollectionConfig) -> Optional[str]:
    key = (label or "").strip().strip("*").strip().lower()
    if not key:
        return None
    mapped = label_map(config).get(key)
    if mapped:
        return mapped
    candidate = key.replace(" ", "_")
    return candidate if config.get_field(candidate) else None
