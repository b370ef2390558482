from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .constants import (
    METADATA_KEYS,
    STATUS_COLLECTING,
    TERMINAL_STATUSES,
    TRANSITIONS,
)
from .errors import MetadataKeyError, StorageError
from .mapping import first_uncollected_field, is_empty
from .types import CollectionConfig, FieldError, Message, SessionState

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# -----------------------------
# Construction
# -----------------------------
def new_session(
    session_id: str,
    config: CollectionConfig,
    initial_data: Optional[Dict[str, Any]] = None,
) -> SessionState:
    """
    Fresh state for a config. Pre-seeded values (config.initial_data merged
    with the caller's initial_data, caller wins) are stored as collected and
    the cursor starts at the first field without one.
    """
    seeded: Dict[str, Any] = dict(config.initial_data or {})
    seeded.update(initial_data or {})
    seeded = {k: v for k, v in seeded.items() if not is_empty(v)}

    return SessionState(
        session_id=session_id,
        config_name=config.name,
        status=STATUS_COLLECTING,
        created_at=_now_iso(),
        collected_data=seeded,
        current_field=first_uncollected_field(config, seeded),
        embedded_config=config.to_dict(),
    )


# -----------------------------
# Mutation helpers (used by the orchestrator only)
# -----------------------------
def set_status(state: SessionState, status: str) -> None:
    if status == state.status:
        return
    allowed = TRANSITIONS.get(state.status, set())
    if status not in allowed:
        raise ValueError(f"Illegal status transition {state.status} -> {status}")

    logger.info("[State] %s: %s -> %s", state.session_id, state.status, status)
    state.status = status
    if status in TERMINAL_STATUSES:
        state.completed_at = _now_iso()


def update_field(state: SessionState, field_name: str, value: Any) -> None:
    state.collected_data[field_name] = value
    state.validation_errors.pop(field_name, None)


def add_message(state: SessionState, role: str, content: str) -> None:
    state.message_history.append(Message(role=role, content=content, ts=_now_iso()))


def set_metadata(state: SessionState, key: str, value: Any) -> None:
    if key not in METADATA_KEYS:
        raise MetadataKeyError(key)
    if value is None:
        state.metadata.pop(key, None)
    else:
        state.metadata[key] = value


def get_metadata(state: SessionState, key: str, default: Any = None) -> Any:
    if key not in METADATA_KEYS:
        raise MetadataKeyError(key)
    return state.metadata.get(key, default)


def collected_field_names(state: SessionState) -> List[str]:
    return [k for k, v in state.collected_data.items() if not is_empty(v)]


# -----------------------------
# Serialization
# -----------------------------
def state_to_dict(state: SessionState) -> Dict[str, Any]:
    return {
        "session_id": state.session_id,
        "config_name": state.config_name,
        "status": state.status,
        "created_at": state.created_at,
        "completed_at": state.completed_at,
        "collected_data": dict(state.collected_data),
        "current_field": state.current_field,
        "validation_errors": {
            k: [e.to_dict() for e in errs] for k, errs in state.validation_errors.items()
        },
        "message_history": [
            {"role": m.role, "content": m.content, "ts": m.ts} for m in state.message_history
        ],
        "detected_locale": state.detected_locale,
        "last_suggestions": state.last_suggestions,
        "confirmed_action_summary": state.confirmed_action_summary,
        "metadata": dict(state.metadata),
        "embedded_config": state.embedded_config,
    }


def state_from_dict(data: Dict[str, Any]) -> SessionState:
    """
    Rehydrates a SessionState.
    Backward-compatible: missing keys fall back to defaults, unknown
    metadata keys are dropped (logged) instead of failing the load.
    """
    try:
        session_id = data["session_id"]
        config_name = data["config_name"]
    except (KeyError, TypeError) as e:
        raise StorageError(f"Session record is missing {e}") from e

    collected = data.get("collected_data") or {}
    if not isinstance(collected, dict):
        collected = {}

    errors: Dict[str, List[FieldError]] = {}
    for name, errs in (data.get("validation_errors") or {}).items():
        errors[name] = [
            FieldError(
                field=str(e.get("field", name)),
                rule=str(e.get("rule", "")),
                message=str(e.get("message", "")),
            )
            for e in (errs or [])
            if isinstance(e, dict)
        ]

    history = [
        Message(role=str(m.get("role", "")), content=str(m.get("content", "")), ts=str(m.get("ts", "")))
        for m in (data.get("message_history") or [])
        if isinstance(m, dict)
    ]

    metadata = {}
    for k, v in (data.get("metadata") or {}).items():
        if k in METADATA_KEYS:
            metadata[k] = v
        else:
            logger.warning("[State] dropping unknown metadata key %r on %s", k, session_id)

    return SessionState(
        session_id=session_id,
        config_name=config_name,
        status=data.get("status") or STATUS_COLLECTING,
        created_at=data.get("created_at") or "",
        completed_at=data.get("completed_at"),
        collected_data=collected,
        current_field=data.get("current_field"),
        validation_errors=errors,
        message_history=history,
        detected_locale=data.get("detected_locale"),
        last_suggestions=data.get("last_suggestions"),
        confirmed_action_summary=data.get("confirmed_action_summary"),
        metadata=metadata,
        embedded_config=data.get("embedded_config"),
    )


def dumps_state(state: SessionState) -> bytes:
    return json.dumps(state_to_dict(state), ensure_ascii=False, default=str).encode("utf-8")


def loads_state(raw: bytes) -> SessionState:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StorageError(f"Corrupt session record: {e}") from e
    if not isinstance(data, dict):
        raise StorageError("Corrupt session record: expected an object")
    return state_from_dict(data)


def dumps_config(config: CollectionConfig) -> bytes:
    return json.dumps(config.to_dict(), ensure_ascii=False, default=str).encode("utf-8")


def loads_config(raw: bytes) -> CollectionConfig:
    try:
        data = json.loads(raw.decode("utf-8"))
        return CollectionConfig.from_dict(data)
    except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
        raise StorageError(f"Corrupt config record: {e}") from e
