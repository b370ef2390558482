from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from ..llm.client import LLMClient
from .bootstrap import ensure_data_dirs
from .errors import SessionNotFoundError
from .flow import DataCollector
from .store import store_from_env
from .types import CollectionConfig, CompletionCallback

logger = logging.getLogger(__name__)

# NOTE:
# This module is the main integration point for transports (HTTP, chat UI).
# Behavior is controlled via environment variables:
# - USE_LLM=0 -> deterministic mode, no model calls
# - USE_LLM=1 -> model-backed intents, replies, summaries and output
# - STORE_BACKEND=file|memory, SESSION_TTL_SEC
#
# The module-level collector (and the configs registered on it) is a
# convenience for single-process transports. Every function also takes an
# explicit `collector=` so hosts can keep one collector per tenant or app.

_collector: Optional[DataCollector] = None


def get_collector() -> DataCollector:
    global _collector
    if _collector is None:
        ensure_data_dirs()
        _collector = DataCollector(store_from_env(), LLMClient())
    return _collector


def set_collector(collector: Optional[DataCollector]) -> None:
    """Swap the process-wide collector (None rebuilds it from env on next use)."""
    global _collector
    _collector = collector


# -----------------------------
# Configs
# -----------------------------
def register_config(
    config: Union[CollectionConfig, Dict[str, Any]],
    on_complete: Optional[CompletionCallback] = None,
    collector: Optional[DataCollector] = None,
) -> Dict[str, Any]:
    if not isinstance(config, CollectionConfig):
        config = CollectionConfig.from_dict(config)
    if on_complete is not None:
        config.on_complete = on_complete

    (collector or get_collector()).register_config(config)
    return {"name": config.name, "fields": config.field_names}


# -----------------------------
# Sessions
# -----------------------------
def create_session(
    config_name: str,
    session_id: Optional[str] = None,
    initial_data: Optional[Dict[str, Any]] = None,
    collector: Optional[DataCollector] = None,
) -> Dict[str, Any]:
    response = (collector or get_collector()).start_session(config_name, session_id=session_id, initial_data=initial_data)
    return response.to_dict()


def resume(session_id: str, collector: Optional[DataCollector] = None) -> Dict[str, Any]:
    collector = collector or get_collector()
    state = collector.get_state(session_id)
    if state is None:
        raise SessionNotFoundError(session_id)
    return {
        "session_id": session_id,
        "status": state.status,
        "current_field": state.current_field,
        "message": collector.greeting(session_id),
        "data": dict(state.collected_data),
    }


def message(session_id: str, user_text: str, collector: Optional[DataCollector] = None) -> Dict[str, Any]:
    payload = (collector or get_collector()).process_message(session_id, user_text).to_dict()
    payload["session_id"] = payload["session_id"] or session_id
    return payload


def cancel(session_id: str, collector: Optional[DataCollector] = None) -> Dict[str, Any]:
    payload = (collector or get_collector()).cancel_session(session_id).to_dict()
    payload["session_id"] = payload["session_id"] or session_id
    return payload


def get_data(session_id: str, collector: Optional[DataCollector] = None) -> Dict[str, Any]:
    state = (collector or get_collector()).get_state(session_id)
    if state is None:
        raise SessionNotFoundError(session_id)
    return {
        "session_id": session_id,
        "config_name": state.config_name,
        "status": state.status,
        "data": dict(state.collected_data),
        "completed_at": state.completed_at,
    }


# -----------------------------
# Document -> fields
# -----------------------------
def extract_from_document(
    session_id: str,
    content: str,
    fields: Optional[List[str]] = None,
    language: Optional[str] = None,
    apply: bool = True,
    collector: Optional[DataCollector] = None,
) -> Dict[str, Any]:
    collector = collector or get_collector()
    extracted = collector.extract_data_from_content(session_id, content, fields=fields, language=language)
    logger.info("[Service] %s: document yielded %d field(s)", session_id, len(extracted))

    if not apply or not extracted:
        return {"session_id": session_id, "extracted": extracted, "applied": False}

    payload = collector.apply_extracted_data(session_id, extracted, language=language).to_dict()
    payload["session_id"] = payload["session_id"] or session_id
    payload["extracted"] = extracted
    payload["applied"] = True
    return payload
