from __future__ import annotations

import logging
import re
import uuid
from typing import Any, Dict, List, Optional, Tuple, Union

from ..llm.client import TextGenerator, render_prompt
from ..llm.context_builder import (
    build_collected_block,
    build_context_prompt,
    build_field_details,
    build_system_prompt,
    language_instruction,
)
from ..llm.json_parser import JSONParseError, parse_json_strict
from .config import default_locale
from .constants import (
    INTENT_QUESTION,
    INTENT_SKIP,
    INTENT_SUGGEST,
    META_ACTION_PREVIEW,
    META_LAST_RESPONSE,
    META_OUTPUT_MODIFICATIONS,
    META_PENDING_FIELD,
    META_SKIPPED_FIELDS,
    META_SOURCE,
    STATUS_CANCELLED,
    STATUS_COLLECTING,
    STATUS_COMPLETED,
    STATUS_CONFIRMING,
    STATUS_ENHANCING,
    TERMINAL_STATUSES,
)
from .errors import ConfigNotFoundError, SessionNotFoundError
from .extraction import (
    ExtractionPipeline,
    clean_response,
    direct_extract,
    extract_from_generated,
    has_cancellation_signal,
    has_completion_signal,
    parse_inline_update,
    parse_numbered_items,
    select_suggestion,
)
from .intents import CONFIRM, REJECT, IntentClassifier, is_cancellation
from .locale import detect_locale, locale_name
from .mapping import is_empty, pick_next_field, remaining_fields
from .messages import (
    confirmation_text,
    field_prompt,
    format_errors,
    greeting_text,
    t,
)
from .output_generator import StructuredOutputGenerator
from .registry import ConfigCache
from .state import (
    add_message,
    collected_field_names,
    get_metadata,
    new_session,
    set_metadata,
    set_status,
    update_field,
)
from .store import SessionStore
from .summaries import SummaryBuilder, data_summary
from .types import CollectionConfig, CollectorResponse, FieldError, FieldSpec, SessionState
from .validator import validate, validate_all, validation_hints

logger = logging.getLogger(__name__)


# Words that point at the generated output rather than a collected field
OUTPUT_WORDS = ("structure", "outline", "content", "output", "format")


def _join(*parts: Optional[str]) -> str:
    return "\n\n".join(p.strip() for p in parts if p and p.strip())


def _mentions(text: str, phrase: str) -> bool:
    return bool(phrase) and re.search(rf"(?<!\w){re.escape(phrase.lower())}(?!\w)", text) is not None


class DataCollector:
    """
    Conversation orchestrator. One call to `process_message` is one turn:
    load state, dispatch on status, persist, answer. The text generator is
    optional in practice: every model-backed step has a deterministic
    fallback, so a failing generator still drives a session to completion.
    """

    def __init__(
        self,
        store: SessionStore,
        generator: TextGenerator,
        cache: Optional[ConfigCache] = None,
    ):
        self.store = store
        self.generator = generator
        self.cache = cache if cache is not None else ConfigCache()

        self.intents = IntentClassifier(generator)
        self.pipeline = ExtractionPipeline()
        self.summaries = SummaryBuilder(generator)
        self.output = StructuredOutputGenerator(generator)

    # -----------------------------
    # Configs
    # -----------------------------
    def register_config(self, config: CollectionConfig, persist: bool = True) -> None:
        config.validate()
        self.cache.register(config)
        if persist:
            self.store.save_config(config)
        logger.info("[Flow] registered config=%s fields=%d", config.name, len(config.fields))

    def get_config(self, name: str) -> Optional[CollectionConfig]:
        config = self.cache.get(name)
        if config is not None:
            return config
        config = self.store.load_config(name)
        if config is not None:
            self.cache.register(config)
        return config

    def _resolve_config(self, state: SessionState) -> Optional[CollectionConfig]:
        config = self.get_config(state.config_name)
        if config is not None:
            return config
        if state.embedded_config:
            logger.info("[Flow] %s: using embedded config %s", state.session_id, state.config_name)
            config = CollectionConfig.from_dict(state.embedded_config)
            self.cache.register(config)
            return config
        return None

    # -----------------------------
    # Sessions
    # -----------------------------
    def start_session(
        self,
        config: Union[str, CollectionConfig],
        session_id: Optional[str] = None,
        initial_data: Optional[Dict[str, Any]] = None,
    ) -> CollectorResponse:
        if isinstance(config, CollectionConfig):
            if self.cache.get(config.name) is not config:
                self.register_config(config)
            resolved = config
        else:
            resolved = self.get_config(config)
            if resolved is None:
                raise ConfigNotFoundError(config)

        state = new_session(session_id or uuid.uuid4().hex, resolved, initial_data)
        locale = self._locale(state, resolved)
        message = greeting_text(resolved, state, state.current_field, locale)

        logger.info(
            "[Flow] session started %s config=%s seeded=%d",
            state.session_id, resolved.name, len(state.collected_data),
        )
        response = self._response(state, resolved, message)
        self._finish(state, message)
        return response

    def greeting(self, session_id: str) -> str:
        state = self.store.load_session(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        config = self._resolve_config(state)
        if config is None:
            raise ConfigNotFoundError(state.config_name)
        return greeting_text(config, state, state.current_field, self._locale(state, config))

    def get_state(self, session_id: str) -> Optional[SessionState]:
        return self.store.load_session(session_id)

    def has_session(self, session_id: str) -> bool:
        return self.store.has_session(session_id)

    def delete_session(self, session_id: str) -> None:
        self.store.delete_session(session_id)

    # -----------------------------
    # Turn entry point
    # -----------------------------
    def process_message(self, session_id: str, message: str) -> CollectorResponse:
        state, config, failure = self._load_active(session_id)
        if failure is not None:
            return failure

        message = message or ""
        if is_cancellation(message):
            return self._cancel(state, config)

        self._refresh_locale(state, config, message)
        add_message(state, "user", message)

        if state.status == STATUS_CONFIRMING:
            response = self._handle_confirming(state, config, message)
        elif state.status == STATUS_ENHANCING:
            response = self._handle_enhancing(state, config, message)
        else:
            response = self._handle_collecting(state, config, message)

        self._finish(state, response.message)
        return response

    def cancel_session(self, session_id: str) -> CollectorResponse:
        state, config, failure = self._load_active(session_id)
        if failure is not None:
            return failure
        return self._cancel(state, config)

    # -----------------------------
    # Collecting
    # -----------------------------
    def _handle_collecting(self, state: SessionState, config: CollectionConfig, message: str) -> CollectorResponse:
        locale = self._locale(state, config)
        current = state.current_field
        if current is None:
            # every field was pre-seeded
            return self._advance(state, config, "")

        spec = config.get_field(current)
        if spec is None:
            logger.warning("[Flow] %s: cursor on unknown field %s", state.session_id, current)
            state.current_field = pick_next_field(config, state.collected_data, self._skipped(state))
            return self._advance(state, config, "")

        picked = self._pick_suggestion(state, current, message)
        if picked is not None:
            return self._store_and_advance(state, config, spec, picked, "")

        if self.intents.detect_rejection_intent(message, config):
            return self._start_modification(state, config, message)

        intent = self.intents.classify(message, current, spec, state.collected_data)
        if intent.intent == INTENT_SUGGEST:
            return self._suggest(state, config, spec)
        if intent.intent == INTENT_SKIP:
            return self._skip(state, config, spec)

        generated = self._compose_reply(state, config, message)

        if has_cancellation_signal(generated):
            return self._cancel(state, config, record=False)

        extracted = self.pipeline.run(
            message,
            config,
            current,
            state.collected_data,
            intent=intent,
            generated_text=generated,
        )

        if extracted is None:
            reply = clean_response(generated) if generated else ""
            if not reply or self._mentions_other_field(reply, config, current):
                lead = t("question", locale, label=spec.label) if intent.intent == INTENT_QUESTION else t("unclear", locale)
                reply = _join(lead, field_prompt(spec, locale))
            return self._response(state, config, reply)

        logger.info("[Flow] %s: %s <- %s", state.session_id, current, extracted.source)
        ack = clean_response(generated) if generated else ""
        if extracted.source not in ("marker", "summary") or not ack or self._mentions_other_field(ack, config, current):
            ack = ""

        response = self._store_and_advance(state, config, spec, extracted.value, ack)
        if has_completion_signal(generated) and state.status == STATUS_COLLECTING:
            logger.warning("[Flow] %s: ignoring completion signal, data incomplete", state.session_id)
        return response

    def _store_and_advance(
        self,
        state: SessionState,
        config: CollectionConfig,
        spec: FieldSpec,
        value: Any,
        ack: str,
    ) -> CollectorResponse:
        locale = self._locale(state, config)
        errors = self._validate_and_store(state, config, spec.name, value)
        if errors:
            text = _join(
                t("invalid", locale, label=spec.label) + "\n" + format_errors({spec.name: errors}),
                t("try_again", locale),
            )
            return self._response(state, config, text, success=False)

        ack = ack or t("recorded", locale, label=spec.label, value=value)
        return self._advance(state, config, ack)

    def _advance(self, state: SessionState, config: CollectionConfig, ack: str) -> CollectorResponse:
        """Move the cursor to the next field, or on to confirmation/completion."""
        locale = self._locale(state, config)
        nxt = pick_next_field(config, state.collected_data, self._skipped(state))
        if nxt is None:
            state.current_field = None
            if config.confirm_before_complete:
                return self._enter_confirming(state, config, prefix=ack)
            return self._complete(state, config, prefix=ack)

        state.current_field = nxt
        return self._response(state, config, _join(ack, field_prompt(config.get_field(nxt), locale)))

    def _validate_and_store(
        self,
        state: SessionState,
        config: CollectionConfig,
        field_name: str,
        value: Any,
    ) -> List[FieldError]:
        """Shared by every path that writes a value; nothing is stored on error."""
        spec = config.get_field(field_name)
        if spec is None:
            return [FieldError(field=field_name, rule="unknown", message=f"Unknown field '{field_name}'.")]

        if isinstance(value, str):
            value = value.strip()
        errors = validate(spec, value)
        if errors:
            state.validation_errors[field_name] = errors
            logger.info("[Flow] %s: %s rejected (%s)", state.session_id, field_name, ",".join(e.rule for e in errors))
            return errors

        update_field(state, field_name, value)
        skipped = self._skipped(state)
        if field_name in skipped:
            set_metadata(state, META_SKIPPED_FIELDS, [n for n in skipped if n != field_name] or None)
        return []

    def _compose_reply(self, state: SessionState, config: CollectionConfig, message: str) -> Optional[str]:
        locale = self._locale(state, config)
        prompt = render_prompt(
            "collect_turn.txt",
            {"context": build_context_prompt(state, config), "message": message},
        )
        result = self.generator.generate(build_system_prompt(config, locale), prompt, max_output_tokens=700)
        if not result.success:
            logger.warning("[Flow] %s: reply generation failed: %s", state.session_id, result.error)
            return None
        return result.content

    def _mentions_other_field(self, reply: str, config: CollectionConfig, current: str) -> bool:
        text = reply.lower()
        current_spec = config.get_field(current)
        own = {current.lower(), current.replace("_", " ").lower()}
        if current_spec and current_spec.description:
            own.add(current_spec.description.lower())
        for spec in config.fields:
            if spec.name == current:
                continue
            for phrase in (spec.name.lower(), spec.name.replace("_", " ").lower(), spec.description.lower()):
                if phrase and phrase not in own and _mentions(text, phrase):
                    logger.warning("[Flow] reply mentions field %s while collecting %s", spec.name, current)
                    return True
        return False

    # -----------------------------
    # Suggestions / skipping
    # -----------------------------
    def _pick_suggestion(self, state: SessionState, current: str, message: str) -> Optional[str]:
        cached = state.last_suggestions or {}
        if cached.get("field") != current:
            return None
        picked = select_suggestion(message, list(cached.get("items") or []))
        if picked is not None:
            state.last_suggestions = None
        return picked

    def _suggest(self, state: SessionState, config: CollectionConfig, spec: FieldSpec) -> CollectorResponse:
        locale = self._locale(state, config)
        prompt = render_prompt(
            "suggestions.txt",
            {
                "label": spec.label,
                "title": config.display_title,
                "description": spec.description or spec.label,
                "field_details": build_field_details(spec),
                "collected": build_collected_block(state.collected_data),
                "count": 5,
                "language": locale_name(locale),
            },
        )
        result = self.generator.generate(language_instruction(locale), prompt, max_output_tokens=400)
        items = parse_numbered_items(result.content) if result.success else []
        if not items:
            items = [str(x) for x in (spec.examples or spec.options)]

        if not items:
            state.last_suggestions = None
            text = _join(t("no_suggestions", locale, label=spec.label), field_prompt(spec, locale))
            return self._response(state, config, text)

        state.last_suggestions = {"field": spec.name, "items": items}
        listing = "\n".join(f"{i}. {item}" for i, item in enumerate(items, 1))
        text = _join(t("suggestions_intro", locale, label=spec.label), listing, t("suggestions_pick", locale))
        response = self._response(state, config, text)
        response.suggestions = list(items)
        return response

    def _skip(self, state: SessionState, config: CollectionConfig, spec: FieldSpec) -> CollectorResponse:
        locale = self._locale(state, config)
        if spec.is_required:
            return self._response(state, config, _join(t("cannot_skip", locale, label=spec.label), field_prompt(spec, locale)))

        skipped = self._skipped(state)
        if spec.name not in skipped:
            set_metadata(state, META_SKIPPED_FIELDS, skipped + [spec.name])
        state.validation_errors.pop(spec.name, None)
        logger.info("[Flow] %s: skipped optional %s", state.session_id, spec.name)
        return self._advance(state, config, t("skipped", locale, label=spec.label))

    # -----------------------------
    # Confirming
    # -----------------------------
    def _enter_confirming(
        self,
        state: SessionState,
        config: CollectionConfig,
        prefix: str = "",
        updated: bool = False,
    ) -> CollectorResponse:
        locale = self._locale(state, config)
        set_status(state, STATUS_CONFIRMING)
        state.current_field = None
        set_metadata(state, META_PENDING_FIELD, None)

        summary = self.summaries.summary(config, state.collected_data, locale)
        action = self.summaries.action_summary(
            config,
            state.collected_data,
            locale,
            get_metadata(state, META_OUTPUT_MODIFICATIONS),
        )
        set_metadata(state, META_ACTION_PREVIEW, action)

        text = _join(prefix, confirmation_text(summary, action, locale, updated=updated))
        response = self._response(state, config, text)
        response.requires_confirmation = True
        response.summary = summary
        response.action_summary = action
        return response

    def _handle_confirming(self, state: SessionState, config: CollectionConfig, message: str) -> CollectorResponse:
        locale = self._locale(state, config)
        decision = self.intents.classify_confirmation(message)

        if decision == CONFIRM:
            if config.action_summary_prompt:
                state.confirmed_action_summary = get_metadata(state, META_ACTION_PREVIEW)
            return self._complete(state, config)

        if decision == REJECT:
            if config.allow_enhancement:
                return self._start_modification(state, config, message)
            return self._restart(state, config)

        response = self._response(state, config, t("confirm_reask", locale))
        response.requires_confirmation = True
        return response

    def _restart(self, state: SessionState, config: CollectionConfig) -> CollectorResponse:
        locale = self._locale(state, config)
        set_status(state, STATUS_COLLECTING)
        state.collected_data = {}
        state.validation_errors = {}
        state.last_suggestions = None
        state.confirmed_action_summary = None
        for key in (META_SKIPPED_FIELDS, META_PENDING_FIELD, META_OUTPUT_MODIFICATIONS, META_ACTION_PREVIEW):
            set_metadata(state, key, None)

        first = config.first_field()
        state.current_field = first.name if first else None
        logger.info("[Flow] %s: restarted collection", state.session_id)
        return self._response(state, config, _join(t("restart", locale), field_prompt(first, locale) if first else ""))

    # -----------------------------
    # Enhancing
    # -----------------------------
    def _start_modification(self, state: SessionState, config: CollectionConfig, message: str) -> CollectorResponse:
        locale = self._locale(state, config)
        if not config.allow_enhancement or not collected_field_names(state):
            spec = config.get_field(state.current_field)
            text = field_prompt(spec, locale) if spec else t("confirm_reask", locale)
            return self._response(state, config, text)

        set_status(state, STATUS_ENHANCING)
        state.current_field = None
        return self._ask_target(state, config, message)

    def _ask_target(self, state: SessionState, config: CollectionConfig, message: str) -> CollectorResponse:
        locale = self._locale(state, config)
        inline = parse_inline_update(message, config)
        if inline is not None:
            # "change the level to beginner" carries its own value
            errors = self._validate_and_store(state, config, inline[0], inline[1])
            if not errors:
                set_metadata(state, META_PENDING_FIELD, None)
                return self._updated_response(state, config, [inline[0]])

        target = self.intents.detect_target_field(message, config, state.collected_data)
        set_metadata(state, META_PENDING_FIELD, target)

        if target:
            text = t("enhance_pending", locale, label=config.get_field(target).label)
        else:
            labels = ", ".join(f.label for f in config.fields)
            text = t("enhance_which", locale, items=labels)
        response = self._response(state, config, text)
        response.allows_enhancement = True
        return response

    def _handle_enhancing(self, state: SessionState, config: CollectionConfig, message: str) -> CollectorResponse:
        locale = self._locale(state, config)
        pending = get_metadata(state, META_PENDING_FIELD)

        if self.intents.detect_completion_intent(message) or (
            not pending and self.intents.classify_confirmation(message) == CONFIRM
        ):
            return self._finish_enhancing(state, config)

        if self.intents.detect_rejection_intent(message, config):
            return self._ask_target(state, config, message)

        if pending and config.get_field(pending):
            spec = config.get_field(pending)
            value = direct_extract(spec, message) or message.strip()
            errors = self._validate_and_store(state, config, pending, value)
            if errors:
                text = _join(
                    t("invalid", locale, label=spec.label) + "\n" + format_errors({pending: errors}),
                    t("try_again", locale),
                )
                return self._enhancing_response(state, config, text, success=False)
            set_metadata(state, META_PENDING_FIELD, None)
            return self._updated_response(state, config, [spec.name])

        if config.action_summary_prompt and self._is_output_request(message, config):
            return self._modify_output(state, config, message)

        return self._apply_free_form_update(state, config, message)

    def _apply_free_form_update(self, state: SessionState, config: CollectionConfig, message: str) -> CollectorResponse:
        locale = self._locale(state, config)
        updates: Dict[str, Any] = {}

        generated = self._compose_reply(state, config, message)
        for name, value in extract_from_generated(generated, config).items():
            if config.get_field(name):
                updates[name] = value
        if not updates:
            inline = parse_inline_update(message, config)
            if inline:
                updates[inline[0]] = inline[1]

        if not updates:
            labels = ", ".join(f.label for f in config.fields)
            text = _join(t("enhance_no_change", locale), t("enhance_which", locale, items=labels))
            return self._enhancing_response(state, config, text)

        stored: List[str] = []
        failed: Dict[str, List[FieldError]] = {}
        for name, value in updates.items():
            errors = self._validate_and_store(state, config, name, value)
            if errors:
                failed[name] = errors
            else:
                stored.append(name)

        if failed and not stored:
            text = _join(format_errors(failed), t("try_again", locale))
            return self._enhancing_response(state, config, text, success=False)

        response = self._updated_response(state, config, stored)
        if failed:
            response.message = _join(response.message, format_errors(failed))
        return response

    def _updated_response(self, state: SessionState, config: CollectionConfig, names: List[str]) -> CollectorResponse:
        locale = self._locale(state, config)
        lines = [
            t("enhance_updated", locale, label=config.get_field(n).label, value=state.collected_data.get(n))
            for n in names
        ]
        text = _join(
            "\n".join(lines),
            data_summary(config, state.collected_data, locale),
            t("enhance_more", locale),
        )
        return self._enhancing_response(state, config, text)

    def _enhancing_response(
        self,
        state: SessionState,
        config: CollectionConfig,
        text: str,
        success: bool = True,
    ) -> CollectorResponse:
        response = self._response(state, config, text, success=success)
        response.allows_enhancement = True
        return response

    def _is_output_request(self, message: str, config: CollectionConfig) -> bool:
        text = (message or "").lower()
        keys = [str(k).lower() for k in (config.output_schema or {}).keys()]
        return any(_mentions(text, word) for word in list(OUTPUT_WORDS) + keys)

    def _modify_output(self, state: SessionState, config: CollectionConfig, message: str) -> CollectorResponse:
        locale = self._locale(state, config)
        mods = list(get_metadata(state, META_OUTPUT_MODIFICATIONS) or [])
        mods.append(message.strip())
        set_metadata(state, META_OUTPUT_MODIFICATIONS, mods)

        action = self.summaries.action_summary(config, state.collected_data, locale, mods)
        set_metadata(state, META_ACTION_PREVIEW, action)
        logger.info("[Flow] %s: output modification #%d", state.session_id, len(mods))

        response = self._enhancing_response(
            state,
            config,
            _join(t("output_updated", locale), action, t("output_more", locale)),
        )
        response.action_summary = action
        return response

    def _finish_enhancing(self, state: SessionState, config: CollectionConfig) -> CollectorResponse:
        locale = self._locale(state, config)
        set_metadata(state, META_PENDING_FIELD, None)

        nxt = pick_next_field(config, state.collected_data, self._skipped(state))
        if nxt is None:
            return self._enter_confirming(state, config, updated=True)

        set_status(state, STATUS_COLLECTING)
        state.current_field = nxt
        return self._response(state, config, field_prompt(config.get_field(nxt), locale))

    # -----------------------------
    # Terminal transitions
    # -----------------------------
    def _complete(self, state: SessionState, config: CollectionConfig, prefix: str = "") -> CollectorResponse:
        locale = self._locale(state, config)

        errors = validate_all(config, state.collected_data)
        if errors:
            state.validation_errors = errors
            set_status(state, STATUS_COLLECTING)
            first_invalid = next(f.name for f in config.fields if f.name in errors)
            state.current_field = first_invalid
            text = _join(
                prefix,
                t("fix_errors", locale) + "\n" + format_errors(errors),
                field_prompt(config.get_field(first_invalid), locale),
            )
            return self._response(state, config, text, success=False)

        generated_output = self.output.generate(config, state) if config.output_schema else None

        payload = dict(state.collected_data)
        if generated_output is not None:
            payload["_generated_output"] = generated_output

        result: Any = payload
        if config.on_complete is not None:
            try:
                result = config.on_complete(payload)
            except Exception as e:
                logger.exception("[Flow] %s: completion callback failed", state.session_id)
                response = self._response(state, config, t("completion_failed", locale, error=e), success=False)
                response.error = "completion_failed"
                return response

        set_status(state, STATUS_COMPLETED)
        state.current_field = None
        logger.info("[Flow] %s: completed config=%s", state.session_id, config.name)

        response = self._response(state, config, _join(prefix, config.success_message or t("completed", locale)))
        response.is_complete = True
        response.result = result
        response.generated_output = generated_output
        response.summary = data_summary(config, state.collected_data, locale)
        return response

    def _cancel(self, state: SessionState, config: CollectionConfig, record: bool = True) -> CollectorResponse:
        set_status(state, STATUS_CANCELLED)
        state.current_field = None
        logger.info("[Flow] %s: cancelled", state.session_id)

        text = config.cancel_message or t("cancelled", self._locale(state, config))
        response = self._response(state, config, text)
        response.is_cancelled = True
        if record:
            self._finish(state, text)
        return response

    # -----------------------------
    # Document extraction
    # -----------------------------
    def extract_data_from_content(
        self,
        session_id: str,
        content: str,
        fields: Optional[List[str]] = None,
        language: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Pulls field values out of free text (an uploaded document). Nothing is
        stored; an empty dict means nothing usable was found.
        """
        state = self.store.load_session(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        config = self._resolve_config(state)
        if config is None:
            raise ConfigNotFoundError(state.config_name)

        wanted = [n for n in (fields or config.field_names) if config.get_field(n)]
        if not wanted or not (content or "").strip():
            return {}

        lines = []
        for name in wanted:
            spec = config.get_field(name)
            hints = validation_hints(spec)
            lines.append(f"- {name}: {spec.label}" + (f" ({'; '.join(hints)})" if hints else ""))

        locale = language or self._locale(state, config)
        prompt = render_prompt(
            "content_extraction.txt",
            {"fields": "\n".join(lines), "content": content, "language": locale_name(locale)},
        )
        result = self.generator.generate(
            "You extract structured data from documents. Return only JSON.",
            prompt,
            max_output_tokens=1200,
        )
        if not result.success:
            logger.warning("[Flow] %s: content extraction failed: %s", session_id, result.error)
            return {}

        try:
            raw = parse_json_strict(result.content)
        except JSONParseError as e:
            logger.warning("[Flow] %s: content extraction unparsable: %s", session_id, e)
            return {}

        extracted: Dict[str, Any] = {}
        for name in wanted:
            value = raw.get(name)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            if not is_empty(value):
                extracted[name] = value.strip() if isinstance(value, str) else value
        logger.info("[Flow] %s: extracted %d field(s) from content", session_id, len(extracted))
        return extracted

    def apply_extracted_data(
        self,
        session_id: str,
        data: Dict[str, Any],
        language: Optional[str] = None,
    ) -> CollectorResponse:
        state, config, failure = self._load_active(session_id)
        if failure is not None:
            return failure

        if language and not config.locale:
            state.detected_locale = language
        locale = self._locale(state, config)

        for name, value in (data or {}).items():
            if config.get_field(name) is None or is_empty(value):
                continue
            self._validate_and_store(state, config, name, value)
        set_metadata(state, META_SOURCE, "document")

        nxt = pick_next_field(config, state.collected_data, self._skipped(state))
        if nxt is None:
            response = self._enter_confirming(state, config, prefix=t("extracted", locale))
        else:
            if state.status != STATUS_COLLECTING:
                set_status(state, STATUS_COLLECTING)
            state.current_field = nxt
            set_metadata(state, META_PENDING_FIELD, None)
            text = _join(
                t("extracted", locale),
                data_summary(config, state.collected_data, locale),
                field_prompt(config.get_field(nxt), locale),
            )
            response = self._response(state, config, text)

        if state.validation_errors:
            response.message = _join(response.message, format_errors(state.validation_errors))
        self._finish(state, response.message)
        return response

    # -----------------------------
    # Helpers
    # -----------------------------
    def _load_active(
        self, session_id: str
    ) -> Tuple[Optional[SessionState], Optional[CollectionConfig], Optional[CollectorResponse]]:
        """(state, config, None) for an active session, otherwise a failure response."""
        state = self.store.load_session(session_id)
        if state is None:
            logger.warning("[Flow] no session %s", session_id)
            return None, None, self._failure("session_not_found", t("no_session"))

        config = self._resolve_config(state)
        if config is None:
            logger.warning("[Flow] %s: config %s not found", session_id, state.config_name)
            return state, None, self._failure("config_not_found", t("no_config"), state=state)

        if state.status in TERMINAL_STATUSES:
            failure = self._failure("session_finished", t("finished", self._locale(state, config)), state=state, config=config)
            return state, config, failure
        return state, config, None

    def _skipped(self, state: SessionState) -> List[str]:
        return list(get_metadata(state, META_SKIPPED_FIELDS) or [])

    def _locale(self, state: SessionState, config: CollectionConfig) -> str:
        return config.locale or state.detected_locale or default_locale()

    def _refresh_locale(self, state: SessionState, config: CollectionConfig, message: str) -> None:
        if config.locale:
            return
        detected = detect_locale(message, default="")
        if config.detect_locale:
            state.detected_locale = detected or None
        elif detected and not state.detected_locale:
            state.detected_locale = detected

    def _response(
        self,
        state: SessionState,
        config: CollectionConfig,
        message: str,
        success: bool = True,
    ) -> CollectorResponse:
        return CollectorResponse(
            success=success,
            message=message,
            session_id=state.session_id,
            status=state.status,
            current_field=state.current_field,
            collected_fields=collected_field_names(state),
            remaining_fields=remaining_fields(config, state.collected_data, self._skipped(state)),
            validation_errors={k: list(v) for k, v in state.validation_errors.items()},
            allows_enhancement=state.status == STATUS_ENHANCING,
            data=dict(state.collected_data),
            locale=self._locale(state, config),
        )

    def _failure(
        self,
        code: str,
        message: str,
        state: Optional[SessionState] = None,
        config: Optional[CollectionConfig] = None,
    ) -> CollectorResponse:
        response = CollectorResponse(success=False, message=message, error=code)
        if state is not None:
            response.session_id = state.session_id
            response.status = state.status
            response.current_field = state.current_field
            response.data = dict(state.collected_data)
            response.locale = (config.locale if config else None) or state.detected_locale or default_locale()
        return response

    def _finish(self, state: SessionState, message: str) -> None:
        add_message(state, "assistant", message)
        set_metadata(state, META_LAST_RESPONSE, message)
        self.store.save_session(state)
