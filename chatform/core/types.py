from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .constants import DEFAULT_LOCALE, FIELD_TEXT, FIELD_TYPE_ALIASES, STATUS_COLLECTING


FieldName = str
SessionId = str

CompletionCallback = Callable[[Dict[str, Any]], Any]


def _as_list(v: Any) -> List[Any]:
    if v is None:
        return []
    if isinstance(v, (list, tuple)):
        return list(v)
    if isinstance(v, str):
        return [x.strip() for x in v.split(",") if x.strip()]
    return [v]


def normalize_field_type(raw: Optional[str]) -> str:
    t = (raw or FIELD_TEXT).strip().lower()
    return FIELD_TYPE_ALIASES.get(t, t)


@dataclass
class FieldSpec:
    name: FieldName
    type: str = FIELD_TEXT              # "text" | "number" | "select"
    description: str = ""
    validation: str = ""                # e.g. "required|numeric|min:1"
    required: bool = True
    examples: List[str] = field(default_factory=list)
    options: List[str] = field(default_factory=list)
    default: Any = None
    prompt: Optional[str] = None        # custom collection prompt
    order: Optional[int] = None

    @property
    def label(self) -> str:
        return self.description or self.name.replace("_", " ").title()

    @property
    def rules(self) -> List[str]:
        return [r.strip() for r in (self.validation or "").split("|") if r.strip()]

    @property
    def is_required(self) -> bool:
        """An explicit "required" or "nullable" rule wins over the flag."""
        names = {r.split(":", 1)[0].strip().lower() for r in self.rules}
        if "required" in names:
            return True
        if "nullable" in names:
            return False
        return self.required

    @property
    def is_numeric(self) -> bool:
        rules = self.rules
        return self.type == "number" or "numeric" in rules or "integer" in rules

    @classmethod
    def from_definition(cls, name: str, definition: Any) -> "FieldSpec":
        """
        Accepts either a dict definition or the compact string form:
          "The course name | required | min:3 | max:255"
          "Course duration in hours | type:number | numeric | min:1"
        """
        if isinstance(definition, FieldSpec):
            return definition
        if isinstance(definition, str):
            return cls._parse_string_definition(name, definition)

        d = dict(definition or {})
        return cls(
            name=str(d.get("name") or name),
            type=normalize_field_type(d.get("type")),
            description=str(d.get("description", "") or ""),
            validation=str(d.get("validation", "") or ""),
            required=bool(d.get("required", True)),
            examples=[str(x) for x in _as_list(d.get("examples"))],
            options=[str(x) for x in _as_list(d.get("options"))],
            default=d.get("default"),
            prompt=d.get("prompt"),
            order=d.get("order"),
        )

    @classmethod
    def _parse_string_definition(cls, name: str, definition: str) -> "FieldSpec":
        parts = [p.strip() for p in definition.split("|")]
        description = ""
        rules: List[str] = []
        field_type = FIELD_TEXT
        required = True
        examples: List[str] = []
        options: List[str] = []

        for i, part in enumerate(parts):
            if not part:
                continue
            if i == 0 and ":" not in part and part.lower() not in ("required", "numeric", "integer", "email", "url"):
                description = part
                continue

            if ":" in part:
                key, value = [x.strip() for x in part.split(":", 1)]
                k = key.lower()
                if k == "type":
                    field_type = normalize_field_type(value)
                elif k == "required":
                    required = value.lower() in ("1", "true", "yes")
                elif k == "validation":
                    rules.extend([r.strip() for r in value.split(",") if r.strip()])
                elif k == "examples":
                    examples = _as_list(value)
                elif k == "options":
                    options = _as_list(value)
                else:
                    rules.append(part)
            elif part.lower() == "optional":
                required = False
            else:
                rules.append(part)

        if options and field_type == FIELD_TEXT:
            field_type = "select"

        return cls(
            name=name,
            type=field_type,
            description=description,
            validation="|".join(rules),
            required=required,
            examples=examples,
            options=options,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "validation": self.validation,
            "required": self.required,
            "examples": list(self.examples),
            "options": list(self.options),
            "default": self.default,
            "prompt": self.prompt,
            "order": self.order,
        }


@dataclass
class CollectionConfig:
    name: str
    fields: List[FieldSpec] = field(default_factory=list)
    title: str = ""
    description: str = ""

    confirm_before_complete: bool = True
    allow_enhancement: bool = True
    allow_skip_optional: bool = True

    success_message: Optional[str] = None
    cancel_message: Optional[str] = None

    # Prompt templates
    system_prompt: Optional[str] = None
    summary_prompt: Optional[str] = None
    action_summary: Optional[str] = None          # static, supports {field} placeholders
    action_summary_prompt: Optional[str] = None
    output_schema: Optional[Dict[str, Any]] = None
    output_prompt: Optional[str] = None

    # Fixed locale; when None the locale is auto-detected
    locale: Optional[str] = None
    detect_locale: bool = False                   # re-detect on every message

    initial_data: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    # Not serialized; must be re-attached by whoever registers the config
    on_complete: Optional[CompletionCallback] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if any(f.order is not None for f in self.fields):
            indexed = list(enumerate(self.fields))
            indexed.sort(key=lambda p: (p[1].order if p[1].order is not None else p[0], p[0]))
            self.fields = [f for _, f in indexed]

    # -----------------------------
    # Lookups
    # -----------------------------
    def get_field(self, name: Optional[str]) -> Optional[FieldSpec]:
        if not name:
            return None
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def field_names(self) -> List[FieldName]:
        return [f.name for f in self.fields]

    @property
    def required_fields(self) -> List[FieldSpec]:
        return [f for f in self.fields if f.is_required]

    @property
    def optional_fields(self) -> List[FieldSpec]:
        return [f for f in self.fields if not f.is_required]

    def first_field(self) -> Optional[FieldSpec]:
        return self.fields[0] if self.fields else None

    @property
    def display_title(self) -> str:
        return self.title or self.name.replace("_", " ").title()

    def validate(self) -> None:
        """Raises ConfigError when the schema is unusable."""
        from .validator import validate_config

        validate_config(self)

    # -----------------------------
    # (De)serialization
    # -----------------------------
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CollectionConfig":
        raw_fields = data.get("fields") or []
        if isinstance(raw_fields, dict):
            fields = [FieldSpec.from_definition(k, v) for k, v in raw_fields.items()]
        else:
            fields = [FieldSpec.from_definition(str(d.get("name", "")), d) for d in raw_fields]

        return cls(
            name=str(data["name"]),
            fields=fields,
            title=str(data.get("title", "") or ""),
            description=str(data.get("description", "") or ""),
            confirm_before_complete=bool(data.get("confirm_before_complete", True)),
            allow_enhancement=bool(data.get("allow_enhancement", True)),
            allow_skip_optional=bool(data.get("allow_skip_optional", True)),
            success_message=data.get("success_message"),
            cancel_message=data.get("cancel_message"),
            system_prompt=data.get("system_prompt"),
            summary_prompt=data.get("summary_prompt"),
            action_summary=data.get("action_summary"),
            action_summary_prompt=data.get("action_summary_prompt"),
            output_schema=data.get("output_schema"),
            output_prompt=data.get("output_prompt"),
            locale=data.get("locale"),
            detect_locale=bool(data.get("detect_locale", False)),
            initial_data=dict(data.get("initial_data") or {}),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "fields": [f.to_dict() for f in self.fields],
            "confirm_before_complete": self.confirm_before_complete,
            "allow_enhancement": self.allow_enhancement,
            "allow_skip_optional": self.allow_skip_optional,
            "success_message": self.success_message,
            "cancel_message": self.cancel_message,
            "system_prompt": self.system_prompt,
            "summary_prompt": self.summary_prompt,
            "action_summary": self.action_summary,
            "action_summary_prompt": self.action_summary_prompt,
            "output_schema": self.output_schema,
            "output_prompt": self.output_prompt,
            "locale": self.locale,
            "detect_locale": self.detect_locale,
            "initial_data": dict(self.initial_data),
            "metadata": dict(self.metadata),
        }


@dataclass
class FieldError:
    field: FieldName
    rule: str                     # "required" | "numeric" | "min" | "option" ...
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "rule": self.rule, "message": self.message}


@dataclass
class Message:
    role: str                     # "user" | "assistant"
    content: str
    ts: str = ""


@dataclass
class SessionState:
    session_id: SessionId
    config_name: str
    status: str = STATUS_COLLECTING
    created_at: str = ""          # ISO-8601 timestamp
    completed_at: Optional[str] = None

    collected_data: Dict[FieldName, Any] = field(default_factory=dict)
    current_field: Optional[FieldName] = None
    validation_errors: Dict[FieldName, List[FieldError]] = field(default_factory=dict)
    message_history: List[Message] = field(default_factory=list)

    detected_locale: Optional[str] = None
    # {"field": <name>, "items": [<suggestion>, ...]}
    last_suggestions: Optional[Dict[str, Any]] = None
    confirmed_action_summary: Optional[str] = None

    # Closed key set, see constants.METADATA_KEYS
    metadata: Dict[str, Any] = field(default_factory=dict)
    embedded_config: Optional[Dict[str, Any]] = None


@dataclass
class CollectorResponse:
    success: bool
    message: str
    session_id: Optional[SessionId] = None
    status: Optional[str] = None
    current_field: Optional[FieldName] = None
    collected_fields: List[FieldName] = field(default_factory=list)
    remaining_fields: List[FieldName] = field(default_factory=list)
    validation_errors: Dict[FieldName, List[FieldError]] = field(default_factory=dict)

    requires_confirmation: bool = False
    allows_enhancement: bool = False
    is_complete: bool = False
    is_cancelled: bool = False

    summary: Optional[str] = None
    action_summary: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    result: Any = None
    generated_output: Optional[Dict[str, Any]] = None
    data: Dict[FieldName, Any] = field(default_factory=dict)

    # machine-readable code for turn-level failures
    error: Optional[str] = None
    locale: str = DEFAULT_LOCALE

    @property
    def is_finished(self) -> bool:
        return self.is_complete or self.is_cancelled

    @property
    def progress(self) -> float:
        total = len(self.collected_fields) + len(self.remaining_fields)
        if total == 0:
            return 100.0
        return round(len(self.collected_fields) / total * 100, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "session_id": self.session_id,
            "status": self.status,
            "current_field": self.current_field,
            "collected_fields": list(self.collected_fields),
            "remaining_fields": list(self.remaining_fields),
            "validation_errors": {
                k: [e.to_dict() for e in errs] for k, errs in self.validation_errors.items()
            },
            "requires_confirmation": self.requires_confirmation,
            "allows_enhancement": self.allows_enhancement,
            "is_complete": self.is_complete,
            "is_cancelled": self.is_cancelled,
            "summary": self.summary,
            "action_summary": self.action_summary,
            "suggestions": list(self.suggestions),
            "progress": self.progress,
            "data": dict(self.data),
            "result": self.result,
            "generated_output": self.generated_output,
            "error": self.error,
            "locale": self.locale,
        }
