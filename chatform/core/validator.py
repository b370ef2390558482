from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .constants import FIELD_NUMBER, FIELD_SELECT, FIELD_TEXT
from .errors import ConfigError, InvalidRuleError
from .mapping import is_empty
from .types import CollectionConfig, FieldError, FieldSpec


NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$")
INTEGER_RE = re.compile(r"^-?\d+$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
URL_RE = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)

FLAG_RULES = ("required", "nullable", "string", "numeric", "integer", "email", "url")
ARG_RULES = ("min", "max", "between", "in")


@dataclass
class Rule:
    name: str
    args: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.name}:{','.join(self.args)}" if self.args else self.name


# -----------------------------
# Rule parsing
# -----------------------------
def _number(raw: str, field_name: str, rule: str) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise InvalidRuleError(field_name, rule, f"'{raw}' is not a number")


def parse_rules(validation: Optional[str], field_name: str = "") -> List[Rule]:
    """
    "required|numeric|min:1" -> [Rule("required"), Rule("numeric"), Rule("min", ["1"])]
    Raises InvalidRuleError for unknown or malformed rules.
    """
    rules: List[Rule] = []
    for part in (validation or "").split("|"):
        part = part.strip()
        if not part:
            continue

        if ":" in part:
            name, raw_args = part.split(":", 1)
            name = name.strip().lower()
            args = [a.strip() for a in raw_args.split(",") if a.strip()]
        else:
            name, args = part.lower(), []

        if name in FLAG_RULES:
            if args:
                raise InvalidRuleError(field_name, part, "takes no arguments")
        elif name in ("min", "max"):
            if len(args) != 1:
                raise InvalidRuleError(field_name, part, "expects exactly one number")
            _number(args[0], field_name, part)
        elif name == "between":
            if len(args) != 2:
                raise InvalidRuleError(field_name, part, "expects two numbers")
            lo, hi = _number(args[0], field_name, part), _number(args[1], field_name, part)
            if lo > hi:
                raise InvalidRuleError(field_name, part, "lower bound exceeds upper bound")
        elif name == "in":
            if not args:
                raise InvalidRuleError(field_name, part, "expects at least one option")
        else:
            raise InvalidRuleError(field_name, part, "unknown rule")

        rules.append(Rule(name=name, args=args))
    return rules


def validate_config(config: CollectionConfig) -> None:
    if not config.name:
        raise ConfigError("Collection config needs a name")
    if not config.fields:
        raise ConfigError(f"Collection config '{config.name}' has no fields")

    seen = set()
    for f in config.fields:
        if not f.name:
            raise ConfigError(f"Collection config '{config.name}' has a field without a name")
        if f.name in seen:
            raise ConfigError(f"Duplicate field '{f.name}' in config '{config.name}'")
        seen.add(f.name)

        if f.type not in (FIELD_TEXT, FIELD_NUMBER, FIELD_SELECT):
            raise ConfigError(f"Field '{f.name}' has unsupported type '{f.type}'")
        if f.type == FIELD_SELECT and not f.options:
            raise ConfigError(f"Select field '{f.name}' needs options")

        parse_rules(f.validation, f.name)


# -----------------------------
# Value checks
# -----------------------------
def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    s = str(value).strip()
    if NUMERIC_RE.match(s):
        return float(s)
    return None


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return value.is_integer()
    return bool(INTEGER_RE.match(str(value).strip()))


def _fmt(n: float) -> str:
    return str(int(n)) if float(n).is_integer() else str(n)


def validate(spec: FieldSpec, value: Any) -> List[FieldError]:
    """
    Every violated rule is reported. An empty value only ever yields the
    'required' error (or nothing for optional fields).
    """
    rules = parse_rules(spec.validation, spec.name)
    label = spec.label
    errors: List[FieldError] = []

    def err(rule: str, message: str) -> None:
        errors.append(FieldError(field=spec.name, rule=rule, message=message))

    if is_empty(value):
        if spec.is_required:
            err("required", f"{label} is required.")
        return errors

    numeric_context = spec.is_numeric
    number = _as_number(value)
    text = str(value).strip()

    if spec.type == FIELD_NUMBER and number is None and not any(r.name in ("numeric", "integer") for r in rules):
        err("numeric", f"{label} must be a number.")

    for rule in rules:
        name, args = rule.name, rule.args

        if name == "string" and not isinstance(value, str):
            err(name, f"{label} must be text.")

        elif name == "numeric" and number is None:
            err(name, f"{label} must be a number.")

        elif name == "integer" and not _is_integer(value):
            err(name, f"{label} must be a whole number.")

        elif name == "email" and not EMAIL_RE.match(text):
            err(name, f"{label} must be a valid email address.")

        elif name == "url" and not URL_RE.match(text):
            err(name, f"{label} must be a valid URL.")

        elif name in ("min", "max", "between"):
            bounds = [float(a) for a in args]
            if numeric_context:
                if number is None:
                    continue
                measured, unit = number, ""
            else:
                measured, unit = float(len(text)), " characters"

            if name == "min" and measured < bounds[0]:
                err(name, f"{label} must be at least {_fmt(bounds[0])}{unit}.")
            elif name == "max" and measured > bounds[0]:
                err(name, f"{label} must not exceed {_fmt(bounds[0])}{unit}.")
            elif name == "between" and not (bounds[0] <= measured <= bounds[1]):
                err(name, f"{label} must be between {_fmt(bounds[0])} and {_fmt(bounds[1])}{unit}.")

        elif name == "in":
            if text.lower() not in [a.lower() for a in args]:
                err(name, f"{label} must be one of: {', '.join(args)}.")

    if spec.type == FIELD_SELECT and spec.options:
        if text.lower() not in [str(o).strip().lower() for o in spec.options]:
            err("option", f"{label} must be one of: {', '.join(spec.options)}.")

    return errors


def validate_all(config: CollectionConfig, data: Dict[str, Any]) -> Dict[str, List[FieldError]]:
    out: Dict[str, List[FieldError]] = {}
    for spec in config.fields:
        errs = validate(spec, data.get(spec.name))
        if errs:
            out[spec.name] = errs
    return out


# -----------------------------
# Hints for prompts
# -----------------------------
def validation_hints(spec: FieldSpec) -> List[str]:
    hints: List[str] = []
    unit = "" if spec.is_numeric else " characters"
    for rule in parse_rules(spec.validation, spec.name):
        if rule.name == "min":
            hints.append(f"minimum {rule.args[0]}{unit}")
        elif rule.name == "max":
            hints.append(f"maximum {rule.args[0]}{unit}")
        elif rule.name == "between":
            hints.append(f"between {rule.args[0]} and {rule.args[1]}{unit}")
        elif rule.name == "email":
            hints.append("must be a valid email address")
        elif rule.name == "url":
            hints.append("must be a valid URL")
        elif rule.name == "numeric":
            hints.append("must be a number")
        elif rule.name == "integer":
            hints.append("must be a whole number")
        elif rule.name == "in":
            hints.append(f"must be one of: {', '.join(rule.args)}")
    if spec.type == FIELD_SELECT and spec.options:
        hints.append(f"one of: {', '.join(spec.options)}")
    return hints
