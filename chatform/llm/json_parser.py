from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Tuple


class JSONParseError(ValueError):
    pass


FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)

# Applied in order to a candidate object before the second json.loads
REPAIRS: List[Tuple["re.Pattern[str]", str]] = [
    (re.compile(r"\bNone\b"), "null"),
    (re.compile(r"\bTrue\b"), "true"),
    (re.compile(r"\bFalse\b"), "false"),
    (re.compile(r":\s*\.(\d+)"), r": 0.\1"),     # .7 -> 0.7
    (re.compile(r",\s*([}\]])"), r"\1"),         # trailing commas
]


def _balanced_object(text: str, start: int) -> str:
    """Slice from text[start] == "{" to its matching brace, skipping string literals."""
    depth = 0
    in_string = False
    escaped = False
    for i, c in enumerate(text[start:], start):
        if in_string:
            if escaped:
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    raise JSONParseError("Unbalanced JSON braces in model output")


def _candidate(text: str) -> str:
    fenced = FENCE_RE.search(text)
    if fenced:
        return fenced.group(1)

    start = text.find("{")
    if start == -1:
        raise JSONParseError("No '{' found in model output")
    return _balanced_object(text, start)


def _repair(candidate: str) -> str:
    out = candidate.strip()
    for pattern, replacement in REPAIRS:
        out = pattern.sub(replacement, out)
    return out


def parse_json_strict(text: str) -> Dict[str, Any]:
    """
    JSON object from model output: plain, fenced (```json), or embedded in
    prose, with common model mistakes repaired on the second attempt.
    Raises JSONParseError for anything that does not yield an object.
    """
    if not text or not text.strip():
        raise JSONParseError("Empty model output")

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = json.loads(_repair(_candidate(text)))
        except json.JSONDecodeError as e:
            raise JSONParseError(f"Failed to parse JSON: {e}\n--- Raw ---\n{text[:800]}") from e

    if not isinstance(data, dict):
        raise JSONParseError(f"Expected a JSON object, got {type(data).__name__}")
    return data
