from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from ..llm.client import TextGenerator, render_prompt
from ..llm.json_parser import JSONParseError, parse_json_strict
from .constants import META_OUTPUT_MODIFICATIONS
from .types import CollectionConfig, SessionState

logger = logging.getLogger(__name__)


OUTPUT_SYSTEM_PROMPT = (
    "You are a data generation assistant. Generate structured JSON output based on user input.\n\n"
    "IMPORTANT RULES:\n"
    "1. Return ONLY valid JSON, no markdown code blocks, no explanations\n"
    "2. Follow the schema structure exactly\n"
    "3. Generate realistic, relevant content based on the input data\n"
    "4. For arrays, generate the number of items specified or a reasonable default"
)


def build_schema_description(schema: Dict[str, Any], indent: int = 0) -> str:
    """
    {"lessons": {"type": "array", "count": 5, "items": {"title": "string"}}}
    ->
    lessons: array of objects (generate 5 items)
      Each item has:
        title: string
    """
    prefix = "  " * indent
    lines: List[str] = []

    for key, value in (schema or {}).items():
        if not isinstance(value, dict):
            lines.append(f"{prefix}{key}: {value}")
            continue

        if "type" not in value:
            lines.append(f"{prefix}{key}: object")
            lines.append(build_schema_description(value, indent + 1))
            continue

        kind = value["type"]
        desc = value.get("description") or ""
        if kind == "array" and isinstance(value.get("items"), dict):
            count = value.get("count")
            count_str = f" (generate {count} items)" if count else ""
            lines.append(f"{prefix}{key}: array of objects{count_str}")
            if desc:
                lines.append(f"{prefix}  // {desc}")
            lines.append(f"{prefix}  Each item has:")
            lines.append(build_schema_description(value["items"], indent + 2))
        else:
            lines.append(f"{prefix}{key}: {kind}" + (f" // {desc}" if desc else ""))

    return "\n".join(line for line in lines if line)


def _fill_placeholders(template: str, data: Dict[str, Any]) -> str:
    out = template
    for key, value in data.items():
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            out = out.replace("{" + key + "}", str(value))
    return out


def _collected_lines(data: Dict[str, Any]) -> str:
    lines = []
    for key, value in data.items():
        label = key.replace("_", " ").title()
        if isinstance(value, (list, dict)):
            value = json.dumps(value, ensure_ascii=False)
        lines.append(f"- **{label}**: {value}")
    return "\n".join(lines)


class StructuredOutputGenerator:
    def __init__(self, generator: TextGenerator, max_output_tokens: int = 4000):
        self.generator = generator
        self.max_output_tokens = max_output_tokens

    def build_prompt(self, config: CollectionConfig, state: SessionState) -> str:
        data = state.collected_data

        if state.confirmed_action_summary:
            source_block = (
                "\nCONFIRMED STRUCTURE (USE THIS AS THE SOURCE):\n"
                f"{state.confirmed_action_summary}\n\n"
                "IMPORTANT: Convert the above confirmed structure into JSON format. "
                "Do NOT generate new content. Use the exact details shown above.\n"
            )
        else:
            mods = state.metadata.get(META_OUTPUT_MODIFICATIONS) or []
            source_block = ""
            if mods:
                source_block = (
                    "\nIMPORTANT - USER REQUESTED MODIFICATIONS:\n"
                    + "\n".join(f"- {m}" for m in mods)
                    + "\nMake sure to apply ALL these modifications to the generated output.\n"
                )

        instructions = _fill_placeholders(
            config.output_prompt or "Generate the structured output based on the collected data.",
            data,
        )

        return render_prompt(
            "structured_output.txt",
            {
                "title": config.display_title,
                "collected": _collected_lines(data),
                "source_block": source_block,
                "schema": build_schema_description(config.output_schema or {}),
                "extra_instructions": instructions,
            },
        )

    def generate(self, config: CollectionConfig, state: SessionState) -> Optional[Dict[str, Any]]:
        """
        Returns the parsed JSON object, or None when there is no schema,
        the call fails, or the output is not a JSON object.
        """
        if not config.output_schema:
            return None

        prompt = self.build_prompt(config, state)
        result = self.generator.generate(OUTPUT_SYSTEM_PROMPT, prompt, max_output_tokens=self.max_output_tokens)
        if not result.success:
            logger.warning("[Output] generation failed config=%s: %s", config.name, result.error)
            return None

        try:
            output = parse_json_strict(result.content)
        except JSONParseError as e:
            logger.warning("[Output] unparsable JSON config=%s: %s", config.name, e)
            return None

        logger.info("[Output] generated config=%s keys=%s", config.name, list(output.keys()))
        return output
