from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..llm.client import TextGenerator, render_prompt
from ..llm.context_builder import build_collected_block, language_instruction
from .locale import locale_name
from .messages import t
from .types import CollectionConfig

logger = logging.getLogger(__name__)


def _display(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def data_summary(config: CollectionConfig, data: Dict[str, Any], locale: Optional[str] = None) -> str:
    lines = [t("summary_title", locale, title=config.display_title), ""]
    for spec in config.fields:
        value = data.get(spec.name)
        shown = _display(value) if value not in (None, "") else t("not_provided", locale)
        optional = "" if spec.is_required else t("optional", locale)
        label = spec.name.replace("_", " ").title()
        lines.append(f"**{label}**{optional}: {shown}")
    return "\n".join(lines)


def static_action_summary(config: CollectionConfig, data: Dict[str, Any], locale: Optional[str] = None) -> str:
    """config.action_summary with {field} placeholders filled, or a generic line."""
    if config.action_summary:
        out = config.action_summary
        for key, value in data.items():
            if isinstance(value, (str, int, float)) and not isinstance(value, bool):
                out = out.replace("{" + key + "}", str(value))
        return out
    return t("default_action", locale or config.locale, title=config.display_title)


def modifications_block(modifications: Optional[List[str]]) -> str:
    if not modifications:
        return ""
    return "\nUSER REQUESTED MODIFICATIONS:\n" + "\n".join(f"- {m}" for m in modifications) + "\n"


class SummaryBuilder:
    """
    Data summary and action preview. Model-generated when the config carries
    the matching prompt; the static rendition is the fallback either way.
    """

    def __init__(self, generator: TextGenerator):
        self.generator = generator

    def summary(self, config: CollectionConfig, data: Dict[str, Any], locale: Optional[str] = None) -> str:
        if not config.summary_prompt:
            return data_summary(config, data, locale)

        prompt = render_prompt(
            "summary.txt",
            {
                "instructions": config.summary_prompt,
                "collected": build_collected_block(data),
                "language": locale_name(locale),
            },
        )
        result = self.generator.generate(language_instruction(locale), prompt, max_output_tokens=600)
        if not result.success or not result.content.strip():
            logger.warning("[Summary] generation failed config=%s: %s", config.name, result.error)
            return data_summary(config, data, locale)
        return result.content.strip()

    def action_summary(
        self,
        config: CollectionConfig,
        data: Dict[str, Any],
        locale: Optional[str] = None,
        modifications: Optional[List[str]] = None,
    ) -> str:
        if not config.action_summary_prompt:
            return static_action_summary(config, data, locale)

        prompt = render_prompt(
            "action_summary.txt",
            {
                "instructions": config.action_summary_prompt,
                "collected": build_collected_block(data),
                "modifications": modifications_block(modifications),
                "language": locale_name(locale),
            },
        )
        result = self.generator.generate(language_instruction(locale), prompt, max_output_tokens=900)
        if not result.success or not result.content.strip():
            logger.warning("[Summary] action summary failed config=%s: %s", config.name, result.error)
            return static_action_summary(config, data, locale)
        return result.content.strip()
