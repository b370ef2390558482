from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from ..core.config import env_bool, env_float, env_str, use_llm

logger = logging.getLogger(__name__)

PROMPTS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "prompts")


# -------------------------
# Prompt templates
# -------------------------
def load_prompt(name: str, prompts_dir: str = PROMPTS_DIR) -> str:
    path = os.path.join(prompts_dir, name)
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def render_prompt(name: str, variables: Dict[str, Any], prompts_dir: str = PROMPTS_DIR) -> str:
    return load_prompt(name, prompts_dir).format(**variables)


# -------------------------
# Generator contract
# -------------------------
@dataclass
class GenerationResult:
    content: str = ""
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "GenerationResult":
        return cls(content="", success=False, error=error)


class TextGenerator(ABC):
    """
    prompt -> text. Implementations must never raise: failures come back
    as GenerationResult(success=False) so callers can fall back.
    """

    @abstractmethod
    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: int = 500,
    ) -> GenerationResult:
        ...



# -------------------------
# Response shapes
# -------------------------
def response_text(data: Any) -> Optional[str]:
    """
    Text out of the JSON shapes gateways return:
      {"text": ...} | {"output": ...}
      {"choices": [{"message": {"content": ...}}]} | {"choices": [{"text": ...}]}
    """
    if not isinstance(data, dict):
        return None
    for key in ("text", "output"):
        if isinstance(data.get(key), str):
            return data[key]

    choices = data.get("choices")
    if not (isinstance(choices, list) and choices and isinstance(choices[0], dict)):
        return None
    first = choices[0]
    message = first.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    if isinstance(first.get("text"), str):
        return first["text"]
    return None


# -------------------------
# Client
# -------------------------
class LLMClient(TextGenerator):
    """
    HTTP text generator.

    - USE_LLM=0 => no request is made; generate() reports failure and the
      caller takes its deterministic path
    - USE_LLM=1 => LLM_MODE selects the gateway:
        openai  chat completions under LLM_BASE_URL
        custom  JSON POST to LLM_ENDPOINT ({"system", "prompt", ...})
    """

    def __init__(self) -> None:
        self.mode = env_str("LLM_MODE", "openai").lower() or "openai"
        self.timeout_sec = env_float("LLM_TIMEOUT_SEC", 30.0)
        self.temperature = env_float("LLM_TEMPERATURE", 0.2)
        # enterprise proxies may need LLM_VERIFY_SSL=0
        self.verify_ssl = env_bool("LLM_VERIFY_SSL", "1")

        # openai mode
        self.base_url = env_str("LLM_BASE_URL", "").rstrip("/")
        self.api_key = env_str("LLM_API_KEY", "")
        self.model = env_str("LLM_MODEL", "")
        # gateways disagree on the name of the token limit
        self.openai_token_field = env_str("LLM_OPENAI_TOKEN_FIELD", "max_tokens") or "max_tokens"

        # custom mode
        self.endpoint = env_str("LLM_ENDPOINT", "")
        self.header_name = env_str("LLM_HEADER_NAME", "Authorization")
        self.header_value = env_str("LLM_HEADER_VALUE", "")

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: int = 500,
    ) -> GenerationResult:
        # read per call so tests and hosts can flip it at runtime
        if not use_llm():
            return GenerationResult.failed("LLM disabled (USE_LLM=0)")

        try:
            if self.mode == "custom":
                url, payload, headers = self._custom_request(system_prompt, user_prompt, max_output_tokens)
            else:
                url, payload, headers = self._openai_request(system_prompt, user_prompt, max_output_tokens)
            content = self._post(url, payload, headers)
        except (requests.RequestException, RuntimeError) as e:
            logger.warning("[LLM] call failed mode=%s: %s", self.mode, e)
            return GenerationResult.failed(str(e))

        if not content.strip():
            return GenerationResult.failed("Empty model output")
        return GenerationResult(content=content)

    def render(self, prompt_name: str, variables: Dict[str, Any]) -> str:
        return render_prompt(prompt_name, variables)

    # -------------------------
    # Requests
    # -------------------------
    def _resolve_openai_url(self) -> str:
        """LLM_BASE_URL may be the host, host/v1 or the full completions URL."""
        base = (self.base_url or "").rstrip("/")
        if not base or base.endswith("/v1/chat/completions"):
            return base
        if base.endswith("/v1"):
            return f"{base}/chat/completions"
        return f"{base}/v1/chat/completions"

    def _openai_request(self, system_prompt: str, user_prompt: str, max_output_tokens: int):
        for name, value in (("LLM_BASE_URL", self.base_url), ("LLM_API_KEY", self.api_key), ("LLM_MODEL", self.model)):
            if not value:
                raise RuntimeError(f"{name} is required when LLM_MODE=openai")

        messages = [{"role": "user", "content": user_prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": float(self.temperature),
            self.openai_token_field: int(max_output_tokens),
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        return self._resolve_openai_url(), payload, headers

    def _custom_request(self, system_prompt: str, user_prompt: str, max_output_tokens: int):
        if not self.endpoint:
            raise RuntimeError("LLM_ENDPOINT is required when LLM_MODE=custom")

        payload: Dict[str, Any] = {
            "system": system_prompt,
            "prompt": user_prompt,
            "model": self.model or None,
            "max_output_tokens": int(max_output_tokens),
            "temperature": float(self.temperature),
        }
        headers = {"Content-Type": "application/json"}
        if self.header_value:
            headers[self.header_name] = self.header_value
        return self.endpoint, payload, headers

    def _post(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> str:
        r = requests.post(url, json=payload, headers=headers, timeout=self.timeout_sec, verify=self.verify_ssl)
        if not r.ok:
            raise RuntimeError(f"LLM HTTP {r.status_code} mode={self.mode}: {r.text[:500]}")

        try:
            data = r.json()
        except ValueError:
            return r.text or ""
        text = response_text(data)
        return text if text is not None else (r.text or "")
