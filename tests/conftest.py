"""Pytest configuration and fixtures."""

from typing import Any, Dict, List, Optional, Union

import pytest

from chatform.core.flow import DataCollector
from chatform.core.store import MemoryStore, SessionStore
from chatform.core.types import CollectionConfig
from chatform.llm.client import GenerationResult, TextGenerator


class FakeGenerator(TextGenerator):
    """Scripted text generator.

    Responses are matched by a keyword found in the user prompt; anything
    unscripted comes back as a failed generation, which is exactly what a
    disabled LLM looks like to the collector.
    """

    # Distinctive phrases of the bundled prompt templates
    INTENT = "Analyze the user's message"
    TURN = "CURRENT COLLECTION STATUS"
    SUGGEST = "asked for ideas"
    TARGET = "wants to change something"
    EXTRACT = "Extract the following fields"
    OUTPUT = "Generate a JSON object"

    def __init__(self) -> None:
        self.rules: List[tuple] = []
        self.calls: List[Dict[str, Any]] = []

    def script(self, keyword: str, response: Union[str, GenerationResult]) -> "FakeGenerator":
        self.rules.append((keyword, response))
        return self

    def generate(self, system_prompt: str, user_prompt: str, max_output_tokens: int = 500) -> GenerationResult:
        self.calls.append(
            {"system": system_prompt, "user": user_prompt, "max_output_tokens": max_output_tokens}
        )
        for keyword, response in self.rules:
            if keyword in user_prompt:
                if isinstance(response, GenerationResult):
                    return response
                return GenerationResult(content=response)
        return GenerationResult.failed("not scripted")

    def calls_with(self, keyword: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if keyword in c["user"]]


COURSE_CONFIG: Dict[str, Any] = {
    "name": "course",
    "title": "New Course",
    "description": "Create a new online course",
    "fields": [
        {
            "name": "name",
            "type": "text",
            "description": "Course name",
            "validation": "required|min:3|max:255",
            "examples": ["Laravel Basics", "Intro to Python"],
        },
        {
            "name": "duration",
            "type": "number",
            "description": "Course duration in hours",
            "validation": "required|numeric|min:1|max:100",
        },
        {
            "name": "level",
            "type": "select",
            "description": "Difficulty level",
            "options": ["beginner", "intermediate", "advanced"],
        },
        {
            "name": "summary",
            "type": "text",
            "description": "Short summary",
            "required": False,
            "validation": "nullable|max:500",
        },
    ],
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep tests independent of the developer's shell."""
    for key in ("USE_LLM", "DEFAULT_LOCALE", "STORE_BACKEND", "SESSION_TTL_SEC", "LLM_MODE"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def store() -> SessionStore:
    return SessionStore(MemoryStore(), ttl=3600)


@pytest.fixture
def collector(store, generator) -> DataCollector:
    return DataCollector(store, generator)


@pytest.fixture
def make_config():
    """Factory for course configs with overrides."""

    def _make(**overrides: Any) -> CollectionConfig:
        data = dict(COURSE_CONFIG)
        data.update(overrides)
        return CollectionConfig.from_dict(data)

    return _make


@pytest.fixture
def course_config(make_config) -> CollectionConfig:
    return make_config()


@pytest.fixture
def name_only_config() -> CollectionConfig:
    return CollectionConfig.from_dict(
        {
            "name": "company",
            "confirm_before_complete": False,
            "fields": [{"name": "name", "type": "text", "description": "Company name"}],
        }
    )


@pytest.fixture
def start(collector):
    """Register a config and open a session on it; returns the session id."""

    def _start(config: CollectionConfig, session_id: str = "s1", initial_data: Optional[Dict[str, Any]] = None) -> str:
        collector.register_config(config)
        response = collector.start_session(config.name, session_id=session_id, initial_data=initial_data)
        assert response.success
        return session_id

    return _start
