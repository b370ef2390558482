"""Tests for env getters and process bootstrap."""

import logging
from unittest.mock import patch

from chatform.core import bootstrap
from chatform.core.config import default_locale, env_bool, env_int, session_ttl, use_llm


class TestEnv:
    def test_bools(self, monkeypatch):
        for raw in ("1", "true", "YES", " y "):
            monkeypatch.setenv("FLAG", raw)
            assert env_bool("FLAG")
        monkeypatch.setenv("FLAG", "off")
        assert not env_bool("FLAG", "1")

    def test_read_at_call_time(self, monkeypatch):
        assert not use_llm()

        monkeypatch.setenv("USE_LLM", "1")

        assert use_llm()

    def test_bad_int_uses_default(self, monkeypatch):
        monkeypatch.setenv("SESSION_TTL_SEC", "soon")

        assert session_ttl() == 3600
        assert env_int("MISSING_INT", 7) == 7

    def test_default_locale_is_lowercased(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_LOCALE", "AR")

        assert default_locale() == "ar"


class TestBootstrap:
    def test_configure_logging_uses_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        with patch("chatform.core.bootstrap.logging.basicConfig") as basic:
            bootstrap.configure_logging()

        assert basic.call_args.kwargs["level"] == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")

        with patch("chatform.core.bootstrap.logging.basicConfig") as basic:
            bootstrap.configure_logging()

        assert basic.call_args.kwargs["level"] == logging.INFO

    def test_file_backend_creates_sessions_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))

        bootstrap.ensure_data_dirs()

        assert (tmp_path / "sessions").is_dir()

    def test_memory_backend_touches_nothing(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATA_DIR", str(tmp_path / "unused"))
        monkeypatch.setenv("STORE_BACKEND", "memory")

        bootstrap.ensure_data_dirs()

        assert not (tmp_path / "unused").exists()
