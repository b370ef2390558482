"""Tests for the key-value backends and the typed session store."""

import os

import pytest

from chatform.core.errors import StorageError
from chatform.core.flow import DataCollector
from chatform.core.registry import ConfigCache
from chatform.core.state import add_message, new_session
from chatform.core.store import FileStore, MemoryStore, SessionStore, store_from_env


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(params=["memory", "file"])
def backend(request, clock, tmp_path):
    if request.param == "memory":
        return MemoryStore(clock=clock)
    return FileStore(str(tmp_path / "sessions"), clock=clock)


class TestBackends:
    """Shared contract of MemoryStore and FileStore."""

    def test_put_get_delete(self, backend):
        backend.put("chatform_state_a", b"payload", ttl=60)

        assert backend.get("chatform_state_a") == b"payload"
        assert backend.exists("chatform_state_a")

        backend.delete("chatform_state_a")
        assert backend.get("chatform_state_a") is None

    def test_missing_key(self, backend):
        assert backend.get("nope") is None
        backend.delete("nope")

    def test_expired_record_behaves_like_missing(self, backend, clock):
        backend.put("k", b"v", ttl=60)

        clock.advance(59)
        assert backend.get("k") == b"v"

        clock.advance(1)
        assert backend.get("k") is None
        assert not backend.exists("k")

    def test_put_refreshes_expiry(self, backend, clock):
        backend.put("k", b"v1", ttl=60)
        clock.advance(50)
        backend.put("k", b"v2", ttl=60)
        clock.advance(50)

        assert backend.get("k") == b"v2"


class TestFileStore:
    def test_keys_become_safe_file_names(self, tmp_path):
        store = FileStore(str(tmp_path))

        store.put("chatform_state_../../etc", b"x", ttl=60)

        files = [p.name for p in tmp_path.iterdir()]
        assert len(files) == 1
        assert "/" not in files[0]
        assert store.get("chatform_state_../../etc") == b"x"

    def test_similar_keys_get_separate_files(self, tmp_path):
        store = FileStore(str(tmp_path))

        store.put("chatform_state_user@example.com", b"first", ttl=60)
        store.put("chatform_state_user_example.com", b"second", ttl=60)

        assert len(list(tmp_path.iterdir())) == 2
        assert store.get("chatform_state_user@example.com") == b"first"
        assert store.get("chatform_state_user_example.com") == b"second"

    def test_record_for_another_key_is_missing(self, tmp_path):
        store = FileStore(str(tmp_path))
        store.put("a", b"v", ttl=60)
        os.replace(store._path("a"), store._path("b"))

        assert store.get("b") is None

    def test_corrupt_record_raises(self, tmp_path):
        store = FileStore(str(tmp_path))
        store.put("k", b"v", ttl=60)
        with open(store._path("k"), "w", encoding="utf-8") as f:
            f.write("{broken")

        with pytest.raises(StorageError):
            store.get("k")


class TestSessionStore:
    def test_session_round_trip(self, course_config, clock):
        store = SessionStore(MemoryStore(clock=clock), ttl=120)
        state = new_session("s1", course_config)
        add_message(state, "assistant", "Hello!")

        store.save_session(state)

        assert store.has_session("s1")
        assert store.load_session("s1") == state
        assert store.load_session("other") is None

    def test_sliding_ttl(self, course_config, clock):
        store = SessionStore(MemoryStore(clock=clock), ttl=120)
        state = new_session("s1", course_config)

        store.save_session(state)
        clock.advance(100)
        store.save_session(state)
        clock.advance(100)
        assert store.has_session("s1")

        clock.advance(20)
        assert store.load_session("s1") is None

    def test_file_backed_sessions_stay_apart(self, course_config, tmp_path):
        store = SessionStore(FileStore(str(tmp_path)), ttl=120)
        store.save_session(new_session("user@example.com", course_config))
        store.save_session(new_session("user_example.com", course_config))

        assert store.load_session("user@example.com").session_id == "user@example.com"
        assert store.load_session("user_example.com").session_id == "user_example.com"

    def test_delete_session(self, store, course_config):
        store.save_session(new_session("s1", course_config))

        store.delete_session("s1")

        assert not store.has_session("s1")

    def test_config_round_trip(self, store, make_config):
        config = make_config(output_schema={"lessons": [{"title": "string"}]}, locale="ar")

        store.save_config(config)
        loaded = store.load_config("course")

        assert loaded == config
        assert store.load_config("missing") is None


class TestStoreFromEnv:
    def test_memory_backend(self, monkeypatch):
        monkeypatch.setenv("STORE_BACKEND", "memory")
        monkeypatch.setenv("SESSION_TTL_SEC", "42")

        store = store_from_env()

        assert isinstance(store.backend, MemoryStore)
        assert store.ttl == 42

    def test_file_backend_by_default(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))

        store = store_from_env()

        assert isinstance(store.backend, FileStore)
        assert store.backend.base_dir == str(tmp_path / "sessions")
        assert store.ttl == 3600


class TestConfigCache:
    """Per-collector config map."""

    def test_register_and_forget(self, course_config, name_only_config):
        cache = ConfigCache()
        cache.register(course_config)
        cache.register(name_only_config)

        assert cache.get("course") is course_config
        assert "company" in cache
        assert sorted(cache) == ["company", "course"]

        cache.forget("course")
        assert cache.get("course") is None
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0

    def test_collectors_do_not_share_configs(self, store, generator, course_config):
        first = DataCollector(store, generator)
        second = DataCollector(store, generator)
        first.register_config(course_config, persist=False)

        assert first.get_config("course") is course_config
        assert second.get_config("course") is None
