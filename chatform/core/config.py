from __future__ import annotations

import os


def env_bool(key: str, default: str = "0") -> bool:
    """
    Env bool parser.
    Accepts: 1/0, true/false, yes/no (case-insensitive)
    """
    v = os.getenv(key, default)
    if v is None:
        v = default
    return str(v).strip().lower() in ("1", "true", "yes", "y")


def env_str(key: str, default: str = "") -> str:
    v = os.getenv(key, default)
    if v is None:
        v = default
    return str(v).strip()


def env_int(key: str, default: int) -> int:
    try:
        return int(env_str(key, str(default)) or default)
    except ValueError:
        return int(default)


def env_float(key: str, default: float) -> float:
    try:
        return float(env_str(key, str(default)) or default)
    except ValueError:
        return float(default)


# -------------------------------------------------
# Runtime getters (read on every call, never snapshotted)
# -------------------------------------------------
def use_llm() -> bool:
    return env_bool("USE_LLM", "0")


def data_dir() -> str:
    return env_str("DATA_DIR", "data")


def sessions_dir() -> str:
    return os.path.join(data_dir(), "sessions")


def store_backend() -> str:
    return env_str("STORE_BACKEND", "file").lower() or "file"


def session_ttl() -> int:
    return env_int("SESSION_TTL_SEC", 3600)


def default_locale() -> str:
    return env_str("DEFAULT_LOCALE", "en").lower() or "en"


def log_level() -> str:
    return env_str("LOG_LEVEL", "INFO").upper() or "INFO"
