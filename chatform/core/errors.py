from __future__ import annotations


class ChatformError(Exception):
    pass


class ConfigError(ChatformError, ValueError):
    """Collection schema is not usable (no fields, duplicates, bad rules...)."""


class InvalidRuleError(ConfigError):
    def __init__(self, field: str, rule: str, reason: str = ""):
        self.field = field
        self.rule = rule
        msg = f"Invalid validation rule '{rule}' on field '{field}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class StorageError(ChatformError):
    """Persisted record exists but cannot be decoded."""


class MetadataKeyError(ChatformError, KeyError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Unknown session metadata key: {key!r}")


class SessionNotFoundError(ChatformError, LookupError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class ConfigNotFoundError(ChatformError, LookupError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Configuration not found: {name}")
