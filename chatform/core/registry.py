from __future__ import annotations

from typing import Dict, Iterator, Optional

from .types import CollectionConfig


class ConfigCache:
    """
    In-memory map of resolved configs, owned by one DataCollector instance.
    Lives as long as its owner; there is no process-wide registry.
    """

    def __init__(self) -> None:
        self._configs: Dict[str, CollectionConfig] = {}

    def register(self, config: CollectionConfig) -> None:
        self._configs[config.name] = config

    def get(self, name: str) -> Optional[CollectionConfig]:
        return self._configs.get(name)

    def forget(self, name: str) -> None:
        self._configs.pop(name, None)

    def clear(self) -> None:
        self._configs.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._configs

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._configs))

    def __len__(self) -> int:
        return len(self._configs)
