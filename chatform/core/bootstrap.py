from __future__ import annotations

import logging
from pathlib import Path

from .config import log_level, sessions_dir, store_backend


def ensure_data_dirs() -> None:
    if store_backend() == "file":
        Path(sessions_dir()).mkdir(parents=True, exist_ok=True)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, log_level(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
