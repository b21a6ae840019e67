"""Environment-driven settings for the household budget tools."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .mirror import DEFAULT_TIMEOUT

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _split_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass(frozen=True)
class Settings:
    data_dir: Path = Path("data")
    mirror_url: Optional[str] = None
    mirror_timeout: float = DEFAULT_TIMEOUT
    mirror_dir: Path = Path("/tmp/budget-data")
    env_name: str = "prod"
    allowed_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"

    @property
    def is_dev(self) -> bool:
        return self.env_name in {"dev", "development"}

    @classmethod
    def from_env(cls) -> "Settings":
        timeout_raw = os.getenv("BUDGET_TRACKER_MIRROR_TIMEOUT")
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
        except ValueError:
            timeout = DEFAULT_TIMEOUT
        return cls(
            data_dir=Path(os.getenv("BUDGET_TRACKER_DATA_DIR", "data")),
            mirror_url=os.getenv("BUDGET_TRACKER_MIRROR_URL") or None,
            mirror_timeout=timeout,
            mirror_dir=Path(os.getenv("BUDGET_TRACKER_MIRROR_DIR", "/tmp/budget-data")),
            env_name=os.getenv("BUDGET_TRACKER_ENV", "prod").lower(),
            allowed_origins=_split_origins(os.getenv("BUDGET_TRACKER_ALLOWED_ORIGINS")),
            log_level=os.getenv("BUDGET_TRACKER_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
