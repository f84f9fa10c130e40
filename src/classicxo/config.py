"""Runtime configuration read from ``CLASSICXO_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple

ENV_PREFIX = "CLASSICXO_"


def _env(name: str, default: str = "") -> str:
    value = os.environ.get(ENV_PREFIX + name)
    if value is not None and value.strip() != "":
        return value.strip()
    return default


@dataclass(frozen=True)
class Config:
    host: str = "0.0.0.0"
    port: int = 8000
    data_path: str = "classicxo-data.json"
    ai_think_delay: Tuple[float, float] = (0.5, 1.5)
    log_level: str = "INFO"
    log_file: Optional[str] = None


def load_config() -> Config:
    low = float(_env("AI_DELAY_MIN", "0.5"))
    high = float(_env("AI_DELAY_MAX", "1.5"))
    if low < 0 or high < low:
        raise ValueError(f"Invalid AI delay range {low}..{high}")

    return Config(
        host=_env("HOST", "0.0.0.0"),
        port=int(_env("PORT", "8000")),
        data_path=_env("DATA_PATH", "classicxo-data.json"),
        ai_think_delay=(low, high),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
        log_file=_env("LOG_FILE") or None,
    )
