"""Runtime settings, read from the environment (and a local .env file)."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    output_dir: str = "diff"
    workers: Optional[int] = None
    partitions: Optional[int] = None
    log_level: str = "INFO"


def _getenv_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}")
    return value


def load_settings(dotenv_path: Optional[str] = None) -> Settings:
    """
    Build Settings from PHARMADIFF_* environment variables.

    Values already present in the environment take precedence over the
    .env file.

    Raises:
        ValueError: If a numeric variable is not a positive integer
    """
    load_dotenv(dotenv_path)

    return Settings(
        output_dir=os.getenv("PHARMADIFF_OUTPUT_DIR") or "diff",
        workers=_getenv_int("PHARMADIFF_WORKERS"),
        partitions=_getenv_int("PHARMADIFF_PARTITIONS"),
        log_level=(os.getenv("PHARMADIFF_LOG_LEVEL") or "INFO").upper(),
    )
