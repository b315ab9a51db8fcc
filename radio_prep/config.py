"""
Runtime configuration, read from environment variables.

Every value is optional.  A missing ANTHROPIC_API_KEY is not an error: the
research client degrades to placeholder results instead.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from loguru import logger

_REPO_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 800
DEFAULT_RESEARCH_DELAY = 1.0
DEFAULT_EXPORT_PREFIX = "kxlu-radio-data"
DEFAULT_EXPORT_DIR = _REPO_ROOT / ".data" / "exports"
DEFAULT_PORT = 8890


def _read_float(env: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not a number (using {default})")
        return default
    if value < 0:
        logger.warning(f"Ignoring {name}={raw!r}: must not be negative (using {default})")
        return default
    return value


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not an integer (using {default})")
        return default


@dataclass(frozen=True)
class Settings:
    api_key: str = ""
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    research_delay: float = DEFAULT_RESEARCH_DELAY
    timeout: Optional[float] = None
    export_prefix: str = DEFAULT_EXPORT_PREFIX
    export_dir: Path = DEFAULT_EXPORT_DIR
    port: int = DEFAULT_PORT

    @property
    def research_configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``os.environ`` (or the given mapping)."""
        env = os.environ if env is None else env
        export_dir = env.get("RADIO_PREP_EXPORT_DIR", "").strip()
        return cls(
            api_key=env.get("ANTHROPIC_API_KEY", "").strip(),
            model=env.get("RADIO_PREP_MODEL", "").strip() or DEFAULT_MODEL,
            max_tokens=_read_int(env, "RADIO_PREP_MAX_TOKENS", DEFAULT_MAX_TOKENS),
            research_delay=_read_float(env, "RADIO_PREP_RESEARCH_DELAY", DEFAULT_RESEARCH_DELAY),
            timeout=_read_float(env, "RADIO_PREP_TIMEOUT", None),
            export_prefix=env.get("RADIO_PREP_EXPORT_PREFIX", "").strip() or DEFAULT_EXPORT_PREFIX,
            export_dir=Path(export_dir) if export_dir else DEFAULT_EXPORT_DIR,
            port=_read_int(env, "RADIO_PREP_PORT", DEFAULT_PORT),
        )
