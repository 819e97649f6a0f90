"""Runtime settings read from environment variables.

All durations are in seconds. Every value has a default so the app can start
with nothing but an OpenAI API key configured.
"""

import os
from dataclasses import dataclass
from typing import List, Tuple


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def load_api_keys() -> List[str]:
    """Collect OpenAI API keys from the environment, in rotation order.

    Keys come from OPENAI_API_KEYS (comma separated), then OPENAI_API_KEY_1
    through OPENAI_API_KEY_9, then OPENAI_API_KEY. Duplicates are dropped.
    """
    candidates: List[str] = []
    bulk = os.getenv("OPENAI_API_KEYS") or ""
    candidates.extend(part.strip() for part in bulk.split(","))
    for index in range(1, 10):
        candidates.append((os.getenv(f"OPENAI_API_KEY_{index}") or "").strip())
    candidates.append((os.getenv("OPENAI_API_KEY") or "").strip())

    keys: List[str] = []
    for key in candidates:
        if key and key not in keys:
            keys.append(key)
    return keys


@dataclass
class Settings:
    """Tunables for admission control, shortlisting and the inference client."""

    api_keys: Tuple[str, ...] = ()
    model: str = "gpt-5-mini"
    min_call_interval: float = 2.5
    duplicate_ttl: float = 2.5
    cooldown: float = 20.0
    stage_a_ttl: float = 12.0
    stage_a_sweep_age: float = 10.0
    stage_a_sweep_size: int = 500
    stage_a_sweep_interval: float = 30.0
    vocabulary_ttl: float = 30.0
    frame_history: int = 6
    previous_frames: int = 2
    conversation_history: int = 12
    context_window: int = 5
    shortlist_size: int = 7
    daily_quota_marker: str = "daily_quota_exhausted"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        return cls(
            api_keys=tuple(load_api_keys()),
            model=os.getenv("OPENAI_MODEL", "gpt-5-mini"),
            min_call_interval=_env_float("MIN_CALL_INTERVAL", 2.5),
            duplicate_ttl=_env_float("DUP_TTL", 2.5),
            cooldown=_env_float("COOLDOWN", 20.0),
            stage_a_ttl=_env_float("STAGEA_TTL", 12.0),
            stage_a_sweep_age=_env_float("STAGEA_SWEEP_AGE", 10.0),
            stage_a_sweep_size=_env_int("STAGEA_SWEEP_SIZE", 500),
            stage_a_sweep_interval=_env_float("STAGEA_SWEEP_INTERVAL", 30.0),
            vocabulary_ttl=_env_float("VOCAB_TTL", 30.0),
            frame_history=_env_int("F_MAX", 6),
            previous_frames=_env_int("PREV_FRAMES", 2),
            conversation_history=_env_int("C_MAX", 12),
            context_window=_env_int("CONTEXT_WINDOW", 5),
            shortlist_size=_env_int("SHORTLIST_SIZE", 7),
            daily_quota_marker=os.getenv("DAILY_QUOTA_MARKER", "daily_quota_exhausted"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
