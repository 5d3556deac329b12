# oubli_mem/config.py

from __future__ import annotations

from typing import Any

# Durable layer
STORAGE_KEY = "oubli-memories"
SCHEMA_VERSION = 1
DEFAULT_SQLITE_PATH = "~/.oubli_mem/memories.db"

# Input
MAX_MEMORY_LENGTH = 120

# Ambient decay: ~5% of a memory per day, never fully gone by time alone
AMBIENT_RATE_PER_DAY = 0.05
AMBIENT_CEILING = 0.95
TICK_INTERVAL_SECONDS = 5.0

# Decay algorithm
DECAY_CHANCE_SCALE = 0.15
DROP_THRESHOLD = 0.30
STATIC_THRESHOLD = 0.50
ECHO_THRESHOLD = 0.70
STATIC_GLYPHS = ("░", "▒", "▓", "·", "~")
SEAL_GLYPH = "▓"

# Stability policy
BASE_STABILITY = 0.5
VOWEL_FACTOR = 0.7
WORD_INITIAL_BONUS = 0.3
VOWELS = "aeiou"

# Scheduler re-entrancy
MAX_PENDING = 64

SECONDS_PER_DAY = 86400.0


def resolve(config: dict[str, Any] | None) -> dict[str, Any]:
    """
    Fill a plain config dict with defaults and coerce types.

    Recognised keys:
    - storage_path: sqlite file (":memory:" for an ephemeral session)
    - storage_key: key the registry is written under
    - seed: optional int seed for the scheduler RNG
    - ambient_rate_per_day, ambient_ceiling, tick_interval_seconds
    - max_length: input cap applied by normalize()
    """
    config = config or {}

    seed = config.get("seed")
    return {
        "storage_path": config.get("storage_path", DEFAULT_SQLITE_PATH),
        "storage_key": config.get("storage_key", STORAGE_KEY),
        "seed": int(seed) if seed is not None else None,
        "ambient_rate_per_day": float(config.get("ambient_rate_per_day", AMBIENT_RATE_PER_DAY)),
        "ambient_ceiling": float(config.get("ambient_ceiling", AMBIENT_CEILING)),
        "tick_interval_seconds": float(config.get("tick_interval_seconds", TICK_INTERVAL_SECONDS)),
        "max_length": int(config.get("max_length", MAX_MEMORY_LENGTH)),
    }
