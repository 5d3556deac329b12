# oubli_mem/models.py

from __future__ import annotations

import time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .config import SCHEMA_VERSION, SEAL_GLYPH, SECONDS_PER_DAY
from .decay.stability import compute_stability


class DegradationState(str, Enum):
    PRISTINE = "pristine"
    DECAYING = "decaying"
    ILLEGIBLE = "illegible"


class DecayResult(BaseModel):
    text: str
    lost_chars: List[str] = []
    changed_indices: List[int] = []

    @property
    def changed(self) -> int:
        return len(self.changed_indices)


class MemoryEntity(BaseModel):
    """
    A single user-submitted text record.

    Identity is nominal: two entities holding the same text are still
    different memories, so equality and hashing go by object identity.
    `stability` is derived from original_text on demand and never stored.
    """

    id: str = Field(frozen=True)
    original_text: str = Field(frozen=True)
    current_text: str
    degradation: float = 0.0       # 0.0–1.0, only ever grows
    created_at: float = Field(frozen=True)
    sealed_until: Optional[float] = None

    def __eq__(self, other: object) -> bool:
        return self is other

    def __hash__(self) -> int:
        return id(self)

    @property
    def stability(self) -> list[float]:
        return compute_stability(self.original_text)

    @property
    def is_illegible(self) -> bool:
        return self.current_text.strip() == ""

    @property
    def state(self) -> DegradationState:
        if self.is_illegible:
            return DegradationState.ILLEGIBLE
        if self.degradation <= 0.0:
            return DegradationState.PRISTINE
        return DegradationState.DECAYING

    def is_sealed(self, now: float | None = None) -> bool:
        if self.sealed_until is None:
            return False
        now = time.time() if now is None else now
        return now < self.sealed_until

    def display_text(self, now: float | None = None) -> str:
        """Text a surface may show: masked glyph-for-glyph while sealed."""
        if self.is_sealed(now):
            return SEAL_GLYPH * len(self.original_text)
        return self.current_text

    @property
    def decay_origin(self) -> float:
        """A capsule starts forgetting when it unseals, not when it was written."""
        if self.sealed_until is not None:
            return max(self.created_at, self.sealed_until)
        return self.created_at

    def age_days(self, now: float | None = None) -> float:
        now = time.time() if now is None else now
        return max(0.0, (now - self.created_at) / SECONDS_PER_DAY)


class PersistedMemory(BaseModel):
    id: str
    original_text: str
    current_text: str
    degradation: float = 0.0
    created_at: float
    sealed_until: Optional[float] = None


class PersistedRegistry(BaseModel):
    schema_version: int = SCHEMA_VERSION
    memories: List[PersistedMemory] = []
