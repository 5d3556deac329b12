# oubli_mem/decay/render.py

from __future__ import annotations

import random
from collections.abc import Sequence

from ..models import DecayResult
from .function import decay


class RenderDecay:
    """
    Ephemeral, per-surface glitching on top of canonical text.

    A surface (tape loop, scrape canvas, ghost typing) builds one of these
    from an entity's current_text and decays its own copy every pass. It has
    no handle on the store or the scheduler: nothing here is ever persisted.
    The only way a surface may change canonical text is
    DegradationScheduler.accelerate().
    """

    def __init__(self, text: str, rng: random.Random | None = None) -> None:
        self._base = text
        self._text = text
        self._snapshot: str | None = None
        self.rng = rng or random.Random()
        self.passes = 0

    @property
    def text(self) -> str:
        return self._text

    def glitch(
        self,
        intensity: float,
        touch_bonus: Sequence[float] | None = None,
    ) -> DecayResult:
        result = decay(self._text, None, intensity, rng=self.rng, touch_bonus=touch_bonus)
        self._text = result.text
        self.passes += 1
        return result

    def snapshot(self) -> None:
        """Remember the text before a cosmetic interaction (e.g. a rewind)."""
        self._snapshot = self._text

    def show(self, text: str) -> None:
        """Display an arbitrary same-length frame during an interaction."""
        if len(text) != len(self._text):
            raise ValueError("render frame must keep the text length")
        self._text = text

    def restore(self) -> str:
        """End the interaction: back to the snapshot taken before it."""
        if self._snapshot is not None:
            self._text = self._snapshot
            self._snapshot = None
        return self._text

    def reset(self, text: str | None = None) -> None:
        """Re-base on fresh canonical text, dropping local glitches."""
        if text is not None:
            self._base = text
        self._text = self._base
        self._snapshot = None
        self.passes = 0
