# oubli_mem/decay/function.py

from __future__ import annotations

import math
import random
from collections.abc import Sequence

from ..config import (
    DECAY_CHANCE_SCALE,
    DROP_THRESHOLD,
    ECHO_THRESHOLD,
    STATIC_GLYPHS,
    STATIC_THRESHOLD,
)
from ..models import DecayResult


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def _check_length(name: str, values: Sequence[float] | None, n: int) -> None:
    if values is not None and len(values) != n:
        raise ValueError(f"{name} has {len(values)} entries for text of length {n}")


def _previous_glyph(chars: list[str], i: int) -> str | None:
    for j in range(i - 1, -1, -1):
        if not chars[j].isspace():
            return chars[j]
    return None


def decay(
    text: str,
    stability: Sequence[float] | None,
    intensity: float | Sequence[float],
    rng: random.Random | None = None,
    touch_bonus: Sequence[float] | None = None,
) -> DecayResult:
    """
    One stochastic decay pass over `text`.

    Pure apart from the supplied RNG. Whitespace is never touched and the
    output always has the same length as the input.

    Per non-whitespace index:
    - effective intensity = intensity * (1 - stability[i]) (uniform if no map)
    - `intensity` may also be a per-index sequence (see weighted_intensity),
      used as-is for each position
    - chance = clamp(effective + touch_bonus[i]) * 0.15
    - on a hit, a second draw picks drop / static / echo / survive

    Echo copies the nearest preceding non-space character of the working
    buffer, so echoes can chain through earlier decay in the same pass.
    """
    n = len(text)
    _check_length("stability", stability, n)
    _check_length("touch_bonus", touch_bonus, n)
    per_index = not isinstance(intensity, (int, float))
    if per_index:
        _check_length("intensity", intensity, n)
    rng = rng or random.Random()

    chars = list(text)
    lost: list[str] = []
    changed: list[int] = []

    for i, ch in enumerate(text):
        if ch.isspace():
            continue

        base = intensity[i] if per_index else intensity
        effective = base if stability is None else base * (1.0 - stability[i])
        bonus = touch_bonus[i] if touch_bonus is not None else 0.0
        chance = _clamp(effective + bonus) * DECAY_CHANCE_SCALE

        if rng.random() >= chance:
            continue

        mode = rng.random()
        if mode < DROP_THRESHOLD:
            replacement = " "
        elif mode < STATIC_THRESHOLD:
            replacement = rng.choice(STATIC_GLYPHS)
        elif mode < ECHO_THRESHOLD:
            replacement = _previous_glyph(chars, i)
            if replacement is None:
                continue
        else:
            continue

        if replacement != ch:
            chars[i] = replacement
            lost.append(ch)
            changed.append(i)

    return DecayResult(text="".join(chars), lost_chars=lost, changed_indices=changed)


def settle(
    original: str,
    current: str,
    degradation: float,
    stability: Sequence[float],
) -> str:
    """
    Make `current` at least as illegible as `degradation` says it is.

    At least floor(N * degradation) of the N non-whitespace characters of
    `original` must differ in `current`. Missing losses are blanked in order
    of increasing stability, so the same letters always go first. At
    degradation 1.0 every non-whitespace position is blanked.
    """
    if len(original) != len(current):
        raise ValueError("original and current differ in length")
    _check_length("stability", stability, len(original))

    chars = list(current)
    if degradation >= 1.0:
        return "".join(" " if not c.isspace() else c for c in chars)

    slots = [i for i, c in enumerate(original) if not c.isspace()]
    required = math.floor(len(slots) * _clamp(degradation))
    legible = [i for i in slots if chars[i] == original[i]]
    already_lost = len(slots) - len(legible)

    missing = required - already_lost
    if missing <= 0:
        return current

    for i in sorted(legible, key=lambda k: (stability[k], k))[:missing]:
        chars[i] = " "
    return "".join(chars)
