# oubli_mem/decay/stability.py

from __future__ import annotations

from collections.abc import Sequence

from ..config import BASE_STABILITY, VOWEL_FACTOR, VOWELS, WORD_INITIAL_BONUS


def compute_stability(text: str) -> list[float]:
    """
    Per-character resistance to decay, in [0, 1].

    - whitespace is fully stable, so word shapes outlive their letters
    - vowels are forgotten first
    - the first letter of each word persists longest
    """
    stability: list[float] = []
    for i, ch in enumerate(text):
        if ch.isspace():
            stability.append(1.0)
            continue

        score = BASE_STABILITY
        if ch.lower() in VOWELS:
            score *= VOWEL_FACTOR
        if i == 0 or text[i - 1].isspace():
            score = min(score + WORD_INITIAL_BONUS, 1.0)
        stability.append(score)
    return stability


def weighted_intensity(base: float, stability: Sequence[float]) -> list[float]:
    """Fold a stability map into a per-index intensity: base * (1 - stability)."""
    return [base * (1.0 - s) for s in stability]
