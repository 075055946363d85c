"""
Core Utility Functions.

Small numeric and hashing helpers shared by the engines.
"""

from typing import List


def clamp(value: float, low: float = -1.0, high: float = 1.0) -> float:
    """Clamp a scalar into ``[low, high]``."""
    return max(low, min(high, value))


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def top_two_separation(values: List[float]) -> float:
    """
    Gap between the highest and second-highest value.

    Missing entries count as 0, so a single-value list returns that value.
    """
    ordered = sorted(values, reverse=True)
    top1 = ordered[0] if ordered else 0.0
    top2 = ordered[1] if len(ordered) > 1 else 0.0
    return top1 - top2


def multiplicative_hash(text: str, multiplier: int) -> int:
    """
    Deterministic 64-bit rolling hash: ``h = (h + byte) * multiplier``.

    Stable across processes, unlike the builtin ``hash()`` for strings.
    """
    value = 0
    for byte in text.encode("utf-8"):
        value = ((value + byte) * multiplier) & 0xFFFFFFFFFFFFFFFF
    return value


def deterministic_index(text: str, multiplier: int, count: int) -> int:
    """Pick an index in ``range(count)`` from a string key."""
    if count <= 0:
        return 0
    return multiplicative_hash(text, multiplier) % count
