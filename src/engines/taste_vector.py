"""
Taste Vector: the swipe-learned preference model.

A TasteVector maps a small fixed vocabulary of tags (or domain axes) to a
weight. Swipes push raw weights around without clamping so repeated
swipes stay distinguishable; ``normalized()`` is the per-axis clamp to
[-1, 1] that callers apply before reading the vector.

Values are immutable: every operation returns a new vector.

Signal labels are double-gated. A user with lots of swipes but no single
tag pulling ahead is still "Developing", never "Strong".
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from core.utils import clamp, top_two_separation


# =============================================================================
# Vocabulary
# =============================================================================

STYLE_TAGS: Tuple[str, ...] = (
    "mid_century_modern",
    "scandinavian",
    "industrial",
    "bohemian",
    "minimalist",
    "traditional",
    "coastal",
    "rustic",
    "art_deco",
    "japandi",
)


def tag_label(tag: str) -> str:
    """``mid_century_modern`` -> ``Mid Century Modern``."""
    return " ".join(part.capitalize() for part in tag.split("_") if part)


# =============================================================================
# Enums
# =============================================================================

class SwipeDirection(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    UP = "up"        # super-like


SWIPE_DELTAS: Dict[SwipeDirection, float] = {
    SwipeDirection.RIGHT: 1.0,
    SwipeDirection.LEFT: -0.8,
    SwipeDirection.UP: 2.0,
}


class BlendMode(str, Enum):
    """How an image-derived vector and a swipe vector are combined."""
    WANT_MORE = "wantMore"    # discovery: swipe dominates
    HAVE_LIKE = "haveLike"    # already like the space: image dominates


# (image weight, swipe weight)
BLEND_WEIGHTS: Dict[BlendMode, Tuple[float, float]] = {
    BlendMode.WANT_MORE: (0.35, 0.65),
    BlendMode.HAVE_LIKE: (0.75, 0.25),
}


class SignalLevel(str, Enum):
    LOW = "Low"
    DEVELOPING = "Developing"
    STRONG = "Strong"
    STABLE = "Stable"


# =============================================================================
# Thresholds
# =============================================================================

INFLUENCE_THRESHOLD = 0.3
AVOID_THRESHOLD = -0.2
SIGNIFICANT_WEIGHT = 0.1

STRONG_SWIPE_COUNT = 14
DEVELOPING_SWIPE_COUNT = 7
STRONG_SEPARATION = 0.15
DEVELOPING_CONFIDENCE = 0.2


# =============================================================================
# TasteVariant
# =============================================================================

@dataclass(frozen=True)
class TasteVariant:
    label: str
    subtitle: str
    vector: "TasteVector"


# =============================================================================
# TasteVector
# =============================================================================

@dataclass(frozen=True, eq=True)
class TasteVector:
    """
    Immutable tag -> weight mapping.

    Lookups for keys that were never set return 0.0.
    """
    weights: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        # Own a private float copy so callers can't mutate us through their dict
        object.__setattr__(
            self, "weights", {str(k): float(v) for k, v in dict(self.weights).items()}
        )

    __hash__ = None

    @classmethod
    def zero(cls, keys: Iterable[str] = STYLE_TAGS) -> "TasteVector":
        return cls({key: 0.0 for key in keys})

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    def get(self, key: str) -> float:
        return self.weights.get(key, 0.0)

    def __getitem__(self, key: str) -> float:
        return self.get(key)

    def keys(self) -> List[str]:
        return list(self.weights.keys())

    def with_weight(self, key: str, value: float) -> "TasteVector":
        weights = dict(self.weights)
        weights[key] = value
        return TasteVector(weights)

    # -------------------------------------------------------------------------
    # Mutations (return new vectors)
    # -------------------------------------------------------------------------

    def apply_swipe(self, tag: str, direction: SwipeDirection) -> "TasteVector":
        """
        Add the direction's delta to ``tag``.

        The result is NOT clamped; call ``normalized()`` before reading.
        """
        direction = SwipeDirection(direction)
        return self.with_weight(tag, self.get(tag) + SWIPE_DELTAS[direction])

    def normalized(self) -> "TasteVector":
        """Per-axis clamp to [-1, 1]. Relative magnitudes inside the range are kept."""
        return TasteVector({key: clamp(value) for key, value in self.weights.items()})

    @staticmethod
    def blend(image: "TasteVector", swipe: "TasteVector", mode: BlendMode) -> "TasteVector":
        """Per-axis ``image * wI + swipe * wS`` over the union of keys."""
        image_weight, swipe_weight = BLEND_WEIGHTS[BlendMode(mode)]
        keys = list(image.weights.keys())
        keys += [k for k in swipe.weights.keys() if k not in image.weights]
        return TasteVector({
            key: image.get(key) * image_weight + swipe.get(key) * swipe_weight
            for key in keys
        })

    # -------------------------------------------------------------------------
    # Derived signals
    # -------------------------------------------------------------------------

    @property
    def confidence(self) -> float:
        """Share of tags carrying a meaningful weight (|w| > 0.1). Saturates at 1."""
        if not self.weights:
            return 0.0
        significant = sum(1 for v in self.weights.values() if abs(v) > SIGNIFICANT_WEIGHT)
        return significant / len(self.weights)

    @property
    def separation(self) -> float:
        """Top weight minus second-highest weight, after normalization."""
        return top_two_separation(list(self.normalized().weights.values()))

    def _level(self, swipe_count: int, top_label: SignalLevel) -> SignalLevel:
        if swipe_count >= STRONG_SWIPE_COUNT and self.separation >= STRONG_SEPARATION:
            return top_label
        if swipe_count >= DEVELOPING_SWIPE_COUNT or self.confidence > DEVELOPING_CONFIDENCE:
            return SignalLevel.DEVELOPING
        return SignalLevel.LOW

    def confidence_level(self, swipe_count: int) -> SignalLevel:
        """Low / Developing / Strong."""
        return self._level(swipe_count, SignalLevel.STRONG)

    def stability_level(self, swipe_count: int) -> SignalLevel:
        """Low / Developing / Stable. Same gates as ``confidence_level``."""
        return self._level(swipe_count, SignalLevel.STABLE)

    def ranked(self) -> List[Tuple[str, float]]:
        """(tag, weight) pairs, highest weight first, ties by tag name."""
        return sorted(self.weights.items(), key=lambda kv: (-kv[1], kv[0]))

    @property
    def influences(self) -> List[str]:
        """Tags with weight > 0.3, strongest first."""
        return [k for k, v in self.ranked() if v > INFLUENCE_THRESHOLD]

    @property
    def avoids(self) -> List[str]:
        """Tags with weight < -0.2, most negative first."""
        negative = [(k, v) for k, v in self.weights.items() if v < AVOID_THRESHOLD]
        return [k for k, _ in sorted(negative, key=lambda kv: (kv[1], kv[0]))]

    # -------------------------------------------------------------------------
    # Variants
    # -------------------------------------------------------------------------

    def generate_variants(self) -> List[TasteVariant]:
        """
        Three deterministic what-if vectors.

        A. top tag boosted x1.2 (capped at 1.0)
        B. unchanged weights, labelled after the second tag
        C. every avoided tag (< -0.2) flipped to ``w * -0.5``
        """
        ranked = self.ranked()
        if not ranked:
            return []
        top_tag, top_weight = ranked[0]
        second_tag = ranked[1][0] if len(ranked) > 1 else top_tag

        boosted = self.with_weight(top_tag, min(1.0, top_weight * 1.2))

        contrast = TasteVector({
            key: (value * -0.5 if value < AVOID_THRESHOLD else value)
            for key, value in self.weights.items()
        })

        return [
            TasteVariant(
                label=f"More {tag_label(top_tag)}",
                subtitle="Leaning further into your strongest signal",
                vector=boosted,
            ),
            TasteVariant(
                label=f"{tag_label(second_tag)} Shift",
                subtitle="Rebalancing toward your secondary thread",
                vector=TasteVector(self.weights),
            ),
            TasteVariant(
                label="Contrast Mix",
                subtitle="Inverting what you usually avoid",
                vector=contrast,
            ),
        ]

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, float]:
        return dict(self.weights)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, float]]) -> "TasteVector":
        if not data:
            return cls()
        weights = {}
        for key, value in data.items():
            try:
                weights[str(key)] = float(value)
            except (TypeError, ValueError):
                weights[str(key)] = 0.0
        return cls(weights)
