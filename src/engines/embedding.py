"""
Style Embedding: fixed-size float vector used by the reinforced identity.

The identity keeps two of these: the primary embedding (what the user is)
and the anti-embedding (what they reject). Both are 64 floats in [-1, 1]
on the wire.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

import numpy as np

from core.logging import get_logger


logger = get_logger(__name__)

EMBEDDING_DIM = 64

# Candidate dims at or below this magnitude are noise and never blended
LOW_SIGNAL_THRESHOLD = 0.1


@dataclass(frozen=True)
class StyleEmbedding:
    """Immutable 64-d embedding. Never mutate ``values``; every op returns a new instance."""
    values: np.ndarray

    def __post_init__(self):
        arr = np.asarray(self.values, dtype=np.float64).reshape(-1).copy()
        arr.setflags(write=False)
        object.__setattr__(self, "values", arr)

    __hash__ = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StyleEmbedding):
            return NotImplemented
        return self.values.shape == other.values.shape and bool(
            np.array_equal(self.values, other.values)
        )

    def __len__(self) -> int:
        return int(self.values.shape[0])

    @classmethod
    def zero(cls, dim: int = EMBEDDING_DIM) -> "StyleEmbedding":
        return cls(np.zeros(dim))

    @property
    def is_zero(self) -> bool:
        return not np.any(self.values)

    @property
    def magnitude(self) -> float:
        return float(np.linalg.norm(self.values))

    def cosine(self, other: "StyleEmbedding") -> float:
        """Cosine similarity; 0.0 when either side has no magnitude."""
        denom = self.magnitude * other.magnitude
        if denom == 0.0:
            return 0.0
        return float(np.clip(np.dot(self.values, other.values) / denom, -1.0, 1.0))

    def normalized(self) -> "StyleEmbedding":
        """L2-normalized copy. The zero vector stays zero."""
        mag = self.magnitude
        if mag == 0.0:
            return StyleEmbedding(self.values)
        return StyleEmbedding(self.values / mag)

    def low_signal_mask(self) -> np.ndarray:
        """True where this vector carries enough signal to be blended toward."""
        return np.abs(self.values) > LOW_SIGNAL_THRESHOLD

    def blend(
        self,
        toward: "StyleEmbedding",
        weight: float,
        mask: Optional[np.ndarray] = None,
    ) -> "StyleEmbedding":
        """
        Move toward ``toward`` by ``weight``: ``cur * (1 - w) + toward * w``.

        ``weight`` is clamped to [0, 1] and the result is clamped to [-1, 1].
        Dimensions where ``mask`` is False keep their current value.
        """
        if len(toward) != len(self):
            raise ValueError(
                f"Embedding size mismatch: {len(self)} vs {len(toward)}"
            )
        w = float(np.clip(weight, 0.0, 1.0))
        mixed = self.values * (1.0 - w) + toward.values * w
        if mask is not None:
            mixed = np.where(mask, mixed, self.values)
        return StyleEmbedding(np.clip(mixed, -1.0, 1.0))

    def decay(self, factor: float) -> "StyleEmbedding":
        """Scale every dim by ``factor`` (clamped to [0, 1])."""
        f = float(np.clip(factor, 0.0, 1.0))
        return StyleEmbedding(self.values * f)

    def mean_abs_delta(self, other: "StyleEmbedding") -> float:
        if len(self) == 0:
            return 0.0
        return float(np.mean(np.abs(self.values - other.values)))

    # -------------------------------------------------------------------------
    # Wire format
    # -------------------------------------------------------------------------

    def to_wire(self) -> List[float]:
        return [float(v) for v in self.values]

    @classmethod
    def from_wire(cls, value: Any, dim: int = EMBEDDING_DIM) -> "StyleEmbedding":
        """
        Decode a wire embedding.

        Anything that isn't exactly ``dim`` finite numbers decodes to the
        zero embedding so one bad field never sinks the whole record.
        """
        if value is None:
            return cls.zero(dim)
        try:
            arr = np.asarray(value, dtype=np.float64)
        except (TypeError, ValueError):
            logger.warning("Malformed embedding, using zero vector", reason="non_numeric")
            return cls.zero(dim)

        if arr.ndim != 1 or arr.shape[0] != dim:
            logger.warning(
                "Wrong-size embedding, using zero vector",
                expected=dim,
                received=int(arr.size),
            )
            return cls.zero(dim)
        if not np.all(np.isfinite(arr)):
            logger.warning("Malformed embedding, using zero vector", reason="non_finite")
            return cls.zero(dim)
        return cls(np.clip(arr, -1.0, 1.0))
