"""
Taste conflict evaluation.

Compares a user's axis scores with an item's axis weights over one
domain's axes. Both sides are L2-normalized first, so only direction
matters, not how strongly either side is expressed.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from core.utils import clamp01
from engines.domains import axis_label


MAX_CONFLICT_AXES = 2


@dataclass(frozen=True)
class ConflictResult:
    alignment: float                                    # 0..1
    drift: float                                        # 0..1
    conflict_axes: Tuple[str, ...] = field(default=())  # display names, worst first

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alignment": self.alignment,
            "drift": self.drift,
            "conflict_axes": list(self.conflict_axes),
        }


def _unit(values: Mapping[str, float], axes: Sequence[str]) -> List[float]:
    raw = [float(values.get(axis, 0.0)) for axis in axes]
    magnitude = math.sqrt(sum(v * v for v in raw))
    if magnitude == 0:
        return raw
    return [v / magnitude for v in raw]


def evaluate_conflict(
    user_scores: Mapping[str, float],
    item_axes: Mapping[str, float],
    axes: Sequence[str],
) -> ConflictResult:
    """
    Alignment is cosine mapped to [0, 1] (0.5 when either side is empty).
    Drift is L2 distance divided by sqrt(len(axes)), clamped to [0, 1].
    Conflict axes are the two largest absolute mismatches.
    """
    if not axes:
        return ConflictResult(alignment=0.5, drift=0.0)

    user = _unit(user_scores, axes)
    item = _unit(item_axes, axes)

    dot = sum(u * i for u, i in zip(user, item))
    mag_user = math.sqrt(sum(u * u for u in user))
    mag_item = math.sqrt(sum(i * i for i in item))
    denom = mag_user * mag_item
    alignment = 0.5 if denom == 0 else clamp01((dot / denom + 1.0) / 2.0)

    distance = math.sqrt(sum((u - i) ** 2 for u, i in zip(user, item)))
    drift = clamp01(distance / math.sqrt(len(axes)))

    mismatches = sorted(
        enumerate(axes),
        key=lambda pair: (-abs(user[pair[0]] - item[pair[0]]), pair[0]),
    )
    conflict_axes = tuple(axis_label(axis) for _, axis in mismatches[:MAX_CONFLICT_AXES])

    return ConflictResult(alignment=alignment, drift=drift, conflict_axes=conflict_axes)
