"""
Advisory policy: turn a conflict into a traffic-light verdict.

Each strictness level has its own drift and alignment cutoffs. The
user's tolerance shifts only the alignment side (``alignment + tolerance``);
drift is a hard mismatch and tolerance never relaxes it.

Interception:
    green   never
    yellow  standard and strict only
    red     always
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from scoring.conflict import ConflictResult


class AdvisoryLevel(str, Enum):
    SOFT = "soft"
    STANDARD = "standard"
    STRICT = "strict"


class AdvisoryVerdict(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


VERDICT_HEADLINES: Dict[AdvisoryVerdict, str] = {
    AdvisoryVerdict.GREEN: "Aligned.",
    AdvisoryVerdict.YELLOW: "Consider.",
    AdvisoryVerdict.RED: "High drift.",
}


@dataclass(frozen=True)
class AdvisoryThresholds:
    red_drift: float
    red_alignment: float        # red when effective alignment <= this
    yellow_drift: float
    yellow_alignment: float


ADVISORY_THRESHOLDS: Dict[AdvisoryLevel, AdvisoryThresholds] = {
    AdvisoryLevel.SOFT: AdvisoryThresholds(
        red_drift=0.40, red_alignment=0.42, yellow_drift=0.28, yellow_alignment=0.55,
    ),
    AdvisoryLevel.STANDARD: AdvisoryThresholds(
        red_drift=0.30, red_alignment=0.50, yellow_drift=0.20, yellow_alignment=0.62,
    ),
    AdvisoryLevel.STRICT: AdvisoryThresholds(
        red_drift=0.22, red_alignment=0.58, yellow_drift=0.16, yellow_alignment=0.70,
    ),
}

DEFAULT_ADVISORY_LEVEL = AdvisoryLevel.STANDARD


@dataclass(frozen=True)
class AdvisoryDecision:
    verdict: AdvisoryVerdict
    should_intercept: bool
    conflict: ConflictResult
    level: AdvisoryLevel
    tolerance: float = 0.0

    @property
    def headline(self) -> str:
        return VERDICT_HEADLINES[self.verdict]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verdict": self.verdict.value,
            "should_intercept": self.should_intercept,
            "headline": self.headline,
            "level": self.level.value,
            "tolerance": self.tolerance,
            "conflict": self.conflict.to_dict(),
        }


def decide(
    level: AdvisoryLevel,
    conflict: ConflictResult,
    tolerance: float = 0.0,
) -> AdvisoryDecision:
    level = AdvisoryLevel(level)
    thresholds = ADVISORY_THRESHOLDS[level]
    effective = conflict.alignment + tolerance

    if conflict.drift >= thresholds.red_drift or effective <= thresholds.red_alignment:
        verdict = AdvisoryVerdict.RED
    elif conflict.drift >= thresholds.yellow_drift or effective <= thresholds.yellow_alignment:
        verdict = AdvisoryVerdict.YELLOW
    else:
        verdict = AdvisoryVerdict.GREEN

    should_intercept = verdict == AdvisoryVerdict.RED or (
        verdict == AdvisoryVerdict.YELLOW and level != AdvisoryLevel.SOFT
    )

    return AdvisoryDecision(
        verdict=verdict,
        should_intercept=should_intercept,
        conflict=conflict,
        level=level,
        tolerance=tolerance,
    )
