"""
Profile Naming Engine

Gives a taste profile a two-word display name that is stable under noise.

The name is picked from fixed per-domain vocabularies using a deterministic
string hash of the "basis hash", a structural fingerprint of the profile:

    <bucketed axis scores> | <top-2 tags, sorted> | <confidence level>

A new name only replaces the current one when the basis hash changes AND
the evolution gate passes (Strong confidence, 14+ swipes, or a separation
of at least 0.15). Small wobbles that don't cross a gate keep the name.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from core.logging import get_logger
from core.utils import deterministic_index
from engines.domains import Domain, DomainProfile, get_profile
from engines.taste_vector import (
    STRONG_SEPARATION,
    STRONG_SWIPE_COUNT,
    STYLE_TAGS,
    SignalLevel,
    TasteVector,
    tag_label,
)


logger = get_logger(__name__)

MAX_PREVIOUS_NAMES = 3
SECONDARY_AXIS_FLOOR = 0.15

# Canonical style names. A generated profile name must never collide with one.
RESERVED_LABELS = frozenset(tag_label(tag).lower() for tag in STYLE_TAGS)


# =============================================================================
# Vocabularies: (axis, positive pole?) -> words
# =============================================================================

WordPools = Dict[Tuple[str, bool], Tuple[str, ...]]

SPACE_DESCRIPTORS: WordPools = {
    ("minimal_ornate", False): ("Minimal", "Clean", "Spare", "Quiet"),
    ("minimal_ornate", True): ("Ornate", "Adorned", "Rich", "Elaborate"),
    ("warm_cool", True): ("Warm", "Earth", "Sunlit"),
    ("warm_cool", False): ("Cool", "Frost", "Nordic"),
    ("soft_structured", True): ("Structured", "Rigid", "Composed"),
    ("soft_structured", False): ("Soft", "Gentle", "Relaxed"),
    ("organic_industrial", True): ("Industrial", "Brutal", "Concrete", "Raw"),
    ("organic_industrial", False): ("Organic", "Natural", "Verdant"),
    ("light_dark", False): ("Light", "Airy", "Bright"),
    ("light_dark", True): ("Dark", "Noir", "Midnight", "Studio"),
    ("neutral_saturated", False): ("Neutral", "Tonal", "Muted"),
    ("neutral_saturated", True): ("Saturated", "Vivid", "Chromatic"),
    ("sparse_layered", False): ("Sparse", "Open", "Reduced"),
    ("sparse_layered", True): ("Layered", "Textural", "Expressive"),
}

SPACE_CONTEXTS: Dict[str, Tuple[str, ...]] = {
    "industrial_dark": ("Berlin", "Concrete", "Studio", "Metro", "Bushwick"),
    "warm_organic": ("Desert", "Lagos", "Garden", "Lisbon", "Nairobi"),
    "minimal_neutral": ("Tokyo", "Milan", "Gallery", "Campus", "Atelier"),
    "layered_saturated": ("Havana", "Marrakech", "Athens", "Harbor"),
}

OBJECT_SIGNALS: WordPools = {
    ("precision", True): ("Calibrated", "Machined", "Exacting", "Toleranced"),
    ("precision", False): ("Rough", "Approximate", "Loose", "Unmetered"),
    ("patina", True): ("Weathered", "Worn", "Oxidized", "Seasoned"),
    ("patina", False): ("Pristine", "Factory", "Sealed", "Unworn"),
    ("utility", True): ("Deployed", "Fielded", "Loaded", "Carried"),
    ("utility", False): ("Displayed", "Archived", "Mounted", "Cased"),
    ("formality", True): ("Ceremonial", "Formal", "Dressed", "Protocol"),
    ("formality", False): ("Casual", "Off-Duty", "Undone", "Relaxed"),
    ("subculture", True): ("Underground", "Coded", "Deep-Cut", "Insider"),
    ("subculture", False): ("Standard", "Mainline", "Universal", "Open"),
    ("ornament", True): ("Etched", "Guilloché", "Engraved", "Filigreed"),
    ("ornament", False): ("Blank", "Bare", "Stripped", "Unmarked"),
    ("heritage", True): ("Storied", "Lineage", "Legacy", "Archive"),
    ("heritage", False): ("New-Gen", "First-Run", "Debut", "Zero"),
    ("technicality", True): ("Engineered", "Composite", "Alloy", "Technical"),
    ("technicality", False): ("Analog", "Manual", "Handbuilt", "Lo-Fi"),
    ("minimalism", True): ("Reduced", "Distilled", "Essential", "Negative"),
    ("minimalism", False): ("Stacked", "Dense", "Loaded", "Heavy"),
}

OBJECT_TONES: WordPools = {
    ("precision", True): ("Tolerance", "Grade", "Caliper", "Gauge"),
    ("precision", False): ("Drift", "Scatter", "Blur", "Margin"),
    ("patina", True): ("Relic", "Verdigris", "Tarnish", "Grain"),
    ("patina", False): ("Mint", "Stock", "Fresh", "Uncut"),
    ("utility", True): ("Kit", "Loadout", "Rig", "Carry"),
    ("utility", False): ("Vitrine", "Case", "Display", "Shelf"),
    ("formality", True): ("Rite", "Occasion", "Order", "Code"),
    ("formality", False): ("Break", "Ease", "Rest", "Off-Clock"),
    ("subculture", True): ("Signal", "Cipher", "Frequency", "Channel"),
    ("subculture", False): ("Baseline", "Default", "Norm", "Standard"),
    ("ornament", True): ("Motif", "Flourish", "Relief", "Pattern"),
    ("ornament", False): ("Void", "Plane", "Flat", "Ground"),
    ("heritage", True): ("House", "Provenance", "Edition", "Mark"),
    ("heritage", False): ("Prototype", "Draft", "Origin", "Launch"),
    ("technicality", True): ("Lab", "Module", "System", "Matrix"),
    ("technicality", False): ("Hand", "Loom", "Bench", "Craft"),
    ("minimalism", True): ("Absence", "Silence", "Clear", "Less"),
    ("minimalism", False): ("Mass", "Weight", "Layer", "Stack"),
}

ART_MOVEMENTS: WordPools = {
    ("minimal_ornate", False): ("Post-Minimal", "Reductive", "Zero", "Void"),
    ("minimal_ornate", True): ("Baroque", "Maximal", "Ornamental", "Decorative"),
    ("warm_cool", True): ("Contemporary", "Earthwork", "Vernacular", "Archive"),
    ("warm_cool", False): ("Monochrome", "Chromatic", "Spectral", "Glacial"),
    ("soft_structured", True): ("Constructivist", "Systematic", "Geometric", "Serial"),
    ("soft_structured", False): ("Gestural", "Lyrical", "Fluid", "Organic"),
    ("organic_industrial", True): ("Brutal", "Industrial", "Material", "Concrete"),
    ("organic_industrial", False): ("Biomorphic", "Natural", "Elemental", "Terrestrial"),
    ("light_dark", False): ("Luminous", "Light", "Radiant", "Prismatic"),
    ("light_dark", True): ("Nocturnal", "Shadow", "Tenebrist", "Crepuscular"),
    ("neutral_saturated", False): ("Tonal", "Achromatic", "Grayscale", "Subdued"),
    ("neutral_saturated", True): ("Chromatic", "Polychrome", "Saturated", "Pigment"),
    ("sparse_layered", False): ("Essential", "Distilled", "Sparse", "Singular"),
    ("sparse_layered", True): ("Accumulated", "Stratified", "Palimpsest", "Dense"),
}

ART_GESTURES: WordPools = {
    ("minimal_ornate", False): ("Study", "Notation", "Mark", "Trace"),
    ("minimal_ornate", True): ("Tableau", "Scene", "Vista", "Field"),
    ("warm_cool", True): ("Signal", "Pulse", "Breath", "Echo"),
    ("warm_cool", False): ("Strike", "Cut", "Fracture", "Edge"),
    ("soft_structured", True): ("Grid", "Structure", "Module", "Unit"),
    ("soft_structured", False): ("Gesture", "Drift", "Sway", "Wave"),
    ("organic_industrial", True): ("Force", "Impact", "Pressure", "Mass"),
    ("organic_industrial", False): ("Growth", "Root", "Bloom", "Spore"),
    ("light_dark", False): ("Glow", "Haze", "Aura", "Gleam"),
    ("light_dark", True): ("Depth", "Void", "Well", "Pit"),
    ("neutral_saturated", False): ("Silence", "Pause", "Rest", "Lull"),
    ("neutral_saturated", True): ("Burst", "Flare", "Charge", "Surge"),
    ("sparse_layered", False): ("Point", "Line", "Dot", "Plane"),
    ("sparse_layered", True): ("Layer", "Fold", "Weave", "Band"),
}

# (negative pole, positive pole) for descriptions
AXIS_POLES: Dict[str, Tuple[str, str]] = {
    "minimal_ornate": ("minimal", "ornate"),
    "warm_cool": ("cool", "warm"),
    "soft_structured": ("soft", "structured"),
    "organic_industrial": ("organic", "industrial"),
    "light_dark": ("light", "dark"),
    "neutral_saturated": ("neutral", "saturated"),
    "sparse_layered": ("sparse", "layered"),
    "precision": ("loose", "exacting"),
    "patina": ("factory-fresh", "aged"),
    "utility": ("display", "everyday-carry"),
    "formality": ("casual", "ceremonial"),
    "subculture": ("mainstream", "subculture-coded"),
    "ornament": ("austere", "embellished"),
    "heritage": ("new-generation", "heritage"),
    "technicality": ("analog", "engineered"),
    "minimalism": ("maximal", "essential"),
}

# (first-word multiplier, second-word multiplier)
HASH_MULTIPLIERS: Dict[Domain, Tuple[int, int]] = {
    Domain.SPACE: (37, 31),
    Domain.OBJECTS: (59, 61),
    Domain.ART: (47, 53),
}


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class ProfileName:
    """Persisted naming state for a profile."""
    name: str = ""
    version: int = 0
    basis_hash: str = ""
    previous_names: Tuple[str, ...] = ()
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "version": self.version,
            "basis_hash": self.basis_hash,
            "previous_names": list(self.previous_names),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class NamingResult:
    name: str
    description: str
    version: int
    basis_hash: str
    previous_names: Tuple[str, ...]
    updated_at: datetime
    did_update: bool

    def as_profile_name(self) -> ProfileName:
        return ProfileName(
            name=self.name,
            version=self.version,
            basis_hash=self.basis_hash,
            previous_names=self.previous_names,
            updated_at=self.updated_at,
        )

    def to_dict(self) -> Dict:
        return {
            **self.as_profile_name().to_dict(),
            "description": self.description,
            "did_update": self.did_update,
        }


# =============================================================================
# Building blocks
# =============================================================================

def _bucket(value: float) -> str:
    sign = "+" if value >= 0 else "-"
    magnitude = abs(value)
    if magnitude >= 0.5:
        return f"{sign}H"
    if magnitude >= 0.2:
        return f"{sign}M"
    return f"{sign}L"


def build_basis_hash(
    axis_scores: Mapping[str, float],
    axes: Sequence[str],
    vector: TasteVector,
    swipe_count: int,
) -> str:
    parts = [_bucket(axis_scores.get(axis, 0.0)) for axis in axes]
    parts.extend(sorted(tag for tag, _ in vector.ranked()[:2]))
    parts.append(vector.confidence_level(swipe_count).value)
    return "|".join(parts)


def _ordered_axes(axis_scores: Mapping[str, float], axes: Sequence[str]) -> List[str]:
    """Axes by descending magnitude; ties keep declaration order."""
    return sorted(axes, key=lambda axis: -abs(axis_scores.get(axis, 0.0)))


def _pick(pool: Sequence[str], basis_hash: str, multiplier: int) -> str:
    index = deterministic_index(basis_hash, multiplier, len(pool))
    return pool[index]


def _pool(pools: WordPools, axis: str, scores: Mapping[str, float]) -> Tuple[str, ...]:
    return pools[(axis, scores.get(axis, 0.0) >= 0)]


def _compose(first: Sequence[str], second: Sequence[str], basis_hash: str, multipliers: Tuple[int, int]) -> str:
    """
    Pick one word from each pool. If the pair collides with a reserved
    label, walk the second pool until it doesn't.
    """
    first_word = _pick(first, basis_hash, multipliers[0])
    start = deterministic_index(basis_hash, multipliers[1], len(second))
    for step in range(len(second)):
        candidate = f"{first_word} {second[(start + step) % len(second)]}"
        if candidate.lower() not in RESERVED_LABELS:
            return candidate
    return f"{first_word} Study"


def generate_name(axis_scores: Mapping[str, float], basis_hash: str, domain: Domain) -> str:
    profile: DomainProfile = get_profile(domain)
    multipliers = HASH_MULTIPLIERS[profile.domain]
    ordered = _ordered_axes(axis_scores, profile.axes)
    dominant = ordered[0]
    secondary = ordered[1] if len(ordered) > 1 else dominant

    if profile.domain == Domain.SPACE:
        context = SPACE_CONTEXTS[profile.identify_cluster(axis_scores)]
        descriptor = _pool(SPACE_DESCRIPTORS, dominant, axis_scores)
        return _compose(context, descriptor, basis_hash, multipliers)

    if profile.domain == Domain.OBJECTS:
        return _compose(
            _pool(OBJECT_SIGNALS, dominant, axis_scores),
            _pool(OBJECT_TONES, secondary, axis_scores),
            basis_hash,
            multipliers,
        )

    return _compose(
        _pool(ART_MOVEMENTS, dominant, axis_scores),
        _pool(ART_GESTURES, secondary, axis_scores),
        basis_hash,
        multipliers,
    )


def _pole(axis: str, value: float) -> str:
    negative, positive = AXIS_POLES[axis]
    return positive if value >= 0 else negative


def describe(axis_scores: Mapping[str, float], axes: Sequence[str]) -> str:
    """One sentence from the dominant and (if strong enough) secondary axis."""
    ordered = _ordered_axes(axis_scores, axes)
    dominant = ordered[0]
    dominant_value = axis_scores.get(dominant, 0.0)
    if dominant_value == 0:
        return "A balanced taste that is still taking shape."

    lead = _pole(dominant, dominant_value).capitalize()
    if len(ordered) > 1:
        secondary = ordered[1]
        secondary_value = axis_scores.get(secondary, 0.0)
        if abs(secondary_value) > SECONDARY_AXIS_FLOOR:
            return f"{lead} at the core, with a {_pole(secondary, secondary_value)} secondary thread."
    return f"{lead} at the core, held with quiet consistency."


def should_evolve(vector: TasteVector, swipe_count: int) -> bool:
    return (
        vector.confidence_level(swipe_count) == SignalLevel.STRONG
        or swipe_count >= STRONG_SWIPE_COUNT
        or vector.separation >= STRONG_SEPARATION
    )


# =============================================================================
# Resolve
# =============================================================================

def resolve(
    vector: TasteVector,
    swipe_count: int,
    existing: Optional[ProfileName] = None,
    domain: Domain = Domain.SPACE,
    now: Optional[datetime] = None,
) -> NamingResult:
    """
    Work out the profile's current name.

    The first naming always yields version 1. After that the name only
    changes when the basis hash moved and ``should_evolve`` passes; the
    replaced name goes into a history capped at three entries.
    """
    now = now or datetime.now(timezone.utc)
    profile = get_profile(domain)
    axis_scores = profile.axis_scores(vector)
    basis_hash = build_basis_hash(axis_scores, profile.axes, vector, swipe_count)
    description = describe(axis_scores, profile.axes)

    if existing is None or not existing.name:
        name = generate_name(axis_scores, basis_hash, profile.domain)
        logger.info("Profile named", domain=profile.domain.value, name=name)
        return NamingResult(
            name=name,
            description=description,
            version=1,
            basis_hash=basis_hash,
            previous_names=(),
            updated_at=now,
            did_update=True,
        )

    if basis_hash != existing.basis_hash and should_evolve(vector, swipe_count):
        name = generate_name(axis_scores, basis_hash, profile.domain)
        previous = list(existing.previous_names)
        if existing.name not in previous:
            previous.append(existing.name)
        previous = previous[-MAX_PREVIOUS_NAMES:]
        logger.info(
            "Profile name evolved",
            domain=profile.domain.value,
            old_name=existing.name,
            new_name=name,
            version=existing.version + 1,
        )
        return NamingResult(
            name=name,
            description=description,
            version=existing.version + 1,
            basis_hash=basis_hash,
            previous_names=tuple(previous),
            updated_at=now,
            did_update=True,
        )

    return NamingResult(
        name=existing.name,
        description=description,
        version=existing.version,
        basis_hash=existing.basis_hash,
        previous_names=tuple(existing.previous_names),
        updated_at=existing.updated_at or now,
        did_update=False,
    )
