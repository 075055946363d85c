"""
Taste engines.

- TasteVector: swipe-learned tag/axis weights
- StyleEmbedding: 64-d identity embedding
- Domain profiles: axes, clusters and ranking weights per domain
- rank / page / diversify: deterministic catalog ranking
- Naming: hash-gated profile names
"""
from .taste_vector import (
    BlendMode,
    SignalLevel,
    SwipeDirection,
    TasteVariant,
    TasteVector,
    STYLE_TAGS,
)
from .embedding import EMBEDDING_DIM, StyleEmbedding
from .domains import Domain, DomainProfile, RarityTier, StabilityMode, get_profile, normalize_domain
from .ranking_engine import (
    AffinitySignals,
    CatalogItem,
    Page,
    RankFilters,
    RankedItem,
    detect_stability,
    diversify,
    page,
    rank,
)
from .naming_engine import NamingResult, ProfileName, resolve as resolve_name

__all__ = [
    # Vectors
    'BlendMode', 'SignalLevel', 'SwipeDirection', 'TasteVariant', 'TasteVector', 'STYLE_TAGS',
    'EMBEDDING_DIM', 'StyleEmbedding',
    # Domains
    'Domain', 'DomainProfile', 'RarityTier', 'StabilityMode', 'get_profile', 'normalize_domain',
    # Ranking
    'AffinitySignals', 'CatalogItem', 'Page', 'RankFilters', 'RankedItem',
    'detect_stability', 'diversify', 'page', 'rank',
    # Naming
    'NamingResult', 'ProfileName', 'resolve_name',
]
