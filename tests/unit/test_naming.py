"""
Tests for profile naming.
"""

import pytest

from engines.domains import Domain, OBJECT_AXES, SPACE_AXES
from engines.naming_engine import (
    ART_GESTURES,
    ART_MOVEMENTS,
    OBJECT_SIGNALS,
    OBJECT_TONES,
    RESERVED_LABELS,
    ProfileName,
    _compose,
    build_basis_hash,
    describe,
    resolve,
    should_evolve,
)
from engines.taste_vector import TasteVector


@pytest.fixture
def nordic() -> TasteVector:
    return TasteVector({"scandinavian": 0.9, "japandi": 0.6, "industrial": -0.4})


def _all_words(pools):
    return {word for words in pools.values() for word in words}


class TestFirstNaming:

    def test_version_one(self, nordic, now):
        result = resolve(nordic, swipe_count=3, now=now)
        assert result.version == 1
        assert result.did_update is True
        assert result.previous_names == ()
        assert len(result.name.split(" ")) >= 2
        assert result.name.lower() not in RESERVED_LABELS

    def test_deterministic(self, nordic, now):
        assert resolve(nordic, 5, now=now) == resolve(nordic, 5, now=now)

    @pytest.mark.parametrize("domain", list(Domain))
    def test_every_domain_names(self, domain, now):
        vector = TasteVector({"precision": 0.8, "heritage": -0.5}) if domain == Domain.OBJECTS \
            else TasteVector({"industrial": 0.9, "bohemian": 0.3})
        result = resolve(vector, 10, domain=domain, now=now)
        assert result.name
        assert result.name.lower() not in RESERVED_LABELS

    def test_objects_vocabulary(self, now):
        vector = TasteVector({"precision": 0.8, "heritage": -0.5})
        first, second = resolve(vector, 10, domain=Domain.OBJECTS, now=now).name.split(" ", 1)
        assert first in _all_words(OBJECT_SIGNALS)
        assert second in _all_words(OBJECT_TONES)

    def test_art_vocabulary(self, now):
        vector = TasteVector({"industrial": 0.9, "bohemian": 0.3})
        first, second = resolve(vector, 10, domain=Domain.ART, now=now).name.split(" ", 1)
        assert first in _all_words(ART_MOVEMENTS)
        assert second in _all_words(ART_GESTURES)


class TestEvolution:

    def test_same_hash_keeps_name(self, nordic, now):
        first = resolve(nordic, 20, now=now).as_profile_name()
        again = resolve(nordic, 20, existing=first, now=now)
        assert again.did_update is False
        assert again.name == first.name
        assert again.version == 1

    def test_gate_blocks_small_wobble(self, now):
        flat = TasteVector({"coastal": 0.5, "rustic": 0.45})
        assert should_evolve(flat, 2) is False

        existing = ProfileName(name="Harbor Vivid", version=2, basis_hash="something-else")
        result = resolve(flat, 2, existing=existing, now=now)
        assert result.did_update is False
        assert result.name == "Harbor Vivid"
        assert result.version == 2

    def test_changed_hash_and_gate_evolves(self, nordic, now):
        existing = ProfileName(name="Harbor Vivid", version=2, basis_hash="old", previous_names=("A",))
        result = resolve(nordic, 20, existing=existing, now=now)
        assert result.did_update is True
        assert result.version == 3
        assert result.previous_names == ("A", "Harbor Vivid")

    def test_history_capped_at_three(self, nordic, now):
        existing = ProfileName(name="D", version=4, basis_hash="old", previous_names=("A", "B", "C"))
        result = resolve(nordic, 20, existing=existing, now=now)
        assert result.previous_names == ("B", "C", "D")

    def test_gate_conditions(self, nordic):
        assert should_evolve(TasteVector({"a": 0.1, "b": 0.1}), 14)
        assert should_evolve(nordic, 0)       # separation 0.3


class TestBuildingBlocks:

    def test_reserved_pair_is_skipped(self):
        assert _compose(("Mid Century",), ("Modern", "Loft"), "any-hash", (37, 31)) == "Mid Century Loft"

    def test_basis_hash_buckets(self, nordic):
        scores = {axis: 0.0 for axis in SPACE_AXES}
        scores["warm_cool"] = 0.6
        basis = build_basis_hash(scores, SPACE_AXES, nordic, 3)
        parts = basis.split("|")
        assert parts[1] == "+H"
        assert parts[0] == "+L"
        assert parts[len(SPACE_AXES):len(SPACE_AXES) + 2] == ["japandi", "scandinavian"]

    def test_describe(self):
        assert describe({}, OBJECT_AXES) == "A balanced taste that is still taking shape."
        text = describe({"warm_cool": 0.7, "light_dark": -0.4}, SPACE_AXES)
        assert text == "Warm at the core, with a light secondary thread."
        assert describe({"warm_cool": -0.7}, SPACE_AXES) == "Cool at the core, held with quiet consistency."
