"""
Unit tests for SearchIndex.

Run with: python -m pytest test_search.py
"""

import pytest
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from hs_code_mapper import NomenclatureCatalog, NomenclatureRegistry, SearchIndex
from hs_code_mapper.search import hits_to_dataframe, max_edits_for, tokenize


ENTRIES = [
    ("01", "Live animals", None, None),
    ("0101", "Live horses, asses, mules and hinnies", "01", None),
    ("010121", "Pure-bred breeding horses", "01", "0101"),
    ("010129", "Other", "01", "0101"),
    ("84", "Machinery and mechanical appliances", None, None),
    ("8471", "Automatic data processing machines", "84", None),
    ("847130", "Portable automatic data processing machines", "84", "8471"),
    ("847149", "Other", "84", "8471"),
    ("8450", "Household or laundry-type washing machines", "84", None),
]


@pytest.fixture
def registry():
    return NomenclatureRegistry.load(ENTRIES, version="2022")


@pytest.fixture
def index(registry):
    return SearchIndex(registry)


class TestModes:
    """Test cases for the three matching modes"""

    def test_exact_substring(self, index):
        hits = index.search("data processing", mode="exact")
        assert [h.code for h in hits] == ["8471", "847130"]
        assert hits[0].highlights == ((10, 25),)

    def test_exact_requires_literal_match(self, index):
        assert index.search("processing data", mode="exact") == []

    def test_exact_is_case_insensitive(self, index):
        assert [h.code for h in index.search("HORSES", mode="exact")] == ["010121", "0101"]

    def test_prefix(self, index):
        hits = index.search("port mach", mode="prefix")
        assert [h.code for h in hits] == ["847130"]
        assert hits[0].highlights == ((0, 4), (35, 39))

    def test_prefix_needs_every_word(self, index):
        assert index.search("portable horses", mode="prefix") == []

    def test_fuzzy_tolerates_typos(self, index):
        hits = index.search("hroses", mode="fuzzy")
        assert {h.code for h in hits} == {"0101", "010121"}

    def test_fuzzy_partial_match(self, index):
        hits = index.search("portable spaceship", mode="fuzzy")
        assert [h.code for h in hits] == ["847130"]
        assert hits[0].score == pytest.approx(0.5)

    def test_code_prefix_query(self, index):
        hits = index.search("8471", mode="prefix")
        assert [h.code for h in hits] == ["8471", "847149", "847130"]
        assert hits[0].score == 1.0

    def test_scores_in_range(self, index):
        for mode in ("exact", "prefix", "fuzzy"):
            for hit in index.search("machines", mode=mode):
                assert 0.0 <= hit.score <= 1.0


class TestOrdering:
    """Test cases for ranking and determinism"""

    def test_ties_break_on_description_length(self, index):
        hits = index.search("machines", mode="prefix")
        # "machines" is a whole word in all three, so shorter descriptions come first
        assert [h.code for h in hits] == ["8471", "8450", "847130"]

    def test_ties_break_on_code(self, index):
        hits = index.search("other", mode="prefix")
        assert [h.code for h in hits] == ["010129", "847149"]

    def test_deterministic(self, index):
        first = [h.to_dict() for h in index.search("mach", mode="fuzzy", limit=50)]
        for _ in range(5):
            assert [h.to_dict() for h in index.search("mach", mode="fuzzy", limit=50)] == first

    def test_limit(self, index):
        assert len(index.search("machines", limit=1)) == 1

    def test_chapter_filter(self, index):
        hits = index.search("other", chapters=["84"])
        assert [h.code for h in hits] == ["847149"]
        assert [h.code for h in index.search("other", chapters=[1])] == ["010129"]


class TestArguments:
    """Test cases for argument handling"""

    def test_bad_mode(self, index):
        with pytest.raises(ValueError):
            index.search("machines", mode="semantic")

    def test_bad_limit(self, index):
        with pytest.raises(ValueError):
            index.search("machines", limit=0)

    def test_empty_query(self, index):
        assert index.search("   ") == []
        assert index.search("!!!") == []


def test_catalog_search(registry):
    """Test searching through the catalog"""
    catalog = NomenclatureCatalog()
    catalog.add_registry(registry)
    hits = catalog.search("portable", "2022")
    assert [h.code for h in hits] == ["847130"]


def test_helpers():
    assert tokenize("Pure-bred horses") == [("pure", 0), ("bred", 5), ("horses", 10)]
    assert max_edits_for("ox") == 0
    assert max_edits_for("bred") == 1
    assert max_edits_for("horses") == 2


def test_hits_to_dataframe(index):
    df = hits_to_dataframe(index.search("horses"))
    assert df.columns.tolist() == ["code", "description", "score"]
    assert len(df) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
