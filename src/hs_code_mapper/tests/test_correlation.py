"""
Unit tests for CorrelationTable and CorrelationEngine.

Run with: python -m pytest test_correlation.py
"""

import pytest
import pandas as pd
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from hs_code_mapper import (
    Confidence,
    CorrelationEngine,
    CorrelationTable,
    HSCode,
    NomenclatureCatalog,
)
from hs_code_mapper.errors import StructuralError, VersionUnsupportedError


EDGES_2017_2022 = [
    ("2017", "847130", "2022", "847130", "exact", 1.0),
    ("2017", "847141", "2022", "847141", "probable", 1.0),
    # one old code split into two new ones
    ("2017", "851712", "2022", "851714", "split", 0.3),
    ("2017", "851712", "2022", "851713", "split", 0.7),
    # two old codes merged into one new one
    ("2017", "844331", "2022", "844331", "merge", 1.0),
    ("2017", "844332", "2022", "844331", "merge", 1.0),
    # heuristic table entry with several candidates
    ("2017", "010129", "2022", "010129", "uncertain", 0.4),
    ("2017", "010129", "2022", "010121", "uncertain", 0.6),
    # heading-level edge
    ("2017", "8519", "2022", "8519", "exact", 1.0),
]

EDGES_2012_2017 = [
    ("2012", "847130", "2017", "847130", "exact", 1.0),
    ("2012", "851712", "2017", "851712", "exact", 1.0),
    ("2012", "847141", "2017", "847141", "exact", 1.0),
]


@pytest.fixture
def table():
    """Create a sample correlation table"""
    return CorrelationTable.from_records(EDGES_2017_2022 + EDGES_2012_2017)


@pytest.fixture
def engine(table):
    return CorrelationEngine(table)


class TestCorrelationTable:
    """Test cases for CorrelationTable"""

    def test_size_and_pairs(self, table):
        assert len(table) == len(EDGES_2017_2022) + len(EDGES_2012_2017)
        assert table.pairs() == [("2012", "2017"), ("2017", "2022")]
        assert table.versions() == {"2012", "2017", "2022"}

    def test_edges_for(self, table):
        edges = table.edges_for("8517.12", "2017", "2022")
        assert {e.to_code for e in edges} == {"851713", "851714"}
        assert all(e.confidence is Confidence.SPLIT for e in edges)

    def test_no_inverse_edges(self, table):
        """Test edges are directed"""
        assert table.edges_for("847130", "2022", "2017") == ()
        assert not table.has_pair("2022", "2017")

    def test_split_needs_two_targets(self):
        with pytest.raises(StructuralError):
            CorrelationTable.from_records([("2017", "851712", "2022", "851713", "split", 1.0)])

    def test_merge_needs_two_sources(self):
        with pytest.raises(StructuralError):
            CorrelationTable.from_records([("2017", "844331", "2022", "844331", "merge", 1.0)])

    def test_non_ascii_codes_rejected(self):
        with pytest.raises(StructuralError):
            CorrelationTable.from_records([("2017", "٨٤٧١٣٠", "2022", "847130", "exact", 1.0)])

    def test_unknown_confidence(self):
        with pytest.raises(StructuralError):
            CorrelationTable.from_records([("2017", "847130", "2022", "847130", "maybe", 1.0)])

    def test_not_found_cannot_be_declared(self):
        with pytest.raises(StructuralError):
            CorrelationTable.from_records([("2017", "847130", "2022", "847130", "not_found", 1.0)])

    def test_same_version_edge_rejected(self):
        with pytest.raises(StructuralError):
            CorrelationTable.from_records([("2022", "847130", "2022", "847130", "exact", 1.0)])

    def test_duplicate_edge_rejected(self):
        edge = ("2017", "847130", "2022", "847130", "exact", 1.0)
        with pytest.raises(StructuralError):
            CorrelationTable.from_records([edge, edge])

    def test_from_dataframe_default_weight(self):
        df = pd.DataFrame({
            "from_version": ["2017"],
            "from_code": ["847130"],
            "to_version": ["2022"],
            "to_code": ["847130"],
            "confidence": ["EXACT"],
        })
        table = CorrelationTable.from_dataframe(df)
        assert table.edges_for("847130", "2017", "2022")[0].weight == 1.0

    def test_from_dataframe_missing_columns(self):
        with pytest.raises(ValueError):
            CorrelationTable.from_dataframe(pd.DataFrame({"from_code": ["847130"]}))

    def test_from_file(self, tmp_path):
        path = tmp_path / "correlation.csv"
        path.write_text(
            "from_version,from_code,to_version,to_code,confidence,weight\n"
            "2017,010121,2022,010121,exact,1\n",
            encoding="utf-8",
        )
        table = CorrelationTable.from_file(path)
        assert table.edges_for("010121", "2017", "2022")[0].to_code == "010121"


class TestCorrelate:
    """Test cases for CorrelationEngine.correlate"""

    def test_exact(self, engine):
        result = engine.correlate("847130", "2017", "2022")
        assert result.target_code == HSCode("847130", version="2022")
        assert result.target_code.digits == "847130"
        assert result.confidence is Confidence.EXACT
        assert result.alternatives == []

    def test_same_version_short_circuit(self, engine):
        for code in ("847130", "999999", "8471300000"):
            result = engine.correlate(code, "2022", "2022")
            assert result.confidence is Confidence.EXACT
            assert result.target_code.digits == code

    def test_same_version_unknown_to_table(self, engine):
        result = engine.correlate("847130", "1996", "1996")
        assert result.confidence is Confidence.EXACT

    def test_probable(self, engine):
        result = engine.correlate("847141", "2017", "2022")
        assert result.confidence is Confidence.PROBABLE
        assert result.target_code.digits == "847141"

    def test_split_is_preserved(self, engine):
        result = engine.correlate("8517.12", "2017", "2022")
        assert result.confidence is Confidence.SPLIT
        assert result.target_code is None
        assert [c.digits for c in result.alternatives] == ["851713", "851714"]

    def test_merge_is_preserved(self, engine):
        result = engine.correlate("844332", "2017", "2022")
        assert result.confidence is Confidence.MERGE
        assert result.target_code.digits == "844331"
        assert [c.digits for c in result.merged_sources] == ["844331"]

    def test_uncertain_sorted_by_weight(self, engine):
        result = engine.correlate("010129", "2017", "2022")
        assert result.confidence is Confidence.UNCERTAIN
        assert result.target_code is None
        assert [c.digits for c in result.alternatives] == ["010121", "010129"]

    def test_heading_fallback_caps_confidence(self, engine):
        result = engine.correlate("851930", "2017", "2022")
        assert result.confidence is Confidence.PROBABLE
        assert result.fallback_used is True
        assert result.target_code.digits == "8519"

    def test_not_found(self, engine):
        result = engine.correlate("999999", "2017", "2022")
        assert result.confidence is Confidence.NOT_FOUND
        assert result.target_code is None
        assert result.alternatives == []

    def test_unknown_version(self, engine):
        with pytest.raises(VersionUnsupportedError):
            engine.correlate("847130", "2017", "2027")

    def test_no_reverse_projection(self, engine):
        """Test the inverse direction is not derived"""
        result = engine.correlate("847130", "2022", "2017")
        assert result.confidence is Confidence.NOT_FOUND

    def test_to_dict(self, engine):
        payload = engine.correlate("847130", "2017", "2022").to_dict()
        assert payload["target_code"] == "847130"
        assert payload["confidence"] == "exact"
        assert payload["alternatives"] == []


class TestHeadingSurvival:
    """Test cases for the registry-backed heading fallback"""

    @pytest.fixture
    def catalog(self):
        catalog = NomenclatureCatalog()
        for version in ("2017", "2022"):
            catalog.load([
                ("84", "Machinery", None, None),
                ("8471", "Automatic data processing machines", "84", None),
                ("847130", "Portable machines", "84", "8471"),
            ], version)
        return catalog

    def test_heading_in_both_versions(self, table, catalog):
        engine = CorrelationEngine(table, catalog)
        result = engine.correlate("847190", "2017", "2022")
        assert result.confidence is Confidence.PROBABLE
        assert result.fallback_used is True
        assert result.target_code == HSCode("8471", version="2022")

    def test_without_catalog_no_fallback(self, engine):
        assert engine.correlate("847190", "2017", "2022").confidence is Confidence.NOT_FOUND

    def test_catalog_versions_are_known(self, catalog):
        engine = CorrelationEngine(CorrelationTable.from_records(EDGES_2012_2017), catalog)
        result = engine.correlate("847130", "2017", "2022")
        assert result.confidence is Confidence.NOT_FOUND


class TestChainedCorrelation:
    """Test cases for correlation across several tables"""

    def test_chain_exact(self, engine):
        result = engine.correlate("847130", "2012", "2022")
        assert result.confidence is Confidence.EXACT
        assert result.target_code.digits == "847130"
        assert result.path == ["2012", "2017", "2022"]

    def test_chain_weakest_link(self, engine):
        result = engine.correlate("847141", "2012", "2022")
        assert result.confidence is Confidence.PROBABLE

    def test_chain_keeps_split(self, engine):
        result = engine.correlate("851712", "2012", "2022")
        assert result.confidence is Confidence.SPLIT
        assert result.target_code is None
        assert len(result.alternatives) == 2

    def test_chain_not_found(self, engine):
        assert engine.correlate("010121", "2012", "2022").confidence is Confidence.NOT_FOUND

    def test_chain_split_with_unmapped_branch(self):
        """Test a split whose branch has no onward edge is not reported as a split"""
        table = CorrelationTable.from_records([
            ("2012", "851712", "2017", "851713", "split", 0.5),
            ("2012", "851712", "2017", "851714", "split", 0.5),
            ("2017", "851713", "2022", "851713", "exact", 1.0),
        ])
        result = CorrelationEngine(table).correlate("851712", "2012", "2022")
        assert result.confidence is Confidence.UNCERTAIN
        assert result.target_code is None
        assert [c.digits for c in result.alternatives] == ["851713"]

    def test_chain_split_recombined(self):
        """Test split branches that merge back into one code"""
        table = CorrelationTable.from_records([
            ("2012", "851712", "2017", "851713", "split", 0.5),
            ("2012", "851712", "2017", "851714", "split", 0.5),
            ("2017", "851713", "2022", "851710", "merge", 1.0),
            ("2017", "851714", "2022", "851710", "merge", 1.0),
        ])
        result = CorrelationEngine(table).correlate("851712", "2012", "2022")
        assert result.confidence is Confidence.UNCERTAIN
        assert result.target_code == HSCode("851710", version="2022")
        assert result.alternatives == []

    def test_split_always_has_alternatives(self, engine):
        for code in ("851712", "847130", "847141"):
            result = engine.correlate(code, "2012", "2022")
            if result.confidence is Confidence.SPLIT:
                assert len(result.alternatives) >= 2

    def test_chain_ending_in_merge(self, table):
        chained = CorrelationTable.merge(
            table,
            CorrelationTable.from_records([("2012", "844331", "2017", "844331", "exact", 1.0)]),
        )
        result = CorrelationEngine(chained).correlate("844331", "2012", "2022")
        assert result.confidence is Confidence.MERGE
        assert result.target_code.digits == "844331"
        assert [c.digits for c in result.merged_sources] == ["844332"]


def test_correlate_many(engine):
    """Test batch correlation"""
    df = engine.correlate_many(["847130", "851712", "999999"], "2017", "2022")
    assert df["confidence"].tolist() == ["exact", "split", "not_found"]
    assert df["alternatives"].iloc[1] == "851713;851714"
    assert df["target_code"].iloc[2] is None
    assert df["target_code"].tolist() == ["847130", None, None]
    assert df["fallback_used"].dtype == bool


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
