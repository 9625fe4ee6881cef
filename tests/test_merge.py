"""
Tests for the Deduplicator/Normalizer.
"""

from patent_engine.core.merge import dedupe_records, merge
from patent_engine.core.models import CandidateRecord, ResultStatus


class TestDedupeRecords:
    """Tests for dedupe_records."""

    def test_keeps_record_with_longer_abstract(self):
        """Test that the more complete duplicate wins."""
        records = [
            CandidateRecord("WO2020123456", title="Ibuprofen salt", abstract="Short."),
            CandidateRecord("WO2020654321", title="Other"),
            CandidateRecord(
                "WO 2020/123456",
                title="Ibuprofen salt",
                abstract="A pharmaceutical composition of ibuprofen lysinate with improved solubility.",
            ),
        ]

        result = dedupe_records(records)

        assert [r.natural_key for r in result] == ["WO2020123456", "WO2020654321"]
        assert result[0].abstract.startswith("A pharmaceutical composition")

    def test_tie_keeps_first_seen(self):
        """Test that equal completeness keeps the earlier record."""
        first = CandidateRecord("WO1", title="First", source_strategy="structured_dom")
        second = CandidateRecord("WO1", title="Other", source_strategy="pattern")

        result = dedupe_records([first, second])

        assert result == [first]

    def test_skips_sentinels_and_empty_keys(self):
        """Test that sentinel and keyless records are never merged."""
        records = [
            CandidateRecord("ERROR", abstract="boom"),
            CandidateRecord("", title="keyless"),
            CandidateRecord("WO1"),
        ]

        assert [r.natural_key for r in dedupe_records(records)] == ["WO1"]

    def test_idempotent(self):
        """Test that deduping twice changes nothing."""
        records = [CandidateRecord("WO1", abstract="a"), CandidateRecord("wo1", abstract="abc"), CandidateRecord("WO2")]

        once = dedupe_records(records)

        assert dedupe_records(once) == once


class TestMerge:
    """Tests for merge."""

    def test_merges_pages_in_first_seen_order(self):
        """Test flattening of per-page records."""
        page1 = [CandidateRecord("WO1"), CandidateRecord("WO2")]
        page2 = [CandidateRecord("WO2", abstract="more"), CandidateRecord("WO3")]

        result = merge([page1, page2], "PatentScope")

        assert result.status == ResultStatus.OK
        assert result.keys() == ["WO1", "WO2", "WO3"]
        assert result.records[1].abstract == "more"
        assert result.count == 3

    def test_no_records_gives_no_results_sentinel(self):
        """Test the NO_RESULTS outcome."""
        result = merge([[], []], "INPI")

        assert result.status == ResultStatus.NO_RESULTS
        assert result.keys() == ["NO_RESULTS"]
        assert result.count == 0

    def test_no_pages_gives_no_results_sentinel(self):
        """Test merging when no page was read at all."""
        assert merge([], "INPI").status == ResultStatus.NO_RESULTS
