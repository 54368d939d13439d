"""
Unit tests for stream_parser module

Tests cover:
- Grouping of headers, clusters and matches into synteny sets
- Remapping of reference coordinates and region creation
- Recoverable boundary matches (logged and dropped)
- Fatal stream errors
"""

import logging
import os
import random
import sys
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from nucutils.parsers import FastaRecord
from postnuc.errors import (
    ClusterStraddleError,
    DuplicateReferenceError,
    OutOfRangeError,
    QueryOrderError,
    StreamFormatError,
)
from postnuc.sequence_store import FORWARD, REVERSE, Sequence, SequenceStore
from postnuc.stream_parser import MatchStreamParser, ParserState, QueryCursor
from postnuc.synteny import Match


def random_dna(length, seed):
    rng = random.Random(seed)
    return ''.join(rng.choice('ACGT') for _ in range(length))


@pytest.fixture
def references():
    """ref1 (30 bp) occupies 1..30, ref2 (40 bp) occupies 32..71"""
    return SequenceStore([
        Sequence("ref1", random_dna(30, 1)),
        Sequence("ref2", random_dna(40, 2)),
    ])


@pytest.fixture
def query_records():
    return [
        FastaRecord("qry1 first", random_dna(30, 3)),
        FastaRecord("qry2", random_dna(20, 4)),
    ]


def parse(references, query_records, text):
    parser = MatchStreamParser(references, QueryCursor(query_records))
    return parser, list(parser.parse(text.splitlines(keepends=True)))


class TestGrouping:
    """Test how lines are grouped into sets, regions and clusters"""

    def test_single_match(self, references, query_records):
        parser, sets = parse(references, query_records, ">qry1\n5 3 10\n")

        assert len(sets) == 1
        region = sets[0].regions[0]
        assert sets[0].query.id == "qry1"
        assert region.reference.id == "ref1"
        assert region.clusters[0].strand == FORWARD
        assert region.clusters[0].matches == [Match(5, 3, 10)]
        assert parser.state is ParserState.IN_MATCH_RUN

    def test_both_strands_form_one_set(self, references, query_records):
        text = ">qry1\n1 1 10\n>qry1 Reverse\n3 2 8\n>qry2\n40 1 5\n"
        _, sets = parse(references, query_records, text)

        assert [s.query.id for s in sets] == ["qry1", "qry2"]
        strands = [c.strand for c in sets[0].regions[0].clusters]
        assert strands == [FORWARD, REVERSE]

    def test_hash_line_starts_new_cluster(self, references, query_records):
        text = ">qry1\n#\n1 1 5\n6 6 4 0 0\n#\n20 15 6\n"
        _, sets = parse(references, query_records, text)

        clusters = sets[0].regions[0].clusters
        assert len(clusters) == 2
        assert clusters[0].matches == [Match(1, 1, 5), Match(6, 6, 4)]
        assert clusters[1].matches == [Match(20, 15, 6)]

    def test_remap_to_second_reference(self, references, query_records):
        """Global 42 is position 11 of ref2"""
        _, sets = parse(references, query_records, ">qry1\n42 1 20\n")

        region = sets[0].regions[0]
        assert region.ref_index == 1
        assert region.reference.id == "ref2"
        assert region.clusters[0].matches == [Match(11, 1, 20)]

    def test_regions_in_creation_order(self, references, query_records):
        text = ">qry1\n#\n42 1 5\n#\n1 1 5\n#\n50 10 5\n"
        _, sets = parse(references, query_records, text)

        regions = sets[0].regions
        assert [r.reference.id for r in regions] == ["ref2", "ref1"]
        assert len(regions[0].clusters) == 2
        assert sets[0].cluster_count == 3

    def test_short_matches_dropped(self, references, query_records):
        """Matches of length 1 resolve a region but are not kept"""
        _, sets = parse(references, query_records, ">qry1\n42 1 1\n")

        assert len(sets) == 1
        assert sets[0].regions[0].clusters == []

    def test_set_without_clusters_not_yielded(self, references, query_records):
        _, sets = parse(references, query_records, ">qry1\n>qry2\n1 1 5\n")

        assert [s.query.id for s in sets] == ["qry2"]

    def test_blank_lines_ignored(self, references, query_records):
        _, sets = parse(references, query_records, "\n>qry1\n\n1 1 5\n\n")

        assert sets[0].regions[0].clusters[0].matches == [Match(1, 1, 5)]

    def test_set_yielded_before_cursor_moves(self, references, query_records):
        cursor = QueryCursor(query_records)
        parser = MatchStreamParser(references, cursor)
        stream = parser.parse([">qry1\n", "1 1 5\n", ">qry2\n", "1 1 5\n"])

        first = next(stream)
        assert first.query.id == "qry1"
        assert cursor.current.id == "qry1"
        second = next(stream)
        assert second.query.id == "qry2"


class TestBoundaryMatches:
    """Test recoverable boundary crossings"""

    def test_reference_boundary_dropped(self, references, query_records, caplog):
        """A match running from ref1 into the sentinel is logged and dropped"""
        with caplog.at_level(logging.WARNING):
            parser, sets = parse(references, query_records, ">qry1\n25 1 10\n1 1 5\n")

        assert parser.dropped_matches == 1
        assert "ref1" in caplog.text
        assert sets[0].regions[0].clusters[0].matches == [Match(1, 1, 5)]

    def test_query_boundary_dropped(self, references, query_records, caplog):
        with caplog.at_level(logging.WARNING):
            parser, sets = parse(references, query_records, ">qry2\n1 15 10\n")

        assert parser.dropped_matches == 1
        assert "qry2" in caplog.text
        assert sets == []


class TestFatalErrors:
    """Test errors that abort parsing"""

    def test_missing_header(self, references, query_records):
        with pytest.raises(StreamFormatError):
            parse(references, query_records, "1 1 5\n")

    def test_empty_header(self, references, query_records):
        with pytest.raises(StreamFormatError):
            parse(references, query_records, ">\n1 1 5\n")

    def test_non_numeric_match(self, references, query_records):
        with pytest.raises(StreamFormatError):
            parse(references, query_records, ">qry1\n1 x 5\n")

    def test_too_few_fields(self, references, query_records):
        with pytest.raises(StreamFormatError):
            parse(references, query_records, ">qry1\n1 5\n")

    def test_unknown_query(self, references, query_records):
        with pytest.raises(QueryOrderError):
            parse(references, query_records, ">qry9\n1 1 5\n")

    def test_query_out_of_order(self, references, query_records):
        with pytest.raises(QueryOrderError):
            parse(references, query_records, ">qry2\n1 1 5\n>qry1\n1 1 5\n")

    def test_out_of_range(self, references, query_records):
        with pytest.raises(OutOfRangeError):
            parse(references, query_records, ">qry1\n500 1 5\n")

    def test_cluster_straddles_references(self, references, query_records):
        with pytest.raises(ClusterStraddleError):
            parse(references, query_records, ">qry1\n1 1 5\n42 10 5\n")

    def test_duplicate_reference_id(self, query_records):
        references = SequenceStore([
            Sequence("dup", random_dna(10, 5)),
            Sequence("dup", random_dna(20, 6)),
        ])
        with pytest.raises(DuplicateReferenceError):
            parse(references, query_records, ">qry1\n#\n1 1 5\n#\n12 1 5\n")
