"""
Unit tests for parsers module

Tests cover:
- FASTA reading through Biopython (ids, upper-casing, empty and bad files)
- Reverse complement with IUPAC codes
- Delta file reading and DataFrame conversion

Run with: python -m pytest tests/test_parsers.py -v
"""

import os
import sys
import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from nucutils.parsers import (
    FastaRecord,
    DeltaRecord,
    FastaFormatError,
    DeltaFormatError,
    iter_fasta,
    parse_fasta,
    reverse_complement,
    iter_delta,
    parse_delta,
    delta_records_to_dataframe,
)


# ============================================
# Test Fixtures - Sample Files
# ============================================

@pytest.fixture
def sample_fasta_file(tmp_path):
    """Create a sample FASTA file"""
    fasta_content = """>contig_1 first contig
atcgatcgATCGATCGATCG
GCTAGCTAGC
>contig_2
AAAATTTTCCCCGGGG
"""
    fasta_file = tmp_path / "test.fasta"
    fasta_file.write_text(fasta_content)
    return str(fasta_file)


@pytest.fixture
def sample_delta_file(tmp_path):
    """Create a sample delta file with one forward and one reverse alignment"""
    delta_content = """/data/ref.fna /data/qry.fna
NUCMER
>chr1 read7 5000 1200
100 400 1 301 3 3 0
50
-10
0
900 1000 1200 1100 0 0 0
0
"""
    delta_file = tmp_path / "test.delta"
    delta_file.write_text(delta_content)
    return str(delta_file)


# ============================================
# FASTA Parsers
# ============================================

class TestFastaParsers:
    """Test FASTA reading"""

    def test_iter_fasta(self, sample_fasta_file):
        """Records keep file order, ids are the first header word"""
        records = list(iter_fasta(sample_fasta_file))

        assert len(records) == 2
        assert isinstance(records[0], FastaRecord)
        assert records[0].id == "contig_1"
        assert records[0].description == "first contig"
        assert records[1].id == "contig_2"

    def test_sequences_are_uppercased(self, sample_fasta_file):
        """Multi-line sequences are joined and upper-cased"""
        records = list(iter_fasta(sample_fasta_file))

        assert records[0].sequence == "ATCGATCGATCGATCGATCGGCTAGCTAGC"
        assert records[0].length == 30

    def test_parse_fasta(self, sample_fasta_file):
        """parse_fasta maps id -> sequence"""
        sequences = parse_fasta(sample_fasta_file)

        assert set(sequences) == {"contig_1", "contig_2"}
        assert sequences["contig_2"] == "AAAATTTTCCCCGGGG"

    def test_empty_file_yields_nothing(self, tmp_path):
        """An empty file is not an error for the reader"""
        empty = tmp_path / "empty.fasta"
        empty.write_text("")

        assert list(iter_fasta(str(empty))) == []

    def test_non_fasta_file_rejected(self, tmp_path):
        """A file not starting with '>' raises FastaFormatError"""
        bad = tmp_path / "bad.fasta"
        bad.write_text("ACGTACGT\nACGT\n")

        with pytest.raises(FastaFormatError):
            list(iter_fasta(str(bad)))

    def test_missing_file(self, tmp_path):
        """Missing files raise FileNotFoundError"""
        with pytest.raises(FileNotFoundError):
            list(iter_fasta(str(tmp_path / "missing.fasta")))


class TestReverseComplement:
    """Test reverse complement"""

    def test_standard_bases(self):
        assert reverse_complement("ACGT") == "ACGT"
        assert reverse_complement("AACCGT") == "ACGGTT"

    def test_lowercase_and_n(self):
        assert reverse_complement("acgN") == "Ncgt"

    def test_iupac_codes(self):
        """R/Y and M/K swap, W and S are self-complementary"""
        assert reverse_complement("RYMKWS") == "SWMKRY"

    def test_double_reverse_is_identity(self):
        sequence = "GATTACAGATTACANNRY"
        assert reverse_complement(reverse_complement(sequence)) == sequence


# ============================================
# Delta Parsers
# ============================================

class TestDeltaParsers:
    """Test delta file reading"""

    def test_parse_delta(self, sample_delta_file):
        records = parse_delta(sample_delta_file)

        assert len(records) == 2
        first = records[0]
        assert isinstance(first, DeltaRecord)
        assert first.ref_id == "chr1"
        assert first.qry_id == "read7"
        assert first.ref_length == 5000
        assert first.qry_length == 1200
        assert (first.ref_start, first.ref_end) == (100, 400)
        assert (first.qry_start, first.qry_end) == (1, 301)
        assert first.errors == 3
        assert first.deltas == [50, -10]
        assert first.is_forward

    def test_reverse_record(self, sample_delta_file):
        records = list(iter_delta(sample_delta_file))
        second = records[1]

        assert not second.is_forward
        assert second.qry_span == 101
        assert second.ref_span == 101
        assert second.deltas == []

    def test_wrong_kind_rejected(self, tmp_path):
        delta_file = tmp_path / "bad.delta"
        delta_file.write_text("a b\nPROMER\n")

        with pytest.raises(DeltaFormatError):
            parse_delta(str(delta_file))

    def test_unterminated_alignment_rejected(self, tmp_path):
        delta_file = tmp_path / "cut.delta"
        delta_file.write_text("a b\nNUCMER\n>r q 10 10\n1 10 1 10 0 0 0\n")

        with pytest.raises(DeltaFormatError):
            parse_delta(str(delta_file))


class TestDataFrameConversion:
    """Test DataFrame export of delta records"""

    def test_dataframe_columns(self, sample_delta_file):
        df = delta_records_to_dataframe(parse_delta(sample_delta_file))

        assert len(df) == 2
        assert list(df['ref_id']) == ['chr1', 'chr1']
        assert list(df['indels']) == [2, 0]
        assert list(df['is_forward']) == [True, False]
        assert df['identity'].iloc[1] == pytest.approx(1.0)
        # 301 reference columns plus one reference gap, 3 errors
        assert df['identity'].iloc[0] == pytest.approx(1 - 3 / 302)

    def test_empty_dataframe(self):
        df = delta_records_to_dataframe([])

        assert len(df) == 0
        assert 'ref_start' in df.columns
