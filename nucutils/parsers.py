"""
Parsers Module for postnuc

Readers for the file formats that surround the post-clustering stage:
- FASTA files (reference and query genomes)
- Delta alignment files (the .delta output written by postnuc)

Usage:
    from nucutils.parsers import iter_fasta, parse_delta, reverse_complement
"""

from typing import Dict, List, Iterator, Optional
from dataclasses import dataclass, asdict, field

from Bio import SeqIO

try:
    import pandas as pd
    PANDAS_AVAILABLE = True
except ImportError:
    PANDAS_AVAILABLE = False


class FastaFormatError(ValueError):
    """Raised when a FASTA file cannot be read as FASTA."""


class DeltaFormatError(ValueError):
    """Raised when a delta file does not follow the NUCMER delta layout."""


# ============================================
# Data Classes
# ============================================

@dataclass
class FastaRecord:
    """Represents a FASTA sequence record"""
    header: str
    sequence: str

    @property
    def id(self) -> str:
        """Extract ID (first word) from header"""
        return self.header.split()[0] if self.header.strip() else ""

    @property
    def description(self) -> str:
        """Extract description (everything after ID) from header"""
        parts = self.header.split(maxsplit=1)
        return parts[1] if len(parts) > 1 else ""

    @property
    def length(self) -> int:
        return len(self.sequence)


@dataclass
class DeltaRecord:
    """One alignment block of a delta file, with its sequence pair header."""
    ref_id: str
    qry_id: str
    ref_length: int
    qry_length: int
    ref_start: int
    ref_end: int
    qry_start: int
    qry_end: int
    errors: int
    similarity_errors: int
    stops: int
    deltas: List[int] = field(default_factory=list)

    @property
    def is_forward(self) -> bool:
        return self.qry_start <= self.qry_end

    @property
    def ref_span(self) -> int:
        return self.ref_end - self.ref_start + 1

    @property
    def qry_span(self) -> int:
        return abs(self.qry_end - self.qry_start) + 1


# ============================================
# FASTA Parsers
# ============================================

def iter_fasta(fasta_path: str) -> Iterator[FastaRecord]:
    """
    Iterate over FASTA records without loading entire file into memory.

    Sequences are upper-cased. An empty file yields nothing; a file whose
    first non-blank line is not a '>' header is rejected.

    Args:
        fasta_path: Path to FASTA file

    Yields:
        FastaRecord objects

    Raises:
        FileNotFoundError: If the file doesn't exist
        FastaFormatError: If the file is not FASTA
    """
    with open(fasta_path, 'r') as handle:
        first = ''
        for line in handle:
            if line.strip():
                first = line
                break
        if not first:
            return
        if not first.startswith('>'):
            raise FastaFormatError(f"{fasta_path}: FASTA file must start with a '>' header")
        handle.seek(0)

        try:
            for record in SeqIO.parse(handle, "fasta"):
                yield FastaRecord(
                    header=record.description,
                    sequence=str(record.seq).upper()
                )
        except ValueError as e:
            raise FastaFormatError(f"{fasta_path}: {e}") from e


def parse_fasta(fasta_path: str) -> Dict[str, str]:
    """
    Parse a FASTA file into a dictionary.

    Args:
        fasta_path: Path to FASTA file

    Returns:
        Dict mapping sequence_id -> sequence
    """
    return {record.id: record.sequence for record in iter_fasta(fasta_path)}


def reverse_complement(sequence: str) -> str:
    """
    Return the reverse complement of a DNA sequence.

    Args:
        sequence: DNA sequence string

    Returns:
        Reverse complement sequence
    """
    return sequence.translate(_COMPLEMENT)[::-1]


# Standard bases plus IUPAC ambiguity codes, both cases
_COMPLEMENT = str.maketrans(
    'ACGTRYWSMKBVDHNacgtrywsmkbvdhn',
    'TGCAYRWSKMVBHDNtgcayrwskmvbhdn'
)


# ============================================
# Delta Parsers
# ============================================

def iter_delta(delta_path: str) -> Iterator[DeltaRecord]:
    """
    Iterate over the alignments of a NUCMER delta file.

    Layout:
        refFile qryFile
        NUCMER
        >refId qryId refLen qryLen
        refStart refEnd qryStart qryEnd errors simErrors stops
        signed gap runs, one per line
        0

    Args:
        delta_path: Path to .delta file

    Yields:
        DeltaRecord objects, one per alignment block

    Raises:
        DeltaFormatError: If the file deviates from the layout above
    """
    with open(delta_path, 'r') as f:
        f.readline()
        kind = f.readline().strip()
        if kind != 'NUCMER':
            raise DeltaFormatError(f"{delta_path}: expected NUCMER on line 2, got '{kind}'")

        header: Optional[List[str]] = None
        current: Optional[DeltaRecord] = None

        for line_number, line in enumerate(f, start=3):
            fields = line.split()
            if not fields:
                continue
            if line.startswith('>'):
                if current is not None:
                    raise DeltaFormatError(f"{delta_path}:{line_number}: unterminated alignment")
                header = line[1:].split()
                if len(header) != 4:
                    raise DeltaFormatError(f"{delta_path}:{line_number}: malformed header")
                continue
            try:
                values = [int(v) for v in fields]
            except ValueError:
                raise DeltaFormatError(f"{delta_path}:{line_number}: non-numeric field")

            if current is None:
                if header is None or len(values) != 7:
                    raise DeltaFormatError(f"{delta_path}:{line_number}: malformed alignment line")
                current = DeltaRecord(
                    ref_id=header[0],
                    qry_id=header[1],
                    ref_length=int(header[2]),
                    qry_length=int(header[3]),
                    ref_start=values[0],
                    ref_end=values[1],
                    qry_start=values[2],
                    qry_end=values[3],
                    errors=values[4],
                    similarity_errors=values[5],
                    stops=values[6],
                )
            elif values[0] == 0:
                yield current
                current = None
            else:
                current.deltas.append(values[0])

        if current is not None:
            raise DeltaFormatError(f"{delta_path}: file ends inside an alignment")


def parse_delta(delta_path: str) -> List[DeltaRecord]:
    """Parse a delta file into a list of DeltaRecord objects."""
    return list(iter_delta(delta_path))


# ============================================
# DataFrame Conversion Functions
# ============================================

def delta_records_to_dataframe(records: List[DeltaRecord]) -> 'pd.DataFrame':
    """
    Convert list of DeltaRecord objects to pandas DataFrame.

    The gap-run list is summarised as an indel count; the raw list is kept
    in the 'deltas' column.

    Args:
        records: List of DeltaRecord objects

    Returns:
        pandas DataFrame with one row per alignment

    Raises:
        ImportError: If pandas is not installed
    """
    if not PANDAS_AVAILABLE:
        raise ImportError("pandas is required for DataFrame conversion. Install with: pip install pandas")

    columns = [
        'ref_id', 'qry_id', 'ref_length', 'qry_length',
        'ref_start', 'ref_end', 'qry_start', 'qry_end',
        'errors', 'similarity_errors', 'stops', 'deltas',
        'ref_span', 'qry_span', 'is_forward', 'indels', 'identity'
    ]
    if not records:
        return pd.DataFrame(columns=columns)

    data = []
    for record in records:
        row = asdict(record)
        row['ref_span'] = record.ref_span
        row['qry_span'] = record.qry_span
        row['is_forward'] = record.is_forward
        row['indels'] = len(record.deltas)
        # errors count every mismatch and indel column
        columns_aligned = record.ref_span + sum(1 for d in record.deltas if d < 0)
        row['identity'] = 1.0 - record.errors / columns_aligned if columns_aligned else 0.0
        data.append(row)

    df = pd.DataFrame(data, columns=columns)

    for name in ('ref_start', 'ref_end', 'qry_start', 'qry_end', 'errors'):
        df[name] = df[name].astype('int64')
    df['identity'] = df['identity'].astype('float64')

    return df
