"""
Sequence Store and Coordinate Remapper

The upstream matcher works on all reference sequences concatenated with one
sentinel base between each. SequenceStore keeps the sequences in file order
and maps a 1-based coordinate of that concatenated space back to a sequence
index and a local 1-based offset.

Typical usage:
    references = SequenceStore.from_fasta("reference.fna")
    index, local_start = references.remap(global_start, length)
"""

import bisect
import logging
from dataclasses import dataclass
from functools import cached_property
from typing import Iterable, Iterator, List, Optional, Tuple

from nucutils.parsers import FastaRecord, iter_fasta, reverse_complement

from .errors import BoundaryError, EmptyReferenceError, OutOfRangeError

logger = logging.getLogger(__name__)

FORWARD = '+'
REVERSE = '-'


@dataclass(frozen=True)
class Sequence:
    """A named nucleotide sequence with 1-based coordinates."""
    id: str
    bases: str

    @property
    def length(self) -> int:
        return len(self.bases)

    def base(self, pos: int) -> str:
        """Return the base at 1-based position pos."""
        if not 1 <= pos <= len(self.bases):
            raise IndexError(f"Position {pos} outside {self.id} (length {len(self.bases)})")
        return self.bases[pos - 1]

    def slice(self, start: int, end: int) -> str:
        """Return bases start..end, both 1-based and inclusive."""
        if end < start:
            return ''
        return self.bases[max(start, 1) - 1:end]

    @cached_property
    def reverse_bases(self) -> str:
        return reverse_complement(self.bases)

    def oriented(self, strand: str) -> str:
        """Bases as seen by matches on the given strand."""
        return self.bases if strand == FORWARD else self.reverse_bases

    @classmethod
    def from_record(cls, record: FastaRecord) -> 'Sequence':
        return cls(id=record.id, bases=record.sequence)


class SequenceStore:
    """
    Append-only, ordered collection of reference sequences.

    Sequences are addressed by their position in the store, which never
    changes once assigned.
    """

    def __init__(self, sequences: Optional[Iterable[Sequence]] = None):
        self._sequences: List[Sequence] = []
        # 1-based global coordinate of the last base of each sequence
        self._ends: List[int] = []
        for sequence in sequences or ():
            self.add(sequence)

    @classmethod
    def from_fasta(cls, fasta_path: str) -> 'SequenceStore':
        """
        Load every record of a FASTA file.

        Raises:
            EmptyReferenceError: If the file holds no sequences
        """
        store = cls(Sequence.from_record(record) for record in iter_fasta(fasta_path))
        if not store:
            raise EmptyReferenceError(f"No sequences found in reference file {fasta_path}")
        logger.info("Loaded %d reference sequences (%d bp) from %s",
                    len(store), store.total_length, fasta_path)
        return store

    def add(self, sequence: Sequence) -> int:
        """Append a sequence and return its index."""
        start = self._ends[-1] + 2 if self._ends else 1
        self._sequences.append(sequence)
        self._ends.append(start + sequence.length - 1)
        return len(self._sequences) - 1

    def __len__(self) -> int:
        return len(self._sequences)

    def __getitem__(self, index: int) -> Sequence:
        return self._sequences[index]

    def __iter__(self) -> Iterator[Sequence]:
        return iter(self._sequences)

    @property
    def total_length(self) -> int:
        return sum(s.length for s in self._sequences)

    def offset(self, index: int) -> int:
        """Global coordinate immediately before sequence index's first base."""
        return self._ends[index] - self._sequences[index].length

    def remap(self, global_start: int, length: int) -> Tuple[int, int]:
        """
        Map a match in concatenated coordinates to (sequence index, local start).

        Equivalent to walking the sequences in order and subtracting
        length + 1 while the coordinate exceeds the current length; the
        first sequence that can hold the coordinate is the answer.

        Raises:
            OutOfRangeError: If no sequence holds global_start
            BoundaryError: If the match does not fit inside that sequence
        """
        index = bisect.bisect_left(self._ends, global_start)
        if index >= len(self._sequences):
            raise OutOfRangeError(
                f"Match start {global_start} lies beyond the concatenated reference "
                f"sequences ({self._ends[-1] if self._ends else 0}); the match stream is corrupt"
            )
        sequence = self._sequences[index]
        local_start = global_start - self.offset(index)
        if local_start <= 0 or local_start + length - 1 > sequence.length:
            raise BoundaryError(
                f"Match at {global_start} (length {length}) extends beyond the "
                f"boundary of reference sequence '{sequence.id}'",
                sequence.id,
            )
        return index, local_start
