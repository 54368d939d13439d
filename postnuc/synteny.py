"""
Synteny and cluster model.

Match, Cluster and SyntenyRegion hold what the stream parser reads for one
query sequence; Alignment holds what the extension engine builds from it.
Query coordinates are kept on the strand the match was reported on (the
reverse complement for '-' clusters) until output.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .config import ScoringScheme
from .errors import DuplicateReferenceError
from .sequence_store import Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Match:
    """An exact match in local 1-based coordinates."""
    ref_start: int
    qry_start: int
    length: int

    @property
    def ref_end(self) -> int:
        return self.ref_start + self.length - 1

    @property
    def qry_end(self) -> int:
        return self.qry_start + self.length - 1

    @property
    def diagonal(self) -> int:
        return self.ref_start - self.qry_start

    def trimmed(self, count: int) -> 'Match':
        """Drop the first count bases of the match."""
        return Match(self.ref_start + count, self.qry_start + count, self.length - count)


@dataclass
class Cluster:
    """A colinear chain of matches on one strand."""
    strand: str
    matches: List[Match] = field(default_factory=list)

    @property
    def ref_start(self) -> int:
        return self.matches[0].ref_start


@dataclass
class SyntenyRegion:
    """The clusters between one reference sequence and the current query."""
    ref_index: int
    reference: Sequence
    clusters: List[Cluster] = field(default_factory=list)


class SyntenySet:
    """
    All synteny regions parsed for one query sequence, in creation order.

    Regions are looked up by reference id through a dict, so a new cluster
    finds its region in constant time while iteration keeps creation order.
    """

    def __init__(self, query: Sequence):
        self.query = query
        self.regions: List[SyntenyRegion] = []
        self._by_reference: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self.regions)

    @property
    def cluster_count(self) -> int:
        return sum(len(r.clusters) for r in self.regions)

    def region_for(self, ref_index: int, reference: Sequence) -> SyntenyRegion:
        """
        Return the region for a reference sequence, creating it if needed.

        Raises:
            DuplicateReferenceError: If a region already exists for this id
                with a reference of a different length
        """
        position = self._by_reference.get(reference.id)
        if position is None:
            region = SyntenyRegion(ref_index=ref_index, reference=reference)
            self._by_reference[reference.id] = len(self.regions)
            self.regions.append(region)
            return region

        region = self.regions[position]
        if region.reference.length != reference.length:
            raise DuplicateReferenceError(
                f"The reference file may contain sequences with non-unique header ids "
                f"('{reference.id}' seen with lengths {region.reference.length} and "
                f"{reference.length}); please check your input files"
            )
        return region


class AlignmentState(Enum):
    """Lifecycle of an alignment inside the extension engine"""
    SEEDED = 1
    EXTENDED = 2
    FUSED = 3
    SHADOWED = 4
    KEPT = 5


class Alignment:
    """
    A gapped alignment between a reference and a query strand.

    The indel positions are stored as a delta list: each entry is the
    column distance from the previous indel (or the alignment start) to the
    next one, positive when the reference base is aligned to a gap in the
    query and negative when the query base is aligned to a gap in the
    reference.
    """

    def __init__(self, strand: str, ref_start: int, qry_start: int):
        self.strand = strand
        self.ref_start = ref_start
        self.qry_start = qry_start
        self.ref_end = ref_start - 1
        self.qry_end = qry_start - 1
        self.deltas: List[int] = []
        # columns since the last indel
        self.delta_pos = 0
        self.errors = 0
        self.similarity_errors = 0
        self.stops = 0
        self.state = AlignmentState.SEEDED

    def __repr__(self) -> str:
        return (f"Alignment({self.strand} {self.ref_start}-{self.ref_end} x "
                f"{self.qry_start}-{self.qry_end}, deltas={self.deltas}, {self.state.name})")

    @property
    def ref_length(self) -> int:
        return self.ref_end - self.ref_start + 1

    @property
    def qry_length(self) -> int:
        return self.qry_end - self.qry_start + 1

    @property
    def end_diagonal(self) -> int:
        return self.ref_end - self.qry_end

    @property
    def start_diagonal(self) -> int:
        return self.ref_start - self.qry_start

    def append_match(self, length: int) -> None:
        """Append length gap-free columns."""
        self.ref_end += length
        self.qry_end += length
        self.delta_pos += length

    def append_ops(self, ops: str) -> None:
        """
        Append alignment columns.

        Parameters:
            ops: 'M' for an aligned pair, 'I' for a reference base against a
                query gap, 'D' for a query base against a reference gap
        """
        for op in ops:
            self.delta_pos += 1
            if op == 'M':
                self.ref_end += 1
                self.qry_end += 1
            elif op == 'I':
                self.ref_end += 1
                self.deltas.append(self.delta_pos)
                self.delta_pos = 0
            else:
                self.qry_end += 1
                self.deltas.append(-self.delta_pos)
                self.delta_pos = 0

    def contains(self, other: 'Alignment') -> bool:
        """True if other lies inside this alignment on both axes and strands agree."""
        return (self.strand == other.strand
                and self.ref_start <= other.ref_start and other.ref_end <= self.ref_end
                and self.qry_start <= other.qry_start and other.qry_end <= self.qry_end)

    def _fusion_overlap(self, other: 'Alignment') -> Optional[int]:
        """Columns shared with a following alignment, or None if they cannot fuse."""
        if other.strand != self.strand:
            return None
        if other.ref_start > self.ref_end + 1 or other.qry_start > self.qry_end + 1:
            return None
        if other.ref_end <= self.ref_end or other.qry_end <= self.qry_end:
            return None
        if other.start_diagonal != self.end_diagonal:
            return None
        overlap = self.ref_end - other.ref_start + 1
        if overlap < 0 or self.delta_pos < overlap:
            return None
        if other.deltas and abs(other.deltas[0]) <= overlap:
            return None
        return overlap

    def can_fuse(self, other: 'Alignment') -> bool:
        return self._fusion_overlap(other) is not None

    def fuse(self, other: 'Alignment') -> None:
        """
        Absorb a following alignment that meets or overlaps this one.

        The shared columns are gap-free in both, so the joined delta list is
        this list followed by other's list with its first entry re-based.
        """
        overlap = self._fusion_overlap(other)
        if overlap is None:
            raise ValueError(f"{other!r} cannot be fused into {self!r}")

        if other.deltas:
            first = other.deltas[0]
            distance = abs(first) - overlap + self.delta_pos
            self.deltas.append(distance if first > 0 else -distance)
            self.deltas.extend(other.deltas[1:])
            self.delta_pos = other.delta_pos
        else:
            self.delta_pos += other.delta_pos - overlap
        self.ref_end = other.ref_end
        self.qry_end = other.qry_end
        self.state = AlignmentState.FUSED

    def compute_errors(self, ref_bases: str, qry_bases: str, scoring: ScoringScheme) -> None:
        """
        Count errors, similarity errors and stop characters over the alignment.

        Parameters:
            ref_bases: Full reference sequence
            qry_bases: Full query sequence on this alignment's strand
        """
        errors = similarity_errors = stops = 0
        i, j = self.ref_start - 1, self.qry_start - 1

        def column(a: str, b: str) -> None:
            nonlocal errors, similarity_errors, stops
            if a != b:
                errors += 1
            if not scoring.similar(a, b):
                similarity_errors += 1
            if not a.isalpha() or not b.isalpha():
                stops += 1

        for delta in self.deltas:
            for _ in range(abs(delta) - 1):
                column(ref_bases[i], qry_bases[j])
                i += 1
                j += 1
            errors += 1
            similarity_errors += 1
            if delta > 0:
                i += 1
            else:
                j += 1
        while i < self.ref_end:
            column(ref_bases[i], qry_bases[j])
            i += 1
            j += 1

        self.errors = errors
        self.similarity_errors = similarity_errors
        self.stops = stops
