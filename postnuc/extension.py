"""
Extension Engine

Turns the clusters of one query sequence into alignments, one synteny
region at a time:

1. Clusters are ordered by reference start and split into colinear runs.
2. Each run becomes one alignment: the gaps between its matches are closed
   with a global banded alignment and its ends are extended outward until
   the score stalls, a sequence ends, or a neighbouring run's territory
   begins. A gap of at most break_length left before a neighbouring run is
   closed with a global alignment.
3. Alignments that meet on the same diagonal are fused.
4. Alignments contained in another are dropped unless shadows are kept.

Typical usage:
    engine = ExtensionEngine(PostnucConfig())
    for region, alignments in engine.process(synteny_set):
        writer.write_alignments(region.reference, synteny_set.query, alignments)
"""

import logging
from typing import Iterator, List, Optional, Sequence as SequenceType, Tuple

from .banded_alignment import AlignmentPath, BandedAligner
from .config import PostnucConfig
from .sequence_store import Sequence
from .synteny import Alignment, AlignmentState, Cluster, Match, SyntenyRegion, SyntenySet

logger = logging.getLogger(__name__)

# (strand, matches) of one colinear run
Run = Tuple[str, List[Match]]


class ExtensionEngine:
    """
    Extend, fuse and filter clusters into alignments.

    Attributes:
        config (PostnucConfig): Policy flags and tuning values
        aligner (BandedAligner): Dynamic programming primitive
    """

    def __init__(self, config: Optional[PostnucConfig] = None):
        self.config = config or PostnucConfig()
        self.aligner = BandedAligner(
            self.config.scoring,
            band=self.config.banding,
            break_length=self.config.break_length,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(self, synteny_set: SyntenySet) -> Iterator[Tuple[SyntenyRegion, List[Alignment]]]:
        """Yield (region, alignments) for every region, in creation order."""
        for region in synteny_set.regions:
            yield region, self.extend_region(region, synteny_set.query)

    def extend_region(self, region: SyntenyRegion, query: Sequence) -> List[Alignment]:
        """Build the surviving alignments of one region in reference-start order."""
        clusters = sorted((c for c in region.clusters if c.matches), key=lambda c: c.ref_start)
        runs: List[Run] = []
        for cluster in clusters:
            runs.extend((cluster.strand, run) for run in self.split_runs(cluster))

        ref_bases = region.reference.bases
        built: List[Alignment] = []
        for index, (strand, matches) in enumerate(runs):
            alignment = self._build_alignment(
                strand, matches, ref_bases, query.oriented(strand), built, runs[index + 1:]
            )
            built.append(alignment)

        alignments = self.fuse(built)
        if not self.config.keep_shadowed_alignments:
            alignments = self.remove_shadowed(alignments)
        alignments.sort(key=lambda a: a.ref_start)

        for alignment in alignments:
            alignment.compute_errors(ref_bases, query.oriented(alignment.strand), self.config.scoring)
            alignment.state = AlignmentState.KEPT

        logger.debug("%s vs %s: %d clusters, %d runs, %d alignments kept",
                     region.reference.id, query.id, len(clusters), len(runs), len(alignments))
        return alignments

    def split_runs(self, cluster: Cluster) -> List[List[Match]]:
        """
        Split a cluster into maximal runs of matches that one alignment can hold.

        Overlapping matches are trimmed so each starts after its predecessor
        on both axes; a match trimmed to nothing is dropped. A run breaks at
        a match that is not ahead of its predecessor or whose gap cannot be
        bridged.
        """
        runs: List[List[Match]] = []
        current: List[Match] = []
        for match in cluster.matches:
            if current:
                last = current[-1]
                if match.ref_start <= last.ref_start or match.qry_start <= last.qry_start:
                    runs.append(current)
                    current = [match]
                    continue
                overlap = max(last.ref_end - match.ref_start + 1,
                              last.qry_end - match.qry_start + 1, 0)
                if overlap >= match.length:
                    continue
                if overlap:
                    match = match.trimmed(overlap)
                if not self._bridgeable(last, match):
                    runs.append(current)
                    current = [match]
                    continue
            current.append(match)
        if current:
            runs.append(current)
        return runs

    def fuse(self, alignments: List[Alignment]) -> List[Alignment]:
        """Merge alignments that meet or overlap on the same diagonal."""
        fused: List[Alignment] = []
        for alignment in sorted(alignments, key=lambda a: (a.ref_start, a.qry_start)):
            for target in reversed(fused):
                if target.can_fuse(alignment):
                    target.fuse(alignment)
                    logger.debug("Fused %r", target)
                    break
            else:
                fused.append(alignment)
        return fused

    def remove_shadowed(self, alignments: List[Alignment]) -> List[Alignment]:
        """Drop alignments contained in another on both axes (same strand)."""
        kept: List[Alignment] = []
        by_size = sorted(alignments, key=lambda a: a.ref_length + a.qry_length, reverse=True)
        for alignment in by_size:
            if any(k.contains(alignment) for k in kept):
                alignment.state = AlignmentState.SHADOWED
                logger.debug("Dropped shadowed %r", alignment)
            else:
                kept.append(alignment)
        return kept

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _bridgeable(self, last: Match, match: Match) -> bool:
        gap_ref = match.ref_start - last.ref_end - 1
        gap_qry = match.qry_start - last.qry_end - 1
        if gap_ref == 0 and gap_qry == 0:
            return True
        return self.config.extend_clusters and abs(gap_ref - gap_qry) <= self.config.break_length

    def _build_alignment(self, strand: str, matches: List[Match], ref: str, qry: str,
                         built: List[Alignment], later: SequenceType[Run]) -> Alignment:
        extend = self.config.extend_clusters
        first = matches[0]

        back = AlignmentPath.empty()
        if extend:
            floor_ref, floor_qry = self._floor(strand, first, built)
            back = self._extend_flank(
                ref[floor_ref - 1:first.ref_start - 1][::-1],
                qry[floor_qry - 1:first.qry_start - 1][::-1],
                ref_at_end=floor_ref == 1,
                qry_at_end=floor_qry == 1,
            ).reversed()

        alignment = Alignment(strand, first.ref_start - back.ref_consumed,
                              first.qry_start - back.qry_consumed)
        alignment.append_ops(back.ops)
        alignment.append_match(first.length)

        for match in matches[1:]:
            gap_ref = ref[alignment.ref_end:match.ref_start - 1]
            gap_qry = qry[alignment.qry_end:match.qry_start - 1]
            if gap_ref or gap_qry:
                alignment.append_ops(self.aligner.align_global(gap_ref, gap_qry).ops)
            alignment.append_match(match.length)

        if extend:
            ceil_ref, ceil_qry, neighbour = self._ceiling(strand, alignment, built, later,
                                                          len(ref), len(qry))
            ref_window = ref[alignment.ref_end:ceil_ref]
            qry_window = qry[alignment.qry_end:ceil_qry]
            forward = self._extend_flank(
                ref_window,
                qry_window,
                ref_at_end=ceil_ref == len(ref),
                qry_at_end=ceil_qry == len(qry),
            )
            if neighbour:
                forward = self._close_gap(forward, ref_window, qry_window)
            alignment.append_ops(forward.ops)
            alignment.state = AlignmentState.EXTENDED
        return alignment

    def _floor(self, strand: str, first: Match, built: List[Alignment]) -> Tuple[int, int]:
        """Lowest reference and query positions a backward extension may reach."""
        floor_ref = floor_qry = 1
        for other in built:
            if other.strand == strand and other.ref_end < first.ref_start \
                    and other.qry_end < first.qry_start:
                floor_ref = max(floor_ref, other.ref_end + 1)
                floor_qry = max(floor_qry, other.qry_end + 1)
        return floor_ref, floor_qry

    def _ceiling(self, strand: str, alignment: Alignment, built: List[Alignment],
                 later: SequenceType[Run], ref_length: int,
                 qry_length: int) -> Tuple[int, int, bool]:
        """
        Highest reference and query positions a forward extension may reach.

        The flag is True when a single neighbouring start bounds both axes,
        i.e. the window ends right before another alignment or run.
        """
        ceil_ref, ceil_qry = ref_length, qry_length
        starts = [(a.ref_start, a.qry_start) for a in built if a.strand == strand]
        starts.extend((run[0].ref_start, run[0].qry_start) for s, run in later if s == strand)
        ahead = [(r, q) for r, q in starts if r > alignment.ref_end and q > alignment.qry_end]
        for ref_start, qry_start in ahead:
            ceil_ref = min(ceil_ref, ref_start - 1)
            ceil_qry = min(ceil_qry, qry_start - 1)
        neighbour = (ceil_ref + 1, ceil_qry + 1) in ahead
        return ceil_ref, ceil_qry, neighbour

    def _close_gap(self, path: AlignmentPath, ref: str, qry: str) -> AlignmentPath:
        """
        Carry a forward flank path up to a neighbouring start.

        ref and qry are the flank windows ending right before the neighbour.
        The bases the extension left on both axes are aligned end to end when
        neither side exceeds break_length, so the two alignments meet on one
        diagonal and fuse.
        """
        left_ref = ref[path.ref_consumed:]
        left_qry = qry[path.qry_consumed:]
        if max(len(left_ref), len(left_qry)) > self.config.break_length:
            return path
        return path.then(self.aligner.align_global(left_ref, left_qry))

    def _extend_flank(self, ref: str, qry: str, ref_at_end: bool, qry_at_end: bool) -> AlignmentPath:
        """
        Extend outward over the flank windows ref and qry, both oriented away
        from the anchor.

        With force_to_sequence_ends, a give-up point within break_length of a
        window edge that is a true sequence end is pushed to that end.
        """
        path = self.aligner.extend(ref, qry)
        if not self.config.force_to_sequence_ends:
            return path

        left_ref = len(ref) - path.ref_consumed
        left_qry = len(qry) - path.qry_consumed
        candidates = []
        if ref_at_end:
            candidates.append((left_ref, True))
        if qry_at_end:
            candidates.append((left_qry, False))
        if not candidates:
            return path
        remaining, end_on_ref = min(candidates, key=lambda c: c[0])
        if remaining == 0 or remaining > self.config.break_length:
            return path
        # nothing to pair with on the other axis
        other_left = left_qry if end_on_ref else left_ref
        if other_left == 0:
            return path

        other_window = min(other_left, remaining + self.config.break_length)
        if end_on_ref:
            tail = self.aligner.align_to_end(ref[path.ref_consumed:],
                                             qry[path.qry_consumed:path.qry_consumed + other_window],
                                             end_on_ref=True)
        else:
            tail = self.aligner.align_to_end(ref[path.ref_consumed:path.ref_consumed + other_window],
                                             qry[path.qry_consumed:],
                                             end_on_ref=False)
        if tail is None:
            return path
        return path.then(tail)
