"""
Output writers for the .delta and .cluster files.

Both writers are stateless apart from the open text stream: the two header
lines are written on construction and each call renders the output of one
reference x query pair. Reverse-strand query coordinates are converted from
the reverse complement back to the forward query here.
"""

import logging
from typing import Iterable, List, TextIO

from .sequence_store import FORWARD, Sequence
from .synteny import Alignment, Cluster

logger = logging.getLogger(__name__)

FILE_KIND = 'NUCMER'


def _forward_coordinate(position: int, strand: str, length: int) -> int:
    return position if strand == FORWARD else length - position + 1


class DeltaWriter:
    """Render alignments in the NUCMER delta encoding."""

    def __init__(self, handle: TextIO, reference_path: str, query_path: str):
        self.handle = handle
        self.records_written = 0
        handle.write(f"{reference_path} {query_path}\n{FILE_KIND}\n")

    def write_alignments(self, reference: Sequence, query: Sequence,
                         alignments: List[Alignment]) -> None:
        """Write one pair header followed by its alignments; nothing if empty."""
        if not alignments:
            return
        lines = [f">{reference.id} {query.id} {reference.length} {query.length}"]
        for a in alignments:
            qry_start = _forward_coordinate(a.qry_start, a.strand, query.length)
            qry_end = _forward_coordinate(a.qry_end, a.strand, query.length)
            lines.append(f"{a.ref_start} {a.ref_end} {qry_start} {qry_end} "
                         f"{a.errors} {a.similarity_errors} {a.stops}")
            lines.extend(str(d) for d in a.deltas)
            lines.append("0")
        self.handle.write("\n".join(lines) + "\n")
        self.records_written += len(alignments)


class ClusterWriter:
    """Render remapped clusters, one match per line with the gaps between them."""

    def __init__(self, handle: TextIO, reference_path: str, query_path: str):
        self.handle = handle
        self.records_written = 0
        handle.write(f"{reference_path} {query_path}\n{FILE_KIND}\n")

    def write_clusters(self, reference: Sequence, query: Sequence,
                       clusters: Iterable[Cluster]) -> None:
        """Write one pair header followed by its clusters; nothing if none have matches."""
        clusters = [c for c in clusters if c.matches]
        if not clusters:
            return
        lines = [f">{reference.id} {query.id} {reference.length} {query.length}"]
        for cluster in clusters:
            lines.append(f"{FORWARD:>2} {cluster.strand:>2}")
            previous = None
            for match in cluster.matches:
                qry_start = _forward_coordinate(match.qry_start, cluster.strand, query.length)
                line = f"{match.ref_start:>8} {qry_start:>8} {match.length:>6}"
                if previous is None:
                    line += f" {'-':>6} {'-':>6}"
                else:
                    gap_ref = match.ref_start - previous.ref_end - 1
                    gap_qry = match.qry_start - previous.qry_end - 1
                    line += f" {gap_ref:>6} {gap_qry:>6}"
                lines.append(line)
                previous = match
        self.handle.write("\n".join(lines) + "\n")
        self.records_written += len(clusters)
