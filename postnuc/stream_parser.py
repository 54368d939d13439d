"""
Stream Parser Module

Reads the clustered match stream produced upstream (mgaps output):

    >queryId [Reverse]
    #
    refCoord  queryCoord  length  [gapRef  gapQry]
    ...

Reference coordinates are in the concatenated reference space and are
remapped to (sequence, local offset) through the SequenceStore. Clusters
are grouped per reference sequence into synteny regions; all regions of
one query id form a SyntenySet, which is yielded before the parser moves on
to the next query id.

Typical usage:
    parser = MatchStreamParser(references, QueryCursor(iter_fasta(query_path)))
    for synteny_set in parser.parse(sys.stdin):
        ...
"""

import logging
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Tuple

from nucutils.parsers import FastaRecord

from .errors import BoundaryError, ClusterStraddleError, QueryOrderError, StreamFormatError
from .sequence_store import FORWARD, REVERSE, Sequence, SequenceStore
from .synteny import Cluster, Match, SyntenyRegion, SyntenySet

logger = logging.getLogger(__name__)

REVERSE_TAG = ' Reverse'


class ParserState(Enum):
    """Position of the parser in the header/cluster/match grammar"""
    AWAIT_HEADER = 1   # nothing read yet
    IN_CLUSTER = 2     # a cluster is open but holds no match line yet
    IN_MATCH_RUN = 3   # reading match lines of the open cluster


class QueryCursor:
    """
    Forward-only cursor over the query FASTA records.

    The match stream lists query ids in query file order, so a requested id
    is searched only at or after the current record.
    """

    def __init__(self, records: Iterable[FastaRecord]):
        self._records = iter(records)
        self.current: Optional[Sequence] = None

    def advance_to(self, query_id: str) -> Sequence:
        """
        Return the query sequence with this id, reading forward as needed.

        Raises:
            QueryOrderError: If the id is not found before the end of the file
        """
        if self.current is not None and self.current.id == query_id:
            return self.current
        for record in self._records:
            self.current = Sequence.from_record(record)
            if self.current.id == query_id:
                return self.current
        raise QueryOrderError(
            f"Query file did not contain '{query_id}'; it is missing or not in the "
            f"same order as the match stream"
        )


class _OpenCluster:
    """The single cluster being filled by the parser."""

    def __init__(self, strand: str):
        self.strand = strand
        self.matches: List[Match] = []
        self.region: Optional[SyntenyRegion] = None


class MatchStreamParser:
    """
    Parse the match stream into one SyntenySet per query sequence.

    Attributes:
        references (SequenceStore): Reference sequences for remapping
        queries (QueryCursor): Source of query sequences
        state (ParserState): Current grammar state
    """

    def __init__(self, references: SequenceStore, queries: QueryCursor):
        self.references = references
        self.queries = queries
        self.state = ParserState.AWAIT_HEADER
        self.dropped_matches = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse(self, lines: Iterable[str]) -> Iterator[SyntenySet]:
        """
        Consume the stream lazily and yield a SyntenySet per query id.

        A set is yielded once, when a header names a different query id or
        the stream ends, and before the query cursor moves on.

        Raises:
            StreamFormatError: On malformed input
            QueryOrderError, OutOfRangeError, ClusterStraddleError,
            DuplicateReferenceError: On inconsistent input
        """
        self.state = ParserState.AWAIT_HEADER
        current: Optional[SyntenySet] = None
        cluster: Optional[_OpenCluster] = None

        for line_number, raw in enumerate(lines, start=1):
            line = raw.rstrip('\r\n')
            if not line.strip():
                continue

            if line.startswith('>'):
                self._close(cluster, current)
                query_id, strand = self._parse_header(line, line_number)
                if current is not None and query_id != current.query.id:
                    if len(current):
                        yield current
                    current = None
                if current is None:
                    current = SyntenySet(self.queries.advance_to(query_id))
                cluster = _OpenCluster(strand)
                self.state = ParserState.IN_CLUSTER
                continue

            if self.state is ParserState.AWAIT_HEADER:
                raise StreamFormatError("Match stream must start with a '>' header line")

            if line.startswith('#'):
                self._close(cluster, current)
                cluster = _OpenCluster(cluster.strand)
                self.state = ParserState.IN_CLUSTER
                continue

            self._add_match(cluster, current, line, line_number)
            self.state = ParserState.IN_MATCH_RUN

        self._close(cluster, current)
        if current is not None and len(current):
            yield current

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _parse_header(self, line: str, line_number: int) -> Tuple[str, str]:
        fields = line[1:].split()
        if not fields:
            raise StreamFormatError(f"line {line_number}: header line has no query id")
        strand = REVERSE if REVERSE_TAG in line else FORWARD
        return fields[0], strand

    def _add_match(self, cluster: _OpenCluster, synteny_set: SyntenySet,
                   line: str, line_number: int) -> None:
        fields = line.split()
        try:
            global_start, qry_start, length = (int(v) for v in fields[:3])
        except ValueError:
            raise StreamFormatError(f"line {line_number}: expected three integers, got '{line.strip()}'")

        try:
            ref_index, ref_start = self.references.remap(global_start, length)
            self._check_query_span(synteny_set.query, qry_start, length, cluster.strand)
        except BoundaryError as e:
            self.dropped_matches += 1
            logger.warning("%s; dropping this match and continuing (line %d)", e, line_number)
            return

        reference = self.references[ref_index]
        if cluster.region is None:
            cluster.region = synteny_set.region_for(ref_index, reference)
        elif cluster.region.reference.id != reference.id:
            raise ClusterStraddleError(
                f"line {line_number}: a cluster straddles reference sequences "
                f"'{cluster.region.reference.id}' and '{reference.id}'"
            )

        if length > 1:
            cluster.matches.append(Match(ref_start, qry_start, length))

    @staticmethod
    def _check_query_span(query: Sequence, qry_start: int, length: int, strand: str) -> None:
        if qry_start < 1 or qry_start + length - 1 > query.length:
            raise BoundaryError(
                f"Match at query position {qry_start} (length {length}, strand {strand}) "
                f"extends beyond query sequence '{query.id}'",
                query.id,
            )

    @staticmethod
    def _close(cluster: Optional[_OpenCluster], synteny_set: Optional[SyntenySet]) -> None:
        if cluster is None or synteny_set is None:
            return
        if cluster.matches:
            cluster.region.clusters.append(Cluster(cluster.strand, cluster.matches))
