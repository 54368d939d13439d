"""
Pipeline driver: load sequences, parse the match stream, extend and write.

Each query sequence's synteny set is completely extended and written before
the parser reads past it.
"""

import logging
from contextlib import ExitStack, closing
from typing import Dict, Iterable, Optional

from nucutils.parsers import iter_fasta

from .config import PostnucConfig
from .extension import ExtensionEngine
from .output import ClusterWriter, DeltaWriter
from .sequence_store import SequenceStore
from .stream_parser import MatchStreamParser, QueryCursor

logger = logging.getLogger(__name__)


def output_path_for(prefix: str, config: PostnucConfig) -> str:
    return f"{prefix}.delta" if config.emit_delta else f"{prefix}.cluster"


def run_postnuc(reference_path: str,
                query_path: str,
                prefix: str,
                match_lines: Iterable[str],
                config: Optional[PostnucConfig] = None) -> Dict:
    """
    Run the post-clustering stage end to end.

    Parameters:
        reference_path: Reference FASTA used upstream
        query_path: Query FASTA used upstream
        prefix: Output prefix; writes <prefix>.delta, or <prefix>.cluster
            when config.emit_delta is off
        match_lines: Clustered match stream, one line per item
        config: Run configuration (defaults to PostnucConfig())

    Returns:
        Dictionary containing:
            - output_path: File written
            - query_sequences: Number of query sequences with matches
            - records: Alignments (or clusters) written
            - dropped_matches: Match lines dropped at a sequence boundary

    Raises:
        PostnucError: On any fatal input problem
    """
    config = config or PostnucConfig()
    references = SequenceStore.from_fasta(reference_path)
    output_path = output_path_for(prefix, config)
    query_sequences = 0

    with ExitStack() as stack:
        query_records = stack.enter_context(closing(iter_fasta(query_path)))
        handle = stack.enter_context(open(output_path, 'w'))
        parser = MatchStreamParser(references, QueryCursor(query_records))

        if config.emit_delta:
            writer = DeltaWriter(handle, reference_path, query_path)
            engine = ExtensionEngine(config)
        else:
            writer = ClusterWriter(handle, reference_path, query_path)

        for synteny_set in parser.parse(match_lines):
            query_sequences += 1
            logger.info("Query %s: %d synteny regions, %d clusters",
                        synteny_set.query.id, len(synteny_set), synteny_set.cluster_count)
            if config.emit_delta:
                for region, alignments in engine.process(synteny_set):
                    writer.write_alignments(region.reference, synteny_set.query, alignments)
            else:
                for region in synteny_set.regions:
                    writer.write_clusters(region.reference, synteny_set.query, region.clusters)

    logger.info("Wrote %d records for %d query sequences to %s",
                writer.records_written, query_sequences, output_path)
    if parser.dropped_matches:
        logger.warning("%d matches crossed a sequence boundary and were dropped",
                       parser.dropped_matches)

    return {
        'output_path': output_path,
        'query_sequences': query_sequences,
        'records': writer.records_written,
        'dropped_matches': parser.dropped_matches,
    }
