#!/usr/bin/env python3
"""
Command-line entry point.

Usage:
    postnuc [options] <reference> <query> <prefix> < <input>

Input is the clustered match stream (mgaps output) on stdin; <reference>
and <query> are the FASTA files the matches were computed on. Writes
<prefix>.delta, or <prefix>.cluster with -d.
"""

import argparse
import logging
import sys
from typing import List, Optional

from nucutils.parsers import FastaFormatError

from .config import DEFAULT_BANDING, DEFAULT_BREAK_LENGTH, PostnucConfig
from .errors import PostnucError
from .pipeline import run_postnuc

logger = logging.getLogger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    """Usage errors exit with status 1 like every other fatal error."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value}")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="postnuc",
        description=(
            "Remap clustered matches to their reference sequences, extend the "
            "clusters into gapped alignments, fuse and filter them, and write "
            "<prefix>.delta. Reads the mgaps match stream from stdin."
        ),
    )
    parser.add_argument("reference", help="Reference FASTA file")
    parser.add_argument("query", help="Query FASTA file")
    parser.add_argument("prefix", help="Prefix of the output file")
    parser.add_argument(
        "-b", dest="break_length", type=_positive_int, default=DEFAULT_BREAK_LENGTH,
        help=f"alignment break (give-up) length (default: {DEFAULT_BREAK_LENGTH})",
    )
    parser.add_argument(
        "-B", dest="banding", type=_non_negative_int, default=DEFAULT_BANDING,
        help=f"diagonal banding for extension, 0 = unbanded (default: {DEFAULT_BANDING})",
    )
    parser.add_argument(
        "-d", dest="clusters_only", action="store_true",
        help="output only match clusters rather than extended alignments",
    )
    parser.add_argument(
        "-e", dest="no_extend", action="store_true",
        help="do not extend alignments outward from clusters",
    )
    parser.add_argument(
        "-s", dest="keep_shadows", action="store_true",
        help="don't remove shadowed alignments, useful for aligning a sequence to itself",
    )
    parser.add_argument(
        "-t", dest="to_seq_ends", action="store_true",
        help="force alignment to ends of sequence if within -b distance",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="log debug messages",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    config = PostnucConfig.from_args(args)
    try:
        run_postnuc(args.reference, args.query, args.prefix, sys.stdin, config)
    except (PostnucError, FastaFormatError) as e:
        logger.error("%s", e)
        return 1
    except OSError as e:
        if e.filename is None:
            logger.error("%s", e)
        else:
            logger.error("Could not open %s: %s", e.filename, e.strerror)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
