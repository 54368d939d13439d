"""
Run configuration for postnuc.

One immutable PostnucConfig is built from the command line and passed to
the extension engine and the output writers.
"""

from dataclasses import dataclass, field


DEFAULT_BREAK_LENGTH = 200
DEFAULT_BANDING = 0


@dataclass(frozen=True)
class ScoringScheme:
    """Nucleotide scores for the banded dynamic programming."""
    match: int = 3
    mismatch: int = -7
    gap_open: int = -4
    gap_extend: int = -3

    def __post_init__(self):
        if self.match <= 0:
            raise ValueError("match score must be positive")
        if self.mismatch >= 0:
            raise ValueError("mismatch score must be negative")
        if self.gap_open > 0 or self.gap_extend >= 0:
            raise ValueError("gap scores must be negative")

    def score(self, a: str, b: str) -> int:
        return self.match if a == b else self.mismatch

    def similar(self, a: str, b: str) -> bool:
        return self.score(a, b) > 0


@dataclass(frozen=True)
class PostnucConfig:
    """
    Policy and tuning values for one run.

    Attributes:
        break_length: Reference columns without score improvement tolerated
            before a flank extension gives up
        banding: Diagonal band half-width for the dynamic programming
            (0 = no diagonal restriction)
        extend_clusters: Extend clusters into alignments (-e turns off)
        emit_delta: Write delta alignments; False writes clusters (-d)
        force_to_sequence_ends: Push alignments to a sequence end lying
            within break_length of the give-up point (-t)
        keep_shadowed_alignments: Keep alignments contained in another (-s)
    """
    break_length: int = DEFAULT_BREAK_LENGTH
    banding: int = DEFAULT_BANDING
    extend_clusters: bool = True
    emit_delta: bool = True
    force_to_sequence_ends: bool = False
    keep_shadowed_alignments: bool = False
    scoring: ScoringScheme = field(default_factory=ScoringScheme)

    def __post_init__(self):
        if self.break_length < 1:
            raise ValueError("break_length must be at least 1")
        if self.banding < 0:
            raise ValueError("banding cannot be negative")

    @classmethod
    def from_args(cls, args) -> 'PostnucConfig':
        """Build the configuration from parsed command-line options."""
        return cls(
            break_length=args.break_length,
            banding=args.banding,
            extend_clusters=not args.no_extend,
            emit_delta=not args.clusters_only,
            force_to_sequence_ends=args.to_seq_ends,
            keep_shadowed_alignments=args.keep_shadows,
        )
