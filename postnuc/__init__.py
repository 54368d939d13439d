# postnuc: remap, extend and fuse clustered nucleotide matches

from .config import (
    PostnucConfig,
    ScoringScheme,
)
from .errors import (
    PostnucError,
    EmptyReferenceError,
    StreamFormatError,
    QueryOrderError,
    OutOfRangeError,
    ClusterStraddleError,
    DuplicateReferenceError,
    BoundaryError,
)
from .sequence_store import (
    FORWARD,
    REVERSE,
    Sequence,
    SequenceStore,
)
from .synteny import (
    Match,
    Cluster,
    SyntenyRegion,
    SyntenySet,
    Alignment,
    AlignmentState,
)
from .banded_alignment import (
    AlignmentPath,
    BandedAligner,
)
from .stream_parser import (
    MatchStreamParser,
    ParserState,
    QueryCursor,
)
from .extension import ExtensionEngine
from .output import (
    DeltaWriter,
    ClusterWriter,
)
from .pipeline import run_postnuc
