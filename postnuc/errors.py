"""
Error types raised while remapping, parsing and grouping the match stream.

Every class except BoundaryError aborts the run. BoundaryError concerns a
single match line; the stream parser logs it and carries on.
"""


class PostnucError(Exception):
    """Base class for postnuc errors."""


class EmptyReferenceError(PostnucError):
    """The reference FASTA file contained no sequences."""


class StreamFormatError(PostnucError):
    """The match stream does not follow the header/cluster/match grammar."""


class QueryOrderError(PostnucError):
    """A query id was not found ahead of the current query file position."""


class OutOfRangeError(PostnucError):
    """A global coordinate lies past the end of the concatenated references."""


class ClusterStraddleError(PostnucError):
    """The matches of one cluster resolved to different reference sequences."""


class DuplicateReferenceError(PostnucError):
    """Two reference sequences share an id but differ in length."""


class BoundaryError(PostnucError):
    """A single match spans the boundary between two sequences."""

    def __init__(self, message: str, sequence_id: str):
        super().__init__(message)
        self.sequence_id = sequence_id
