# Utility functions for postnuc

from .parsers import (
    # Data classes
    FastaRecord,
    DeltaRecord,
    # Errors
    FastaFormatError,
    DeltaFormatError,
    # FASTA parsers
    iter_fasta,
    parse_fasta,
    reverse_complement,
    # Delta parsers
    iter_delta,
    parse_delta,
    # DataFrame conversion
    delta_records_to_dataframe,
)
