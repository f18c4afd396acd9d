"""Core RNA-map pipeline.

- events: Cassette-exon events and regulation labels
- track: Strand-separated crosslink signal
- windows: Splice-site windows and signal matrices
- normalize: Per-event min-max normalisation
- matching: Quantile matching of controls
- significance: Sliding-window rank-sum testing with FDR correction
- rnamap: Assembly of RNA maps per boundary and category

Example:
    >>> from rnamaps.core import RNAMapAssembler, match_controls
"""

from rnamaps.core.errors import (
    InsufficientDataError,
    InsufficientPoolError,
    MalformedEventError,
    RNAMapError,
)
from rnamaps.core.events import (
    GenomicEvent,
    RegulatedEvent,
    RegulationCategory,
    Segment,
    SegmentLabel,
)
from rnamaps.core.matching import QuantileMatcher, SamplingPlan, match_controls
from rnamaps.core.normalize import normalize_rows
from rnamaps.core.rnamap import (
    RNAMapAssembler,
    RNAMapRecord,
    records_to_frame,
    significant_bins_frame,
)
from rnamaps.core.significance import (
    BinnedSignificanceTester,
    BinnedTestResult,
    BinTest,
    SignificantBin,
)
from rnamaps.core.track import SignalTrack
from rnamaps.core.windows import (
    BOUNDARY_TABLE,
    Boundary,
    SignalMatrix,
    build_matrix,
    extract_window,
    window_layout,
)

__all__: list[str] = [
    # Errors
    "RNAMapError",
    "MalformedEventError",
    "InsufficientPoolError",
    "InsufficientDataError",
    # Events
    "GenomicEvent",
    "RegulatedEvent",
    "RegulationCategory",
    "Segment",
    "SegmentLabel",
    # Signal
    "SignalTrack",
    "SignalMatrix",
    "Boundary",
    "BOUNDARY_TABLE",
    "build_matrix",
    "extract_window",
    "window_layout",
    "normalize_rows",
    # Matching
    "QuantileMatcher",
    "SamplingPlan",
    "match_controls",
    # Testing
    "BinnedSignificanceTester",
    "BinnedTestResult",
    "BinTest",
    "SignificantBin",
    # Assembly
    "RNAMapAssembler",
    "RNAMapRecord",
    "records_to_frame",
    "significant_bins_frame",
]
