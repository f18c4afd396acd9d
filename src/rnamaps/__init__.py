"""rnamaps: RNA maps of RNA-binding protein crosslink signal.

rnamaps measures where an RNA-binding protein crosslinks around the splice
sites of exons it regulates. Crosslink signal is collected in fixed windows
around the four splice-site boundaries of each cassette-exon event, compared
against quantile-matched non-regulated controls, and summarised as mean
profiles with significant positional bins.

Example:
    >>> import rnamaps
    >>> rnamaps.__version__
    '0.1.0'

Modules:
    core: Events, signal tracks, windows, normalisation, matching, testing
    config: Pipeline settings
    utils: Intervals and logging helpers
"""

__version__ = "0.1.0"

from rnamaps.config import Config
from rnamaps.core import (
    Boundary,
    GenomicEvent,
    RegulatedEvent,
    RegulationCategory,
    RNAMapAssembler,
    Segment,
    SegmentLabel,
    SignalTrack,
)

__all__ = [
    "__version__",
    "Boundary",
    "Config",
    "GenomicEvent",
    "RegulatedEvent",
    "RegulationCategory",
    "RNAMapAssembler",
    "Segment",
    "SegmentLabel",
    "SignalTrack",
]
