"""Positional signal windows around splice-site boundaries.

Every cassette-exon event contributes one window per boundary. A window is a
fixed-length masked array anchored on the terminal nucleotide of one exon:

    5' end of an exon (acceptor side):  [ intron 300 | anchor | exon 50 ]
    3' end of an exon (donor side):     [ exon 50 | anchor | intron 300 ]

Exons shorter than 50 nt and introns shorter than 300 nt leave masked
padding on the short side, so every window is 351 positions wide and the
anchor always sits at the same column. Values are in transcript
orientation: minus-strand signal is read and reversed.

The exonic reach is ``min(50, exon width)`` bases counted beyond the anchor,
and the anchor is itself an exon base. An exon shorter than 50 nt is
therefore read one base past its far end: for C1 = [1000, 1030) on the plus
strand the upstream 3' window starts at coordinate 999.

Example:
    >>> from rnamaps.core.windows import Boundary, extract_window
    >>> window = extract_window(event, Boundary.ALTERNATIVE_5P, track)
    >>> window.shape
    (351,)
    >>> int(window.count())  # non-missing positions
    351
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable

import attrs
import numpy as np

from rnamaps.core.events import GenomicEvent, RegulatedEvent, RegulationCategory, SegmentLabel
from rnamaps.core.track import SignalTrack

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_EXON_REACH = 50
DEFAULT_INTRON_REACH = 300

# =============================================================================
# Boundaries
# =============================================================================


class ExonEnd(Enum):
    """Which end of an exon a boundary sits on."""

    FIVE_PRIME = "5p"
    THREE_PRIME = "3p"


class Boundary(Enum):
    """The four splice-site boundaries of a cassette-exon event."""

    UPSTREAM_3P = "upstream_3p"  # C1 3' end, donor of the upstream intron
    ALTERNATIVE_5P = "alternative_5p"  # A 5' end, acceptor of the upstream intron
    ALTERNATIVE_3P = "alternative_3p"  # A 3' end, donor of the downstream intron
    DOWNSTREAM_5P = "downstream_5p"  # C2 5' end, acceptor of the downstream intron


@attrs.frozen
class BoundarySpec:
    """How to read a boundary from an event.

    Attributes:
        exon: Segment whose end is examined.
        intron: (upstream, downstream) segments enclosing the intron.
        end: Exon end the boundary sits on.
    """

    exon: SegmentLabel
    intron: tuple[SegmentLabel, SegmentLabel]
    end: ExonEnd


BOUNDARY_TABLE: dict[Boundary, BoundarySpec] = {
    Boundary.UPSTREAM_3P: BoundarySpec(
        SegmentLabel.C1, (SegmentLabel.C1, SegmentLabel.A), ExonEnd.THREE_PRIME
    ),
    Boundary.ALTERNATIVE_5P: BoundarySpec(
        SegmentLabel.A, (SegmentLabel.C1, SegmentLabel.A), ExonEnd.FIVE_PRIME
    ),
    Boundary.ALTERNATIVE_3P: BoundarySpec(
        SegmentLabel.A, (SegmentLabel.A, SegmentLabel.C2), ExonEnd.THREE_PRIME
    ),
    Boundary.DOWNSTREAM_5P: BoundarySpec(
        SegmentLabel.C2, (SegmentLabel.A, SegmentLabel.C2), ExonEnd.FIVE_PRIME
    ),
}


@attrs.frozen
class WindowLayout:
    """Column layout of a boundary window.

    Attributes:
        boundary: Boundary the layout belongs to.
        exon_reach: Maximum exonic bases beyond the anchor.
        intron_reach: Maximum intronic bases beyond the anchor.
    """

    boundary: Boundary
    exon_reach: int = DEFAULT_EXON_REACH
    intron_reach: int = DEFAULT_INTRON_REACH

    @property
    def width(self) -> int:
        """Total number of columns."""
        return self.exon_reach + self.intron_reach + 1

    @property
    def intron_first(self) -> bool:
        """Whether intronic columns precede exonic ones."""
        return BOUNDARY_TABLE[self.boundary].end is ExonEnd.FIVE_PRIME

    @property
    def anchor_position(self) -> int:
        """1-based column of the anchor nucleotide."""
        leading = self.intron_reach if self.intron_first else self.exon_reach
        return leading + 1

    def positions(self) -> np.ndarray:
        """1-based column positions."""
        return np.arange(1, self.width + 1)

    def padding(self, exon_n: int, intron_n: int) -> tuple[int, int]:
        """(left, right) masked columns for the given reaches."""
        exon_pad = self.exon_reach - exon_n
        intron_pad = self.intron_reach - intron_n
        if self.intron_first:
            return intron_pad, exon_pad
        return exon_pad, intron_pad


def window_layout(
    boundary: Boundary,
    exon_reach: int = DEFAULT_EXON_REACH,
    intron_reach: int = DEFAULT_INTRON_REACH,
) -> WindowLayout:
    """Get the column layout of a boundary window."""
    return WindowLayout(Boundary(boundary), exon_reach, intron_reach)


# =============================================================================
# Extraction
# =============================================================================


def boundary_reach(
    event: GenomicEvent,
    boundary: Boundary,
    exon_reach: int = DEFAULT_EXON_REACH,
    intron_reach: int = DEFAULT_INTRON_REACH,
) -> tuple[int, int]:
    """Exonic and intronic bases available around a boundary.

    Returns:
        (exon_n, intron_n), each capped at the requested reach.

    Raises:
        MalformedEventError: If the boundary's segments are missing or
            inconsistent.
    """
    entry = BOUNDARY_TABLE[Boundary(boundary)]
    exon = event.segment(entry.exon)
    intron_width = event.intron_between(*entry.intron)
    return min(exon_reach, exon.width), min(intron_reach, intron_width)


def extract_window(
    event: GenomicEvent,
    boundary: Boundary,
    track: SignalTrack,
    exon_reach: int = DEFAULT_EXON_REACH,
    intron_reach: int = DEFAULT_INTRON_REACH,
) -> np.ma.MaskedArray:
    """Extract the positional signal window of one event at one boundary.

    Args:
        event: Annotated cassette-exon event.
        boundary: Boundary to anchor on.
        track: Strand-separated crosslink signal.
        exon_reach: Maximum exonic bases beyond the anchor.
        intron_reach: Maximum intronic bases beyond the anchor.

    Returns:
        Masked array of length ``exon_reach + intron_reach + 1``; masked
        cells mark positions the event cannot reach.

    Raises:
        MalformedEventError: If the boundary's segments are missing or
            inconsistent.
        ValueError: If a reach is negative.
    """
    if exon_reach < 0 or intron_reach < 0:
        raise ValueError(f"Reaches must be >= 0, got exon={exon_reach}, intron={intron_reach}")

    boundary = Boundary(boundary)
    entry = BOUNDARY_TABLE[boundary]
    layout = WindowLayout(boundary, exon_reach, intron_reach)
    exon_n, intron_n = boundary_reach(event, boundary, exon_reach, intron_reach)
    exon = event.segment(entry.exon).interval

    # Offsets from the anchor in transcript orientation
    if entry.end is ExonEnd.FIVE_PRIME:
        anchor = exon.five_prime
        first, last = -intron_n, exon_n
    else:
        anchor = exon.three_prime
        first, last = -exon_n, intron_n

    if exon.direction > 0:
        signal = track.values(exon.seqid, exon.strand, anchor + first, anchor + last + 1)
    else:
        signal = track.values(exon.seqid, exon.strand, anchor - last, anchor - first + 1)[::-1]

    left, _ = layout.padding(exon_n, intron_n)
    data = np.zeros(layout.width, dtype=np.float64)
    mask = np.ones(layout.width, dtype=bool)
    data[left : left + signal.size] = signal
    mask[left : left + signal.size] = False
    return np.ma.MaskedArray(data, mask=mask)


# =============================================================================
# Signal Matrix
# =============================================================================


def _to_masked(values: np.ndarray) -> np.ma.MaskedArray:
    masked = np.ma.masked_invalid(np.ma.asarray(values, dtype=np.float64))
    if masked.ndim != 2:
        raise ValueError(f"Signal matrix must be 2-dimensional, got shape {masked.shape}")
    # Materialise the mask so row slicing always works on a full boolean array
    return np.ma.MaskedArray(masked.data, mask=np.ma.getmaskarray(masked))


@attrs.frozen(eq=False)
class SignalMatrix:
    """Boundary windows of many events stacked row-wise.

    Attributes:
        values: Masked (n_events, width) array.
        event_ids: Row labels, in input order.
        categories: Regulation category per row (None when unknown).
    """

    values: np.ma.MaskedArray = attrs.field(converter=_to_masked)
    event_ids: tuple[str, ...] = attrs.field(converter=tuple)
    categories: tuple[RegulationCategory | None, ...] = attrs.field(converter=tuple)

    def __attrs_post_init__(self) -> None:
        n = self.values.shape[0]
        if len(self.event_ids) != n or len(self.categories) != n:
            raise ValueError(
                f"Matrix has {n} rows but {len(self.event_ids)} event ids "
                f"and {len(self.categories)} categories"
            )

    @property
    def n_events(self) -> int:
        """Number of rows."""
        return self.values.shape[0]

    @property
    def width(self) -> int:
        """Number of positional columns."""
        return self.values.shape[1]

    def with_values(self, values: np.ma.MaskedArray) -> SignalMatrix:
        """Copy of this matrix with new values and the same row labels."""
        return SignalMatrix(values, self.event_ids, self.categories)

    def select(self, category: RegulationCategory) -> SignalMatrix:
        """Rows of one regulation category."""
        rows = [i for i, c in enumerate(self.categories) if c is category]
        return SignalMatrix(
            self.values[rows],
            [self.event_ids[i] for i in rows],
            [self.categories[i] for i in rows],
        )

    def column_means(self) -> np.ma.MaskedArray:
        """Mean per column over non-missing rows; masked where none remain."""
        if self.n_events == 0:
            return np.ma.masked_all(self.width, dtype=np.float64)
        return np.ma.MaskedArray(
            self.values.mean(axis=0).filled(0.0),
            mask=np.ma.getmaskarray(self.values).all(axis=0),
        )


def build_matrix(
    events: Iterable[GenomicEvent | RegulatedEvent],
    boundary: Boundary,
    track: SignalTrack,
    exon_reach: int = DEFAULT_EXON_REACH,
    intron_reach: int = DEFAULT_INTRON_REACH,
) -> SignalMatrix:
    """Extract one boundary window per event and stack them.

    Args:
        events: Events, optionally wrapped with their regulation category.
        boundary: Boundary to anchor on.
        track: Strand-separated crosslink signal.
        exon_reach: Maximum exonic bases beyond the anchor.
        intron_reach: Maximum intronic bases beyond the anchor.

    Returns:
        SignalMatrix with rows in input order.

    Raises:
        MalformedEventError: On the first event whose annotation does not
            fit the boundary.
    """
    rows: list[np.ma.MaskedArray] = []
    ids: list[str] = []
    categories: list[RegulationCategory | None] = []

    for item in events:
        if isinstance(item, RegulatedEvent):
            event, category = item.event, item.category
        else:
            event, category = item, None
        rows.append(extract_window(event, boundary, track, exon_reach, intron_reach))
        ids.append(event.event_id)
        categories.append(category)

    width = exon_reach + intron_reach + 1
    if rows:
        values = np.ma.vstack(rows)
    else:
        values = np.ma.MaskedArray(np.zeros((0, width)), mask=np.zeros((0, width), dtype=bool))

    logger.debug(f"Built {Boundary(boundary).value} matrix for {len(rows)} events")
    return SignalMatrix(values, ids, categories)
