"""Pytest configuration and shared fixtures for rnamaps tests.

Fixtures are organized by category:

- Event fixtures: Synthetic cassette-exon events on both strands
- Track fixtures: Crosslink tracks with predictable values
- Cohort fixtures: Regulated and control events for end-to-end runs
"""

from __future__ import annotations

from typing import Callable

import numpy as np
import pytest

from rnamaps.core.events import (
    GenomicEvent,
    RegulatedEvent,
    RegulationCategory,
    Segment,
    SegmentLabel,
)
from rnamaps.core.track import SignalTrack
from rnamaps.utils.intervals import GenomicInterval

# =============================================================================
# Event Factories
# =============================================================================


def make_event(
    event_id: str = "event1",
    seqid: str = "chr1",
    strand: str = "+",
    start: int = 1000,
    exon_widths: tuple[int, int, int] = (30, 40, 25),
    intron_widths: tuple[int, int] = (500, 500),
) -> GenomicEvent:
    """Build a cassette-exon event in transcript order.

    ``start`` is the lowest genomic coordinate of the event. On the minus
    strand C1 is placed at the high end so the transcript still reads
    C1 -> A -> C2.
    """
    c1, a, c2 = exon_widths
    i1, i2 = intron_widths

    if strand == "+":
        c1_start = start
        a_start = c1_start + c1 + i1
        c2_start = a_start + a + i2
        intervals = [
            GenomicInterval(seqid, c1_start, c1_start + c1, "+"),
            GenomicInterval(seqid, a_start, a_start + a, "+"),
            GenomicInterval(seqid, c2_start, c2_start + c2, "+"),
        ]
    else:
        c2_start = start
        a_start = c2_start + c2 + i2
        c1_start = a_start + a + i1
        intervals = [
            GenomicInterval(seqid, c1_start, c1_start + c1, "-"),
            GenomicInterval(seqid, a_start, a_start + a, "-"),
            GenomicInterval(seqid, c2_start, c2_start + c2, "-"),
        ]

    labels = (SegmentLabel.C1, SegmentLabel.A, SegmentLabel.C2)
    return GenomicEvent(event_id, [Segment(l, i) for l, i in zip(labels, intervals)])


@pytest.fixture
def event_factory() -> Callable[..., GenomicEvent]:
    """Return the cassette-exon event factory."""
    return make_event


@pytest.fixture
def plus_event() -> GenomicEvent:
    """Plus-strand event: exons 30/40/25, introns 500/500.

    C1 = [1000, 1030), A = [1530, 1570), C2 = [2070, 2095).
    """
    return make_event("plus_event", strand="+")


@pytest.fixture
def minus_event() -> GenomicEvent:
    """Minus-strand event: exons 30/40/25, introns 500/500.

    C2 = [1000, 1025), A = [1525, 1565), C1 = [2065, 2095).
    """
    return make_event("minus_event", strand="-")


# =============================================================================
# Track Fixtures
# =============================================================================


@pytest.fixture
def coordinate_track() -> SignalTrack:
    """Track whose value at every position equals the coordinate itself.

    Both strands of chr1 are filled for positions 0..3999.
    """
    track = SignalTrack()
    track.add("chr1", "+", 0, np.arange(4000))
    track.add("chr1", "-", 0, np.arange(4000))
    return track


# =============================================================================
# Cohort Fixtures
# =============================================================================


@pytest.fixture
def cohort() -> tuple[list[RegulatedEvent], SignalTrack]:
    """Regulated and non-regulated events with a planted binding site.

    Enhanced events carry strong crosslinks 11-20 nt upstream of the
    alternative exon (intron side of its 5' end); every event also has a
    single background crosslink inside C1 so no window is empty. Repressed
    and non-regulated events have background signal only.
    """
    records: list[RegulatedEvent] = []
    track = SignalTrack()

    layout = [
        (RegulationCategory.ENHANCED, 12),
        (RegulationCategory.REPRESSED, 12),
        (RegulationCategory.NON_REGULATED, 40),
    ]
    n = 0
    for category, count in layout:
        if category is RegulationCategory.NON_REGULATED:
            psis = np.linspace(0.05, 0.95, count)
        else:
            psis = np.linspace(0.1, 0.9, count)
        for psi in psis:
            strand = "+" if n % 2 == 0 else "-"
            event = make_event(f"{category.value}_{n}", seqid=f"chr{n}", strand=strand)
            a = event.segment(SegmentLabel.A).interval
            c1 = event.segment(SegmentLabel.C1).interval

            track.add(f"chr{n}", strand, c1.start + 5, [1])
            if category is RegulationCategory.ENHANCED:
                upstream = [a.five_prime - 20 * a.direction + k * a.direction for k in range(10)]
                for position in upstream:
                    track.add(f"chr{n}", strand, position, [5])

            records.append(RegulatedEvent(event, category, float(psi)))
            n += 1

    return records, track
