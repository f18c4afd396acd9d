"""Cassette-exon events and their regulation labels.

A cassette-exon event is three exonic segments in transcript order: the
upstream constant exon (C1), the alternative exon (A) and the downstream
constant exon (C2). Events are built once from upstream annotation and are
read-only afterwards.

Example:
    >>> from rnamaps.core.events import GenomicEvent, Segment, SegmentLabel
    >>> from rnamaps.utils.intervals import GenomicInterval
    >>> event = GenomicEvent(
    ...     "HNRNPH1_SE_1",
    ...     [
    ...         Segment(SegmentLabel.C1, GenomicInterval("chr1", 100, 200)),
    ...         Segment(SegmentLabel.A, GenomicInterval("chr1", 700, 760)),
    ...         Segment(SegmentLabel.C2, GenomicInterval("chr1", 1300, 1400)),
    ...     ],
    ... )
    >>> event.intron_between(SegmentLabel.C1, SegmentLabel.A)
    500
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

import attrs

from rnamaps.core.errors import MalformedEventError
from rnamaps.utils.intervals import (
    GenomicInterval,
    gap_between,
    transcript_order,
    validate_interval,
)

# =============================================================================
# Enums
# =============================================================================


class SegmentLabel(Enum):
    """Exonic segments of a cassette-exon event."""

    C1 = "C1"  # upstream constant exon
    A = "A"  # alternative exon
    C2 = "C2"  # downstream constant exon


class RegulationCategory(Enum):
    """Regulation of an event upon RBP knockdown."""

    ENHANCED = "enhanced"
    REPRESSED = "repressed"
    NON_REGULATED = "non-regulated"

    @classmethod
    def regulated(cls) -> tuple[RegulationCategory, ...]:
        """Categories that are compared against matched controls."""
        return (cls.ENHANCED, cls.REPRESSED)


# =============================================================================
# Data Structures
# =============================================================================


def _to_label(value: SegmentLabel | str) -> SegmentLabel:
    return value if isinstance(value, SegmentLabel) else SegmentLabel(value)


def _to_category(value: RegulationCategory | str) -> RegulationCategory:
    return value if isinstance(value, RegulationCategory) else RegulationCategory(value)


def _to_interval(value: GenomicInterval | tuple) -> GenomicInterval:
    interval = value if isinstance(value, GenomicInterval) else GenomicInterval(*value)
    validate_interval(interval)
    return interval


@attrs.frozen
class Segment:
    """One labelled exonic segment.

    Attributes:
        label: Position of the segment within the event.
        interval: Genomic interval of the segment.
    """

    label: SegmentLabel = attrs.field(converter=_to_label)
    interval: GenomicInterval = attrs.field(converter=_to_interval)

    @property
    def width(self) -> int:
        """Segment width in base pairs."""
        return self.interval.length


@attrs.frozen
class GenomicEvent:
    """An alternative-splicing event made of labelled exonic segments.

    Attributes:
        event_id: Event identifier.
        segments: Labelled segments, normally one each of C1, A and C2.
    """

    event_id: str
    segments: tuple[Segment, ...] = attrs.field(converter=tuple)

    def segment(self, label: SegmentLabel | str) -> Segment:
        """Get the unique segment carrying ``label``.

        Raises:
            MalformedEventError: If the label is missing or duplicated.
        """
        label = _to_label(label)
        matches = [s for s in self.segments if s.label is label]
        if not matches:
            raise MalformedEventError(self.event_id, f"no {label.value} segment")
        if len(matches) > 1:
            raise MalformedEventError(
                self.event_id, f"{len(matches)} segments labelled {label.value}"
            )
        return matches[0]

    def intron_between(
        self,
        upstream: SegmentLabel | str,
        downstream: SegmentLabel | str,
    ) -> int:
        """Width of the intron separating two segments, clipped at 0.

        Args:
            upstream: Label of the segment nearer the transcript 5' end.
            downstream: Label of the segment nearer the transcript 3' end.

        Returns:
            Intron width in base pairs; 0 if the segments touch or overlap.

        Raises:
            MalformedEventError: If either segment is missing, the two lie on
                different chromosomes or strands, or they are out of
                transcript order.
        """
        up = self.segment(upstream).interval
        down = self.segment(downstream).interval
        if not up.same_molecule(down):
            raise MalformedEventError(
                self.event_id,
                f"segments {up} and {down} are not on the same chromosome and strand",
            )
        if not transcript_order(up, down):
            raise MalformedEventError(
                self.event_id, f"segment {down} does not follow {up} on the transcript"
            )
        return max(0, gap_between(up, down))


def _check_psi(instance: RegulatedEvent, attribute: attrs.Attribute, value: float | None) -> None:
    if value is not None and not 0.0 <= value <= 1.0:
        raise ValueError(f"{attribute.name} must be within [0, 1], got {value}")


@attrs.frozen
class RegulatedEvent:
    """An event together with its regulation label and baseline inclusion.

    Attributes:
        event: The annotated event.
        category: Regulation category assigned upstream.
        control_psi: Inclusion level in control samples, used for matching.
    """

    event: GenomicEvent
    category: RegulationCategory = attrs.field(converter=_to_category)
    control_psi: float | None = attrs.field(default=None, validator=_check_psi)

    @property
    def event_id(self) -> str:
        """Identifier of the wrapped event."""
        return self.event.event_id


def events_in_category(
    records: Iterable[RegulatedEvent],
    category: RegulationCategory | str,
) -> list[RegulatedEvent]:
    """Select records of one category, preserving input order."""
    category = _to_category(category)
    return [r for r in records if r.category is category]
