"""Stranded genomic intervals.

Intervals use 0-based half-open coordinates. The helpers here translate
between genomic coordinates and transcript orientation, which is what the
splice-site window code works in.

Example:
    >>> from rnamaps.utils.intervals import GenomicInterval
    >>> exon = GenomicInterval("chr1", 1000, 1100, "-")
    >>> exon.five_prime
    1099
    >>> exon.three_prime
    1000
"""

from __future__ import annotations

from typing import NamedTuple

STRANDS = ("+", "-")


class GenomicInterval(NamedTuple):
    """A genomic interval with chromosome and strand.

    Attributes:
        seqid: Chromosome/contig identifier.
        start: Start position (0-based, inclusive).
        end: End position (0-based, exclusive).
        strand: Strand (+ or -).
    """

    seqid: str
    start: int
    end: int
    strand: str = "+"

    def __str__(self) -> str:
        """Return string representation in 1-based inclusive format."""
        return f"{self.seqid}:{self.start + 1}-{self.end}({self.strand})"

    @property
    def length(self) -> int:
        """Get interval length."""
        return self.end - self.start

    @property
    def direction(self) -> int:
        """Genomic step taken when moving 5' to 3' along the transcript."""
        return 1 if self.strand == "+" else -1

    @property
    def five_prime(self) -> int:
        """Coordinate of the first transcribed base."""
        return self.start if self.strand == "+" else self.end - 1

    @property
    def three_prime(self) -> int:
        """Coordinate of the last transcribed base."""
        return self.end - 1 if self.strand == "+" else self.start

    def same_molecule(self, other: GenomicInterval) -> bool:
        """Check whether two intervals share seqid and strand."""
        return self.seqid == other.seqid and self.strand == other.strand

    def overlaps(self, other: GenomicInterval) -> bool:
        """Check if this interval overlaps another on the same strand."""
        if not self.same_molecule(other):
            return False
        return self.start < other.end and other.start < self.end


def validate_interval(interval: GenomicInterval) -> None:
    """Validate interval coordinates and strand.

    Raises:
        ValueError: If the strand is unknown or the coordinates are invalid.
    """
    if interval.strand not in STRANDS:
        raise ValueError(f"Strand must be '+' or '-', got {interval.strand!r}")
    if interval.start < 0:
        raise ValueError(f"Start position must be >= 0, got {interval.start}")
    if interval.end < interval.start:
        raise ValueError(f"End must be >= start: {interval.start}-{interval.end}")


def gap_between(upstream: GenomicInterval, downstream: GenomicInterval) -> int:
    """Signed number of bases separating two intervals in transcript order.

    Negative values mean the intervals overlap.

    Args:
        upstream: Interval closer to the transcript 5' end.
        downstream: Interval closer to the transcript 3' end.

    Returns:
        Number of bases strictly between the two intervals.
    """
    if upstream.strand == "+":
        return downstream.start - upstream.end
    return upstream.start - downstream.end


def transcript_order(upstream: GenomicInterval, downstream: GenomicInterval) -> bool:
    """Check that ``downstream`` starts 3' of ``upstream`` on the transcript."""
    offset = (downstream.five_prime - upstream.five_prime) * upstream.direction
    return offset > 0
