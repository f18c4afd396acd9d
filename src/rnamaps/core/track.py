"""Strand-separated per-base crosslink signal.

iCLIP crosslinks are sparse, so the track keeps only the sites that carry
signal: per (seqid, strand), sorted unique positions with their summed
counts. Queries locate the sites inside a range with a binary search.
Positions without crosslinks read as 0.

Example:
    >>> from rnamaps.core.track import SignalTrack
    >>> track = SignalTrack.from_crosslinks([("chr1", 10, "+", 3), ("chr1", 12, "+", 1)])
    >>> track.values("chr1", "+", 9, 13).tolist()
    [0.0, 3.0, 0.0, 1.0]
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Iterable

import numpy as np

from rnamaps.utils.intervals import STRANDS

logger = logging.getLogger(__name__)

Sites = tuple[np.ndarray, np.ndarray]


class SignalTrack:
    """Per-base, non-negative crosslink counts keyed by seqid and strand.

    Added sites are buffered and merged into sorted arrays on the first
    query of their (seqid, strand). After filling, the track is only read
    and can be shared by any number of window extractions.

    Attributes:
        n_blocks: Number of blocks added so far.
    """

    def __init__(self) -> None:
        self._pending: dict[tuple[str, str], list[Sites]] = defaultdict(list)
        self._sites: dict[tuple[str, str], Sites] = {}
        self._lock = threading.Lock()
        self.n_blocks = 0

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def add(self, seqid: str, strand: str, start: int, values: Iterable[float]) -> None:
        """Add a block of per-base counts starting at ``start``.

        Counts are accumulated onto whatever the track already holds.

        Args:
            seqid: Chromosome/contig identifier.
            strand: Strand of the signal (+ or -).
            start: 0-based position of the first value.
            values: Per-base counts.

        Raises:
            ValueError: If strand is unknown, start is negative, or any count
                is negative or not finite.
        """
        if start < 0:
            raise ValueError(f"Start position must be >= 0, got {start}")
        block = np.asarray(values, dtype=np.float64).ravel()
        self.add_sites(seqid, strand, start + np.arange(block.size), block)

    def add_sites(
        self,
        seqid: str,
        strand: str,
        positions: Iterable[int],
        counts: Iterable[float],
    ) -> None:
        """Add counts at individual positions, in any order.

        Repeated positions are summed.

        Args:
            seqid: Chromosome/contig identifier.
            strand: Strand of the signal (+ or -).
            positions: 0-based positions.
            counts: Count per position.

        Raises:
            ValueError: If strand is unknown, the arrays differ in length, a
                position is negative, or a count is negative or not finite.
        """
        if strand not in STRANDS:
            raise ValueError(f"Strand must be '+' or '-', got {strand!r}")

        pos = np.asarray(positions, dtype=np.int64).ravel()
        cnt = np.asarray(counts, dtype=np.float64).ravel()
        if pos.size != cnt.size:
            raise ValueError(f"Got {pos.size} positions but {cnt.size} counts")
        if np.any(pos < 0):
            raise ValueError(f"Positions on {seqid} must be >= 0")
        if not np.all(np.isfinite(cnt)):
            raise ValueError(f"Signal on {seqid}{strand} contains non-finite values")
        if np.any(cnt < 0):
            raise ValueError(f"Signal on {seqid}{strand} contains negative counts")

        keep = cnt != 0
        with self._lock:
            self._pending[(seqid, strand)].append((pos[keep], cnt[keep]))
            self.n_blocks += 1

    @classmethod
    def from_crosslinks(
        cls,
        crosslinks: Iterable[tuple[str, int, str, float]],
    ) -> SignalTrack:
        """Build a track from single-nucleotide crosslink records.

        Args:
            crosslinks: (seqid, position, strand, count) records, 0-based.

        Returns:
            Populated SignalTrack.
        """
        grouped: dict[tuple[str, str], tuple[list[int], list[float]]] = defaultdict(
            lambda: ([], [])
        )
        n_sites = 0
        for seqid, position, strand, count in crosslinks:
            positions, counts = grouped[(seqid, strand)]
            positions.append(position)
            counts.append(count)
            n_sites += 1

        track = cls()
        for (seqid, strand), (positions, counts) in grouped.items():
            track.add_sites(seqid, strand, positions, counts)
        logger.debug(f"Loaded {n_sites} crosslink sites into {len(grouped)} tracks")
        return track

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _merged(self, key: tuple[str, str]) -> Sites | None:
        with self._lock:
            chunks = self._pending.pop(key, None)
            if chunks:
                if key in self._sites:
                    chunks.append(self._sites[key])
                positions = np.concatenate([c[0] for c in chunks])
                counts = np.concatenate([c[1] for c in chunks])
                unique, inverse = np.unique(positions, return_inverse=True)
                summed = np.bincount(inverse.ravel(), weights=counts, minlength=unique.size)
                self._sites[key] = (unique, summed.astype(np.float64))
            return self._sites.get(key)

    def values(self, seqid: str, strand: str, start: int, end: int) -> np.ndarray:
        """Get counts for genomic positions ``[start, end)``.

        Positions without crosslinks, including negative ones, read as 0.

        Returns:
            Float array of length ``end - start`` in genomic order.
        """
        if end < start:
            raise ValueError(f"End must be >= start: {start}-{end}")

        out = np.zeros(end - start, dtype=np.float64)
        sites = self._merged((seqid, strand))
        if sites is None:
            return out

        positions, counts = sites
        lo = np.searchsorted(positions, start, side="left")
        hi = np.searchsorted(positions, end, side="left")
        out[positions[lo:hi] - start] = counts[lo:hi]
        return out

    def n_sites(self, seqid: str, strand: str) -> int:
        """Number of distinct positions carrying signal."""
        sites = self._merged((seqid, strand))
        return 0 if sites is None else int(sites[0].size)

    def keys(self) -> list[tuple[str, str]]:
        """(seqid, strand) pairs holding signal."""
        with self._lock:
            return sorted(set(self._pending) | set(self._sites))

    def total(self) -> float:
        """Total crosslink count across the track."""
        return float(sum(self._merged(key)[1].sum() for key in self.keys()))
