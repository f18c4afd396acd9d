"""RNA-map assembly per splice-site boundary and regulation category.

For each of the four boundaries and each regulated category, the treatment
events and their matched controls are turned into signal matrices,
normalised per event and compared bin by bin. Each combination yields one
RNAMapRecord holding mean signal profiles and significant bins, ready for a
plotting collaborator.

Combinations share nothing but the read-only track and events, so they can
run on worker threads; results are identical to a sequential run and come
back in the same order.

Example:
    >>> from rnamaps.core.matching import match_controls
    >>> from rnamaps.core.rnamap import RNAMapAssembler, records_to_frame
    >>> controls = match_controls(records, seed=42)
    >>> assembler = RNAMapAssembler(track)
    >>> maps = assembler.assemble(records, controls)
    >>> df = records_to_frame(maps)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Mapping, Sequence

import attrs
import numpy as np
import pandas as pd

from rnamaps.config import Config
from rnamaps.core.events import GenomicEvent, RegulatedEvent, RegulationCategory, events_in_category
from rnamaps.core.matching import match_controls
from rnamaps.core.normalize import normalize_rows
from rnamaps.core.significance import BinnedSignificanceTester, BinTest, SignificantBin
from rnamaps.core.track import SignalTrack
from rnamaps.core.windows import Boundary, SignalMatrix, build_matrix, window_layout
from rnamaps.utils.logging import ProgressLogger, Timer

logger = logging.getLogger(__name__)

# =============================================================================
# Data Structures
# =============================================================================


@attrs.frozen(eq=False)
class RNAMapRecord:
    """RNA map of one regulated category at one boundary.

    Attributes:
        boundary: Splice-site boundary.
        category: Regulated category compared to its matched controls.
        positions: 1-based window positions.
        mean_treatment: Column means of the normalised treatment matrix.
        mean_control: Column means of the normalised control matrix.
        significant_bins: Bins with adjusted p-value at or below alpha.
        bin_tests: Every evaluated bin, including undefined ones.
        n_treatment: Number of treatment events.
        n_control: Number of matched-control events.
    """

    boundary: Boundary
    category: RegulationCategory
    positions: np.ndarray
    mean_treatment: np.ma.MaskedArray
    mean_control: np.ma.MaskedArray
    significant_bins: tuple[SignificantBin, ...]
    bin_tests: tuple[BinTest, ...]
    n_treatment: int
    n_control: int

    def significant_mask(self) -> np.ndarray:
        """Boolean per position: inside at least one significant bin."""
        mask = np.zeros(self.positions.size, dtype=bool)
        for b in self.significant_bins:
            mask[b.start - 1 : b.end - 1] = True
        return mask

    def to_frame(self) -> pd.DataFrame:
        """Long-form profile table, one row per position.

        Missing means are NaN.
        """
        return pd.DataFrame(
            {
                "boundary": self.boundary.value,
                "category": self.category.value,
                "position": self.positions,
                "mean_treatment": self.mean_treatment.filled(np.nan),
                "mean_control": self.mean_control.filled(np.nan),
                "significant": self.significant_mask(),
            }
        )


def records_to_frame(records: Iterable[RNAMapRecord]) -> pd.DataFrame:
    """Concatenate the profile tables of many records."""
    frames = [r.to_frame() for r in records]
    if not frames:
        return pd.DataFrame(
            columns=["boundary", "category", "position", "mean_treatment", "mean_control", "significant"]
        )
    return pd.concat(frames, ignore_index=True)


def significant_bins_frame(records: Iterable[RNAMapRecord]) -> pd.DataFrame:
    """Table of significant bins across records."""
    rows = [
        {
            "boundary": r.boundary.value,
            "category": r.category.value,
            "start": b.start,
            "end": b.end,
            "adjusted_pvalue": b.adjusted_pvalue,
        }
        for r in records
        for b in r.significant_bins
    ]
    return pd.DataFrame(rows, columns=["boundary", "category", "start", "end", "adjusted_pvalue"])


# =============================================================================
# Assembler
# =============================================================================


class RNAMapAssembler:
    """Build RNA maps for every boundary and regulated category.

    Attributes:
        track: Crosslink signal shared by all extractions.
        config: Window and significance settings.
        n_workers: Worker threads for independent combinations.
    """

    def __init__(
        self,
        track: SignalTrack,
        config: Config | None = None,
        n_workers: int = 1,
    ) -> None:
        """Initialize the assembler.

        Args:
            track: Crosslink signal shared by all extractions.
            config: Pipeline settings; defaults when None.
            n_workers: Worker threads; 1 runs combinations sequentially.

        Raises:
            ValueError: If n_workers is below 1.
        """
        if n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {n_workers}")
        self.track = track
        self.config = config or Config()
        self.n_workers = n_workers
        self.tester = BinnedSignificanceTester(
            bin_size=self.config.significance.bin_size,
            alpha=self.config.significance.alpha,
        )

    def build_matrix(self, events: Iterable[GenomicEvent | RegulatedEvent], boundary: Boundary) -> SignalMatrix:
        """Extract and normalise one boundary window per event."""
        raw = build_matrix(
            events,
            boundary,
            self.track,
            exon_reach=self.config.window.exon_reach,
            intron_reach=self.config.window.intron_reach,
        )
        return normalize_rows(raw)

    def build_record(
        self,
        boundary: Boundary,
        category: RegulationCategory,
        treatment: Sequence[GenomicEvent | RegulatedEvent],
        controls: Sequence[GenomicEvent | RegulatedEvent],
    ) -> RNAMapRecord:
        """Run extraction, normalisation and testing for one combination."""
        boundary = Boundary(boundary)
        treatment_matrix = self.build_matrix(treatment, boundary)
        control_matrix = self.build_matrix(controls, boundary)
        result = self.tester.evaluate(treatment_matrix, control_matrix)
        layout = window_layout(
            boundary, self.config.window.exon_reach, self.config.window.intron_reach
        )

        record = RNAMapRecord(
            boundary=boundary,
            category=category,
            positions=layout.positions(),
            mean_treatment=treatment_matrix.column_means(),
            mean_control=control_matrix.column_means(),
            significant_bins=tuple(result.significant),
            bin_tests=result.bins,
            n_treatment=treatment_matrix.n_events,
            n_control=control_matrix.n_events,
        )
        logger.debug(
            f"{boundary.value}/{category.value}: {record.n_treatment} vs "
            f"{record.n_control} events, {len(record.significant_bins)} significant bins"
        )
        return record

    def assemble(
        self,
        treatment_events: Sequence[RegulatedEvent],
        matched_controls: Sequence[GenomicEvent | RegulatedEvent]
        | Mapping[RegulationCategory, Sequence[GenomicEvent | RegulatedEvent]],
        boundaries: Iterable[Boundary] = tuple(Boundary),
    ) -> list[RNAMapRecord]:
        """Build RNA maps for every boundary and regulated category present.

        Args:
            treatment_events: Events with their regulation categories;
                non-regulated events are ignored.
            matched_controls: Matched controls shared by all categories, or a
                mapping from regulated category to its matched controls.
            boundaries: Boundaries to build, in output order.

        Returns:
            Records ordered by boundary, then category.

        Raises:
            ValueError: If a category has no matched controls in the mapping.
            MalformedEventError: If any event does not fit a boundary.
        """
        categories = [
            c for c in RegulationCategory.regulated() if events_in_category(treatment_events, c)
        ]
        controls_for = self._controls_by_category(categories, matched_controls)

        jobs = [
            (boundary, category, events_in_category(treatment_events, category), controls_for[category])
            for boundary in boundaries
            for category in categories
        ]
        progress = ProgressLogger(logger, total=len(jobs), description="RNA maps")

        with Timer("RNA map assembly", logger):
            if self.n_workers > 1 and len(jobs) > 1:
                with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
                    futures = [executor.submit(self.build_record, *job) for job in jobs]
                    records = []
                    for future in futures:
                        records.append(future.result())
                        progress.update()
            else:
                records = []
                for job in jobs:
                    records.append(self.build_record(*job))
                    progress.update()

        return records

    def run(self, records: Sequence[RegulatedEvent]) -> list[RNAMapRecord]:
        """Match controls with the configured cutpoints and seed, then assemble.

        Args:
            records: Regulated and non-regulated events with control PSI.

        Returns:
            Records ordered by boundary, then category.
        """
        controls = match_controls(
            records,
            cutpoints=self.config.matching.cutpoints,
            seed=self.config.matching.seed,
        )
        return self.assemble(records, controls)

    @staticmethod
    def _controls_by_category(
        categories: Sequence[RegulationCategory],
        matched_controls: Sequence[GenomicEvent | RegulatedEvent]
        | Mapping[RegulationCategory, Sequence[GenomicEvent | RegulatedEvent]],
    ) -> dict[RegulationCategory, list[GenomicEvent | RegulatedEvent]]:
        if isinstance(matched_controls, Mapping):
            missing = [c.value for c in categories if c not in matched_controls]
            if missing:
                raise ValueError(f"No matched controls for categories: {missing}")
            return {c: list(matched_controls[c]) for c in categories}
        shared = list(matched_controls)
        return {c: shared for c in categories}
