"""Quantile matching of control events to a treatment score distribution.

Non-regulated events are resampled so that their baseline inclusion (control
PSI) mirrors that of a regulated category. The treatment scores are cut at
user-supplied quantiles, the control pool is binned on those cut values and
an equal share of the target size is drawn from every bin.

The per-bin share is ``target_size // n_bins``. Any remainder is not
redistributed, so the matched set can be smaller than the target; the
shortfall is reported in the sampling plan and logged.

Sampling is reproducible: every bin draws from its own random stream spawned
from one explicit seed, so results do not depend on any global random state.

Example:
    >>> from rnamaps.core.matching import QuantileMatcher
    >>> matcher = QuantileMatcher(cutpoints=[0, 0.5, 1], seed=7)
    >>> matched = matcher.match(pool, target_scores=[0.1, 0.4, 0.8], target_size=2)
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

import attrs
import numpy as np

from rnamaps.core.errors import InsufficientPoolError
from rnamaps.core.events import GenomicEvent, RegulatedEvent, RegulationCategory, events_in_category

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_CUTPOINTS = (0.0, 0.25, 0.5, 0.75, 1.0)

SeedLike = int | np.random.SeedSequence

# =============================================================================
# Data Structures
# =============================================================================


@attrs.frozen
class SamplingPlan:
    """How a control pool is split and sampled.

    Attributes:
        cut_values: Treatment-score quantiles bounding the bins.
        bin_members: Pool indices falling into each bin, in pool order.
        per_bin: Number of draws requested from each non-empty bin.
        target_size: Requested total size.
    """

    cut_values: np.ndarray = attrs.field(eq=False)
    bin_members: tuple[tuple[int, ...], ...]
    per_bin: int
    target_size: int

    @property
    def n_bins(self) -> int:
        """Number of quantile bins."""
        return len(self.bin_members)

    @property
    def bin_counts(self) -> list[int]:
        """Pool elements available per bin."""
        return [len(m) for m in self.bin_members]

    @property
    def expected_size(self) -> int:
        """Total size the plan will deliver."""
        return self.per_bin * sum(1 for m in self.bin_members if m)

    @property
    def shortfall(self) -> int:
        """Draws lost to floor division and empty bins."""
        return self.target_size - self.expected_size


# =============================================================================
# Matcher
# =============================================================================


class QuantileMatcher:
    """Select a control subset mimicking a treatment score distribution.

    Attributes:
        cutpoints: Ordered probabilities in [0, 1] defining the bins.
        seed: Seed the per-bin random streams are spawned from.
    """

    def __init__(
        self,
        cutpoints: Sequence[float] = DEFAULT_CUTPOINTS,
        *,
        seed: SeedLike,
    ) -> None:
        """Initialize the matcher.

        Args:
            cutpoints: Ordered probabilities in [0, 1]; at least two.
            seed: Integer seed or SeedSequence.

        Raises:
            ValueError: If cutpoints are too few, unordered or out of range.
        """
        cuts = np.asarray(cutpoints, dtype=np.float64)
        if cuts.ndim != 1 or cuts.size < 2:
            raise ValueError("At least two quantile cutpoints are required")
        if np.any(cuts < 0) or np.any(cuts > 1):
            raise ValueError(f"Cutpoints must lie within [0, 1], got {cuts.tolist()}")
        if np.any(np.diff(cuts) < 0):
            raise ValueError(f"Cutpoints must be sorted, got {cuts.tolist()}")

        self.cutpoints = cuts
        self.seed = seed

    @property
    def n_bins(self) -> int:
        """Number of quantile bins."""
        return self.cutpoints.size - 1

    def _seed_sequence(self) -> np.random.SeedSequence:
        if isinstance(self.seed, np.random.SeedSequence):
            # Fresh copy so repeated calls spawn the same children
            return np.random.SeedSequence(self.seed.entropy, spawn_key=self.seed.spawn_key)
        return np.random.SeedSequence(self.seed)

    def plan(
        self,
        pool_scores: Sequence[float],
        target_scores: Sequence[float],
        target_size: int,
    ) -> SamplingPlan:
        """Bin the pool on treatment quantiles.

        Bin ``i`` holds scores in ``[cut[i], cut[i+1])``; the last bin is
        closed on both ends. Scores outside the treatment range fall into
        no bin.

        Raises:
            ValueError: If target scores are empty or scores are not finite.
        """
        targets = np.asarray(target_scores, dtype=np.float64)
        scores = np.asarray(pool_scores, dtype=np.float64)
        if targets.size == 0:
            raise ValueError("Target scores are empty")
        if not np.all(np.isfinite(targets)) or not np.all(np.isfinite(scores)):
            raise ValueError("Scores must be finite")
        if target_size < 0:
            raise ValueError(f"Target size must be >= 0, got {target_size}")

        cut_values = np.quantile(targets, self.cutpoints)
        index = np.searchsorted(cut_values, scores, side="right") - 1
        index[scores == cut_values[-1]] = self.n_bins - 1

        members = tuple(
            tuple(int(i) for i in np.flatnonzero(index == b)) for b in range(self.n_bins)
        )
        return SamplingPlan(
            cut_values=cut_values,
            bin_members=members,
            per_bin=target_size // self.n_bins,
            target_size=target_size,
        )

    def match(
        self,
        control_pool: Sequence[tuple[str, float]],
        target_scores: Sequence[float],
        target_size: int,
    ) -> list[tuple[str, float]]:
        """Draw a matched control subset.

        Args:
            control_pool: (event_id, score) pairs; ids must be unique.
            target_scores: Treatment scores defining the distribution.
            target_size: Requested subset size.

        Returns:
            Selected (event_id, score) pairs, bin by bin in draw order. At
            most ``target_size`` elements, none repeated.

        Raises:
            InsufficientPoolError: If a non-empty bin holds fewer elements
                than requested.
            ValueError: If inputs are invalid.
        """
        ids = [event_id for event_id, _ in control_pool]
        if len(set(ids)) != len(ids):
            raise ValueError("Control pool contains duplicate event ids")

        plan = self.plan([score for _, score in control_pool], target_scores, target_size)
        streams = self._seed_sequence().spawn(plan.n_bins)

        selected: list[tuple[str, float]] = []
        for bin_index, (members, stream) in enumerate(zip(plan.bin_members, streams)):
            if not members:
                logger.warning(f"Quantile bin {bin_index} holds no control events; skipped")
                continue
            if len(members) < plan.per_bin:
                raise InsufficientPoolError(bin_index, plan.per_bin, len(members))

            rng = np.random.default_rng(stream)
            draws = rng.choice(len(members), size=plan.per_bin, replace=False)
            selected.extend(control_pool[members[d]] for d in draws)

        if plan.shortfall:
            logger.info(
                f"Matched {len(selected)} of {target_size} requested controls "
                f"({plan.per_bin} per bin over {plan.n_bins} bins)"
            )
        return selected


# =============================================================================
# Category-level matching
# =============================================================================


def match_controls(
    records: Sequence[RegulatedEvent],
    cutpoints: Sequence[float] = DEFAULT_CUTPOINTS,
    *,
    seed: int,
) -> dict[RegulationCategory, list[GenomicEvent]]:
    """Match non-regulated events to each regulated category.

    For every regulated category present, the non-regulated pool is matched
    to that category's control PSI with a target size equal to the category
    size. Each category draws from its own spawned seed stream.

    Args:
        records: All events with categories and control PSI.
        cutpoints: Quantile cutpoints.
        seed: Root seed.

    Returns:
        Mapping of regulated category to matched control events.

    Raises:
        ValueError: If a record used for matching lacks a control PSI.
        InsufficientPoolError: If a quantile bin cannot be filled.
    """
    _require_psi(records)
    controls = events_in_category(records, RegulationCategory.NON_REGULATED)
    by_id: Mapping[str, GenomicEvent] = {r.event_id: r.event for r in controls}
    pool = [(r.event_id, float(r.control_psi)) for r in controls]

    category_seeds = np.random.SeedSequence(seed).spawn(len(RegulationCategory.regulated()))
    matched: dict[RegulationCategory, list[GenomicEvent]] = {}

    for category, category_seed in zip(RegulationCategory.regulated(), category_seeds):
        treatment = events_in_category(records, category)
        if not treatment:
            continue
        matcher = QuantileMatcher(cutpoints, seed=category_seed)
        selected = matcher.match(
            pool,
            [float(r.control_psi) for r in treatment],
            len(treatment),
        )
        matched[category] = [by_id[event_id] for event_id, _ in selected]
        logger.info(
            f"{category.value}: {len(treatment)} events, "
            f"{len(selected)} matched controls from a pool of {len(pool)}"
        )

    return matched


def _require_psi(records: Sequence[RegulatedEvent]) -> None:
    missing = [r.event_id for r in records if r.control_psi is None]
    if missing:
        raise ValueError(
            f"{len(missing)} events lack a control PSI, e.g. {missing[:3]}"
        )
