"""Sliding-window significance testing of positional signal.

A window of ``bin_size`` columns slides across the treatment and control
matrices with stride 1. For every bin, each row is reduced to the mean of its
non-missing cells and the treatment row means are compared with the control
row means by a one-sided Mann-Whitney U test (treatment greater). All raw
p-values of the sweep are corrected together with Benjamini-Hochberg.

Bins where either side has no usable row mean cannot be tested. They are
flagged on the result (``defined=False`` with the InsufficientDataError that
was raised), carry a raw p-value of 1 and stay in the correction set, so the
correction always spans ``width - bin_size + 1`` bins.

Example:
    >>> from rnamaps.core.significance import BinnedSignificanceTester
    >>> tester = BinnedSignificanceTester(bin_size=10, alpha=0.01)
    >>> for b in tester.test(treatment, control):
    ...     print(f"{b.start}-{b.end}: padj={b.adjusted_pvalue:.2e}")
"""

from __future__ import annotations

import logging
from typing import Iterator

import attrs
import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy.stats import mannwhitneyu
from statsmodels.stats.multitest import multipletests

from rnamaps.core.errors import InsufficientDataError
from rnamaps.core.windows import SignalMatrix

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_BIN_SIZE = 10
DEFAULT_ALPHA = 0.01

# =============================================================================
# Data Structures
# =============================================================================


@attrs.frozen
class SignificantBin:
    """A positional span where treatment signal exceeds control.

    Attributes:
        start: First position of the bin (1-based).
        end: Position after the last one (``start + bin_size``).
        adjusted_pvalue: Benjamini-Hochberg adjusted p-value.
    """

    start: int
    end: int
    adjusted_pvalue: float


@attrs.frozen
class BinTest:
    """Outcome of the rank-sum test in one positional bin.

    Attributes:
        start: First position of the bin (1-based).
        end: Position after the last one.
        pvalue: Raw one-sided p-value (1.0 when undefined).
        adjusted_pvalue: Benjamini-Hochberg adjusted p-value.
        n_treatment: Treatment rows with a usable mean.
        n_control: Control rows with a usable mean.
        error: Why the bin could not be tested, if it could not.
    """

    start: int
    end: int
    pvalue: float
    adjusted_pvalue: float
    n_treatment: int
    n_control: int
    error: InsufficientDataError | None = attrs.field(default=None, eq=False)

    @property
    def defined(self) -> bool:
        """Whether the rank-sum test could be run."""
        return self.error is None


@attrs.frozen
class BinnedTestResult:
    """All bins of one sweep.

    Attributes:
        bins: Every evaluated bin in position order.
        alpha: Adjusted p-value threshold for significance.
    """

    bins: tuple[BinTest, ...]
    alpha: float

    def __len__(self) -> int:
        return len(self.bins)

    def __iter__(self) -> Iterator[BinTest]:
        return iter(self.bins)

    @property
    def significant(self) -> list[SignificantBin]:
        """Defined bins with adjusted p-value at or below alpha."""
        return [
            SignificantBin(b.start, b.end, b.adjusted_pvalue)
            for b in self.bins
            if b.defined and b.adjusted_pvalue <= self.alpha
        ]

    @property
    def undefined(self) -> list[BinTest]:
        """Bins the test could not be run on."""
        return [b for b in self.bins if not b.defined]


# =============================================================================
# Helpers
# =============================================================================


def _as_masked(matrix: SignalMatrix | np.ndarray) -> np.ma.MaskedArray:
    values = matrix.values if isinstance(matrix, SignalMatrix) else matrix
    values = np.ma.masked_invalid(np.ma.asarray(values, dtype=np.float64))
    if values.ndim != 2:
        raise ValueError(f"Expected a 2-dimensional matrix, got shape {values.shape}")
    return values


def binned_row_means(
    matrix: SignalMatrix | np.ndarray,
    bin_size: int = DEFAULT_BIN_SIZE,
) -> np.ma.MaskedArray:
    """Mean of every row over every stride-1 bin, skipping missing cells.

    Args:
        matrix: (n_rows, width) signal.
        bin_size: Columns per bin.

    Returns:
        Masked (n_rows, width - bin_size + 1) array; a cell is masked when
        the row has no values inside that bin.
    """
    values = _as_masked(matrix)
    width = values.shape[1]
    if not 1 <= bin_size <= width:
        raise ValueError(f"Bin size must be within [1, {width}], got {bin_size}")

    present = (~np.ma.getmaskarray(values)).astype(np.int64)
    data = values.filled(0.0)

    # Each bin is summed on its own cells so equal bins give equal means
    sums = sliding_window_view(data, bin_size, axis=1).sum(axis=2)
    counts = sliding_window_view(present, bin_size, axis=1).sum(axis=2)
    empty = counts == 0

    means = np.divide(sums, counts, out=np.zeros_like(sums), where=~empty)
    return np.ma.MaskedArray(means, mask=empty)


def rank_sum_pvalue(treatment: np.ndarray, control: np.ndarray, start: int = 0) -> float:
    """One-sided Mann-Whitney p-value for treatment > control.

    Raises:
        InsufficientDataError: If either sample is empty.
    """
    if len(treatment) < 1 or len(control) < 1:
        raise InsufficientDataError(start, len(treatment), len(control))

    with np.errstate(divide="ignore", invalid="ignore"):
        result = mannwhitneyu(treatment, control, alternative="greater")
    pvalue = float(result.pvalue)
    # Fully tied samples leave the statistic without variance
    return 1.0 if np.isnan(pvalue) else pvalue


# =============================================================================
# Tester
# =============================================================================


class BinnedSignificanceTester:
    """Flag positional bins where treatment signal exceeds control.

    Attributes:
        bin_size: Columns per sliding bin.
        alpha: Adjusted p-value threshold.
    """

    def __init__(self, bin_size: int = DEFAULT_BIN_SIZE, alpha: float = DEFAULT_ALPHA) -> None:
        """Initialize the tester.

        Args:
            bin_size: Columns per sliding bin; at least 1.
            alpha: Adjusted p-value threshold within (0, 1].

        Raises:
            ValueError: If bin_size or alpha is out of range.
        """
        if bin_size < 1:
            raise ValueError(f"Bin size must be >= 1, got {bin_size}")
        if not 0 < alpha <= 1:
            raise ValueError(f"Alpha must be within (0, 1], got {alpha}")
        self.bin_size = bin_size
        self.alpha = alpha

    def evaluate(
        self,
        treatment: SignalMatrix | np.ndarray,
        control: SignalMatrix | np.ndarray,
    ) -> BinnedTestResult:
        """Test every bin and correct all p-values in one pass.

        Args:
            treatment: Treatment signal, rows are events.
            control: Matched-control signal with the same number of columns.

        Returns:
            BinnedTestResult covering ``width - bin_size + 1`` bins.

        Raises:
            ValueError: If the column counts differ or the bin size exceeds
                the width.
        """
        t_values = _as_masked(treatment)
        c_values = _as_masked(control)
        if t_values.shape[1] != c_values.shape[1]:
            raise ValueError(
                f"Treatment has {t_values.shape[1]} columns, control has {c_values.shape[1]}"
            )

        t_means = binned_row_means(t_values, self.bin_size)
        c_means = binned_row_means(c_values, self.bin_size)
        n_bins = t_means.shape[1]

        pvalues = np.ones(n_bins)
        n_treatment = np.zeros(n_bins, dtype=int)
        n_control = np.zeros(n_bins, dtype=int)
        errors: list[InsufficientDataError | None] = [None] * n_bins

        for i in range(n_bins):
            t = t_means[:, i].compressed()
            c = c_means[:, i].compressed()
            n_treatment[i] = t.size
            n_control[i] = c.size
            try:
                pvalues[i] = rank_sum_pvalue(t, c, start=i + 1)
            except InsufficientDataError as e:
                errors[i] = e

        _, adjusted, _, _ = multipletests(pvalues, alpha=self.alpha, method="fdr_bh")

        n_undefined = sum(e is not None for e in errors)
        if n_undefined:
            logger.warning(f"{n_undefined} of {n_bins} bins lack data on one side; p set to 1")

        bins = tuple(
            BinTest(
                start=i + 1,
                end=i + 1 + self.bin_size,
                pvalue=float(pvalues[i]),
                adjusted_pvalue=float(adjusted[i]),
                n_treatment=int(n_treatment[i]),
                n_control=int(n_control[i]),
                error=errors[i],
            )
            for i in range(n_bins)
        )
        return BinnedTestResult(bins=bins, alpha=self.alpha)

    def test(
        self,
        treatment: SignalMatrix | np.ndarray,
        control: SignalMatrix | np.ndarray,
    ) -> list[SignificantBin]:
        """Significant bins of a sweep, in position order."""
        result = self.evaluate(treatment, control)
        significant = result.significant
        logger.debug(f"{len(significant)} of {len(result)} bins significant at {self.alpha}")
        return significant
