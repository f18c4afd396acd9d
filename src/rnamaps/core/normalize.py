"""Per-event min-max normalisation of signal matrices.

Each row is rescaled to ``(x - min) / (max - min)`` using its non-missing
cells only. Missing cells stay missing. Rows whose non-missing cells are all
equal become 0 wherever they have a value; rows with no values stay fully
missing.
"""

from __future__ import annotations

import logging

import numpy as np

from rnamaps.core.windows import SignalMatrix

logger = logging.getLogger(__name__)


def normalize_rows(matrix: SignalMatrix | np.ndarray) -> SignalMatrix | np.ma.MaskedArray:
    """Min-max rescale every row of a signal matrix.

    Args:
        matrix: SignalMatrix or 2-D (masked) array. NaN cells count as
            missing.

    Returns:
        Object of the same kind with rows rescaled into [0, 1].

    Raises:
        ValueError: If an array input is not 2-dimensional.
    """
    if isinstance(matrix, SignalMatrix):
        return matrix.with_values(normalize_rows(matrix.values))

    values = np.ma.masked_invalid(np.ma.asarray(matrix, dtype=np.float64))
    if values.ndim != 2:
        raise ValueError(f"Expected a 2-dimensional matrix, got shape {values.shape}")

    mask = np.ma.getmaskarray(values).copy()
    data = values.filled(0.0)

    row_min = np.where(mask, np.inf, data).min(axis=1, initial=np.inf)
    row_max = np.where(mask, -np.inf, data).max(axis=1, initial=-np.inf)
    has_values = ~mask.all(axis=1)
    with np.errstate(invalid="ignore"):
        span = row_max - row_min
    scalable = has_values & (span > 0)

    out = np.zeros_like(data)
    out[scalable] = (data[scalable] - row_min[scalable, None]) / span[scalable, None]

    n_degenerate = int(np.sum(has_values & ~scalable))
    if n_degenerate:
        logger.debug(f"{n_degenerate} rows with constant signal normalised to 0")

    return np.ma.MaskedArray(out, mask=mask)
