# src/style/drift.py - v1
"""Golden-sample anchored drift detection.

Every dimension is normalized onto [0, 1] by its DimensionSpec range. The
learned parameters get a z-score per dimension against the golden samples'
mean and standard deviation (the deviation floored at STD_FLOOR so identical
samples do not divide by zero). The drift distance is the RMS of those
z-scores; above `sigma` the profile is flagged for recalibration. The flag is
advisory: nothing here changes the profile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from draftsmith.core.models import STYLE_DIMENSIONS, StyleParameters
from draftsmith.style.analyzer import DIMENSION_SPECS

logger = logging.getLogger(__name__)

DEFAULT_SIGMA = 2.0
STD_FLOOR = 0.05


@dataclass
class DriftResult:
    """Outcome of a drift check. `distance` is None without golden samples."""

    distance: float | None = None
    recalibration_needed: bool = False
    z_scores: dict[str, float] = field(default_factory=dict)
    golden_mean: dict[str, float] = field(default_factory=dict)


def normalized_vector(params: StyleParameters) -> np.ndarray:
    values = params.dimensions()
    return np.array(
        [DIMENSION_SPECS[name].normalize(values[name]) for name in STYLE_DIMENSIONS],
        dtype=np.float64,
    )


def check_drift(
    learned: StyleParameters,
    golden: list[StyleParameters],
    sigma: float = DEFAULT_SIGMA,
    std_floor: float = STD_FLOOR,
) -> DriftResult:
    """Compare learned parameters against golden-sample parameters."""
    if not golden:
        return DriftResult()

    matrix = np.vstack([normalized_vector(p) for p in golden])
    mean = matrix.mean(axis=0)
    std = np.maximum(matrix.std(axis=0), std_floor)
    z = (normalized_vector(learned) - mean) / std
    distance = float(np.sqrt(np.mean(np.square(z))))
    flagged = distance > sigma

    if flagged:
        logger.warning("Style drift %.2f exceeds %.1f sigma; recalibration advised", distance, sigma)
    else:
        logger.debug("Style drift %.2f within %.1f sigma", distance, sigma)

    return DriftResult(
        distance=distance,
        recalibration_needed=flagged,
        z_scores={name: float(v) for name, v in zip(STYLE_DIMENSIONS, z)},
        golden_mean={
            name: DIMENSION_SPECS[name].low + float(m) * DIMENSION_SPECS[name].span
            for name, m in zip(STYLE_DIMENSIONS, mean)
        },
    )
