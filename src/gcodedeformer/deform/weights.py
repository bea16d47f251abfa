from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from gcodedeformer.config import GROUND_PLANE_Z, WEIGHT_EPSILON
from gcodedeformer.model.geometry_utils import as_point, as_points

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


def compute_weight_matrix(
    points: npt.ArrayLike,
    bind_positions: npt.ArrayLike,
    fall_off_exponent: float,
    lock_to_ground: bool,
) -> npt.NDArray[np.float64]:
    """
    Normalized influence of every control pair on every point.

    Each raw weight is ``1 / (|p - bind_j| + eps) ** fall_off_exponent``. With
    ground lock, a virtual weight ``1 / |p.z - GROUND_PLANE_Z| ** fall_off_exponent``
    joins the denominator only, so points near the bed keep (almost) no
    displacement.

    Args:
        points: (N, 3) points to weigh.
        bind_positions: (M, 3) rest-frame anchors of the control pairs.
        fall_off_exponent: How sharply influence decays with distance (> 0).
        lock_to_ground: Whether to add the ground term.

    Returns:
        (N, M) array; each row sums to 1 minus the ground share. Rows whose
        denominator is zero or not finite are all zero.

    Raises:
        ValueError: If `fall_off_exponent` is not positive.
    """
    if fall_off_exponent <= 0:
        raise ValueError(f"fall_off_exponent must be positive, got {fall_off_exponent}.")

    pts = as_points(points)
    binds = as_points(bind_positions)

    offsets = pts[:, np.newaxis, :] - binds[np.newaxis, :, :]
    distances = np.linalg.norm(offsets, axis=2)
    raw = 1.0 / np.power(distances + WEIGHT_EPSILON, fall_off_exponent)

    total = raw.sum(axis=1)
    if lock_to_ground:
        with np.errstate(divide="ignore"):
            total = total + 1.0 / np.power(np.abs(pts[:, 2] - GROUND_PLANE_Z), fall_off_exponent)

    # Zero denominators (no pairs, no ground term) and a point sitting exactly on
    # the ground plane (infinite ground term) both end up with zero weights.
    valid = np.isfinite(total) & (total > 0.0)
    weights = np.zeros_like(raw)
    weights[valid] = raw[valid] / total[valid, np.newaxis]

    degenerate = int(np.count_nonzero(~valid))
    if degenerate and binds.shape[0] > 0:
        logger.warning(f"{degenerate} point(s) had a degenerate weight denominator; weights set to zero.")

    return weights


def compute_weights(
    point: npt.ArrayLike,
    bind_positions: npt.ArrayLike,
    fall_off_exponent: float,
    lock_to_ground: bool,
) -> npt.NDArray[np.float64]:
    """Weight vector of length M for a single point. See `compute_weight_matrix`."""
    return compute_weight_matrix(as_point(point), bind_positions, fall_off_exponent, lock_to_ground)[0]
