from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np
from scipy.spatial.transform import Rotation

from gcodedeformer.config import (
    ROTATION_DENOMINATOR_EPSILON,
    ROTATION_MAX_ITERATIONS,
    ROTATION_TOLERANCE,
)
from gcodedeformer.model.geometry_utils import as_points, normalize

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


@dataclass
class RotationSolveResult:
    """Return object of `RotationSolver.solve`."""
    rotations: list[Rotation] = field(default_factory=list)
    # Iterations spent per pair and the last correction angle |w| per pair
    iterations: list[int] = field(default_factory=list)
    residuals: list[float] = field(default_factory=list)
    tolerance: float = ROTATION_TOLERANCE

    @property
    def converged(self) -> list[bool]:
        return [r < self.tolerance for r in self.residuals]

    def as_quaternions(self) -> npt.NDArray[np.float64]:
        """(M, 4) scalar-last quaternions."""
        if not self.rotations:
            return np.empty((0, 4), dtype=np.float64)
        return np.vstack([r.as_quat() for r in self.rotations])


class RotationSolver:
    """
    Estimates one rotation per control pair from the relative motion of the
    other pairs.

    For pair j, every other pair k gives a rest direction (bind j -> bind k)
    and a current direction (control j -> control k). Each iteration rotates
    the rest directions by the current estimate and takes the small-angle
    correction

        w = sum(cross(rest_k, current_k)) / |sum(dot(rest_k, current_k)) + eps|

    which is composed onto the estimate from the left until |w| drops below
    the tolerance or the iteration cap is hit. Pairs are solved
    independently, in index order.
    """

    def __init__(
        self,
        max_iterations: int = ROTATION_MAX_ITERATIONS,
        tolerance: float = ROTATION_TOLERANCE,
        denominator_epsilon: float = ROTATION_DENOMINATOR_EPSILON,
    ) -> None:
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.denominator_epsilon = denominator_epsilon

    def solve(
        self,
        bind_positions: npt.ArrayLike,
        control_positions: npt.ArrayLike,
        initial: Optional[Sequence[Rotation]] = None,
    ) -> RotationSolveResult:
        """
        Solve the rotation of every pair.

        Args:
            bind_positions: (M, 3) rest anchors.
            control_positions: (M, 3) current targets, same order.
            initial: Optional warm-start rotations (e.g. the previous solve).

        Returns:
            Per-pair rotations with iteration counts and final residuals.
            With fewer than two pairs every rotation is the identity.

        Raises:
            ValueError: If the two position arrays (or `initial`) disagree in length.
        """
        binds = as_points(bind_positions)
        controls = as_points(control_positions)
        n_pairs = binds.shape[0]

        if controls.shape[0] != n_pairs:
            raise ValueError(f"Got {n_pairs} bind positions but {controls.shape[0]} control positions.")
        if initial is not None and len(initial) != n_pairs:
            raise ValueError(f"Got {len(initial)} initial rotations for {n_pairs} pairs.")

        result = RotationSolveResult(tolerance=self.tolerance)

        if n_pairs < 2:
            for _ in range(n_pairs):
                result.rotations.append(Rotation.identity())
                result.iterations.append(0)
                result.residuals.append(0.0)
            return result

        for j in range(n_pairs):
            others = [k for k in range(n_pairs) if k != j]
            rest_dirs = normalize(binds[others] - binds[j])
            current_dirs = normalize(controls[others] - controls[j])

            rotation = initial[j] if initial is not None else Rotation.identity()
            residual = 0.0
            iterations = 0

            for iterations in range(1, self.max_iterations + 1):
                rotated = rotation.apply(rest_dirs)
                numerator = np.cross(rotated, current_dirs).sum(axis=0)
                denominator = float(np.einsum("ij,ij->", rotated, current_dirs))

                omega = numerator / abs(denominator + self.denominator_epsilon)
                residual = float(np.linalg.norm(omega))

                # from_rotvec(w) == axis-angle(normalize(w), |w|)
                rotation = Rotation.from_rotvec(omega) * rotation

                if residual < self.tolerance:
                    break

            logger.debug(f"Pair {j}: {iterations} iteration(s), residual {residual:.3e}.")
            result.rotations.append(rotation)
            result.iterations.append(iterations)
            result.residuals.append(residual)

        return result
