from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np
from scipy.spatial.transform import Rotation

from gcodedeformer.config import DEFAULT_FALL_OFF_EXPONENT
from gcodedeformer.deform.rotation import RotationSolver
from gcodedeformer.deform.weights import compute_weight_matrix
from gcodedeformer.model.geometry_utils import as_points

if TYPE_CHECKING:
    import numpy.typing as npt

    from gcodedeformer.model.state import DeformerParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class DeformationContext:
    """
    Immutable snapshot of everything the displacement field depends on.

    Positions are expressed in the toolpath's own coordinate frame. The
    snapshot can be handed to a background thread (G-code export) while the
    user keeps editing.
    """
    bind_positions: npt.NDArray[np.float64] = field(default_factory=lambda: np.empty((0, 3)))
    control_positions: npt.NDArray[np.float64] = field(default_factory=lambda: np.empty((0, 3)))
    rotations: tuple[Rotation, ...] = ()
    fall_off_exponent: float = DEFAULT_FALL_OFF_EXPONENT
    lock_to_ground: bool = False
    solve_rotation: bool = False

    def __post_init__(self) -> None:
        binds = as_points(self.bind_positions).copy()
        controls = as_points(self.control_positions).copy()
        if binds.shape != controls.shape:
            raise ValueError(f"Bind positions {binds.shape} and control positions {controls.shape} differ in shape.")
        if self.fall_off_exponent <= 0:
            raise ValueError(f"fall_off_exponent must be positive, got {self.fall_off_exponent}.")
        binds.setflags(write=False)
        controls.setflags(write=False)
        object.__setattr__(self, "bind_positions", binds)
        object.__setattr__(self, "control_positions", controls)

        rotations = tuple(self.rotations)
        if not rotations:
            rotations = tuple(Rotation.identity() for _ in range(len(binds)))
        if len(rotations) != len(binds):
            raise ValueError(f"Got {len(rotations)} rotations for {len(binds)} control pairs.")
        object.__setattr__(self, "rotations", rotations)

    @classmethod
    def build(
        cls,
        bind_positions: npt.ArrayLike,
        control_positions: npt.ArrayLike,
        params: DeformerParams,
        rotations: Optional[Sequence[Rotation]] = None,
        solver: Optional[RotationSolver] = None,
    ) -> DeformationContext:
        """
        Create a context from raw positions and the user settings.

        When rotation solving is on and no rotations are given, they are
        solved here (identity for fewer than two pairs). When it is off the
        rotations are ignored.
        """
        binds = as_points(bind_positions)
        controls = as_points(control_positions)

        if params.solve_rotation:
            if rotations is None:
                rotations = (solver or RotationSolver()).solve(binds, controls).rotations
        else:
            rotations = None

        return cls(
            bind_positions=binds,
            control_positions=controls,
            rotations=tuple(rotations) if rotations is not None else (),
            fall_off_exponent=params.fall_off_exponent,
            lock_to_ground=params.lock_to_ground,
            solve_rotation=params.solve_rotation,
        )

    @property
    def pair_count(self) -> int:
        return self.bind_positions.shape[0]

    @property
    def translations(self) -> npt.NDArray[np.float64]:
        """(M, 3) control minus bind."""
        return self.control_positions - self.bind_positions

    @property
    def weight_key(self) -> tuple[bytes, float, bool]:
        """Everything the weight matrix depends on, for cache invalidation."""
        return self.bind_positions.tobytes(), float(self.fall_off_exponent), bool(self.lock_to_ground)

    def weights(self, points: npt.ArrayLike) -> npt.NDArray[np.float64]:
        return compute_weight_matrix(points, self.bind_positions, self.fall_off_exponent, self.lock_to_ground)

    def displace(
        self,
        points: npt.ArrayLike,
        weights: Optional[npt.NDArray[np.float64]] = None,
    ) -> npt.NDArray[np.float64]:
        """
        Displacement of arbitrary points under this context.

        Args:
            points: (N, 3) points in rest pose.
            weights: Precomputed (N, M) weights for exactly these points.
                Computed on the fly when omitted.

        Returns:
            (N, 3) displacements. The caller adds them to the rest positions.
        """
        pts = as_points(points)
        if weights is None:
            weights = self.weights(pts)

        if pts.shape[0] == 0 or self.pair_count == 0:
            return np.zeros_like(pts)

        translations = self.translations
        if not self.solve_rotation:
            return weights @ translations

        displacement = np.zeros_like(pts)
        for j, rotation in enumerate(self.rotations):
            offset = pts - self.bind_positions[j]
            rotational = rotation.apply(offset) - offset
            displacement += weights[:, j, np.newaxis] * (translations[j] + rotational)
        return displacement

    def deform(self, points: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """Rest points plus their displacement."""
        pts = as_points(points)
        return pts + self.displace(pts)


class Deformer:
    """
    Keeps the rendered (deformed) vertex buffer of one loaded toolpath in sync
    with the control pairs.

    The weight matrix is rebuilt only when the bind positions or the weight
    settings change; moving a control point reuses it and only recomputes
    the displacement.
    """
    def __init__(self, rest_positions: npt.ArrayLike) -> None:
        rest = as_points(rest_positions).copy()
        rest.setflags(write=False)
        self.rest_positions: npt.NDArray[np.float64] = rest

        self.context: DeformationContext = DeformationContext()
        self.weights: npt.NDArray[np.float64] = np.zeros((rest.shape[0], 0), dtype=np.float64)
        self.deformed_positions: npt.NDArray[np.float64] = rest.copy()
        self._weight_key: Optional[tuple[bytes, float, bool]] = None

    @property
    def vertex_count(self) -> int:
        return self.rest_positions.shape[0]

    def bind(self, context: DeformationContext) -> None:
        """Rebuild the weight matrix from scratch, then refresh the deformation."""
        self.weights = context.weights(self.rest_positions)
        self._weight_key = context.weight_key
        logger.info(f"Rebuilt weights for {self.vertex_count} vertices and {context.pair_count} control pair(s).")
        self._apply(context)

    def update(self, context: DeformationContext) -> None:
        """Recompute the deformed positions, rebinding first if the weights are stale."""
        if context.weight_key != self._weight_key:
            self.bind(context)
        else:
            self._apply(context)

    def _apply(self, context: DeformationContext) -> None:
        self.context = context
        self.deformed_positions = self.rest_positions + context.displace(self.rest_positions, self.weights)

    def displace(self, points: npt.ArrayLike) -> npt.NDArray[np.float64]:
        """Displacement of arbitrary points under the current context."""
        return self.context.displace(points)
