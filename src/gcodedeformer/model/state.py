"""
Edit Session (Data Model)
=========================
This module defines the central data structure for the running application.

Why is this file needed?
------------------------
1. State Management: It holds the loaded toolpath, the control pairs and the
   deformer settings in one place.
2. Consistency: Every edit (add, remove, drag, settings change) goes through
   one method that also refreshes the deformation, so the rendered buffer
   never drifts from the rest pose plus the displacement field.
3. Decoupling: Views read from this object; the export worker receives an
   immutable snapshot of it.

Classes:
    DeformerParams: The user-facing settings.
    ControlPair: A bind point and its draggable control point.
    EditSession: The main container class.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np
from scipy.spatial.transform import Rotation

from gcodedeformer.config import (
    DEFAULT_EDIT_ATTACHMENT_POINTS,
    DEFAULT_FALL_OFF_EXPONENT,
    DEFAULT_HIDE_TRAVEL_MOVES,
    DEFAULT_LOCK_TO_GROUND,
    DEFAULT_SOLVE_ROTATION,
)
from gcodedeformer.deform.deformer import DeformationContext, Deformer
from gcodedeformer.deform.rotation import RotationSolver
from gcodedeformer.gcode.interpreter import GCodeInterpreter, Toolpath
from gcodedeformer.gcode.resynthesizer import GCodeResynthesizer
from gcodedeformer.model.geometry_utils import as_point

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


@dataclass
class DeformerParams:
    """
    Settings of the deformer.

    Only the first three affect the geometry; the last two are viewer
    behaviour.
    """
    lock_to_ground: bool = DEFAULT_LOCK_TO_GROUND
    fall_off_exponent: float = DEFAULT_FALL_OFF_EXPONENT
    solve_rotation: bool = DEFAULT_SOLVE_ROTATION
    edit_attachment_points: bool = DEFAULT_EDIT_ATTACHMENT_POINTS
    hide_travel_moves: bool = DEFAULT_HIDE_TRAVEL_MOVES

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not self.fall_off_exponent > 0:
            raise ValueError(f"Fall-off exponent must be positive, got {self.fall_off_exponent}.")

    def affects_weights(self, other: DeformerParams) -> bool:
        return (self.lock_to_ground, self.fall_off_exponent) != (other.lock_to_ground, other.fall_off_exponent)


@dataclass
class ControlPair:
    """
    A bind point (rest-frame anchor) and a control point (current-frame
    target). Created together at one position and removed together.
    """
    bind_position: npt.NDArray[np.float64]
    control_position: npt.NDArray[np.float64]
    orientation: Rotation = field(default_factory=Rotation.identity)

    @classmethod
    def at(cls, position: npt.ArrayLike) -> ControlPair:
        point = as_point(position)
        return cls(bind_position=point.copy(), control_position=point.copy())

    @property
    def translation(self) -> npt.NDArray[np.float64]:
        return self.control_position - self.bind_position


@dataclass
class EditSession:
    """
    Holds the entire state of one editing session.
    Pass this instance to your Controllers and Views.
    """
    filepath: Optional[str] = None
    gcode_text: str = ""
    toolpath: Toolpath = field(default_factory=Toolpath)
    params: DeformerParams = field(default_factory=DeformerParams)
    pairs: list[ControlPair] = field(default_factory=list)

    deformer: Deformer = field(default_factory=lambda: Deformer(np.empty((0, 3))))
    solver: RotationSolver = field(default_factory=RotationSolver)

    # --- LOADING ---

    def load_gcode(self, text: str, filepath: Optional[str] = None) -> Toolpath:
        """Parse a new program; drops all control pairs of the previous one."""
        toolpath = GCodeInterpreter().parse(text)
        self.gcode_text = text
        self.filepath = filepath
        self.toolpath = toolpath
        self.pairs = []
        self.deformer = Deformer(toolpath.rest_positions())
        self._rebind()
        logger.info(f"Loaded G-code{f' from {filepath}' if filepath else ''}: {self.vertex_count} vertices.")
        return toolpath

    def reset(self) -> None:
        """Clear all data for a new session."""
        self.filepath = None
        self.gcode_text = ""
        self.toolpath = Toolpath()
        self.params = DeformerParams()
        self.pairs = []
        self.deformer = Deformer(np.empty((0, 3)))
        logger.info("Edit session has been reset.")

    # --- PROPERTIES ---

    @property
    def is_loaded(self) -> bool:
        return bool(self.gcode_text)

    @property
    def vertex_count(self) -> int:
        return self.deformer.vertex_count

    @property
    def rest_positions(self) -> npt.NDArray[np.float64]:
        return self.deformer.rest_positions

    @property
    def deformed_positions(self) -> npt.NDArray[np.float64]:
        return self.deformer.deformed_positions

    @property
    def bind_positions(self) -> npt.NDArray[np.float64]:
        if not self.pairs:
            return np.empty((0, 3), dtype=np.float64)
        return np.vstack([p.bind_position for p in self.pairs])

    @property
    def control_positions(self) -> npt.NDArray[np.float64]:
        if not self.pairs:
            return np.empty((0, 3), dtype=np.float64)
        return np.vstack([p.control_position for p in self.pairs])

    # --- EDITS ---

    def add_pair(self, position: npt.ArrayLike) -> int:
        """Create a pair at `position` and return its index."""
        self.pairs.append(ControlPair.at(position))
        self._rebind()
        return len(self.pairs) - 1

    def remove_pair(self, index: int) -> None:
        self._check_index(index)
        del self.pairs[index]
        self._rebind()

    def move_control(self, index: int, position: npt.ArrayLike) -> None:
        """Drag a control point; weights are reused, displacement recomputed."""
        self._check_index(index)
        self.pairs[index].control_position = as_point(position)
        self._refresh()

    def move_bind(self, index: int, position: npt.ArrayLike) -> None:
        """Move an attachment point; the whole weight matrix is rebuilt."""
        self._check_index(index)
        self.pairs[index].bind_position = as_point(position)
        self._rebind()

    def move_point(self, index: int, position: npt.ArrayLike) -> None:
        """Route a drag to the bind or control half depending on the edit mode."""
        if self.params.edit_attachment_points:
            self.move_bind(index, position)
        else:
            self.move_control(index, position)

    def set_params(self, params: DeformerParams) -> None:
        params.validate()
        old = self.params
        self.params = replace(params)
        if old.affects_weights(params):
            self._rebind()
        else:
            self._refresh()

    # --- DEFORMATION ---

    def _solve_orientations(self) -> None:
        if self.params.solve_rotation and len(self.pairs) >= 2:
            result = self.solver.solve(
                self.bind_positions,
                self.control_positions,
                initial=[p.orientation for p in self.pairs],
            )
            for pair, rotation in zip(self.pairs, result.rotations):
                pair.orientation = rotation
        else:
            for pair in self.pairs:
                pair.orientation = Rotation.identity()

    def context(self) -> DeformationContext:
        """Immutable snapshot of the current deformation."""
        return DeformationContext(
            bind_positions=self.bind_positions,
            control_positions=self.control_positions,
            rotations=tuple(p.orientation for p in self.pairs),
            fall_off_exponent=self.params.fall_off_exponent,
            lock_to_ground=self.params.lock_to_ground,
            solve_rotation=self.params.solve_rotation,
        )

    def _refresh(self) -> None:
        self._solve_orientations()
        self.deformer.update(self.context())

    def _rebind(self) -> None:
        self._solve_orientations()
        self.deformer.bind(self.context())

    def export_gcode(self, callback: Optional[Callable[[int], None]] = None) -> str:
        """Re-synthesize the loaded program under the current deformation."""
        return GCodeResynthesizer(self.context()).deform(self.gcode_text, callback=callback)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.pairs):
            raise ValueError(f"No control pair with index {index} (have {len(self.pairs)}).")
