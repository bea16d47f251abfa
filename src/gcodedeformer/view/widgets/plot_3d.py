"""
3D Visualization Widget (PyVista Wrapper) - Toolpath Editing
"""

from __future__ import annotations

from functools import partial
from typing import Optional

import logging
import numpy as np
import numpy.typing as npt

from PySide6.QtWidgets import QWidget, QVBoxLayout
from PySide6.QtCore import Signal

from pyvistaqt import QtInteractor
import pyvista as pv

from gcodedeformer.config import POINT_RADIUS

logger = logging.getLogger(__name__)

EXTRUSION_COLOR = "#00FF00"
TRAVEL_COLOR = "#FF2200"
BIND_COLOR = "#888888"
CONTROL_COLOR = "#00FFFF"
BACKGROUND_COLOR = "#222222"


class ToolpathView(QWidget):
    """
    PyVista/Qt view of a toolpath with:
      - extrusion segments (green) and travel segments (red, optional),
      - grey bind points and draggable cyan control points,
      - hover + 'P' picking on the toolpath to place new control pairs.
    """
    # Emitted with the picked position on the toolpath
    point_picked = Signal(object)
    # Emitted with (pair index, new position) while a handle is dragged
    point_dragged = Signal(int, object)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)

        self.layout_box: QVBoxLayout = QVBoxLayout(self)
        self.layout_box.setContentsMargins(0, 0, 0, 0)

        self.plotter: QtInteractor = QtInteractor(self)
        self.layout_box.addWidget(self.plotter)

        self._init_plotter()

        # --- Actors state ---
        self._extrusion_mesh: Optional[pv.PolyData] = None
        self._travel_mesh: Optional[pv.PolyData] = None
        self._extrusion_actor: Optional[pv.Actor] = None
        self._travel_actor: Optional[pv.Actor] = None
        self._bind_actor: Optional[pv.Actor] = None

        # Number of leading vertices in the shared buffer that are extrusion vertices
        self._n_extrusion: int = 0
        self._travel_visible: bool = False

    def _init_plotter(self) -> None:
        self.plotter.set_background(BACKGROUND_COLOR)
        self.plotter.add_axes()
        self.plotter.enable_point_picking(
            callback=self._on_point_picked,
            show_message="Hover the toolpath and press P to add a control point",
            show_point=False,
            left_clicking=False,
        )

    # ------------------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------------------

    def set_toolpath(self, rest_positions: npt.NDArray[np.float64], n_extrusion: int, reset_camera: bool = True) -> None:
        """
        Replace the rendered toolpath.

        Args:
            rest_positions: (N, 3) vertices, extrusion vertices first, in segment pairs.
            n_extrusion: How many of the leading vertices are extrusion vertices.
        """
        self._clear_toolpath()
        self._n_extrusion = n_extrusion

        extrusion = rest_positions[:n_extrusion]
        travel = rest_positions[n_extrusion:]

        if len(extrusion):
            self._extrusion_mesh = pv.line_segments_from_points(extrusion)
            self._extrusion_actor = self.plotter.add_mesh(
                self._extrusion_mesh, color=EXTRUSION_COLOR, line_width=1.0, name="extrusion"
            )
        if len(travel):
            self._travel_mesh = pv.line_segments_from_points(travel)
            self._travel_actor = self.plotter.add_mesh(
                self._travel_mesh, color=TRAVEL_COLOR, line_width=1.0, opacity=0.5, name="travel"
            )
            self._travel_actor.SetVisibility(self._travel_visible)

        logger.info(f"Rendering toolpath: {len(extrusion)} extrusion / {len(travel)} travel vertices.")
        if reset_camera:
            self.plotter.reset_camera()
        self.plotter.render()

    def update_positions(self, deformed_positions: npt.NDArray[np.float64]) -> None:
        """Push a new deformed buffer (same order and count as the rest positions)."""
        if self._extrusion_mesh is not None:
            self._extrusion_mesh.points = deformed_positions[:self._n_extrusion]
        if self._travel_mesh is not None:
            self._travel_mesh.points = deformed_positions[self._n_extrusion:]
        self.plotter.render()

    def set_travel_visible(self, visible: bool) -> None:
        self._travel_visible = visible
        if self._travel_actor is not None:
            self._travel_actor.SetVisibility(visible)
            self.plotter.render()

    def set_pairs(
        self,
        bind_positions: npt.NDArray[np.float64],
        control_positions: npt.NDArray[np.float64],
        drag_binds: bool = False,
    ) -> None:
        """
        Redraw the pair handles. The draggable handle is the control point, or
        the bind point when attachment editing is on.
        """
        self.plotter.clear_sphere_widgets()
        if self._bind_actor is not None:
            self.plotter.remove_actor(self._bind_actor)
            self._bind_actor = None

        static = control_positions if drag_binds else bind_positions
        handles = bind_positions if drag_binds else control_positions
        handle_color = BIND_COLOR if drag_binds else CONTROL_COLOR
        static_color = CONTROL_COLOR if drag_binds else BIND_COLOR

        if len(static):
            self._bind_actor = self.plotter.add_mesh(
                pv.PolyData(np.asarray(static, dtype=np.float64)),
                color=static_color,
                point_size=12.0,
                render_points_as_spheres=True,
                pickable=False,
                name="static_points",
            )

        for index, center in enumerate(handles):
            self.plotter.add_sphere_widget(
                partial(self._on_handle_moved, index),
                center=tuple(center),
                radius=POINT_RADIUS,
                color=handle_color,
                test_callback=False,
                interaction_event="always",
            )
        self.plotter.render()

    def clear(self) -> None:
        self.plotter.clear_sphere_widgets()
        self._clear_toolpath()
        if self._bind_actor is not None:
            self.plotter.remove_actor(self._bind_actor)
            self._bind_actor = None
        self.plotter.render()

    # ------------------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------------------

    def _clear_toolpath(self) -> None:
        for actor in (self._extrusion_actor, self._travel_actor):
            if actor is not None:
                self.plotter.remove_actor(actor)
        self._extrusion_actor = None
        self._travel_actor = None
        self._extrusion_mesh = None
        self._travel_mesh = None

    def _on_point_picked(self, point) -> None:
        if point is None:
            return
        self.point_picked.emit(np.asarray(point, dtype=np.float64))

    def _on_handle_moved(self, index: int, center) -> None:
        self.point_dragged.emit(index, np.asarray(center, dtype=np.float64))

    def closeEvent(self, event) -> None:
        self.plotter.close()
        super().closeEvent(event)
