"""
Main Application Window
=======================
The primary GUI container that holds the Menu Bar, the settings panel and the
3D toolpath view.

Why is this file needed?
------------------------
1. Layout: It organizes the high-level visual structure of the application.
2. Routing: It connects global actions (File -> Open / Export) and the
   picking/dragging events of the 3D view to the EditSession.
"""
import logging
import os
from typing import Optional

from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QSplitter, QFileDialog, QMessageBox, QProgressBar, QStatusBar
)
from PySide6.QtCore import Qt
from PySide6.QtGui import QAction

from gcodedeformer.controller.workers import ExportWorker
from gcodedeformer.model.io import GCodeIO, GCODE_FILE_FILTER
from gcodedeformer.model.state import DeformerParams, EditSession
from gcodedeformer.view.tabs.tab_deformer import DeformerControlPanel
from gcodedeformer.view.widgets.plot_3d import ToolpathView

logger = logging.getLogger(__name__)

VISIBLE_APP_NAME = "G-code Deformer"


class MainWindow(QMainWindow):
    def __init__(self, session: EditSession) -> None:
        super().__init__()
        self.session: EditSession = session
        self.is_modified: bool = False
        self.export_worker: Optional[ExportWorker] = None

        self.update_window_title()
        self.resize(1400, 900)

        # --- MAIN CONTAINER ---
        main_widget = QWidget()
        self.setCentralWidget(main_widget)

        main_layout = QVBoxLayout(main_widget)
        main_layout.setContentsMargins(0, 0, 0, 0)
        main_layout.setSpacing(0)

        splitter = QSplitter(Qt.Horizontal)
        main_layout.addWidget(splitter)

        # --- LEFT SIDE: Settings & Pairs ---
        self.deformer_panel = DeformerControlPanel(self.session)
        splitter.addWidget(self.deformer_panel)

        # --- RIGHT SIDE: 3D Visualization ---
        self.visualizer = ToolpathView()
        splitter.addWidget(self.visualizer)

        # Set initial proportions (1 part sidebar : 4 parts 3D view)
        splitter.setSizes([350, 1050])

        # --- STATUS BAR ---
        self.setStatusBar(QStatusBar())
        self.progress = QProgressBar()
        self.progress.setRange(0, 100)
        self.progress.setVisible(False)
        self.progress.setTextVisible(True)
        self.statusBar().addPermanentWidget(self.progress)

        # --- SIGNAL CONNECTIONS ---
        self.deformer_panel.params_changed.connect(self.on_params_changed)
        self.deformer_panel.pair_delete_requested.connect(self.on_pair_delete_requested)
        self.visualizer.point_picked.connect(self.on_point_picked)
        self.visualizer.point_dragged.connect(self.on_point_dragged)

        # --- ACTIONS & MENUS ---
        self._create_actions()
        self._create_menus()

        self.visualizer.set_travel_visible(not self.session.params.hide_travel_moves)
        self.refresh_ui_from_state()

    def _create_actions(self) -> None:
        # File Actions
        self.act_open = QAction("Open G-code...", self)
        self.act_open.setShortcut("Ctrl+O")
        self.act_open.triggered.connect(self.on_file_open)

        self.act_export = QAction("Export Deformed G-code...", self)
        self.act_export.setShortcut("Ctrl+E")
        self.act_export.triggered.connect(self.on_file_export)
        self.act_export.setEnabled(False)  # Disabled until a toolpath exists

        self.act_exit = QAction("Exit", self)
        self.act_exit.triggered.connect(self.close)

        # Edit Actions
        self.act_reset_pairs = QAction("Remove All Control Pairs", self)
        self.act_reset_pairs.triggered.connect(self.on_reset_pairs)

    def _create_menus(self) -> None:
        menu_bar = self.menuBar()

        file_menu = menu_bar.addMenu("&File")
        file_menu.addAction(self.act_open)
        file_menu.addAction(self.act_export)
        file_menu.addSeparator()
        file_menu.addAction(self.act_exit)

        edit_menu = menu_bar.addMenu("&Edit")
        edit_menu.addAction(self.act_reset_pairs)

    # --- HELPER METHODS ---
    def update_window_title(self) -> None:
        """Updates the window title based on filename and dirty state."""
        filename = self.session.filepath if self.session.filepath else "Untitled"
        title = f"{VISIBLE_APP_NAME} - [{os.path.basename(filename)}"
        if self.is_modified:
            title += "*"
        title += "]"
        self.setWindowTitle(title)

    def set_modified(self, modified: bool) -> None:
        """Sets the dirty flag and updates title if changed."""
        if self.is_modified != modified:
            self.is_modified = modified
            self.update_window_title()

    # --- VIEW SLOTS ---

    def on_point_picked(self, position) -> None:
        if not self.session.is_loaded:
            return
        # Picked points live on the deformed path; pairs are placed where the user clicked
        self.session.add_pair(position)
        self._after_pairs_changed()

    def on_point_dragged(self, index: int, position) -> None:
        if index >= len(self.session.pairs):
            return
        self.session.move_point(index, position)
        self.visualizer.update_positions(self.session.deformed_positions)
        self.deformer_panel.refresh_pairs()
        self.set_modified(True)

    def on_pair_delete_requested(self, index: int) -> None:
        self.session.remove_pair(index)
        self._after_pairs_changed()

    def on_reset_pairs(self) -> None:
        for index in reversed(range(len(self.session.pairs))):
            self.session.remove_pair(index)
        self._after_pairs_changed()

    def on_params_changed(self, params: DeformerParams) -> None:
        drag_mode_changed = params.edit_attachment_points != self.session.params.edit_attachment_points
        try:
            self.session.set_params(params)
        except ValueError as e:
            QMessageBox.warning(self, "Invalid Setting", str(e))
            return

        self.visualizer.set_travel_visible(not params.hide_travel_moves)
        self.visualizer.update_positions(self.session.deformed_positions)
        if drag_mode_changed:
            self._redraw_pairs()

    def _after_pairs_changed(self) -> None:
        self._redraw_pairs()
        self.visualizer.update_positions(self.session.deformed_positions)
        self.deformer_panel.refresh_pairs()
        self.deformer_panel.update_status_from_state()
        self.set_modified(True)

    def _redraw_pairs(self) -> None:
        self.visualizer.set_pairs(
            self.session.bind_positions,
            self.session.control_positions,
            drag_binds=self.session.params.edit_attachment_points,
        )

    # --- FILE SLOTS ---

    def on_file_open(self) -> None:
        fname, _ = QFileDialog.getOpenFileName(self, "Open G-code", "", GCODE_FILE_FILTER)
        if fname:
            try:
                GCodeIO.load_gcode(self.session, fname)

                self.is_modified = False
                self.update_window_title()

                self.refresh_ui_from_state()
            except Exception as e:
                QMessageBox.critical(self, "Error", f"Could not open file:\n{e}")

    def on_file_export(self) -> None:
        if not self.session.is_loaded:
            return
        if self.export_worker is not None and self.export_worker.isRunning():
            QMessageBox.information(self, "Export", "An export is already running.")
            return

        default = GCodeIO.default_export_path(self.session.filepath or "toolpath.gcode")
        fname, _ = QFileDialog.getSaveFileName(self, "Export Deformed G-code", default, GCODE_FILE_FILTER)
        if not fname:
            return

        self.progress.setValue(0)
        self.progress.setVisible(True)
        self.act_export.setEnabled(False)

        self.export_worker = ExportWorker(self.session.gcode_text, self.session.context(), fname)
        self.export_worker.progress_updated.connect(self.on_export_progress)
        self.export_worker.finished_export.connect(self.on_export_finished)
        self.export_worker.error_occurred.connect(self.on_export_error)
        self.export_worker.start()

    def on_export_progress(self, percent: int, msg: str) -> None:
        self.progress.setValue(percent)
        self.statusBar().showMessage(msg)

    def on_export_finished(self, filepath: str) -> None:
        self.progress.setVisible(False)
        self.act_export.setEnabled(True)
        self.statusBar().showMessage(f"Exported to {filepath}", 5000)
        self.set_modified(False)

    def on_export_error(self, message: str) -> None:
        self.progress.setVisible(False)
        self.act_export.setEnabled(True)
        QMessageBox.critical(self, "Export Failed", f"Could not export G-code:\n{message}")

    def refresh_ui_from_state(self) -> None:
        """
        After loading a file, the State is updated, but the Widgets are old.
        We need to force the Widgets to read from the State again.
        """
        if self.session.is_loaded:
            self.visualizer.set_toolpath(
                self.session.rest_positions,
                self.session.toolpath.extrusion_vertex_count,
            )
            self.visualizer.update_positions(self.session.deformed_positions)
        else:
            self.visualizer.clear()
        self._redraw_pairs()

        self.deformer_panel.refresh_pairs()
        self.deformer_panel.update_status_from_state()
        self.act_export.setEnabled(self.session.is_loaded)

    def closeEvent(self, event, /) -> None:
        """Ask before discarding an un-exported deformation."""
        if self.is_modified and self.session.pairs:
            reply = QMessageBox.question(
                self,
                "Discard Changes?",
                "The deformation has not been exported. Quit anyway?",
                QMessageBox.Discard | QMessageBox.Cancel
            )
            if reply == QMessageBox.Cancel:
                event.ignore()
                return

        if self.export_worker is not None and self.export_worker.isRunning():
            self.export_worker.wait()

        # Close the PyVista plotter safely
        if self.visualizer and self.visualizer.plotter:
            self.visualizer.plotter.close()

        event.accept()
