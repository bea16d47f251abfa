"""
Background Workers (Threading)
==============================
This module contains QThread subclasses for handling long-running tasks.

Why is this file needed?
------------------------
1. Responsiveness: Re-synthesizing a large print touches every motion line
   of the file. Running it on the main thread would freeze the 3D view.
2. Signals: They provide a safe way to update the GUI (Progress Bars, Logs)
   from the background process using Qt Signals.

Classes:
    ExportWorker: Re-synthesizes and writes the deformed G-code.
"""
import logging

from PySide6.QtCore import QThread, Signal

from gcodedeformer.deform.deformer import DeformationContext
from gcodedeformer.gcode.resynthesizer import GCodeResynthesizer
from gcodedeformer.model.io import GCodeIO

logger = logging.getLogger(__name__)


class ExportWorker(QThread):
    # Signals to update the UI from the background
    progress_updated = Signal(int, str)  # e.g., (10, "Deforming... 10%")
    finished_export = Signal(str)  # output path
    error_occurred = Signal(str)

    def __init__(self, gcode_text: str, context: DeformationContext, filepath: str):
        super().__init__()
        # The context is an immutable snapshot, the user may keep dragging meanwhile
        self.gcode_text = gcode_text
        self.context = context
        self.filepath = filepath

    def run(self):
        try:
            logger.info("Starting G-code export in background thread...")
            self.progress_updated.emit(0, "Deforming G-code...")

            def progress_callback(percentage: int) -> None:
                percentage = min(percentage, 98)  # Cap until the file is written
                self.progress_updated.emit(percentage, f"Deforming G-code... {percentage}%")

            resynthesizer = GCodeResynthesizer(self.context)
            text = resynthesizer.deform(self.gcode_text, callback=progress_callback)

            self.progress_updated.emit(99, "Writing file...")
            GCodeIO.save_gcode(text, self.filepath)

            stats = resynthesizer.stats
            self.progress_updated.emit(100, f"Exported {stats.moves_deformed} moves.")
            self.finished_export.emit(self.filepath)

        except Exception as e:
            logger.error(f"Error in ExportWorker: {e}")
            self.error_occurred.emit(str(e))
