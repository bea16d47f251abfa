"""
Input/Output Manager (G-code text)
Handles reading a G-code program into the EditSession and writing the
deformed program back to disk.
"""
import logging
import os
from importlib.metadata import version, PackageNotFoundError

from gcodedeformer.model.state import EditSession

# Get module logger
logger = logging.getLogger(__name__)

try:
    APP_VERSION = version("gcodedeformer")
except PackageNotFoundError:
    APP_VERSION = "0.0.0-dev"

GCODE_FILE_FILTER = "G-code (*.gcode *.gco *.g *.nc);;All files (*)"


class GCodeIO:
    @staticmethod
    def read_text(filepath: str) -> str:
        # newline="" keeps CRLF files byte-compatible on re-export
        with open(filepath, "r", encoding="utf-8", errors="replace", newline="") as f:
            return f.read()

    @staticmethod
    def write_text(text: str, filepath: str) -> None:
        with open(filepath, "w", encoding="utf-8", newline="") as f:
            f.write(text)

    @staticmethod
    def load_gcode(session: EditSession, filepath: str) -> None:
        logger.info(f"Loading G-code from: {filepath}")
        try:
            text = GCodeIO.read_text(filepath)
            session.load_gcode(text, filepath=filepath)
        except Exception as e:
            logger.exception(f"Failed to load G-code: {e}")
            raise e

    @staticmethod
    def try_load_gcode(session: EditSession, filepath: str) -> bool:
        """Load if possible; on failure the session is left as it was."""
        try:
            GCodeIO.load_gcode(session, filepath)
        except Exception as e:
            logger.error(f"Could not open {filepath}, session left unchanged: {e}")
            return False
        return True

    @staticmethod
    def save_gcode(text: str, filepath: str) -> None:
        logger.info(f"Saving deformed G-code to: {filepath}")
        try:
            GCodeIO.write_text(text, filepath)
        except Exception as e:
            logger.exception(f"Failed to save G-code: {e}")
            raise e
        logger.info(f"G-code saved to: {filepath} ({os.path.getsize(filepath)} bytes, v{APP_VERSION})")

    @staticmethod
    def default_export_path(filepath: str) -> str:
        """`part.gcode` -> `part_deformed.gcode`"""
        root, ext = os.path.splitext(filepath)
        return f"{root}_deformed{ext or '.gcode'}"
