"""
Application Initialization
==========================
This module constructs the MVC (Model-View-Controller) architecture and starts
the Qt Event Loop.

Why is this file needed?
------------------------
It acts as the "Dependency Injection" root. It:
1. Instantiates the Global Data Model (EditSession).
2. Instantiates the Main Window (View).
3. Passes the Model into the View so they can communicate.
4. Prevents circular import errors by being the orchestrator.
"""
import argparse
import sys
from typing import Optional, Sequence

from PySide6.QtWidgets import QApplication

from gcodedeformer.logging_config import default_log_path, setup_logging
from gcodedeformer.model.io import GCodeIO
from gcodedeformer.model.state import EditSession
from gcodedeformer.view.main_window import MainWindow


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="gcodedeformer", description="Visually deform G-code toolpaths.")
    parser.add_argument("gcode", nargs="?", help="G-code file to open on start-up")
    parser.add_argument("--debug", action="store_true", help="log per-pair rotation convergence")
    parser.add_argument(
        "--log-file",
        nargs="?",
        const="",
        default=None,
        help="also write the log to a file (without a path: next to the opened G-code)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)

    # 1. Setup Logging (Console + Optional File)
    log_file = None
    if args.log_file is not None:
        log_file = args.log_file or default_log_path(args.gcode)
    setup_logging(debug_solver=args.debug, log_file=log_file)

    # 2. Create the Qt Application
    app = QApplication(sys.argv[:1])
    app.setApplicationName("G-code Deformer")

    # 3. Initialize the Data Model; a bad start-up file leaves it empty
    session = EditSession()
    if args.gcode:
        GCodeIO.try_load_gcode(session, args.gcode)

    # 4. Initialize the Main Window, passing the model
    window = MainWindow(session)
    window.show()

    # 5. Start Event Loop
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
