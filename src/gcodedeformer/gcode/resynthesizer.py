"""
G-code Re-synthesis
===================
Rewrites a G-code program so the printed part follows the deformed toolpath.

Every absolute G0/G1 endpoint is pushed through the displacement field, and
the extrusion is rescaled so roughly the same amount of material lands on a
stretched or compressed path. Everything else in the file (comments,
temperatures, fans, G92 resets, relative-mode moves) is copied verbatim, so
the output has exactly as many lines as the input.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np

from gcodedeformer.config import LAYER_SAMPLE_OFFSET, OUTPUT_DECIMALS
from gcodedeformer.gcode.interpreter import (
    ABSOLUTE_COMMAND,
    RELATIVE_COMMAND,
    SET_POSITION_COMMAND,
    GCodeCommand,
    MotionState,
    parse_command,
)

if TYPE_CHECKING:
    from gcodedeformer.deform.deformer import DeformationContext

logger = logging.getLogger(__name__)

# Words the rewritten move replaces
_MOTION_AXES = ("x", "y", "z", "e", "f")


@dataclass
class ResynthesisStats:
    """Return object containing re-synthesis metadata."""
    total_lines: int = 0
    moves_deformed: int = 0
    relative_moves_skipped: int = 0


class GCodeResynthesizer:
    """
    Applies a `DeformationContext` to G-code text.

    Two motion states are walked side by side: `original` follows the source
    program, `deformed` follows what has actually been written out. For a
    move from original A to original B the writer emits deformed B, and
    scales the extrusion by

        stretch = |deformed B - deformed A| / |B - A|      (1.0 for zero-length moves)
        squash  = |deformed(B + dz) - deformed B| / dz     (dz = LAYER_SAMPLE_OFFSET)
        scalar  = stretch * squash
        E_out   = E_prev_out + (E_B - E_A) * scalar ** 2
        F_out   = F / scalar

    The squared scalar compounds the lateral and vertical corrections and is
    kept for compatibility with files produced by earlier versions.
    """

    def __init__(
        self,
        context: DeformationContext,
        decimals: int = OUTPUT_DECIMALS,
        sample_offset: float = LAYER_SAMPLE_OFFSET,
    ) -> None:
        self.context = context
        self.decimals = decimals
        self.sample_offset = sample_offset

        self.original: MotionState = MotionState()
        self.deformed: MotionState = MotionState()
        self.stats: ResynthesisStats = ResynthesisStats()

    def deform(
        self,
        text: str,
        callback: Optional[Callable[[int], None]] = None,
    ) -> str:
        """
        Produce the deformed program.

        Args:
            text: The original G-code.
            callback: Optional progress hook receiving a percentage (0-100).

        Returns:
            The rewritten G-code with the same line structure as `text`.

        Raises:
            TypeError: If `text` is not a string.
        """
        if not isinstance(text, str):
            raise TypeError(f"G-code must be str, got {type(text).__name__}.")

        self.original = MotionState()
        self.deformed = MotionState()
        self.stats = ResynthesisStats()

        lines = text.split("\n")
        n_lines = len(lines)
        self.stats.total_lines = n_lines
        report_every = max(n_lines // 100, 1)

        out: list[str] = []
        for i, line in enumerate(lines):
            out.append(self.process_line(line))
            if callback is not None and i % report_every == 0:
                callback(int(100 * i / n_lines))

        if self.stats.relative_moves_skipped:
            logger.warning(
                f"{self.stats.relative_moves_skipped} relative-mode move(s) were written un-deformed."
            )
        logger.info(
            f"Re-synthesized {self.stats.total_lines} lines, {self.stats.moves_deformed} moves deformed."
        )
        if callback is not None:
            callback(100)

        return "\n".join(out)

    def process_line(self, line: str) -> str:
        """Rewrite one line, advancing both motion states."""
        cmd = parse_command(line)
        if cmd is None:
            return line

        if cmd.is_move:
            if self.original.relative:
                self._advance_relative(cmd)
                return line
            return self._deform_move(cmd, line)

        if cmd.command == ABSOLUTE_COMMAND:
            self.original.relative = False
            self.deformed.relative = False
        elif cmd.command == RELATIVE_COMMAND:
            self.original.relative = True
            self.deformed.relative = True
        elif cmd.command == SET_POSITION_COMMAND:
            # The line is written as-is, so both machines now hold the literal values
            self.original.set_position(cmd.params)
            self.deformed.set_position(cmd.params)

        return line

    def _advance_relative(self, cmd: GCodeCommand) -> None:
        self.original = self.original.advance(cmd.params)
        self.deformed = self.deformed.advance(cmd.params)
        self.stats.relative_moves_skipped += 1

    def _deform_move(self, cmd: GCodeCommand, line: str) -> str:
        previous = self.original
        target = previous.advance(cmd.params)

        point = target.position
        above = point + np.array([0.0, 0.0, self.sample_offset])
        deformed_point, deformed_above = self.context.deform(np.vstack((point, above)))

        original_length = float(np.linalg.norm(point - previous.position))
        deformed_length = float(np.linalg.norm(deformed_point - self.deformed.position))
        stretch = deformed_length / original_length if original_length > 0.0 else 1.0
        squash = float(np.linalg.norm(deformed_above - deformed_point)) / self.sample_offset
        extruder_scalar = stretch * squash

        extrusion = target.e - previous.e
        new_e = self.deformed.e + extrusion * extruder_scalar * extruder_scalar

        new_f = target.f
        if "f" in cmd.params and math.isfinite(extruder_scalar) and extruder_scalar > 0.0:
            new_f = target.f / extruder_scalar

        self.deformed = MotionState(
            x=float(deformed_point[0]),
            y=float(deformed_point[1]),
            z=float(deformed_point[2]),
            e=new_e,
            f=new_f,
            extruding=target.extruding,
            relative=False,
        )
        self.original = target
        self.stats.moves_deformed += 1

        return self._format_move(cmd, line)

    def _format_move(self, cmd: GCodeCommand, line: str) -> str:
        fmt = f"{{:.{self.decimals}f}}"
        words = [cmd.command]
        for axis in ("x", "y", "z"):
            words.append(axis.upper() + fmt.format(getattr(self.deformed, axis)))
        if "e" in cmd.params:
            words.append("E" + fmt.format(self.deformed.e))
        if "f" in cmd.params:
            words.append("F" + fmt.format(self.deformed.f))

        # Unknown words ride along untouched
        words.extend(tok for tok in cmd.tokens if tok[0].lower() not in _MOTION_AXES)

        rewritten = " ".join(words)
        if cmd.comment is not None:
            rewritten += " ;" + cmd.comment
        # Keep CRLF files CRLF
        if line.endswith("\r") and not rewritten.endswith("\r"):
            rewritten += "\r"
        return rewritten
