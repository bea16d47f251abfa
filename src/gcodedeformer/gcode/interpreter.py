"""
G-code Interpreter
==================
Turns raw G-code text into an absolute-position motion model and a
layer-segmented line geometry that the viewer renders and the deformer binds.

Only linear motion is understood: G0/G1 moves, G90/G91 positioning modes and
G92 position resets. Everything else (arcs, temperatures, fans, ...) is
skipped silently.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

MOVE_COMMANDS = ("G0", "G1")
ABSOLUTE_COMMAND = "G90"
RELATIVE_COMMAND = "G91"
SET_POSITION_COMMAND = "G92"

# Leading float of a parameter token, mirrors what a permissive firmware accepts
_NUMBER_RE = re.compile(r"^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


@dataclass
class GCodeCommand:
    """A single tokenized G-code line."""
    command: str
    params: dict[str, float] = field(default_factory=dict)
    # Raw parameter tokens in source order (used to carry unknown words through)
    tokens: list[str] = field(default_factory=list)
    comment: Optional[str] = None

    @property
    def is_move(self) -> bool:
        return self.command in MOVE_COMMANDS


def split_comment(line: str) -> tuple[str, Optional[str]]:
    """Split a line into its code part and its trailing `;` comment (without the `;`)."""
    code, sep, comment = line.partition(";")
    return code, (comment if sep else None)


def parse_command(line: str) -> Optional[GCodeCommand]:
    """
    Tokenize one line of G-code.

    Returns:
        The parsed command, or None for blank and comment-only lines.
    """
    code, comment = split_comment(line)
    words = code.split()
    if not words:
        return None

    params: dict[str, float] = {}
    for token in words[1:]:
        match = _NUMBER_RE.match(token[1:])
        if match is None:
            continue
        params[token[0].lower()] = float(match.group(0))

    return GCodeCommand(command=words[0].upper(), params=params, tokens=words[1:], comment=comment)


@dataclass
class MotionState:
    """Running machine state of one interpretation pass."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    e: float = 0.0
    f: float = 0.0
    extruding: bool = False
    relative: bool = False

    @property
    def position(self) -> npt.NDArray[np.float64]:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def resolve(self, axis: str, value: Optional[float]) -> float:
        """Absolute value of `axis` after a move word, honoring the positioning mode."""
        current = getattr(self, axis)
        if value is None:
            return current
        return current + value if self.relative else value

    def advance(self, params: dict[str, float]) -> MotionState:
        """
        Return the state reached by a G0/G1 with the given parameters.

        The `extruding` flag of the result tells whether this move extruded,
        i.e. whether E strictly increased.
        """
        nxt = MotionState(
            x=self.resolve("x", params.get("x")),
            y=self.resolve("y", params.get("y")),
            z=self.resolve("z", params.get("z")),
            e=self.resolve("e", params.get("e")),
            # Feed rate is modal and never relative
            f=params.get("f", self.f),
            relative=self.relative,
        )
        nxt.extruding = nxt.e - self.e > 0
        return nxt

    def set_position(self, params: dict[str, float]) -> None:
        """Apply a G92: overwrite the given axes without moving."""
        for axis in ("x", "y", "z", "e"):
            if axis in params:
                setattr(self, axis, params[axis])


@dataclass
class Layer:
    """A contiguous run of toolpath segments printed at one height."""
    z: float
    extrusion_vertices: list[tuple[float, float, float]] = field(default_factory=list)
    travel_vertices: list[tuple[float, float, float]] = field(default_factory=list)

    def add_segment(self, start: MotionState, end: MotionState, extruding: bool) -> None:
        bucket = self.extrusion_vertices if extruding else self.travel_vertices
        bucket.append((start.x, start.y, start.z))
        bucket.append((end.x, end.y, end.z))


def _stack(vertices: list[tuple[float, float, float]]) -> npt.NDArray[np.float64]:
    if not vertices:
        return np.empty((0, 3), dtype=np.float64)
    return np.asarray(vertices, dtype=np.float64)


@dataclass
class Toolpath:
    """
    The layer/segment model produced by the interpreter.

    Vertices come in pairs (segment start, segment end). The flattened order
    used everywhere downstream is: every extrusion vertex of every layer, then
    every travel vertex of every layer.
    """
    layers: list[Layer] = field(default_factory=list)

    @property
    def extrusion_vertices(self) -> npt.NDArray[np.float64]:
        return _stack([v for layer in self.layers for v in layer.extrusion_vertices])

    @property
    def travel_vertices(self) -> npt.NDArray[np.float64]:
        return _stack([v for layer in self.layers for v in layer.travel_vertices])

    @property
    def extrusion_vertex_count(self) -> int:
        return sum(len(layer.extrusion_vertices) for layer in self.layers)

    @property
    def vertex_count(self) -> int:
        return sum(len(layer.extrusion_vertices) + len(layer.travel_vertices) for layer in self.layers)

    def rest_positions(self) -> npt.NDArray[np.float64]:
        """Read-only (N, 3) array of every vertex, extrusion first then travel."""
        positions = np.vstack((self.extrusion_vertices, self.travel_vertices))
        positions.setflags(write=False)
        return positions


class GCodeInterpreter:
    """
    Parses G-code text into a `Toolpath`.

    A new layer starts when a move extrudes at a Z different from the current
    layer's Z. A Z change without extrusion never opens a layer, so travel
    hops between islands stay in the layer they belong to.
    """

    def __init__(self) -> None:
        self.state: MotionState = MotionState()
        self.layers: list[Layer] = []

    @property
    def current_layer(self) -> Optional[Layer]:
        return self.layers[-1] if self.layers else None

    def _new_layer(self, z: float) -> Layer:
        layer = Layer(z=z)
        self.layers.append(layer)
        return layer

    def parse(self, text: str) -> Toolpath:
        """
        Interpret a whole G-code program.

        Args:
            text: The G-code source. Only "\\n" separates lines, the same
                rule the re-synthesizer uses, so both walk identical lines.

        Returns:
            The toolpath with one entry per detected layer.

        Raises:
            TypeError: If `text` is not a string.
        """
        if not isinstance(text, str):
            raise TypeError(f"G-code must be str, got {type(text).__name__}.")

        self.state = MotionState()
        self.layers = []

        for line in text.split("\n"):
            cmd = parse_command(line)
            if cmd is None:
                continue
            self.execute(cmd)

        toolpath = Toolpath(layers=self.layers)
        logger.info(f"Parsed toolpath: {len(toolpath.layers)} layers, {toolpath.vertex_count} vertices.")
        return toolpath

    def execute(self, cmd: GCodeCommand) -> None:
        """Apply one command to the running state and geometry."""
        if cmd.is_move:
            line = self.state.advance(cmd.params)

            if line.extruding:
                layer = self.current_layer
                if layer is None or line.z != layer.z:
                    self._new_layer(line.z)

            layer = self.current_layer
            if layer is None:
                layer = self._new_layer(self.state.z)
            layer.add_segment(self.state, line, line.extruding)
            self.state = line

        elif cmd.command == ABSOLUTE_COMMAND:
            self.state.relative = False

        elif cmd.command == RELATIVE_COMMAND:
            self.state.relative = True

        elif cmd.command == SET_POSITION_COMMAND:
            self.state.set_position(cmd.params)

        # G2/G3 arcs and all other commands produce no geometry
