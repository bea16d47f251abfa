"""
Visual deformation of 3D-printer toolpaths.

The numerical core (interpreter, weights, rotations, displacement,
re-synthesis) is importable without Qt.
"""
from gcodedeformer.deform.deformer import DeformationContext, Deformer
from gcodedeformer.deform.rotation import RotationSolver
from gcodedeformer.deform.weights import compute_weights, compute_weight_matrix
from gcodedeformer.gcode.interpreter import GCodeInterpreter
from gcodedeformer.gcode.resynthesizer import GCodeResynthesizer
from gcodedeformer.model.io import APP_VERSION as __version__
from gcodedeformer.model.state import ControlPair, DeformerParams, EditSession

__all__ = [
    "__version__",
    "ControlPair",
    "DeformationContext",
    "Deformer",
    "DeformerParams",
    "EditSession",
    "GCodeInterpreter",
    "GCodeResynthesizer",
    "RotationSolver",
    "compute_weights",
    "compute_weight_matrix",
]
