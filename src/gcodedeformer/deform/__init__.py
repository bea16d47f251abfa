"""
Deformation Engine
==================
The numerical core of the editor.

Why is this file needed?
------------------------
1. Weights: It spreads the influence of a sparse set of control pairs over
   every toolpath vertex (inverse-distance fall-off, optional ground lock).
2. Rotations: It estimates a local rotation per control pair from how its
   neighbours moved.
3. Displacement: It blends translations and rotations into a displacement
   for any point, which the viewer renders and the G-code writer applies.

Note: This package should be pure Python/NumPy/SciPy and should NOT import PySide6.
"""
from gcodedeformer.deform.weights import compute_weights, compute_weight_matrix
from gcodedeformer.deform.rotation import RotationSolver, RotationSolveResult
from gcodedeformer.deform.deformer import DeformationContext, Deformer

__all__ = [
    "compute_weights",
    "compute_weight_matrix",
    "RotationSolver",
    "RotationSolveResult",
    "DeformationContext",
    "Deformer",
]
