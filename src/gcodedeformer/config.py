"""
Configuration & Numerical Constants
===================================
This module serves as the central registry for the tuning constants of the
deformation engine and the default values of the user-facing settings.

Why is this file needed?
------------------------
1. Abstraction: It prevents magic numbers (epsilons, iteration caps, the
   ground plane height) from being scattered across the solver modules.
2. Consistency: The viewer, the edit session and the G-code re-synthesizer
   all read the same defaults, so a toolpath exported from the GUI matches
   one produced by calling the engine directly.

Exports:
    GROUND_PLANE_Z (float): Height of the reference plane used by ground lock.
    WEIGHT_EPSILON (float): Added to bind distances before the fall-off power.
    ROTATION_MAX_ITERATIONS (int): Iteration cap of the local rotation solve.
    ROTATION_TOLERANCE (float): Convergence threshold on the correction angle.
    ROTATION_DENOMINATOR_EPSILON (float): Keeps the angular velocity finite.
    LAYER_SAMPLE_OFFSET (float): Z offset of the "above" sample in re-synthesis.
    OUTPUT_DECIMALS (int): Decimal places of rewritten G-code parameters.
"""

# Weight field
GROUND_PLANE_Z: float = 0.3
WEIGHT_EPSILON: float = 1e-3

# Rotation solver
ROTATION_MAX_ITERATIONS: int = 50
ROTATION_TOLERANCE: float = 1e-9
ROTATION_DENOMINATOR_EPSILON: float = 1e-7

# G-code re-synthesis
LAYER_SAMPLE_OFFSET: float = 0.1
OUTPUT_DECIMALS: int = 2

# Default user settings (mirrors the settings panel)
DEFAULT_LOCK_TO_GROUND: bool = True
DEFAULT_SOLVE_ROTATION: bool = True
DEFAULT_FALL_OFF_EXPONENT: float = 2.0
DEFAULT_EDIT_ATTACHMENT_POINTS: bool = False
DEFAULT_HIDE_TRAVEL_MOVES: bool = True

# Rendering
POINT_RADIUS: float = 0.5
