import pytest

from gcodedeformer.model.state import DeformerParams, EditSession


SQUARE_GCODE = "\n".join([
    "; generated by a slicer",
    "G90",
    "M104 S200",
    "G0 X0.00 Y0.00 Z0.20 F3000.00",
    "G1 X10.00 Y0.00 Z0.20 E0.50 F1200.00",
    "G1 X10.00 Y10.00 Z0.20 E1.00",
    "G1 X0.00 Y10.00 Z0.20 E1.50 ; outer wall",
    "G1 X0.00 Y0.00 Z0.20 E2.00",
    "",
    "G0 X0.00 Y0.00 Z0.40",
    "G1 X10.00 Y0.00 Z0.40 E2.50",
    "G1 X10.00 Y10.00 Z0.40 E3.00",
])


@pytest.fixture
def square_gcode() -> str:
    return SQUARE_GCODE


@pytest.fixture
def plain_params() -> DeformerParams:
    """Translation only, no ground bias."""
    return DeformerParams(lock_to_ground=False, fall_off_exponent=2.0, solve_rotation=False)


@pytest.fixture
def session(square_gcode, plain_params) -> EditSession:
    s = EditSession()
    s.set_params(plain_params)
    s.load_gcode(square_gcode)
    return s
