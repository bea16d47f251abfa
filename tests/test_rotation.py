import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from gcodedeformer.config import ROTATION_MAX_ITERATIONS, ROTATION_TOLERANCE
from gcodedeformer.deform.rotation import RotationSolver


BINDS = np.array([[-1.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
# Second control swung 90 degrees about the origin; seen from either pair the
# other one turned by 45 degrees about +Z
CONTROLS = np.array([[-1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])


def test_single_pair_is_identity():
    result = RotationSolver().solve([[1.0, 2.0, 3.0]], [[4.0, 5.0, 6.0]])

    assert len(result.rotations) == 1
    np.testing.assert_array_equal(result.rotations[0].as_quat(), [0.0, 0.0, 0.0, 1.0])
    assert result.iterations == [0]


def test_no_pairs():
    result = RotationSolver().solve(np.empty((0, 3)), np.empty((0, 3)))

    assert result.rotations == []
    assert result.as_quaternions().shape == (0, 4)


def test_no_motion_converges_immediately():
    binds = np.array([[0.0, 0.0, 0.0], [5.0, 0.0, 0.0], [0.0, 5.0, 2.0]])
    result = RotationSolver().solve(binds, binds)

    assert result.iterations == [1, 1, 1]
    assert all(result.converged)
    for rotation in result.rotations:
        assert rotation.magnitude() == pytest.approx(0.0, abs=1e-12)


def test_two_pairs_converge_to_relative_rotation():
    result = RotationSolver().solve(BINDS, CONTROLS)

    assert all(i < ROTATION_MAX_ITERATIONS for i in result.iterations)
    assert all(r < ROTATION_TOLERANCE for r in result.residuals)
    for rotation in result.rotations:
        np.testing.assert_allclose(rotation.as_rotvec(), [0.0, 0.0, np.pi / 4], atol=1e-6)

    # The moved pair's estimate maps its rest direction onto the current one
    rest_dir = (BINDS[0] - BINDS[1]) / 2.0
    current_dir = (CONTROLS[0] - CONTROLS[1]) / np.linalg.norm(CONTROLS[0] - CONTROLS[1])
    np.testing.assert_allclose(result.rotations[1].apply(rest_dir), current_dir, atol=1e-6)


def test_warm_start_from_solution_stops_after_one_iteration():
    solver = RotationSolver()
    first = solver.solve(BINDS, CONTROLS)
    second = solver.solve(BINDS, CONTROLS, initial=first.rotations)

    assert second.iterations == [1, 1]
    for a, b in zip(first.rotations, second.rotations):
        np.testing.assert_allclose(a.as_rotvec(), b.as_rotvec(), atol=1e-9)


def test_rigid_rotation_of_three_pairs_is_recovered():
    binds = np.array([[3.0, 0.0, 1.0], [0.0, 4.0, 1.0], [-2.0, -2.0, 1.0]])
    applied = Rotation.from_euler("z", 30, degrees=True)
    controls = applied.apply(binds) + np.array([1.0, -2.0, 0.5])

    result = RotationSolver().solve(binds, controls)

    for rotation in result.rotations:
        np.testing.assert_allclose(rotation.as_rotvec(), applied.as_rotvec(), atol=1e-6)


def test_solve_is_deterministic():
    a = RotationSolver().solve(BINDS, CONTROLS).as_quaternions()
    b = RotationSolver().solve(BINDS, CONTROLS).as_quaternions()

    assert a.tobytes() == b.tobytes()


def test_mismatched_inputs_are_rejected():
    with pytest.raises(ValueError):
        RotationSolver().solve(BINDS, CONTROLS[:1])
    with pytest.raises(ValueError):
        RotationSolver().solve(BINDS, CONTROLS, initial=[Rotation.identity()])
