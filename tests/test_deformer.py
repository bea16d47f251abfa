import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from gcodedeformer.deform.deformer import DeformationContext, Deformer
from gcodedeformer.model.state import DeformerParams


PLAIN = DeformerParams(lock_to_ground=False, fall_off_exponent=2.0, solve_rotation=False)
ROTATING = DeformerParams(lock_to_ground=False, fall_off_exponent=2.0, solve_rotation=True)


@pytest.fixture
def grid():
    xs, ys = np.meshgrid(np.linspace(-10, 10, 5), np.linspace(-10, 10, 5))
    return np.column_stack([xs.ravel(), ys.ravel(), np.full(xs.size, 2.0)])


def test_empty_context_is_identity(grid):
    context = DeformationContext()

    np.testing.assert_array_equal(context.displace(grid), np.zeros_like(grid))
    np.testing.assert_array_equal(context.deform(grid), grid)


def test_single_pair_translates_everything(grid):
    context = DeformationContext.build([[0.0, 0.0, 2.0]], [[1.0, -2.0, 3.0]], PLAIN)

    np.testing.assert_allclose(context.deform(grid), grid + [1.0, -2.0, 1.0])


def test_pair_with_no_translation_does_nothing(grid):
    binds = [[0.0, 0.0, 2.0], [5.0, 5.0, 2.0]]
    context = DeformationContext.build(binds, binds, ROTATING)

    np.testing.assert_allclose(context.deform(grid), grid, atol=1e-12)


def test_bind_point_lands_near_its_control():
    binds = [[0.0, 0.0, 0.0], [20.0, 0.0, 0.0]]
    controls = [[0.0, 0.0, 3.0], [20.0, 0.0, 0.0]]
    context = DeformationContext.build(binds, controls, PLAIN)

    moved = context.deform(binds)

    # Influence of the far pair at the bind point is about eps^2 / 20^2
    np.testing.assert_allclose(moved, controls, atol=1e-6)


def test_rigid_rotation_is_reproduced():
    binds = np.array([[3.0, 0.0, 0.0], [0.0, 4.0, 0.0], [-2.0, -2.0, 0.0]])
    applied = Rotation.from_euler("z", 30, degrees=True)
    context = DeformationContext.build(binds, applied.apply(binds), ROTATING)

    points = np.array([[1.0, 1.0, 0.0], [5.0, -3.0, 0.0], [0.0, 0.0, 2.0]])
    np.testing.assert_allclose(context.deform(points), applied.apply(points), atol=1e-6)


def test_rotations_are_ignored_when_solving_is_off():
    context = DeformationContext.build(
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]],
        [[0.0, 0.0, 0.0], [0.0, 1.0, 0.0]],
        PLAIN,
        rotations=[Rotation.from_euler("z", 10, degrees=True)] * 2,
    )

    assert all(r.magnitude() == 0.0 for r in context.rotations)


def test_context_is_read_only():
    context = DeformationContext.build([[0.0, 0.0, 0.0]], [[1.0, 0.0, 0.0]], PLAIN)

    with pytest.raises(ValueError):
        context.control_positions[0, 0] = 5.0


def test_context_rejects_mismatched_inputs():
    with pytest.raises(ValueError):
        DeformationContext(bind_positions=[[0.0, 0.0, 0.0]], control_positions=np.empty((0, 3)))
    with pytest.raises(ValueError):
        DeformationContext(
            bind_positions=[[0.0, 0.0, 0.0]],
            control_positions=[[0.0, 0.0, 0.0]],
            rotations=(Rotation.identity(), Rotation.identity()),
        )
    with pytest.raises(ValueError):
        DeformationContext(fall_off_exponent=0.0)


def test_deformer_reuses_weights_for_control_moves(grid):
    deformer = Deformer(grid)
    binds = [[0.0, 0.0, 2.0], [10.0, 10.0, 2.0]]

    deformer.update(DeformationContext.build(binds, binds, PLAIN))
    weights = deformer.weights

    deformer.update(DeformationContext.build(binds, [[0.0, 0.0, 4.0], [10.0, 10.0, 2.0]], PLAIN))

    assert deformer.weights is weights
    assert deformer.deformed_positions[12, 2] > 3.9


def test_deformer_rebinds_when_binds_move(grid):
    deformer = Deformer(grid)
    deformer.update(DeformationContext.build([[0.0, 0.0, 2.0]], [[0.0, 0.0, 2.0]], PLAIN))
    weights = deformer.weights

    deformer.update(DeformationContext.build([[0.0, 0.0, 2.0], [5.0, 0.0, 2.0]], [[0.0, 0.0, 2.0], [5.0, 0.0, 2.0]], PLAIN))

    assert deformer.weights is not weights
    assert deformer.weights.shape == (25, 2)


def test_deformed_matches_rest_plus_displacement(grid):
    deformer = Deformer(grid)
    context = DeformationContext.build(
        [[0.0, 0.0, 2.0], [10.0, 0.0, 2.0]],
        [[1.0, 0.0, 2.0], [10.0, 2.0, 2.0]],
        ROTATING,
    )
    deformer.update(context)

    np.testing.assert_allclose(deformer.deformed_positions, grid + context.displace(grid), atol=1e-12)
    np.testing.assert_allclose(deformer.displace(grid), context.displace(grid), atol=1e-12)
    assert not deformer.rest_positions.flags.writeable
