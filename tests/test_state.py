import numpy as np
import pytest

from gcodedeformer.model.state import ControlPair, DeformerParams, EditSession


def test_load_builds_rest_and_deformed_buffers(session):
    assert session.is_loaded
    assert session.vertex_count == 16
    assert session.toolpath.extrusion_vertex_count == 12
    assert session.pairs == []
    np.testing.assert_array_equal(session.deformed_positions, session.rest_positions)


def test_new_pair_does_not_move_anything(session):
    index = session.add_pair([10.0, 10.0, 0.2])

    assert index == 0
    np.testing.assert_allclose(session.deformed_positions, session.rest_positions)


def test_dragging_the_only_control_translates_the_whole_path(session):
    session.add_pair([10.0, 10.0, 0.2])
    session.move_control(0, [10.0, 10.0, 1.2])

    np.testing.assert_allclose(session.deformed_positions, session.rest_positions + [0.0, 0.0, 1.0])
    np.testing.assert_allclose(session.pairs[0].translation, [0.0, 0.0, 1.0])


def test_control_moves_reuse_the_weights(session):
    session.add_pair([0.0, 0.0, 0.2])
    session.add_pair([10.0, 10.0, 0.4])
    weights = session.deformer.weights

    session.move_control(1, [10.0, 12.0, 0.4])

    assert session.deformer.weights is weights


def test_move_point_follows_edit_mode(session):
    session.add_pair([0.0, 0.0, 0.2])

    session.move_point(0, [1.0, 0.0, 0.2])
    np.testing.assert_allclose(session.pairs[0].control_position, [1.0, 0.0, 0.2])

    session.set_params(DeformerParams(
        lock_to_ground=False, fall_off_exponent=2.0, solve_rotation=False, edit_attachment_points=True,
    ))
    weights = session.deformer.weights
    session.move_point(0, [5.0, 5.0, 0.2])

    np.testing.assert_allclose(session.pairs[0].bind_position, [5.0, 5.0, 0.2])
    np.testing.assert_allclose(session.pairs[0].control_position, [1.0, 0.0, 0.2])
    assert session.deformer.weights is not weights


def test_removing_the_last_pair_restores_rest_pose(session):
    session.add_pair([0.0, 0.0, 0.2])
    session.move_control(0, [3.0, 3.0, 3.0])
    session.remove_pair(0)

    assert session.bind_positions.shape == (0, 3)
    np.testing.assert_array_equal(session.deformed_positions, session.rest_positions)


def test_bad_index_is_rejected(session):
    session.add_pair([0.0, 0.0, 0.2])

    with pytest.raises(ValueError):
        session.remove_pair(1)
    with pytest.raises(ValueError):
        session.move_control(-1, [0.0, 0.0, 0.0])


def test_ground_lock_keeps_the_first_layer_down(square_gcode):
    session = EditSession()
    session.load_gcode(square_gcode)
    assert session.params.lock_to_ground

    session.add_pair([10.0, 10.0, 0.4])
    session.move_control(0, [10.0, 10.0, 5.4])

    dz = session.deformed_positions[:, 2] - session.rest_positions[:, 2]
    assert np.all(dz < 5.0)
    assert dz.max() > 4.9


def test_rotation_is_solved_per_pair(session):
    session.set_params(DeformerParams(lock_to_ground=False, fall_off_exponent=2.0, solve_rotation=True))
    session.add_pair([-1.0, 0.0, 0.2])
    session.add_pair([1.0, 0.0, 0.2])
    session.move_control(1, [0.0, 1.0, 0.2])

    for pair in session.pairs:
        np.testing.assert_allclose(pair.orientation.as_rotvec(), [0.0, 0.0, np.pi / 4], atol=1e-6)

    session.set_params(DeformerParams(lock_to_ground=False, fall_off_exponent=2.0, solve_rotation=False))
    assert all(pair.orientation.magnitude() == 0.0 for pair in session.pairs)


def test_context_is_a_snapshot(session):
    session.add_pair([0.0, 0.0, 0.2])
    context = session.context()

    session.move_control(0, [0.0, 0.0, 9.0])

    np.testing.assert_array_equal(context.control_positions, [[0.0, 0.0, 0.2]])


def test_loading_drops_previous_pairs(session, square_gcode):
    session.add_pair([0.0, 0.0, 0.2])
    session.load_gcode(square_gcode, filepath="other.gcode")

    assert session.pairs == []
    assert session.filepath == "other.gcode"


def test_export_without_pairs_is_unchanged(session, square_gcode):
    assert session.export_gcode() == square_gcode


def test_export_uses_current_pairs(session):
    session.add_pair([0.0, 0.0, 0.2])
    session.move_control(0, [0.0, 0.0, 1.2])

    lines = session.export_gcode().split("\n")

    # The first travel starts at the deformed origin, so it is 6x longer
    assert lines[3] == "G0 X0.00 Y0.00 Z1.20 F500.00"
    assert lines[4].startswith("G1 X10.00 Y0.00 Z1.20 E0.50")


def test_reset_clears_everything(session):
    session.add_pair([0.0, 0.0, 0.2])
    session.reset()

    assert not session.is_loaded
    assert session.vertex_count == 0
    assert session.pairs == []
    assert session.params == DeformerParams()


def test_params_validation():
    with pytest.raises(ValueError):
        DeformerParams(fall_off_exponent=0.0)

    a = DeformerParams()
    assert not a.affects_weights(DeformerParams(hide_travel_moves=not a.hide_travel_moves))
    assert a.affects_weights(DeformerParams(lock_to_ground=not a.lock_to_ground))


def test_control_pair_starts_coincident():
    pair = ControlPair.at([1.0, 2.0, 3.0])

    np.testing.assert_array_equal(pair.translation, [0.0, 0.0, 0.0])
    assert pair.bind_position is not pair.control_position


def test_unmoved_pairs_export_the_input_unchanged(square_gcode):
    # Default settings: ground lock and rotation solving both on
    session = EditSession()
    session.load_gcode(square_gcode)
    session.add_pair([0.0, 0.0, 0.2])
    session.add_pair([10.0, 10.0, 0.4])

    np.testing.assert_array_equal(session.deformed_positions, session.rest_positions)
    assert session.export_gcode() == square_gcode
