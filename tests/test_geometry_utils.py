import numpy as np
import pytest

from gcodedeformer.model.geometry_utils import as_point, as_points, normalize


def test_normalize_rows_and_zero_vectors():
    out = normalize(np.array([[3.0, 0.0, 4.0], [0.0, 0.0, 0.0]]))

    np.testing.assert_allclose(out, [[0.6, 0.0, 0.8], [0.0, 0.0, 0.0]])
    np.testing.assert_allclose(normalize(np.array([0.0, 2.0, 0.0])), [0.0, 1.0, 0.0])


def test_as_points_shapes():
    assert as_points([]).shape == (0, 3)
    assert as_points([1.0, 2.0, 3.0]).shape == (1, 3)
    assert as_points([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]).shape == (2, 3)
    with pytest.raises(ValueError):
        as_points([[1.0, 2.0]])


def test_as_point_requires_three_components():
    np.testing.assert_array_equal(as_point((1, 2, 3)), [1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        as_point([1.0, 2.0, 3.0, 4.0])
