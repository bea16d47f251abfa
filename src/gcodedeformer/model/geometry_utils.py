from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy import typing as npt


def as_point(value: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """
    Coerce a 3-sequence into a float64 vector.

    Raises:
        ValueError: If the input does not hold exactly three components.
    """
    arr = np.asarray(value, dtype=np.float64).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"Expected a 3D point, got shape {arr.shape}.")
    return arr


def as_points(values: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """
    Coerce a point or a list of points into an (N, 3) float64 array.

    Raises:
        ValueError: If the trailing dimension is not 3.
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return np.empty((0, 3), dtype=np.float64)
    arr = arr.reshape(-1, arr.shape[-1]) if arr.ndim > 1 else arr.reshape(1, -1)
    if arr.shape[1] != 3:
        raise ValueError(f"Expected shape (N, 3), got {arr.shape}.")
    return arr


def normalize(vectors: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Unit vector(s) along the last axis; zero-length vectors stay zero.

    Accepts a single (3,) vector or an (N, 3) array.
    """
    norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
    out = np.zeros_like(vectors, dtype=np.float64)
    np.divide(vectors, norms, out=out, where=norms > 0.0)
    return out
