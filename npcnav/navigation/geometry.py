"""
Small vector helpers shared by the navigation and controller modules.

Positions and directions are numpy float arrays of shape (3,).
"""
from typing import Sequence, Union
import numpy as np

VectorLike = Union[Sequence[float], np.ndarray]

ZERO = np.zeros(3, dtype=float)


def as_vector(value: VectorLike) -> np.ndarray:
    """Convert any 3-sequence to a fresh float array of shape (3,)."""
    vec = np.array(value, dtype=float).reshape(-1)
    if vec.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {vec.shape}")
    return vec


def distance(a: VectorLike, b: VectorLike) -> float:
    return float(np.linalg.norm(as_vector(a) - as_vector(b)))


def magnitude(v: VectorLike) -> float:
    return float(np.linalg.norm(as_vector(v)))


def unit(v: VectorLike) -> np.ndarray:
    """Normalize a vector; zero-length vectors come back as zero."""
    vec = as_vector(v)
    length = np.linalg.norm(vec)
    if length == 0:
        return vec
    return vec / length


def flatten_to(point: VectorLike, height: float) -> np.ndarray:
    """Copy of `point` with its Y component replaced by `height`."""
    vec = as_vector(point)
    vec[1] = height
    return vec
