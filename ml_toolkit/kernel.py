"""Dense matrix helpers shared by every trainer.

All operands are promoted to 2-D float arrays (rows = samples). Element-wise
operations accept a scalar, a same-shape matrix, a single row broadcast over
all rows, or a single column broadcast over all columns. Division and
logarithms add ``EPSILON`` so degenerate inputs never produce inf/nan.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Union

import numpy as np

from .utils import ConfigurationError

EPSILON = 1e-9

Operand = Union[float, int, np.ndarray]


def as_matrix(values) -> np.ndarray:
    m = np.asarray(values, dtype=float)
    if m.ndim == 0:
        return m.reshape(1, 1)
    if m.ndim == 1:
        return m.reshape(1, -1)
    if m.ndim != 2:
        raise ValueError(f"Expected a 2-D matrix, got shape {m.shape}")
    return m


def _operand(a: np.ndarray, b: Operand) -> Union[float, np.ndarray]:
    if np.isscalar(b):
        return float(b)
    b = as_matrix(b)
    rows, cols = a.shape
    if b.shape in ((rows, cols), (1, cols), (rows, 1), (1, 1)):
        return b
    raise ValueError(f"Cannot broadcast operand of shape {b.shape} against {a.shape}")


def dot(a, b) -> np.ndarray:
    a, b = as_matrix(a), as_matrix(b)
    if a.shape[1] != b.shape[0]:
        raise ValueError(f"Shape mismatch for dot: {a.shape} x {b.shape}")
    return a @ b


def transpose(m) -> np.ndarray:
    return as_matrix(m).T.copy()


def add(a, b: Operand) -> np.ndarray:
    a = as_matrix(a)
    return a + _operand(a, b)


def subtract(a, b: Operand) -> np.ndarray:
    a = as_matrix(a)
    return a - _operand(a, b)


def multiply(a, b: Operand) -> np.ndarray:
    a = as_matrix(a)
    return a * _operand(a, b)


def divide(a: Operand, b: Operand) -> np.ndarray:
    # scalar numerator: 1 / m
    if np.isscalar(a):
        return float(a) / (as_matrix(b) + EPSILON)
    a = as_matrix(a)
    return a / (_operand(a, b) + EPSILON)


def power(m, exponent: float) -> np.ndarray:
    return as_matrix(m) ** exponent


def exp(m) -> np.ndarray:
    return np.exp(as_matrix(m))


def log(m) -> np.ndarray:
    return np.log(as_matrix(m) + EPSILON)


def clip(m, low: float, high: float) -> np.ndarray:
    return np.clip(as_matrix(m), low, high)


def sum(m, axis: Optional[int] = None, keepdims: bool = False):
    """Sum over ``axis`` (0 = per column, 1 = per row, None = everything).

    Without ``keepdims`` an axis reduction returns a 1-D array and a global
    reduction returns a Python float; with it the reduced axis stays as size 1.
    """
    out = np.sum(as_matrix(m), axis=axis, keepdims=keepdims)
    if axis is None and not keepdims:
        return float(out)
    return out


def mean(m, axis: Optional[int] = None, keepdims: bool = False):
    m = as_matrix(m)
    count = m.size if axis is None else m.shape[axis]
    total = sum(m, axis=axis, keepdims=keepdims)
    if count == 0:
        return 0.0 if axis is None and not keepdims else np.zeros_like(total)
    return total / count


def max(m, axis: int = 1, keepdims: bool = False) -> np.ndarray:
    return np.max(as_matrix(m), axis=axis, keepdims=keepdims)


def argmax(m) -> np.ndarray:
    """Index of the first maximum in every row."""
    return np.argmax(as_matrix(m), axis=1)


def squared_distances(points, centroids) -> np.ndarray:
    """Matrix of squared Euclidean distances, shape (n_points, n_centroids)."""
    p, c = as_matrix(points), as_matrix(centroids)
    diff = p[:, None, :] - c[None, :, :]
    return np.sum(diff * diff, axis=2)


def sigmoid(z) -> np.ndarray:
    return divide(1.0, add(exp(multiply(clip(z, -500, 500), -1)), 1))


def softmax(z) -> np.ndarray:
    shifted = subtract(z, max(z, axis=1, keepdims=True))
    e = exp(shifted)
    return divide(e, sum(e, axis=1, keepdims=True))


class Activation(str, Enum):
    """Hidden/output activation with its derivative taken on the activated value."""

    SIGMOID = "sigmoid"
    TANH = "tanh"
    RELU = "relu"
    LINEAR = "linear"

    @classmethod
    def from_name(cls, name: str) -> "Activation":
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            choices = ", ".join(a.value for a in cls)
            raise ConfigurationError(f"Unsupported activation '{name}'; choose one of {choices}") from None

    def forward(self, z) -> np.ndarray:
        if self is Activation.SIGMOID:
            return sigmoid(z)
        if self is Activation.TANH:
            return np.tanh(as_matrix(z))
        if self is Activation.RELU:
            return np.maximum(0.0, as_matrix(z))
        return as_matrix(z).copy()

    def derivative(self, a) -> np.ndarray:
        a = as_matrix(a)
        if self is Activation.SIGMOID:
            return a * (1.0 - a)
        if self is Activation.TANH:
            return 1.0 - a ** 2
        if self is Activation.RELU:
            return (a > 0).astype(float)
        return np.ones_like(a)
