"""
Dense vector and matrix primitives for the recurrent engine.

Every function validates its operand shapes and raises DimensionMismatchError
instead of relying on numpy broadcasting, so a malformed window never gets
silently reshaped into something that happens to compute.
"""

from collections.abc import Iterator

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .errors import DimensionMismatchError


def as_vector(values) -> np.ndarray:
    """Convert to a 1-D float64 array"""
    vec = np.asarray(values, dtype=np.float64)
    if vec.ndim != 1:
        raise DimensionMismatchError(f"Expected a vector, got shape {vec.shape}")
    return vec


def as_matrix(values) -> np.ndarray:
    """Convert to a 2-D float64 array"""
    mat = np.asarray(values, dtype=np.float64)
    if mat.ndim != 2:
        raise DimensionMismatchError(f"Expected a matrix, got shape {mat.shape}")
    return mat


def _require_same_shape(a: np.ndarray, b: np.ndarray, operation: str) -> None:
    if a.shape != b.shape:
        raise DimensionMismatchError(f"{operation}: shapes {a.shape} and {b.shape} differ")


def matrix_vector_mul(matrix, vec) -> np.ndarray:
    """M·v, requires cols(M) == len(v)"""
    m = as_matrix(matrix)
    v = as_vector(vec)
    if m.shape[1] != v.shape[0]:
        raise DimensionMismatchError(
            f"matrix_vector_mul: matrix has {m.shape[1]} columns, vector has {v.shape[0]} elements"
        )
    return m @ v


def matrix_vector_mul_transpose(matrix, vec) -> np.ndarray:
    """Mᵀ·v, requires rows(M) == len(v)"""
    m = as_matrix(matrix)
    v = as_vector(vec)
    if m.shape[0] != v.shape[0]:
        raise DimensionMismatchError(
            f"matrix_vector_mul_transpose: matrix has {m.shape[0]} rows, "
            f"vector has {v.shape[0]} elements"
        )
    return m.T @ v


def transpose(matrix) -> np.ndarray:
    return as_matrix(matrix).T.copy()


def elementwise_add(a, b) -> np.ndarray:
    va, vb = as_vector(a), as_vector(b)
    _require_same_shape(va, vb, "elementwise_add")
    return va + vb


def elementwise_subtract(a, b) -> np.ndarray:
    va, vb = as_vector(a), as_vector(b)
    _require_same_shape(va, vb, "elementwise_subtract")
    return va - vb


def elementwise_mul(a, b) -> np.ndarray:
    va, vb = as_vector(a), as_vector(b)
    _require_same_shape(va, vb, "elementwise_mul")
    return va * vb


def dot(a, b) -> float:
    va, vb = as_vector(a), as_vector(b)
    _require_same_shape(va, vb, "dot")
    return float(va @ vb)


def outer_product(a, b) -> np.ndarray:
    """Matrix of shape len(a) × len(b)"""
    return np.outer(as_vector(a), as_vector(b))


def mse_loss(output, target) -> float:
    """Mean squared error (divides by the element count)"""
    o, t = as_vector(output), as_vector(target)
    _require_same_shape(o, t, "mse_loss")
    if o.size == 0:
        raise DimensionMismatchError("mse_loss: empty output")
    diff = o - t
    return float(np.mean(diff * diff))


def mse_loss_gradient(output, target) -> np.ndarray:
    """Gradient of mse_loss with respect to output: 2*(output-target)/n"""
    o, t = as_vector(output), as_vector(target)
    _require_same_shape(o, t, "mse_loss_gradient")
    if o.size == 0:
        raise DimensionMismatchError("mse_loss_gradient: empty output")
    return 2.0 * (o - t) / o.size


def sigmoid(x) -> np.ndarray:
    # tanh form saturates to exactly 0/1 instead of overflowing exp()
    return 0.5 * (1.0 + np.tanh(0.5 * np.asarray(x, dtype=np.float64)))


def sigmoid_derivative(activation) -> np.ndarray:
    """Derivative of the sigmoid expressed through its activation s"""
    return activation * (1.0 - activation)


def tanh_derivative(activation) -> np.ndarray:
    """Derivative of tanh expressed through its activation g"""
    return 1.0 - activation * activation


def clip(values, bound: float) -> np.ndarray:
    return np.clip(values, -bound, bound)


def create_sliding_windows(
    data, lookback_len: int, prediction_len: int = 1
) -> tuple[np.ndarray, np.ndarray]:
    """Build aligned (input window, target window) pairs over a flat sequence

    Args:
        data: Flat sequence of observations
        lookback_len: Window length w
        prediction_len: Horizon h

    Returns:
        Tuple (windows, targets) with shapes (n, w) and (n, h) where
        n = len(data) - w - h + 1 (L - w for a one-step horizon).
        Both arrays are read-only views over a private copy of the data.
    """
    series = as_vector(data).copy()
    if lookback_len <= 0 or prediction_len <= 0:
        raise DimensionMismatchError(
            f"Window and horizon must be positive, got {lookback_len} and {prediction_len}"
        )

    count = len(series) - lookback_len - prediction_len + 1
    if count <= 0:
        return np.empty((0, lookback_len)), np.empty((0, prediction_len))

    windows = sliding_window_view(series, lookback_len)[:count]
    targets = sliding_window_view(series[lookback_len:], prediction_len)[:count]
    return windows, targets


def iter_sliding_windows(
    data, lookback_len: int, prediction_len: int = 1
) -> Iterator[tuple[np.ndarray, np.ndarray]]:
    """Lazy equivalent of create_sliding_windows"""
    windows, targets = create_sliding_windows(data, lookback_len, prediction_len)
    yield from zip(windows, targets)
