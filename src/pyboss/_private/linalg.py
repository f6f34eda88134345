"""Dense matrix helpers used when eliminating silent transitions."""
import numpy as np

from pyboss._private.exceptions import SingularMatrixError


def invert(matrix) -> np.ndarray:
    """Inverse of a square matrix (anything numpy can turn into a 2-d array)."""
    m = np.asarray(matrix, dtype=float)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        raise ValueError(f"Cannot invert a matrix of shape {m.shape}")
    if m.shape[0] == 0:
        return m.copy()
    try:
        return np.linalg.inv(m)
    except np.linalg.LinAlgError as e:
        raise SingularMatrixError(str(e)) from e


def log_matrix(matrix) -> np.ndarray:
    """Elementwise log; zero and negative entries become -inf."""
    m = np.asarray(matrix, dtype=float)
    result = np.full(m.shape, -np.inf)
    positive = m > 0
    result[positive] = np.log(m[positive])
    return result
