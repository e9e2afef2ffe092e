"""Composite tensor functions expressed purely through the primitives."""

from __future__ import annotations

import numpy as np

from .functions import array_function, join, map_cells, reduce
from .tensor import Tensor


@array_function
def normalizing_divide(a, b):
    """``a / b``, with 0 wherever ``b`` is 0 so an all-zero slice stays all zero."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        quotient = np.true_divide(a, b)
    return np.where(b == 0.0, 0.0, quotient)


def l1_normalize(tensor: Tensor, dimension: str) -> Tensor:
    return join(tensor, reduce(tensor, "sum", dimension), normalizing_divide)


def l2_normalize(tensor: Tensor, dimension: str) -> Tensor:
    norms = map_cells(reduce(map_cells(tensor, np.square), "sum", dimension), np.sqrt)
    return join(tensor, norms, normalizing_divide)


def matmul(left: Tensor, right: Tensor, dimension: str) -> Tensor:
    """Contract ``dimension``, which both operands must have."""
    return reduce(join(left, right, np.multiply), "sum", dimension)


def softmax(tensor: Tensor, dimension: str) -> Tensor:
    return l1_normalize(map_cells(tensor, np.exp), dimension)
