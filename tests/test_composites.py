import math

import numpy as np
import pytest

from celltensor import Tensor, TensorType, l1_normalize, matmul, softmax
from celltensor.core.composites import normalizing_divide
from tests._tensors import make


def test_l1_normalize_sums_to_one_per_slice():
    tensor = make(
        TensorType.mapped("x", "y"),
        {("a", "0"): 1.0, ("a", "1"): 3.0, ("b", "0"): 0.0, ("b", "1"): 0.0},
    )
    normalized = tensor.l1_normalize("y")
    assert normalized.get(("a", "0")) == 0.25
    assert normalized.get(("a", "1")) == 0.75
    sums = normalized.reduce("sum", "y")
    assert sums.get("a") == 1.0
    assert sums.get("b") == 0.0


def test_l1_normalize_is_the_primitive_composition():
    tensor = Tensor.generate(TensorType.indexed(x=2, y=3), lambda idx: idx[0] + idx[1] + 1)
    expected = tensor.join(tensor.reduce("sum", "y"), normalizing_divide)
    assert l1_normalize(tensor, "y") == expected


def test_l2_normalize():
    tensor = make(TensorType.indexed(x=2), {(0,): 3.0, (1,): 4.0})
    normalized = tensor.l2_normalize("x")
    assert [value for _, value in normalized] == pytest.approx([0.6, 0.8])


def test_matmul_dense():
    left = make(
        TensorType.indexed(i=2, k=2),
        {(0, 0): 1.0, (0, 1): 2.0, (1, 0): 3.0, (1, 1): 4.0},
    )
    right = Tensor.builder(TensorType.indexed(j=2, k=2))
    for (k, j), value in {(0, 0): 5.0, (0, 1): 6.0, (1, 0): 7.0, (1, 1): 8.0}.items():
        right.cell({"k": k, "j": j}, value)
    product = matmul(left, right.build(), "k")
    assert product.type == TensorType.indexed(i=2, j=2)
    assert [value for _, value in product] == [19.0, 22.0, 43.0, 50.0]


def test_matmul_sparse():
    left = make(TensorType.mapped("i", "k"), {("r", "a"): 2.0, ("r", "b"): 3.0})
    right = make(TensorType.mapped("j", "k"), {("c", "a"): 10.0, ("c", "b"): 100.0, ("d", "z"): 1.0})
    product = left.matmul(right, "k")
    assert product == make(TensorType.mapped("i", "j"), {("r", "c"): 320.0})


def test_softmax():
    tensor = make(TensorType.indexed(x=3), {(0,): 1.0, (1,): 2.0, (2,): 3.0})
    result = softmax(tensor, "x")
    exps = np.exp([1.0, 2.0, 3.0])
    assert [value for _, value in result] == pytest.approx(list(exps / exps.sum()))
    assert math.isclose(result.sum().as_double(), 1.0)


def test_softmax_over_one_mapped_dimension():
    tensor = make(TensorType.mapped("x", "y"), {("a", "0"): 0.0, ("a", "1"): 0.0, ("b", "0"): 5.0})
    result = tensor.softmax("y")
    assert result.get(("a", "0")) == pytest.approx(0.5)
    assert result.get(("b", "0")) == pytest.approx(1.0)
