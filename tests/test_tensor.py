import math

import pytest

from celltensor import (
    Tensor,
    TensorAddress,
    TensorBoundsError,
    TensorStateError,
    TensorType,
)
from tests._tensors import make


def test_as_double_requires_dimensionless_tensor():
    tensor = make(TensorType.mapped("x"), {("a",): 1.0})
    with pytest.raises(TensorStateError):
        tensor.as_double()
    assert Tensor.scalar(2.5).as_double() == 2.5
    assert float(Tensor.scalar(2.5)) == 2.5


def test_equality_ignores_insertion_order():
    first = make(TensorType.mapped("x"), {("a",): 1.0, ("b",): 2.0})
    second = make(TensorType.mapped("x"), {("b",): 2.0, ("a",): 1.0})
    assert first == second
    assert hash(first) == hash(second)
    assert first != make(TensorType.mapped("x"), {("a",): 1.0})


def test_cells_is_a_snapshot():
    tensor = make(TensorType.mapped("x"), {("a",): 1.0})
    cells = tensor.cells()
    cells[TensorAddress(("b",))] = 2.0
    assert tensor.size == 1
    assert math.isnan(tensor.get("b"))


def test_indexed_get_outside_bounds_is_an_error():
    tensor = make(TensorType.indexed(x=2), {(0,): 1.0})
    assert tensor.get(1) == 0.0
    with pytest.raises(TensorBoundsError):
        tensor.get(2)


def test_unbound_indexed_tensor_without_cells_reads_nan():
    tensor = Tensor.builder(TensorType.indexed(x=None)).build()
    assert tensor.size == 0
    assert math.isnan(tensor.get(0))


def test_storage_choice_invisible_to_equality():
    dense = make(TensorType.indexed(x=2), {(0,): 1.0, (1,): 2.0})
    rebuilt = Tensor.from_string(str(dense), dense.type)
    assert rebuilt == dense
    assert dense.cells() == {TensorAddress((0,)): 1.0, TensorAddress((1,)): 2.0}


def test_untouched_dimensionless_tensor_equals_zero_scalar():
    assert Tensor.builder(TensorType.empty).build() == Tensor.scalar(0.0)
