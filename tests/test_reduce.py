import math

import pytest

from celltensor import Aggregator, ExecutionConfig, InvalidArgumentError, Tensor, TensorType
from tests._tensors import make

GENERIC = ExecutionConfig(dense_kernels=False)


def test_reduce_documented_example():
    tensor = make(TensorType.mapped("x", "y"), {("a", "0"): 2.0, ("b", "0"): 3.0})
    reduced = tensor.reduce("sum", "y")
    assert reduced.type == TensorType.mapped("x")
    assert reduced == Tensor.from_string("{{x:a}:2.0,{x:b}:3.0}")


@pytest.mark.parametrize(
    "aggregator,expected",
    [
        ("sum", {"a": 4.0, "b": 5.0}),
        ("prod", {"a": 3.0, "b": 5.0}),
        ("count", {"a": 2.0, "b": 1.0}),
        ("max", {"a": 3.0, "b": 5.0}),
        ("min", {"a": 1.0, "b": 5.0}),
        ("avg", {"a": 2.0, "b": 5.0}),
    ],
)
def test_mapped_aggregators(aggregator, expected):
    tensor = make(
        TensorType.mapped("x", "y"),
        {("a", "0"): 1.0, ("a", "1"): 3.0, ("b", "0"): 5.0},
    )
    reduced = tensor.reduce(aggregator, ["y"])
    assert {address[0]: value for address, value in reduced} == expected


@pytest.mark.parametrize(
    "aggregator,expected",
    [
        (Aggregator.SUM, [4.0, 12.0]),
        (Aggregator.PROD, [3.0, 35.0]),
        (Aggregator.COUNT, [2.0, 2.0]),
        (Aggregator.MAX, [3.0, 7.0]),
        (Aggregator.MIN, [1.0, 5.0]),
        (Aggregator.AVG, [2.0, 6.0]),
    ],
)
def test_indexed_aggregators_dense_and_generic(aggregator, expected):
    tensor = Tensor.generate(TensorType.indexed(x=2, y=2), lambda idx: [[1, 3], [5, 7]][idx[0]][idx[1]])
    dense = tensor.reduce(aggregator, "y")
    generic = tensor.reduce(aggregator, "y", config=GENERIC)
    assert dense.type == TensorType.indexed(x=2)
    assert dense == generic
    assert [value for _, value in dense] == expected


def test_reduce_all_dimensions_yields_scalar():
    tensor = Tensor.generate(TensorType.indexed(x=2, y=2), lambda idx: idx[0] * 2 + idx[1] + 1)
    assert tensor.sum().as_double() == 10.0
    assert tensor.reduce("max").type == TensorType.empty
    assert tensor.max().as_double() == 4.0
    assert tensor.count().as_double() == 4.0


def test_reduce_of_empty_tensor():
    empty = Tensor.builder(TensorType.mapped("x")).build()
    total = empty.reduce("sum")
    assert total.size == 1
    assert total.as_double() == 0.0
    assert empty.prod().as_double() == 1.0
    assert empty.count().as_double() == 0.0
    largest = empty.reduce("max")
    assert largest.size == 0
    assert math.isnan(largest.as_double())


def test_reduce_empty_keeps_surviving_dimensions_without_cells():
    empty = Tensor.builder(TensorType.mapped("x", "y")).build()
    reduced = empty.reduce("count", "y")
    assert reduced.type == TensorType.mapped("x")
    assert reduced.size == 0


def test_reduce_rejects_unknown_dimension_and_aggregator():
    tensor = make(TensorType.mapped("x"), {("a",): 1.0})
    with pytest.raises(InvalidArgumentError):
        tensor.reduce("sum", "y")
    with pytest.raises(InvalidArgumentError):
        tensor.reduce("median", "x")


@pytest.mark.parametrize("aggregator", ["sum", "avg", "prod"])
def test_dense_and_generic_reductions_round_identically(aggregator):
    values = [0.1, 0.2, 0.3]
    indexed = Tensor.generate(TensorType.indexed(x=3), lambda idx: values[idx[0]])
    mapped = make(TensorType.mapped("x"), {(str(i),): v for i, v in enumerate(values)})
    dense = indexed.reduce(aggregator)
    generic = indexed.reduce(aggregator, config=GENERIC)
    assert dense == generic
    assert dense.as_double() == mapped.reduce(aggregator).as_double()


def test_sum_is_correctly_rounded():
    tensor = Tensor.generate(TensorType.indexed(x=3), lambda idx: [0.1, 0.2, 0.3][idx[0]])
    assert tensor.sum().as_double() == 0.6


def test_repeated_dimension_reduces_once():
    tensor = Tensor.generate(TensorType.indexed(x=2, y=2), lambda idx: idx[0] + idx[1])
    dense = tensor.reduce("sum", ["x", "x"])
    generic = tensor.reduce("sum", ["x", "x"], config=GENERIC)
    assert dense.type == TensorType.indexed(y=2)
    assert dense == generic
    assert [value for _, value in dense] == [1.0, 3.0]
