from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from .address import TensorAddress
from .exceptions import InvalidArgumentError, TensorStateError
from .storage import TensorStorage
from .types import TensorType

if TYPE_CHECKING:
    from .builder import Builder
    from .functions import Aggregator, ExecutionConfig

Dimensions = Union[None, str, Sequence[str]]


class Tensor:
    """An immutable, possibly sparse, multidimensional array.

    A tensor is a :class:`TensorType` plus a set of cells, each an address
    with one float value. Cells that were never set do not exist; reading one
    with :meth:`get` returns NaN. Every operation returns a new tensor.

    Tensors are usually made with :meth:`builder`, :meth:`from_string` or
    :meth:`generate`. ``str(tensor)`` gives the canonical text form, which
    :meth:`from_string` reads back.
    """

    __slots__ = ("_type", "_storage", "_hash")

    def __init__(self, tensor_type: TensorType, storage: TensorStorage):
        if storage.tensor_type != tensor_type:
            raise InvalidArgumentError(f"Storage for {storage.tensor_type} cannot back {tensor_type}")
        self._type = tensor_type
        self._storage = storage
        self._hash: Optional[int] = None

    # ------------------------------------------------------------------ construction
    @staticmethod
    def builder(tensor_type: TensorType) -> "Builder":
        from .builder import Builder

        return Builder.of(tensor_type)

    @staticmethod
    def from_string(text: str, tensor_type: Union[None, str, TensorType] = None) -> "Tensor":
        from .codec import from_string

        return from_string(text, tensor_type)

    @staticmethod
    def generate(
        tensor_type: TensorType,
        fn: Callable[[List[int]], float],
        *,
        config: Optional["ExecutionConfig"] = None,
    ) -> "Tensor":
        from .functions import generate

        return generate(tensor_type, fn, config=config)

    @staticmethod
    def scalar(value: float) -> "Tensor":
        from .builder import Builder

        return Builder.of(TensorType.empty).cell((), value).build()

    # ------------------------------------------------------------------ read API
    @property
    def type(self) -> TensorType:
        return self._type

    @property
    def storage(self) -> TensorStorage:
        return self._storage

    @property
    def size(self) -> int:
        return self._storage.size

    def cells(self) -> Dict[TensorAddress, float]:
        """A snapshot of every cell, in canonical address order."""
        return self._storage.cells()

    def get(self, address: Any = ()) -> float:
        """The value at ``address``, or NaN when that cell does not exist."""
        return self._storage.get(TensorAddress.coerce(self._type, address))

    def as_double(self) -> float:
        if self._type.rank > 0:
            raise TensorStateError(
                f"This tensor is not dimensionless. Dimensions: {self._type.rank}"
            )
        if self.size == 0:
            return math.nan
        if self.size > 1:
            raise TensorStateError(f"This tensor does not have a single value, it has {self.size}")
        return next(iter(self._storage))[1]

    def __float__(self) -> float:
        return self.as_double()

    def __iter__(self):
        return iter(self._storage)

    def __len__(self) -> int:
        return self.size

    # ------------------------------------------------------------------ primitives
    def map(self, fn: Callable[[Any], Any], *, config: Optional["ExecutionConfig"] = None) -> "Tensor":
        from .functions import map_cells

        return map_cells(self, fn, config=config)

    def reduce(
        self,
        aggregator: Union["Aggregator", str],
        dimensions: Dimensions = None,
        *,
        config: Optional["ExecutionConfig"] = None,
    ) -> "Tensor":
        """Aggregate over ``dimensions``, or over every dimension when none are given."""
        from .functions import reduce

        return reduce(self, aggregator, dimensions, config=config)

    def join(
        self,
        other: "Tensor",
        fn: Callable[[Any, Any], Any],
        *,
        config: Optional["ExecutionConfig"] = None,
    ) -> "Tensor":
        from .functions import join

        return join(self, other, fn, config=config)

    def rename(self, from_dimensions: Union[str, Sequence[str]], to_dimensions: Union[str, Sequence[str]]) -> "Tensor":
        from .functions import rename

        return rename(self, from_dimensions, to_dimensions)

    # ------------------------------------------------------------------ composites
    def l1_normalize(self, dimension: str) -> "Tensor":
        from .composites import l1_normalize

        return l1_normalize(self, dimension)

    def l2_normalize(self, dimension: str) -> "Tensor":
        from .composites import l2_normalize

        return l2_normalize(self, dimension)

    def matmul(self, other: "Tensor", dimension: str) -> "Tensor":
        from .composites import matmul

        return matmul(self, other, dimension)

    def softmax(self, dimension: str) -> "Tensor":
        from .composites import softmax

        return softmax(self, dimension)

    # ------------------------------------------------------------------ join shortcuts
    def multiply(self, other: "Tensor") -> "Tensor":
        return self.join(other, np.multiply)

    def add(self, other: "Tensor") -> "Tensor":
        return self.join(other, np.add)

    def subtract(self, other: "Tensor") -> "Tensor":
        return self.join(other, np.subtract)

    def divide(self, other: "Tensor") -> "Tensor":
        return self.join(other, np.true_divide)

    def atan2(self, other: "Tensor") -> "Tensor":
        return self.join(other, np.arctan2)

    def larger(self, other: "Tensor") -> "Tensor":
        return self.join(other, np.greater)

    def larger_or_equal(self, other: "Tensor") -> "Tensor":
        return self.join(other, np.greater_equal)

    def smaller(self, other: "Tensor") -> "Tensor":
        return self.join(other, np.less)

    def smaller_or_equal(self, other: "Tensor") -> "Tensor":
        return self.join(other, np.less_equal)

    def equal(self, other: "Tensor") -> "Tensor":
        return self.join(other, np.equal)

    def not_equal(self, other: "Tensor") -> "Tensor":
        return self.join(other, np.not_equal)

    def max(self, other: Union["Tensor", Dimensions] = None) -> "Tensor":
        """Elementwise maximum with another tensor, or the max reduction over dimensions."""
        if isinstance(other, Tensor):
            return self.join(other, np.maximum)
        return self.reduce("max", other)

    def min(self, other: Union["Tensor", Dimensions] = None) -> "Tensor":
        if isinstance(other, Tensor):
            return self.join(other, np.minimum)
        return self.reduce("min", other)

    # ------------------------------------------------------------------ reduce shortcuts
    def sum(self, dimensions: Dimensions = None) -> "Tensor":
        return self.reduce("sum", dimensions)

    def prod(self, dimensions: Dimensions = None) -> "Tensor":
        return self.reduce("prod", dimensions)

    def count(self, dimensions: Dimensions = None) -> "Tensor":
        return self.reduce("count", dimensions)

    def avg(self, dimensions: Dimensions = None) -> "Tensor":
        return self.reduce("avg", dimensions)

    # ------------------------------------------------------------------ protocol
    def to_string(self, with_type: bool = False) -> str:
        from .codec import to_standard_string, to_typed_string

        return to_typed_string(self) if with_type else to_standard_string(self)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Tensor({self.to_string(with_type=True)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tensor):
            return NotImplemented
        if self is other:
            return True
        return dict(self._storage.items()) == dict(other._storage.items())

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._storage.items()))
        return self._hash
