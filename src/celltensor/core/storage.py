from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

import numpy as np

from .address import TensorAddress
from .exceptions import InvalidArgumentError, TensorBoundsError
from .types import TensorType


class TensorStorage(ABC):
    """Cell storage behind a tensor.

    Every backend answers the same questions: the value at an address (NaN
    when absent), the full cell map, and the cells in canonical address order.
    """

    def __init__(self, tensor_type: TensorType):
        self.tensor_type = tensor_type

    @abstractmethod
    def get(self, address: TensorAddress) -> float: ...

    @abstractmethod
    def __iter__(self) -> Iterator[Tuple[TensorAddress, float]]: ...

    @property
    @abstractmethod
    def size(self) -> int: ...

    def cells(self) -> Dict[TensorAddress, float]:
        return dict(iter(self))

    def items(self) -> Iterable[Tuple[TensorAddress, float]]:
        """Every cell in no particular order; the engine's internal walk."""
        return iter(self)

    @abstractmethod
    def lookup(self, address: TensorAddress) -> Optional[float]:
        """The value at a full address, or None when no such cell exists."""

    def _check_rank(self, address: TensorAddress) -> None:
        if len(address) != self.tensor_type.rank:
            raise InvalidArgumentError(
                f"Address {address} does not match the {self.tensor_type.rank} dimensions "
                f"of {self.tensor_type}"
            )


class IndexedStorage(TensorStorage):
    """Dense row-major storage for tensors whose dimensions are all indexed.

    ``values`` is shaped by the resolved size of each dimension in canonical
    order. ``None`` stands for a tensor without any cells, which only happens
    when an unbound dimension never received a label. Positions that were
    never written hold 0.0.
    """

    def __init__(self, tensor_type: TensorType, values: Optional[np.ndarray]):
        super().__init__(tensor_type)
        if not tensor_type.is_indexed:
            raise InvalidArgumentError(f"Indexed storage cannot hold {tensor_type}")
        if values is not None:
            values = np.array(values, dtype=np.float64)
            if values.ndim != tensor_type.rank:
                raise InvalidArgumentError(
                    f"Array of shape {values.shape} does not fit {tensor_type}"
                )
            for dim, extent in zip(tensor_type.dimensions(), values.shape):
                if dim.size is not None and extent != dim.size:
                    raise InvalidArgumentError(
                        f"Dimension '{dim.name}' has size {dim.size} but the array has {extent}"
                    )
            if values.size == 0:
                values = None
            else:
                values.setflags(write=False)
        self.values = values

    @property
    def shape(self) -> Tuple[int, ...]:
        if self.values is None:
            return tuple(0 for _ in range(self.tensor_type.rank))
        return tuple(int(extent) for extent in self.values.shape)

    @property
    def size(self) -> int:
        return 0 if self.values is None else int(self.values.size)

    def get(self, address: TensorAddress) -> float:
        self._check_rank(address)
        for dim, label, extent in zip(self.tensor_type.dimensions(), address, self.shape):
            if not isinstance(label, int):
                raise InvalidArgumentError(
                    f"Indexed dimension '{dim.name}' cannot be read with label {label!r}"
                )
            limit = dim.size if dim.size is not None else extent
            if label < 0 or (label >= limit and (dim.size is not None or self.values is not None)):
                raise TensorBoundsError(
                    f"Label {label} is out of bounds for dimension '{dim.name}' of size {limit}"
                )
        if self.values is None:
            return math.nan
        return float(self.values[tuple(address.labels)])

    def lookup(self, address: TensorAddress) -> Optional[float]:
        if self.values is None:
            return None
        index = tuple(address.labels)
        for label, extent in zip(index, self.values.shape):
            if label >= extent:
                return None
        return float(self.values[index])

    def __iter__(self) -> Iterator[Tuple[TensorAddress, float]]:
        if self.values is None:
            return
        for index in np.ndindex(*self.values.shape):
            yield TensorAddress(index), float(self.values[index])


class MappedStorage(TensorStorage):
    """Sparse storage keyed by full addresses."""

    def __init__(self, tensor_type: TensorType, cells: Mapping[TensorAddress, float]):
        super().__init__(tensor_type)
        self._cells: Dict[TensorAddress, float] = {
            address: float(value) for address, value in cells.items()
        }

    @property
    def size(self) -> int:
        return len(self._cells)

    def get(self, address: TensorAddress) -> float:
        self._check_rank(address)
        return self._cells.get(address, math.nan)

    def lookup(self, address: TensorAddress) -> Optional[float]:
        return self._cells.get(address)

    def items(self) -> Iterable[Tuple[TensorAddress, float]]:
        return self._cells.items()

    def __iter__(self) -> Iterator[Tuple[TensorAddress, float]]:
        for address in sorted(self._cells, key=TensorAddress.sort_key):
            yield address, self._cells[address]
