from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Union

import numpy as np

from .address import Label, TensorAddress, coerce_label
from .exceptions import InvalidArgumentError, TensorBoundsError, TensorStateError
from .storage import IndexedStorage, MappedStorage, TensorStorage
from .types import TensorType

if TYPE_CHECKING:
    from .tensor import Tensor


class Builder(ABC):
    """Single-use staging area that assembles the cells of one tensor.

    Use :meth:`Builder.of` to get the backend matching a type, add cells with
    :meth:`cell`, and finish with :meth:`build`. Builders are not thread-safe.
    """

    def __init__(self, tensor_type: TensorType):
        self.tensor_type = tensor_type
        self._built = False

    @staticmethod
    def of(tensor_type: TensorType) -> "Builder":
        if tensor_type.is_mapped:
            return MappedBuilder(tensor_type)
        return IndexedBuilder(tensor_type)

    def cell(self, address: Any = None, value: Optional[float] = None) -> Union["Builder", "CellBuilder"]:
        """Without arguments return a :class:`CellBuilder`; otherwise add one cell.

        ``address`` may be a :class:`TensorAddress`, a sequence of labels in
        canonical dimension order, or a mapping from dimension name to label.
        """
        self._check_open()
        if address is None and value is None:
            return CellBuilder(self)
        if value is None:
            if self.tensor_type.rank == 0 and not isinstance(address, (TensorAddress, tuple, list, dict)):
                # builder.cell(3.0) on a dimensionless type
                self._commit(TensorAddress(), float(address))
                return self
            raise InvalidArgumentError("A cell needs a value")
        if address is None:
            address = TensorAddress()
        self._commit(TensorAddress.coerce(self.tensor_type, address), float(value))
        return self

    def build(self) -> "Tensor":
        from .tensor import Tensor

        self._check_open()
        self._built = True
        return Tensor(self.tensor_type, self._storage())

    def _check_open(self) -> None:
        if self._built:
            raise TensorStateError("This builder has already built its tensor")

    @abstractmethod
    def _commit(self, address: TensorAddress, value: float) -> None: ...

    @abstractmethod
    def _storage(self) -> TensorStorage: ...


class CellBuilder:
    def __init__(self, parent: Builder):
        self._parent = parent
        self._labels: Dict[str, Label] = {}

    def label(self, dimension: str, label: Union[str, int]) -> "CellBuilder":
        tensor_type = self._parent.tensor_type
        if not tensor_type.has_dimension(dimension):
            raise InvalidArgumentError(f"{tensor_type} has no dimension '{dimension}'")
        self._labels[dimension] = coerce_label(tensor_type.dimension(dimension), label)
        return self

    def value(self, cell_value: float) -> Builder:
        address = TensorAddress.from_mapping(self._parent.tensor_type, self._labels)
        return self._parent.cell(address, cell_value)


class MappedBuilder(Builder):
    def __init__(self, tensor_type: TensorType):
        super().__init__(tensor_type)
        self._cells: Dict[TensorAddress, float] = {}

    def _commit(self, address: TensorAddress, value: float) -> None:
        self._cells[address] = value

    def _storage(self) -> TensorStorage:
        return MappedStorage(self.tensor_type, self._cells)


class IndexedBuilder(Builder):
    """Collects cells by index and lays them out densely on :meth:`build`.

    Unbound dimensions get the size of their largest label plus one; positions
    that never received a value hold 0.0. A fully bound type therefore always
    builds every cell, even when no cell was added.
    """

    def __init__(self, tensor_type: TensorType):
        super().__init__(tensor_type)
        self._cells: Dict[Tuple[int, ...], float] = {}

    def _commit(self, address: TensorAddress, value: float) -> None:
        for dim, label in zip(self.tensor_type.dimensions(), address):
            if dim.size is not None and label >= dim.size:
                raise TensorBoundsError(
                    f"Label {label} is out of bounds for dimension '{dim.name}' of size {dim.size}"
                )
        self._cells[tuple(address.labels)] = value

    def _shape(self) -> Tuple[int, ...]:
        shape = []
        for pos, dim in enumerate(self.tensor_type.dimensions()):
            if dim.size is not None:
                shape.append(dim.size)
            else:
                shape.append(max(index[pos] for index in self._cells) + 1)
        return tuple(shape)

    def _storage(self) -> TensorStorage:
        if not self._cells and not all(dim.is_bound for dim in self.tensor_type.dimensions()):
            return IndexedStorage(self.tensor_type, None)
        values = np.zeros(self._shape(), dtype=np.float64)
        for index, value in self._cells.items():
            values[index] = value
        return IndexedStorage(self.tensor_type, values)


def builder_for(tensor_type: TensorType) -> Builder:
    return Builder.of(tensor_type)
