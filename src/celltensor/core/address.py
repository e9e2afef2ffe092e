from __future__ import annotations

import re
from typing import Any, Iterator, Mapping, Sequence, Tuple, Union

import numpy as np

from .exceptions import InvalidArgumentError, LabelTypeError
from .types import Dimension, TensorType

Label = Union[int, str]

# labels the text form can carry without quoting
INDEX_LABEL_RE = re.compile(r"[0-9]+")
MAPPED_LABEL_RE = re.compile(r"[^\s{}:,]+")


def coerce_label(dim: Dimension, label: Any) -> Label:
    """Validate ``label`` against ``dim`` and return it in canonical form.

    Indexed dimensions take non-negative integers (or strings of digits);
    mapped dimensions take strings, with integers converted to their decimal
    text.
    """
    if isinstance(label, (bool, np.bool_)):
        raise LabelTypeError(f"Label {label!r} for dimension '{dim.name}' must not be a boolean")
    if dim.is_indexed:
        if isinstance(label, (int, np.integer)):
            value = int(label)
        elif isinstance(label, str) and INDEX_LABEL_RE.fullmatch(label.strip()):
            value = int(label.strip())
        else:
            raise LabelTypeError(
                f"Indexed dimension '{dim.name}' needs an integer label, got {label!r}"
            )
        if value < 0:
            raise LabelTypeError(
                f"Indexed dimension '{dim.name}' needs a non-negative label, got {value}"
            )
        return value
    if isinstance(label, str):
        if not MAPPED_LABEL_RE.fullmatch(label):
            raise LabelTypeError(
                f"Mapped dimension '{dim.name}' cannot use label {label!r}: labels must be "
                "non-empty and free of whitespace, braces, colons and commas"
            )
        return label
    if isinstance(label, (int, np.integer)):
        return str(int(label))
    raise LabelTypeError(f"Mapped dimension '{dim.name}' needs a string label, got {label!r}")


class TensorAddress:
    """An immutable tuple of labels in canonical dimension order.

    An address is interpreted relative to a type; addresses shorter than a
    type's rank are partial addresses produced while reducing or joining.
    """

    __slots__ = ("labels", "_hash")

    def __init__(self, labels: Sequence[Label] = ()):
        self.labels: Tuple[Label, ...] = tuple(labels)
        self._hash = hash(self.labels)

    @classmethod
    def of(cls, tensor_type: TensorType, labels: Sequence[Any]) -> "TensorAddress":
        dims = tensor_type.dimensions()
        labels = tuple(labels)
        if len(labels) != len(dims):
            raise InvalidArgumentError(
                f"Address {labels} has {len(labels)} labels but {tensor_type} has {len(dims)} dimensions"
            )
        return cls(coerce_label(dim, label) for dim, label in zip(dims, labels))

    @classmethod
    def from_mapping(cls, tensor_type: TensorType, labels: Mapping[str, Any]) -> "TensorAddress":
        unknown = [name for name in labels if not tensor_type.has_dimension(name)]
        if unknown:
            raise InvalidArgumentError(
                f"Address names {', '.join(repr(n) for n in unknown)} which are not in {tensor_type}"
            )
        missing = [name for name in tensor_type.dimension_names() if name not in labels]
        if missing:
            raise InvalidArgumentError(
                f"Address is missing a label for {', '.join(repr(n) for n in missing)}"
            )
        return cls(coerce_label(dim, labels[dim.name]) for dim in tensor_type.dimensions())

    @classmethod
    def coerce(cls, tensor_type: TensorType, address: Any) -> "TensorAddress":
        if isinstance(address, TensorAddress):
            if len(address) != tensor_type.rank:
                raise InvalidArgumentError(
                    f"Address {address} does not match the {tensor_type.rank} dimensions of {tensor_type}"
                )
            return cls.of(tensor_type, address.labels)
        if isinstance(address, Mapping):
            return cls.from_mapping(tensor_type, address)
        if isinstance(address, (str, int, np.integer)):
            return cls.of(tensor_type, (address,))
        return cls.of(tensor_type, address)

    def project(self, positions: Sequence[int]) -> "TensorAddress":
        return TensorAddress(self.labels[pos] for pos in positions)

    def sort_key(self) -> Tuple[int, Tuple[Label, ...]]:
        return (len(self.labels), self.labels)

    def format(self, tensor_type: TensorType) -> str:
        names = tensor_type.dimension_names()
        return "{" + ",".join(f"{name}:{label}" for name, label in zip(names, self.labels)) + "}"

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self) -> Iterator[Label]:
        return iter(self.labels)

    def __getitem__(self, pos: int) -> Label:
        return self.labels[pos]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TensorAddress):
            return NotImplemented
        return self.labels == other.labels

    def __hash__(self) -> int:
        return self._hash

    def __lt__(self, other: "TensorAddress") -> bool:
        return self.sort_key() < other.sort_key()

    def __repr__(self) -> str:
        return f"TensorAddress{self.labels!r}"
