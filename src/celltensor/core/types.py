from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .exceptions import InvalidArgumentError, TypeConstructionError

INDEXED = "indexed"
MAPPED = "mapped"


@dataclass(frozen=True)
class Dimension:
    """A named tensor axis.

    Indexed dimensions are labelled ``0..size-1``; a ``size`` of ``None`` means
    the dimension is unbound and takes its size from the cells it is built
    with. Mapped dimensions are labelled by arbitrary strings and never have a
    size.
    """

    name: str
    size: Optional[int] = None
    kind: str = INDEXED

    def __post_init__(self) -> None:
        if not self.name:
            raise TypeConstructionError("Dimension name must be a non-empty string")
        if self.kind not in {INDEXED, MAPPED}:
            raise TypeConstructionError(f"Unknown dimension kind '{self.kind}'")
        if self.kind == MAPPED and self.size is not None:
            raise TypeConstructionError(f"Mapped dimension '{self.name}' cannot have a size")
        if self.size is not None and int(self.size) < 0:
            raise TypeConstructionError(f"Dimension '{self.name}' has negative size {self.size}")

    @classmethod
    def indexed(cls, name: str, size: Optional[int] = None) -> "Dimension":
        return cls(name=name, size=None if size is None else int(size), kind=INDEXED)

    @classmethod
    def mapped(cls, name: str) -> "Dimension":
        return cls(name=name, kind=MAPPED)

    @property
    def is_indexed(self) -> bool:
        return self.kind == INDEXED

    @property
    def is_mapped(self) -> bool:
        return self.kind == MAPPED

    @property
    def is_bound(self) -> bool:
        return self.is_indexed and self.size is not None

    def with_name(self, name: str) -> "Dimension":
        return Dimension(name=name, size=self.size, kind=self.kind)

    def spec(self) -> str:
        if self.is_mapped:
            return f"{self.name}{{}}"
        if self.size is None:
            return f"{self.name}[]"
        return f"{self.name}[{self.size}]"


class TensorType:
    """An ordered set of uniquely named dimensions.

    Dimensions are kept sorted by name; that order is the canonical order of
    every address of a tensor of this type.
    """

    __slots__ = ("_dimensions", "_positions")

    empty: "TensorType"

    def __init__(self, dimensions: Iterable[Dimension] = ()):
        dims = tuple(sorted(dimensions, key=lambda d: d.name))
        positions: Dict[str, int] = {}
        for pos, dim in enumerate(dims):
            if dim.name in positions:
                raise TypeConstructionError(f"Duplicate dimension name '{dim.name}'")
            positions[dim.name] = pos
        kinds = {dim.kind for dim in dims}
        if len(kinds) > 1:
            spec = ",".join(d.spec() for d in dims)
            raise TypeConstructionError(
                f"Mixed indexed and mapped dimensions are not supported, got tensor({spec})"
            )
        self._dimensions: Tuple[Dimension, ...] = dims
        self._positions = positions

    # ------------------------------------------------------------------ factories
    @classmethod
    def of(cls, *dimensions: Dimension) -> "TensorType":
        return cls(dimensions)

    @classmethod
    def mapped(cls, *names: str) -> "TensorType":
        return cls(Dimension.mapped(name) for name in names)

    @classmethod
    def indexed(cls, **sizes: Optional[int]) -> "TensorType":
        return cls(Dimension.indexed(name, size) for name, size in sizes.items())

    @classmethod
    def from_spec(cls, spec: str) -> "TensorType":
        """Parse a type spec such as ``tensor(x{},y{})`` or ``tensor(i[3],j[])``."""
        from .codec import parse_type_spec

        return parse_type_spec(spec)

    # ------------------------------------------------------------------ queries
    def dimensions(self) -> Tuple[Dimension, ...]:
        return self._dimensions

    def dimension_names(self) -> Tuple[str, ...]:
        return tuple(dim.name for dim in self._dimensions)

    @property
    def rank(self) -> int:
        return len(self._dimensions)

    @property
    def is_indexed(self) -> bool:
        """True when every dimension is indexed (including the dimensionless type)."""
        return all(dim.is_indexed for dim in self._dimensions)

    @property
    def is_mapped(self) -> bool:
        return any(dim.is_mapped for dim in self._dimensions)

    def has_dimension(self, name: str) -> bool:
        return name in self._positions

    def index_of(self, name: str) -> int:
        try:
            return self._positions[name]
        except KeyError:
            raise InvalidArgumentError(f"{self} has no dimension '{name}'") from None

    def dimension(self, name: str) -> Dimension:
        return self._dimensions[self.index_of(name)]

    # ------------------------------------------------------------------ derivations
    def without(self, names: Sequence[str]) -> "TensorType":
        missing = [name for name in names if name not in self._positions]
        if missing:
            raise InvalidArgumentError(
                f"Cannot remove {', '.join(repr(n) for n in missing)}: not dimensions of {self}"
            )
        drop = set(names)
        return TensorType(dim for dim in self._dimensions if dim.name not in drop)

    def renamed(self, from_names: Sequence[str], to_names: Sequence[str]) -> "TensorType":
        if len(from_names) != len(to_names):
            raise InvalidArgumentError(
                f"Rename needs equally many source and target names, got {list(from_names)} "
                f"and {list(to_names)}"
            )
        missing = [name for name in from_names if name not in self._positions]
        if missing:
            raise InvalidArgumentError(
                f"Cannot rename {', '.join(repr(n) for n in missing)}: not dimensions of {self}"
            )
        mapping = dict(zip(from_names, to_names))
        return TensorType(dim.with_name(mapping.get(dim.name, dim.name)) for dim in self._dimensions)

    def union(self, other: "TensorType") -> "TensorType":
        """The type of a join between tensors of ``self`` and ``other``."""
        merged: Dict[str, Dimension] = {dim.name: dim for dim in self._dimensions}
        for dim in other._dimensions:
            mine = merged.get(dim.name)
            if mine is None:
                merged[dim.name] = dim
                continue
            if mine.kind != dim.kind:
                raise InvalidArgumentError(
                    f"Dimension '{dim.name}' is {mine.kind} in {self} but {dim.kind} in {other}"
                )
            if mine.is_indexed and mine.size != dim.size:
                size = None if mine.size is None or dim.size is None else min(mine.size, dim.size)
                merged[dim.name] = Dimension.indexed(dim.name, size)
        return TensorType(merged.values())

    # ------------------------------------------------------------------ protocol
    def render(self) -> str:
        return "tensor(" + ",".join(dim.spec() for dim in self._dimensions) + ")"

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"TensorType({self.render()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TensorType):
            return NotImplemented
        return self._dimensions == other._dimensions

    def __hash__(self) -> int:
        return hash(self._dimensions)

    def __len__(self) -> int:
        return len(self._dimensions)

    def __iter__(self):
        return iter(self._dimensions)


TensorType.empty = TensorType()
