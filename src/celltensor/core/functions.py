from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .address import TensorAddress
from .builder import Builder
from .exceptions import InvalidArgumentError
from .storage import IndexedStorage, MappedStorage, TensorStorage
from .tensor import Tensor
from .types import TensorType

logger = logging.getLogger(__name__)

UnaryFn = Callable[[Any], Any]
BinaryFn = Callable[[Any, Any], Any]


@dataclass
class ExecutionConfig:
    """
    Switches shared by the primitive tensor functions.

    * ``dense_kernels`` lets map, reduce and join run as whole-array NumPy
      operations when every input is indexed. Disabling it forces the
      cell-by-cell path, which produces the same tensors.
    * ``join_build_side`` picks the operand a sparse join hashes. ``"auto"``
      walks only the smaller operand when the larger one has no dimension of
      its own, and otherwise hashes the operand with fewer cells.
    * ``max_dense_cells`` caps the number of cells generate and dense joins may
      materialise.
    """

    dense_kernels: bool = True
    join_build_side: str = "auto"  # "auto" | "left" | "right"
    max_dense_cells: Optional[int] = None

    def normalized(self) -> "ExecutionConfig":
        side = (self.join_build_side or "auto").lower()
        if side not in {"auto", "left", "right"}:
            raise ValueError(f"Unsupported join build side: {self.join_build_side}")
        limit = self.max_dense_cells
        if limit is not None:
            limit = int(limit)
            if limit <= 0:
                raise ValueError("max_dense_cells must be positive when provided")
        return replace(
            self,
            dense_kernels=bool(self.dense_kernels),
            join_build_side=side,
            max_dense_cells=limit,
        )


def _resolve_config(config: Optional[ExecutionConfig]) -> ExecutionConfig:
    return (config or ExecutionConfig()).normalized()


def array_function(fn: Callable) -> Callable:
    """Mark ``fn`` as safe to call on whole NumPy arrays.

    Dense kernels call marked functions (and NumPy ufuncs) once per array;
    anything else is vectorised element by element.
    """
    fn.accepts_arrays = True
    return fn


def _accepts_arrays(fn: Callable) -> bool:
    return isinstance(fn, np.ufunc) or bool(getattr(fn, "accepts_arrays", False))


def _apply_array(fn: Callable, *arrays: np.ndarray) -> np.ndarray:
    if _accepts_arrays(fn):
        with np.errstate(all="ignore"):
            out = fn(*arrays)
    else:
        out = np.vectorize(fn, otypes=[np.float64])(*arrays)
    shape = np.broadcast_shapes(*(arr.shape for arr in arrays))
    return np.broadcast_to(np.asarray(out, dtype=np.float64), shape)


def _apply_scalar(fn: Callable, *values: float) -> float:
    if _accepts_arrays(fn):
        with np.errstate(all="ignore"):
            return float(fn(*values))
    return float(fn(*values))


def _dense_values(storage: TensorStorage, config: ExecutionConfig) -> Optional[np.ndarray]:
    if config.dense_kernels and isinstance(storage, IndexedStorage):
        return storage.values
    return None


def _empty(tensor_type: TensorType) -> Tensor:
    """A tensor of ``tensor_type`` without any cells."""
    if tensor_type.is_mapped:
        return Tensor(tensor_type, MappedStorage(tensor_type, {}))
    return Tensor(tensor_type, IndexedStorage(tensor_type, None))


def _check_dense_limit(count: int, config: ExecutionConfig, what: str) -> None:
    if config.max_dense_cells is not None and count > config.max_dense_cells:
        raise InvalidArgumentError(
            f"{what} would materialise {count} cells, above max_dense_cells={config.max_dense_cells}"
        )


# --------------------------------------------------------------------------- map
def map_cells(tensor: Tensor, fn: UnaryFn, *, config: Optional[ExecutionConfig] = None) -> Tensor:
    """Apply ``fn`` to every cell value; the type and cell set are unchanged."""
    cfg = _resolve_config(config)
    values = _dense_values(tensor.storage, cfg)
    if values is not None:
        logger.debug("map: dense kernel over %s", tensor.type)
        return Tensor(tensor.type, IndexedStorage(tensor.type, _apply_array(fn, values)))
    if tensor.size == 0:
        return _empty(tensor.type)
    builder = Builder.of(tensor.type)
    for address, value in tensor.storage.items():
        builder.cell(address, _apply_scalar(fn, value))
    return builder.build()


# --------------------------------------------------------------------------- generate
def generate(
    tensor_type: TensorType,
    fn: Callable[[List[int]], float],
    *,
    config: Optional[ExecutionConfig] = None,
) -> Tensor:
    """Build a dense tensor by calling ``fn`` with the indices of every cell."""
    cfg = _resolve_config(config)
    if tensor_type.is_mapped:
        raise InvalidArgumentError(f"Cannot generate {tensor_type}: mapped dimensions have no range")
    unbound = [dim.name for dim in tensor_type.dimensions() if dim.size is None]
    if unbound:
        raise InvalidArgumentError(
            f"Cannot generate {tensor_type}: dimensions {', '.join(unbound)} are unbound"
        )
    shape = tuple(dim.size for dim in tensor_type.dimensions())
    count = math.prod(shape)
    _check_dense_limit(count, cfg, f"Generating {tensor_type}")
    if count == 0:
        return _empty(tensor_type)
    values = np.empty(shape, dtype=np.float64)
    for index in np.ndindex(*shape):
        values[index] = float(fn(list(index)))
    return Tensor(tensor_type, IndexedStorage(tensor_type, values))


# --------------------------------------------------------------------------- rename
def rename(
    tensor: Tensor,
    from_dimensions: Union[str, Sequence[str]],
    to_dimensions: Union[str, Sequence[str]],
) -> Tensor:
    """Rename dimensions positionally; labels and values move with them."""
    if isinstance(from_dimensions, str):
        from_dimensions = [from_dimensions]
    if isinstance(to_dimensions, str):
        to_dimensions = [to_dimensions]
    from_dimensions = list(from_dimensions)
    to_dimensions = list(to_dimensions)
    new_type = tensor.type.renamed(from_dimensions, to_dimensions)
    inverse = dict(zip(to_dimensions, from_dimensions))
    # position in the old type of each dimension of the new type
    order = [tensor.type.index_of(inverse.get(name, name)) for name in new_type.dimension_names()]

    storage = tensor.storage
    if isinstance(storage, IndexedStorage):
        values = None if storage.values is None else np.transpose(storage.values, order)
        return Tensor(new_type, IndexedStorage(new_type, values))
    cells = {address.project(order): value for address, value in storage.items()}
    return Tensor(new_type, MappedStorage(new_type, cells))


# --------------------------------------------------------------------------- reduce
class Aggregator(str, Enum):
    SUM = "sum"
    PROD = "prod"
    COUNT = "count"
    MAX = "max"
    MIN = "min"
    AVG = "avg"

    @classmethod
    def coerce(cls, value: Union["Aggregator", str]) -> "Aggregator":
        if isinstance(value, Aggregator):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            names = ", ".join(member.value for member in cls)
            raise InvalidArgumentError(f"Unknown aggregator '{value}', expected one of {names}") from None

    def empty_value(self) -> Optional[float]:
        """Value of an aggregate over no cells, or None when it is undefined."""
        if self is Aggregator.SUM or self is Aggregator.COUNT:
            return 0.0
        if self is Aggregator.PROD:
            return 1.0
        return None

    def combine(self, values: Sequence[float]) -> float:
        """Aggregate one group of cell values.

        Sums are correctly rounded and products run over the sorted values, so
        the result does not depend on the order cells are visited in.
        """
        if self is Aggregator.COUNT:
            return float(len(values))
        group = np.asarray(values, dtype=np.float64)
        if self is Aggregator.SUM:
            return math.fsum(group)
        if self is Aggregator.PROD:
            return float(np.prod(np.sort(group)))
        if self is Aggregator.MAX:
            return float(np.max(group))
        if self is Aggregator.MIN:
            return float(np.min(group))
        return math.fsum(group) / len(group)

    def reduce_array(self, values: np.ndarray, axes: Tuple[int, ...]) -> np.ndarray:
        kept = [pos for pos in range(values.ndim) if pos not in axes]
        if self is Aggregator.COUNT:
            extents = tuple(values.shape[pos] for pos in kept)
            return np.full(extents, float(math.prod(values.shape[pos] for pos in axes)))
        if self is Aggregator.MAX:
            return np.max(values, axis=axes)
        if self is Aggregator.MIN:
            return np.min(values, axis=axes)
        # one row per surviving position, combined exactly like a generic group
        rows = np.transpose(values, kept + list(axes)).reshape(
            tuple(values.shape[pos] for pos in kept) + (-1,)
        )
        return np.asarray(np.apply_along_axis(self.combine, -1, rows), dtype=np.float64)


def reduce(
    tensor: Tensor,
    aggregator: Union[Aggregator, str],
    dimensions: Union[None, str, Sequence[str]] = None,
    *,
    config: Optional[ExecutionConfig] = None,
) -> Tensor:
    """Aggregate away ``dimensions`` (all of them when none are given).

    Cells agreeing on every surviving label are combined. Surviving addresses
    come only from existing cells, so nothing is emitted for an address no cell
    contributes to.
    """
    cfg = _resolve_config(config)
    agg = Aggregator.coerce(aggregator)
    if isinstance(dimensions, str):
        dimensions = [dimensions]
    # repeated names reduce once
    names = list(dict.fromkeys(dimensions)) if dimensions else list(tensor.type.dimension_names())
    result_type = tensor.type.without(names)

    if tensor.size == 0:
        empty_value = agg.empty_value()
        if result_type.rank == 0 and empty_value is not None:
            return Builder.of(result_type).cell((), empty_value).build()
        return _empty(result_type)

    values = _dense_values(tensor.storage, cfg)
    if values is not None:
        axes = tuple(sorted(tensor.type.index_of(name) for name in names))
        logger.debug("reduce: dense %s over axes %s of %s", agg.value, axes, tensor.type)
        reduced = agg.reduce_array(values, axes)
        return Tensor(result_type, IndexedStorage(result_type, reduced))

    surviving = [tensor.type.index_of(name) for name in result_type.dimension_names()]
    groups: Dict[TensorAddress, List[float]] = {}
    for address, value in tensor.storage.items():
        groups.setdefault(address.project(surviving), []).append(value)
    logger.debug("reduce: %s over %d groups of %s", agg.value, len(groups), tensor.type)
    builder = Builder.of(result_type)
    for address, group in groups.items():
        builder.cell(address, agg.combine(group))
    return builder.build()


# --------------------------------------------------------------------------- join
def join(
    left: Tensor,
    right: Tensor,
    fn: BinaryFn,
    *,
    config: Optional[ExecutionConfig] = None,
) -> Tensor:
    """Combine every pair of cells that agree on the dimensions both sides share.

    The result type is the union of both types. Dimensions found on one side
    only are crossed with the matching cells of the other side, and a cell is
    produced only where both sides have a value.
    """
    cfg = _resolve_config(config)
    result_type = left.type.union(right.type)
    if left.size == 0 or right.size == 0:
        return _empty(result_type)

    left_values = _dense_values(left.storage, cfg)
    right_values = _dense_values(right.storage, cfg)
    if left_values is not None and right_values is not None:
        return _dense_join(left, left_values, right, right_values, fn, result_type, cfg)
    return _sparse_join(left, right, fn, result_type, cfg)


def _dense_join(
    left: Tensor,
    left_values: np.ndarray,
    right: Tensor,
    right_values: np.ndarray,
    fn: BinaryFn,
    result_type: TensorType,
    config: ExecutionConfig,
) -> Tensor:
    names = result_type.dimension_names()
    extents: Dict[str, int] = {}
    for operand, values in ((left, left_values), (right, right_values)):
        for name, extent in zip(operand.type.dimension_names(), values.shape):
            extents[name] = min(extents.get(name, extent), extent)
    shape = tuple(extents[name] for name in names)
    count = math.prod(shape)
    _check_dense_limit(count, config, f"Joining into {result_type}")
    if count == 0:
        return _empty(result_type)

    def _aligned(operand: Tensor, values: np.ndarray) -> np.ndarray:
        own = operand.type.dimension_names()
        trimmed = np.asarray(values[tuple(slice(0, extents[name]) for name in own)])
        # both name lists are sorted, so only singleton axes need inserting
        return trimmed.reshape(tuple(extents[name] if name in own else 1 for name in names))

    logger.debug("join: dense kernel %s x %s -> %s", left.type, right.type, result_type)
    out = _apply_array(fn, _aligned(left, left_values), _aligned(right, right_values))
    return Tensor(result_type, IndexedStorage(result_type, np.broadcast_to(out, shape)))


def _sparse_join(
    left: Tensor,
    right: Tensor,
    fn: BinaryFn,
    result_type: TensorType,
    config: ExecutionConfig,
) -> Tensor:
    shared = [name for name in left.type.dimension_names() if right.type.has_dimension(name)]
    left_key = [left.type.index_of(name) for name in shared]
    right_key = [right.type.index_of(name) for name in shared]

    side = config.join_build_side
    if side == "auto":
        # an operand whose dimensions are all shared is addressed directly by
        # the other operand's cells, so only the smaller operand is walked
        if len(shared) == right.type.rank and right.size >= left.size:
            return _lookup_join(left, right, left_key, fn, result_type, scan_left=True)
        if len(shared) == left.type.rank and left.size > right.size:
            return _lookup_join(right, left, right_key, fn, result_type, scan_left=False)
        side = "left" if left.size <= right.size else "right"
    return _hash_join(left, right, left_key, right_key, side, fn, result_type)


def _lookup_join(
    scan: Tensor,
    target: Tensor,
    scan_key: List[int],
    fn: BinaryFn,
    result_type: TensorType,
    *,
    scan_left: bool,
) -> Tensor:
    # the target's dimensions are a subset of the scanned operand's, so the
    # result type has the scanned operand's dimensions in the same order
    logger.debug(
        "join: scanning %s (%d cells), looking up %s (%d cells)",
        scan.type, scan.size, target.type, target.size,
    )
    builder = Builder.of(result_type)
    matched = 0
    for address, scan_value in scan.storage.items():
        target_value = target.storage.lookup(address.project(scan_key))
        if target_value is None:
            continue
        if scan_left:
            value = _apply_scalar(fn, scan_value, target_value)
        else:
            value = _apply_scalar(fn, target_value, scan_value)
        builder.cell(address, value)
        matched += 1
    return builder.build() if matched else _empty(result_type)


def _hash_join(
    left: Tensor,
    right: Tensor,
    left_key: List[int],
    right_key: List[int],
    side: str,
    fn: BinaryFn,
    result_type: TensorType,
) -> Tensor:
    # (take_from_left, position) for every dimension of the result
    sources = [
        (True, left.type.index_of(name)) if left.type.has_dimension(name)
        else (False, right.type.index_of(name))
        for name in result_type.dimension_names()
    ]
    build, probe = (left, right) if side == "left" else (right, left)
    build_key, probe_key = (left_key, right_key) if side == "left" else (right_key, left_key)
    logger.debug(
        "join: hashing %s (%d cells), probing %s (%d cells) on %d shared dimensions",
        build.type, build.size, probe.type, probe.size, len(left_key),
    )

    index: Dict[TensorAddress, List[Tuple[TensorAddress, float]]] = {}
    for address, value in build.storage.items():
        index.setdefault(address.project(build_key), []).append((address, value))

    builder = Builder.of(result_type)
    matched = 0
    for probe_address, probe_value in probe.storage.items():
        matches = index.get(probe_address.project(probe_key))
        if not matches:
            continue
        for build_address, build_value in matches:
            if side == "left":
                left_address, left_value = build_address, build_value
                right_address, right_value = probe_address, probe_value
            else:
                left_address, left_value = probe_address, probe_value
                right_address, right_value = build_address, build_value
            labels = [
                left_address[pos] if from_left else right_address[pos]
                for from_left, pos in sources
            ]
            builder.cell(TensorAddress(labels), _apply_scalar(fn, left_value, right_value))
            matched += 1
    return builder.build() if matched else _empty(result_type)
