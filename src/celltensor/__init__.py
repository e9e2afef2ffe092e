from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _load_version

from .core.address import TensorAddress
from .core.builder import Builder, CellBuilder, IndexedBuilder, MappedBuilder, builder_for
from .core.codec import (
    from_string,
    parse_type_spec,
    to_standard_string,
    to_typed_string,
    type_from_value_string,
)
from .core.composites import l1_normalize, l2_normalize, matmul, softmax
from .core.exceptions import (
    CellTensorError,
    InvalidArgumentError,
    LabelTypeError,
    TensorBoundsError,
    TensorFormatError,
    TensorStateError,
    TypeConstructionError,
)
from .core.functions import (
    Aggregator,
    ExecutionConfig,
    array_function,
    generate,
    join,
    map_cells,
    reduce,
    rename,
)
from .core.tensor import Tensor
from .core.types import Dimension, TensorType

try:
    __version__ = _load_version("celltensor")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "Tensor",
    "TensorType",
    "Dimension",
    "TensorAddress",
    "Builder",
    "CellBuilder",
    "IndexedBuilder",
    "MappedBuilder",
    "builder_for",
    "Aggregator",
    "ExecutionConfig",
    "array_function",
    "map_cells",
    "generate",
    "rename",
    "reduce",
    "join",
    "l1_normalize",
    "l2_normalize",
    "matmul",
    "softmax",
    "from_string",
    "parse_type_spec",
    "type_from_value_string",
    "to_standard_string",
    "to_typed_string",
    "CellTensorError",
    "TypeConstructionError",
    "InvalidArgumentError",
    "LabelTypeError",
    "TensorBoundsError",
    "TensorFormatError",
    "TensorStateError",
    "__version__",
]
