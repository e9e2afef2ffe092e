from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple, Union

from lark import Lark, Token, Transformer
from lark.exceptions import UnexpectedInput

from .address import INDEX_LABEL_RE
from .builder import Builder
from .exceptions import TensorFormatError
from .tensor import Tensor
from .types import Dimension, TensorType

logger = logging.getLogger(__name__)

GRAMMAR_PATH = Path(__file__).with_name("tensor_grammar.lark")

NUMBER_RE = re.compile(r"^[+-]?((\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?|inf|nan)$", re.IGNORECASE)

Element = Tuple[str, str]
ParsedCell = Tuple[List[Element], float]


@lru_cache(maxsize=1)
def _build_lark() -> Lark:
    grammar = GRAMMAR_PATH.read_text()
    return Lark(
        grammar,
        parser="lalr",
        lexer="contextual",
        start=["type_spec", "value_body"],
        maybe_placeholders=False,
    )


class _Body:
    """A parsed value body: either a bare scalar or a list of cells."""

    def __init__(self, cells: Optional[List[ParsedCell]] = None, scalar: Optional[float] = None):
        self.cells = cells or []
        self.scalar = scalar


class _CodecTransformer(Transformer):
    def type_spec(self, items) -> List[Dimension]:
        return list(items)

    def mapped_dimension(self, items) -> Dimension:
        return Dimension.mapped(str(items[0]))

    def indexed_dimension(self, items) -> Dimension:
        size = int(items[1]) if len(items) > 1 else None
        return Dimension.indexed(str(items[0]), size)

    def cell_body(self, items) -> _Body:
        return _Body(cells=list(items))

    def scalar_body(self, items) -> _Body:
        return _Body(scalar=float(items[0]))

    def cell(self, items) -> ParsedCell:
        address, value = items
        return address, float(value)

    def address(self, items) -> List[Element]:
        return list(items)

    def element(self, items) -> Element:
        name, label = items
        return str(name), str(label)


def _parse(text: str, start: str):
    try:
        tree = _build_lark().parse(text, start=start)
    except UnexpectedInput as exc:
        line = exc.line if isinstance(exc.line, int) and exc.line > 0 else None
        column = exc.column if isinstance(exc.column, int) and exc.column > 0 else None
        lines = text.splitlines()
        line_text = lines[line - 1] if line is not None and line <= len(lines) else None
        token = getattr(exc, "token", None)
        if isinstance(token, Token) and token.type != "$END":
            message = f"Unexpected '{token}' in '{text}'"
        else:
            message = f"Malformed tensor text '{text}'"
        raise TensorFormatError(message, line=line, column=column, line_text=line_text) from None
    return _CodecTransformer().transform(tree)


# --------------------------------------------------------------------------- types
def parse_type_spec(spec: str) -> TensorType:
    """Parse ``tensor(x{},y[3],z[])`` into a :class:`TensorType`."""
    return TensorType(_parse(spec.strip(), "type_spec"))


def type_from_value_string(text: str) -> TensorType:
    """Derive a type from the first address of a value body; every dimension is mapped."""
    return _infer_type(_parse(text.strip(), "value_body"))


def _infer_type(body: _Body) -> TensorType:
    if body.scalar is not None or not body.cells:
        return TensorType.empty
    first_address, _ = body.cells[0]
    names = [name for name, _ in first_address]
    for name in names:
        if names.count(name) > 1:
            raise TensorFormatError(f"Dimension '{name}' appears twice in one address")
    return TensorType.mapped(*names)


# --------------------------------------------------------------------------- decoding
def from_string(text: str, tensor_type: Union[None, str, TensorType] = None) -> Tensor:
    """Read a tensor from its text form.

    Accepts ``tensor(<type>):{...}``, a bare ``{...}`` value body, or a bare
    number. Without a type, a ``{...}`` body takes a mapped type inferred from
    its first address.
    """
    if isinstance(tensor_type, str):
        tensor_type = parse_type_spec(tensor_type)
    text = text.strip()
    if text.startswith("tensor("):
        colon = text.find(":")
        if colon < 0:
            raise TensorFormatError(f"Expected a value body after the type in '{text}'")
        type_text, value_text = text[:colon], text[colon + 1 :]
        parsed_type = parse_type_spec(type_text)
        if tensor_type is not None and tensor_type != parsed_type:
            raise TensorFormatError(
                f"Got tensor with type string '{type_text}', but was passed type {tensor_type}"
            )
        return from_value_string(value_text, parsed_type)
    if text.startswith("{"):
        body = _parse(text, "value_body")
        resolved = tensor_type if tensor_type is not None else _infer_type(body)
        return _build_from_body(body, resolved)
    if not NUMBER_RE.match(text):
        raise TensorFormatError(
            f"Expected a number or a string starting by {{ or tensor(, got '{text}'"
        )
    if tensor_type is not None and tensor_type != TensorType.empty:
        raise TensorFormatError(
            f"Got zero-dimensional tensor '{text}' but type is not empty but {tensor_type}"
        )
    return Builder.of(TensorType.empty).cell((), float(text)).build()


def from_value_string(text: str, tensor_type: TensorType) -> Tensor:
    return _build_from_body(_parse(text.strip(), "value_body"), tensor_type)


def _build_from_body(body: _Body, tensor_type: TensorType) -> Tensor:
    if body.scalar is not None:
        if tensor_type.rank > 0:
            raise TensorFormatError(f"A single value cannot be a tensor of {tensor_type}")
        return Builder.of(tensor_type).cell((), body.scalar).build()
    if tensor_type.is_mapped:
        logger.debug("parsing %d mapped cells of %s", len(body.cells), tensor_type)
        return _build_mapped(body.cells, tensor_type)
    logger.debug("parsing %d indexed cells of %s", len(body.cells), tensor_type)
    return _build_indexed(body.cells, tensor_type)


def _labels_by_name(elements: List[Element], tensor_type: TensorType) -> dict:
    labels = {}
    for name, label in elements:
        if name in labels:
            raise TensorFormatError(f"Dimension '{name}' appears twice in one address")
        labels[name] = label
    expected = set(tensor_type.dimension_names())
    if set(labels) != expected:
        shown = "{" + ",".join(f"{name}:{label}" for name, label in elements) + "}"
        raise TensorFormatError(f"Address {shown} does not match the dimensions of {tensor_type}")
    return labels


def _build_mapped(cells: List[ParsedCell], tensor_type: TensorType) -> Tensor:
    builder = Builder.of(tensor_type)
    for elements, value in cells:
        builder.cell(_labels_by_name(elements, tensor_type), value)
    return builder.build()


def _build_indexed(cells: List[ParsedCell], tensor_type: TensorType) -> Tensor:
    builder = Builder.of(tensor_type)
    for elements, value in cells:
        labels = _labels_by_name(elements, tensor_type)
        for name, label in labels.items():
            if not INDEX_LABEL_RE.fullmatch(label):
                raise TensorFormatError(
                    f"Indexed dimension '{name}' needs an integer label, got '{label}'"
                )
        builder.cell({name: int(label) for name, label in labels.items()}, value)
    return builder.build()


# --------------------------------------------------------------------------- encoding
def _format_value(value: float) -> str:
    return repr(float(value))


def _content_string(tensor: Tensor, keep_zero_scalar: bool = False) -> str:
    if tensor.type.rank == 0:
        if tensor.size == 0:
            return "{}"
        value = tensor.as_double()
        if value == 0.0 and not keep_zero_scalar:
            return "{}"
        return "{" + _format_value(value) + "}"
    parts = [
        f"{address.format(tensor.type)}:{_format_value(value)}" for address, value in tensor.storage
    ]
    return "{" + ",".join(parts) + "}"


def to_standard_string(tensor: Tensor) -> str:
    """The canonical text form.

    Cells are listed in address order. A tensor that has dimensions but no
    cells is prefixed with its type so the dimensions survive a round trip.
    """
    if tensor.size == 0 and tensor.type.rank > 0:
        return f"{tensor.type}:{_content_string(tensor)}"
    return _content_string(tensor)


def to_typed_string(tensor: Tensor) -> str:
    """The text form always prefixed by the type; reads back to an equal tensor."""
    return f"{tensor.type}:{_content_string(tensor, keep_zero_scalar=True)}"
