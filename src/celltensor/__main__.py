from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

import numpy as np

from .core.codec import from_string, parse_type_spec
from .core.exceptions import CellTensorError
from .core.functions import Aggregator
from .core.tensor import Tensor

JOIN_OPERATIONS = {
    "multiply": np.multiply,
    "add": np.add,
    "subtract": np.subtract,
    "divide": np.true_divide,
    "max": np.maximum,
    "min": np.minimum,
    "atan2": np.arctan2,
}


def _read_text(value: str) -> str:
    if value.startswith("@"):
        path = Path(value[1:])
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise SystemExit(f"Tensor file not found: {path}") from exc
    return value


def _load_tensor(value: str, type_spec: Optional[str]) -> Tensor:
    tensor_type = parse_type_spec(type_spec) if type_spec else None
    return from_string(_read_text(value), tensor_type)


def _emit(tensor: Tensor, with_type: bool) -> None:
    print(tensor.to_string(with_type=with_type))


def _cmd_format(args: argparse.Namespace) -> None:
    _emit(_load_tensor(args.tensor, args.type), args.with_type)


def _cmd_reduce(args: argparse.Namespace) -> None:
    tensor = _load_tensor(args.tensor, args.type)
    _emit(tensor.reduce(args.aggregator, args.dim or None), args.with_type)


def _cmd_join(args: argparse.Namespace) -> None:
    left = _load_tensor(args.left, args.left_type)
    right = _load_tensor(args.right, args.right_type)
    _emit(left.join(right, JOIN_OPERATIONS[args.op]), args.with_type)


def _cmd_rename(args: argparse.Namespace) -> None:
    tensor = _load_tensor(args.tensor, args.type)
    _emit(tensor.rename(args.from_dims, args.to_dims), args.with_type)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="celltensor command line utilities")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log kernel decisions to stderr")
    subparsers = parser.add_subparsers(dest="cmd")

    def _common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--with-type",
            action="store_true",
            help="Always prefix the output with its tensor type",
        )

    format_parser = subparsers.add_parser("format", help="Print a tensor in canonical form")
    format_parser.add_argument("tensor", help="Tensor text, or @path to read it from a file")
    format_parser.add_argument("--type", default=None, help="Type spec such as 'tensor(x[3])'")
    _common(format_parser)
    format_parser.set_defaults(func=_cmd_format)

    reduce_parser = subparsers.add_parser("reduce", help="Aggregate away dimensions")
    reduce_parser.add_argument("tensor", help="Tensor text, or @path to read it from a file")
    reduce_parser.add_argument("--type", default=None, help="Type spec of the tensor")
    reduce_parser.add_argument(
        "--aggregator",
        default="sum",
        choices=[member.value for member in Aggregator],
        help="Aggregator to apply (default: sum)",
    )
    reduce_parser.add_argument(
        "--dim",
        action="append",
        default=None,
        help="Dimension to reduce; repeat for several. Omit to reduce all",
    )
    _common(reduce_parser)
    reduce_parser.set_defaults(func=_cmd_reduce)

    join_parser = subparsers.add_parser("join", help="Join two tensors cell by cell")
    join_parser.add_argument("left", help="Left tensor text or @path")
    join_parser.add_argument("right", help="Right tensor text or @path")
    join_parser.add_argument("--left-type", default=None, help="Type spec of the left tensor")
    join_parser.add_argument("--right-type", default=None, help="Type spec of the right tensor")
    join_parser.add_argument(
        "--op",
        default="multiply",
        choices=sorted(JOIN_OPERATIONS),
        help="Combining operation (default: multiply)",
    )
    _common(join_parser)
    join_parser.set_defaults(func=_cmd_join)

    rename_parser = subparsers.add_parser("rename", help="Rename dimensions")
    rename_parser.add_argument("tensor", help="Tensor text, or @path to read it from a file")
    rename_parser.add_argument("--type", default=None, help="Type spec of the tensor")
    rename_parser.add_argument("--from", dest="from_dims", action="append", required=True)
    rename_parser.add_argument("--to", dest="to_dims", action="append", required=True)
    _common(rename_parser)
    rename_parser.set_defaults(func=_cmd_rename)
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.cmd is None:
        parser.print_help()
        return
    try:
        args.func(args)
    except CellTensorError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc


if __name__ == "__main__":  # pragma: no cover
    main(sys.argv[1:])
