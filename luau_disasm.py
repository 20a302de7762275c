#!/usr/bin/env python3
"""Command-line interface for the Luau bytecode disassembler."""

from __future__ import annotations

import argparse
import base64
import binascii
import logging
import sys
from pathlib import Path

from luaudisasm import DecodeError, Disassembler, decode


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("input", help="Compiled bytecode file, or '-' to read stdin")
    parser.add_argument(
        "--lines",
        action="store_true",
        help="Prefix every instruction with its source line",
    )
    parser.add_argument(
        "--base64",
        action="store_true",
        help="Treat the input as base64 text instead of raw bytecode",
    )
    parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Write the listing to this path instead of stdout",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args()


def read_input(source: str, *, is_base64: bool) -> bytes:
    if source == "-":
        data = sys.stdin.buffer.read()
    else:
        path = Path(source)
        if not path.exists():
            raise SystemExit(f"missing input file: {path}")
        data = path.read_bytes()

    if not is_base64:
        return data
    try:
        return base64.b64decode(data.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SystemExit(f"error: invalid base64 input: {exc}") from None


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    data = read_input(args.input, is_base64=args.base64)
    try:
        module = decode(data)
        disassembler = Disassembler()
        if args.out is not None:
            disassembler.write_listing(module, args.out, show_line_info=args.lines)
            print(f"listing written to {args.out}")
        else:
            sys.stdout.write(disassembler.generate_listing(module, show_line_info=args.lines))
    except DecodeError as exc:
        raise SystemExit(f"error: {exc}") from None


if __name__ == "__main__":
    main()
