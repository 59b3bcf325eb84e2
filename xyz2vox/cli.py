"""Command line interface: ``xyz2vox -i cloud.xyz -o scene.vox [-s 0.1]``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .logging_config import setup_logging
from .partition import MAX_EDGE_LIMIT
from .pipeline import DEFAULT_MAX_MODEL_SIZE, ConvertOptions, VerificationError, convert

EXIT_USAGE = 1
EXIT_NO_ARGS = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xyz2vox",
        description="Convert an XYZ point cloud (x y z colorIndex per line) into a MagicaVoxel .vox scene.",
    )
    parser.add_argument("-i", "--input", help="Path to input XYZ file")
    parser.add_argument("-o", "--output", help="Path to output .vox file")
    parser.add_argument("-s", "--voxel-size", type=float, default=1.0, help="Edge length of a single voxel (default: 1)")
    parser.add_argument(
        "--max-model-size",
        type=int,
        default=DEFAULT_MAX_MODEL_SIZE,
        help=f"Maximum model edge length in voxels (default: {DEFAULT_MAX_MODEL_SIZE})",
    )
    parser.add_argument("--verify", action="store_true", help="Read the written file back and check its contents")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", default=None, help="Also write log output to this file")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not (sys.argv[1:] if argv is None else argv):
        parser.print_help()
        return EXIT_NO_ARGS

    if not args.input:
        print("You need to provide an input file.")
        parser.print_usage()
        return EXIT_USAGE
    if not args.output:
        print("You need to provide an output file.")
        parser.print_usage()
        return EXIT_USAGE
    if not Path(args.input).is_file():
        raise SystemExit(f"Input file not found: {args.input}")
    if args.voxel_size <= 0:
        raise SystemExit("--voxel-size must be positive")
    if not 1 <= args.max_model_size <= MAX_EDGE_LIMIT:
        raise SystemExit(f"--max-model-size must be in [1, {MAX_EDGE_LIMIT}]")

    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    try:
        convert(
            args.input,
            args.output,
            options=ConvertOptions(
                voxel_size=float(args.voxel_size),
                max_model_size=int(args.max_model_size),
                verify=bool(args.verify),
            ),
        )
    except VerificationError as exc:
        raise SystemExit(str(exc)) from exc
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
