"""Command line entry point.

Usage::

    raster-drift GOLDEN COMPARISON OUTPUT_DIR [pix] [options]

The optional literal ``pix`` enables the per-pixel detail log.

Exit codes: 0 success, 1 usage / open / dimension / detail log / output write errors,
10 raster backend errors.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .config import DEFAULT_GDAL_CACHE_MB, DEFAULT_TOP_N, DETAIL_LOG_FLAG, CompareConfig
from .errors import RasterDriftError, UsageError
from .pipeline import compare_rasters

logger = logging.getLogger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    """argparse parser that raises UsageError instead of exiting with 2."""

    def error(self, message):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="raster-drift",
        description=(
            "Compare a golden single-band raster against a comparison raster "
            "value for value and write color-coded and ppm difference rasters."
        ),
    )
    parser.add_argument("golden", help="Reference raster.")
    parser.add_argument("comparison", help="Raster to check against the reference.")
    parser.add_argument("output_dir", help="Directory for the generated files.")
    parser.add_argument(
        "detail",
        nargs="?",
        default=None,
        help=f"Pass '{DETAIL_LOG_FLAG}' to write the per-pixel detail log.",
    )
    parser.add_argument(
        "--workers", type=int, default=1, help="Threads for the per-pixel pass (default 1)."
    )
    parser.add_argument(
        "--top-n",
        type=int,
        default=DEFAULT_TOP_N,
        help=f"Worst pixels written to the detail log (default {DEFAULT_TOP_N}).",
    )
    parser.add_argument(
        "--three-band",
        action="store_true",
        help="Write an RGB color raster without the alpha band.",
    )
    parser.add_argument(
        "--no-calibration-strip",
        action="store_true",
        help="Do not burn the reference gradient into column 0.",
    )
    parser.add_argument(
        "--colored-name", default=None, help="Fixed file name for the color raster."
    )
    parser.add_argument(
        "--rel-name", default=None, help="Fixed file name for the ppm raster."
    )
    parser.add_argument("--json", action="store_true", help="Also write a JSON summary.")
    parser.add_argument("--plot", action="store_true", help="Also write a PNG quicklook.")
    parser.add_argument(
        "--cache-mb",
        type=int,
        default=DEFAULT_GDAL_CACHE_MB,
        help=f"GDAL block cache size in MB (default {DEFAULT_GDAL_CACHE_MB}).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def config_from_args(args: argparse.Namespace) -> CompareConfig:
    if args.detail is not None and args.detail != DETAIL_LOG_FLAG:
        logger.warning(
            f"Ignoring unknown option '{args.detail}'; use '{DETAIL_LOG_FLAG}' for the detail log."
        )
    return CompareConfig(
        detail_log=args.detail == DETAIL_LOG_FLAG,
        top_n=args.top_n,
        workers=args.workers,
        channels=3 if args.three_band else 4,
        calibration_strip=not args.no_calibration_strip,
        colored_name=args.colored_name,
        rel_name=args.rel_name,
        write_json=args.json,
        write_plot=args.plot,
        gdal_cache_mb=args.cache_mb,
    )


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Run the comparison and return the process exit code."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        _setup_logging(args.verbose)
        config = config_from_args(args)
    except UsageError as exc:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {exc}", file=sys.stderr)
        return exc.exit_code

    try:
        compare_rasters(args.golden, args.comparison, args.output_dir, config)
    except RasterDriftError as exc:
        logger.error(str(exc))
        return exc.exit_code
    return 0


def run() -> None:
    sys.exit(main())
