"""Summary and per-pixel detail reporting.

Two sinks:

- the summary stream (stdout unless another stream is injected), always on;
- the detail log, a UTF-8 text file opened only on request.

Detail entries are two lines per pixel::

    (     3 ,    12) pixel: [2.00000000000000000000 - 1.00000000000000000000] diff: 1.00000000000000000000  - 100.000000%
    40000000 3F800000

The first line ends with a percentage when ``abs(rel_diff) > 0.001`` and a
ppm figure otherwise. The second line holds the IEEE-754 bit patterns of the
golden and comparison values.
"""
from __future__ import annotations

import json
import logging
import math
import struct
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, TextIO, Union

import numpy as np

from .config import PPM
from .diff import PixelSample
from .errors import DetailSinkOpenError, OutputWriteError
from .stats import RunStats

logger = logging.getLogger(__name__)

# Above this magnitude the detail line shows percent instead of ppm.
PERCENT_CUTOFF = 0.001


def float_bits(value: float) -> int:
    """IEEE-754 single precision bit pattern of ``value``."""
    return struct.unpack("<I", struct.pack("<f", value))[0]


def format_pixel_detail(sample: PixelSample) -> str:
    """Render the two-line detail entry for one pixel, newline terminated."""
    head = (
        f"({sample.x:6d} , {sample.y:5d}) pixel: "
        f"[{sample.value_golden:.20f} - {sample.value_comparison:.20f}] "
        f"diff: {sample.diff:.20f} "
    )
    if abs(sample.rel_diff) > PERCENT_CUTOFF:
        # percent is a single precision product, ppm a double one
        pct = float(np.float32(sample.rel_diff) * np.float32(100))
        tail = f" - {pct:.6f}%"
    else:
        tail = f" - {sample.rel_diff * PPM:.6f} ppm"
    bits = f"{float_bits(sample.value_golden):08X} {float_bits(sample.value_comparison):08X}"
    return f"{head}{tail}\n{bits}\n"


class DetailLog:
    """
    Per-pixel detail sink.

    Each entry is written with a single ``write`` call under a lock so
    entries stay whole if several threads report pixels.
    """

    def __init__(self, stream: TextIO, path: Optional[str] = None):
        self.stream = stream
        self.path = path
        self.entries = 0
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: Union[str, Path]) -> "DetailLog":
        """
        Open (truncate) a detail log file.

        Raises
        ------
        DetailSinkOpenError
            If the file cannot be created.
        """
        try:
            stream = open(path, "w", encoding="utf-8")
        except OSError as exc:
            raise DetailSinkOpenError(str(path), exc.strerror or str(exc)) from exc
        logger.info(f"Writing detailed pixel differences to {path}")
        return cls(stream, str(path))

    def write(self, sample: PixelSample) -> None:
        entry = format_pixel_detail(sample)
        with self._lock:
            self.stream.write(entry)
            self.entries += 1

    def close(self) -> None:
        if self.path is not None and not self.stream.closed:
            self.stream.close()

    def __enter__(self) -> "DetailLog":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ReportEmitter:
    """
    Writes the run summary and, when a detail log is attached, pixel entries.

    Parameters
    ----------
    summary : TextIO, optional
        Summary stream. Defaults to ``sys.stdout``.
    detail : DetailLog, optional
        Per-pixel sink; pixel entries are dropped when absent.
    """

    def __init__(self, summary: Optional[TextIO] = None, detail: Optional[DetailLog] = None):
        self.summary = summary if summary is not None else sys.stdout
        self.detail = detail

    def line(self, text: str) -> None:
        print(text, file=self.summary)

    def pixel_detail(self, sample: PixelSample) -> None:
        if self.detail is not None:
            self.detail.write(sample)

    def top_n_detail(self, samples: Iterable[PixelSample]) -> None:
        for sample in samples:
            self.pixel_detail(sample)

    def bad_pixel_summary(self, stats: RunStats) -> None:
        self.line(f"bad pixels = {stats.bad_pixel_count}")
        self.line(f"bad pixels = {stats.bad_pct:f}%")
        self.line(f"bad pixels = {stats.bad_ppm:f} ppm")

    def aggregate_summary(self, stats: RunStats, median_ppm: Optional[float]) -> None:
        if not stats.has_differences:
            self.line(f"cnt = {stats.count_nonzero}")
            self.line("No differences detected")
            return
        self.line(f"avg rel diff = {stats.avg_pct:f}%")
        self.line(
            f"avg rel diff = {stats.avg_ppm:.15f} ppm, cnt = {stats.count_nonzero}, "
            f"pct = {stats.nonzero_pct:f}"
        )
        self.line(f"median = {median_ppm:f} ppm")


def write_summary_json(
    output_path: Union[str, Path],
    stats: RunStats,
    median_ppm: Optional[float],
    top: Iterable[PixelSample],
    sources: Optional[Dict[str, Any]] = None,
    outputs: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Write a machine-readable run summary.

    NaN and infinite values (from NaN input pixels) are written as null.

    Returns
    -------
    str
        Path to the written file.

    Raises
    ------
    OutputWriteError
        If the file cannot be written.
    """
    payload = {
        "stats": stats.to_dict(),
        "median_estimate_ppm": median_ppm,
        "top": [
            {
                "x": s.x,
                "y": s.y,
                "value_golden": s.value_golden,
                "value_comparison": s.value_comparison,
                "diff": s.diff,
                "rel_diff": s.rel_diff,
                "rel_diff_ppm": s.rel_diff * PPM,
            }
            for s in top
        ],
        "sources": sources or {},
        "outputs": outputs or {},
        "_export_info": {"exported_at": datetime.now().isoformat()},
    }
    try:
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(_finite_or_none(payload), f, indent=2, default=str, allow_nan=False)
    except OSError as exc:
        raise OutputWriteError(str(output_path), exc.strerror or str(exc)) from exc
    return str(output_path)


def _finite_or_none(obj: Any) -> Any:
    """Replace NaN and infinite floats with None, recursively."""
    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None
    if isinstance(obj, dict):
        return {k: _finite_or_none(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_finite_or_none(v) for v in obj]
    return obj
