"""Plain-text XYZ point-cloud loading."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import numpy as np

logger = logging.getLogger(__name__)

# Quantized coordinates beyond this are no longer exact integers as doubles.
MAX_QUANTIZED = 2.0**53


@dataclass(frozen=True)
class PointCloud:
    positions: np.ndarray  # (N, 3) int64, quantized
    colors: np.ndarray  # (N,) uint8 palette indices
    bbox_min: Optional[tuple[int, int, int]]
    bbox_max: Optional[tuple[int, int, int]]

    def __len__(self) -> int:
        return int(self.positions.shape[0])


def quantize(values: np.ndarray | float, voxel_size: float) -> np.ndarray:
    """Divide by the voxel size and round half away from zero (2.5 -> 3, -2.5 -> -3)."""

    q = np.asarray(values, dtype=np.float64) / float(voxel_size)
    t = np.trunc(q)
    return (t + np.sign(q) * (np.abs(q - t) >= 0.5)).astype(np.int64)


def _parse_line(line: str, voxel_size: float) -> tuple[float, float, float, int] | None:
    parts = line.split()
    if len(parts) < 4:
        return None
    try:
        x, y, z = float(parts[0]), float(parts[1]), float(parts[2])
        color = int(parts[3])
    except ValueError:
        return None
    if not all(math.isfinite(v) and abs(v) / voxel_size <= MAX_QUANTIZED for v in (x, y, z)):
        return None
    return x, y, z, color


def read_xyz(lines: Iterable[str], voxel_size: float = 1.0) -> PointCloud:
    """Read ``x y z color`` records until the first line that does not parse.

    Blank lines are skipped. Extra tokens after the color are ignored.
    """

    if voxel_size <= 0:
        raise ValueError(f"voxel_size must be positive, got {voxel_size}")

    coords: list[tuple[float, float, float]] = []
    colors: list[int] = []
    for lineno, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        record = _parse_line(line, voxel_size)
        if record is None:
            logger.debug("Stopped reading at line %d: %r", lineno, line.rstrip("\n"))
            break
        coords.append(record[:3])
        colors.append(record[3] & 0xFF)

    if not coords:
        return PointCloud(
            positions=np.zeros((0, 3), dtype=np.int64),
            colors=np.zeros((0,), dtype=np.uint8),
            bbox_min=None,
            bbox_max=None,
        )

    positions = quantize(np.asarray(coords, dtype=np.float64), voxel_size)
    bmin = tuple(int(v) for v in positions.min(axis=0))
    bmax = tuple(int(v) for v in positions.max(axis=0))
    return PointCloud(
        positions=positions,
        colors=np.asarray(colors, dtype=np.uint8),
        bbox_min=bmin,  # type: ignore[arg-type]
        bbox_max=bmax,  # type: ignore[arg-type]
    )


def load_xyz(path: str | Path, voxel_size: float = 1.0) -> PointCloud:
    with Path(path).open("r", encoding="utf-8") as f:
        return read_xyz(f, voxel_size)
