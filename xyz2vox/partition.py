"""Split an unbounded voxel cloud into fixed-size models on a 3D grid."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence

import numpy as np

# Local coordinates are stored as unsigned bytes in XYZI chunks.
MAX_EDGE_LIMIT = 256

CellIndex = tuple[int, int, int]


@dataclass(slots=True)
class GridCell:
    """Voxels of one model, in cell-local coordinates, with their tight bounds."""

    positions: np.ndarray  # (M, 3) int64, each component in [0, max_edge)
    colors: np.ndarray  # (M,) uint8
    bbox_min: tuple[int, int, int]
    bbox_max: tuple[int, int, int]

    def __len__(self) -> int:
        return int(self.positions.shape[0])

    @property
    def size(self) -> tuple[int, int, int]:
        return (
            self.bbox_max[0] - self.bbox_min[0] + 1,
            self.bbox_max[1] - self.bbox_min[1] + 1,
            self.bbox_max[2] - self.bbox_min[2] + 1,
        )


def _check_max_edge(max_edge: int) -> int:
    max_edge = int(max_edge)
    if max_edge < 1 or max_edge > MAX_EDGE_LIMIT:
        raise ValueError(f"max_edge must be in [1, {MAX_EDGE_LIMIT}], got {max_edge}")
    return max_edge


def cell_world_offset(cell_index: Sequence[int], max_edge: int) -> tuple[int, int, int]:
    """Lower corner of a grid cell, relative to the partition origin."""

    return (
        int(cell_index[0]) * max_edge,
        int(cell_index[1]) * max_edge,
        int(cell_index[2]) * max_edge,
    )


def partition(
    positions: np.ndarray,
    colors: np.ndarray,
    origin: Sequence[int],
    max_edge: int,
) -> Dict[CellIndex, GridCell]:
    """Bucket voxels into cells of edge ``max_edge``.

    ``origin`` must be the component-wise minimum of ``positions``. Voxels are
    never dropped or deduplicated and keep their input order within a cell.
    The returned dict is ordered by cell index.
    """

    max_edge = _check_max_edge(max_edge)
    positions = np.asarray(positions, dtype=np.int64)
    colors = np.asarray(colors, dtype=np.uint8)
    if positions.ndim != 2 or positions.shape[1] != 3:
        raise ValueError(f"positions must have shape (N, 3), got {positions.shape}")
    if colors.shape != (positions.shape[0],):
        raise ValueError(f"colors must have shape ({positions.shape[0]},), got {colors.shape}")

    cells: Dict[CellIndex, GridCell] = {}
    if positions.shape[0] == 0:
        return cells

    local = positions - np.asarray(origin, dtype=np.int64).reshape(1, 3)
    if int(local.min()) < 0:
        raise ValueError("origin is not the component-wise minimum of positions")

    cell_idx = local // max_edge
    cell_local = local - cell_idx * max_edge

    keys, inverse = np.unique(cell_idx, axis=0, return_inverse=True)
    inverse = inverse.reshape(-1)
    # Stable sort keeps input order inside each cell.
    order = np.argsort(inverse, kind="stable")
    bounds = np.searchsorted(inverse[order], np.arange(keys.shape[0] + 1))

    for k, key in enumerate(keys):
        members = order[bounds[k] : bounds[k + 1]]
        pts = cell_local[members]
        bmin = pts.min(axis=0)
        bmax = pts.max(axis=0)
        cells[(int(key[0]), int(key[1]), int(key[2]))] = GridCell(
            positions=pts,
            colors=colors[members],
            bbox_min=(int(bmin[0]), int(bmin[1]), int(bmin[2])),
            bbox_max=(int(bmax[0]), int(bmax[1]), int(bmax[2])),
        )
    return cells
