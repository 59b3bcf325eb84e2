"""High-level pipeline: XYZ text -> partitioned models -> .vox file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .partition import MAX_EDGE_LIMIT, CellIndex, GridCell, partition
from .scene import build_scene
from .vox import load_vox, save_vox
from .xyzio import load_xyz

logger = logging.getLogger(__name__)

# MagicaVoxel's classic per-model limit.
DEFAULT_MAX_MODEL_SIZE = 126


class VerificationError(ValueError):
    """The written file does not hold the models and voxels that were converted."""


@dataclass(slots=True)
class ConvertOptions:
    voxel_size: float = 1.0
    max_model_size: int = DEFAULT_MAX_MODEL_SIZE
    verify: bool = False


@dataclass(frozen=True)
class ConversionResult:
    voxel_count: int
    model_count: int
    bytes_written: int


def convert(
    input_xyz: str | Path,
    output_vox: str | Path,
    *,
    options: ConvertOptions | None = None,
) -> ConversionResult:
    """Read an XYZ point cloud, split it into models and write a .vox scene."""

    opts = options or ConvertOptions()
    if opts.voxel_size <= 0:
        raise ValueError(f"voxel_size must be positive, got {opts.voxel_size}")
    if not 1 <= int(opts.max_model_size) <= MAX_EDGE_LIMIT:
        raise ValueError(f"max_model_size must be in [1, {MAX_EDGE_LIMIT}], got {opts.max_model_size}")

    logger.info('Reading from "%s" with a voxel size of %g...', input_xyz, opts.voxel_size)
    cloud = load_xyz(input_xyz, opts.voxel_size)
    logger.info("Read %d voxels from XYZ file.", len(cloud))

    if cloud.bbox_min is None:
        logger.warning("No voxels read from %s; writing an empty scene.", input_xyz)
        cells: dict[CellIndex, GridCell] = {}
    else:
        logger.debug("Bounding box: %s - %s", cloud.bbox_min, cloud.bbox_max)
        cells = partition(cloud.positions, cloud.colors, cloud.bbox_min, opts.max_model_size)
    logger.info("Voxels are distributed over %d models.", len(cells))

    main = build_scene(cells, opts.max_model_size)

    logger.info('Writing to "%s"...', output_vox)
    written = save_vox(main, output_vox)
    logger.debug("Wrote %d bytes.", written)

    if opts.verify:
        _verify(output_vox, model_count=len(cells), voxel_count=len(cloud))

    logger.info("Conversion finished.")
    return ConversionResult(voxel_count=len(cloud), model_count=len(cells), bytes_written=written)


def _verify(path: str | Path, *, model_count: int, voxel_count: int) -> None:
    vox = load_vox(path)
    if vox.pack_count != model_count or len(vox.models) != model_count:
        raise VerificationError(
            f"Verification failed: expected {model_count} models, found PACK={vox.pack_count} models={len(vox.models)}"
        )
    stored = sum(int(m.voxels.shape[0]) for m in vox.models)
    if stored != voxel_count:
        raise VerificationError(f"Verification failed: expected {voxel_count} voxels, found {stored}")
    logger.info("Verified %s: %d models, %d voxels.", path, model_count, stored)
