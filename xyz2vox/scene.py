"""Build the MAIN chunk (models plus scene graph) from partitioned cells."""

from __future__ import annotations

from typing import Mapping

from .chunks import Chunk, GroupNode, VoxelChunk, main_chunk, pack_chunk, shape_node, size_chunk, transform_node
from .partition import CellIndex, GridCell, cell_world_offset

ROOT_TRANSFORM_ID = 0
ROOT_GROUP_ID = 1
FIRST_MODEL_NODE_ID = 2


def model_node_ids(model_index: int) -> tuple[int, int]:
    """(transform id, shape id) of the nodes placing model ``model_index``."""

    transform_id = FIRST_MODEL_NODE_ID + 2 * model_index
    return transform_id, transform_id + 1


def model_translation(cell_index: CellIndex, cell: GridCell, max_edge: int) -> tuple[int, int, int]:
    """Translation of a model's centre, as MagicaVoxel positions models by their centre."""

    corner = cell_world_offset(cell_index, max_edge)
    size = cell.size
    return (
        corner[0] + cell.bbox_min[0] + size[0] // 2,
        corner[1] + cell.bbox_min[1] + size[1] // 2,
        corner[2] + cell.bbox_min[2] + size[2] // 2,
    )


def build_model_chunks(cell: GridCell) -> tuple[Chunk, VoxelChunk]:
    # Models start at the corner of their tight bounding box.
    xyzi = VoxelChunk()
    xyzi.add_voxels(cell.positions - list(cell.bbox_min), cell.colors.tolist())
    return size_chunk(*cell.size), xyzi


def build_scene(cells: Mapping[CellIndex, GridCell], max_edge: int) -> Chunk:
    main = main_chunk()
    main.add_child(pack_chunk(len(cells)))

    for cell in cells.values():
        size, xyzi = build_model_chunks(cell)
        main.add_child(size)
        main.add_child(xyzi)

    main.add_child(transform_node(ROOT_TRANSFORM_ID, ROOT_GROUP_ID))
    group = GroupNode(ROOT_GROUP_ID)
    main.add_child(group)

    # Same iteration order as above: shape i references model i.
    for model_index, (cell_index, cell) in enumerate(cells.items()):
        transform_id, shape_id = model_node_ids(model_index)
        group.add_child_node(transform_id)
        main.add_child(transform_node(transform_id, shape_id, model_translation(cell_index, cell, max_edge)))
        main.add_child(shape_node(shape_id, model_index))

    return main
