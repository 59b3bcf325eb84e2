"""Writing and reading MagicaVoxel (.vox) files."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

import numpy as np

from .chunks import CHUNK_HEADER_SIZE, Chunk, ChunkTag

VOX_MAGIC = b"VOX "
VOX_VERSION = 150


@dataclass(frozen=True)
class VoxModel:
    size: tuple[int, int, int]
    voxels: np.ndarray  # (N, 4) uint8 rows of x, y, z, colorIndex


@dataclass(slots=True)
class VoxNode:
    node_id: int
    kind: str  # trn, grp, shp
    children: list[int] = field(default_factory=list)
    translation: tuple[int, int, int] = (0, 0, 0)
    model_ids: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class VoxFile:
    version: int
    pack_count: int | None
    models: list[VoxModel]
    nodes: dict[int, VoxNode]


def write_vox(main: Chunk, f: BinaryIO) -> int:
    """Write the file header followed by the MAIN chunk tree; returns bytes written."""

    if main.tag != ChunkTag.MAIN:
        raise ValueError(f"Expected a MAIN chunk, got {main.tag!r}")
    f.write(VOX_MAGIC)
    f.write(struct.pack("<I", VOX_VERSION))
    return len(VOX_MAGIC) + 4 + main.write(f)


def save_vox(main: Chunk, path: str | Path) -> int:
    with Path(path).open("wb") as f:
        return write_vox(main, f)


def _read_exact(f: BinaryIO, n: int) -> bytes:
    b = f.read(n)
    if len(b) != n:
        raise EOFError("Unexpected end of file")
    return b


def _read_u32(f: BinaryIO) -> int:
    return struct.unpack("<I", _read_exact(f, 4))[0]


def _read_chunk_header(f: BinaryIO) -> tuple[bytes, int, int]:
    chunk_id = _read_exact(f, 4)
    content_size = _read_u32(f)
    children_size = _read_u32(f)
    return chunk_id, content_size, children_size


def _read_i32_from(buf: bytes, off: int) -> tuple[int, int]:
    return struct.unpack_from("<i", buf, off)[0], off + 4


def _read_u32_from(buf: bytes, off: int) -> tuple[int, int]:
    return struct.unpack_from("<I", buf, off)[0], off + 4


def _read_str_from(buf: bytes, off: int) -> tuple[str, int]:
    ln, off = _read_u32_from(buf, off)
    if off + ln > len(buf):
        raise ValueError("String runs past end of chunk")
    s = buf[off : off + ln].decode("utf-8", errors="replace")
    return s, off + ln


def _read_dict_from(buf: bytes, off: int) -> tuple[dict[str, str], int]:
    n, off = _read_u32_from(buf, off)
    d: dict[str, str] = {}
    for _ in range(int(n)):
        k, off = _read_str_from(buf, off)
        v, off = _read_str_from(buf, off)
        d[k] = v
    return d, off


def _parse_translation(text: str | None) -> tuple[int, int, int]:
    if not text:
        return (0, 0, 0)
    parts = text.split()
    if len(parts) != 3:
        raise ValueError(f"Invalid _t frame attribute: {text!r}")
    return int(parts[0]), int(parts[1]), int(parts[2])


def read_vox(f: BinaryIO) -> VoxFile:
    magic = _read_exact(f, 4)
    if magic != VOX_MAGIC:
        raise ValueError("Not a VOX file")
    version = _read_u32(f)

    chunk_id, content_size, children_size = _read_chunk_header(f)
    if chunk_id != ChunkTag.MAIN:
        raise ValueError("Invalid VOX: missing MAIN chunk")
    _read_exact(f, content_size)

    pack_count: int | None = None
    current_size: tuple[int, int, int] | None = None
    models: list[VoxModel] = []
    nodes: dict[int, VoxNode] = {}

    remaining = children_size
    while remaining > 0:
        cid, csize, chsize = _read_chunk_header(f)
        content = _read_exact(f, csize)
        _read_exact(f, chsize)
        remaining -= CHUNK_HEADER_SIZE + csize + chsize

        if cid == ChunkTag.PACK:
            if csize < 4:
                raise ValueError("Invalid PACK chunk")
            pack_count = int(struct.unpack_from("<I", content, 0)[0])

        elif cid == ChunkTag.SIZE:
            if csize < 12:
                raise ValueError("Invalid SIZE chunk")
            sx, sy, sz = struct.unpack_from("<iii", content, 0)
            current_size = (int(sx), int(sy), int(sz))

        elif cid == ChunkTag.XYZI:
            if current_size is None:
                raise ValueError("XYZI before SIZE")
            if csize < 4:
                raise ValueError("Invalid XYZI chunk")
            n = struct.unpack_from("<I", content, 0)[0]
            expected = 4 + n * 4
            if csize != expected:
                raise ValueError("Invalid XYZI chunk length")
            raw = np.frombuffer(content[4:expected], dtype=np.uint8).reshape((n, 4)).copy()
            models.append(VoxModel(size=current_size, voxels=raw))
            current_size = None

        elif cid == ChunkTag.nTRN:
            off = 0
            node_id, off = _read_i32_from(content, off)
            _, off = _read_dict_from(content, off)
            child_id, off = _read_i32_from(content, off)
            # reserved_id, layer_id
            _, off = _read_i32_from(content, off)
            _, off = _read_i32_from(content, off)
            num_frames, off = _read_i32_from(content, off)
            translation = (0, 0, 0)
            for frame in range(int(num_frames)):
                frame_dict, off = _read_dict_from(content, off)
                if frame == 0:
                    translation = _parse_translation(frame_dict.get("_t"))
            nodes[node_id] = VoxNode(node_id=node_id, kind="trn", children=[child_id], translation=translation)

        elif cid == ChunkTag.nGRP:
            off = 0
            node_id, off = _read_i32_from(content, off)
            _, off = _read_dict_from(content, off)
            nchild, off = _read_u32_from(content, off)
            children: list[int] = []
            for _ in range(int(nchild)):
                ch, off = _read_i32_from(content, off)
                children.append(ch)
            nodes[node_id] = VoxNode(node_id=node_id, kind="grp", children=children)

        elif cid == ChunkTag.nSHP:
            off = 0
            node_id, off = _read_i32_from(content, off)
            _, off = _read_dict_from(content, off)
            nmodels, off = _read_i32_from(content, off)
            mids: list[int] = []
            for _ in range(int(nmodels)):
                mid, off = _read_i32_from(content, off)
                _, off = _read_dict_from(content, off)
                mids.append(mid)
            nodes[node_id] = VoxNode(node_id=node_id, kind="shp", model_ids=mids)

    if remaining != 0:
        raise ValueError("MAIN children size does not match its chunks")

    return VoxFile(version=int(version), pack_count=pack_count, models=models, nodes=nodes)


def load_vox(path: str | Path) -> VoxFile:
    with Path(path).open("rb") as f:
        return read_vox(f)
