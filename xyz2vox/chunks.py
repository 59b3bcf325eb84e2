"""Chunk tree used to serialize MagicaVoxel (.vox) files.

Every chunk is ``tag | content size | children size | content | children``.
Content is an append-only byte buffer; the only in-place edits allowed are
increments of u32 counters reserved with :meth:`Chunk.reserve_counter`.
"""

from __future__ import annotations

import enum
import io
import struct
from typing import BinaryIO, Iterable, Mapping, Sequence

import numpy as np

CHUNK_HEADER_SIZE = 12


class ChunkTag(bytes, enum.Enum):
    MAIN = b"MAIN"
    PACK = b"PACK"
    SIZE = b"SIZE"
    XYZI = b"XYZI"
    nTRN = b"nTRN"
    nGRP = b"nGRP"
    nSHP = b"nSHP"


def _as_tag(tag: bytes | str) -> bytes:
    if isinstance(tag, str):
        tag = tag.encode("ascii")
    tag = bytes(tag)
    if len(tag) != 4:
        raise ValueError(f"Chunk tag must be 4 bytes, got {tag!r}")
    return tag


class Chunk:
    """A node of the chunk tree: 4-byte tag, content bytes and child chunks."""

    __slots__ = ("tag", "content", "children", "_counters")

    def __init__(self, tag: bytes | str) -> None:
        self.tag = _as_tag(tag)
        self.content = bytearray()
        self.children: list[Chunk] = []
        self._counters: set[int] = set()

    def __repr__(self) -> str:
        return f"Chunk({self.tag.decode('ascii')!r}, content={len(self.content)}, children={len(self.children)})"

    def add_child(self, child: Chunk) -> Chunk:
        self.children.append(child)
        return child

    # -- content builders --------------------------------------------------

    def _append(self, fmt: str, value: int) -> int:
        offset = len(self.content)
        self.content += struct.pack(fmt, value)
        return offset

    def append_i32(self, value: int) -> int:
        return self._append("<i", int(value))

    def append_u32(self, value: int) -> int:
        return self._append("<I", int(value))

    def append_u8(self, value: int) -> int:
        return self._append("<B", int(value))

    def append_string(self, value: str | bytes) -> None:
        raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        self.append_u32(len(raw))
        self.content += raw

    def append_dict(self, entries: Mapping[str, str] | Sequence[tuple[str, str]] = ()) -> None:
        items = list(entries.items()) if isinstance(entries, Mapping) else list(entries)
        self.append_u32(len(items))
        for key, value in items:
            self.append_string(key)
            self.append_string(value)

    def reserve_counter(self) -> int:
        """Append a zero u32 and remember its offset as a patchable counter."""

        offset = self.append_u32(0)
        self._counters.add(offset)
        return offset

    def increment_counter(self, offset: int) -> int:
        if offset not in self._counters:
            raise ValueError(f"No counter reserved at offset {offset} in {self.tag!r} chunk")
        count = struct.unpack_from("<I", self.content, offset)[0] + 1
        struct.pack_into("<I", self.content, offset, count)
        return count

    # -- size accounting / serialization -----------------------------------

    def children_size(self) -> int:
        return sum(child.size() for child in self.children)

    def size(self) -> int:
        """Total encoded size of this subtree, header included."""

        return CHUNK_HEADER_SIZE + len(self.content) + self.children_size()

    def write(self, f: BinaryIO) -> int:
        f.write(self.tag)
        f.write(struct.pack("<II", len(self.content), self.children_size()))
        f.write(self.content)
        written = CHUNK_HEADER_SIZE + len(self.content)
        for child in self.children:
            written += child.write(f)
        return written

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.write(buf)
        return buf.getvalue()


class VoxelChunk(Chunk):
    """``XYZI``: voxel count followed by ``x y z colorIndex`` byte records."""

    __slots__ = ("_count_offset",)

    def __init__(self) -> None:
        super().__init__(ChunkTag.XYZI)
        self._count_offset = self.reserve_counter()

    @property
    def voxel_count(self) -> int:
        return struct.unpack_from("<I", self.content, self._count_offset)[0]

    def add_voxel(self, x: int, y: int, z: int, color: int) -> None:
        # bytes() rejects values outside 0..255
        self.content += bytes((int(x), int(y), int(z), int(color)))
        self.increment_counter(self._count_offset)

    def add_voxels(self, positions: np.ndarray, colors: Iterable[int]) -> None:
        rows = np.asarray(positions).tolist()
        colors = list(colors)
        if len(rows) != len(colors):
            raise ValueError(f"Got {len(rows)} positions but {len(colors)} colors")
        for (x, y, z), c in zip(rows, colors, strict=True):
            self.add_voxel(x, y, z, c)


class GroupNode(Chunk):
    """``nGRP`` scene-graph node holding a growable list of child node ids."""

    __slots__ = ("node_id", "_count_offset")

    def __init__(self, node_id: int) -> None:
        super().__init__(ChunkTag.nGRP)
        self.node_id = int(node_id)
        self.append_i32(self.node_id)
        self.append_dict()
        self._count_offset = self.reserve_counter()

    @property
    def child_count(self) -> int:
        return struct.unpack_from("<I", self.content, self._count_offset)[0]

    def add_child_node(self, node_id: int) -> None:
        self.append_i32(node_id)
        self.increment_counter(self._count_offset)


def main_chunk() -> Chunk:
    return Chunk(ChunkTag.MAIN)


def pack_chunk(model_count: int) -> Chunk:
    chunk = Chunk(ChunkTag.PACK)
    chunk.append_u32(model_count)
    return chunk


def size_chunk(sx: int, sy: int, sz: int) -> Chunk:
    chunk = Chunk(ChunkTag.SIZE)
    for dim in (sx, sy, sz):
        chunk.append_i32(dim)
    return chunk


def transform_node(node_id: int, child_id: int, translation: tuple[int, int, int] = (0, 0, 0)) -> Chunk:
    """``nTRN`` with a single frame; translation only, no rotation."""

    chunk = Chunk(ChunkTag.nTRN)
    chunk.append_i32(node_id)
    chunk.append_dict()
    chunk.append_i32(child_id)
    chunk.append_i32(-1)  # reserved id
    chunk.append_i32(0)  # layer id
    chunk.append_i32(1)  # frame count
    tx, ty, tz = (int(t) for t in translation)
    chunk.append_dict([("_t", f"{tx} {ty} {tz}")])
    return chunk


def shape_node(node_id: int, model_id: int) -> Chunk:
    chunk = Chunk(ChunkTag.nSHP)
    chunk.append_i32(node_id)
    chunk.append_dict()
    chunk.append_i32(1)  # model count
    chunk.append_i32(model_id)
    chunk.append_dict()
    return chunk
