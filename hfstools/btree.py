"""Reading and writing the nodes, header and map of an HFS B*-tree file."""

from __future__ import annotations

import enum
import errno
import struct
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TextIO

from .blockcache import BLOCK_SIZE

DESCRIPTOR_SIZE = 14
MAX_RECORDS = (BLOCK_SIZE - DESCRIPTOR_SIZE) // 2 - 1

HEADER_OFFSETS = (0x00E, 0x078, 0x0F8, 0x1F8)
MAP_OFFSETS = (0x00E, 0x1FA)
MAP1_SIZE = HEADER_OFFSETS[3] - HEADER_OFFSETS[2]
MAPX_SIZE = MAP_OFFSETS[1] - MAP_OFFSETS[0]

_DESCRIPTOR = struct.Struct(">IIbbHh")
_HEADER = struct.Struct(">HIIIIHHII76s")
_OFFSET = struct.Struct(">H")


class BTreeError(OSError):
    """A B*-tree is malformed or a node cannot be accessed."""

    def __init__(self, message: str, code: int = errno.EIO) -> None:
        super().__init__(code, message)


class NodeType(enum.IntEnum):
    """The kind of a B*-tree node."""

    LEAF = -1
    INDEX = 0
    HEADER = 1
    MAP = 2


def _node_type(value: int) -> int:
    try:
        return NodeType(value)
    except ValueError:
        return value


@dataclass
class NodeDescriptor:
    """The fixed fields at the start of every node."""

    flink: int = 0
    blink: int = 0
    type: int = NodeType.INDEX
    height: int = 0
    nrecs: int = 0
    reserved: int = 0


def _empty_block() -> bytearray:
    return bytearray(BLOCK_SIZE)


@dataclass
class Node:
    """One node of a B*-tree: its descriptor, record offsets and raw block."""

    nnum: int = 0
    descriptor: NodeDescriptor = field(default_factory=NodeDescriptor)
    offsets: list[int] = field(default_factory=lambda: [DESCRIPTOR_SIZE])
    data: bytearray = field(default_factory=_empty_block)

    @classmethod
    def parse(cls, nnum: int, data: bytes) -> Node:
        """Decode a node from one block of data."""
        if len(data) != BLOCK_SIZE:
            raise ValueError("node data must be exactly one block")
        flink, blink, ntype, height, nrecs, reserved = _DESCRIPTOR.unpack_from(data)
        if nrecs > MAX_RECORDS:
            raise BTreeError("too many b*-tree node records")
        offsets = [
            _OFFSET.unpack_from(data, BLOCK_SIZE - 2 * (i + 1))[0]
            for i in range(nrecs + 1)
        ]
        descriptor = NodeDescriptor(flink, blink, _node_type(ntype), height, nrecs, reserved)
        return cls(nnum, descriptor, offsets, bytearray(data))

    def to_bytes(self) -> bytes:
        """Encode the node, with its descriptor and offsets, as one block."""
        d = self.descriptor
        if d.nrecs > MAX_RECORDS:
            raise BTreeError("too many b*-tree node records")
        if len(self.offsets) < d.nrecs + 1:
            raise ValueError("node has fewer offsets than records")
        block = bytearray(self.data)
        _DESCRIPTOR.pack_into(block, 0, d.flink, d.blink, int(d.type),
                              d.height, d.nrecs, d.reserved)
        for i, offset in enumerate(self.offsets[:d.nrecs + 1]):
            _OFFSET.pack_into(block, BLOCK_SIZE - 2 * (i + 1), offset)
        return bytes(block)

    def record(self, index: int) -> bytes:
        """Return the bytes of the index-th record."""
        if not 0 <= index < self.descriptor.nrecs:
            raise IndexError("no such record")
        return bytes(self.data[self.offsets[index]:self.offsets[index + 1]])


@dataclass
class BTreeHeader:
    """The header record of a B*-tree."""

    depth: int = 0
    root: int = 0
    nrecs: int = 0
    fnode: int = 0
    lnode: int = 0
    node_size: int = BLOCK_SIZE
    key_len: int = 0
    nnodes: int = 0
    free: int = 0
    reserved: bytes = bytes(76)

    @classmethod
    def parse(cls, data: bytes) -> BTreeHeader:
        """Decode a header record."""
        if len(data) < _HEADER.size:
            raise BTreeError("short b*-tree header record")
        return cls(*_HEADER.unpack_from(data))

    def to_bytes(self) -> bytes:
        """Encode the header record."""
        return _HEADER.pack(self.depth, self.root, self.nrecs, self.fnode,
                            self.lnode, self.node_size, self.key_len,
                            self.nnodes, self.free, bytes(self.reserved))


def _is_map_node(node: Node) -> bool:
    d = node.descriptor
    return (d.type == NodeType.MAP and d.nrecs == 1
            and tuple(node.offsets[:2]) == MAP_OFFSETS)


class BTree:
    """A B*-tree stored in a file whose blocks are read and written by number."""

    def __init__(self, name: str, read_block: Callable[[int], bytes],
                 write_block: Callable[[int, bytes], None] | None = None) -> None:
        self.name = name
        self._read = read_block
        self._write = write_block
        self.header = BTreeHeader(nnodes=0)
        self.header_node: Node | None = None
        self.map: bytearray | None = None
        self.update_header = False

    def is_allocated(self, nnum: int) -> bool:
        """Return True if the node map marks the node in use (always, without a map)."""
        if self.map is None:
            return True
        index = nnum >> 3
        if index >= len(self.map):
            return False
        return bool(self.map[index] & (0x80 >> (nnum & 7)))

    def _check(self, nnum: int, what: str) -> None:
        if nnum > 0 and nnum >= self.header.nnodes:
            raise BTreeError(f"{what} nonexistent b*-tree node")
        if not self.is_allocated(nnum):
            raise BTreeError(f"{what} unallocated b*-tree node")

    def get_node(self, nnum: int) -> Node:
        """Read and decode a node by number."""
        self._check(nnum, "read")
        return Node.parse(nnum, self._read(nnum))

    def put_node(self, node: Node) -> None:
        """Encode and store a node under its number."""
        self._check(node.nnum, "write")
        data = node.to_bytes()
        if self._write is None:
            raise BTreeError("b*-tree is read-only", errno.EROFS)
        node.data[:] = data
        self._write(node.nnum, data)

    def read_header(self) -> BTreeHeader:
        """Read the header node and the node map; return the header."""
        node = self.get_node(0)
        d = node.descriptor
        if (d.type != NodeType.HEADER or d.nrecs != 3
                or tuple(node.offsets[:4]) != HEADER_OFFSETS):
            raise BTreeError("malformed b*-tree header node")

        self.header = BTreeHeader.parse(node.record(0))
        if self.header.node_size != BLOCK_SIZE:
            raise BTreeError("unsupported b*-tree node size", errno.EINVAL)

        start = node.offsets[2]
        bitmap = bytearray(node.data[start:start + MAP1_SIZE])

        seen = {0}
        nnum = d.flink
        while nnum:
            if nnum in seen:
                raise BTreeError("b*-tree map nodes form a loop")
            seen.add(nnum)
            mapnode = self.get_node(nnum)
            if not _is_map_node(mapnode):
                raise BTreeError("malformed b*-tree map node")
            start = mapnode.offsets[0]
            bitmap += mapnode.data[start:start + MAPX_SIZE]
            nnum = mapnode.descriptor.flink

        self.header_node = node
        self.map = bitmap
        return self.header

    def write_header(self) -> None:
        """Store the header record and the node map back into the tree."""
        node = self.header_node
        if (node is None or self.map is None or node.nnum != 0
                or node.descriptor.type != NodeType.HEADER
                or node.descriptor.nrecs != 3):
            raise BTreeError("b*-tree header has not been read")
        if len(self.map) < MAP1_SIZE:
            raise BTreeError("b*-tree map is too short")

        start = node.offsets[0]
        record = self.header.to_bytes()
        node.data[start:start + len(record)] = record
        start = node.offsets[2]
        node.data[start:start + MAP1_SIZE] = self.map[:MAP1_SIZE]
        self.put_node(node)

        rest = bytes(self.map[MAP1_SIZE:])
        nnum = node.descriptor.flink
        while rest:
            if nnum == 0:
                raise BTreeError("truncated b*-tree map")
            mapnode = self.get_node(nnum)
            if not _is_map_node(mapnode):
                raise BTreeError("malformed b*-tree map node")
            chunk = rest[:MAPX_SIZE]
            start = mapnode.offsets[0]
            mapnode.data[start:start + len(chunk)] = chunk
            self.put_node(mapnode)
            rest = rest[MAPX_SIZE:]
            nnum = mapnode.descriptor.flink

        self.update_header = False


def check_btree(tree: BTree, verbose: bool = False,
                out: TextIO | None = None) -> BTreeHeader:
    """Check a B*-tree's header, reporting its fields when verbose."""
    out = sys.stdout if out is None else out
    out.write(f"*** Checking {tree.name} B*-tree\n")

    header = tree.read_header()

    if verbose:
        rows = [
            ("bthDepth", header.depth),
            ("bthRoot", header.root),
            ("bthNRecs", header.nrecs),
            ("bthFNode", header.fnode),
            ("bthLNode", header.lnode),
            ("bthNodeSize", header.node_size),
            ("bthKeyLen", header.key_len),
            ("bthNNodes", header.nnodes),
            ("bthFree", header.free),
        ]
        out.writelines(f"  {name:<11} = {value}\n" for name, value in rows)

    return header