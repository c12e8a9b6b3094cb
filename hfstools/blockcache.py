"""Block-level access to an HFS medium, with a frequency-ordered block cache."""

from __future__ import annotations

import errno
import io
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import BinaryIO

BLOCK_SIZE = 512
CACHE_SIZE = 128
BLOCK_BUFFER = 16
FLOPPY_BLOCKS = 2880
_MAX_BLOCKS = 1 << 32


class BlockError(OSError):
    """An I/O failure while reading or writing blocks."""

    def __init__(self, message: str) -> None:
        super().__init__(errno.EIO, message)


class BlockDevice:
    """A medium addressed in 512-byte physical blocks."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    @classmethod
    def open(cls, path: str | os.PathLike, writable: bool = False) -> BlockDevice:
        """Open a file or device node as a block medium."""
        return cls(open(path, "r+b" if writable else "rb"))

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> BlockDevice:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _seek(self, bnum: int, what: str) -> None:
        offset = bnum * BLOCK_SIZE
        try:
            pos = self._stream.seek(offset)
        except (OSError, ValueError) as exc:
            raise BlockError(f"block seek failed for {what}") from exc
        if pos is not None and pos != offset:
            raise BlockError(f"block seek failed for {what}")

    def read(self, bnum: int, count: int = 1) -> bytes:
        """Read count blocks starting at block bnum."""
        if count < 1:
            raise ValueError("block count must be positive")
        self._seek(bnum, "read")
        wanted = count * BLOCK_SIZE
        try:
            data = self._stream.read(wanted)
        except OSError as exc:
            raise BlockError("block read failed") from exc
        if data is None or len(data) < wanted:
            raise BlockError("incomplete block read")
        return bytes(data)

    def write(self, bnum: int, data: bytes) -> None:
        """Write whole blocks starting at block bnum."""
        if not data or len(data) % BLOCK_SIZE:
            raise ValueError("data must be a whole number of blocks")
        self._seek(bnum, "write")
        try:
            written = self._stream.write(data)
        except OSError as exc:
            raise BlockError("block write failed") from exc
        if written is not None and written < len(data):
            raise BlockError("incomplete block write")

    def size(self) -> int:
        """Return the number of blocks on the medium, or 0 if it cannot be told."""
        try:
            end = self._stream.seek(0, io.SEEK_END)
        except (OSError, ValueError):
            return 0
        return (end or 0) // BLOCK_SIZE


def medium_size(device: BlockDevice) -> int:
    """Return the number of blocks on a medium, probing by reads if necessary."""
    high = device.size()
    if high > 0:
        return high

    def readable(bnum: int) -> bool:
        try:
            device.read(bnum)
        except BlockError:
            return False
        return True

    if not readable(0):
        raise BlockError("size of medium indeterminable or empty")

    low, high = 0, FLOPPY_BLOCKS
    while readable(high - 1):
        low = high - 1
        high <<= 1
        if high > _MAX_BLOCKS:
            raise BlockError("size of medium indeterminable or too large")

    if low == FLOPPY_BLOCKS - 1 and not readable(FLOPPY_BLOCKS):
        return FLOPPY_BLOCKS

    while low < high - 1:
        mid = (low + high) >> 1
        if readable(mid):
            low = mid
        else:
            high = mid

    return low + 1


@dataclass(eq=False)
class _Bucket:
    bnum: int = 0
    data: bytearray = field(default_factory=lambda: bytearray(BLOCK_SIZE))
    in_use: bool = False
    dirty: bool = False
    count: int = 0


class BlockVolume:
    """Logical and allocation-block access to a volume on a medium."""

    def __init__(self, device: BlockDevice, vstart: int = 0, vlen: int = 0, *,
                 cache: bool = True, readonly: bool = False,
                 cache_size: int = CACHE_SIZE,
                 block_buffer: int = BLOCK_BUFFER) -> None:
        if cache and (block_buffer < 1 or cache_size < block_buffer):
            raise ValueError("cache must hold at least one block buffer")
        self.device = device
        self.vstart = vstart
        self.vlen = vlen
        self.readonly = readonly
        self.alblkst = 0
        self.lpa = 1
        self.nalblks = 0
        self.bitmap: bytes | None = None
        self.hits = 0
        self.misses = 0
        self._bufsz = block_buffer
        self._chain: list[_Bucket] | None = (
            [_Bucket() for _ in range(cache_size)] if cache else None
        )
        self._index: dict[int, _Bucket] = {}

    def __enter__(self) -> BlockVolume:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def set_allocation(self, alblkst: int, lpa: int, nalblks: int,
                       bitmap: bytes | None = None) -> None:
        """Describe the allocation blocks: first block, size, count and usage map."""
        self.alblkst = alblkst
        self.lpa = lpa
        self.nalblks = nalblks
        self.bitmap = bitmap

    # physical I/O relative to the volume start

    def _read_physical(self, bnum: int, count: int) -> bytes:
        return self.device.read(self.vstart + bnum, count)

    def _write_physical(self, bnum: int, data: bytes) -> None:
        self.device.write(self.vstart + bnum, data)

    # cache machinery

    def _runs(self, buckets: Iterable[_Bucket]) -> Iterator[list[_Bucket]]:
        run: list[_Bucket] = []
        for bucket in sorted(buckets, key=lambda b: b.bnum):
            if run and (bucket.bnum != run[-1].bnum + 1 or len(run) >= self._bufsz):
                yield run
                run = []
            run.append(bucket)
        if run:
            yield run

    def _fill_buckets(self, buckets: Iterable[_Bucket]) -> None:
        error: BlockError | None = None
        for run in self._runs(b for b in buckets if not b.in_use):
            try:
                data = self._read_physical(run[0].bnum, len(run))
            except BlockError as exc:
                error = error or exc
                continue
            for offset, bucket in enumerate(run):
                start = offset * BLOCK_SIZE
                bucket.data[:] = data[start:start + BLOCK_SIZE]
                bucket.in_use = True
                bucket.dirty = False
        if error is not None:
            raise error

    def _flush_buckets(self, buckets: Iterable[_Bucket]) -> None:
        error: BlockError | None = None
        for run in self._runs(b for b in buckets if b.in_use and b.dirty):
            try:
                self._write_physical(run[0].bnum, b"".join(bytes(b.data) for b in run))
            except BlockError as exc:
                error = error or exc
                continue
            for bucket in run:
                bucket.dirty = False
        if error is not None:
            raise error

    def _lookup(self, bnum: int) -> _Bucket | None:
        bucket = self._index.get(bnum)
        if bucket is not None and bucket.in_use and bucket.bnum == bnum:
            return bucket
        return None

    def _reuse(self, bucket: _Bucket, bnum: int) -> None:
        chain = self._chain
        if bucket.in_use and bucket.dirty:
            pos = chain.index(bucket)
            self._flush_buckets(chain[(pos - k) % len(chain)] for k in range(self._bufsz))
        if self._index.get(bucket.bnum) is bucket:
            del self._index[bucket.bnum]
        bucket.in_use = False
        bucket.dirty = False
        bucket.count = 1
        bucket.bnum = bnum

    def _cplace(self, bucket: _Bucket) -> None:
        chain = self._chain
        for place in chain:
            if place.count > 1:
                place.count -= 1
            else:
                break
        if place is bucket:
            return
        chain.remove(bucket)
        chain.insert(chain.index(place), bucket)

    def _get_bucket(self, bnum: int, fill: bool) -> _Bucket:
        chain = self._chain
        bucket = self._lookup(bnum)
        if bucket is not None:
            self.hits += 1
            bucket.count += 1
            pos = chain.index(bucket)
            if pos > 0 and bucket.count > chain[pos - 1].count:
                chain[pos - 1], chain[pos] = chain[pos], chain[pos - 1]
            return bucket

        self.misses += 1
        bucket = chain[-1]
        self._reuse(bucket, bnum)

        if fill:
            batch = [bucket]
            pos = len(chain) - 2
            nxt = bnum
            while len(batch) < self._bufsz >> 1:
                nxt += 1
                if nxt >= self.vlen or self._lookup(nxt) is not None:
                    break
                extra = chain[pos]
                pos -= 1
                self._reuse(extra, nxt)
                batch.append(extra)

            self._fill_buckets(batch)

            for extra in reversed(batch[1:]):
                self._cplace(extra)
                self._index[extra.bnum] = extra

        self._cplace(bucket)
        self._index[bnum] = bucket
        return bucket

    # logical blocks

    def read_logical(self, bnum: int) -> bytes:
        """Read one logical block of the volume."""
        if self.vlen > 0 and bnum >= self.vlen:
            raise BlockError("read nonexistent logical block")
        if self._chain is None:
            return self._read_physical(bnum, 1)
        return bytes(self._get_bucket(bnum, True).data)

    def write_logical(self, bnum: int, data: bytes) -> None:
        """Write one logical block of the volume (to the cache when there is one)."""
        if len(data) != BLOCK_SIZE:
            raise ValueError("data must be exactly one block")
        if self.vlen > 0 and bnum >= self.vlen:
            raise BlockError("write nonexistent logical block")
        if self._chain is None:
            self._write_physical(bnum, bytes(data))
            return
        bucket = self._get_bucket(bnum, False)
        if not bucket.in_use or bucket.data != data:
            bucket.data[:] = data
            bucket.in_use = True
            bucket.dirty = True

    # allocation blocks

    def _allocated(self, anum: int) -> bool:
        if self.bitmap is None:
            return True
        index = anum >> 3
        if index >= len(self.bitmap):
            return False
        return bool(self.bitmap[index] & (0x80 >> (anum & 7)))

    def _allocation_block(self, anum: int, index: int, what: str) -> int:
        if anum >= self.nalblks:
            raise BlockError(f"{what} nonexistent allocation block")
        if not self._allocated(anum):
            raise BlockError(f"{what} unallocated block")
        return self.alblkst + anum * self.lpa + index

    def read_allocation(self, anum: int, index: int = 0) -> bytes:
        """Read the index-th logical block of an allocation block."""
        return self.read_logical(self._allocation_block(anum, index, "read"))

    def write_allocation(self, anum: int, index: int, data: bytes) -> None:
        """Write the index-th logical block of an allocation block."""
        self.write_logical(self._allocation_block(anum, index, "write"), data)

    # lifetime

    def flush(self) -> None:
        """Write every modified cached block to the medium."""
        if self._chain is None or self.readonly:
            return
        self._flush_buckets(self._chain)

    def close(self) -> None:
        """Flush and discard the cache."""
        if self._chain is None:
            return
        try:
            self.flush()
        finally:
            self._chain = None
            self._index.clear()