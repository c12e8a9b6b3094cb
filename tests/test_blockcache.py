import errno
import io
import random

import pytest

from hfstools.blockcache import (
    BLOCK_SIZE,
    FLOPPY_BLOCKS,
    BlockDevice,
    BlockError,
    BlockVolume,
    medium_size,
)


def _block(n: int) -> bytes:
    return bytes([n % 256]) * BLOCK_SIZE


def _medium(nblocks: int) -> bytes:
    return b"".join(_block(i) for i in range(nblocks))


class CountingStream(io.BytesIO):
    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.reads = 0
        self.writes = 0

    def read(self, size=-1):
        self.reads += 1
        return super().read(size)

    def write(self, data):
        self.writes += 1
        return super().write(data)


class NoEndStream(io.BytesIO):
    def seek(self, offset, whence=io.SEEK_SET):
        if whence == io.SEEK_END:
            raise io.UnsupportedOperation("cannot seek to end")
        return super().seek(offset, whence)


def test_device_reads_blocks():
    dev = BlockDevice(io.BytesIO(_medium(8)))
    assert dev.read(3) == _block(3)
    assert dev.read(2, 3) == _block(2) + _block(3) + _block(4)


def test_device_read_past_end_raises():
    dev = BlockDevice(io.BytesIO(_medium(4)))
    with pytest.raises(BlockError) as info:
        dev.read(4)
    assert info.value.errno == errno.EIO
    assert info.value.strerror == "incomplete block read"


def test_device_write_round_trip():
    dev = BlockDevice(io.BytesIO(_medium(4)))
    dev.write(1, _block(200) * 2)
    assert dev.read(1, 2) == _block(200) * 2
    assert dev.read(0) == _block(0)
    assert dev.read(3) == _block(3)


def test_device_write_partial_block_rejected():
    dev = BlockDevice(io.BytesIO(_medium(2)))
    with pytest.raises(ValueError):
        dev.write(0, b"short")


def test_device_size_counts_blocks():
    assert BlockDevice(io.BytesIO(_medium(7))).size() == 7
    assert BlockDevice(NoEndStream(_medium(7))).size() == 0


def test_medium_size_uses_device_size():
    assert medium_size(BlockDevice(io.BytesIO(_medium(12)))) == 12


@pytest.mark.parametrize("nblocks", [1, 100, FLOPPY_BLOCKS, 5000])
def test_medium_size_by_probing(nblocks):
    dev = BlockDevice(NoEndStream(bytes(nblocks * BLOCK_SIZE)))
    assert medium_size(dev) == nblocks


def test_medium_size_empty_raises():
    with pytest.raises(BlockError, match="indeterminable or empty"):
        medium_size(BlockDevice(NoEndStream(b"")))


def test_uncached_volume_reads_from_offset():
    vol = BlockVolume(BlockDevice(io.BytesIO(_medium(16))), vstart=4, vlen=8, cache=False)
    assert vol.read_logical(0) == _block(4)
    vol.write_logical(1, _block(99))
    assert vol.device.read(5) == _block(99)


def test_cached_write_reaches_medium_only_on_flush():
    stream = io.BytesIO(_medium(16))
    vol = BlockVolume(BlockDevice(stream), vlen=16)
    vol.write_logical(2, _block(77))
    assert vol.read_logical(2) == _block(77)
    assert stream.getvalue()[2 * BLOCK_SIZE:3 * BLOCK_SIZE] == _block(2)
    vol.flush()
    assert stream.getvalue()[2 * BLOCK_SIZE:3 * BLOCK_SIZE] == _block(77)


def test_readonly_volume_flush_writes_nothing():
    stream = io.BytesIO(_medium(8))
    vol = BlockVolume(BlockDevice(stream), vlen=8, readonly=True)
    vol.write_logical(1, _block(55))
    vol.close()
    assert stream.getvalue() == _medium(8)


def test_logical_bounds_checked():
    vol = BlockVolume(BlockDevice(io.BytesIO(_medium(8))), vlen=8)
    with pytest.raises(BlockError, match="read nonexistent logical block"):
        vol.read_logical(8)
    with pytest.raises(BlockError, match="write nonexistent logical block"):
        vol.write_logical(8, _block(1))


def test_write_logical_requires_one_block():
    vol = BlockVolume(BlockDevice(io.BytesIO(_medium(8))), vlen=8)
    with pytest.raises(ValueError):
        vol.write_logical(0, b"\x00" * 10)


def test_evicted_dirty_blocks_are_written():
    stream = io.BytesIO(_medium(40))
    with BlockVolume(BlockDevice(stream), vlen=40, cache_size=4, block_buffer=2) as vol:
        for n in range(30):
            vol.write_logical(n, _block(n + 100))
        for n in range(30):
            assert vol.read_logical(n) == _block(n + 100)
    data = stream.getvalue()
    for n in range(40):
        expected = _block(n + 100) if n < 30 else _block(n)
        assert data[n * BLOCK_SIZE:(n + 1) * BLOCK_SIZE] == expected


def test_read_ahead_serves_following_blocks():
    stream = CountingStream(_medium(64))
    vol = BlockVolume(BlockDevice(stream), vlen=64)
    assert vol.read_logical(0) == _block(0)
    reads_after_first = stream.reads
    for n in range(1, 8):
        assert vol.read_logical(n) == _block(n)
    assert stream.reads == reads_after_first
    assert vol.hits == 7
    assert vol.misses == 1


def test_cached_reads_match_uncached_under_churn():
    data = _medium(64)
    cached = BlockVolume(BlockDevice(io.BytesIO(data)), vlen=64, cache_size=8, block_buffer=4)
    plain = BlockVolume(BlockDevice(io.BytesIO(data)), vlen=64, cache=False)
    rng = random.Random(7)
    for _ in range(300):
        n = rng.randrange(64)
        if rng.random() < 0.3:
            payload = bytes([rng.randrange(256)]) * BLOCK_SIZE
            cached.write_logical(n, payload)
            plain.write_logical(n, payload)
        assert cached.read_logical(n) == plain.read_logical(n)
    cached.close()
    assert cached.device.read(0, 64) == plain.device.read(0, 64)


def test_allocation_blocks():
    stream = io.BytesIO(_medium(16))
    vol = BlockVolume(BlockDevice(stream), vlen=16)
    vol.set_allocation(alblkst=2, lpa=2, nalblks=4, bitmap=bytes([0b10100000]))
    assert vol.read_allocation(0, 1) == _block(3)
    assert vol.read_allocation(2, 0) == _block(6)
    with pytest.raises(BlockError, match="read unallocated block"):
        vol.read_allocation(1, 0)
    with pytest.raises(BlockError, match="read nonexistent allocation block"):
        vol.read_allocation(4, 0)
    with pytest.raises(BlockError, match="write unallocated block"):
        vol.write_allocation(3, 0, _block(9))
    vol.write_allocation(2, 1, _block(123))
    assert vol.read_logical(7) == _block(123)


def test_allocation_without_bitmap_allows_all():
    vol = BlockVolume(BlockDevice(io.BytesIO(_medium(8))), vlen=8, cache=False)
    vol.set_allocation(alblkst=0, lpa=1, nalblks=8)
    assert vol.read_allocation(5) == _block(5)


def test_cache_smaller_than_buffer_rejected():
    with pytest.raises(ValueError):
        BlockVolume(BlockDevice(io.BytesIO(_medium(4))), cache_size=2, block_buffer=4)


def test_close_discards_cache_and_flushes():
    stream = io.BytesIO(_medium(8))
    vol = BlockVolume(BlockDevice(stream), vlen=8)
    vol.write_logical(0, _block(42))
    vol.close()
    assert stream.getvalue()[:BLOCK_SIZE] == _block(42)
    assert vol.read_logical(1) == _block(1)