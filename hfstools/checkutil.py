"""Formatting and prompting helpers for the volume checker."""

from __future__ import annotations

import sys
import weakref
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TextIO

MAC_EPOCH = datetime(1904, 1, 1)

_exhausted_streams: weakref.WeakSet = weakref.WeakSet()


def mac_to_unix(secs: int) -> int:
    """Convert a Macintosh local timestamp to a Unix timestamp."""
    return int((MAC_EPOCH + timedelta(seconds=secs)).timestamp())


def unix_to_mac(when: float) -> int:
    """Convert a Unix timestamp to a Macintosh local timestamp."""
    return int((datetime.fromtimestamp(int(when)) - MAC_EPOCH).total_seconds())


@dataclass(frozen=True)
class ExtentDescriptor:
    """A run of allocation blocks: first block and number of blocks."""

    start_block: int = 0
    block_count: int = 0


def mctime(secs: int) -> str:
    """Render a Macintosh timestamp like ctime(), or "(Never)" for zero."""
    if secs == 0:
        return "(Never)"
    return (MAC_EPOCH + timedelta(seconds=secs)).ctime()


def extent_str(ext: ExtentDescriptor) -> str:
    """Render an extent as "[]", "1[start]" or "n[first..last]"."""
    if ext.block_count == 0:
        return "[]"
    if ext.block_count == 1:
        return f"1[{ext.start_block}]"
    last = ext.start_block + ext.block_count - 1
    return f"{ext.block_count}[{ext.start_block}..{last}]"


def extent_record_str(extents: Iterable[ExtentDescriptor]) -> str:
    """Render an extent record as its extents joined by "+"."""
    return "+".join(extent_str(ext) for ext in extents)


def hex_dump(data: bytes) -> str:
    """Render bytes as hex, with a space after every second byte."""
    return "".join(
        f"{byte:02x}{' ' if index & 1 else ''}" for index, byte in enumerate(data)
    )


def _is_exhausted(stream: TextIO) -> bool:
    try:
        return stream in _exhausted_streams
    except TypeError:
        return False


def _mark_exhausted(stream: TextIO) -> None:
    try:
        _exhausted_streams.add(stream)
    except TypeError:
        pass


def ask(question: str, repair: bool = True, yes: bool = False,
        stdin: TextIO | None = None, stdout: TextIO | None = None) -> bool:
    """Report a problem and decide whether to fix it."""
    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout

    stdout.write(question)

    if not repair:
        stdout.write(".\n")
        return False
    if yes:
        stdout.write(": fixing.\n")
        return True

    while True:
        if _is_exhausted(stdin):
            stdout.write("...\n")
            return False

        stdout.write(". Fix? ")
        stdout.flush()

        answer = stdin.readline()
        if not answer.endswith("\n"):
            _mark_exhausted(stdin)
            stdout.write("\n")
            return False

        if answer[:1] in ("y", "Y"):
            return True
        if answer[:1] in ("n", "N"):
            return False

        stdout.write(question)