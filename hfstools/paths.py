"""Host path helpers, volume summaries and error formatting for the commands."""

from __future__ import annotations

import os
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any


@dataclass
class VolumeInfo:
    """Summary of a mounted volume as shown to the user."""

    name: str
    crdate: int
    mddate: int
    freebytes: int
    locked: bool = False


def samepath(path1: str, path2: str) -> bool:
    """Return True if both paths name the same existing file."""
    try:
        st1 = os.stat(path1)
        st2 = os.stat(path2)
    except OSError:
        return False
    return st1.st_dev == st2.st_dev and st1.st_ino == st2.st_ino


def abspath(path: str) -> str:
    """Make a host path absolute, preferring $PWD when it names the working directory."""
    if path.startswith("/"):
        return path
    cwd = os.environ.get("PWD")
    if not (cwd and samepath(cwd, ".")):
        cwd = os.getcwd()
    return f"{cwd}/{path}"


def format_volume_info(info: VolumeInfo) -> str:
    """Return the four-line description of a volume."""
    locked = " (locked)" if info.locked else ""
    return (
        f'Volume name is "{info.name}"{locked}\n'
        f"Volume was created on {time.ctime(info.crdate)}\n"
        f"Volume was last modified on {time.ctime(info.mddate)}\n"
        f"Volume has {info.freebytes} bytes free\n"
    )


def format_error(program: str, subject: str, reason: str | None, cause: str) -> str:
    """Format an error line; without a specific reason the cause is lower-cased."""
    if reason is None:
        return f"{program}: {subject}: {cause[:1].lower()}{cause[1:]}"
    return f"{program}: {subject}: {reason} ({cause})"


def join_directory_chain(names: Iterable[str]) -> str:
    """Build a full 'Volume:dir:...' path from names listed innermost first."""
    return ":".join(reversed(list(names)))


def resolve_command(argv0: str, commands: Mapping[str, Any]) -> tuple[str, Any]:
    """Select the command whose name begins with the program's base name."""
    base = argv0.rsplit("/", 1)[-1]
    prefix = base.split(".", 1)[0]
    for name, handler in commands.items():
        if name.startswith(prefix):
            return name, handler
    raise LookupError(f"Unknown operation `{base}'")