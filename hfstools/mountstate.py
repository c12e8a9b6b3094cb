"""Persistent table of known HFS volumes and their working directories."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

STATE_FILENAME = ".hcwd"

_STRTOL_BASE0 = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")
_ATOI = re.compile(r"\s*([+-]?[0-9]+)")


def _parse_long(text: str) -> int:
    """Parse a leading integer with C base-0 rules (hex, octal, decimal)."""
    match = _STRTOL_BASE0.match(text)
    if not match:
        return 0
    sign, digits = match.groups()
    if digits[:2] in ("0x", "0X"):
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)
    return -value if sign == "-" else value


def _parse_int(text: str) -> int:
    """Parse a leading decimal integer, returning 0 when there is none."""
    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def default_state_path() -> Path:
    """Return the location of the state file in the user's home directory."""
    home = os.environ.get("HOME", "")
    return Path(f"{home}/{STATE_FILENAME}")


@dataclass
class MountEntry:
    """One known volume: its name, creation date, medium and current directory."""

    vname: str
    vcrdate: int
    path: str
    partno: int
    cwd: str = ":"

    def to_line(self) -> str:
        return f"{self.vname}\t{self.vcrdate}\t{self.path}\t{self.partno}\t{self.cwd}\n"

    @classmethod
    def from_line(cls, line: str) -> MountEntry | None:
        """Parse one tab-separated record; return None when it holds no directory."""
        parts = line.split("\t")
        last = min(len(parts) - 1, 4)
        cwd = parts[last]
        if not cwd:
            return None
        fields = parts[:last]
        vname = fields[0] if len(fields) > 0 else ""
        vcrdate = _parse_long(fields[1]) if len(fields) > 1 else 0
        path = fields[2] if len(fields) > 2 else ""
        partno = _parse_int(fields[3]) if len(fields) > 3 else 0
        return cls(vname, vcrdate, path, partno, cwd)


class MountTable:
    """The list of mounted volumes, with one optionally marked as current."""

    def __init__(self, path: str | os.PathLike | None = None,
                 entries: list[MountEntry] | None = None,
                 current: int | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self.entries: list[MountEntry] = list(entries or [])
        self.current = current if current is not None and 0 <= current < len(self.entries) else None
        self._touched = bool(self.entries)
        self._dirty = bool(self.entries)

    @classmethod
    def load(cls, path: str | os.PathLike | None = None) -> MountTable:
        """Read the state file, creating an empty one if it does not exist."""
        state = Path(path) if path is not None else default_state_path()
        try:
            with open(state, encoding="utf-8", errors="surrogateescape", newline="") as fh:
                text = fh.read()
        except FileNotFoundError:
            state.touch()
            text = ""

        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()

        table = cls(state)
        if not lines:
            return table

        newcur = _parse_int(lines[0])
        for line in lines[1:]:
            entry = MountEntry.from_line(line)
            if entry is not None:
                table._add(entry)

        table.current = newcur if 0 <= newcur < len(table.entries) else None
        return table

    def _add(self, entry: MountEntry) -> None:
        self.entries.append(entry)
        self._touched = True
        self._dirty = True

    def save(self) -> None:
        """Write pending changes back to the state file."""
        if self.path is None or not self._touched or not self._dirty:
            return
        current = -1 if self.current is None else self.current
        with open(self.path, "w", encoding="utf-8", errors="surrogateescape", newline="") as fh:
            fh.write(f"{current}\n")
            fh.writelines(entry.to_line() for entry in self.entries)
        self._dirty = False

    def __enter__(self) -> MountTable:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.save()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def mounted(self, vname: str, vcrdate: int, path: str, partno: int) -> MountEntry:
        """Register a mounted volume and make it current."""
        for index, entry in enumerate(self.entries):
            if entry.path == path and entry.partno == partno:
                entry.vname = vname
                entry.vcrdate = vcrdate
                entry.cwd = ":"
                self.current = index
                self._dirty = True
                return entry

        entry = MountEntry(vname, vcrdate, path, partno, ":")
        self._add(entry)
        self.current = len(self.entries) - 1
        return entry

    def _resolve(self, vol: int | None) -> int | None:
        if vol is None or vol < 0:
            vol = self.current
        if vol is None or not 0 <= vol < len(self.entries):
            return None
        return vol

    def unmounted(self, vol: int | None = None) -> MountEntry:
        """Forget a volume (the current one by default); raise IndexError if none."""
        index = self._resolve(vol)
        if index is None:
            raise IndexError("no such volume")
        entry = self.entries.pop(index)
        if self.current is not None:
            if self.current > index:
                self.current -= 1
            elif self.current == index:
                self.current = None
        self._dirty = True
        return entry

    def get(self, vol: int | None = None) -> MountEntry | None:
        """Return a volume by index (the current one by default), or None."""
        index = self._resolve(vol)
        return None if index is None else self.entries[index]

    def set_current(self, vol: int) -> None:
        """Make the given volume current; raise IndexError if it does not exist."""
        if not 0 <= vol < len(self.entries):
            raise IndexError("no such volume")
        if self.current != vol:
            self.current = vol
            self._dirty = True

    def set_cwd(self, entry: MountEntry, newcwd: str) -> None:
        """Set an entry's volume name and directory from a full 'Volume:dir:...' path."""
        vname, colon, rest = newcwd.partition(":")
        entry.vname = vname
        entry.cwd = colon + rest if colon else ":"
        self._dirty = True