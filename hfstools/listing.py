"""Option handling, ordering and layout of HFS directory listings."""

from __future__ import annotations

import enum
import getopt
import re
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

_OPTSTRING = "1abcdfilmqrstxw:CFNQRSU"
_ATOI = re.compile(r"\s*([+-]?[0-9]+)")

# Files older than about six months, or more than an hour in the future,
# show the year instead of the time of day in long listings.
_RECENT_PAST = 6 * 30 * 24 * 60 * 60
_RECENT_FUTURE = 60 * 60

_ESCAPES = {
    "\\": "\\\\",
    "\n": "\\n",
    "\b": "\\b",
    "\r": "\\r",
    "\t": "\\t",
    "\f": "\\f",
    " ": "\\ ",
    '"': '\\"',
}


class ListFlags(enum.IntFlag):
    """Switches that change which entries are shown and how names look."""

    NONE = 0
    ALL_FILES = 0x0001
    ESCAPE = 0x0002
    QUOTE = 0x0004
    QMARK_CTRL = 0x0008
    IMMEDIATE_DIRS = 0x0010
    CATIDS = 0x0020
    REVERSE = 0x0040
    SIZE = 0x0080
    INDICATOR = 0x0100
    RECURSIVE = 0x0200


# Width of each optional column printed before a name.
_MISC_WIDTHS = ((ListFlags.CATIDS, 8), (ListFlags.SIZE, 5))


class Layout(enum.Enum):
    """How the names are arranged on the page."""

    LONG = "long"
    ONE = "one"
    MANY = "many"
    HORIZ = "horiz"
    COMMAS = "commas"


class SortKey(enum.Enum):
    """What the entries are ordered by."""

    NAME = "name"
    TIME = "time"
    SIZE = "size"


class TimeField(enum.Enum):
    """Which timestamp is shown and sorted on."""

    MODIFIED = "modified"
    CREATED = "created"


@dataclass
class ListEntry:
    """One file or directory to be listed."""

    name: str
    path: str | None = None
    is_dir: bool = False
    locked: bool = False
    invisible: bool = False
    cnid: int = 0
    file_type: str = ""
    creator: str = ""
    dsize: int = 0
    rsize: int = 0
    valence: int = 0
    crdate: int = 0
    mddate: int = 0

    @property
    def display_path(self) -> str:
        """The path given on the command line, or the bare name."""
        return self.path if self.path is not None else self.name

    @property
    def total_size(self) -> int:
        """Combined size of both forks in bytes."""
        return self.dsize + self.rsize


@dataclass
class ListOptions:
    """The outcome of parsing a listing command line."""

    layout: Layout = Layout.ONE
    sort: SortKey = SortKey.NAME
    time_field: TimeField = TimeField.MODIFIED
    flags: ListFlags = ListFlags.NONE
    width: int = 80
    paths: list[str] = field(default_factory=list)


def _atoi(text: str) -> int:
    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def parse_args(argv: Sequence[str], tty: bool = False, width: int = 80,
               command: str = "hls") -> ListOptions:
    """Parse listing options (without the program name); raise ValueError on a bad one."""
    layout = Layout.MANY if tty else Layout.ONE
    flags = ListFlags.QMARK_CTRL if tty else ListFlags.NONE
    sort = SortKey.NAME
    time_field = TimeField.MODIFIED

    if command == "hdir":
        layout = Layout.LONG

    try:
        opts, paths = getopt.gnu_getopt(list(argv), _OPTSTRING)
    except getopt.GetoptError as exc:
        raise ValueError(str(exc)) from None

    for opt, arg in opts:
        match opt[1]:
            case "1":
                layout = Layout.ONE
            case "a":
                flags |= ListFlags.ALL_FILES
            case "b":
                flags |= ListFlags.ESCAPE
                flags &= ~ListFlags.QMARK_CTRL
            case "c":
                time_field = TimeField.CREATED
                sort = SortKey.TIME
            case "d":
                flags |= ListFlags.IMMEDIATE_DIRS
            case "f":
                flags |= ListFlags.ALL_FILES
                flags &= ~ListFlags.SIZE
                sort = SortKey.NAME
                if layout is Layout.LONG:
                    layout = Layout.MANY if tty else Layout.ONE
            case "i":
                flags |= ListFlags.CATIDS
            case "l":
                layout = Layout.LONG
            case "m":
                layout = Layout.COMMAS
            case "q":
                flags |= ListFlags.QMARK_CTRL
                flags &= ~ListFlags.ESCAPE
            case "r":
                flags |= ListFlags.REVERSE
            case "s":
                flags |= ListFlags.SIZE
            case "t":
                sort = SortKey.TIME
            case "x":
                layout = Layout.HORIZ
            case "w":
                width = _atoi(arg)
            case "C":
                layout = Layout.MANY
            case "F":
                flags |= ListFlags.INDICATOR
            case "N":
                flags &= ~(ListFlags.ESCAPE | ListFlags.QMARK_CTRL)
            case "Q":
                flags |= ListFlags.QUOTE | ListFlags.ESCAPE
                flags &= ~ListFlags.QMARK_CTRL
            case "R":
                flags |= ListFlags.RECURSIVE
            case "S":
                sort = SortKey.SIZE
            case "U":
                sort = SortKey.NAME

    return ListOptions(layout, sort, time_field, flags, width, list(paths))


def _char_bytes(ch: str) -> bytes:
    code = ord(ch)
    if code < 256:
        return bytes([code])
    return ch.encode("utf-8", "surrogateescape")


def _isgraph(ch: str) -> bool:
    return "\x21" <= ch <= "\x7e"


def _isprint(ch: str) -> bool:
    return "\x20" <= ch <= "\x7e"


def _escape(ch: str) -> str:
    if ch in _ESCAPES:
        return _ESCAPES[ch]
    if _isgraph(ch):
        return ch
    return "".join(f"\\{byte:03o}" for byte in _char_bytes(ch))


def render_name(entry: ListEntry, flags: ListFlags) -> str:
    """Return the name as it is to be printed under the given flags."""
    path = entry.display_path

    if flags & ListFlags.ESCAPE:
        text = "".join(_escape(ch) for ch in path)
    elif flags & ListFlags.QMARK_CTRL:
        text = "".join(ch if _isprint(ch) else "?" for ch in path)
    else:
        text = path

    if flags & ListFlags.QUOTE:
        text = f'"{text}"'

    if flags & ListFlags.INDICATOR:
        if entry.is_dir:
            text += ":"
        elif entry.file_type == "APPL":
            text += "*"

    return text


def _misc_len(flags: ListFlags) -> int:
    """Total width of the optional columns that the flags switch on."""
    total = 0
    for flag, column_width in _MISC_WIDTHS:
        if flags & flag:
            total += column_width
    return total


def misc_prefix(entry: ListEntry, flags: ListFlags) -> str:
    """Return the catalog id and size-in-kilobytes columns selected by the flags."""
    parts = []
    if flags & ListFlags.CATIDS:
        parts.append(f"{entry.cnid:7d} ")
    if flags & ListFlags.SIZE:
        size = entry.total_size
        kbytes = size // 1024 + (1 if size % 1024 else 0)
        parts.append(f"{kbytes:4d} ")
    return "".join(parts)


def _timestamp(entry: ListEntry, options: ListOptions) -> int:
    return entry.crdate if options.time_field is TimeField.CREATED else entry.mddate


def sort_entries(entries: Iterable[ListEntry], flags: ListFlags,
                 options: ListOptions) -> list[ListEntry]:
    """Return the entries in the order the options ask for."""
    reverse = bool(flags & ListFlags.REVERSE)
    items = list(entries)

    if options.sort is SortKey.NAME:
        return sorted(items, key=lambda e: e.display_path.lower(), reverse=reverse)
    if options.sort is SortKey.TIME:
        return sorted(items, key=lambda e: -_timestamp(e, options), reverse=reverse)
    return sorted(items, key=lambda e: -e.total_size, reverse=reverse)


def _time_text(when: int, now: int) -> str:
    text = time.ctime(when)
    if now > when + _RECENT_PAST or now < when - _RECENT_FUTURE:
        text = text[:11] + text[19:]
    return text[4:16]


def _show_long(entries, names, flags, options, width, now):
    lines = []
    for entry, name in zip(entries, names):
        when = _timestamp(entry, options)
        stamp = _time_text(when, now)
        invisible = "i" if entry.invisible else " "
        prefix = misc_prefix(entry, flags)
        if entry.is_dir:
            plural = " " if entry.valence == 1 else "s"
            lines.append(f"{prefix}d{invisible} {entry.valence:9d} item{plural}"
                         f"               {stamp} {name}\n")
        else:
            kind = "F" if entry.locked else "f"
            lines.append(f"{prefix}{kind}{invisible} "
                         f"{entry.file_type:>4}/{entry.creator:>4} "
                         f"{entry.rsize:9d} {entry.dsize:9d} {stamp} {name}\n")
    return "".join(lines)


def _show_one(entries, names, flags, options, width, now):
    return "".join(f"{misc_prefix(e, flags)}{n}\n" for e, n in zip(entries, names))


def _columns(names, misc, width):
    maxlen = max(len(n) + misc for n in names) + 2
    cols = max(width // maxlen, 1) if width > 0 else 1
    return maxlen, cols


def _show_many(entries, names, flags, options, width, now):
    if not names:
        return ""
    misc = _misc_len(flags)
    maxlen, cols = _columns(names, misc, width)
    count = len(names)
    rows = count // cols + (1 if count % cols else 0)

    out = []
    for row in range(rows):
        cells = []
        for i in range(row, count, rows):
            cell = misc_prefix(entries[i], flags) + names[i]
            if i + rows < count:
                cell += " " * (maxlen - len(names[i]) - misc)
            cells.append(cell)
        out.append("".join(cells) + "\n")
    return "".join(out)


def _show_horiz(entries, names, flags, options, width, now):
    if not names:
        return ""
    misc = _misc_len(flags)
    maxlen, cols = _columns(names, misc, width)

    out = []
    for i, (entry, name) in enumerate(zip(entries, names)):
        if i:
            if i % cols == 0:
                out.append("\n")
            else:
                out.append(" " * (maxlen - len(names[i - 1]) - misc))
        out.append(misc_prefix(entry, flags) + name)
    out.append("\n")
    return "".join(out)


def _show_commas(entries, names, flags, options, width, now):
    misc = _misc_len(flags)
    last = len(names) - 1
    pos = 0
    out = []
    for i, (entry, name) in enumerate(zip(entries, names)):
        length = len(name) + misc + (2 if i < last else 0)
        if pos and pos + length >= width:
            out.append("\n")
            pos = 0
        out.append(misc_prefix(entry, flags) + name)
        if i < last:
            out.append(", ")
        pos += length
    if pos:
        out.append("\n")
    return "".join(out)


_SHOW = {
    Layout.LONG: _show_long,
    Layout.ONE: _show_one,
    Layout.MANY: _show_many,
    Layout.HORIZ: _show_horiz,
    Layout.COMMAS: _show_commas,
}


def format_listing(entries: Sequence[ListEntry], flags: ListFlags,
                   options: ListOptions, width: int = 80,
                   now: float | None = None) -> str:
    """Lay out the entries, in the order given, as the listing text."""
    now = int(time.time() if now is None else now)
    items = list(entries)
    names = [render_name(entry, flags) for entry in items]
    return _SHOW[options.layout](items, names, flags, options, width, now)