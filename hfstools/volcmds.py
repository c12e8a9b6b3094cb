"""The hpwd, humount and hvol commands: report and manage known volumes."""

from __future__ import annotations

import sys
from collections.abc import Callable

from .mountstate import MountEntry, MountTable
from .paths import resolve_command, samepath

NO_CURRENT = "No volume is current; use `hmount' or `hvol'"
NO_VOLUMES = "No known volumes; use `hmount' to introduce new volumes\n"


class CommandError(Exception):
    """A command could not do what was asked of it."""


def pwd_text(table: MountTable) -> str:
    """Return the full HFS path of the current directory of the current volume."""
    entry = table.get()
    if entry is None:
        raise CommandError(NO_CURRENT)
    if entry.cwd == ":":
        return f"{entry.vname}:\n"
    return f"{entry.vname}{entry.cwd}:\n"


def _find(table: MountTable, target: str) -> int | None:
    for index, entry in enumerate(table):
        if samepath(target, entry.path) or target.lower() == entry.vname.lower():
            return index
    return None


def humount(table: MountTable, target: str | None = None) -> MountEntry:
    """Forget a volume named by path or name, or the current one; return it."""
    if target is None:
        try:
            return table.unmounted()
        except IndexError:
            raise CommandError("No volume is current") from None

    index = _find(table, target)
    if index is None:
        raise CommandError(f'Unknown volume "{target}"')
    return table.unmounted(index)


def _mount_header(entry: MountEntry) -> str:
    partition = f" partition {entry.partno} of" if entry.partno > 0 else ""
    return f"Current volume is mounted from{partition}:\n  {entry.path}\n"


def known_volumes_report(table: MountTable) -> str:
    """Describe the current volume and list the other known volumes."""
    current = table.get()
    parts: list[str] = []
    if current is not None:
        parts.append(_mount_header(current))

    title = "\nOther known volumes:\n" if current is not None else "Known volumes:\n"
    header_written = False
    for entry in table:
        if entry is current:
            continue
        if not header_written:
            parts.append(title)
            header_written = True
        if entry.partno <= 0:
            parts.append(f'  {entry.path:<35}     "{entry.vname}"\n')
        else:
            parts.append(f'  {entry.path:<35} {entry.partno:2d}  "{entry.vname}"\n')

    return "".join(parts) if parts else NO_VOLUMES


def _hpwd(table: MountTable, args: list[str], program: str) -> int:
    if args:
        print(f"Usage: {program}", file=sys.stderr)
        return 1
    try:
        sys.stdout.write(pwd_text(table))
    except CommandError as exc:
        print(f"{program}: {exc}", file=sys.stderr)
        return 1
    return 0


def _humount(table: MountTable, args: list[str], program: str) -> int:
    if len(args) > 1:
        print(f"Usage: {program} [volume-name-or-path]", file=sys.stderr)
        return 1
    try:
        humount(table, args[0] if args else None)
    except CommandError as exc:
        print(f"{program}: {exc}", file=sys.stderr)
        return 1
    return 0


def _hvol(table: MountTable, args: list[str], program: str) -> int:
    if len(args) > 1:
        print(f"Usage: {program} [volume-name-or-path]", file=sys.stderr)
        return 1
    if not args:
        sys.stdout.write(known_volumes_report(table))
        return 0

    index = _find(table, args[0])
    if index is None:
        print(f'{program}: Unknown volume "{args[0]}"', file=sys.stderr)
        return 1
    table.set_current(index)
    sys.stdout.write(_mount_header(table.entries[index]))
    return 0


COMMANDS: dict[str, Callable[[MountTable, list[str], str], int]] = {
    "hpwd": _hpwd,
    "humount": _humount,
    "hvol": _hvol,
}


def main(argv: list[str] | None = None) -> int:
    """Run the command named by the program name in argv[0]."""
    if argv is None:
        argv = sys.argv
    program = argv[0] if argv else "hvol"

    try:
        _, handler = resolve_command(program, COMMANDS)
    except LookupError as exc:
        print(f"{program}: {exc}", file=sys.stderr)
        return 1

    try:
        table = MountTable.load()
    except OSError as exc:
        print(f"Failed to initialize HFS working directories: {exc}", file=sys.stderr)
        return 1

    result = handler(table, list(argv[1:]), program)

    try:
        table.save()
    except OSError as exc:
        print(f"Failed to save working directory state: {exc}", file=sys.stderr)
        return 1

    return result