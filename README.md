# hfstools

Building blocks for working with Macintosh HFS volumes: the remembered set
of known volumes and their current directories, with three small commands
over it; the formatting engine for directory listings; a block cache for
volume images; B*-tree node, header and map handling; and the consistency
checks for a volume's master directory block.

## Installing

    pip install .

For running the tests:

    pip install ".[test]"
    pytest

## Commands

The commands work on the set of volumes remembered in the state file
`.hcwd` in your home directory (`$HOME/.hcwd`). Each line of it records the
volume name, its creation date, the path of the image or device, the
partition number and the current HFS directory on that volume; the first
line holds the index of the current volume, or `-1`.

    hvol                 # show where the current volume is mounted from and list the other known ones
    hvol NAME-OR-PATH    # make another known volume current and show where it is mounted from
    hpwd                 # print the current HFS directory, e.g. "Macintosh HD:Folder:"
    humount              # forget the current volume
    humount NAME-OR-PATH # forget a volume by name or by image path

All three are the same entry point, `hfstools.volcmds.main`, which picks the
command from the name it was started under. Volume names are matched
without regard to case; a path matches when it refers to the same file as
the recorded one. Errors go to standard error and give exit status 1.

## Library

- `hfstools.mountstate` — `MountTable` and `MountEntry`. `MountTable.load(path)`
  reads the state file (creating it if missing; `default_state_path()` gives
  `$HOME/.hcwd`), `save()` writes changes back, and the table can be used as a
  context manager that saves on exit. `mounted()` records a volume and makes
  it current, `unmounted()` forgets one, `get()` returns an entry (the
  current one for `None` or a negative index), `set_current()` and
  `set_cwd()` change the current volume and directory.
- `hfstools.paths` — `abspath`, `samepath`, `format_volume_info` for a
  `VolumeInfo`, `format_error`, `join_directory_chain` and `resolve_command`.
- `hfstools.volcmds` — `pwd_text`, `humount`, `known_volumes_report`,
  `CommandError` and `main`.
- `hfstools.listing` — the directory listing engine: option parsing
  (`parse_args`, the familiar `-1abcdfilmqrstxw:CFNQRSU` options), name
  quoting and escaping (`render_name`), the catalog id and size columns
  (`misc_prefix`), ordering (`sort_entries`) and the long, single-column,
  multi-column, horizontal and comma layouts (`format_listing`) over
  `ListEntry` values.
- `hfstools.blockcache` — `BlockDevice` for 512-byte block I/O on a file or
  device, `medium_size` to find how many blocks a medium holds, and
  `BlockVolume` for logical and allocation-block access with an optional
  write-back cache (`flush`, `close`).
- `hfstools.btree` — `Node`, `NodeDescriptor`, `BTreeHeader` and `BTree`:
  decoding and encoding nodes, reading and writing the header node and its
  allocation map over any pair of block read/write callables; `check_btree`
  reads and reports a tree's header.
- `hfstools.checkutil` — `mctime`, `ExtentDescriptor`, `extent_str`,
  `extent_record_str`, `hex_dump` and the interactive `ask` prompt.
- `hfstools.mdbcheck` — `MasterDirectoryBlock`, `VolumeAttributes`,
  `describe_mdb` and `check_mdb`, which checks the signature, the creation
  and modification dates and the bitmap start, fixing what the asker
  approves and returning whether anything changed; `check_volume`.

Example:

    from hfstools.mountstate import MountTable, default_state_path

    with MountTable.load(default_state_path()) as table:
        entry = table.get()
        if entry is not None:
            print(entry.vname, entry.path, entry.cwd)

## What it does not do

The package does not read an HFS catalog or parse a master directory block
from disk. So there is no command to mount an image and record it (entries
get into the state table through `MountTable.mounted`), no command that lists
a volume's directories (`format_listing` lays out entries you supply), no
command to format, copy, delete, rename or make directories, and no
stand-alone volume checker command: `check_mdb`, `check_volume` and
`check_btree` are library functions to be fed with data you have read. B*-tree
support covers nodes, the header and the map; it does not search, insert or
delete records.