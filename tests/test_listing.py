import time

import pytest

from hfstools.listing import (
    Layout,
    ListEntry,
    ListFlags,
    ListOptions,
    SortKey,
    TimeField,
    format_listing,
    misc_prefix,
    parse_args,
    render_name,
    sort_entries,
)


def test_parse_defaults_tty():
    opts = parse_args([], tty=True)
    assert opts.layout is Layout.MANY
    assert opts.flags == ListFlags.QMARK_CTRL
    assert opts.sort is SortKey.NAME
    assert opts.time_field is TimeField.MODIFIED


def test_parse_defaults_not_tty():
    opts = parse_args([], tty=False)
    assert opts.layout is Layout.ONE
    assert opts.flags == ListFlags.NONE


def test_hdir_is_long():
    assert parse_args([], command="hdir").layout is Layout.LONG


@pytest.mark.parametrize("opt,layout", [
    ("-l", Layout.LONG), ("-1", Layout.ONE), ("-C", Layout.MANY),
    ("-x", Layout.HORIZ), ("-m", Layout.COMMAS),
])
def test_layout_options(opt, layout):
    assert parse_args([opt]).layout is layout


def test_f_option():
    opts = parse_args(["-l", "-s", "-t", "-f"], tty=True)
    assert opts.layout is Layout.MANY
    assert opts.flags & ListFlags.ALL_FILES
    assert not opts.flags & ListFlags.SIZE
    assert opts.sort is SortKey.NAME


def test_width_option():
    assert parse_args(["-w", "40"], width=80).width == 40
    assert parse_args([], width=132).width == 132


def test_sort_options():
    assert parse_args(["-t"]).sort is SortKey.TIME
    created = parse_args(["-c"])
    assert created.sort is SortKey.TIME
    assert created.time_field is TimeField.CREATED
    assert parse_args(["-S"]).sort is SortKey.SIZE
    assert parse_args(["-t", "-U"]).sort is SortKey.NAME


def test_escape_and_quote_options():
    opts = parse_args(["-b"], tty=True)
    assert opts.flags & ListFlags.ESCAPE
    assert not opts.flags & ListFlags.QMARK_CTRL
    opts = parse_args(["-Q"], tty=True)
    assert opts.flags & ListFlags.QUOTE and opts.flags & ListFlags.ESCAPE
    opts = parse_args(["-b", "-q"])
    assert opts.flags & ListFlags.QMARK_CTRL
    assert not opts.flags & ListFlags.ESCAPE
    assert parse_args(["-N"], tty=True).flags == ListFlags.NONE


def test_invalid_option():
    with pytest.raises(ValueError):
        parse_args(["-z"])


def test_paths_are_collected():
    opts = parse_args(["a", "-l", "b"])
    assert opts.paths == ["a", "b"]
    assert opts.layout is Layout.LONG


def test_render_plain():
    assert render_name(ListEntry("Read Me"), ListFlags.NONE) == "Read Me"
    assert render_name(ListEntry("x", path="Disk:x"), ListFlags.NONE) == "Disk:x"


def test_render_escape():
    assert render_name(ListEntry("a b"), ListFlags.ESCAPE) == "a\\ b"
    assert render_name(ListEntry("a\tb\n"), ListFlags.ESCAPE) == "a\\tb\\n"
    assert render_name(ListEntry("\x01"), ListFlags.ESCAPE) == "\\001"


def test_render_qmark():
    assert render_name(ListEntry("a\x01b"), ListFlags.QMARK_CTRL) == "a?b"
    assert render_name(ListEntry("a b"), ListFlags.QMARK_CTRL) == "a b"


def test_render_quote():
    flags = ListFlags.QUOTE | ListFlags.ESCAPE
    assert render_name(ListEntry('"x"'), flags) == '"\\"x\\""'


def test_render_indicator():
    assert render_name(ListEntry("d", is_dir=True), ListFlags.INDICATOR) == "d:"
    assert render_name(ListEntry("app", file_type="APPL"), ListFlags.INDICATOR) == "app*"
    assert render_name(ListEntry("doc", file_type="TEXT"), ListFlags.INDICATOR) == "doc"


def test_misc_prefix():
    entry = ListEntry("f", cnid=42, dsize=1024)
    assert misc_prefix(entry, ListFlags.NONE) == ""
    ids = misc_prefix(entry, ListFlags.CATIDS)
    assert len(ids) == 8 and ids.strip() == "42"
    size = misc_prefix(entry, ListFlags.SIZE)
    assert len(size) == 5 and int(size) == 1
    both = misc_prefix(entry, ListFlags.CATIDS | ListFlags.SIZE)
    assert both == ids + size


def test_misc_prefix_rounds_up():
    entry = ListEntry("f", dsize=1024, rsize=1)
    assert int(misc_prefix(entry, ListFlags.SIZE)) == 2


def test_sort_by_name():
    entries = [ListEntry("b"), ListEntry("A"), ListEntry("c")]
    opts = ListOptions()
    assert [e.name for e in sort_entries(entries, ListFlags.NONE, opts)] == ["A", "b", "c"]
    assert [e.name for e in sort_entries(entries, ListFlags.REVERSE, opts)] == ["c", "b", "A"]
    assert [e.name for e in entries] == ["b", "A", "c"]


def test_sort_by_time():
    entries = [ListEntry("old", mddate=100, crdate=300),
               ListEntry("new", mddate=200, crdate=100)]
    opts = ListOptions(sort=SortKey.TIME)
    assert [e.name for e in sort_entries(entries, ListFlags.NONE, opts)] == ["new", "old"]
    assert [e.name for e in sort_entries(entries, ListFlags.REVERSE, opts)] == ["old", "new"]
    opts = ListOptions(sort=SortKey.TIME, time_field=TimeField.CREATED)
    assert [e.name for e in sort_entries(entries, ListFlags.NONE, opts)] == ["old", "new"]


def test_sort_by_size():
    entries = [ListEntry("small", dsize=10), ListEntry("big", dsize=5, rsize=50)]
    opts = ListOptions(sort=SortKey.SIZE)
    assert [e.name for e in sort_entries(entries, ListFlags.NONE, opts)] == ["big", "small"]


def test_format_one():
    entries = [ListEntry("a"), ListEntry("b")]
    out = format_listing(entries, ListFlags.NONE, ListOptions(layout=Layout.ONE))
    assert out == "a\nb\n"


def test_format_one_with_ids():
    entries = [ListEntry("a", cnid=16), ListEntry("b", cnid=17)]
    out = format_listing(entries, ListFlags.CATIDS, ListOptions(layout=Layout.ONE))
    lines = out.splitlines()
    assert lines == [misc_prefix(e, ListFlags.CATIDS) + e.name for e in entries]


@pytest.mark.parametrize("layout", list(Layout))
def test_format_empty(layout):
    assert format_listing([], ListFlags.NONE, ListOptions(layout=layout)) == ""


def _abcd():
    return [ListEntry(n) for n in "abcd"]


def test_many_columns_go_down():
    out = format_listing(_abcd(), ListFlags.NONE, ListOptions(layout=Layout.MANY), width=6)
    lines = out.splitlines()
    assert [line.split() for line in lines] == [["a", "c"], ["b", "d"]]


def test_many_wide_and_narrow():
    wide = format_listing(_abcd(), ListFlags.NONE, ListOptions(layout=Layout.MANY), width=80)
    assert wide.splitlines()[0].split() == ["a", "b", "c", "d"]
    narrow = format_listing(_abcd(), ListFlags.NONE, ListOptions(layout=Layout.MANY), width=1)
    assert narrow == "a\nb\nc\nd\n"


def test_horiz_rows_go_across():
    out = format_listing(_abcd(), ListFlags.NONE, ListOptions(layout=Layout.HORIZ), width=6)
    assert [line.split() for line in out.splitlines()] == [["a", "b"], ["c", "d"]]


def test_commas():
    entries = [ListEntry("a"), ListEntry("b"), ListEntry("c")]
    out = format_listing(entries, ListFlags.NONE, ListOptions(layout=Layout.COMMAS), width=80)
    assert out == "a, b, c\n"
    narrow = format_listing(entries, ListFlags.NONE, ListOptions(layout=Layout.COMMAS), width=3)
    assert narrow.endswith("\n")
    assert len(narrow.splitlines()) == 3
    assert narrow.replace("\n", "").split(", ") == ["a", "b", "c"]


def test_long_directory_line():
    when = 900000000
    entries = [ListEntry("Folder", is_dir=True, valence=1, mddate=when),
               ListEntry("Other", is_dir=True, valence=3, invisible=True, mddate=when)]
    out = format_listing(entries, ListFlags.NONE, ListOptions(layout=Layout.LONG), now=when + 10)
    first, second = out.splitlines()
    assert first.startswith("d ")
    assert "item " in first and first.endswith(" Folder")
    assert second.startswith("di")
    assert "items" in second


def test_long_file_line():
    when = 900000000
    entries = [ListEntry("Doc", file_type="TEXT", creator="ttxt", dsize=7, rsize=9,
                         mddate=when),
               ListEntry("Locked", locked=True, file_type="APPL", creator="abcd",
                         mddate=when)]
    out = format_listing(entries, ListFlags.NONE, ListOptions(layout=Layout.LONG), now=when)
    first, second = out.splitlines()
    assert first.startswith("f ")
    assert "TEXT/ttxt" in first
    assert first.split()[2:4] == ["9", "7"]
    assert second.startswith("F ")


def test_long_time_recent_and_old():
    when = 900000000
    stamp = time.ctime(when)
    entry = [ListEntry("x", file_type="TEXT", creator="ttxt", mddate=when)]
    opts = ListOptions(layout=Layout.LONG)
    recent = format_listing(entry, ListFlags.NONE, opts, now=when + 60)
    assert stamp[4:16] in recent
    old = format_listing(entry, ListFlags.NONE, opts, now=when + 365 * 24 * 3600)
    assert stamp[20:24] in old
    assert stamp[11:16] not in old
    future = format_listing(entry, ListFlags.NONE, opts, now=when - 2 * 3600)
    assert stamp[20:24] in future


def test_long_uses_creation_time():
    created, modified = 900000000, 950000000
    entry = [ListEntry("x", file_type="TEXT", creator="ttxt",
                       crdate=created, mddate=modified)]
    opts = ListOptions(layout=Layout.LONG, time_field=TimeField.CREATED)
    out = format_listing(entry, ListFlags.NONE, opts, now=created + 60)
    assert time.ctime(created)[4:16] in out