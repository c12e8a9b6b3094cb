"""Verification and repair of an HFS master directory block."""

from __future__ import annotations

import enum
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TextIO

from .checkutil import (
    ExtentDescriptor,
    ask,
    extent_record_str,
    extent_str,
    mac_to_unix,
    mctime,
    unix_to_mac,
)

HFS_SIGWORD = 0x4244
HFS_BLOCKSZ_BITS = 9
STANDARD_VBM_START = 3


class VolumeAttributes(enum.IntFlag):
    """Bits of the volume attribute word."""

    BUSY = 1 << 6
    HLOCKED = 1 << 7
    UMOUNTED = 1 << 8
    BBSPARED = 1 << 9
    BVINCONSIS = 1 << 11
    COPYPROT = 1 << 14
    SLOCKED = 1 << 15


def _three_extents() -> list[ExtentDescriptor]:
    return [ExtentDescriptor() for _ in range(3)]


@dataclass
class MasterDirectoryBlock:
    """The fields of a volume's master directory block."""

    sig_word: int = HFS_SIGWORD
    cr_date: int = 0
    ls_mod: int = 0
    atrb: int = 0
    nm_fls: int = 0
    vbm_st: int = STANDARD_VBM_START
    alloc_ptr: int = 0
    nm_al_blks: int = 0
    al_blk_siz: int = 0
    clp_siz: int = 0
    al_bl_st: int = 0
    nxt_cnid: int = 0
    free_bks: int = 0
    vn: str = ""
    vol_bk_up: int = 0
    v_seq_num: int = 0
    wr_cnt: int = 0
    xt_clp_siz: int = 0
    ct_clp_siz: int = 0
    nm_rt_dirs: int = 0
    fil_cnt: int = 0
    dir_cnt: int = 0
    embed_sig_word: int = 0
    embed_extent: ExtentDescriptor = field(default_factory=ExtentDescriptor)
    xt_fl_size: int = 0
    xt_ext_rec: list[ExtentDescriptor] = field(default_factory=_three_extents)
    ct_fl_size: int = 0
    ct_ext_rec: list[ExtentDescriptor] = field(default_factory=_three_extents)

    @property
    def logical_per_allocation(self) -> int:
        """Number of 512-byte logical blocks in one allocation block."""
        return self.al_blk_siz >> HFS_BLOCKSZ_BITS


def _attributes_str(atrb: int) -> str:
    names = [flag.name for flag in VolumeAttributes if atrb & flag]
    return " " + " | ".join(names) if names else " 0"


def describe_mdb(mdb: MasterDirectoryBlock) -> str:
    """Return the verbose listing of every MDB field."""
    rows = [
        ("drSigWord", f"0x{mdb.sig_word:04x}"),
        ("drCrDate", mctime(mdb.cr_date)),
        ("drLsMod", mctime(mdb.ls_mod)),
    ]
    lines = [f"  {name:<14} = {value}" for name, value in rows]
    lines.append(f"  {'drAtrb':<14} ={_attributes_str(mdb.atrb)}")
    rows = [
        ("drNmFls", mdb.nm_fls),
        ("drVBMSt", mdb.vbm_st),
        ("drAllocPtr", mdb.alloc_ptr),
        ("drNmAlBlks", mdb.nm_al_blks),
        ("drAlBlkSiz", mdb.al_blk_siz),
        ("drClpSiz", mdb.clp_siz),
        ("drAlBlSt", mdb.al_bl_st),
        ("drNxtCNID", mdb.nxt_cnid),
        ("drFreeBks", mdb.free_bks),
        ("drVN", f'"{mdb.vn}"'),
        ("drVolBkUp", mctime(mdb.vol_bk_up)),
        ("drVSeqNum", mdb.v_seq_num),
        ("drWrCnt", mdb.wr_cnt),
        ("drXTClpSiz", mdb.xt_clp_siz),
        ("drCTClpSiz", mdb.ct_clp_siz),
        ("drNmRtDirs", mdb.nm_rt_dirs),
        ("drFilCnt", mdb.fil_cnt),
        ("drDirCnt", mdb.dir_cnt),
        ("drEmbedSigWord", f"0x{mdb.embed_sig_word:04x}"),
        ("drEmbedExtent", extent_str(mdb.embed_extent)),
        ("drXTFlSize", mdb.xt_fl_size),
        ("drXTExtRec", extent_record_str(mdb.xt_ext_rec)),
        ("drCTFlSize", mdb.ct_fl_size),
        ("drCTExtRec", extent_record_str(mdb.ct_ext_rec)),
    ]
    lines.extend(f"  {name:<14} = {value}" for name, value in rows)
    return "\n".join(lines) + "\n"


def check_mdb(mdb: MasterDirectoryBlock,
              asker: Callable[[str], bool] | None = None,
              now: float | None = None,
              verbose: bool = False,
              out: TextIO | None = None) -> bool:
    """Check the MDB, fixing what the asker approves; return True if it changed."""
    out = sys.stdout if out is None else out
    if asker is None:
        def asker(question: str) -> bool:
            return ask(question, stdout=out)
    now = int(time.time() if now is None else now)
    changed = False

    out.write("*** Checking volume MDB\n")
    if verbose:
        out.write(describe_mdb(mdb))

    if mdb.sig_word != HFS_SIGWORD and asker(
            f"Bad volume signature (0x{mdb.sig_word:04x}); "
            f"should be 0x{HFS_SIGWORD:04x}"):
        mdb.sig_word = HFS_SIGWORD
        changed = True

    if mdb.cr_date == 0 and asker("Volume creation date is unset"):
        mdb.cr_date = unix_to_mac(now)
        changed = True

    if mac_to_unix(mdb.cr_date) > now and asker(
            f"Volume creation date is in the future ({mctime(mdb.cr_date)})"):
        mdb.cr_date = unix_to_mac(now)
        changed = True

    if mdb.ls_mod == 0 and asker("Volume last modify date is unset"):
        mdb.ls_mod = mdb.cr_date
        changed = True

    if mac_to_unix(mdb.ls_mod) > now and asker(
            f"Volume last modify date is in the future ({mctime(mdb.ls_mod)})"):
        mdb.ls_mod = unix_to_mac(now)
        changed = True

    if mdb.ls_mod < mdb.cr_date and asker(
            "Volume last modify date is before volume creation"):
        mdb.ls_mod = mdb.cr_date
        changed = True

    if mdb.vbm_st != STANDARD_VBM_START and asker(
            f"Volume bitmap starts at unusual location ({mdb.vbm_st}), "
            f"not {STANDARD_VBM_START}"):
        mdb.vbm_st = STANDARD_VBM_START
        changed = True

    return changed


def check_volume(out: TextIO | None = None) -> bool:
    """Check the general volume structure; return True if anything changed."""
    out = sys.stdout if out is None else out
    out.write("*** Checking volume structure\n")
    return False