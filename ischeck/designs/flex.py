"""
Reference ILA of the FlexASR global buffer, as seen from its AXI interface.

Only the parts exercised by store/maxpool programs are modelled: 128-bit
writes into the large buffer, reads, and a max-pooling unit that is
configured by a top-level write and then runs as a child instruction.
"""

import z3

from ..ila import Ila

# top-level interface
TOP_IF_WR = "flex_top_if_wr"
TOP_IF_RD = "flex_top_if_rd"
TOP_ADDR_IN = "flex_top_addr_in"
TOP_ADDR_WIDTH = 32
TOP_DATA_IN_WIDTH = 8
TOP_DATA_IN = tuple(f"flex_top_data_in_{i}" for i in range(16))

# global buffer
GB_CORE_LARGE_BUFFER = "flex_gb_core_large_buffer"
GB_MAXPOOL_SRC = "flex_gb_maxpool_src"
GB_MAXPOOL_DST = "flex_gb_maxpool_dst"
GB_MAXPOOL_BUSY = "flex_gb_maxpool_busy"

# address map: buffer below the config window
GB_CONFIG_BASE = 0x80000000
GB_MAXPOOL_CFG_ADDR = 0x80000010

# instructions
GB_CORE_STORE_LARGE = "GB_CORE_STORE_LARGE"
GB_CORE_READ_LARGE = "GB_CORE_READ_LARGE"
GB_CFG_MAXPOOL = "GB_CFG_MAXPOOL"
GB_MAXPOOL_STEP = "GB_MAXPOOL_STEP"

GB_ADPFLOAT_MAX = "GBAdpfloat_max"


def _is_write(f):
    return z3.And(f[TOP_IF_WR] == 1, f[TOP_IF_RD] == 0)


def _lane_word(f, hi: int, lo: int):
    """Zero-extended 32-bit word built from two data lanes."""
    return z3.ZeroExt(TOP_ADDR_WIDTH - 2 * TOP_DATA_IN_WIDTH, z3.Concat(f[TOP_DATA_IN[hi]], f[TOP_DATA_IN[lo]]))


def build_flex_ila() -> Ila:
    m = Ila("flex")

    m.new_bv_input(TOP_IF_WR, 1)
    m.new_bv_input(TOP_IF_RD, 1)
    m.new_bv_input(TOP_ADDR_IN, TOP_ADDR_WIDTH)
    for lane in TOP_DATA_IN:
        m.new_bv_input(lane, TOP_DATA_IN_WIDTH)

    m.new_mem_state(GB_CORE_LARGE_BUFFER, TOP_ADDR_WIDTH, TOP_DATA_IN_WIDTH)
    m.new_bv_state(GB_MAXPOOL_SRC, TOP_ADDR_WIDTH)
    m.new_bv_state(GB_MAXPOOL_DST, TOP_ADDR_WIDTH)
    m.new_bv_state(GB_MAXPOOL_BUSY, 1)

    adpfloat_max = m.new_func(GB_ADPFLOAT_MAX, TOP_DATA_IN_WIDTH, TOP_DATA_IN_WIDTH, TOP_DATA_IN_WIDTH)

    # 128-bit write into the large buffer, lane i at addr + i
    store = m.new_instr(GB_CORE_STORE_LARGE)
    store.set_decode(lambda f: z3.And(_is_write(f), z3.ULT(f[TOP_ADDR_IN], GB_CONFIG_BASE)))

    def _store_lanes(f):
        mem = f[GB_CORE_LARGE_BUFFER]
        for i, lane in enumerate(TOP_DATA_IN):
            mem = z3.Store(mem, f[TOP_ADDR_IN] + i, f[lane])
        return mem

    store.set_update(GB_CORE_LARGE_BUFFER, _store_lanes)

    read = m.new_instr(GB_CORE_READ_LARGE)
    read.set_decode(lambda f: z3.And(f[TOP_IF_RD] == 1, f[TOP_IF_WR] == 0))

    # lanes 1:0 hold the source address, lanes 3:2 the destination
    cfg = m.new_instr(GB_CFG_MAXPOOL)
    cfg.set_decode(lambda f: z3.And(_is_write(f), f[TOP_ADDR_IN] == GB_MAXPOOL_CFG_ADDR))
    cfg.set_update(GB_MAXPOOL_SRC, lambda f: _lane_word(f, 1, 0))
    cfg.set_update(GB_MAXPOOL_DST, lambda f: _lane_word(f, 3, 2))
    cfg.set_update(GB_MAXPOOL_BUSY, lambda f: z3.BitVecVal(1, 1))

    pool = m.new_child("gb_maxpool")
    pool.set_valid(lambda f: f[GB_MAXPOOL_BUSY] == 1)

    step = pool.new_instr(GB_MAXPOOL_STEP)

    def _pool_two(f):
        src = f[GB_MAXPOOL_SRC]
        value = f.call(adpfloat_max, f.load(GB_CORE_LARGE_BUFFER, src), f.load(GB_CORE_LARGE_BUFFER, src + 1))
        return z3.Store(f[GB_CORE_LARGE_BUFFER], f[GB_MAXPOOL_DST], value)

    step.set_update(GB_CORE_LARGE_BUFFER, _pool_two)
    step.set_update(GB_MAXPOOL_BUSY, lambda f: z3.BitVecVal(0, 1))

    return m
