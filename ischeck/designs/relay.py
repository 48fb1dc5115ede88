"""
Reference ILA of the Relay tensor-level operator interface.

A function call is triggered by func_run with func_id selecting the
operator. Tensor store writes one byte, max pooling reduces a window of two
elements with an uninterpreted maximum. LSTM is declared but not modelled.
"""

import z3

from ..ila import Ila

RELAY_FUNC_RUN_IN = "relay_func_run_in"
RELAY_FUNC_ID_IN = "relay_func_id_in"
RELAY_DATA_IN = "relay_data_in"
DATA_IN_X = "relay_data_in_x"
DATA_IN_Y = "relay_data_in_y"
POOL_SIZE_X_IN = "relay_pool_size_x_in"
POOL_SIZE_Y_IN = "relay_pool_size_y_in"
STRIDES_X_IN = "relay_strides_x_in"
STRIDES_Y_IN = "relay_strides_y_in"

RELAY_TENSOR_MEM = "relay_tensor_mem"

RELAY_ADDR_WIDTH = 32
RELAY_DATA_WIDTH = 8
RELAY_FUNC_ID_WIDTH = 8

F_MAXPOOLING_2D_ID = 1
F_TENSOR_STORE_ID = 2
F_LSTM_ID = 3

F_TENSOR_STORE = "relay_tensor_store"
F_MAXPOOLING_2D = "relay_maxpooling_2d"
F_LSTM = "relay_lstm"

ADPFLOAT_MAX = "adpfloat_max"


def _calls(func_id: int):
    return lambda f: z3.And(f[RELAY_FUNC_RUN_IN] == 1, f[RELAY_FUNC_ID_IN] == func_id)


def build_relay_ila() -> Ila:
    m = Ila("relay")

    m.new_bv_input(RELAY_FUNC_RUN_IN, 1)
    m.new_bv_input(RELAY_FUNC_ID_IN, RELAY_FUNC_ID_WIDTH)
    m.new_bv_input(RELAY_DATA_IN, RELAY_DATA_WIDTH)
    m.new_bv_input(DATA_IN_X, RELAY_ADDR_WIDTH)
    m.new_bv_input(DATA_IN_Y, RELAY_ADDR_WIDTH)
    for name in (POOL_SIZE_X_IN, POOL_SIZE_Y_IN, STRIDES_X_IN, STRIDES_Y_IN):
        m.new_bv_input(name, 8)

    m.new_mem_state(RELAY_TENSOR_MEM, RELAY_ADDR_WIDTH, RELAY_DATA_WIDTH)

    adpfloat_max = m.new_func(ADPFLOAT_MAX, RELAY_DATA_WIDTH, RELAY_DATA_WIDTH, RELAY_DATA_WIDTH)

    store = m.new_instr(F_TENSOR_STORE)
    store.set_decode(_calls(F_TENSOR_STORE_ID))
    store.set_update(RELAY_TENSOR_MEM,
                     lambda f: z3.Store(f[RELAY_TENSOR_MEM], f[DATA_IN_Y], f[RELAY_DATA_IN]))

    pool = m.new_instr(F_MAXPOOLING_2D)
    pool.set_decode(_calls(F_MAXPOOLING_2D_ID))

    def _pool_two(f):
        x = f[DATA_IN_X]
        second = x + z3.ZeroExt(RELAY_ADDR_WIDTH - 8, f[STRIDES_X_IN])
        value = f.call(adpfloat_max, f.load(RELAY_TENSOR_MEM, x), f.load(RELAY_TENSOR_MEM, second))
        return z3.Store(f[RELAY_TENSOR_MEM], f[DATA_IN_Y], value)

    pool.set_update(RELAY_TENSOR_MEM, _pool_two)

    lstm = m.new_instr(F_LSTM)
    lstm.set_decode(_calls(F_LSTM_ID))

    return m
