"""
Command-Constraint Filters.

A filter turns one command record into input bindings for the step that
executes the corresponding top-level instruction. Only control inputs
(strobes, addresses, shapes) are bound; data that reaches memory through a
store is left free and related across the two models by the miter instead.
Store-producing commands register their address in the side's StoreIndex.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet

from .commands import Command
from .designs import flex, relay

logger = logging.getLogger(__name__)

Bindings = Dict[str, int]
StoreIndex = Dict[int, int]


def _register_store(store_index: StoreIndex, addr: int, step: int, label: str) -> None:
    if addr in store_index:
        logger.debug(f"{label} store {addr:#x} rewritten at step {step} (was {store_index[addr]})")
    store_index[addr] = step


class FlexFilter:
    """Filter for FlexASR AXI commands."""

    label = "flex"
    lane_names = flex.TOP_DATA_IN

    def __init__(self, data_setup_instrs: FrozenSet[str] = frozenset({flex.GB_CORE_STORE_LARGE})):
        self.data_setup_instrs = data_setup_instrs
        self.unconstrained_steps = []

    def constrain(self, instr_name: str, cmd: Command, step: int, store_index: StoreIndex) -> Bindings:
        bindings = {
            flex.TOP_IF_WR: cmd["is_wr"],
            flex.TOP_IF_RD: cmd["is_rd"],
            flex.TOP_ADDR_IN: cmd["addr"],
        }

        # data setup: lanes only matter through the stored content
        if instr_name in self.data_setup_instrs:
            _register_store(store_index, cmd["addr"], step, self.label)
            return bindings

        for lane in self.lane_names:
            bindings[lane] = cmd[lane]
        return bindings


class FunctionKind(Enum):
    """Relay operators distinguished by the filter."""
    TENSOR_STORE = "tensor_store"
    MAXPOOLING_2D = "maxpooling_2d"
    LSTM = "lstm"
    UNKNOWN = "unknown"

    @classmethod
    def from_id(cls, func_id: int) -> "FunctionKind":
        return {
            relay.F_TENSOR_STORE_ID: cls.TENSOR_STORE,
            relay.F_MAXPOOLING_2D_ID: cls.MAXPOOLING_2D,
            relay.F_LSTM_ID: cls.LSTM,
        }.get(func_id, cls.UNKNOWN)


class RelayFilter:
    """Filter for Relay function-call commands."""

    label = "relay"

    def __init__(self):
        self.unconstrained_steps = []

    def constrain(self, instr_name: str, cmd: Command, step: int, store_index: StoreIndex) -> Bindings:
        bindings = {
            relay.RELAY_FUNC_RUN_IN: cmd["func_run"],
            relay.RELAY_FUNC_ID_IN: cmd["func_id"],
        }

        kind = FunctionKind.from_id(cmd["func_id"])
        if kind == FunctionKind.TENSOR_STORE:
            bindings[relay.DATA_IN_Y] = cmd["data_in_y"]
            _register_store(store_index, cmd["data_in_y"], step, self.label)

        elif kind == FunctionKind.MAXPOOLING_2D:
            # data_in is streamed and stays free
            bindings[relay.DATA_IN_X] = cmd["data_in_x"]
            bindings[relay.DATA_IN_Y] = cmd["data_in_y"]
            bindings[relay.POOL_SIZE_X_IN] = cmd["pool_size_x"]
            bindings[relay.POOL_SIZE_Y_IN] = cmd["pool_size_y"]
            bindings[relay.STRIDES_X_IN] = cmd["stride_x"]
            bindings[relay.STRIDES_Y_IN] = cmd["stride_y"]

        else:
            self.unconstrained_steps.append(step)
            logger.warning(
                f"Relay step {step} ({instr_name}): function id {cmd['func_id']} "
                f"({kind.value}) is not modelled, operands left unconstrained"
            )

        return bindings
