#!/usr/bin/env python3
"""
Regression tests for command filters, per-model contexts and the miter.
"""

import logging
import sys
from pathlib import Path

import pytest
import z3

PROJECT_ROOT = Path(__file__).parent.parent.parent

sys.path.insert(0, str(PROJECT_ROOT))

from ischeck.commands import parse_flex_command, parse_relay_command
from ischeck.context import SideContext
from ischeck.designs import build_flex_ila, build_relay_ila, flex, relay
from ischeck.errors import ConfigurationError, InvariantViolation
from ischeck.filters import FlexFilter, FunctionKind, RelayFilter
from ischeck.flex_relay import FLEX_RELAY_MITER
from ischeck.miter import build_miter, check_store_index, mapped_address
from ischeck.model_adapter import ModelAdapter

from utils import flex_record, relay_maxpool_record, relay_store_record


def flex_cmd(addr, data="0x0", **kwargs):
    return parse_flex_command(flex_record(addr, data, **kwargs), flex.TOP_DATA_IN)


def relay_store(addr):
    return parse_relay_command(relay_store_record(addr))


def flex_side(names, commands):
    side = SideContext("flex", ModelAdapter(build_flex_ila()), FlexFilter())
    side.set_instr_seq(names)
    side.set_commands(commands)
    side.capture_top_instrs()
    side.new_unroller()
    return side


def relay_side(names, commands):
    side = SideContext("relay", ModelAdapter(build_relay_ila()), RelayFilter())
    side.set_instr_seq(names)
    side.set_commands(commands)
    side.capture_top_instrs()
    side.new_unroller()
    return side


class TestFlexFilter:
    """Test FlexASR command constraints."""

    def test_store_registers_address(self):
        store_index = {}
        bindings = FlexFilter().constrain(flex.GB_CORE_STORE_LARGE, flex_cmd(0x10, "0xab"), 0, store_index)

        assert store_index == {0x10: 0}
        assert bindings == {flex.TOP_IF_WR: 1, flex.TOP_IF_RD: 0, flex.TOP_ADDR_IN: 0x10}

    def test_config_binds_lanes(self):
        store_index = {}
        cmd = flex_cmd(flex.GB_MAXPOOL_CFG_ADDR, "0x00100010")
        bindings = FlexFilter().constrain(flex.GB_CFG_MAXPOOL, cmd, 1, store_index)

        assert store_index == {}
        assert bindings[flex.TOP_DATA_IN[0]] == 0x10
        assert bindings[flex.TOP_DATA_IN[2]] == 0x10
        assert bindings[flex.TOP_DATA_IN[1]] == 0

    def test_last_store_wins(self):
        store_index = {}
        f = FlexFilter()
        f.constrain(flex.GB_CORE_STORE_LARGE, flex_cmd(0x10), 0, store_index)
        f.constrain(flex.GB_CORE_STORE_LARGE, flex_cmd(0x10), 3, store_index)
        assert store_index == {0x10: 3}


class TestRelayFilter:
    """Test Relay command constraints."""

    def test_function_kinds(self):
        assert FunctionKind.from_id(relay.F_TENSOR_STORE_ID) == FunctionKind.TENSOR_STORE
        assert FunctionKind.from_id(relay.F_MAXPOOLING_2D_ID) == FunctionKind.MAXPOOLING_2D
        assert FunctionKind.from_id(relay.F_LSTM_ID) == FunctionKind.LSTM
        assert FunctionKind.from_id(0x7f) == FunctionKind.UNKNOWN

    def test_tensor_store(self):
        store_index = {}
        bindings = RelayFilter().constrain(relay.F_TENSOR_STORE, relay_store(0x1a), 4, store_index)

        assert store_index == {0x1a: 4}
        assert bindings[relay.DATA_IN_Y] == 0x1a
        assert relay.RELAY_DATA_IN not in bindings

    def test_maxpool_binds_shape(self):
        store_index = {}
        cmd = parse_relay_command(relay_maxpool_record(0x10, 0x20, stride=2))
        bindings = RelayFilter().constrain(relay.F_MAXPOOLING_2D, cmd, 16, store_index)

        assert store_index == {}
        assert bindings[relay.DATA_IN_X] == 0x10
        assert bindings[relay.DATA_IN_Y] == 0x20
        assert bindings[relay.STRIDES_X_IN] == 2
        assert bindings[relay.POOL_SIZE_X_IN] == 2
        assert relay.RELAY_DATA_IN not in bindings

    @pytest.mark.parametrize("func_id", [relay.F_LSTM_ID, 0x7f])
    def test_unmodelled_function(self, func_id, caplog):
        record = relay_store_record(0x10)
        record["func_id"] = hex(func_id)
        f = RelayFilter()
        store_index = {}

        with caplog.at_level(logging.WARNING):
            bindings = f.constrain(relay.F_LSTM, parse_relay_command(record), 2, store_index)

        assert set(bindings) == {relay.RELAY_FUNC_RUN_IN, relay.RELAY_FUNC_ID_IN}
        assert store_index == {}
        assert f.unconstrained_steps == [2]
        assert "not modelled" in caplog.text


class TestSideContext:
    """Test per-model environment constraints."""

    def test_commands_follow_top_level_steps(self):
        names = [flex.GB_CORE_STORE_LARGE, flex.GB_CFG_MAXPOOL, flex.GB_MAXPOOL_STEP]
        cmds = [flex_cmd(0x10), flex_cmd(flex.GB_MAXPOOL_CFG_ADDR, "0x00100010")]
        side = flex_side(names, cmds)

        side.add_env()

        assert flex.GB_MAXPOOL_STEP not in side.top_instrs
        assert side.store_index == {0x10: 0}

    def test_too_many_commands(self):
        side = flex_side([flex.GB_CORE_STORE_LARGE], [flex_cmd(0x10), flex_cmd(0x20)])
        with pytest.raises(InvariantViolation):
            side.add_env()

    def test_too_few_commands(self, caplog):
        side = relay_side([relay.F_TENSOR_STORE] * 3, [relay_store(0x10)])
        with caplog.at_level(logging.WARNING):
            side.add_env()
        assert side.store_index == {0x10: 0}
        assert "left unconstrained" in caplog.text
        assert side.unconstrained_steps == [1, 2]

    def test_unmodelled_call_is_unconstrained(self):
        lstm = relay_store_record(0x20)
        lstm["func_id"] = hex(relay.F_LSTM_ID)
        side = relay_side([relay.F_TENSOR_STORE, relay.F_LSTM, relay.F_TENSOR_STORE],
                          [relay_store(0x10), parse_relay_command(lstm)])

        side.add_env()

        assert side.unconstrained_steps == [1, 2]
        assert side.store_index == {0x10: 0}

    def test_no_commands(self):
        side = flex_side([flex.GB_CORE_STORE_LARGE], [])
        with pytest.raises(ConfigurationError):
            side.add_env()

    def test_commands_set_twice(self):
        side = flex_side([flex.GB_CORE_STORE_LARGE], [flex_cmd(0x10)])
        with pytest.raises(ConfigurationError):
            side.set_commands([flex_cmd(0x20)])

    def test_value_wider_than_input(self):
        side = flex_side([flex.GB_CORE_STORE_LARGE], [flex_cmd(0x1_0000_0000)])
        with pytest.raises(InvariantViolation) as exc_info:
            side.add_env()
        assert flex.TOP_ADDR_IN in str(exc_info.value)


class TestMiter:
    """Test the cross-model proof obligation."""

    def store_sides(self, relay_addrs):
        a = flex_side([flex.GB_CORE_STORE_LARGE], [flex_cmd(0x10)])
        b = relay_side([relay.F_TENSOR_STORE] * len(relay_addrs), [relay_store(x) for x in relay_addrs])
        for side in (a, b):
            side.add_env()
        return a, b

    def test_empty_store_index(self):
        a = flex_side([flex.GB_CORE_READ_LARGE], [flex_cmd(0x10, is_wr=0, is_rd=1)])
        b = relay_side([relay.F_MAXPOOLING_2D], [parse_relay_command(relay_maxpool_record(0x10, 0x10))])
        for side in (a, b):
            side.add_env()
            side.unroller.unroll(side.instr_seq)

        with pytest.raises(InvariantViolation) as exc_info:
            build_miter(a, b, {}, FLEX_RELAY_MITER)
        assert "no store" in str(exc_info.value).lower()

    def test_store_count_mismatch(self):
        a, b = self.store_sides(range(0x10, 0x1f))
        with pytest.raises(InvariantViolation) as exc_info:
            check_store_index(a, b, FLEX_RELAY_MITER.fanout)
        assert "mismatch" in str(exc_info.value)

    def test_missing_mapping_entry(self):
        a, b = self.store_sides(range(0x10, 0x20))
        for side in (a, b):
            side.unroller.unroll(side.instr_seq)
        addr_map = {x: x for x in range(0x10, 0x1f)}

        with pytest.raises(InvariantViolation) as exc_info:
            build_miter(a, b, addr_map, FLEX_RELAY_MITER)
        assert "0x1f" in str(exc_info.value)

    def test_mapped_address(self):
        assert mapped_address({0x10: 0x40}, 0x10) == 0x40
        with pytest.raises(InvariantViolation):
            mapped_address({}, 0x10)

    def test_stores_equivalent(self):
        a, b = self.store_sides(range(0x10, 0x20))
        paths = [side.unroller.unroll(side.instr_seq) for side in (a, b)]
        miter = build_miter(a, b, {x: x for x in range(0x10, 0x20)}, FLEX_RELAY_MITER)

        s = z3.Solver()
        s.add(*paths)
        s.add(miter.obligation)
        assert s.check() == z3.unsat
