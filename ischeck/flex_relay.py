#!/usr/bin/env python3
"""
Flex/Relay checker: FlexASR global-buffer programs vs. Relay operator calls

Model A is the FlexASR ILA driven by 128-bit AXI commands, model B the Relay
ILA driven by function-call commands. One FlexASR store fans out to 16 byte
lanes, each matched with one Relay tensor store through the address mapping.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import z3

from .axioms import SharedFunction, uninterp_axioms
from .checker import CheckStatus, IsChecker
from .commands import load_addr_mapping, load_commands, parse_flex_command, parse_relay_command
from .config_loader import ConfigLoader
from .designs import build_flex_ila, build_relay_ila, flex, relay
from .errors import ConfigurationError, IsCheckError
from .filters import FlexFilter, RelayFilter
from .ila import Ila
from .miter import MiterSpec, build_miter
from .report_generator import ReportGenerator

logger = logging.getLogger(__name__)

FLEX_RELAY_MITER = MiterSpec(
    mem_a=flex.GB_CORE_LARGE_BUFFER,
    mem_b=relay.RELAY_TENSOR_MEM,
    lanes_a=flex.TOP_DATA_IN,
    data_b=relay.RELAY_DATA_IN,
)


class FlexRelayChecker(IsChecker):
    """Checks FlexASR against Relay on the large-buffer/tensor memory."""

    def __init__(self, flex_ila: Optional[Ila] = None, relay_ila: Optional[Ila] = None,
                 flex_filter: Optional[FlexFilter] = None,
                 relay_filter: Optional[RelayFilter] = None, **kwargs):
        super().__init__(
            flex_ila if flex_ila is not None else build_flex_ila(),
            relay_ila if relay_ila is not None else build_relay_ila(),
            flex_filter if flex_filter is not None else FlexFilter(),
            relay_filter if relay_filter is not None else RelayFilter(),
            **kwargs
        )
        self.addr_mapping = {}

    def set_flex_cmd(self, cmd_file: Path) -> None:
        cmds = load_commands(cmd_file, lambda record: parse_flex_command(record, flex.TOP_DATA_IN))
        self.sides[0].set_commands(cmds)

    def set_relay_cmd(self, cmd_file: Path) -> None:
        self.sides[1].set_commands(load_commands(cmd_file, parse_relay_command))

    def set_addr_mapping(self, mapping: Path) -> None:
        if self.addr_mapping:
            raise ConfigurationError("Address mapping already set")
        self.addr_mapping = load_addr_mapping(mapping)

    def get_miter(self) -> z3.BoolRef:
        flex_side, relay_side = self.sides
        return build_miter(flex_side, relay_side, self.addr_mapping, FLEX_RELAY_MITER).obligation

    def shared_functions(self) -> List[SharedFunction]:
        flex_side, relay_side = self.sides
        return [SharedFunction(
            flex_side.model.func(flex.GB_ADPFLOAT_MAX),
            relay_side.model.func(relay.ADPFLOAT_MAX),
        )]

    def get_uninterp_func(self) -> z3.BoolRef:
        flex_side, relay_side = self.sides
        return uninterp_axioms(self.shared_functions(), flex_side.unroller, relay_side.unroller, self.policy)

    def debug(self, solver) -> List[Path]:
        """Dump the tracked addresses of both models at every step."""
        flex_side, relay_side = self.sides
        flex_addrs = [addr + i for addr in sorted(flex_side.store_index)
                      for i in range(FLEX_RELAY_MITER.fanout)]
        relay_addrs = [self.addr_mapping[addr] for addr in flex_addrs]

        report = ReportGenerator(self.dump_dir)
        dumps = []
        for side, mem, addrs in ((flex_side, FLEX_RELAY_MITER.mem_a, flex_addrs),
                                 (relay_side, FLEX_RELAY_MITER.mem_b, relay_addrs)):
            exprs = [side.unroller.load_at(mem, addr, step)
                     for step in range(side.length + 1) for addr in addrs]
            exprs.append(side.unroller.value_at(mem, side.length))
            values = solver.evaluate_many(exprs)

            steps = []
            for step in range(side.length + 1):
                row = values[step * len(addrs):(step + 1) * len(addrs)]
                steps.append(dict(zip(addrs, row)))
            dumps.append(report.write_dump(side.label, steps, values[-1]))
            logger.info(f"Wrote {dumps[-1]}")
        return dumps


def main():
    """CLI interface for the flex/relay checker.

    Exit codes: 0 equivalent, 1 not equivalent or bad config, 2 run error or
    unknown, 3 equivalent with unconstrained steps.
    """
    parser = argparse.ArgumentParser(description="Bounded equivalence check of FlexASR vs. Relay ILAs")
    parser.add_argument("config", type=Path, help="YAML check configuration")
    parser.add_argument("--dump-dir", type=Path, default=None,
                        help="Directory for the check report and counterexample dumps (overrides config)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(levelname)s: %(message)s'
    )

    try:
        config = ConfigLoader.load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    checker = FlexRelayChecker(
        backend=config.solver.backend,
        policy=config.uninterpreted,
        dump_dir=args.dump_dir or config.dump_dir,
        solver_command=config.solver.command,
        timeout_sec=config.solver.timeout_sec,
    )

    with checker:
        try:
            checker.set_instr_seq(0, config.flex_instr_seq)
            checker.set_instr_seq(1, config.relay_instr_seq)
            checker.set_flex_cmd(config.flex_cmd)
            checker.set_relay_cmd(config.relay_cmd)
            checker.set_addr_mapping(config.address_mapping)
            checker.check()
        except (IsCheckError, FileNotFoundError) as e:
            logger.error(str(e))
            return 2

    print(checker.result)

    if checker.result.status == CheckStatus.EQUIVALENT and checker.result.is_qualified:
        print("? Models are EQUIVALENT only if the unconstrained steps are irrelevant")
        return 3
    elif checker.result.status == CheckStatus.EQUIVALENT:
        print("✓ Models are EQUIVALENT on the given sequences")
        return 0
    elif checker.result.status == CheckStatus.NOT_EQUIVALENT:
        print("✗ Models are NOT equivalent - counterexample found")
        return 1
    else:
        print(f"? Check result: {checker.result.status.value}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
