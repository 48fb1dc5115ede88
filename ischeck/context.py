"""
Per-model constraint context.

Both models of a check carry the same bookkeeping: instruction sequence,
top-level instruction names, command sequence, StoreIndex and unroller. One
SideContext instance exists per model, parameterized by its filter.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from .commands import Command
from .errors import ConfigurationError, InvariantViolation
from .ila import Instr
from .model_adapter import ModelAdapter
from .sequence import load_instr_seq
from .unroller import PathUnroller, bind_inputs

logger = logging.getLogger(__name__)


@dataclass
class SideContext:
    label: str
    model: ModelAdapter
    filter: object
    instr_seq: List[Instr] = field(default_factory=list)
    top_instrs: Set[str] = field(default_factory=set)
    commands: List[Command] = field(default_factory=list)
    store_index: Dict[int, int] = field(default_factory=dict)
    unconstrained_steps: List[int] = field(default_factory=list)
    unroller: Optional[PathUnroller] = None

    @property
    def length(self) -> int:
        return len(self.instr_seq)

    def set_instr_seq(self, names: Iterable[str]) -> None:
        load_instr_seq(self.model, names, self.instr_seq)
        logger.info(f"{self.label}: instruction sequence of length {self.length}")

    def set_commands(self, commands: List[Command]) -> None:
        if self.commands:
            raise ConfigurationError(f"{self.label} command sequence already set")
        self.commands = list(commands)

    def capture_top_instrs(self) -> None:
        if self.top_instrs:
            logger.warning(f"Getting top instr. of {self.label} into non-empty container")
        for i in range(self.model.instr_num()):
            self.top_instrs.add(self.model.instr(i).name)

    def new_unroller(self) -> PathUnroller:
        self.unroller = PathUnroller(self.model, self.label)
        return self.unroller

    def add_env(self) -> None:
        """Constrain top-level steps to their commands, in order."""
        logger.info(f"Adding {self.label} specific constraints")
        if not self.commands:
            raise ConfigurationError(f"No {self.label} command provided")
        if self.unroller is None:
            raise ConfigurationError(f"{self.label} unroller not created")

        top_steps = [i for i, instr in enumerate(self.instr_seq) if instr.name in self.top_instrs]
        if len(self.commands) > len(top_steps):
            raise InvariantViolation(
                f"{self.label}: {len(self.commands)} commands for "
                f"{len(top_steps)} top-level instructions"
            )
        if len(self.commands) < len(top_steps):
            logger.warning(
                f"{self.label}: only {len(self.commands)} commands for {len(top_steps)} "
                f"top-level instructions, steps {top_steps[len(self.commands):]} left unconstrained"
            )

        # steps without a command, or whose command the filter could not model
        self.unconstrained_steps = top_steps[len(self.commands):]
        reported = len(self.filter.unconstrained_steps)

        for cmd_idx, (step, cmd) in enumerate(zip(top_steps, self.commands)):
            instr = self.instr_seq[step]
            bindings = self.filter.constrain(instr.name, cmd, step, self.store_index)
            self._check_widths(bindings, cmd_idx)
            self.unroller.add_step_pred(step, bind_inputs(bindings))

        self.unconstrained_steps = sorted(self.unconstrained_steps + self.filter.unconstrained_steps[reported:])

        logger.info(f"{self.label}: {len(self.store_index)} stores recorded")

    def _check_widths(self, bindings: Dict[str, int], cmd_idx: int) -> None:
        for name, value in bindings.items():
            width = self.model.input(name).width
            if value < 0 or value >= (1 << width):
                raise InvariantViolation(
                    f"{self.label} command {cmd_idx}: value {value:#x} does not fit "
                    f"{width}-bit input {name}"
                )
