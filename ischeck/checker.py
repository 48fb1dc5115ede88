#!/usr/bin/env python3
"""
IsChecker: bounded equivalence checking of two ILA models

Unrolls a fixed instruction sequence of each model, constrains the inputs of
top-level instructions with their commands, and checks the design-specific
miter for satisfiability. UNSAT means the tracked memories agree after both
sequences.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

import z3

from .axioms import SharedFunction, UninterpPolicy, bind_shared_functions
from .context import SideContext
from .errors import ConfigurationError, InvariantViolation
from .ila import Ila
from .model_adapter import ModelAdapter
from .report_generator import ReportGenerator
from .sequence import read_instr_names
from .solver import SolverBackend, SolverResult, make_solver

logger = logging.getLogger(__name__)


class CheckerState(Enum):
    UNCONFIGURED = "unconfigured"
    SEQUENCES_SET = "sequences_set"
    PREPROCESSED = "preprocessed"
    ENV_CONSTRAINED = "env_constrained"
    UNROLLED = "unrolled"
    MITER_BUILT = "miter_built"
    SOLVED = "solved"
    EQUIVALENT = "equivalent"
    COUNTEREXAMPLE_FOUND = "counterexample_found"


class CheckStatus(Enum):
    """Outcome of a check."""
    EQUIVALENT = "equivalent"
    NOT_EQUIVALENT = "not_equivalent"
    UNKNOWN = "unknown"
    NOT_RUN = "not_run"


@dataclass
class CheckResult:
    """Result of one check."""
    status: CheckStatus
    runtime_sec: float
    dump_files: List[Path] = field(default_factory=list)
    unconstrained_steps: Dict[str, List[int]] = field(default_factory=dict)  # model label -> steps

    def __str__(self):
        result = f"Check Result: {self.status.value.upper()} ({self.runtime_sec:.2f}s)"
        if self.unconstrained_steps:
            steps = "; ".join(f"{label} {steps}" for label, steps in self.unconstrained_steps.items())
            result += f"\nUnconstrained steps: {steps}"
        if self.dump_files:
            result += "\nDumps: " + ", ".join(str(p) for p in self.dump_files)
        return result

    @property
    def is_equivalent(self) -> bool:
        return self.status == CheckStatus.EQUIVALENT

    @property
    def is_qualified(self) -> bool:
        """True when the outcome depends on steps no command constrained."""
        return bool(self.unconstrained_steps)


class IsChecker(ABC):
    """Generic two-model checker; designs provide the miter and functions."""

    def __init__(self, m0: Ila, m1: Ila, filter0, filter1,
                 backend: SolverBackend = SolverBackend.Z3,
                 policy: UninterpPolicy = UninterpPolicy.IDENTICAL,
                 dump_dir: Optional[Path] = None,
                 solver_command: Sequence[str] = ("z3", "-smt2"),
                 timeout_sec: Optional[int] = None):
        """
        Initialize checker.

        Args:
            m0: Model A (must outlive the checker)
            m1: Model B (must outlive the checker)
            filter0: Command filter of model A
            filter1: Command filter of model B
            backend: Solver backend
            policy: Relation between shared uninterpreted functions
            dump_dir: Where to write counterexample dumps (None: no dump)
            solver_command: Solver command line for the SMT-LIB backend
            timeout_sec: Timeout for the SMT-LIB backend
        """
        self.sides = [
            SideContext(m0.name, ModelAdapter(m0), filter0),
            SideContext(m1.name, ModelAdapter(m1), filter1),
        ]
        self.backend = backend
        self.policy = policy
        self.dump_dir = Path(dump_dir) if dump_dir is not None else None
        self.solver_command = list(solver_command)
        self.timeout_sec = timeout_sec

        self.state = CheckerState.UNCONFIGURED
        self.result: Optional[CheckResult] = None
        self._preprocessed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self) -> None:
        """Release the per-run unrollers."""
        for side in self.sides:
            side.unroller = None

    def _side(self, idx: int) -> SideContext:
        if idx not in (0, 1):
            raise ConfigurationError(f"Model index must be 0 or 1, got {idx}")
        return self.sides[idx]

    def set_instr_seq(self, idx: int, source: Union[str, Path, Iterable[str]]) -> None:
        """Append the instructions named by source to the sequence of model idx.

        source is a JSON/YAML file holding a list of names, or the names.
        """
        side = self._side(idx)
        if isinstance(source, (str, Path)):
            names = read_instr_names(source)
        else:
            names = list(source)
        side.set_instr_seq(names)

        if all(s.instr_seq for s in self.sides) and self.state == CheckerState.UNCONFIGURED:
            self.state = CheckerState.SEQUENCES_SET

    def check(self) -> bool:
        """Run the check. Returns True iff the models are proved equivalent.

        A proof that relies on unconstrained steps still returns True; the
        steps are listed in result.unconstrained_steps.

        Raises:
            InvariantViolation: If the commands cannot drive the instruction
                sequences (e.g. a command contradicts an instruction's decode)
        """
        start_time = time.time()

        if any(not side.instr_seq for side in self.sides):
            logger.error("Instruction sequence not set")
            self.result = CheckResult(status=CheckStatus.NOT_RUN, runtime_sec=0.0)
            return False

        self.preprocess()

        for side in self.sides:
            side.new_unroller()
        self.add_env()

        side_a, side_b = self.sides
        bind_shared_functions(self.shared_functions(), side_a.unroller, side_b.unroller, self.policy)
        paths = [side.unroller.unroll(side.instr_seq) for side in self.sides]
        self.state = CheckerState.UNROLLED

        miter = self.get_miter()
        self.state = CheckerState.MITER_BUILT
        interp = self.get_uninterp_func()

        solver = make_solver(self.backend, self.solver_command, self.timeout_sec)
        solver.add(*paths)

        # an unsatisfiable path makes any miter UNSAT
        logger.info("Checking that the command traces are feasible")
        if solver.check() == SolverResult.UNSAT:
            raise InvariantViolation(
                "Commands contradict the instruction sequences: "
                "no execution satisfies the path constraints"
            )

        solver.add(interp)
        solver.add(miter)

        logger.info(f"Solving with {self.backend.value} backend")
        res = solver.check()
        self.state = CheckerState.SOLVED
        runtime = time.time() - start_time

        unconstrained = {side.label: side.unconstrained_steps for side in self.sides if side.unconstrained_steps}

        if res == SolverResult.UNSAT:
            self.state = CheckerState.EQUIVALENT
            self.result = CheckResult(status=CheckStatus.EQUIVALENT, runtime_sec=runtime,
                                      unconstrained_steps=unconstrained)
            if unconstrained:
                logger.warning(f"Equivalent only up to unconstrained steps {unconstrained} ({runtime:.2f}s)")
            else:
                logger.info(f"Equivalent ({runtime:.2f}s)")
        elif res == SolverResult.UNKNOWN:
            self.result = CheckResult(status=CheckStatus.UNKNOWN, runtime_sec=runtime,
                                      unconstrained_steps=unconstrained)
            logger.warning(f"Solver could not decide ({runtime:.2f}s)")
        else:
            self.state = CheckerState.COUNTEREXAMPLE_FOUND
            self.result = CheckResult(status=CheckStatus.NOT_EQUIVALENT, runtime_sec=runtime,
                                      unconstrained_steps=unconstrained)
            logger.info(f"Counterexample found ({runtime:.2f}s)")
            if self.dump_dir is not None:
                self.result.dump_files = self.debug(solver)

        if self.dump_dir is not None:
            ReportGenerator(self.dump_dir).write_summary(self.result, self.summary())
        return self.result.is_equivalent

    def preprocess(self) -> None:
        """Record top-level instructions, then flatten the hierarchies."""
        if self._preprocessed:
            return
        for side in self.sides:
            side.capture_top_instrs()
        for side in self.sides:
            side.model.flatten_hierarchy()
        self._preprocessed = True
        self.state = CheckerState.PREPROCESSED

    def add_env(self) -> None:
        for side in self.sides:
            side.add_env()
        self.state = CheckerState.ENV_CONSTRAINED

    def summary(self) -> dict:
        return {
            side.label: {
                "instr_seq_length": side.length,
                "commands": len(side.commands),
                "stores": len(side.store_index),
                "unconstrained_steps": side.unconstrained_steps,
            }
            for side in self.sides
        }

    # design specific

    @abstractmethod
    def get_miter(self) -> z3.BoolRef:
        raise NotImplementedError

    def shared_functions(self) -> List[SharedFunction]:
        return []

    def get_uninterp_func(self) -> z3.BoolRef:
        return z3.BoolVal(True)

    def debug(self, solver) -> List[Path]:
        return []
