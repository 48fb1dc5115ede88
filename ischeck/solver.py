"""
Solver adapters.

Formulas are always built as z3 terms. The Z3 backend solves them in
process; the SMT-LIB backend prints them as an SMT-LIB2 script and runs an
external solver binary on it.
"""

import logging
import re
import subprocess
import tempfile
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Union

import z3

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class SolverBackend(Enum):
    Z3 = "z3"
    SMTLIB = "smtlib"


class SolverResult(Enum):
    SAT = "sat"
    UNSAT = "unsat"
    UNKNOWN = "unknown"


class _TermBuilder:
    """Term construction shared by both adapters."""

    @staticmethod
    def function(name: str, *widths: int) -> z3.FuncDeclRef:
        """Uninterpreted bit-vector function; the last width is the result."""
        if len(widths) < 2:
            raise ValueError(f"Function {name} needs argument and result widths")
        return z3.Function(name, *[z3.BitVecSort(w) for w in widths])

    @staticmethod
    def forall(variables: Sequence[z3.ExprRef], body: z3.BoolRef) -> z3.BoolRef:
        return z3.ForAll(list(variables), body)


class Z3Solver(_TermBuilder):
    """In-process z3 solver."""

    def __init__(self):
        self._solver = z3.Solver()
        self._model = None

    def add(self, *exprs: z3.BoolRef) -> None:
        self._solver.add(*exprs)

    def check(self) -> SolverResult:
        res = self._solver.check()
        if res == z3.sat:
            self._model = self._solver.model()
            return SolverResult.SAT
        self._model = None
        if res == z3.unsat:
            return SolverResult.UNSAT
        logger.warning(f"z3 returned unknown: {self._solver.reason_unknown()}")
        return SolverResult.UNKNOWN

    def evaluate(self, expr: z3.ExprRef) -> Union[int, str]:
        if self._model is None:
            raise RuntimeError("No model available (last check was not sat)")
        value = self._model.eval(expr, model_completion=True)
        if z3.is_bv_value(value):
            return value.as_long()
        return str(value)

    def evaluate_many(self, exprs: Sequence[z3.ExprRef]) -> List[Union[int, str]]:
        return [self.evaluate(e) for e in exprs]


class SmtLibSolver(_TermBuilder):
    """External SMT-LIB2 solver run through subprocess."""

    def __init__(self, command: Sequence[str] = ("z3", "-smt2"),
                 timeout_sec: Optional[int] = None,
                 save_query_to: Optional[Path] = None):
        self.command = list(command)
        self.timeout_sec = timeout_sec
        self.save_query_to = save_query_to
        self._assertions: List[z3.BoolRef] = []
        self._last = None

    def add(self, *exprs: z3.BoolRef) -> None:
        self._assertions.extend(exprs)

    def to_smt2(self, extra: str = "") -> str:
        """SMT-LIB2 script of all assertions, ending with (check-sat)."""
        s = z3.Solver()
        s.add(*self._assertions)
        return "(set-option :produce-models true)\n" + s.to_smt2() + extra

    def check(self) -> SolverResult:
        query = self.to_smt2()
        if self.save_query_to:
            Path(self.save_query_to).write_text(query)
        output = self._run(query)
        self._last = _parse_status(output)
        return self._last

    def evaluate(self, expr: z3.ExprRef) -> Union[int, str]:
        return self.evaluate_many([expr])[0]

    def evaluate_many(self, exprs: Sequence[z3.ExprRef]) -> List[Union[int, str]]:
        """Re-run the query once with a (get-value ...) per expression."""
        if self._last != SolverResult.SAT:
            raise RuntimeError("No model available (last check was not sat)")
        requests = "".join(f"(get-value ({e.sexpr()}))\n" for e in exprs)
        output = self._run(self.to_smt2(requests))
        # first line is the check-sat answer
        answers = _split_sexprs(output.strip().split("\n", 1)[-1])
        if len(answers) != len(exprs):
            raise RuntimeError(f"Expected {len(exprs)} values, solver returned {len(answers)}")
        return [_parse_value(a) for a in answers]

    def _run(self, query: str) -> str:
        with tempfile.NamedTemporaryFile(mode='w', suffix='.smt2', delete=False) as f:
            f.write(query)
            query_file = f.name

        try:
            result = subprocess.run(
                self.command + [query_file],
                capture_output=True,
                text=True,
                timeout=self.timeout_sec
            )
        except FileNotFoundError:
            raise ConfigurationError(f"Solver binary not found: {self.command[0]}") from None
        except subprocess.TimeoutExpired:
            logger.warning(f"{self.command[0]} timed out after {self.timeout_sec}s")
            return "unknown"
        finally:
            Path(query_file).unlink()

        if result.returncode != 0 and not result.stdout.strip():
            logger.error(f"{self.command[0]} failed: {result.stderr.strip()[:200]}")
        return result.stdout


def _parse_status(output: str) -> SolverResult:
    first = output.strip().splitlines()[0].strip().lower() if output.strip() else ""
    if first == "unsat":
        return SolverResult.UNSAT
    if first == "sat":
        return SolverResult.SAT
    logger.warning(f"Solver result unknown: {output.strip()[:80]}")
    return SolverResult.UNKNOWN


def _split_sexprs(text: str) -> List[str]:
    """Split solver output into its top-level s-expressions."""
    exprs = []
    depth = 0
    start = None
    for i, ch in enumerate(text):
        if ch == '(':
            if depth == 0:
                start = i
            depth += 1
        elif ch == ')':
            depth -= 1
            if depth == 0 and start is not None:
                exprs.append(text[start:i + 1])
                start = None
    return exprs


def _parse_value(text: str) -> Union[int, str]:
    """Value of a single (get-value ((expr value))) answer."""
    text = text.strip()
    match = re.search(r'#x([0-9a-fA-F]+)\)\)$', text)
    if match:
        return int(match.group(1), 16)
    match = re.search(r'#b([01]+)\)\)$', text)
    if match:
        return int(match.group(1), 2)
    match = re.search(r'\(_ bv(\d+) \d+\)\)\)$', text)
    if match:
        return int(match.group(1))
    return text


def make_solver(backend: SolverBackend, command: Sequence[str] = ("z3", "-smt2"),
                timeout_sec: Optional[int] = None, save_query_to: Optional[Path] = None):
    if backend == SolverBackend.Z3:
        return Z3Solver()
    elif backend == SolverBackend.SMTLIB:
        return SmtLibSolver(command, timeout_sec, save_query_to)
    raise ConfigurationError(f"Unknown solver backend: {backend}")
