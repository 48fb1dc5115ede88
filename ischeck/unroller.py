"""
Path Unroller: bounded symbolic unrolling of an instruction sequence.

For a sequence of N instructions the unroller creates one frame per step
0..N. Every frame holds a fresh z3 constant for each input and state of the
model, named "<model>.<var>@<step>". Step i is connected to step i+1 by the
decode condition and the updates of the i-th instruction; states that the
instruction does not update keep their value.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Sequence

import z3

from .ila import Instr, UninterpFunc, Var
from .model_adapter import ModelAdapter

logger = logging.getLogger(__name__)

StepPred = Callable[["Frame"], z3.BoolRef]


class Frame:
    """Symbolic values of one model at one step."""

    def __init__(self, unroller: "PathUnroller", step: int, values: Dict[str, z3.ExprRef]):
        self.step = step
        self._unroller = unroller
        self._values = values

    def __getitem__(self, name: str) -> z3.ExprRef:
        try:
            return self._values[name]
        except KeyError:
            raise KeyError(f"{self._unroller.prefix} has no variable {name} at step {self.step}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def load(self, mem: str, addr) -> z3.ExprRef:
        """Read one word of a memory state."""
        array = self[mem]
        if isinstance(addr, int):
            addr = z3.BitVecVal(addr, array.domain().size())
        return z3.Select(array, addr)

    def call(self, func: UninterpFunc, *args) -> z3.ExprRef:
        """Apply an uninterpreted function."""
        return self._unroller.func_decl(func)(*args)


class PathUnroller:
    """Unrolls one model along a fixed instruction sequence."""

    def __init__(self, model: ModelAdapter, prefix: str = None):
        self.model = model
        self.prefix = prefix or model.name
        self._step_preds: Dict[int, List[StepPred]] = defaultdict(list)
        self._funcs: Dict[str, z3.FuncDeclRef] = {}
        self._frames: List[Frame] = []

    @property
    def length(self) -> int:
        """Number of unrolled instructions (last step index)."""
        return len(self._frames) - 1

    def add_step_pred(self, step: int, pred: StepPred) -> None:
        if step < 0:
            raise IndexError(f"Negative step {step}")
        self._step_preds[step].append(pred)

    def func_decl(self, func: UninterpFunc) -> z3.FuncDeclRef:
        decl = self._funcs.get(func.name)
        if decl is None:
            sorts = [z3.BitVecSort(w) for w in func.arg_widths]
            decl = z3.Function(f"{self.prefix}.{func.name}", *sorts, z3.BitVecSort(func.out_width))
            self._funcs[func.name] = decl
        return decl

    def alias_function(self, func: UninterpFunc, decl: z3.FuncDeclRef) -> None:
        """Use an existing declaration (e.g. another model's) for func."""
        if func.name in self._funcs and not self._funcs[func.name].eq(decl):
            raise ValueError(f"{self.prefix}.{func.name} already declared")
        self._funcs[func.name] = decl

    def unroll(self, seq: Sequence[Instr]) -> z3.BoolRef:
        """Build the transition formula of seq, including step predicates."""
        variables = self.model.inputs() + self.model.states()
        self._frames = [self._new_frame(step, variables) for step in range(len(seq) + 1)]

        bad_steps = [s for s in self._step_preds if s > len(seq)]
        if bad_steps:
            raise IndexError(f"Step predicates beyond last step {len(seq)}: {sorted(bad_steps)}")

        clauses = []
        for step, instr in enumerate(seq):
            curr = self._frames[step]
            nxt = self._frames[step + 1]
            clauses.append(instr.decode(curr))
            for state in self.model.states():
                update = instr.updates.get(state.name)
                next_value = update(curr) if update is not None else curr[state.name]
                clauses.append(nxt[state.name] == next_value)

        for step in sorted(self._step_preds):
            for pred in self._step_preds[step]:
                clauses.append(pred(self._frames[step]))

        logger.debug(f"Unrolled {self.prefix}: {len(seq)} steps, {len(clauses)} clauses")
        return z3.And(*clauses) if clauses else z3.BoolVal(True)

    def frame(self, step: int) -> Frame:
        if not self._frames:
            raise IndexError(f"{self.prefix} has not been unrolled")
        if step < 0 or step >= len(self._frames):
            raise IndexError(f"Step {step} out of range 0..{self.length}")
        return self._frames[step]

    def value_at(self, name: str, step: int) -> z3.ExprRef:
        return self.frame(step)[name]

    def load_at(self, mem: str, addr, step: int) -> z3.ExprRef:
        return self.frame(step).load(mem, addr)

    def _new_frame(self, step: int, variables: List[Var]) -> Frame:
        values = {
            var.name: z3.Const(f"{self.prefix}.{var.name}@{step}", var.sort())
            for var in variables
        }
        return Frame(self, step, values)


def bind_inputs(bindings: Dict[str, int]) -> StepPred:
    """Step predicate asserting input == value for every binding."""
    items = sorted(bindings.items())

    def pred(frame: Frame) -> z3.BoolRef:
        return z3.And(*[frame[name] == value for name, value in items]) if items else z3.BoolVal(True)

    return pred
