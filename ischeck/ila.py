"""
Minimal instruction-level abstraction (ILA) modelling layer.

An ILA is a set of named inputs and states plus guarded instructions. Each
instruction has a decode condition and a set of state updates, both given as
callables over a step frame (see unroller.Frame) that return z3 terms. Child
ILAs group sub-instructions behind a valid condition; flatten_hierarchy()
folds them into the parent.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import z3


@dataclass(frozen=True)
class Var:
    """An input or state variable. Memories carry an address width."""
    name: str
    width: int
    addr_width: Optional[int] = None

    @property
    def is_mem(self) -> bool:
        return self.addr_width is not None

    def sort(self) -> z3.SortRef:
        if self.is_mem:
            return z3.ArraySort(z3.BitVecSort(self.addr_width), z3.BitVecSort(self.width))
        return z3.BitVecSort(self.width)


@dataclass(frozen=True)
class UninterpFunc:
    """An uninterpreted function over bit-vectors."""
    name: str
    out_width: int
    arg_widths: Tuple[int, ...]

    @property
    def arity(self) -> int:
        return len(self.arg_widths)


class Instr:
    """A guarded atomic state update."""

    def __init__(self, name: str, host: "Ila"):
        self.name = name
        self.host = host
        self._decode: Optional[Callable] = None
        self.updates: Dict[str, Callable] = {}

    def set_decode(self, decode: Callable) -> None:
        self._decode = decode

    def set_update(self, state: str, update: Callable) -> None:
        self.updates[state] = update

    def decode(self, frame) -> z3.BoolRef:
        if self._decode is None:
            return z3.BoolVal(True)
        return self._decode(frame)

    def __repr__(self):
        return f"Instr({self.name})"


class Ila:
    """A (possibly hierarchical) ILA model."""

    def __init__(self, name: str):
        self.name = name
        self.inputs: Dict[str, Var] = {}
        self.states: Dict[str, Var] = {}
        self.funcs: Dict[str, UninterpFunc] = {}
        self.instrs: List[Instr] = []
        self.children: List["Ila"] = []
        self.parent: Optional["Ila"] = None
        self._valid: Optional[Callable] = None

    # ------------------------------------------------------------------
    # construction
    # ------------------------------------------------------------------

    def new_bv_input(self, name: str, width: int) -> Var:
        var = Var(name, width)
        self._declare(self.inputs, var)
        return var

    def new_bv_state(self, name: str, width: int) -> Var:
        var = Var(name, width)
        self._declare(self.states, var)
        return var

    def new_mem_state(self, name: str, addr_width: int, data_width: int) -> Var:
        var = Var(name, data_width, addr_width)
        self._declare(self.states, var)
        return var

    def new_func(self, name: str, out_width: int, *arg_widths: int) -> UninterpFunc:
        func = UninterpFunc(name, out_width, tuple(arg_widths))
        self.funcs[name] = func
        return func

    def new_instr(self, name: str) -> Instr:
        if any(i.name == name for i in self.instrs):
            raise ValueError(f"Instruction {name} already defined in {self.name}")
        instr = Instr(name, self)
        self.instrs.append(instr)
        return instr

    def new_child(self, name: str) -> "Ila":
        child = Ila(name)
        child.parent = self
        self.children.append(child)
        return child

    def set_valid(self, valid: Callable) -> None:
        self._valid = valid

    def valid(self, frame) -> z3.BoolRef:
        if self._valid is None:
            return z3.BoolVal(True)
        return self._valid(frame)

    def _declare(self, table: Dict[str, Var], var: Var) -> None:
        if var.name in self.inputs or var.name in self.states:
            raise ValueError(f"Variable {var.name} already defined in {self.name}")
        table[var.name] = var

    # ------------------------------------------------------------------
    # hierarchy
    # ------------------------------------------------------------------

    def flatten_hierarchy(self) -> None:
        """Fold child ILAs into this one.

        Child instructions keep their identity; their decode is conjoined
        with the child's valid condition and they join this ILA's
        instruction list.
        """
        for child in self.children:
            child.flatten_hierarchy()

            for table, child_table in ((self.inputs, child.inputs), (self.states, child.states)):
                for name, var in child_table.items():
                    existing = self.inputs.get(name) or self.states.get(name)
                    if existing is not None and existing != var:
                        raise ValueError(f"Conflicting definitions of {name} in {self.name}/{child.name}")
                    table.setdefault(name, var)
            self.funcs.update(child.funcs)

            for instr in child.instrs:
                if any(i.name == instr.name for i in self.instrs):
                    raise ValueError(f"Instruction {instr.name} clashes while flattening {child.name}")
                instr.set_decode(_guarded(child.valid, instr._decode))
                instr.host = self
                self.instrs.append(instr)

            child.instrs = []
            child.parent = None
        self.children = []

    def walk(self):
        """Yield this ILA and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


def _guarded(valid: Callable, decode: Optional[Callable]) -> Callable:
    if decode is None:
        return valid
    return lambda frame: z3.And(valid(frame), decode(frame))
