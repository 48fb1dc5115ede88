"""
Read-only lookup view over an ILA model.
"""

from typing import List, Optional, Union

from .ila import Ila, Instr, UninterpFunc, Var


class ModelAdapter:
    """Name-based access to a model's inputs, states and instructions.

    The model is owned by the caller and must outlive the adapter.
    """

    def __init__(self, ila: Ila):
        self._ila = ila

    @property
    def name(self) -> str:
        return self._ila.name

    def input(self, name: str) -> Var:
        try:
            return self._ila.inputs[name]
        except KeyError:
            raise KeyError(f"{self.name} has no input {name}") from None

    def state(self, name: str) -> Var:
        try:
            return self._ila.states[name]
        except KeyError:
            raise KeyError(f"{self.name} has no state {name}") from None

    def var(self, name: str) -> Var:
        """Input or state by name."""
        if name in self._ila.inputs:
            return self._ila.inputs[name]
        return self.state(name)

    def instr(self, key: Union[int, str]) -> Optional[Instr]:
        """Instruction by top-level index, or by name anywhere in the hierarchy."""
        if isinstance(key, int):
            return self._ila.instrs[key]
        for ila in self._ila.walk():
            for instr in ila.instrs:
                if instr.name == key:
                    return instr
        return None

    def instr_num(self) -> int:
        return len(self._ila.instrs)

    def instrs(self) -> List[Instr]:
        return list(self._ila.instrs)

    def inputs(self) -> List[Var]:
        return list(self._ila.inputs.values())

    def states(self) -> List[Var]:
        return list(self._ila.states.values())

    def funcs(self) -> List[UninterpFunc]:
        """Uninterpreted functions of the model and its children."""
        return [func for ila in self._ila.walk() for func in ila.funcs.values()]

    def func(self, name: str) -> UninterpFunc:
        for ila in self._ila.walk():
            if name in ila.funcs:
                return ila.funcs[name]
        raise KeyError(f"{self.name} has no function {name}")

    def flatten_hierarchy(self) -> None:
        self._ila.flatten_hierarchy()
