"""
Uninterpreted-Function Axiomatizer.

Both models call functions that are only given abstractly (e.g. a saturating
maximum). Without a relation between the two symbols the solver may pick
different interpretations and report spurious differences.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import z3

from .errors import ConfigurationError
from .ila import UninterpFunc
from .unroller import PathUnroller

logger = logging.getLogger(__name__)


class UninterpPolicy(Enum):
    """How shared uninterpreted functions are related."""
    IDENTICAL = "identical"  # both models use one function symbol
    AXIOMS = "axioms"        # quantified equivalence, commutativity, selection
    NONE = "none"            # unrelated


@dataclass(frozen=True)
class SharedFunction:
    func_a: UninterpFunc
    func_b: UninterpFunc

    def check_sorts(self) -> None:
        if (self.func_a.arg_widths != self.func_b.arg_widths
                or self.func_a.out_width != self.func_b.out_width):
            raise ConfigurationError(
                f"{self.func_a.name} and {self.func_b.name} have different signatures"
            )


def bind_shared_functions(pairs: Sequence[SharedFunction], unroller_a: PathUnroller,
                          unroller_b: PathUnroller, policy: UninterpPolicy) -> None:
    """Make model B use model A's symbols. Must run before unrolling."""
    for pair in pairs:
        pair.check_sorts()
    if policy != UninterpPolicy.IDENTICAL:
        return
    for pair in pairs:
        unroller_b.alias_function(pair.func_b, unroller_a.func_decl(pair.func_a))
        logger.debug(f"{unroller_b.prefix}.{pair.func_b.name} := {unroller_a.prefix}.{pair.func_a.name}")


def uninterp_axioms(pairs: Sequence[SharedFunction], unroller_a: PathUnroller,
                    unroller_b: PathUnroller, policy: UninterpPolicy) -> z3.BoolRef:
    """Axioms relating the shared function symbols of the two models."""
    if policy != UninterpPolicy.AXIOMS:
        return z3.BoolVal(True)

    axioms = []
    for pair in pairs:
        pair.check_sorts()
        fa = unroller_a.func_decl(pair.func_a)
        fb = unroller_b.func_decl(pair.func_b)
        args = [z3.BitVec(f"uninterp_var_{i}", w) for i, w in enumerate(pair.func_a.arg_widths)]

        axioms.append(z3.ForAll(args, fa(*args) == fb(*args)))

        if pair.func_a.arity == 2 and pair.func_a.out_width == pair.func_a.arg_widths[0] == pair.func_a.arg_widths[1]:
            a, b = args
            axioms.append(z3.ForAll(args, fa(a, b) == fb(b, a)))
            axioms.append(z3.ForAll(args, z3.Or(fa(a, b) == a, fa(a, b) == b)))

        logger.info(f"Axiomatized {pair.func_a.name} ~ {pair.func_b.name}")

    return z3.And(*axioms) if axioms else z3.BoolVal(True)
