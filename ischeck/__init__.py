"""
ischeck: bounded equivalence checking of instruction-level abstractions

Proves or refutes that two ILA models of an accelerator leave a tracked
memory region in the same state after running fixed instruction sequences
driven by command traces.

Components:
- ila / model_adapter: ILA modelling layer and name-based lookup
- sequence: resolve instruction names into an instruction sequence
- unroller: bounded symbolic unrolling into z3 formulas
- commands: command, trace and address-mapping ingestion
- filters: per-design translation of commands into input constraints
- miter: same start & same stores & different end
- axioms: relating uninterpreted functions shared by both models
- solver: in-process z3 and external SMT-LIB2 solver adapters
- checker / flex_relay: orchestration and the FlexASR/Relay instantiation
"""

__version__ = "0.1.0"

from .axioms import SharedFunction, UninterpPolicy
from .checker import CheckerState, CheckResult, CheckStatus, IsChecker
from .errors import (
    ConfigurationError,
    InvariantViolation,
    IsCheckError,
    ParseError,
    UnsupportedFormatError,
)
from .flex_relay import FlexRelayChecker
from .solver import SolverBackend, SolverResult

__all__ = [
    "SharedFunction",
    "UninterpPolicy",
    "CheckerState",
    "CheckResult",
    "CheckStatus",
    "IsChecker",
    "ConfigurationError",
    "InvariantViolation",
    "IsCheckError",
    "ParseError",
    "UnsupportedFormatError",
    "FlexRelayChecker",
    "SolverBackend",
    "SolverResult",
]
