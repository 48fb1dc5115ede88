"""
Error taxonomy for the equivalence checker.

Configuration and invariant errors halt a run before any solver time is
spent. Parse errors are recovered per command by the ingestion code.
"""


class IsCheckError(Exception):
    """Base class for checker errors."""


class ConfigurationError(IsCheckError):
    """Checker was set up incorrectly (empty sequence, unknown instruction, ...)."""


class UnsupportedFormatError(ConfigurationError):
    """Instruction sequence or command source has an unsupported format."""


class ParseError(IsCheckError):
    """A single command record could not be parsed."""


class InvariantViolation(IsCheckError):
    """Command sequence is incompatible with the instruction sequence or mapping."""
