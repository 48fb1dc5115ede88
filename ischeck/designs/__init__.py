"""
Reference accelerator models used by the flex/relay checker.
"""

from .flex import build_flex_ila
from .relay import build_relay_ila

__all__ = ["build_flex_ila", "build_relay_ila"]
