#!/usr/bin/env python3
"""
Configuration file loader and validator for equivalence checks.

Loads YAML run configurations naming the instruction sequences, command
files and address mapping of a check, plus solver options. Handles
environment variable expansion and resolves relative paths against the
config file's directory.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .axioms import UninterpPolicy
from .solver import SolverBackend


@dataclass
class SolverConfig:
    """Solver-specific configuration."""
    backend: SolverBackend = SolverBackend.Z3
    command: List[str] = field(default_factory=lambda: ["z3", "-smt2"])
    timeout_sec: Optional[int] = None


@dataclass
class CheckerConfig:
    """Complete check configuration."""
    flex_instr_seq: Path
    relay_instr_seq: Path
    flex_cmd: Path
    relay_cmd: Path
    address_mapping: Path
    solver: SolverConfig
    uninterpreted: UninterpPolicy = UninterpPolicy.IDENTICAL
    dump_dir: Optional[Path] = None


class ConfigLoader:
    """Loads and validates YAML configuration files."""

    @staticmethod
    def expand_env_vars(value: str) -> str:
        """Expand environment variables in a string.

        Supports $VAR and ${VAR} syntax.
        """
        if not isinstance(value, str):
            return value

        def replacer(match):
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))

        value = re.sub(r'\$\{([^}]+)\}', replacer, value)
        value = re.sub(r'\$([A-Za-z_][A-Za-z0-9_]*)', replacer, value)
        return value

    @staticmethod
    def resolve_path(value: str, base_dir: Path) -> Path:
        """Expand env vars and ~, and anchor relative paths at base_dir."""
        path = Path(os.path.expanduser(ConfigLoader.expand_env_vars(str(value))))
        if not path.is_absolute():
            path = base_dir / path
        return path

    @staticmethod
    def validate_required_fields(config: Dict[str, Any], required: List[str], context: str = "config"):
        """Validate that required fields are present."""
        if not isinstance(config, dict):
            raise ValueError(f"Expected a mapping for {context}")
        missing = [field for field in required if field not in config]
        if missing:
            raise ValueError(f"Missing required fields in {context}: {', '.join(missing)}")

    @staticmethod
    def _parse_enum(enum_cls, value, context: str):
        try:
            return enum_cls(value)
        except ValueError:
            choices = ", ".join(e.value for e in enum_cls)
            raise ValueError(f"Invalid {context}: {value!r} (expected one of {choices})") from None

    @staticmethod
    def load_config(config_path: str) -> CheckerConfig:
        """Load and validate a configuration file.

        Args:
            config_path: Path to YAML config file

        Returns:
            CheckerConfig object

        Raises:
            FileNotFoundError: If config file not found
            ValueError: If config is invalid
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)

        if not data:
            raise ValueError(f"Empty config file: {config_path}")

        ConfigLoader.validate_required_fields(
            data,
            ['instr_seq', 'commands', 'address_mapping']
        )
        ConfigLoader.validate_required_fields(data['instr_seq'], ['flex', 'relay'], context="instr_seq")
        ConfigLoader.validate_required_fields(data['commands'], ['flex', 'relay'], context="commands")

        base_dir = config_path.parent

        def resolve(value):
            return ConfigLoader.resolve_path(value, base_dir)

        solver_data = data.get('solver') or {}
        solver = SolverConfig(
            backend=ConfigLoader._parse_enum(SolverBackend, solver_data.get('backend', 'z3'), "solver backend"),
            command=list(solver_data.get('command', ["z3", "-smt2"])),
            timeout_sec=solver_data.get('timeout_sec'),
        )

        dump_dir = data.get('dump_dir')

        return CheckerConfig(
            flex_instr_seq=resolve(data['instr_seq']['flex']),
            relay_instr_seq=resolve(data['instr_seq']['relay']),
            flex_cmd=resolve(data['commands']['flex']),
            relay_cmd=resolve(data['commands']['relay']),
            address_mapping=resolve(data['address_mapping']),
            solver=solver,
            uninterpreted=ConfigLoader._parse_enum(
                UninterpPolicy, data.get('uninterpreted', 'identical'), "uninterpreted policy"
            ),
            dump_dir=resolve(dump_dir) if dump_dir else None,
        )
