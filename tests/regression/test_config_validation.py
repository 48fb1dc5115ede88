#!/usr/bin/env python3
"""
Regression tests for configuration file validation and the CLI.

Tests ensure that config loading properly validates YAML files and provides
helpful error messages for common mistakes.
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent.parent
FIXTURES_DIR = Path(__file__).parent / "fixtures"

sys.path.insert(0, str(PROJECT_ROOT))

from ischeck.axioms import UninterpPolicy
from ischeck.config_loader import ConfigLoader
from ischeck.designs import relay
from ischeck.flex_relay import main
from ischeck.solver import SolverBackend

from utils import command_file, relay_store_record, write_json


class TestConfigLoading:
    """Test basic config file loading."""

    def test_load_main_config(self):
        """Test loading the shipped flex/relay config."""
        config = ConfigLoader.load_config(str(PROJECT_ROOT / "configs" / "flex_relay.yaml"))

        assert config.flex_instr_seq.exists()
        assert config.relay_instr_seq.exists()
        assert config.flex_cmd.exists()
        assert config.relay_cmd.exists()
        assert config.address_mapping.exists()
        assert config.solver.backend == SolverBackend.Z3
        assert config.solver.timeout_sec is None
        assert config.uninterpreted == UninterpPolicy.IDENTICAL
        assert config.dump_dir is None

    def test_load_fixture_config(self, monkeypatch):
        """Test env var expansion and relative paths."""
        monkeypatch.setenv("ISCHECK_FIXTURES", str(FIXTURES_DIR))

        config = ConfigLoader.load_config(str(FIXTURES_DIR / "check_store.yaml"))

        assert config.address_mapping == FIXTURES_DIR / "addr_mapping.json"
        assert config.flex_instr_seq == FIXTURES_DIR / "flex_store_seq.json"
        assert config.solver.backend == SolverBackend.SMTLIB
        assert config.solver.command == ["z3", "-smt2"]
        assert config.solver.timeout_sec == 60
        assert config.uninterpreted == UninterpPolicy.AXIOMS
        assert config.dump_dir == FIXTURES_DIR / "out"

    def test_config_not_found(self):
        """Test error handling for missing config file."""
        with pytest.raises(FileNotFoundError) as exc_info:
            ConfigLoader.load_config("nonexistent.yaml")

        assert "not found" in str(exc_info.value).lower()

    def test_invalid_yaml_syntax(self, tmp_path):
        """Test error handling for invalid YAML syntax."""
        bad_yaml = tmp_path / "bad.yaml"
        bad_yaml.write_text("instr_seq: [unclosed list")

        with pytest.raises(Exception):  # YAML parsing error
            ConfigLoader.load_config(str(bad_yaml))

    def test_empty_config(self, tmp_path):
        empty = tmp_path / "empty.yaml"
        empty.write_text("")

        with pytest.raises(ValueError):
            ConfigLoader.load_config(str(empty))


class TestConfigValidation:
    """Test config validation logic."""

    def test_missing_required_fields(self):
        """Test error handling for missing required fields."""
        with pytest.raises(ValueError) as exc_info:
            ConfigLoader.load_config(str(FIXTURES_DIR / "check_invalid.yaml"))

        error_msg = str(exc_info.value).lower()
        assert "missing required" in error_msg
        assert "address_mapping" in error_msg

    def test_missing_relay_sequence(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "instr_seq:\n  flex: a.json\n"
            "commands:\n  flex: b.json\n  relay: c.json\n"
            "address_mapping: d.json\n"
        )

        with pytest.raises(ValueError) as exc_info:
            ConfigLoader.load_config(str(config_file))

        assert "instr_seq" in str(exc_info.value)
        assert "relay" in str(exc_info.value)

    @pytest.mark.parametrize("section,value", [
        ("solver:\n  backend: cvc5\n", "cvc5"),
        ("uninterpreted: sometimes\n", "sometimes"),
    ])
    def test_invalid_choice(self, tmp_path, section, value):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "instr_seq:\n  flex: a.json\n  relay: b.json\n"
            "commands:\n  flex: c.json\n  relay: d.json\n"
            "address_mapping: e.json\n" + section
        )

        with pytest.raises(ValueError) as exc_info:
            ConfigLoader.load_config(str(config_file))

        assert value in str(exc_info.value)


class TestEnvironmentVariables:
    """Test environment variable expansion."""

    def test_expand_env_vars(self, monkeypatch):
        monkeypatch.setenv("ISCHECK_TEST_VAR", "/test/path")

        assert ConfigLoader.expand_env_vars("$ISCHECK_TEST_VAR/file.json") == "/test/path/file.json"
        assert ConfigLoader.expand_env_vars("${ISCHECK_TEST_VAR}/file.json") == "/test/path/file.json"

    def test_undefined_var_kept(self, monkeypatch):
        monkeypatch.delenv("ISCHECK_UNDEFINED_VAR", raising=False)

        assert ConfigLoader.expand_env_vars("$ISCHECK_UNDEFINED_VAR/x") == "$ISCHECK_UNDEFINED_VAR/x"

    def test_resolve_path(self, tmp_path):
        assert ConfigLoader.resolve_path("a/b.json", tmp_path) == tmp_path / "a" / "b.json"
        assert ConfigLoader.resolve_path("/abs/b.json", tmp_path) == Path("/abs/b.json")


class TestCommandLine:
    """Test the ischeck entry point."""

    def run_main(self, monkeypatch, *args):
        monkeypatch.setattr(sys, "argv", ["ischeck", *args])
        return main()

    def test_equivalent(self, monkeypatch, capsys):
        rc = self.run_main(monkeypatch, str(PROJECT_ROOT / "configs" / "flex_relay.yaml"))

        assert rc == 0
        assert "EQUIVALENT" in capsys.readouterr().out

    def test_missing_config(self, monkeypatch, capsys):
        rc = self.run_main(monkeypatch, "nonexistent.yaml")

        assert rc == 1
        assert "ERROR" in capsys.readouterr().out

    def test_missing_sequence_file(self, monkeypatch, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "instr_seq:\n  flex: missing.json\n  relay: missing.json\n"
            "commands:\n  flex: c.json\n  relay: d.json\n"
            "address_mapping: e.json\n"
        )

        assert self.run_main(monkeypatch, str(config_file)) == 2

    def test_equivalent_with_unconstrained_steps(self, monkeypatch, capsys, tmp_path):
        lstm = relay_store_record(0x0)
        lstm["func_id"] = hex(relay.F_LSTM_ID)
        write_json(tmp_path / "relay_seq.json", [relay.F_TENSOR_STORE] * 16 + [relay.F_LSTM])
        command_file(tmp_path / "relay_cmd.json", [relay_store_record(0x10 + i, i) for i in range(16)] + [lstm])

        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            f"instr_seq:\n  flex: {FIXTURES_DIR / 'flex_store_seq.json'}\n  relay: relay_seq.json\n"
            f"commands:\n  flex: {FIXTURES_DIR / 'flex_store_cmd.json'}\n  relay: relay_cmd.json\n"
            f"address_mapping: {FIXTURES_DIR / 'addr_mapping.json'}\n"
        )

        rc = self.run_main(monkeypatch, str(config_file))

        assert rc == 3
        out = capsys.readouterr().out
        assert "Unconstrained steps: relay [16]" in out
        assert "unconstrained steps are irrelevant" in out
