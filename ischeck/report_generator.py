#!/usr/bin/env python3
"""
Report Generator: diagnostic dumps for counterexamples

When the miter is satisfiable, writes per-model step dumps of the tracked
memory and a JSON summary of the check.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Union

Value = Union[int, str]


def format_value(value: Value) -> str:
    if isinstance(value, int):
        return f"{value:#04x}"
    return str(value)


class ReportGenerator:
    """Writes counterexample dumps and a JSON summary."""

    def __init__(self, output_dir: Path):
        """
        Initialize report generator.

        Args:
            output_dir: Directory for dump files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def write_dump(self, label: str, steps: List[Dict[int, Value]], final_mem: Value) -> Path:
        """
        Write the evaluated tracked addresses of one model at every step.

        Args:
            label: Model name, used for the file name (<label>_out.txt)
            steps: For each step index, address -> evaluated value
            final_mem: Evaluated memory at the last step

        Returns:
            Path of the dump file
        """
        out_file = self.output_dir / f"{label}_out.txt"
        lines = []
        for i, values in enumerate(steps):
            cells = " ".join(f"{addr:#x}={format_value(v)}" for addr, v in sorted(values.items()))
            lines.append(f"{i}: {cells}")
        lines.append("complete mem:")
        lines.append(format_value(final_mem))

        out_file.write_text("\n".join(lines) + "\n")
        return out_file

    def write_summary(self, result, details: Dict) -> Path:
        """Write check_report.json for a finished check.

        unconstrained_steps lists, per model, the steps the proof left free;
        a non-empty entry qualifies an equivalent status.
        """
        out_file = self.output_dir / "check_report.json"
        report = {
            "metadata": {
                "timestamp": datetime.now().isoformat(),
            },
            "status": result.status.value,
            "runtime_sec": result.runtime_sec,
            "dump_files": [str(p) for p in result.dump_files],
            "unconstrained_steps": result.unconstrained_steps,
            "details": details,
        }
        with open(out_file, 'w') as f:
            json.dump(report, f, indent=2)
        return out_file
