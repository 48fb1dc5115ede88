#!/usr/bin/env python3
"""
Utility functions for regression tests.
"""

import json
from pathlib import Path
from typing import Dict, List


def write_json(path: Path, data) -> Path:
    path.write_text(json.dumps(data))
    return path


def flex_record(addr: int, data: str = "0x0", is_wr: int = 1, is_rd: int = 0) -> Dict[str, str]:
    return {"is_wr": hex(is_wr), "is_rd": hex(is_rd), "addr": hex(addr), "data": data}


def relay_store_record(addr: int, data: int = 0) -> Dict[str, str]:
    return {
        "data_in": hex(data), "data_in_x": "0x0", "data_in_y": hex(addr),
        "func_id": "0x2", "func_run": "0x1",
        "pool_size_x": "0x0", "pool_size_y": "0x0", "stride_x": "0x0", "stride_y": "0x0",
    }


def relay_maxpool_record(src: int, dst: int, stride: int = 1) -> Dict[str, str]:
    return {
        "data_in": "0x0", "data_in_x": hex(src), "data_in_y": hex(dst),
        "func_id": "0x1", "func_run": "0x1",
        "pool_size_x": "0x2", "pool_size_y": "0x1", "stride_x": hex(stride), "stride_y": "0x1",
    }


def command_file(path: Path, records: List[Dict]) -> Path:
    """Write records as a command file."""
    return write_json(path, {"command inputs": records})


def identity_mapping(path: Path, base: int, count: int) -> Path:
    """Write an address mapping of count identical addresses from base."""
    return write_json(path, {"address mapping": [
        {"flex_addr": hex(base + i), "relay_addr": hex(base + i)} for i in range(count)
    ]})


def read_dump(path: Path) -> Dict[int, Dict[int, str]]:
    """
    Parse a counterexample dump into step -> address -> value text.

    Args:
        path: <label>_out.txt written by ReportGenerator

    Returns:
        Dictionary keyed by step index; the trailing complete-memory
        section is ignored
    """
    steps = {}
    for line in path.read_text().splitlines():
        if line == "complete mem:":
            break
        step, _, cells = line.partition(": ")
        steps[int(step)] = {
            int(addr, 16): value
            for addr, value in (cell.split("=") for cell in cells.split())
        }
    return steps
