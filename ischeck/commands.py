"""
Command and address-mapping ingestion.

Command files hold one record per top-level instruction invocation:

    {"command inputs": [{"is_wr": "0x1", "is_rd": "0x0", "addr": "0x10",
                         "data": "0x...ab"}, ...]}

Address mapping files pair model-A and model-B byte addresses:

    {"address mapping": [{"flex_addr": "0x10", "relay_addr": "0x10"}, ...]}

All string values are hexadecimal with an optional "0x" prefix.
"""

import json
import logging
from pathlib import Path
from typing import Callable, Dict, List, Sequence, Union

import yaml

from .errors import ConfigurationError, ParseError

logger = logging.getLogger(__name__)

Command = Dict[str, int]

FLEX_CMD_FIELDS = ("is_rd", "is_wr", "addr")
RELAY_CMD_FIELDS = (
    "data_in", "data_in_x", "data_in_y", "func_id", "func_run",
    "pool_size_x", "pool_size_y", "stride_x", "stride_y",
)

NUM_LANES = 16


def strip_hex_prefix(value: str) -> str:
    """Remove a leading "0x"; strings of length <= 2 are returned unchanged."""
    while len(value) > 2 and value.startswith("0x"):
        value = value[2:]
    return value


def parse_hex(value: Union[str, int]) -> int:
    if isinstance(value, bool):
        raise ParseError(f"Boolean is not a hex value: {value!r}")
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise ParseError(f"Expected hex string, got {type(value).__name__}")
    try:
        return int(strip_hex_prefix(value.strip()), 16)
    except ValueError:
        raise ParseError(f"Invalid hex value: {value!r}") from None


def split_byte_lanes(payload: str, lanes: int = NUM_LANES) -> List[int]:
    """Split a hex payload into byte lanes.

    The payload is written most-significant byte first and left-padded with
    zeros to the full width. Lane i holds byte i counted from the least
    significant end.
    """
    digits = strip_hex_prefix(payload)
    width = 2 * lanes
    if len(digits) > width:
        raise ParseError(f"Payload wider than {width} hex digits: {payload!r}")
    digits = digits.rjust(width, "0")

    values = []
    for i in range(lanes):
        pos = width - 2 - 2 * i
        try:
            values.append(int(digits[pos:pos + 2], 16))
        except ValueError:
            raise ParseError(f"Invalid hex payload: {payload!r}") from None
    return values


def join_byte_lanes(values: Sequence[int]) -> str:
    """Reassemble lanes into a hex payload, most-significant lane first."""
    return "".join(f"{v:02x}" for v in reversed(values))


def parse_flex_command(record: Dict, lane_names: Sequence[str]) -> Command:
    """Parse one flex command; the data payload fans out to lane_names."""
    cmd = {}
    try:
        for field in FLEX_CMD_FIELDS:
            cmd[field] = parse_hex(record[field])
        data = record["data"]
    except KeyError as e:
        raise ParseError(f"Missing field {e}") from None

    if isinstance(data, int):
        data = f"{data:x}"
    elif not isinstance(data, str):
        raise ParseError(f"Expected hex string for data, got {type(data).__name__}")

    for lane, value in zip(lane_names, split_byte_lanes(data, len(lane_names))):
        cmd[lane] = value
    return cmd


def parse_relay_command(record: Dict) -> Command:
    cmd = {}
    try:
        for field in RELAY_CMD_FIELDS:
            cmd[field] = parse_hex(record[field])
    except KeyError as e:
        raise ParseError(f"Missing field {e}") from None
    return cmd


def _read_document(path: Path):
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, 'r') as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def load_commands(path: Union[str, Path], parse: Callable[[Dict], Command]) -> List[Command]:
    """Load a command sequence, skipping records that fail to parse."""
    path = Path(path)
    data = _read_document(path)

    if not isinstance(data, dict) or "command inputs" not in data:
        raise ConfigurationError(f"{path} has no 'command inputs' list")

    commands = []
    for idx, record in enumerate(data["command inputs"]):
        try:
            if not isinstance(record, dict):
                raise ParseError(f"Expected a mapping, got {type(record).__name__}")
            commands.append(parse(record))
        except ParseError as e:
            logger.error(f"Fail parsing command {idx} {record}: {e}")

    logger.info(f"Loaded {len(commands)} commands from {path.name}")
    return commands


def load_addr_mapping(path: Union[str, Path],
                      src_key: str = "flex_addr",
                      dst_key: str = "relay_addr") -> Dict[int, int]:
    """Load a model-A to model-B byte address mapping."""
    path = Path(path)
    data = _read_document(path)

    if not isinstance(data, dict) or "address mapping" not in data:
        raise ConfigurationError(f"{path} has no 'address mapping' list")

    mapping = {}
    for pair in data["address mapping"]:
        try:
            src = parse_hex(pair[src_key])
            dst = parse_hex(pair[dst_key])
        except (KeyError, TypeError, ParseError) as e:
            raise ConfigurationError(f"Bad address mapping entry {pair}: {e}") from None
        if src in mapping:
            raise ConfigurationError(f"Duplicate mapping for address {src:#x}")
        mapping[src] = dst

    logger.info(f"Loaded {len(mapping)} address pairs from {path.name}")
    return mapping
