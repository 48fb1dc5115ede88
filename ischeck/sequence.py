"""
Sequence Loader: resolve instruction names into instruction handles.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, List, Union

import yaml

from .errors import ConfigurationError, UnsupportedFormatError
from .ila import Instr
from .model_adapter import ModelAdapter

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".json", ".yaml", ".yml")


def read_instr_names(path: Union[str, Path]) -> List[str]:
    """Read an ordered list of instruction names from a JSON or YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        UnsupportedFormatError: If the suffix is not JSON/YAML or the
            document is not a list of names
    """
    path = Path(path)
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise UnsupportedFormatError(
            f"Unsupported instruction sequence format: {path.name} "
            f"(expected one of {', '.join(SUPPORTED_SUFFIXES)})"
        )
    if not path.is_file():
        raise FileNotFoundError(f"Instruction sequence not found: {path}")

    with open(path, 'r') as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    if not isinstance(data, list) or not all(isinstance(n, str) for n in data):
        raise UnsupportedFormatError(f"{path} is not a list of instruction names")
    return data


def load_instr_seq(model: ModelAdapter, names: Iterable[str], dst: List[Instr]) -> None:
    """Resolve names against model and append the handles to dst.

    Entries are appended one at a time, so on failure dst holds the
    resolved prefix.
    """
    if dst:
        logger.warning(f"Reading instr. seq. of {model.name} into non-empty container")

    for name in names:
        instr = model.instr(name)
        if instr is None:
            raise ConfigurationError(f"Cannot find instruction {name} in {model.name}")
        dst.append(instr)
