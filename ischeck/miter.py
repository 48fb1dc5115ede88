"""
Miter Builder: the cross-model proof obligation.

    same_start & same_store & !same_end

same_start equates the tracked memories at step 0, same_store equates the
data of every correlated store across the two models, and same_end equates
the final content of every stored address. The models are equivalent on the
given sequences iff the obligation is unsatisfiable.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Sequence

import z3

from .context import SideContext
from .errors import InvariantViolation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MiterSpec:
    """Names of the tracked memories and the store data inputs."""
    mem_a: str
    mem_b: str
    lanes_a: Sequence[str]  # one model-A store fans out to these data inputs
    data_b: str

    @property
    def fanout(self) -> int:
        return len(self.lanes_a)


@dataclass
class Miter:
    same_start: z3.BoolRef
    same_store: z3.BoolRef
    same_end: z3.BoolRef

    @property
    def obligation(self) -> z3.BoolRef:
        return z3.And(self.same_start, self.same_store, z3.Not(self.same_end))


def check_store_index(side_a: SideContext, side_b: SideContext, fanout: int) -> None:
    """Raise InvariantViolation unless both StoreIndexes are usable."""
    if not side_a.store_index:
        raise InvariantViolation(f"No store recorded for {side_a.label}")
    if not side_b.store_index:
        raise InvariantViolation(f"No store recorded for {side_b.label}")
    if len(side_a.store_index) * fanout != len(side_b.store_index):
        raise InvariantViolation(
            f"Store count mismatch: {len(side_a.store_index)} {side_a.label} stores x "
            f"{fanout} != {len(side_b.store_index)} {side_b.label} stores"
        )


def mapped_address(addr_map: Dict[int, int], addr: int) -> int:
    try:
        return addr_map[addr]
    except KeyError:
        raise InvariantViolation(f"Address {addr:#x} missing from address mapping") from None


def build_miter(side_a: SideContext, side_b: SideContext,
                addr_map: Dict[int, int], spec: MiterSpec) -> Miter:
    """Build the miter over two unrolled sides."""
    logger.info("Setting memory relation (miter)")
    check_store_index(side_a, side_b, spec.fanout)

    unroller_a = side_a.unroller
    unroller_b = side_b.unroller

    # start
    start_a = unroller_a.value_at(spec.mem_a, 0)
    start_b = unroller_b.value_at(spec.mem_b, 0)
    if not start_a.sort().eq(start_b.sort()):
        raise InvariantViolation(f"{spec.mem_a} and {spec.mem_b} have different sorts")
    same_start = start_a == start_b
    logger.debug(f"{spec.mem_a} @ 0 == {spec.mem_b} @ 0")

    # store
    store_eqs = []
    for addr_a, step_a in sorted(side_a.store_index.items()):
        for i, lane in enumerate(spec.lanes_a):
            addr_b = mapped_address(addr_map, addr_a + i)
            step_b = side_b.store_index.get(addr_b)
            if step_b is None:
                raise InvariantViolation(f"No {side_b.label} store to {addr_b:#x} (mapped from {addr_a + i:#x})")
            data_a = unroller_a.value_at(lane, step_a)
            data_b = unroller_b.value_at(spec.data_b, step_b)
            store_eqs.append(data_a == data_b)
            logger.debug(f"{lane} @ {step_a} == {spec.data_b} @ {step_b}")

    # end
    end_eqs = []
    for addr_a in sorted(side_a.store_index):
        for i in range(spec.fanout):
            addr_b = mapped_address(addr_map, addr_a + i)
            end_a = unroller_a.load_at(spec.mem_a, addr_a + i, side_a.length)
            end_b = unroller_b.load_at(spec.mem_b, addr_b, side_b.length)
            end_eqs.append(end_a == end_b)
            logger.debug(f"{spec.mem_a}[{addr_a + i:#x}] @ {side_a.length} == "
                         f"{spec.mem_b}[{addr_b:#x}] @ {side_b.length}")

    return Miter(
        same_start=same_start,
        same_store=z3.And(*store_eqs),
        same_end=z3.And(*end_eqs),
    )
