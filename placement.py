"""
Placement strategies - First-Fit and Best-Fit over a pool's free blocks
A block of size S may only start at a multiple of S.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence

from errors import InvalidStrategy
from models import FreeBlock


@dataclass(frozen=True)
class Placement:
    block: FreeBlock
    start: int


def aligned_start(address: int, size: int) -> int:
    """Round address up to the next multiple of size"""
    return -(-address // size) * size


def viable_placements(blocks: Sequence[FreeBlock], size: int) -> Iterator[Placement]:
    """Yield, in block order, the lowest aligned start inside each block that fits"""
    for block in blocks:
        start = aligned_start(block.start, size)
        if start + size <= block.end:
            yield Placement(block, start)


class PlacementStrategy:
    """
    A strategy is a preference order over free blocks; the placement is the
    first block in that order with room for an aligned block of `size`.
    """

    name = ""

    def order(self, blocks: Sequence[FreeBlock]) -> List[FreeBlock]:
        raise NotImplementedError

    def select(self, blocks: Sequence[FreeBlock], size: int) -> Optional[Placement]:
        return next(viable_placements(self.order(blocks), size), None)


class FirstFit(PlacementStrategy):
    name = "first-fit"

    def order(self, blocks):
        return sorted(blocks, key=lambda b: b.start)


class BestFit(PlacementStrategy):
    """Smallest viable free block, lowest start on ties"""

    name = "best-fit"

    def order(self, blocks):
        return sorted(blocks, key=lambda b: (b.size, b.start))


_STRATEGIES: Dict[str, PlacementStrategy] = {}


def register_strategy(strategy: PlacementStrategy) -> None:
    _STRATEGIES[strategy.name] = strategy


def get_strategy(name: str) -> PlacementStrategy:
    try:
        return _STRATEGIES[name]
    except KeyError:
        raise InvalidStrategy(
            f"Unknown placement strategy '{name}' "
            f"(expected one of: {', '.join(available_strategies())})"
        ) from None


def available_strategies() -> List[str]:
    return sorted(_STRATEGIES)


register_strategy(FirstFit())
register_strategy(BestFit())
