"""
Subnet Allocator - greedy First-Fit/Best-Fit with aligned placement
Handles: pools -> request sizing -> placement -> report

Largest-first greedy placement approximates bin packing, which is NP-hard in
general. Plans are deterministic but not claimed to be optimal.
"""

import bisect
import logging
from itertools import islice
from typing import Iterable, Iterator, List, Optional, Sequence, Set, Tuple, Union

from cidr import IPV4_WIDTH, Cidr, address_width, next_power_of_two, parse_cidr
from errors import (
    FailureReason,
    InternalConsistencyError,
    InvalidRequestSize,
    InvalidStrategy,
    OverlappingPools,
    PlanError,
    RequestError,
    WidthMismatch,
)
from freespace import free_blocks, merge_ranges
from metrics import build_report
from models import (
    Allocation,
    AllocationRequest,
    Candidate,
    FreeBlock,
    NextAvailableResult,
    PlanResult,
    Pool,
    RequestOutcome,
    RequestState,
    SubnetRequest,
)
from placement import Placement, PlacementStrategy, aligned_start, get_strategy

logger = logging.getLogger(__name__)

PRESERVE_ORDER = "preserve-order"
PLAN_STRATEGIES = (PRESERVE_ORDER, "first-fit", "best-fit")


class PoolAllocator:
    """Occupied space of one pool during a single planning run"""

    def __init__(self, pool: Pool):
        self.pool = pool
        self.reserved: List[Tuple[int, int]] = []  # merged (start, end)
        self.allocations: List[Allocation] = []

    def __repr__(self):
        return f"<PoolAllocator {self.pool.cidr}: {len(self.allocations)} allocations>"

    @property
    def allocated_space(self) -> int:
        return sum(a.size for a in self.allocations)

    @property
    def reserved_space(self) -> int:
        return sum(end - start for start, end in self.reserved)

    def reserve(self, start: int, size: int) -> int:
        """Mark a pre-existing range as used; returns how much fell inside the pool"""
        lo = max(start, self.pool.base_address)
        hi = min(start + size, self.pool.end)
        if lo >= hi:
            return 0
        self.reserved = merge_ranges(self.reserved + [(lo, hi)])
        return hi - lo

    def occupied(self) -> List[Tuple[int, int]]:
        """(start, size) of every reserved or allocated range"""
        ranges = [(start, end - start) for start, end in self.reserved]
        ranges.extend((a.start, a.size) for a in self.allocations)
        return ranges

    def free_blocks(self) -> List[FreeBlock]:
        return free_blocks(self.pool.base_address, self.pool.size, self.occupied())

    def is_available(self, cidr: Union[str, Cidr]) -> bool:
        """Check if a CIDR is inside the pool and not overlapping used space"""
        if isinstance(cidr, str):
            cidr = parse_cidr(cidr)
        if not self.pool.contains(cidr):
            return False

        for start, size in self.occupied():
            # Check for any overlap
            if cidr.network < start + size and start < cidr.end:
                return False
        return True

    def find_fit(self, size: int, strategy: PlacementStrategy) -> Optional[Placement]:
        return strategy.select(self.free_blocks(), size)

    def commit(self, request: AllocationRequest, start: int) -> Allocation:
        allocation = Allocation(
            request_id=request.id,
            pool_id=self.pool.id,
            start=start,
            size=request.requested_size,
            width=self.pool.width,
        )
        if start % allocation.size or not self.is_available(
            Cidr(start, allocation.prefix_length, allocation.width)
        ):
            raise InternalConsistencyError(
                f"Cannot commit {allocation.cidr} into {self.pool.cidr}"
            )
        keys = [(a.start, a.size) for a in self.allocations]
        index = bisect.bisect(keys, (start, allocation.size))
        self.allocations.insert(index, allocation)
        return allocation


def load_pools(pools: Iterable[Union[str, Pool]]) -> List[Pool]:
    """Parse pools in search order and reject any two that share addresses"""
    result = [p if isinstance(p, Pool) else Pool.from_cidr(p) for p in pools]
    if not result:
        raise PlanError("At least one pool CIDR is required")

    ordered = sorted(result, key=lambda p: (p.width, p.base_address, -p.size))
    for prev, cur in zip(ordered, ordered[1:]):
        if prev.network.overlaps(cur.network):
            raise OverlappingPools(prev.cidr, cur.cidr)
    return result


def apply_reservations(
    allocators: Sequence[PoolAllocator], reserved: Iterable[Union[str, Cidr]]
) -> List[str]:
    """Seed allocators with already-used CIDRs; returns warnings for strays"""
    warnings = []
    for item in reserved:
        cidr = parse_cidr(item) if isinstance(item, str) else item
        hits = [
            a
            for a in allocators
            if a.pool.width == cidr.width and a.reserve(cidr.network, cidr.size)
        ]
        if not hits:
            message = f"Reserved {cidr} is outside all pools"
            logger.warning(message)
            warnings.append(message)
    return warnings


def _request_width(request: SubnetRequest, pool_widths: Set[int]) -> int:
    if request.version is not None:
        try:
            width = address_width(request.version)
        except ValueError as e:
            raise WidthMismatch(f"'{request.name}': {e}") from None
        if width not in pool_widths:
            raise WidthMismatch(
                f"'{request.name}' is IPv{request.version} but no pool is"
            )
        return width

    if len(pool_widths) != 1:
        raise WidthMismatch(
            f"'{request.name}' must declare an IP version when pools mix IPv4 and IPv6"
        )
    return next(iter(pool_widths))


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def requested_size(
    request: SubnetRequest, width: int, usable_hosts_only: bool = True
) -> int:
    """Power-of-two block size for a prefix length or host count"""
    if (request.prefix_length is None) == (request.host_count is None):
        raise InvalidRequestSize(
            f"'{request.name}' needs either a prefix length or a host count"
        )

    if request.prefix_length is not None:
        prefix = request.prefix_length
        if not _is_int(prefix) or not 0 <= prefix <= width:
            raise InvalidRequestSize(
                f"'{request.name}': prefix /{prefix} is outside 0-{width}"
            )
        return 1 << (width - prefix)

    hosts = request.host_count
    if not _is_int(hosts) or hosts <= 0:
        raise InvalidRequestSize(
            f"Invalid size for '{request.name}': host count must be positive"
        )
    # Network and broadcast addresses; a single host needs neither
    needed = hosts
    if usable_hosts_only and width == IPV4_WIDTH and hosts > 1:
        needed = hosts + 2
    size = next_power_of_two(needed)
    if size > 1 << width:
        raise InvalidRequestSize(
            f"'{request.name}': {hosts} hosts do not fit a /0 of width {width}"
        )
    return size


def normalize_request(
    request: SubnetRequest,
    index: int,
    pool_widths: Set[int],
    usable_hosts_only: bool = True,
) -> AllocationRequest:
    if not _is_int(request.priority):
        raise InvalidRequestSize(
            f"'{request.name}': priority must be an integer, got {request.priority!r}"
        )
    width = _request_width(request, pool_widths)
    return AllocationRequest(
        id=request.id or f"r{index}",
        name=request.name,
        requested_size=requested_size(request, width, usable_hosts_only),
        priority=request.priority,
        width=width,
        requested_hosts=request.host_count,
    )


def order_requests(
    requests: Sequence[AllocationRequest], strategy: str
) -> List[AllocationRequest]:
    """
    preserve-order: ascending priority. Otherwise largest block first, since
    an aligned block of size S placed after smaller ones may find every
    multiple of S already broken up. Both sorts are stable.
    """
    if strategy == PRESERVE_ORDER:
        return sorted(requests, key=lambda r: r.priority)
    return sorted(requests, key=lambda r: -r.requested_size)


def place_request(
    request: AllocationRequest,
    allocators: Sequence[PoolAllocator],
    strategy: PlacementStrategy,
) -> RequestOutcome:
    outcome = RequestOutcome(
        request_id=request.id,
        request_name=request.name,
        requested_size=request.requested_size,
        width=request.width,
        requested_hosts=request.requested_hosts,
    )
    for allocator in allocators:
        if allocator.pool.width != request.width:
            continue
        placement = allocator.find_fit(request.requested_size, strategy)
        if placement is None:
            continue

        allocation = allocator.commit(request, placement.start)
        logger.debug(
            "Placed %s as %s in %s", request.name, allocation.cidr, allocator.pool.cidr
        )
        outcome.state = RequestState.ALLOCATED
        outcome.allocation = allocation
        outcome.pool_cidr = allocator.pool.cidr
        return outcome

    logger.debug(
        "No capacity for %s (%d addresses)", request.name, request.requested_size
    )
    outcome.state = RequestState.FAILED
    outcome.failure_reason = FailureReason.NO_CAPACITY
    outcome.message = (
        f"Could not allocate '{request.name}': insufficient space remaining"
    )
    return outcome


def plan(
    pools: Iterable[Union[str, Pool]],
    requests: Iterable[SubnetRequest],
    strategy: str = "best-fit",
    usable_hosts_only: bool = True,
    reserved: Iterable[Union[str, Cidr]] = (),
) -> PlanResult:
    """
    Place every request into the pools, tried in the given order.

    Fatal input errors (malformed or overlapping pools, unknown strategy) are
    raised before anything is allocated. Per-request problems are recorded on
    that request's outcome and never stop the run. Requests rejected while
    sizing come first in the outcomes, then placed/failed ones in processing
    order.
    """
    if strategy not in PLAN_STRATEGIES:
        raise InvalidStrategy(
            f"Unknown strategy '{strategy}' "
            f"(expected one of: {', '.join(PLAN_STRATEGIES)})"
        )
    placement = get_strategy("first-fit" if strategy == PRESERVE_ORDER else strategy)

    allocators = [PoolAllocator(p) for p in load_pools(pools)]
    warnings = apply_reservations(allocators, reserved)
    pool_widths = {a.pool.width for a in allocators}

    outcomes: List[RequestOutcome] = []
    pending: List[AllocationRequest] = []
    for index, request in enumerate(requests):
        try:
            pending.append(
                normalize_request(request, index, pool_widths, usable_hosts_only)
            )
        except RequestError as e:
            outcomes.append(
                RequestOutcome(
                    request_id=request.id or f"r{index}",
                    request_name=request.name,
                    state=RequestState.FAILED,
                    failure_reason=e.reason,
                    message=str(e),
                )
            )

    for request in order_requests(pending, strategy):
        outcomes.append(place_request(request, allocators, placement))

    pool_reports, summary = build_report(allocators, outcomes)
    logger.info(
        "Planned %d/%d requests across %d pools (%s, %.2f%% efficiency)",
        summary.success_count,
        summary.total_requests,
        len(allocators),
        strategy,
        summary.efficiency_percent,
    )
    return PlanResult(
        strategy=strategy,
        usable_hosts_only=usable_hosts_only,
        outcomes=outcomes,
        pool_reports=pool_reports,
        summary=summary,
        warnings=warnings,
    )


def _candidates(
    blocks: Iterable[Tuple[Pool, FreeBlock]], size: int, prefix_length: int
) -> Iterator[Candidate]:
    for pool, block in blocks:
        start = aligned_start(block.start, size)
        while start + size <= block.end:
            cidr = Cidr(start, prefix_length, pool.width)
            yield Candidate(cidr, pool.cidr, block.size)
            start += size


def find_next_available(
    pools: Iterable[Union[str, Pool]],
    prefix_length: Optional[int] = None,
    host_count: Optional[int] = None,
    allocations: Iterable[Union[str, Cidr]] = (),
    policy: str = "first-fit",
    usable_hosts_only: bool = True,
    max_candidates: int = 10,
) -> NextAvailableResult:
    """
    List free aligned subnets of the requested size from pools minus
    existing allocations. The IP version of the first pool decides which
    pools are searched.
    """
    strategy = get_strategy(policy)
    pool_list = load_pools(pools)
    first = pool_list[0].network
    width = first.width

    warnings = []
    allocators = []
    for pool in pool_list:
        if pool.width == width:
            allocators.append(PoolAllocator(pool))
        else:
            warnings.append(
                f"Pool {pool.cidr} ignored: IPv{pool.network.version} differs "
                f"from IPv{first.version} pool {first}"
            )
    allocations = list(allocations)
    warnings.extend(apply_reservations(allocators, allocations))

    request = SubnetRequest(
        name="next-available", prefix_length=prefix_length, host_count=host_count
    )
    size = requested_size(request, width, usable_hosts_only)
    prefix = width - (size.bit_length() - 1)

    blocks = [(a.pool, block) for a in allocators for block in a.free_blocks()]
    ordered = strategy.order([block for _, block in blocks])
    owners = {block: pool for pool, block in blocks}
    candidates = list(
        islice(
            _candidates(((owners[b], b) for b in ordered), size, prefix),
            max(max_candidates, 0),
        )
    )

    sizes = [block.size for _, block in blocks]
    return NextAvailableResult(
        policy=policy,
        requested_prefix=prefix,
        requested_size=size,
        candidates=candidates,
        free_blocks=[
            dict(block.to_dict(pool.width), pool_cidr=pool.cidr)
            for pool, block in blocks
        ],
        total_free_space=sum(sizes),
        largest_free_block=max(sizes, default=0),
        fragmentation_count=len(blocks),
        total_pools=len(pool_list),
        total_allocations=len(allocations),
        warnings=warnings,
        usable_hosts_only=usable_hosts_only,
    )
