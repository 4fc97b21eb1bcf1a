"""
Utilization and fragmentation report for a finished planning run
"""

from typing import Dict, List, Sequence, Tuple

from models import PlanSummary, PoolReport, RequestOutcome, RequestState


def percent(part: int, whole: int) -> float:
    """part/whole as a percentage rounded to two decimals"""
    if whole <= 0:
        return 0.0
    return round(part * 100 / whole, 2)


def smallest_unmet_sizes(outcomes: Sequence[RequestOutcome]) -> Dict[int, int]:
    """Smallest requested size among failed, sized requests, keyed by width"""
    smallest: Dict[int, int] = {}
    for o in outcomes:
        if o.state is not RequestState.FAILED or o.requested_size is None:
            continue
        current = smallest.get(o.width)
        if current is None or o.requested_size < current:
            smallest[o.width] = o.requested_size
    return smallest


def build_report(
    allocators: Sequence, outcomes: Sequence[RequestOutcome]
) -> Tuple[List[PoolReport], PlanSummary]:
    """
    Per-pool utilization plus the run summary.

    Wasted space is free space that cannot hold even the smallest request
    that failed for lack of capacity; with no such failures nothing is wasted.
    """
    unmet = smallest_unmet_sizes(outcomes)
    reports = []
    for allocator in allocators:
        pool = allocator.pool
        blocks = allocator.free_blocks()
        allocated = allocator.allocated_space
        reserved = allocator.reserved_space
        threshold = unmet.get(pool.width)
        wasted = (
            sum(b.size for b in blocks if b.size < threshold)
            if threshold is not None
            else 0
        )
        reports.append(
            PoolReport(
                pool=pool,
                free_blocks=blocks,
                allocated_space=allocated,
                reserved_space=reserved,
                utilization_percent=percent(allocated + reserved, pool.size),
                wasted_space=wasted,
            )
        )

    total_space = sum(r.pool.size for r in reports)
    total_allocated = sum(r.allocated_space for r in reports)
    total_reserved = sum(r.reserved_space for r in reports)
    successes = sum(1 for o in outcomes if o.success)
    summary = PlanSummary(
        total_requests=len(outcomes),
        success_count=successes,
        failure_count=len(outcomes) - successes,
        total_pool_space=total_space,
        total_allocated_space=total_allocated,
        total_reserved_space=total_reserved,
        wasted_space=sum(r.wasted_space for r in reports),
        efficiency_percent=percent(total_allocated + total_reserved, total_space),
    )
    return reports, summary
