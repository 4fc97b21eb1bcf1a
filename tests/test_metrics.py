"""Tests for utilization and fragmentation reporting."""
from allocator import PoolAllocator
from errors import FailureReason
from metrics import build_report, percent, smallest_unmet_sizes
from models import AllocationRequest, Pool, RequestOutcome, RequestState


def failed(name, size, width=32):
    return RequestOutcome(
        request_id=name,
        request_name=name,
        requested_size=size,
        width=width,
        state=RequestState.FAILED,
        failure_reason=FailureReason.NO_CAPACITY,
    )


def test_percent():
    assert percent(1, 3) == 33.33
    assert percent(224, 256) == 87.5
    assert percent(5, 0) == 0.0


def test_percent_is_exact_for_large_ipv6_counts():
    assert percent(2 ** 127, 2 ** 128) == 50.0


def test_smallest_unmet_sizes_per_width():
    outcomes = [
        failed("a", 64),
        failed("b", 16),
        failed("c", 2 ** 64, width=128),
        RequestOutcome("d", "d", state=RequestState.FAILED),
    ]
    assert smallest_unmet_sizes(outcomes) == {32: 16, 128: 2 ** 64}


def test_build_report():
    allocator = PoolAllocator(Pool.from_cidr("10.0.0.0/24"))
    base = allocator.pool.base_address
    allocator.reserve(base, 16)
    allocator.commit(AllocationRequest("r0", "web", 64, 0, 32), base + 64)
    ok = RequestOutcome("r0", "web", 64, 32, RequestState.ALLOCATED)

    reports, summary = build_report([allocator], [ok, failed("db", 256)])
    report = reports[0]

    # free: [16, 64) size 48 and [128, 256) size 128
    assert [b.size for b in report.free_blocks] == [48, 128]
    assert report.allocated_space == 64
    assert report.reserved_space == 16
    assert report.utilization_percent == 31.25
    assert report.wasted_space == 176

    assert summary.total_requests == 2
    assert summary.success_count == 1
    assert summary.failure_count == 1
    assert summary.total_pool_space == 256
    assert summary.total_allocated_space == 64
    assert summary.total_reserved_space == 16
    assert summary.wasted_space == 176
    assert summary.efficiency_percent == 31.25


def test_no_failures_means_no_waste():
    allocator = PoolAllocator(Pool.from_cidr("10.0.0.0/24"))
    reports, summary = build_report([allocator], [])

    assert reports[0].wasted_space == 0
    assert summary.wasted_space == 0
    assert summary.efficiency_percent == 0.0
