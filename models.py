"""
Planner data model
Inputs are frozen so one planning run can never alter another's snapshot
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import List, Optional

from cidr import (
    IPV4_WIDTH,
    Cidr,
    format_address,
    format_range,
    parse_cidr,
    prefix_for_size,
    range_to_cidrs,
)
from errors import FailureReason


@dataclass(frozen=True)
class Pool:
    """Address pool the planner carves subnets from - e.g., 10.0.0.0/16"""

    id: str
    network: Cidr

    def __repr__(self):
        return f"<Pool {self.id}: {self.cidr}>"

    @classmethod
    def from_cidr(cls, text: str, pool_id: Optional[str] = None) -> "Pool":
        network = parse_cidr(text)
        return cls(id=pool_id or str(network), network=network)

    @property
    def cidr(self) -> str:
        return str(self.network)

    @property
    def base_address(self) -> int:
        return self.network.network

    @property
    def prefix_length(self) -> int:
        return self.network.prefix_length

    @property
    def size(self) -> int:
        return self.network.size

    @property
    def end(self) -> int:
        return self.network.end

    @property
    def width(self) -> int:
        return self.network.width

    def contains(self, cidr: Cidr) -> bool:
        """Check if a CIDR is within this pool"""
        return self.network.contains(cidr)


@dataclass(frozen=True)
class SubnetRequest:
    """A subnet request as the caller states it: a prefix length or a host count"""

    name: str
    prefix_length: Optional[int] = None
    host_count: Optional[int] = None
    priority: int = 0
    version: Optional[int] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class AllocationRequest:
    """A request normalized to a power-of-two block size"""

    id: str
    name: str
    requested_size: int
    priority: int
    width: int
    requested_hosts: Optional[int] = None


def host_details(
    start: int, size: int, width: int, usable_hosts_only: bool = True
) -> dict:
    """Network, broadcast, masks and host range of an aligned block"""
    last = start + size - 1
    prefix_length = prefix_for_size(size, width)
    first_host, last_host, usable = start, last, size
    if width == IPV4_WIDTH:
        if usable_hosts_only and prefix_length < 31:
            first_host, last_host, usable = start + 1, last - 1, size - 2
    elif prefix_length < 127:
        first_host, last_host = start + 1, last - 1

    host_mask = size - 1
    return {
        "network": format_address(start, width),
        "broadcast": format_address(last, width),
        "subnet_mask": format_address(((1 << width) - 1) ^ host_mask, width),
        "wildcard_mask": format_address(host_mask, width),
        "first_host": format_address(first_host, width),
        "last_host": format_address(last_host, width),
        "total_hosts": size,
        "usable_hosts": usable,
    }


@dataclass(frozen=True)
class Allocation:
    request_id: str
    pool_id: str
    start: int
    size: int
    width: int

    @property
    def end(self) -> int:
        return self.start + self.size

    @property
    def prefix_length(self) -> int:
        return prefix_for_size(self.size, self.width)

    @property
    def cidr(self) -> str:
        return str(Cidr(self.start, self.prefix_length, self.width))

    def details(
        self, usable_hosts_only: bool = True, requested_hosts: Optional[int] = None
    ) -> dict:
        """
        Host layout of the allocated subnet. With a requested host count the
        fit is reported too: efficiency is requested/usable as a percentage
        and wasted_hosts the usable addresses left over.
        """
        data = host_details(self.start, self.size, self.width, usable_hosts_only)
        usable = data["usable_hosts"]
        data["requested_hosts"] = requested_hosts
        data["efficiency"] = None
        data["wasted_hosts"] = None
        if requested_hosts is not None:
            data["efficiency"] = round(requested_hosts * 100 / usable, 2)
            data["wasted_hosts"] = max(usable - requested_hosts, 0)
        return data


@dataclass(frozen=True)
class FreeBlock:
    start: int
    size: int

    @property
    def end(self) -> int:
        return self.start + self.size

    def to_dict(self, width: int) -> dict:
        return {
            "cidr": format_range(self.start, self.size, width),
            "size": self.size,
            "cidrs": [str(c) for c in range_to_cidrs(self.start, self.size, width)],
        }


class RequestState(str, Enum):
    PENDING = "Pending"
    ALLOCATED = "Allocated"
    FAILED = "Failed"


@dataclass
class RequestOutcome:
    request_id: str
    request_name: str
    requested_size: Optional[int] = None
    width: Optional[int] = None
    state: RequestState = RequestState.PENDING
    allocation: Optional[Allocation] = None
    pool_cidr: Optional[str] = None
    failure_reason: Optional[FailureReason] = None
    message: Optional[str] = None
    requested_hosts: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.state is RequestState.ALLOCATED

    def details(self, usable_hosts_only: bool = True) -> dict:
        return self.allocation.details(usable_hosts_only, self.requested_hosts)

    def to_dict(self, usable_hosts_only: bool = True) -> dict:
        data = {"request_name": self.request_name, "success": self.success}
        if self.allocation is not None:
            data["cidr"] = self.allocation.cidr
            data["pool_cidr"] = self.pool_cidr
            data.update(self.details(usable_hosts_only))
        if self.failure_reason is not None:
            data["failure_reason"] = self.failure_reason.value
            data["message"] = self.message
        return data


@dataclass
class PoolReport:
    pool: Pool
    free_blocks: List[FreeBlock]
    allocated_space: int
    reserved_space: int
    utilization_percent: float
    wasted_space: int = 0

    def to_dict(self) -> dict:
        return {
            "cidr": self.pool.cidr,
            "size": self.pool.size,
            "allocated_space": self.allocated_space,
            "reserved_space": self.reserved_space,
            "free_blocks": [b.to_dict(self.pool.width) for b in self.free_blocks],
            "utilization_percent": self.utilization_percent,
            "wasted_space": self.wasted_space,
        }


@dataclass(frozen=True)
class PlanSummary:
    total_requests: int
    success_count: int
    failure_count: int
    total_pool_space: int
    total_allocated_space: int
    total_reserved_space: int
    wasted_space: int
    efficiency_percent: float


@dataclass
class PlanResult:
    strategy: str
    usable_hosts_only: bool
    outcomes: List[RequestOutcome]
    pool_reports: List[PoolReport]
    summary: PlanSummary
    warnings: List[str] = field(default_factory=list)

    @property
    def allocations(self) -> List[Allocation]:
        return [o.allocation for o in self.outcomes if o.allocation is not None]

    def outcome(self, name: str) -> RequestOutcome:
        for o in self.outcomes:
            if o.request_name == name:
                return o
        raise KeyError(name)

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "allocations": [o.to_dict(self.usable_hosts_only) for o in self.outcomes],
            "pool_reports": [r.to_dict() for r in self.pool_reports],
            "summary": asdict(self.summary),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class Candidate:
    """A free aligned subnet offered by the next-available search"""

    cidr: Cidr
    pool_cidr: str
    gap_size: int

    def details(self, usable_hosts_only: bool = True) -> dict:
        return host_details(
            self.cidr.network, self.cidr.size, self.cidr.width, usable_hosts_only
        )

    def to_dict(self, usable_hosts_only: bool = True) -> dict:
        data = {
            "cidr": str(self.cidr),
            "pool_cidr": self.pool_cidr,
            "gap_size": self.gap_size,
        }
        data.update(self.details(usable_hosts_only))
        return data


@dataclass
class NextAvailableResult:
    policy: str
    requested_prefix: int
    requested_size: int
    candidates: List[Candidate]
    free_blocks: List[dict]
    total_free_space: int
    largest_free_block: int
    fragmentation_count: int
    total_pools: int
    total_allocations: int
    warnings: List[str] = field(default_factory=list)
    usable_hosts_only: bool = True

    def to_dict(self) -> dict:
        return {
            "policy": self.policy,
            "candidates": [c.to_dict(self.usable_hosts_only) for c in self.candidates],
            "free_blocks": list(self.free_blocks),
            "stats": {
                "total_free_space": self.total_free_space,
                "largest_free_block": self.largest_free_block,
                "fragmentation_count": self.fragmentation_count,
                "total_pools": self.total_pools,
                "total_allocations": self.total_allocations,
                "requested_prefix": self.requested_prefix,
                "requested_size": self.requested_size,
            },
            "warnings": list(self.warnings),
        }
