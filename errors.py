"""
Planner errors

Fatal errors derive from PlanError and abort a run before any allocation.
RequestError subclasses only ever reject the single request they concern.
"""

from enum import Enum


class PlanError(Exception):
    """Fatal error - the whole planning run is rejected"""


class MalformedCIDR(PlanError, ValueError):
    def __init__(self, text, reason):
        self.text = text
        self.reason = reason
        super().__init__(f"Invalid CIDR '{text}': {reason}")


class OverlappingPools(PlanError):
    def __init__(self, first, second):
        self.first = first
        self.second = second
        super().__init__(f"Pools {first} and {second} overlap")


class InvalidStrategy(PlanError, ValueError):
    pass


class InternalConsistencyError(PlanError):
    """Occupied ranges inside a pool overlap or escape its bounds"""


class ConfigError(PlanError):
    pass


class PlanFileError(PlanError):
    """A plan file is unreadable or has the wrong shape"""


class FailureReason(str, Enum):
    INVALID_REQUEST_SIZE = "InvalidRequestSize"
    WIDTH_MISMATCH = "WidthMismatch"
    NO_CAPACITY = "NoCapacity"


class RequestError(Exception):
    """Non-fatal error attached to one request"""

    reason: FailureReason


class InvalidRequestSize(RequestError, ValueError):
    reason = FailureReason.INVALID_REQUEST_SIZE


class WidthMismatch(RequestError):
    reason = FailureReason.WIDTH_MISMATCH
