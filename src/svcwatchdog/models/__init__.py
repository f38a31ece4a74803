"""
Models package for watchdog data structures
"""

from .resources import (
    LoadBalancerRecord,
    ResourceSnapshot,
    SyncResult,
    HealthStatus,
)

__all__ = [
    "LoadBalancerRecord",
    "ResourceSnapshot",
    "SyncResult",
    "HealthStatus",
]
