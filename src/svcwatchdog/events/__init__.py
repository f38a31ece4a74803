"""
Events emitted while watching LoadBalancer services
"""

from .base import ChangeType, ResourceChangeEvent

__all__ = [
    "ChangeType",
    "ResourceChangeEvent",
]
