#!/usr/bin/env python3
"""
Resource change events produced by the service watcher
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum

from ..models import LoadBalancerRecord


class ChangeType(str, Enum):
    """Kinds of change reported by the Kubernetes watch API"""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"

    @classmethod
    def parse(cls, value: str) -> Optional["ChangeType"]:
        """Map a raw watch event type, None for BOOKMARK/ERROR and unknown types"""
        try:
            return cls(str(value).upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class ResourceChangeEvent:
    """A LoadBalancer service was added, modified or deleted"""

    change_type: ChangeType
    name: str
    namespace: str
    records: Tuple[LoadBalancerRecord, ...] = ()
    resource_version: Optional[str] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> Tuple[str, str]:
        return (self.namespace, self.name)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        return {
            "event_id": self.event_id,
            "change_type": self.change_type.value,
            "name": self.name,
            "namespace": self.namespace,
            "records": [record.labels() for record in self.records],
            "resource_version": self.resource_version,
            "timestamp": self.timestamp.isoformat()
        }
