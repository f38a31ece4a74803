#!/usr/bin/env python3
"""
Pydantic models for discovered load balancers and reconcile results
"""

from typing import Dict, Any, Optional, Tuple, List
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoadBalancerRecord(BaseModel):
    """One observed load balancer binding (service name + ingress address)"""
    model_config = ConfigDict(frozen=True)

    service_name: str = Field(..., description="Identity tag of the exporter (e.g. 'watchdog')")
    load_balancer_name: str = Field(..., description="Name of the Kubernetes service owning the load balancer")
    load_balancer_ip: str = Field(..., description="One ingress address of the load balancer")
    namespace: str = Field(..., description="Namespace of the service")
    value: float = Field(1.0, description="Presence indicator reported on the gauge")

    @property
    def key(self) -> Tuple[str, str]:
        """Service identity used for incremental updates"""
        return (self.namespace, self.load_balancer_name)

    def labels(self) -> Dict[str, str]:
        """Label set exported with the gauge sample"""
        return {
            "service_name": self.service_name,
            "load_balancer_name": self.load_balancer_name,
            "load_balancer_ip": self.load_balancer_ip,
            "namespace": self.namespace,
        }


class ResourceSnapshot(BaseModel):
    """Load balancers discovered in one namespace at a point in time"""
    model_config = ConfigDict(frozen=True)

    namespace: str = Field(..., description="Namespace the snapshot was taken from")
    records: Tuple[LoadBalancerRecord, ...] = Field(default_factory=tuple, description="Records in discovery order")
    taken_at: datetime = Field(default_factory=_utcnow, description="Time the snapshot was taken")

    @classmethod
    def empty(cls, namespace: str) -> "ResourceSnapshot":
        return cls(namespace=namespace, records=())

    @property
    def is_empty(self) -> bool:
        return not self.records

    def load_balancer_names(self) -> List[str]:
        """Distinct service names in discovery order"""
        names: List[str] = []
        for record in self.records:
            if record.load_balancer_name not in names:
                names.append(record.load_balancer_name)
        return names


class SyncResult(BaseModel):
    """Outcome of one poll cycle"""
    trigger: str = Field(..., description="What started the cycle: startup, http, resync or watch")
    status: str = Field(..., description="'success', 'failed' or 'rejected'")
    namespace: str = Field(..., description="Namespace that was listed")
    records: int = Field(0, ge=0, description="Number of records published")
    load_balancers: List[str] = Field(default_factory=list, description="Published load balancer names")
    error: Optional[str] = Field(None, description="Error type when the cycle failed")
    message: Optional[str] = Field(None, description="Error message when the cycle failed")
    duration_seconds: float = Field(0.0, ge=0, description="Wall time spent in the cycle")
    timestamp: datetime = Field(default_factory=_utcnow, description="Completion time")

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class HealthStatus(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    timestamp: datetime = Field(default_factory=_utcnow, description="Health check timestamp")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional health details")
