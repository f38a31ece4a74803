"""
Core watchdog modules
"""

from .exceptions import (
    WatchdogException,
    UpstreamUnavailable,
    InstrumentCreationFailed,
    CallbackRegistrationFailed,
    WatchSessionTerminated,
    ConfigurationException,
)
from .gauge_sink import LoadBalancerGaugeSink
from .lister import ServiceLister, records_from_service
from .watcher import ServiceWatcher
from .reconciler import ReconcileLoop, ReconcileState

__all__ = [
    "WatchdogException",
    "UpstreamUnavailable",
    "InstrumentCreationFailed",
    "CallbackRegistrationFailed",
    "WatchSessionTerminated",
    "ConfigurationException",
    "LoadBalancerGaugeSink",
    "ServiceLister",
    "records_from_service",
    "ServiceWatcher",
    "ReconcileLoop",
    "ReconcileState",
]
