#!/usr/bin/env python3
"""
Exceptions raised by the watchdog components
"""

from typing import Optional, Dict, Any


class WatchdogException(Exception):
    """Base exception for the service watchdog"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class UpstreamUnavailable(WatchdogException):
    """Raised when the Kubernetes API cannot be reached or refuses the request"""

    def __init__(self, namespace: str, message: str, status: Optional[int] = None):
        self.namespace = namespace
        self.status = status
        super().__init__(
            f"Kubernetes API unavailable for namespace {namespace}: {message}",
            {"namespace": namespace, "status": status}
        )


class InstrumentCreationFailed(WatchdogException):
    """Raised when the load balancer gauge cannot be registered"""

    def __init__(self, metric_name: str, message: str):
        self.metric_name = metric_name
        super().__init__(f"Could not create gauge {metric_name}: {message}", {"metric_name": metric_name})


class CallbackRegistrationFailed(WatchdogException):
    """Raised when a new observation set cannot replace the current one"""
    pass


class WatchSessionTerminated(WatchdogException):
    """
    Raised when a watch stream ends or errors

    ``expired`` marks the API server closing the stream once its timeout ran
    out, which is routine and not an error.
    """

    def __init__(self, namespace: str, message: str, status: Optional[int] = None, expired: bool = False):
        self.namespace = namespace
        self.status = status
        self.expired = expired
        super().__init__(
            f"Watch session for namespace {namespace} terminated: {message}",
            {"namespace": namespace, "status": status, "expired": expired}
        )

    @property
    def is_forbidden(self) -> bool:
        """Credentials or RBAC rejected the watch; restarting will not help"""
        return self.status in (401, 403)


class ConfigurationException(WatchdogException):
    """Raised when configuration is invalid"""
    pass
