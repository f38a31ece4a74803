#!/usr/bin/env python3
"""
Streaming watch of LoadBalancer services
"""

import logging
import threading
from typing import Callable, Iterator, Optional, Set
from kubernetes import client, watch
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from ..events import ChangeType, ResourceChangeEvent
from .exceptions import WatchSessionTerminated
from .lister import is_load_balancer, records_from_service

logger = logging.getLogger(__name__)


class ServiceWatcher:
    """
    Turns the Kubernetes service watch stream into ResourceChangeEvents

    Each call to ``watch`` is one session. A session ends by raising
    WatchSessionTerminated when the API closes the stream or fails; it only
    ends quietly after ``stop`` was called.
    """

    def __init__(
        self,
        core_api: Optional[client.CoreV1Api],
        service_name: str = "watchdog",
        timeout_seconds: int = 300,
        watch_factory: Callable[[], watch.Watch] = watch.Watch
    ):
        self.core_api = core_api
        self.service_name = service_name
        self.timeout_seconds = timeout_seconds
        self._watch_factory = watch_factory
        self._active_watch: Optional[watch.Watch] = None
        self._lock = threading.Lock()
        self._stop_requested = threading.Event()
        self.resource_version: Optional[str] = None

    @property
    def stopped(self) -> bool:
        return self._stop_requested.is_set()

    def stop(self):
        """Interrupt the open stream and refuse new sessions"""
        self._stop_requested.set()
        with self._lock:
            active = self._active_watch
        if active is not None:
            active.stop()

    def watch(self, namespace: str, resource_version: Optional[str] = None) -> Iterator[ResourceChangeEvent]:
        """
        Yield change events for LoadBalancer services in a namespace

        Events for other service types are dropped, except that a service
        previously reported as a LoadBalancer and since changed to another
        type is reported as DELETED.

        Raises:
            WatchSessionTerminated: the stream ended or failed
        """
        if self.core_api is None:
            raise WatchSessionTerminated(namespace, "Kubernetes client is not initialized")
        if self.stopped:
            return

        watcher = self._watch_factory()
        with self._lock:
            self._active_watch = watcher

        self.resource_version = resource_version
        tracked: Set[str] = set()
        kwargs = {"namespace": namespace, "timeout_seconds": self.timeout_seconds}
        if resource_version:
            kwargs["resource_version"] = resource_version

        try:
            for raw_event in watcher.stream(self.core_api.list_namespaced_service, **kwargs):
                if self.stopped:
                    break

                event = self._to_event(raw_event, namespace, tracked)
                if event is not None:
                    yield event
        except ApiException as e:
            raise WatchSessionTerminated(namespace, e.reason or str(e), status=e.status) from e
        except HTTPError as e:
            raise WatchSessionTerminated(namespace, str(e)) from e
        finally:
            watcher.stop()
            with self._lock:
                if self._active_watch is watcher:
                    self._active_watch = None

        if not self.stopped:
            raise WatchSessionTerminated(namespace, "event stream closed by the API server", expired=True)

    def _to_event(self, raw_event, namespace: str, tracked: Set[str]) -> Optional[ResourceChangeEvent]:
        change_type = ChangeType.parse(raw_event.get("type", ""))
        service = raw_event.get("object")
        metadata = getattr(service, "metadata", None)
        if change_type is None or metadata is None:
            return None

        if metadata.resource_version:
            self.resource_version = metadata.resource_version

        name = metadata.name
        event_namespace = metadata.namespace or namespace

        if is_load_balancer(service):
            if change_type == ChangeType.DELETED:
                tracked.discard(name)
            else:
                tracked.add(name)
            return ResourceChangeEvent(
                change_type=change_type,
                name=name,
                namespace=event_namespace,
                records=records_from_service(service, self.service_name, namespace),
                resource_version=metadata.resource_version,
            )

        if name in tracked:
            # No longer a LoadBalancer: withdraw what was reported for it
            tracked.discard(name)
            logger.info(f"Service {name} is no longer a LoadBalancer")
            return ResourceChangeEvent(
                change_type=ChangeType.DELETED,
                name=name,
                namespace=event_namespace,
                resource_version=metadata.resource_version,
            )

        return None
