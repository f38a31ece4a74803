#!/usr/bin/env python3
"""
Reconcile loop keeping the load balancer gauge in sync with the cluster
"""

import logging
import random
import threading
import time
from enum import Enum
from typing import Dict, Any, Optional

from ..events import ResourceChangeEvent
from ..models import SyncResult
from .exceptions import (
    CallbackRegistrationFailed,
    InstrumentCreationFailed,
    UpstreamUnavailable,
    WatchSessionTerminated,
)
from .gauge_sink import LoadBalancerGaugeSink
from .lister import ServiceLister
from .metrics import WatchdogMetrics, watchdog_metrics
from .watcher import ServiceWatcher

logger = logging.getLogger(__name__)


class ReconcileState(str, Enum):
    """Phases of the reconcile loop"""
    IDLE = "idle"
    LISTING = "listing"
    PUBLISHING = "publishing"
    WATCHING = "watching"
    STOPPED = "stopped"


class ReconcileLoop:
    """
    Drives the gauge from three trigger sources

    * ``sync`` runs a full poll cycle (startup, HTTP trigger, periodic resync)
    * a background watch session applies each service change as it arrives
    * ``shutdown`` refuses new work and waits for in-flight cycles

    Concurrent full cycles are not serialized: the last one to publish wins.
    Watch events applied while a cycle was listing are replayed onto its
    snapshot, so an older listing never undoes a newer change.
    """

    def __init__(
        self,
        lister: ServiceLister,
        sink: LoadBalancerGaugeSink,
        namespace: str,
        watcher: Optional[ServiceWatcher] = None,
        resync_interval: float = 0,
        backoff_initial: float = 1.0,
        backoff_max: float = 30.0,
        metrics: WatchdogMetrics = watchdog_metrics
    ):
        """
        Initialize the reconcile loop

        Args:
            lister: Lists LoadBalancer services
            sink: Owns the exported gauge
            namespace: Namespace to reconcile
            watcher: Optional watcher; when set a background watch session runs after start
            resync_interval: Seconds between periodic full cycles, 0 disables them
            backoff_initial: First delay before restarting a terminated watch session
            backoff_max: Cap on the restart delay
            metrics: Recorder for the watchdog's own metrics
        """
        self.lister = lister
        self.sink = sink
        self.namespace = namespace
        self.watcher = watcher
        self.resync_interval = resync_interval
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self.metrics = metrics

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._phases: Dict[int, ReconcileState] = {}
        self._cycle_seq = 0
        self._accepting = True
        self._stop = threading.Event()
        self._ready = threading.Event()

        self._watch_thread: Optional[threading.Thread] = None
        self._resync_thread: Optional[threading.Thread] = None

        self.last_result: Optional[SyncResult] = None
        self.last_success: Optional[SyncResult] = None
        self.watch_state = "disabled" if watcher is None else "pending"
        self.watch_sessions = 0
        self.last_watch_error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    @property
    def accepting(self) -> bool:
        return self._accepting

    @property
    def state(self) -> ReconcileState:
        with self._lock:
            phases = set(self._phases.values())
            accepting = self._accepting
        if not accepting and not phases:
            return ReconcileState.STOPPED
        if ReconcileState.PUBLISHING in phases:
            return ReconcileState.PUBLISHING
        if ReconcileState.LISTING in phases:
            return ReconcileState.LISTING
        if self.watch_state == "watching":
            return ReconcileState.WATCHING
        return ReconcileState.IDLE

    def start(self) -> SyncResult:
        """
        Run the initial poll cycle, then start the background tasks

        Raises:
            InstrumentCreationFailed: the gauge could not be created
        """
        logger.info(f"Starting reconcile loop for namespace {self.namespace}")
        self.sink.create_instrument()

        result = self.sync(trigger="startup")
        self._ready.set()

        if self.watcher is not None:
            self._watch_thread = threading.Thread(target=self._watch_loop, name="watchdog-watch", daemon=True)
            self._watch_thread.start()

        if self.resync_interval > 0:
            self._resync_thread = threading.Thread(target=self._resync_loop, name="watchdog-resync", daemon=True)
            self._resync_thread.start()
            logger.info(f"Periodic resync every {self.resync_interval}s")

        return result

    def sync(self, trigger: str = "http") -> SyncResult:
        """Run one full poll cycle; failures are reported in the result, never raised"""
        cycle_id = self._enter(ReconcileState.LISTING)
        if cycle_id is None:
            logger.warning(f"Rejected {trigger} sync, reconcile loop is shutting down")
            return SyncResult(trigger=trigger, status="rejected", namespace=self.namespace)

        start_time = time.monotonic()
        try:
            mark = self.sink.event_mark()
            snapshot = self.lister.list(self.namespace)
            self._set_phase(cycle_id, ReconcileState.PUBLISHING)
            count = self.sink.publish_full(snapshot, events_after=mark)
            result = SyncResult(
                trigger=trigger,
                status="success",
                namespace=self.namespace,
                records=count,
                load_balancers=snapshot.load_balancer_names(),
                duration_seconds=time.monotonic() - start_time
            )
        except UpstreamUnavailable as e:
            logger.error(f"Sync failed, keeping previous load balancer gauge: {e}")
            result = self._failed(trigger, e, start_time)
        except (InstrumentCreationFailed, CallbackRegistrationFailed) as e:
            logger.error(f"Could not publish load balancers: {e}")
            result = self._failed(trigger, e, start_time)
        except Exception as e:
            logger.exception(f"Unexpected error during {trigger} sync")
            result = self._failed(trigger, e, start_time)
        finally:
            self._leave(cycle_id)

        self.metrics.record_sync(trigger, result.succeeded, result.duration_seconds)
        if result.succeeded:
            self.metrics.record_published(result.records)
            self.last_success = result
        self.last_result = result
        return result

    def apply_event(self, event: ResourceChangeEvent) -> bool:
        """Apply a single watch event to the gauge"""
        cycle_id = self._enter(ReconcileState.PUBLISHING)
        if cycle_id is None:
            return False

        try:
            count = self.sink.apply_event(event)
        except (InstrumentCreationFailed, CallbackRegistrationFailed) as e:
            logger.error(f"Could not apply {event.change_type.value} for {event.name}: {e}")
            self.metrics.record_error(type(e).__name__)
            return False
        finally:
            self._leave(cycle_id)

        self.metrics.record_watch_event(event.change_type.value)
        self.metrics.record_published(count)
        return True

    def shutdown(self, timeout: float = 10.0) -> bool:
        """
        Stop accepting triggers, close the watch session and drain

        Returns:
            True if every in-flight cycle finished within the timeout
        """
        logger.info("Shutting down reconcile loop")
        deadline = time.monotonic() + timeout

        with self._lock:
            self._accepting = False
        self._stop.set()
        if self.watcher is not None:
            self.watcher.stop()

        with self._idle:
            drained = self._idle.wait_for(lambda: not self._phases, timeout=timeout)
        if not drained:
            logger.warning(f"In-flight syncs still running after {timeout}s")

        for thread in (self._watch_thread, self._resync_thread):
            if thread is not None:
                thread.join(timeout=max(0.0, deadline - time.monotonic()))

        self._ready.clear()
        logger.info("Reconcile loop stopped")
        return drained

    def status(self) -> Dict[str, Any]:
        """Current state for the status endpoint"""
        return {
            "namespace": self.namespace,
            "state": self.state.value,
            "ready": self.ready,
            "accepting": self.accepting,
            "published_records": len(self.sink.records()),
            "last_result": self.last_result.model_dump(mode="json") if self.last_result else None,
            "last_success": self.last_success.timestamp.isoformat() if self.last_success else None,
            "watch": {
                "state": self.watch_state,
                "sessions": self.watch_sessions,
                "last_error": self.last_watch_error
            },
            "resync_interval": self.resync_interval
        }

    def _watch_loop(self):
        """Consume watch sessions, restarting terminated ones with backoff"""
        backoff = self.backoff_initial
        resume_version: Optional[str] = None

        while not self._stop.is_set():
            self.watch_sessions += 1
            self.watch_state = "watching"
            logger.info(f"Watch session #{self.watch_sessions} started for namespace {self.namespace}")

            try:
                for event in self.watcher.watch(self.namespace, resource_version=resume_version):
                    logger.debug(f"Watch event: {event.to_dict()}")
                    self.apply_event(event)
                    backoff = self.backoff_initial
            except WatchSessionTerminated as e:
                if self._stop.is_set():
                    break
                if e.expired:
                    backoff = self.backoff_initial
                    resume_version = self.watcher.resource_version
                    self.metrics.record_watch_restart()
                    if resume_version:
                        logger.info(f"{e.message}, resuming from resource version {resume_version}")
                    else:
                        logger.info(f"{e.message}, no resource version seen; re-listing")
                        self.sync(trigger="watch")
                    continue

                self.last_watch_error = e.message
                self.metrics.record_error(type(e).__name__)
                if e.is_forbidden:
                    logger.error(f"{e.message}. Check service account permissions; watch disabled")
                    self.watch_state = "failed"
                    return
                if e.status is None:
                    logger.warning(e.message)
                else:
                    logger.error(e.message)
            except Exception as e:
                self.last_watch_error = str(e)
                self.metrics.record_error(type(e).__name__)
                logger.exception("Unexpected error in watch session")
            else:
                # The watcher only returns quietly once it was stopped
                break

            # A failed session may have lost events or hold an expired version
            resume_version = None
            self.watch_state = "backoff"
            delay = backoff * (0.5 + random.random())
            logger.info(f"Restarting watch session in {delay:.1f}s")
            if self._stop.wait(timeout=delay):
                break
            backoff = min(backoff * 2, self.backoff_max)
            self.metrics.record_watch_restart()

            # Events may have been missed while disconnected
            self.sync(trigger="watch")

        self.watch_state = "stopped"

    def _resync_loop(self):
        while not self._stop.wait(timeout=self.resync_interval):
            self.sync(trigger="resync")

    def _failed(self, trigger: str, error: Exception, start_time: float) -> SyncResult:
        self.metrics.record_error(type(error).__name__)
        return SyncResult(
            trigger=trigger,
            status="failed",
            namespace=self.namespace,
            error=type(error).__name__,
            message=str(error),
            duration_seconds=time.monotonic() - start_time
        )

    def _enter(self, phase: ReconcileState) -> Optional[int]:
        with self._lock:
            if not self._accepting:
                return None
            self._cycle_seq += 1
            self._phases[self._cycle_seq] = phase
            return self._cycle_seq

    def _set_phase(self, cycle_id: int, phase: ReconcileState):
        with self._lock:
            self._phases[cycle_id] = phase

    def _leave(self, cycle_id: int):
        with self._idle:
            self._phases.pop(cycle_id, None)
            if not self._phases:
                self._idle.notify_all()
