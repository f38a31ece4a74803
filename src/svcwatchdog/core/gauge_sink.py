#!/usr/bin/env python3
"""
Load balancer gauge exported to Prometheus

The sink owns the single ``load_balancer`` gauge. Every publish swaps the
function the scrape calls for a new one bound to an immutable tuple of
records, so a scrape always sees one complete observation set and nothing
left over from an earlier one.
"""

import functools
import logging
import threading
from collections import OrderedDict, deque
from typing import Callable, Deque, Dict, Iterable, List, Optional, Tuple
from prometheus_client import REGISTRY, CollectorRegistry
from prometheus_client.core import GaugeMetricFamily

from ..events import ChangeType, ResourceChangeEvent
from ..models import LoadBalancerRecord, ResourceSnapshot
from .exceptions import CallbackRegistrationFailed, InstrumentCreationFailed

logger = logging.getLogger(__name__)

LABEL_NAMES = ("service_name", "load_balancer_name", "load_balancer_ip", "namespace")

# Watch events kept for replay onto full snapshots that were listed before them
EVENT_JOURNAL_SIZE = 1024

Observation = Tuple[Dict[str, str], float]
ServiceKey = Tuple[str, str]


def observations_for(records: Iterable[LoadBalancerRecord]) -> List[Observation]:
    """One (labels, value) pair per record"""
    return [(record.labels(), record.value) for record in records]


def _dedupe(records: Iterable[LoadBalancerRecord]) -> Tuple[LoadBalancerRecord, ...]:
    seen = set()
    unique = []
    for record in records:
        identity = (record.namespace, record.load_balancer_name, record.load_balancer_ip)
        if identity in seen:
            continue
        seen.add(identity)
        unique.append(record)
    return tuple(unique)


def _apply(entries: "OrderedDict[ServiceKey, Tuple[LoadBalancerRecord, ...]]", event: ResourceChangeEvent):
    records = _dedupe(event.records)
    if event.change_type == ChangeType.DELETED or not records:
        entries.pop(event.key, None)
    else:
        entries[event.key] = records


class LoadBalancerCollector:
    """Custom collector read by the Prometheus registry on every scrape"""

    def __init__(self, name: str, documentation: str, observe: Callable[[], List[Observation]]):
        self.name = name
        self.documentation = documentation
        self._observe = observe

    def describe(self):
        return [GaugeMetricFamily(self.name, self.documentation, labels=LABEL_NAMES)]

    def collect(self):
        family = GaugeMetricFamily(self.name, self.documentation, labels=LABEL_NAMES)
        for labels, value in self._observe():
            family.add_metric([labels[label] for label in LABEL_NAMES], value)
        yield family


class LoadBalancerGaugeSink:
    """Holds the currently exported load balancer observations"""

    def __init__(
        self,
        registry: CollectorRegistry = REGISTRY,
        metric_name: str = "load_balancer",
        description: str = "Service WatchDog - Load Balancers"
    ):
        self.registry = registry
        self.metric_name = metric_name
        self.description = description

        self._lock = threading.Lock()
        self._entries: "OrderedDict[ServiceKey, Tuple[LoadBalancerRecord, ...]]" = OrderedDict()
        self._records: Tuple[LoadBalancerRecord, ...] = ()
        self._callback: Callable[[], List[Observation]] = functools.partial(observations_for, ())
        self._collector: Optional[LoadBalancerCollector] = None
        self._closed = False
        self.generation = 0
        self._event_seq = 0
        self._journal: Deque[Tuple[int, ResourceChangeEvent]] = deque(maxlen=EVENT_JOURNAL_SIZE)

    @property
    def instrument_created(self) -> bool:
        return self._collector is not None

    def create_instrument(self):
        """
        Register the gauge with the registry; a no-op once it exists

        Raises:
            InstrumentCreationFailed: the sink is closed or the registry refused the gauge
        """
        with self._lock:
            if self._collector is not None:
                return
            if self._closed:
                raise InstrumentCreationFailed(self.metric_name, "sink is closed")

            collector = LoadBalancerCollector(self.metric_name, self.description, self.observations)
            try:
                self.registry.register(collector)
            except ValueError as e:
                raise InstrumentCreationFailed(self.metric_name, str(e)) from e

            self._collector = collector
            logger.info(f"Registered gauge {self.metric_name}")

    def event_mark(self) -> int:
        """Position in the watch event journal; pass it to ``publish_full`` for a snapshot listed after this call"""
        with self._lock:
            return self._event_seq

    def publish_full(self, snapshot: ResourceSnapshot, events_after: Optional[int] = None) -> int:
        """
        Replace every observation with the records of a snapshot

        Args:
            snapshot: Full listing of the namespace
            events_after: Journal mark taken before listing; watch events
                applied since then are replayed on top of the snapshot

        Returns:
            Number of records now exported
        """
        self.create_instrument()

        entries: "OrderedDict[ServiceKey, Tuple[LoadBalancerRecord, ...]]" = OrderedDict()
        for record in _dedupe(snapshot.records):
            entries[record.key] = entries.get(record.key, ()) + (record,)

        with self._lock:
            if events_after is not None:
                self._replay(entries, events_after)
            count = self._register(entries)

        logger.info(f"Published {count} load balancer records for namespace {snapshot.namespace}")
        return count

    def apply_event(self, event: ResourceChangeEvent) -> int:
        """
        Upsert or remove the records of a single service

        Returns:
            Number of records now exported
        """
        self.create_instrument()

        with self._lock:
            entries = OrderedDict(self._entries)
            _apply(entries, event)
            count = self._register(entries)
            self._event_seq += 1
            self._journal.append((self._event_seq, event))

        logger.info(f"Applied {event.change_type.value} for load balancer {event.name} ({count} records exported)")
        return count

    def _replay(self, entries: "OrderedDict[ServiceKey, Tuple[LoadBalancerRecord, ...]]", events_after: int):
        """Apply journaled events newer than the mark; caller holds the lock"""
        if self._journal and self._journal[0][0] > events_after + 1:
            logger.warning(
                f"Event journal no longer holds events since mark {events_after}, "
                f"replaying the {len(self._journal)} most recent"
            )
        for seq, event in self._journal:
            if seq > events_after:
                _apply(entries, event)

    def _register(self, entries: "OrderedDict[ServiceKey, Tuple[LoadBalancerRecord, ...]]") -> int:
        """Swap the scrape callback; caller holds the lock"""
        if self._closed or self._collector is None:
            raise CallbackRegistrationFailed("gauge is not registered, keeping the previous observations")

        records = tuple(record for service_records in entries.values() for record in service_records)
        for record in records:
            empty = [name for name, value in record.labels().items() if not value]
            if empty:
                raise CallbackRegistrationFailed(
                    f"record for {record.load_balancer_name!r} has empty labels: {', '.join(empty)}",
                    {"labels": record.labels()}
                )

        self._callback = functools.partial(observations_for, records)
        self._entries = entries
        self._records = records
        self.generation += 1
        return len(records)

    def observations(self) -> List[Observation]:
        """What a scrape reports right now"""
        with self._lock:
            callback = self._callback
        return callback()

    def records(self) -> Tuple[LoadBalancerRecord, ...]:
        with self._lock:
            return self._records

    def close(self):
        """Unregister the gauge; later publishes fail"""
        with self._lock:
            collector = self._collector
            self._collector = None
            self._closed = True
        if collector is not None:
            try:
                self.registry.unregister(collector)
            except KeyError:
                logger.warning(f"Gauge {self.metric_name} was already unregistered")
            logger.info(f"Unregistered gauge {self.metric_name}")
