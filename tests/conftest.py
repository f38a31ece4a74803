"""
Shared fixtures and mock Kubernetes clients for the watchdog tests
"""

import pytest
from typing import List, Optional
from unittest.mock import Mock
from kubernetes import client
from prometheus_client import CollectorRegistry

from svcwatchdog.core.gauge_sink import LoadBalancerGaugeSink
from svcwatchdog.core.lister import ServiceLister


def make_service(
    name: str,
    service_type: str = "LoadBalancer",
    ips: Optional[List[str]] = None,
    namespace: str = "default",
    hostnames: Optional[List[str]] = None,
    resource_version: str = "1"
) -> client.V1Service:
    """Build a V1Service the way the API server returns it"""
    ingress = [client.V1LoadBalancerIngress(ip=ip) for ip in ips or []]
    ingress += [client.V1LoadBalancerIngress(hostname=hostname) for hostname in hostnames or []]
    return client.V1Service(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace, resource_version=resource_version),
        spec=client.V1ServiceSpec(type=service_type),
        status=client.V1ServiceStatus(
            load_balancer=client.V1LoadBalancerStatus(ingress=ingress or None)
        )
    )


class MockKubernetesClient:
    """Mock CoreV1Api serving services from memory"""

    def __init__(self):
        self.services: List[client.V1Service] = []
        self.error: Optional[Exception] = None
        self.list_calls = 0

    def list_namespaced_service(self, namespace: str, **kwargs):
        """Mock list_namespaced_service method"""
        self.list_calls += 1
        if self.error is not None:
            raise self.error
        items = [svc for svc in self.services if svc.metadata.namespace == namespace]
        return Mock(items=items, metadata=Mock(resource_version="100"))

    def add_service(self, *args, **kwargs) -> client.V1Service:
        """Helper to add mock service"""
        service = make_service(*args, **kwargs)
        self.services.append(service)
        return service

    def remove_service(self, name: str):
        self.services = [svc for svc in self.services if svc.metadata.name != name]


class MockWatch:
    """Mock kubernetes.watch.Watch replaying scripted events"""

    def __init__(self, events=None, error: Optional[Exception] = None):
        self.events = list(events or [])
        self.error = error
        self.stopped = False
        self.stream_kwargs = None

    def stream(self, func, **kwargs):
        self.stream_kwargs = kwargs
        for event in self.events:
            if self.stopped:
                return
            yield event
        if self.error is not None:
            raise self.error

    def stop(self):
        self.stopped = True


@pytest.fixture
def k8s_api():
    return MockKubernetesClient()


@pytest.fixture
def registry():
    """Isolated registry so tests never see each other's gauges"""
    return CollectorRegistry()


@pytest.fixture
def sink(registry):
    return LoadBalancerGaugeSink(registry=registry)


@pytest.fixture
def lister(k8s_api):
    return ServiceLister(k8s_api, service_name="watchdog")


def scrape(registry: CollectorRegistry, metric_name: str = "load_balancer"):
    """Samples of a metric as (labels, value) pairs, the way Prometheus sees them"""
    samples = []
    for family in registry.collect():
        if family.name != metric_name:
            continue
        for sample in family.samples:
            samples.append((sample.labels, sample.value))
    return samples
