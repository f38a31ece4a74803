#!/usr/bin/env python3
"""
One-shot discovery of LoadBalancer services in a namespace
"""

import logging
from typing import List, Optional, Tuple
from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from ..models import LoadBalancerRecord, ResourceSnapshot
from .exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

LOAD_BALANCER_TYPE = "LoadBalancer"


def is_load_balancer(service) -> bool:
    spec = getattr(service, "spec", None)
    return spec is not None and spec.type == LOAD_BALANCER_TYPE


def ingress_addresses(service) -> List[str]:
    """Distinct ingress addresses of a service, IP preferred over hostname"""
    status = getattr(service, "status", None)
    load_balancer = getattr(status, "load_balancer", None)
    addresses: List[str] = []
    for ingress in getattr(load_balancer, "ingress", None) or []:
        address = ingress.ip or ingress.hostname
        if address and address not in addresses:
            addresses.append(address)
    return addresses


def records_from_service(
    service,
    service_name: str,
    namespace: Optional[str] = None
) -> Tuple[LoadBalancerRecord, ...]:
    """
    Expand a service into one record per ingress address

    Services of another type, and LoadBalancer services still waiting for an
    address, yield no records.
    """
    if not is_load_balancer(service):
        return ()

    name = service.metadata.name
    namespace = service.metadata.namespace or namespace
    return tuple(
        LoadBalancerRecord(
            service_name=service_name,
            load_balancer_name=name,
            load_balancer_ip=address,
            namespace=namespace,
        )
        for address in ingress_addresses(service)
    )


class ServiceLister:
    """Lists LoadBalancer services through the Kubernetes API"""

    def __init__(
        self,
        core_api: Optional[client.CoreV1Api],
        service_name: str = "watchdog",
        request_timeout: Optional[float] = None
    ):
        """
        Initialize the lister

        Args:
            core_api: Kubernetes CoreV1Api client (None when credentials could not be loaded)
            service_name: Identity tag stamped on every record
            request_timeout: Per request timeout in seconds
        """
        self.core_api = core_api
        self.service_name = service_name
        self.request_timeout = request_timeout

    def list(self, namespace: str) -> ResourceSnapshot:
        """
        Take a snapshot of the LoadBalancer services in a namespace

        Raises:
            UpstreamUnavailable: the API could not be reached or refused the request
        """
        if self.core_api is None:
            raise UpstreamUnavailable(namespace, "Kubernetes client is not initialized")

        kwargs = {}
        if self.request_timeout:
            kwargs["_request_timeout"] = self.request_timeout

        try:
            services = self.core_api.list_namespaced_service(namespace=namespace, **kwargs)
        except ApiException as e:
            raise UpstreamUnavailable(namespace, e.reason or str(e), status=e.status) from e
        except HTTPError as e:
            raise UpstreamUnavailable(namespace, str(e)) from e

        records: List[LoadBalancerRecord] = []
        for service in services.items or []:
            service_records = records_from_service(service, self.service_name, namespace)
            if is_load_balancer(service) and not service_records:
                logger.debug(f"Load balancer {service.metadata.name} has no ingress yet")
            for record in service_records:
                logger.debug(f"Found load balancer {record.load_balancer_name} at {record.load_balancer_ip}")
            records.extend(service_records)

        logger.info(f"Found {len(records)} load balancer records in namespace {namespace}")
        return ResourceSnapshot(namespace=namespace, records=tuple(records))
