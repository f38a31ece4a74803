"""
Tests for the HTTP trigger and status endpoints
"""

import pytest
from fastapi.testclient import TestClient
from kubernetes.client.rest import ApiException

from svcwatchdog.api import APIServer
from svcwatchdog.core.reconciler import ReconcileLoop


@pytest.fixture
def reconciler(lister, sink):
    loop = ReconcileLoop(lister, sink, namespace="default")
    yield loop
    loop.shutdown(timeout=1)


@pytest.fixture
def client(reconciler):
    server = APIServer(reconciler, config={"kubernetes": {"namespace": "default"}})
    return TestClient(server.app)


class TestTriggerEndpoint:
    """Any request to the root path runs one poll cycle"""

    @pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE"])
    def test_any_method_triggers_sync(self, k8s_api, client, method):
        k8s_api.add_service("A", ips=["1.2.3.4"])

        response = client.request(method, "/")

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        assert response.json()["load_balancers"] == ["A"]
        assert k8s_api.list_calls == 1

    def test_failure_still_answers_200(self, k8s_api, client):
        k8s_api.error = ApiException(status=500, reason="Internal Server Error")

        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "failed"
        assert response.json()["error"] == "UpstreamUnavailable"

    def test_trigger_after_shutdown_is_rejected(self, reconciler, client):
        reconciler.shutdown(timeout=1)

        response = client.post("/")

        assert response.status_code == 200
        assert response.json()["status"] == "rejected"


class TestStatusEndpoints:
    """Test health, readiness and inspection endpoints"""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["details"]["state"] == "idle"

    def test_ready_only_after_start(self, reconciler, client):
        assert client.get("/ready").status_code == 503

        reconciler.start()

        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"
        assert response.json()["last_sync"] == "success"

    def test_loadbalancers_lists_exported_records(self, k8s_api, reconciler, client):
        k8s_api.add_service("A", ips=["1.2.3.4", "5.6.7.8"])
        reconciler.start()

        body = client.get("/loadbalancers").json()

        assert body["count"] == 2
        assert {lb["load_balancer_ip"] for lb in body["load_balancers"]} == {"1.2.3.4", "5.6.7.8"}

    def test_status(self, reconciler, client):
        reconciler.start()

        body = client.get("/status").json()

        assert body["namespace"] == "default"
        assert body["ready"] is True
        assert body["watch"]["state"] == "disabled"

    def test_config(self, client):
        assert client.get("/config").json() == {"kubernetes": {"namespace": "default"}}
