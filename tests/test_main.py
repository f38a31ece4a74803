"""
Tests for service wiring and settings loading in the entry point
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

from svcwatchdog.config import KubernetesSettings, LoggingSettings, Settings, WatchdogSettings
from svcwatchdog.core.exceptions import ConfigurationException
from svcwatchdog.main import WatchdogService, load_settings

from conftest import scrape

SRC_DIR = Path(__file__).resolve().parents[1] / "src"


def make_settings(**watchdog):
    watchdog.setdefault("watch_enabled", False)
    return Settings(
        kubernetes=KubernetesSettings(namespace="default"),
        watchdog=WatchdogSettings(**watchdog),
        logging=LoggingSettings(level="WARNING", colors=False)
    )


class TestWatchdogService:
    """Test component wiring with a fake Kubernetes client"""

    def test_wiring_exports_load_balancers(self, k8s_api, registry):
        k8s_api.add_service("A", ips=["1.2.3.4"])
        service = WatchdogService(make_settings(), registry=registry, core_api=k8s_api)

        result = service.reconciler.start()
        service.cleanup()

        assert result.succeeded
        assert service.watcher is None
        assert service.reconciler.namespace == "default"
        # cleanup unregisters the gauge
        assert scrape(registry) == []

    def test_custom_metric_name_and_service_name(self, k8s_api, registry):
        k8s_api.add_service("A", ips=["1.2.3.4"])
        service = WatchdogService(
            make_settings(metric_name="svc_lb", service_name="edge"),
            registry=registry,
            core_api=k8s_api
        )

        service.reconciler.start()

        assert scrape(registry, "svc_lb")[0][0]["service_name"] == "edge"
        service.cleanup()

    def test_watcher_is_built_when_enabled(self, k8s_api, registry):
        service = WatchdogService(make_settings(watch_enabled=True), registry=registry, core_api=k8s_api)

        assert service.watcher is not None
        assert service.reconciler.watcher is service.watcher

    def test_stop_releases_run_loop(self, k8s_api, registry):
        service = WatchdogService(make_settings(), registry=registry, core_api=k8s_api)

        service.stop()

        assert service._stop_event.is_set()


class TestLoadSettings:
    def test_invalid_value_raises_configuration_exception(self, monkeypatch):
        monkeypatch.setenv("WATCH_TIMEOUT_SECONDS", "-5")

        with pytest.raises(ConfigurationException):
            load_settings(None)

    def test_yaml_file_is_loaded(self, tmp_path, monkeypatch):
        monkeypatch.delenv("NAMESPACE", raising=False)
        monkeypatch.delenv("POD_NAMESPACE", raising=False)
        path = tmp_path / "watchdog.yaml"
        path.write_text("kubernetes:\n  namespace: edge\n")

        assert load_settings(str(path)).kubernetes.namespace == "edge"

    def test_import_does_not_read_environment(self):
        """A bad value must reach load_settings instead of failing at import"""
        env = dict(os.environ, WATCH_TIMEOUT_SECONDS="-5")
        env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))

        result = subprocess.run(
            [sys.executable, "-c", "import svcwatchdog.main"],
            env=env, capture_output=True, text=True, timeout=60
        )

        assert result.returncode == 0, result.stderr


def test_invalid_environment_exits_with_code_2(tmp_path):
    env = dict(os.environ, WATCH_TIMEOUT_SECONDS="-5")
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))

    result = subprocess.run(
        [sys.executable, "-m", "svcwatchdog.main", "--config", str(tmp_path / "absent.yaml")],
        env=env, cwd=str(tmp_path), capture_output=True, text=True, timeout=60
    )

    assert result.returncode == 2
    assert "Invalid configuration" in result.stderr
