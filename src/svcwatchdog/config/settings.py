#!/usr/bin/env python3
"""
Configuration settings using Pydantic for environment variable loading
"""

import os
from typing import Optional, Dict, Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

DEFAULT_NAMESPACE = "default"
DEFAULT_HTTP_PORT = 8080
DEFAULT_METRICS_PORT = 9091


def _port_or_default(value: Any, default: int) -> int:
    """Unset, non-numeric or out of range ports fall back to the default"""
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    if not 0 < port < 65536:
        return default
    return port


class KubernetesSettings(BaseSettings):
    """Kubernetes configuration settings"""
    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True, env_ignore_empty=True)

    in_cluster: bool = Field(True, validation_alias="KUBERNETES_IN_CLUSTER")
    kubeconfig_path: Optional[str] = Field(None, validation_alias="KUBECONFIG_PATH")
    context: Optional[str] = Field(None, validation_alias="KUBERNETES_CONTEXT")
    namespace: str = Field(DEFAULT_NAMESPACE, validation_alias=AliasChoices("NAMESPACE", "POD_NAMESPACE"))
    request_timeout: float = Field(10.0, gt=0, validation_alias="KUBERNETES_REQUEST_TIMEOUT")

    @field_validator("namespace", mode="before")
    @classmethod
    def validate_namespace(cls, v):
        if v is None or not str(v).strip():
            return DEFAULT_NAMESPACE
        return str(v).strip()


class WatchdogSettings(BaseSettings):
    """Exporter, HTTP surface and reconcile loop settings"""
    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    service_name: str = Field("watchdog", validation_alias="WATCHDOG_SERVICE_NAME")
    metric_name: str = Field("load_balancer", validation_alias="WATCHDOG_METRIC_NAME")
    metric_description: str = Field("Service WatchDog - Load Balancers", validation_alias="WATCHDOG_METRIC_DESCRIPTION")

    # HTTP settings
    http_host: str = Field("0.0.0.0", validation_alias="HTTP_HOST")
    http_port: int = Field(DEFAULT_HTTP_PORT, validation_alias="HTTP_PORT")
    metrics_port: int = Field(DEFAULT_METRICS_PORT, validation_alias="METRICS_PORT")

    # Watch settings
    watch_enabled: bool = Field(True, validation_alias="WATCH_ENABLED")
    watch_timeout_seconds: int = Field(300, ge=0, validation_alias="WATCH_TIMEOUT_SECONDS")
    watch_backoff_initial: float = Field(1.0, gt=0, validation_alias="WATCH_BACKOFF_INITIAL")
    watch_backoff_max: float = Field(30.0, gt=0, validation_alias="WATCH_BACKOFF_MAX")

    # Reconcile settings
    resync_interval_seconds: int = Field(0, ge=0, validation_alias="RESYNC_INTERVAL_SECONDS")
    shutdown_timeout_seconds: float = Field(10.0, ge=0, validation_alias="SHUTDOWN_TIMEOUT_SECONDS")

    @field_validator("http_port", mode="before")
    @classmethod
    def validate_http_port(cls, v):
        return _port_or_default(v, DEFAULT_HTTP_PORT)

    @field_validator("metrics_port", mode="before")
    @classmethod
    def validate_metrics_port(cls, v):
        return _port_or_default(v, DEFAULT_METRICS_PORT)


class LoggingSettings(BaseSettings):
    """Logging configuration settings"""
    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    level: str = Field("INFO", validation_alias="LOG_LEVEL")
    file: Optional[str] = Field(None, validation_alias="LOG_FILE")
    colors: bool = Field(True, validation_alias="LOG_COLORS")


class Settings(BaseSettings):
    """Main settings class that includes all sub-settings"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True
    )

    # Environment
    environment: str = Field("development", validation_alias="ENVIRONMENT")
    debug: bool = Field(False, validation_alias="DEBUG")

    # Component settings
    kubernetes: KubernetesSettings = Field(default_factory=KubernetesSettings)
    watchdog: WatchdogSettings = Field(default_factory=WatchdogSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def get_config_dict(self) -> Dict[str, Any]:
        """Sanitized view of the effective configuration"""
        return {
            "environment": self.environment,
            "kubernetes": {
                "in_cluster": self.kubernetes.in_cluster,
                "kubeconfig_path": self.kubernetes.kubeconfig_path,
                "context": self.kubernetes.context,
                "namespace": self.kubernetes.namespace,
                "request_timeout": self.kubernetes.request_timeout
            },
            "watchdog": {
                "service_name": self.watchdog.service_name,
                "metric_name": self.watchdog.metric_name,
                "http_port": self.watchdog.http_port,
                "metrics_port": self.watchdog.metrics_port,
                "watch_enabled": self.watchdog.watch_enabled,
                "watch_timeout_seconds": self.watchdog.watch_timeout_seconds,
                "resync_interval_seconds": self.watchdog.resync_interval_seconds
            },
            "logging": {
                "level": self.logging.level,
                "file": self.logging.file
            }
        }

    @classmethod
    def load_from_yaml_with_env_override(cls, yaml_path: str) -> "Settings":
        """Load settings from YAML file and override with environment variables"""
        import yaml

        yaml_config = {}
        if os.path.exists(yaml_path):
            with open(yaml_path, 'r') as f:
                yaml_config = yaml.safe_load(f) or {}

        return Settings(
            environment=os.getenv("ENVIRONMENT", yaml_config.get("environment", "development")),
            debug=os.getenv("DEBUG", yaml_config.get("debug", False)),
            kubernetes=KubernetesSettings(**_without_env_overrides(KubernetesSettings, yaml_config.get("kubernetes"))),
            watchdog=WatchdogSettings(**_without_env_overrides(WatchdogSettings, yaml_config.get("watchdog"))),
            logging=LoggingSettings(**_without_env_overrides(LoggingSettings, yaml_config.get("logging")))
        )


def _env_names(field_info) -> list:
    alias = field_info.validation_alias
    if alias is None:
        return []
    if isinstance(alias, str):
        return [alias]
    return [choice for choice in getattr(alias, "choices", []) if isinstance(choice, str)]


def _without_env_overrides(settings_cls, values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop YAML values whose environment variable is set, so the environment wins"""
    ignore_empty = settings_cls.model_config.get("env_ignore_empty", False)
    environ = {key.upper() for key, value in os.environ.items() if value or not ignore_empty}
    kept = {}
    for name, value in (values or {}).items():
        field_info = settings_cls.model_fields.get(name)
        if field_info is None:
            continue
        if any(env_name.upper() in environ for env_name in _env_names(field_info)):
            continue
        kept[name] = value
    return kept

