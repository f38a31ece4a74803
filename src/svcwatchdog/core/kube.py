#!/usr/bin/env python3
"""
Kubernetes API client construction
"""

import os
import logging
from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.config.config_exception import ConfigException

from ..config import KubernetesSettings
from .exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)


def create_core_api(kube_settings: KubernetesSettings) -> client.CoreV1Api:
    """
    Load cluster credentials and build a CoreV1Api client

    In-cluster mode uses the pod's service account; otherwise the kubeconfig
    at ``kubeconfig_path`` (or the default location) is loaded.

    Raises:
        UpstreamUnavailable: credentials could not be loaded
    """
    namespace = kube_settings.namespace
    try:
        if kube_settings.in_cluster:
            logger.info("Loading in-cluster config")
            k8s_config.load_incluster_config()
        else:
            kubeconfig_path = kube_settings.kubeconfig_path
            if kubeconfig_path and not os.path.exists(kubeconfig_path):
                raise UpstreamUnavailable(namespace, f"kubeconfig file not found: {kubeconfig_path}")

            logger.info(f"Loading kubeconfig from: {kubeconfig_path or 'default location'}")
            k8s_config.load_kube_config(config_file=kubeconfig_path, context=kube_settings.context)
    except ConfigException as e:
        raise UpstreamUnavailable(namespace, f"could not load cluster credentials: {e}") from e

    logger.info("Kubernetes client initialized successfully")
    return client.CoreV1Api()
