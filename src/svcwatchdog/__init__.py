"""
Service WatchDog - exports Kubernetes LoadBalancer services as a Prometheus gauge
"""

__version__ = "1.0.0"
