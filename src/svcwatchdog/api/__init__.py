"""
HTTP API for the watchdog
"""

from .server import APIServer

__all__ = ["APIServer"]
