#!/usr/bin/env python3
"""
FastAPI server module for watchdog trigger and status endpoints
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from fastapi import FastAPI
from fastapi.responses import JSONResponse
import uvicorn

from ..core.reconciler import ReconcileLoop
from ..models import HealthStatus, SyncResult

logger = logging.getLogger(__name__)

TRIGGER_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


class APIServer:
    """FastAPI server for watchdog endpoints"""

    def __init__(self, reconciler: ReconcileLoop, config: Optional[Dict[str, Any]] = None):
        """
        Initialize API server

        Args:
            reconciler: ReconcileLoop instance
            config: Sanitized configuration dictionary served on /config
        """
        self.reconciler = reconciler
        self.config = config or {}
        self.app = FastAPI(
            title="Service WatchDog API",
            description="Triggers load balancer discovery and reports exporter status",
            version="1.0.0"
        )
        self._server: Optional[uvicorn.Server] = None
        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes"""

        # Plain def: FastAPI runs each trigger on its own worker thread
        @self.app.api_route("/", methods=TRIGGER_METHODS, response_model=SyncResult)
        def trigger_sync():
            """Run one poll cycle; failures only show up in the body and logs"""
            result = self.reconciler.sync(trigger="http")
            if not result.succeeded:
                logger.warning(f"HTTP triggered sync {result.status}: {result.message or ''}")
            return result

        @self.app.get("/health", response_model=HealthStatus)
        async def health_check():
            """Liveness endpoint"""
            return HealthStatus(
                status="healthy",
                details={"state": self.reconciler.state.value}
            )

        @self.app.get("/ready")
        async def readiness_check():
            """Readiness endpoint, 503 until the initial sync ran"""
            ready = self.reconciler.ready
            last = self.reconciler.last_result
            return JSONResponse(
                content={
                    "status": "ready" if ready else "not_ready",
                    "last_sync": last.status if last else None,
                    "timestamp": datetime.now(timezone.utc).isoformat()
                },
                status_code=200 if ready else 503
            )

        @self.app.get("/status")
        async def get_status():
            """Get detailed reconcile loop status"""
            return self.reconciler.status()

        @self.app.get("/loadbalancers")
        async def get_load_balancers():
            """Records currently exported on the gauge"""
            records = self.reconciler.sink.records()
            return {
                "load_balancers": [record.model_dump() for record in records],
                "count": len(records),
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

        @self.app.get("/config")
        async def get_config():
            """Get current watchdog configuration (sanitized)"""
            return self.config

    def run(self, host: str = "0.0.0.0", port: int = 8080):
        """Run the API server; blocks until ``stop`` is called"""
        logger.info(f"Starting API server on {host}:{port}")
        config = uvicorn.Config(self.app, host=host, port=port, log_level="info")
        self._server = uvicorn.Server(config)
        self._server.run()

    def stop(self):
        """Ask uvicorn to finish open requests and exit"""
        if self._server is not None:
            self._server.should_exit = True
