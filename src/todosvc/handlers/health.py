"""
=============================================================================
HEALTH ENDPOINTS
=============================================================================

Served on the debug listener, never behind auth:

    GET /debug/health         all checks, 200 or 503
    GET /debug/health/live    process is up, always 200
    GET /debug/health/ready   200 while every check passes and the service
                              is not draining, else 503

Response of /debug/health:

    {
        "status": "healthy",
        "uptime_seconds": 3600,
        "checks": {
            "store": {"status": "healthy", "message": "OK", "todos": 3}
        }
    }
=============================================================================
"""

import time
import logging
from typing import Callable, Dict, Any
from dataclasses import dataclass, field

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.router import Router
from ..http.status_codes import HTTPStatus
from ..store import Persistence


logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    """Result of one health check."""

    healthy: bool
    message: str = "OK"
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "status": "healthy" if self.healthy else "unhealthy",
            "message": self.message,
            **self.details,
        }


HealthCheck = Callable[[], HealthStatus]


def store_check(store: Persistence) -> HealthCheck:
    """
    Health check that lists the store.

    Listing takes the store's read lock, so a store wedged by a stuck
    writer shows up here as a hanging probe rather than a false "healthy".
    """
    def check() -> HealthStatus:
        return HealthStatus(healthy=True, details={"todos": len(store.get_all_todos())})
    return check


class HealthHandler:
    """
    Liveness, readiness and aggregate health.

        health = HealthHandler()
        health.add_check("store", store_check(store))
        health.register(debug_router, "/debug/health")
    """

    def __init__(self, include_details: bool = True):
        self.include_details = include_details
        self._checks: Dict[str, HealthCheck] = {}
        self._start_time = time.time()
        self._draining = False

    def add_check(self, name: str, check: HealthCheck) -> "HealthHandler":
        self._checks[name] = check
        return self

    def mark_draining(self) -> None:
        """Fail readiness from now on (graceful shutdown has begun)."""
        self._draining = True

    def register(self, router: Router, prefix: str = "/health") -> None:
        router.add_route(prefix, self.handle, "GET", name="health")
        router.add_route(prefix + "/live", self.liveness, "GET", name="health_live")
        router.add_route(prefix + "/ready", self.readiness, "GET", name="health_ready")

    def _run_checks(self) -> tuple[bool, Dict[str, dict]]:
        results = {}
        all_healthy = True
        for name, check in self._checks.items():
            try:
                status = check()
            except Exception as e:
                logger.warning(f"Health check {name!r} raised: {e}")
                results[name] = {"status": "unhealthy", "error": str(e)}
                all_healthy = False
                continue
            results[name] = status.to_dict()
            if not status.healthy:
                all_healthy = False
        return all_healthy, results

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        all_healthy, results = self._run_checks()

        body: Dict[str, Any] = {
            "status": "healthy" if all_healthy else "unhealthy",
            "uptime_seconds": int(self.uptime),
        }
        if self.include_details and results:
            body["checks"] = results

        status = HTTPStatus.OK if all_healthy else HTTPStatus.SERVICE_UNAVAILABLE
        return ResponseBuilder().status(status).json(body).no_cache().build()

    def liveness(self, request: HTTPRequest) -> HTTPResponse:
        return ResponseBuilder().json({"status": "alive"}).no_cache().build()

    def readiness(self, request: HTTPRequest) -> HTTPResponse:
        if self._draining:
            return self._not_ready("shutting down")

        all_healthy, results = self._run_checks()
        if not all_healthy:
            failed = sorted(name for name, r in results.items() if r["status"] != "healthy")
            return self._not_ready(f"failed checks: {', '.join(failed)}")

        return ResponseBuilder().json({"status": "ready"}).no_cache().build()

    def _not_ready(self, reason: str) -> HTTPResponse:
        return (ResponseBuilder()
            .status(HTTPStatus.SERVICE_UNAVAILABLE)
            .json({"status": "not ready", "reason": reason})
            .no_cache()
            .build())

    @property
    def uptime(self) -> float:
        return time.time() - self._start_time
