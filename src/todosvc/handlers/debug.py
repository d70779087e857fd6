"""
Published runtime variables, served as JSON on GET /debug/vars.

    vars = DebugVars()
    vars.publish("todos", lambda: len(store))
    vars.register(debug_router, "/debug/vars")

Each value is a callable evaluated per request, so the page is always
current. A callable that raises shows up as {"error": "..."} for that
key instead of failing the page.
"""

import sys
import time
import logging
from typing import Any, Callable, Dict

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.router import Router


logger = logging.getLogger(__name__)


class DebugVars:
    def __init__(self, build: str = "develop"):
        self._vars: Dict[str, Callable[[], Any]] = {}
        self._start_time = time.time()
        self.publish("build", lambda: build)
        self.publish("cmdline", lambda: list(sys.argv))
        self.publish("uptime_seconds", lambda: round(time.time() - self._start_time, 3))

    def publish(self, name: str, func: Callable[[], Any]) -> None:
        """Register (or replace) a variable."""
        self._vars[name] = func

    def snapshot(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name, func in self._vars.items():
            try:
                values[name] = func()
            except Exception as e:
                logger.warning(f"Debug var {name!r} failed: {e}")
                values[name] = {"error": str(e)}
        return values

    def register(self, router: Router, path: str = "/debug/vars") -> None:
        router.add_route(path, self.handle, "GET", name="debug_vars")

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        return ResponseBuilder().json(self.snapshot(), pretty=True).no_cache().build()
