"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to handler functions.

- Static paths:        /api/v1/todo
- Dynamic parameters:  /api/v1/todo/:id
- Wildcard tails:      /debug/*rest
- Route groups with their own middleware

=============================================================================
ROUTE TREE OF THIS SERVICE
=============================================================================

    root Router                  server-wide: logging, recovery
    └── group "/api/v1"          middleware: basic auth
        └── group "/todo"
            ├── POST    /api/v1/todo
            ├── GET     /api/v1/todo
            ├── GET     /api/v1/todo/:id     (name="get_todo")
            ├── PUT     /api/v1/todo/:id
            └── DELETE  /api/v1/todo/:id

=============================================================================
PATTERN COMPILATION
=============================================================================

    Pattern:  /api/v1/todo/:id
    Regex:    ^/api/v1/todo/(?P<id>[^/]+)$

    GET /api/v1/todo/42   → match, path_params = {"id": "42"}
    GET /api/v1/todo/4/2  → no match (":id" is exactly one segment)

=============================================================================
GROUP MIDDLEWARE
=============================================================================

A group's middleware wraps EVERYTHING dispatched under its prefix,
including the 404/405 answers for paths nobody registered:

    GET /api/v1/nope  (no credentials)
        └── group "/api/v1" matches the prefix
            └── basic auth runs first → 401, not 404

So an anonymous client cannot probe which resources exist.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, Any, List
import re

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed


# A handler takes a request and returns a response
Handler = Callable[[HTTPRequest], HTTPResponse]

# Anything callable as middleware(request, next) → response.
# Middleware objects from todosvc.middleware satisfy this.
RouteMiddleware = Callable[[HTTPRequest, Handler], HTTPResponse]


@dataclass
class Route:
    """A URL pattern bound to a handler."""

    path: str                        # Full pattern, e.g. /api/v1/todo/:id
    method: Optional[str]            # None = any method
    handler: Handler
    name: Optional[str] = None       # For url_for()
    meta: Dict[str, Any] = field(default_factory=dict)

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    """A matched route and the path parameters extracted from the URL."""

    route: Route
    params: Dict[str, str]


def _normalize(path: str) -> str:
    """Ensure a leading slash and drop trailing ones."""
    return "/" + path.strip("/") if path != "/" else "/"


class Router:
    """
    HTTP request router with path parameters and route groups.

        router = Router()
        api = router.group("/api/v1")
        api.use(BasicAuthMiddleware(credentials))

        @api.get("/todo/:id", name="get_todo")
        def get_todo(request):
            todo_id = request.path_params["id"]
            ...

        response = router.handle(request)

    First registered, first matched: register specific routes before
    overlapping parameterized ones.
    """

    def __init__(self, prefix: str = ""):
        """
        Args:
            prefix: URL prefix prepended to every route of this router.
        """
        self.prefix = prefix.rstrip("/")
        self._routes: List[Route] = []
        self._named_routes: Dict[str, Route] = {}
        self._sub_routers: List["Router"] = []
        self._middleware: List[RouteMiddleware] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        name: Optional[str] = None,
        **meta: Any
    ) -> Route:
        """
        Register a route.

        Args:
            path: Pattern relative to this router's prefix (e.g. /:id).
            handler: Function taking a request, returning a response.
            method: HTTP method, None for any.
            name: Optional name for url_for().
            **meta: Free-form metadata kept on the Route.

        Returns:
            The registered Route.
        """
        full_path = self.prefix + path
        pattern, param_names = self._compile_pattern(full_path)

        route = Route(
            path=full_path,
            method=method.upper() if method else None,
            handler=handler,
            name=name,
            meta=meta,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)

        if name:
            self._named_routes[name] = route

        return route

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        Compile a route pattern to an anchored regex.

            :name  → (?P<name>[^/]+)   one segment
            *name  → (?P<name>.*)      rest of the path (last segment only)

        Empty segments are skipped, so "/todo/" and "/todo" compile to
        the same regex.

        Returns:
            Tuple of (compiled regex, parameter names in order).
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                param_name = segment[1:]
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>[^/]+)")
            elif segment.startswith("*"):
                param_name = segment[1:] or "wildcard"
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>.*)")
                break
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")  # Root path
        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    # =========================================================================
    # MIDDLEWARE AND GROUPS
    # =========================================================================

    def use(self, *middleware: RouteMiddleware) -> "Router":
        """
        Attach middleware to this router.

        It runs, in the order added, for every request dispatched through
        this router: its own routes, its sub-groups, and unmatched paths
        under its prefix.

        Returns:
            Self for method chaining.
        """
        self._middleware.extend(middleware)
        return self

    def group(self, prefix: str, *middleware: RouteMiddleware) -> "Router":
        """
        Create a route group under this router.

            api = router.group("/api/v1", RecoveryMiddleware(), auth)
            todos = api.group("/todo")

            @todos.get("/:id")      # Matches /api/v1/todo/:id
            def get_todo(request):
                ...

        Args:
            prefix: Prefix relative to this router's prefix.
            *middleware: Middleware scoped to the group.

        Returns:
            The new sub-router.
        """
        sub_router = Router(self.prefix + prefix)
        sub_router.use(*middleware)
        self._sub_routers.append(sub_router)
        return sub_router

    def _owns(self, path: str) -> bool:
        """True if path falls under this router's prefix."""
        return not self.prefix or path == self.prefix or path.startswith(self.prefix + "/")

    def _wrap(self, handler: Handler) -> Handler:
        """Wrap handler in this router's middleware (first added = outermost)."""
        current = handler
        for mw in reversed(self._middleware):
            current = self._bind(mw, current)
        return current

    @staticmethod
    def _bind(mw: RouteMiddleware, next_handler: Handler) -> Handler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return mw(request, next_handler)
        return wrapped

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching method and path, searching groups too.

        Returns:
            RouteMatch, or None if nothing matches.
        """
        path = _normalize(path)

        for route in self._routes:
            if route.method and route.method != method.upper():
                continue
            if route._pattern:
                m = route._pattern.match(path)
                if m:
                    return RouteMatch(route=route, params=m.groupdict())

        for sub_router in self._sub_routers:
            if sub_router._owns(path):
                result = sub_router.match(method, path)
                if result:
                    return result

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """
        Methods registered for path (for the Allow header of a 405).

        Returns:
            Sorted method names, or every method if an any-method route
            matches.
        """
        path = _normalize(path)
        methods = set()

        for route in self.routes():
            if route._pattern and route._pattern.match(path):
                if not route.method:
                    return ["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"]
                methods.add(route.method)

        return sorted(methods)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch a request.

        1. A route of this router matches → its handler, wrapped in this
           router's middleware, with request.path_params filled in.
        2. A group owns the path prefix → delegate to the group, wrapped
           in this router's middleware.
        3. Otherwise 405 (path known under another method) or 404, still
           wrapped in this router's middleware.
        """
        path = _normalize(request.path)
        method = request.method.upper()

        for route in self._routes:
            if route.method and route.method != method:
                continue
            if route._pattern:
                m = route._pattern.match(path)
                if m:
                    request.path_params = m.groupdict()
                    return self._wrap(route.handler)(request)

        for sub_router in self._sub_routers:
            if sub_router._owns(path):
                return self._wrap(sub_router.handle)(request)

        return self._wrap(self._no_route)(request)

    def _no_route(self, request: HTTPRequest) -> HTTPResponse:
        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)
        return not_found(f"No route matches {request.path}")

    # =========================================================================
    # DECORATORS
    # =========================================================================

    def route(
        self,
        path: str,
        method: Optional[str] = None,
        name: Optional[str] = None,
        **meta: Any
    ) -> Callable[[Handler], Handler]:
        """Decorator registering the function as a route handler."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method, name, **meta)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None, **meta: Any) -> Callable[[Handler], Handler]:
        return self.route(path, "GET", name, **meta)

    def post(self, path: str, name: Optional[str] = None, **meta: Any) -> Callable[[Handler], Handler]:
        return self.route(path, "POST", name, **meta)

    def put(self, path: str, name: Optional[str] = None, **meta: Any) -> Callable[[Handler], Handler]:
        return self.route(path, "PUT", name, **meta)

    def delete(self, path: str, name: Optional[str] = None, **meta: Any) -> Callable[[Handler], Handler]:
        return self.route(path, "DELETE", name, **meta)

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def url_for(self, name: str, **params: str) -> Optional[str]:
        """
        Reverse routing: build the URL of a named route.

            router.url_for("get_todo", id="7")  # "/api/v1/todo/7"

        Named routes of groups are found too.

        Returns:
            The URL, or None if no route has this name.
        """
        route = self._find_named(name)
        if not route:
            return None

        url = route.path
        for param_name, value in params.items():
            url = url.replace(f":{param_name}", str(value))
            url = url.replace(f"*{param_name}", str(value))
        return url

    def _find_named(self, name: str) -> Optional[Route]:
        route = self._named_routes.get(name)
        if route:
            return route
        for sub_router in self._sub_routers:
            route = sub_router._find_named(name)
            if route:
                return route
        return None

    def routes(self) -> List[Route]:
        """All routes, including those of groups."""
        all_routes = list(self._routes)
        for sub_router in self._sub_routers:
            all_routes.extend(sub_router.routes())
        return all_routes

    def describe_routes(self) -> List[str]:
        """One "METHOD  /path" line per route, for the startup log."""
        return [f"{route.method or 'ANY':8} {route.path}" for route in self.routes()]
