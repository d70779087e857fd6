"""
=============================================================================
MIDDLEWARE BASICS
=============================================================================

A middleware sees every request before the handler and every response
after it, and may answer by itself without calling the handler at all
(the auth middleware does that with a 401).

    def __call__(self, request, next):
        ...                      # before
        response = next(request)
        ...                      # after
        return response

=============================================================================
ORDER
=============================================================================

The todo API is wrapped like this:

    LoggingMiddleware              outermost: sees the final status
    └── RecoveryMiddleware         turns exceptions into 500
        └── BasicAuthMiddleware    401 or request.user = "bob"
            └── router → todo handler

First added = outermost, for MiddlewarePipeline and Router.use() alike.
=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# The next middleware, or the final handler
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """Base class: implement __call__(request, next) → response."""

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process one request.

        Args:
            request: The incoming request.
            next: Rest of the chain; call it to continue.

        Returns:
            The response from next() or a short-circuit response.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Wraps a handler in an ordered list of middleware.

        pipeline = MiddlewarePipeline()
        pipeline.use(LoggingMiddleware(), RecoveryMiddleware())
        handler = pipeline.wrap(router.handle)
        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around handler.

        Given [A, B, C] the result calls A → B → C → handler, so the list
        is folded from the end.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)

