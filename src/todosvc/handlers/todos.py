"""
=============================================================================
TODO RESOURCE HANDLERS
=============================================================================

    POST    /api/v1/todo         create        201 + item, Location
    GET     /api/v1/todo         list          200 + [items]
    GET     /api/v1/todo/:id     fetch         200 + item
    PUT     /api/v1/todo/:id     replace       200, empty body
    DELETE  /api/v1/todo/:id     delete        200, empty body (even if absent)

=============================================================================
ERROR MAPPING
=============================================================================

    ┌────────────────────────────────────┬─────┬──────────────────────────────────────────────┐
    │ Condition                          │ Code│ {"error": ...}                               │
    ├────────────────────────────────────┼─────┼──────────────────────────────────────────────┤
    │ :id not a base-10 uint64           │ 400 │ Invalid ID format                            │
    │ body empty / undecodable / wrong   │ 400 │ Unrecognized request body or content type    │
    │ type / unsupported content type    │     │                                              │
    │ create: store says BadInput        │ 400 │ Invalid request body for resource creation   │
    │ update: store says BadInput        │ 400 │ Unrecognized request body or content type    │
    │ delete: store says BadInput (id 0) │ 400 │ Invalid ID format                            │
    │ store says NotFound (get / put)    │ 404 │ TodoItem not found                           │
    │ store says NotFound (delete)       │ 200 │ (suppressed)                                 │
    └────────────────────────────────────┴─────┴──────────────────────────────────────────────┘

A JSON body of `null` decodes to "no item", which the store rejects as
BadInput. Anything else unexpected propagates to RecoveryMiddleware (500).
=============================================================================
"""

import logging
import re
from typing import Optional

from ..http.request import HTTPRequest, HTTPParseError
from ..http.response import HTTPResponse, ok, created, bad_request, not_found
from ..http.router import Router
from ..model import TodoItem, MAX_ID
from ..store import Persistence, BadInput, NotFound


logger = logging.getLogger(__name__)


BAD_REQUEST_BODY = "Unrecognized request body or content type"
BAD_REQUEST_BODY_CREATION = "Invalid request body for resource creation"
BAD_REQUEST_ID = "Invalid ID format"
RESOURCE_NOT_FOUND = "TodoItem not found"

_DIGITS = re.compile(r"[0-9]+")

_FORM_TRUE = {"true", "1"}
_FORM_FALSE = {"false", "0"}


class BodyError(ValueError):
    """The request body is not a usable TodoItem representation."""


def parse_id(raw: str) -> Optional[int]:
    """
    Parse a path id as an unsigned 64-bit integer.

    Returns:
        The id, or None if raw is not plain ASCII digits or overflows.
    """
    if not _DIGITS.fullmatch(raw):
        return None
    value = int(raw)
    return value if value <= MAX_ID else None


def decode_item(request: HTTPRequest) -> Optional[TodoItem]:
    """
    Decode the request body into a TodoItem.

    Returns:
        The item, or None for a JSON `null` body.

    Raises:
        BodyError: Empty body, unsupported content type, malformed
                   payload or wrong field types.
    """
    if not request.body:
        raise BodyError("empty body")

    if request.is_json:
        try:
            data = request.json
        except HTTPParseError as e:
            raise BodyError(str(e)) from None
        if data is None:
            return None
        return TodoItem.from_dict(data)

    if request.is_form:
        try:
            form = request.form
        except HTTPParseError as e:
            raise BodyError(str(e)) from None
        return TodoItem.from_dict(_form_fields(form))

    raise BodyError(f"unsupported content type: {request.content_type}")


def _form_fields(form: dict[str, list[str]]) -> dict:
    fields: dict = {}

    if "summary" in form:
        fields["summary"] = form["summary"][0]

    if "done" in form:
        value = form["done"][0].strip().lower()
        if value in _FORM_TRUE:
            fields["done"] = True
        elif value in _FORM_FALSE:
            fields["done"] = False
        else:
            raise BodyError(f"invalid done value: {value!r}")

    if "id" in form:
        item_id = parse_id(form["id"][0].strip())
        if item_id is None:
            raise BodyError("invalid id value")
        fields["id"] = item_id

    return fields


class TodoHandlers:
    """
    HTTP handlers over a Persistence.

        todos = api.group("/todo")
        TodoHandlers(store).register(todos)
    """

    def __init__(self, store: Persistence):
        self.store = store
        self._router: Optional[Router] = None

    def register(self, router: Router) -> None:
        """Register the five routes on a router mounted at .../todo."""
        self._router = router
        router.add_route("", self.create, "POST", name="create_todo")
        router.add_route("", self.list_all, "GET", name="list_todos")
        router.add_route("/:id", self.get, "GET", name="get_todo")
        router.add_route("/:id", self.update, "PUT", name="update_todo")
        router.add_route("/:id", self.delete, "DELETE", name="delete_todo")

    def _location(self, item: TodoItem) -> Optional[str]:
        if self._router is None:
            return None
        return self._router.url_for("get_todo", id=str(item.id))

    # =========================================================================
    # HANDLERS
    # =========================================================================

    def create(self, request: HTTPRequest) -> HTTPResponse:
        try:
            item = decode_item(request)
        except ValueError as e:
            logger.debug(f"Rejected create body: {e}")
            return bad_request(BAD_REQUEST_BODY)

        try:
            stored = self.store.create_todo(item)
        except BadInput:
            return bad_request(BAD_REQUEST_BODY_CREATION)

        logger.info(f"Created todo {stored.id} for {request.user or '-'}")
        return created(stored.to_dict(), location=self._location(stored))

    def list_all(self, request: HTTPRequest) -> HTTPResponse:
        return ok([item.to_dict() for item in self.store.get_all_todos()])

    def get(self, request: HTTPRequest) -> HTTPResponse:
        todo_id = parse_id(request.path_params.get("id", ""))
        if todo_id is None:
            return bad_request(BAD_REQUEST_ID)

        try:
            item = self.store.get_todo(todo_id)
        except NotFound:
            return not_found(RESOURCE_NOT_FOUND)

        return ok(item.to_dict())

    def update(self, request: HTTPRequest) -> HTTPResponse:
        todo_id = parse_id(request.path_params.get("id", ""))
        if todo_id is None:
            return bad_request(BAD_REQUEST_ID)

        try:
            item = decode_item(request)
        except ValueError as e:
            logger.debug(f"Rejected update body: {e}")
            return bad_request(BAD_REQUEST_BODY)

        try:
            self.store.update_todo(todo_id, item)
        except BadInput:
            return bad_request(BAD_REQUEST_BODY)
        except NotFound:
            return not_found(RESOURCE_NOT_FOUND)

        return ok()

    def delete(self, request: HTTPRequest) -> HTTPResponse:
        todo_id = parse_id(request.path_params.get("id", ""))
        if todo_id is None:
            return bad_request(BAD_REQUEST_ID)

        try:
            self.store.delete_todo(todo_id)
        except BadInput:
            return bad_request(BAD_REQUEST_ID)
        except NotFound:
            logger.debug(f"Delete of absent todo {todo_id} treated as success")

        return ok()
