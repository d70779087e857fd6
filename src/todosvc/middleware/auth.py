"""
=============================================================================
HTTP BASIC AUTHENTICATION
=============================================================================

    Authorization: Basic Ym9iOmJvYg==
                         └── base64("bob:bob")

Every request under the protected group must carry valid credentials:

    no header / other scheme ─┐
    bad base64 / no colon ────┤
    unknown user ─────────────┼──► 401 + WWW-Authenticate: Basic realm="todo-api"
    wrong password ───────────┘
    ok ───────────────────────────► request.user = "bob", call next

All failures answer identically, so a client cannot tell an unknown user
from a wrong password.
=============================================================================
"""

import base64
import binascii
import logging
from typing import Optional

from .base import Middleware, NextHandler
from ..credentials import CredentialStore, check_password
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, unauthorized


logger = logging.getLogger(__name__)


def parse_basic_auth(header: str) -> Optional[tuple[str, str]]:
    """
    Decode a Basic Authorization header value.

    Returns:
        (username, password), or None if the header is not usable Basic
        credentials. The password may contain colons; the username may not.
    """
    scheme, _, encoded = header.strip().partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None

    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None

    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


class BasicAuthMiddleware(Middleware):
    """
    Rejects requests without valid Basic credentials.

        auth = BasicAuthMiddleware(load_dev_credentials(), realm="todo-api")
        api = router.group("/api/v1", auth)
    """

    def __init__(self, credentials: CredentialStore, realm: str = "todo-api"):
        self.credentials = credentials
        self.realm = realm

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        username = self.authenticate(request.get_header("Authorization"))
        if username is None:
            return unauthorized("Unauthorized", realm=self.realm)

        request.user = username
        return next(request)

    def authenticate(self, header: str) -> Optional[str]:
        """
        Returns:
            The username if the header holds valid credentials, else None.
        """
        if not header:
            logger.debug("Missing Authorization header")
            return None

        parsed = parse_basic_auth(header)
        if parsed is None:
            logger.debug("Malformed Authorization header")
            return None

        username, password = parsed
        hashed = self.credentials.lookup(username)
        if hashed is None:
            logger.info(f"Authentication failed: unknown user {username!r}")
            return None

        if not check_password(password, hashed):
            logger.info(f"Authentication failed: wrong password for {username!r}")
            return None

        return username
