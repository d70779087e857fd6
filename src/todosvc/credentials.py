"""
=============================================================================
CREDENTIAL STORE
=============================================================================

Maps usernames to bcrypt password hashes for the Basic auth middleware.

    BasicAuthMiddleware
        │  lookup("bob")
        ▼
    CredentialStore ──► b"$2b$10$NZDx..."  (or None: unknown user)
        │
        ▼
    check_password("bob", hash) ──► bcrypt.checkpw

Only a static, read-only store ships. In dev mode it is loaded from
auth.dev.json:

    {"bob": "$2b$10$...", "alice": "$2b$10$..."}

Looked for first in the configured keys folder, then in the copy that is
packaged with todosvc.
=============================================================================
"""

import json
import logging
from abc import ABC, abstractmethod
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Union

import bcrypt


logger = logging.getLogger(__name__)

DEV_CREDENTIALS_FILE = "auth.dev.json"


class CredentialStore(ABC):
    """Read-only username → password hash lookup."""

    @abstractmethod
    def lookup(self, username: str) -> Optional[bytes]:
        """
        Returns:
            The stored bcrypt hash, or None if the user is unknown.
        """


class StaticCredentialStore(CredentialStore):
    """
    An immutable in-memory mapping.

        store = StaticCredentialStore({"bob": "$2b$10$..."})
        store.lookup("bob")    # b"$2b$10$..."
        store.lookup("eve")    # None
    """

    def __init__(self, mapping: Mapping[str, Union[str, bytes]], name: str = "static"):
        self.name = name
        self._hashes = MappingProxyType({
            user: h.encode("utf-8") if isinstance(h, str) else bytes(h)
            for user, h in mapping.items()
        })

    def lookup(self, username: str) -> Optional[bytes]:
        return self._hashes.get(username)

    @property
    def usernames(self) -> list[str]:
        return sorted(self._hashes)

    def __len__(self) -> int:
        return len(self._hashes)

    def __repr__(self) -> str:
        return f"StaticCredentialStore(name={self.name!r}, users={self.usernames})"


def _parse_credentials(text: str, source: str) -> dict[str, str]:
    data = json.loads(text)
    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise ValueError(f"{source}: expected a JSON object of username → hash strings")
    return data


def load_dev_credentials(keys_folder: Optional[Union[str, Path]] = None) -> StaticCredentialStore:
    """
    Load the development credential store.

    Args:
        keys_folder: Folder that may hold an auth.dev.json overriding the
                     packaged one.

    Returns:
        StaticCredentialStore with the users from the file.

    Raises:
        ValueError: If the file is not a JSON object of strings.
        OSError: If an existing override file cannot be read.
    """
    if keys_folder:
        path = Path(keys_folder) / DEV_CREDENTIALS_FILE
        if path.is_file():
            logger.info(f"Loading dev credentials from {path}")
            mapping = _parse_credentials(path.read_text(encoding="utf-8"), str(path))
            return StaticCredentialStore(mapping, name=str(path))

    resource = resources.files("todosvc").joinpath(DEV_CREDENTIALS_FILE)
    logger.info("Loading packaged dev credentials")
    mapping = _parse_credentials(resource.read_text(encoding="utf-8"), DEV_CREDENTIALS_FILE)
    return StaticCredentialStore(mapping, name="packaged-dev")


def check_password(password: Union[str, bytes], hashed: bytes) -> bool:
    """
    Compare a clear-text password with a bcrypt hash.

    Malformed hashes and passwords bcrypt refuses compare as False.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError as e:
        logger.debug(f"Password check rejected: {e}")
        return False


def hash_password(password: Union[str, bytes], rounds: int = 10) -> bytes:
    """bcrypt hash for a new entry in auth.dev.json."""
    if isinstance(password, str):
        password = password.encode("utf-8")
    return bcrypt.hashpw(password, bcrypt.gensalt(rounds=rounds))
