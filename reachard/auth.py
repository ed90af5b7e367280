"""Session token cache: the single source of truth for login state."""

import logging

from .store import CredentialStore, StorageError

logger = logging.getLogger(__name__)

SESSION_TOKEN_KEY = "sessionToken"


class AuthCache:
    """Typed token operations on top of the credential store.

    Storage failures never escape: a failed read means "logged out" and a
    failed write is logged. An empty token passed to set_token is a caller
    error and raises ValueError. Changing the token does not refresh any view;
    callers re-derive dependent state afterwards.
    """

    def __init__(self, store: CredentialStore) -> None:
        self._store = store

    async def get_token(self) -> str:
        """Return the session token, or "" when logged out."""
        try:
            return await self._store.get(SESSION_TOKEN_KEY)
        except StorageError as e:
            logger.error("Failed to read session token: %s", e)
            return ""

    async def set_token(self, token: str) -> None:
        """Persist the session token.

        Raises:
            ValueError: If token is empty. Use clear_token to log out.
        """
        if not token:
            raise ValueError("Session token cannot be empty")
        try:
            await self._store.put(SESSION_TOKEN_KEY, token)
            logger.debug("Session token stored")
        except StorageError as e:
            logger.error("Failed to store session token: %s", e)

    async def clear_token(self) -> None:
        try:
            await self._store.delete(SESSION_TOKEN_KEY)
            logger.debug("Session token cleared")
        except StorageError as e:
            logger.error("Failed to clear session token: %s", e)

    async def is_logged_in(self) -> bool:
        return await self.get_token() != ""
