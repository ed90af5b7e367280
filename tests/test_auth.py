"""Tests for the auth cache facade."""

import asyncio
import logging
from pathlib import Path

import pytest

from reachard.auth import SESSION_TOKEN_KEY, AuthCache
from reachard.store import CredentialStore


@pytest.fixture
def store_path(tmp_path: Path) -> str:
    return str(tmp_path / "reachard.db")


@pytest.fixture
def broken_path(tmp_path: Path) -> str:
    """A store path whose parent is a regular file."""
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    return str(blocker / "reachard.db")


class TestAuthCache:
    """Tests for AuthCache."""

    @pytest.mark.parametrize("token", ["tok123", '{"a": [1, 2]}', "a\"b'c\\d"])
    def test_token_round_trip(self, store_path: str, token: str) -> None:
        """A stored token reads back unchanged."""

        async def scenario() -> str:
            store = CredentialStore(store_path)
            auth = AuthCache(store)
            try:
                await auth.set_token(token)
                return await auth.get_token()
            finally:
                await store.close()

        assert asyncio.run(scenario()) == token

    def test_uses_session_token_key(self, store_path: str) -> None:
        """The token lives under the fixed sessionToken key."""

        async def scenario() -> str:
            store = CredentialStore(store_path)
            try:
                await AuthCache(store).set_token("abc")
                return await store.get(SESSION_TOKEN_KEY)
            finally:
                await store.close()

        assert SESSION_TOKEN_KEY == "sessionToken"
        assert asyncio.run(scenario()) == "abc"

    def test_clear_token_is_idempotent(self, store_path: str) -> None:
        """Clearing twice does not fail and leaves no token."""

        async def scenario() -> str:
            store = CredentialStore(store_path)
            auth = AuthCache(store)
            try:
                await auth.set_token("abc")
                await auth.clear_token()
                await auth.clear_token()
                return await auth.get_token()
            finally:
                await store.close()

        assert asyncio.run(scenario()) == ""

    def test_is_logged_in_follows_token(self, store_path: str) -> None:
        """Login state is exactly "a non-empty token is stored"."""

        async def scenario() -> list[bool]:
            store = CredentialStore(store_path)
            auth = AuthCache(store)
            try:
                states = [await auth.is_logged_in()]
                await auth.set_token("abc")
                states.append(await auth.is_logged_in())
                await auth.clear_token()
                states.append(await auth.is_logged_in())
                return states
            finally:
                await store.close()

        assert asyncio.run(scenario()) == [False, True, False]

    def test_unavailable_storage_reads_as_logged_out(
        self, broken_path: str, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Storage failures on read are logged and reported as ""."""

        async def scenario() -> tuple[str, bool]:
            auth = AuthCache(CredentialStore(broken_path))
            return await auth.get_token(), await auth.is_logged_in()

        with caplog.at_level(logging.ERROR, logger="reachard.auth"):
            token, logged_in = asyncio.run(scenario())

        assert token == ""
        assert logged_in is False
        assert "Failed to read session token" in caplog.text

    def test_unavailable_storage_on_write_is_logged(
        self, broken_path: str, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Storage failures on write never raise into the caller."""

        async def scenario() -> None:
            auth = AuthCache(CredentialStore(broken_path))
            await auth.set_token("abc")
            await auth.clear_token()

        with caplog.at_level(logging.ERROR, logger="reachard.auth"):
            asyncio.run(scenario())

        assert "Failed to store session token" in caplog.text
        assert "Failed to clear session token" in caplog.text

    def test_empty_token_is_rejected(self, store_path: str) -> None:
        """An empty token is a caller error; logging out goes through clear_token."""

        async def scenario() -> str:
            store = CredentialStore(store_path)
            auth = AuthCache(store)
            try:
                await auth.set_token("abc")
                with pytest.raises(ValueError, match="cannot be empty"):
                    await auth.set_token("")
                return await auth.get_token()
            finally:
                await store.close()

        assert asyncio.run(scenario()) == "abc"
