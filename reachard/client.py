"""HTTP client for the Reachard session and targets endpoints."""

import asyncio
import logging
from typing import Any

import requests

from .auth import AuthCache
from .config import ApiConfig
from .models import Target

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


class ApiError(Exception):
    """Raised when an API call fails (transport error or HTTP error status)."""

    pass


class NotLoggedIn(ApiError):
    """Raised before sending an authenticated request when no token is stored."""

    pass


class MalformedResponse(ApiError):
    """Raised when a response is not JSON or not the expected shape."""

    pass


def _decode_json(response: requests.Response, what: str) -> Any:
    """Decode a JSON response body.

    Raises:
        MalformedResponse: If the Content-Type is not JSON or the body does not parse.
    """
    content_type = response.headers.get("Content-Type", "")
    if content_type.split(";")[0].strip().lower() != JSON_CONTENT_TYPE:
        raise MalformedResponse(f"The response Content-Type for {what} is not JSON: {content_type!r}")

    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponse(f"Failed to parse the {what} as JSON: {e}")


def _int_list(value: Any, what: str) -> list[int]:
    if not isinstance(value, list):
        raise MalformedResponse(f"The {what} are not a JSON array")
    for item in value:
        if isinstance(item, bool) or not isinstance(item, int):
            raise MalformedResponse(f"The {what} contain a non-integer entry: {item!r}")
    return value


class ApiClient:
    """Talks to the Reachard API on behalf of the logged-in user.

    Every request runs in a worker thread so the event loop stays free.
    Authenticated calls read the token from the auth cache and raise
    NotLoggedIn without touching the network when there is none.
    """

    def __init__(self, config: ApiConfig, auth: AuthCache) -> None:
        self._config = config
        self._auth = auth

    async def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            response = await asyncio.to_thread(
                requests.request,
                method,
                url,
                timeout=self._config.timeout,
                **kwargs,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise ApiError(f"{method} {url} failed: {e}")
        return response

    async def _auth_headers(self) -> dict[str, str]:
        token = await self._auth.get_token()
        if token == "":
            raise NotLoggedIn("Not logged in")
        return {"Authorization": f"Bearer {token}"}

    def _target_url(self, target_id: int, resource: str = "") -> str:
        url = f"{self._config.targets_endpoint}{int(target_id)}/"
        if resource:
            url += f"{resource}/"
        return url

    # Session

    async def log_in(self, username: str, password: str) -> str:
        """Create a session and store its token.

        Returns:
            The session token.

        Raises:
            ApiError: If the request fails.
            MalformedResponse: If the token is not a non-empty JSON string.
        """
        response = await self._request(
            "POST",
            self._config.session_endpoint,
            json={"username": username, "password": password},
        )
        token = _decode_json(response, "session token")
        if not isinstance(token, str) or not token:
            raise MalformedResponse("The session token is not a JSON string")

        await self._auth.set_token(token)
        logger.info("Logged in as %s", username)
        return token

    async def log_out(self) -> bool:
        """Invalidate the session and forget the token.

        The server-side DELETE is best effort; the local token is cleared
        even if it fails.

        Returns:
            False if there was no session to end.
        """
        token = await self._auth.get_token()
        if token == "":
            return False

        try:
            await self._request(
                "DELETE",
                self._config.session_endpoint,
                headers={"Authorization": f"Bearer {token}"},
            )
        except ApiError as e:
            logger.warning("Failed to invalidate session on the server: %s", e)

        await self._auth.clear_token()
        logger.info("Logged out")
        return True

    # Targets

    async def list_targets(self, own: bool = False) -> list[Target]:
        """Fetch the target list, optionally only the caller's own targets.

        Raises:
            NotLoggedIn: If no token is stored.
            ApiError: If the request fails.
            MalformedResponse: If the body is not an array of target records.
        """
        headers = await self._auth_headers()
        params = {"own": "true"} if own else None
        response = await self._request("GET", self._config.targets_endpoint, headers=headers, params=params)

        data = _decode_json(response, "targets")
        if not isinstance(data, list):
            raise MalformedResponse("The list of targets is not a JSON array")

        try:
            return [Target.from_json(item) for item in data]
        except ValueError as e:
            raise MalformedResponse(f"Invalid target record: {e}")

    async def get_target(self, target_id: int) -> Target:
        """Fetch one target record."""
        headers = await self._auth_headers()
        response = await self._request("GET", self._target_url(target_id), headers=headers)

        try:
            return Target.from_json(_decode_json(response, "target"))
        except ValueError as e:
            raise MalformedResponse(f"Invalid target record: {e}")

    async def add_target(self, name: str, url: str, interval_seconds: int) -> None:
        headers = await self._auth_headers()
        await self._request(
            "POST",
            self._config.targets_endpoint,
            headers=headers,
            json={"name": name, "url": url, "interval_seconds": interval_seconds},
        )
        logger.info("Added target %s (%s)", name, url)

    async def delete_target(self, target_id: int) -> None:
        headers = await self._auth_headers()
        await self._request("DELETE", self._target_url(target_id), headers=headers)
        logger.info("Deleted target %d", target_id)

    # Target sub-resources

    async def get_incidents(self, target_id: int, since: int) -> list[int]:
        """Fetch incident timestamps recorded after ``since``."""
        headers = await self._auth_headers()
        response = await self._request(
            "GET",
            self._target_url(target_id, "incidents"),
            headers=headers,
            params={"since": since},
        )

        data = _decode_json(response, "incidents")
        if not isinstance(data, dict):
            raise MalformedResponse("The incidents response is not a JSON object")
        return _int_list(data.get("timestamps"), "incident timestamps")

    async def get_latencies(self, target_id: int, since: int, step: int) -> tuple[list[int], list[float | None]]:
        """Fetch latency samples recorded after ``since`` at the given step.

        Returns:
            (timestamps, values) with equal lengths.
        """
        headers = await self._auth_headers()
        response = await self._request(
            "GET",
            self._target_url(target_id, "latencies"),
            headers=headers,
            params={"since": since, "step": step},
        )

        data = _decode_json(response, "latencies")
        if not isinstance(data, dict):
            raise MalformedResponse("The latencies response is not a JSON object")

        timestamps = _int_list(data.get("timestamps"), "latency timestamps")
        values = data.get("values")
        if not isinstance(values, list):
            raise MalformedResponse("The latency values are not a JSON array")
        for value in values:
            if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
                raise MalformedResponse(f"The latency values contain a non-numeric entry: {value!r}")
        if len(values) != len(timestamps):
            raise MalformedResponse("Latency timestamps and values differ in length")

        return timestamps, [float(v) if v is not None else None for v in values]

