"""Dashboard wiring: views, session and target handlers.

One ``Dashboard`` owns the process-wide auth cache, API client, router and
renderer. Handlers catch API failures where they happen, log them and leave
whatever was rendered before untouched; they report success as a bool so the
CLI can set its exit code.
"""

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable

from .auth import AuthCache
from .client import ApiClient, ApiError, NotLoggedIn
from .config import Config
from .models import Target
from .render import Renderer
from .router import History, Navigation, Router, View, ViewBehavior
from .store import CredentialStore
from .timeseries import incident_buckets, latency_series, target_age, window_start

logger = logging.getLogger(__name__)

APP_NAME = "Reachard"

VIEW_TARGETS = "targets"
VIEW_ADD_TARGET = "add-target"
VIEW_TARGET = "target"
VIEW_PROFILE = "profile"

Loader = Callable[[tuple[str, ...], Navigation], Awaitable[None]]


def page_title(name: str) -> str:
    return f"{name} | {APP_NAME}"


class Dashboard:
    """Client-side state engine of the monitoring dashboard.

    Args:
        config: Loaded configuration.
        renderer: Sink for rendered output; discards everything by default.
        history: Session history; starts at "/" by default.
        store: Credential store; opened from config.store.path by default.
        clock: Returns the current time in seconds since the epoch.
    """

    def __init__(
        self,
        config: Config,
        renderer: Renderer | None = None,
        history: History | None = None,
        store: CredentialStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store if store is not None else CredentialStore(config.store.path)
        self.auth = AuthCache(self.store)
        self.client = ApiClient(config.api, self.auth)
        self.renderer = renderer if renderer is not None else Renderer()
        self.history = history if history is not None else History()
        self.router = Router(
            self.history,
            self._build_views(),
            fallback=VIEW_TARGETS,
            on_title=self.renderer.set_title,
        )
        self._clock = clock

    def _build_views(self) -> list[View]:
        # Registration order is match priority.
        return [
            View(
                id=VIEW_TARGETS,
                title=page_title("Targets"),
                pattern=re.compile(r"/(?:targets/?)?"),
                behavior=self._behavior(VIEW_TARGETS, self._show_targets),
            ),
            View(
                id=VIEW_ADD_TARGET,
                title=page_title("Add target"),
                pattern=re.compile(r"/targets/add/?"),
                behavior=self._behavior(VIEW_ADD_TARGET, self._show_add_form),
            ),
            View(
                id=VIEW_TARGET,
                title=page_title("Target"),
                pattern=re.compile(r"/target/(\d+)/?"),
                behavior=self._behavior(VIEW_TARGET, self._show_target),
            ),
            View(
                id=VIEW_PROFILE,
                title=page_title("Profile"),
                pattern=re.compile(r"/profile/?"),
                behavior=self._behavior(VIEW_PROFILE, self._show_profile),
            ),
        ]

    def _behavior(self, view_id: str, load: Loader) -> ViewBehavior:
        async def activate(params: tuple[str, ...], navigation: Navigation) -> None:
            self.renderer.show_view(view_id)
            await load(params, navigation)

        def deactivate() -> None:
            self.renderer.hide_view(view_id)

        return ViewBehavior(activate=activate, deactivate=deactivate)

    def _now(self) -> int:
        return int(self._clock())

    async def start(self) -> None:
        """Resolve the initial view and render the login state."""
        await self.router.start()
        await self.refresh_login_status()

    async def close(self) -> None:
        await self.store.close()

    async def navigate(self, path: str) -> bool:
        """Navigate in-page to the first view whose pattern matches path.

        Returns:
            False if no view matches (the current view stays active).
        """
        for view in self.router.views:
            if view.match(path) is not None:
                await self.router.navigate(view.id, path)
                return True
        logger.info("No view for %s", path)
        return False

    # Session

    async def refresh_login_status(self) -> bool:
        """Re-derive login-dependent output from the auth cache."""
        logged_in = await self.auth.is_logged_in()
        self.renderer.render_login_state(logged_in)
        return logged_in

    async def log_in(self, username: str, password: str) -> bool:
        try:
            await self.client.log_in(username, password)
        except ApiError as e:
            logger.error("Log in failed: %s", e)
            return False
        # The token may have failed to persist; the cache decides.
        return await self.refresh_login_status()

    async def log_out(self) -> bool:
        logged_out = await self.client.log_out()
        still_logged_in = await self.refresh_login_status()
        return logged_out and not still_logged_in

    # Targets

    async def list_targets(self, own: bool = False, navigation: Navigation | None = None) -> bool:
        try:
            targets = await self.client.list_targets(own=own)
        except NotLoggedIn:
            logger.info("Not logged in, skipping target list")
            return False
        except ApiError as e:
            logger.error("Failed to list targets: %s", e)
            return False

        if navigation is not None and not navigation.is_current():
            logger.debug("Discarding target list for superseded navigation %d", navigation.epoch)
            return False

        self.renderer.render_targets(targets)
        if not targets:
            self.renderer.render_no_targets()
        return True

    async def add_target(self, name: str, url: str, interval_seconds: int) -> bool:
        try:
            await self.client.add_target(name, url, interval_seconds)
        except NotLoggedIn:
            logger.info("Not logged in, cannot add target")
            return False
        except ApiError as e:
            logger.error("Failed to add target %s: %s", name, e)
            return False
        return True

    async def delete_target(self, target_id: int) -> bool:
        try:
            await self.client.delete_target(target_id)
        except NotLoggedIn:
            logger.info("Not logged in, cannot delete target")
            return False
        except ApiError as e:
            logger.error("Failed to delete target %d: %s", target_id, e)
            return False
        return True

    async def load_target(self, target_id: int, navigation: Navigation | None = None) -> bool:
        """Fetch a target with its incident and latency history and render them.

        The incident row and latency chart load independently; one failing
        does not stop the other.
        """
        try:
            target = await self.client.get_target(target_id)
        except NotLoggedIn:
            logger.info("Not logged in, skipping target %d", target_id)
            return False
        except ApiError as e:
            logger.error("Failed to load target %d: %s", target_id, e)
            return False

        if navigation is not None and not navigation.is_current():
            return False
        self.renderer.render_target(target)

        now = self._now()
        results = await asyncio.gather(
            self._load_incidents(target, now, navigation),
            self._load_latency(target, now, navigation),
        )
        return all(results)

    async def _load_incidents(self, target: Target, now: int, navigation: Navigation | None) -> bool:
        try:
            timestamps = await self.client.get_incidents(target.id, window_start(now))
        except ApiError as e:
            logger.error("Failed to load incidents for target %d: %s", target.id, e)
            return False

        if navigation is not None and not navigation.is_current():
            return False
        buckets = incident_buckets(timestamps, now, target_age(target.time_added, now))
        self.renderer.render_incidents(target, buckets)
        return True

    async def _load_latency(self, target: Target, now: int, navigation: Navigation | None) -> bool:
        try:
            timestamps, values = await self.client.get_latencies(
                target.id, window_start(now), target.interval_seconds
            )
        except ApiError as e:
            logger.error("Failed to load latencies for target %d: %s", target.id, e)
            return False

        if navigation is not None and not navigation.is_current():
            return False
        try:
            series = latency_series(timestamps, values, target.interval_seconds)
        except ValueError as e:
            logger.error("Invalid latency data for target %d: %s", target.id, e)
            return False
        self.renderer.render_latency(target, series)
        return True

    # View loaders

    async def _show_targets(self, params: tuple[str, ...], navigation: Navigation) -> None:
        await self.list_targets(navigation=navigation)

    async def _show_add_form(self, params: tuple[str, ...], navigation: Navigation) -> None:
        self.renderer.render_add_form()

    async def _show_target(self, params: tuple[str, ...], navigation: Navigation) -> None:
        await self.load_target(int(params[0]), navigation=navigation)

    async def _show_profile(self, params: tuple[str, ...], navigation: Navigation) -> None:
        await self.refresh_login_status()
