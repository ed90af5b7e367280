"""Pathname-driven view routing synchronized with a browser-style history.

Exactly one registered view is active once the router has started. Views are
plain records holding a compiled pathname pattern and a behavior; the router
owns activation, the page title and the history entries it pushes.
"""

import inspect
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from .models import NavigationEntry

logger = logging.getLogger(__name__)


class RouteMismatch(Exception):
    """Raised when a caller navigates to a view with a path its pattern rejects."""

    pass


PopListener = Callable[[Any], Awaitable[None]]


class History:
    """In-memory model of browser session history.

    Entries are ``(state, path)`` pairs. Pushing truncates any forward
    entries, moving the cursor notifies pop listeners with the state of the
    entry moved to, like the ``popstate`` event.
    """

    def __init__(self, path: str = "/") -> None:
        self._entries: list[tuple[Any, str]] = [(None, path)]
        self._index = 0
        self._listeners: list[PopListener] = []

    @property
    def location(self) -> str:
        return self._entries[self._index][1]

    @property
    def state(self) -> Any:
        return self._entries[self._index][0]

    def __len__(self) -> int:
        return len(self._entries)

    def add_pop_listener(self, listener: PopListener) -> None:
        self._listeners.append(listener)

    def push_state(self, state: Any, path: str) -> None:
        del self._entries[self._index + 1 :]
        self._entries.append((state, path))
        self._index += 1

    def replace_state(self, state: Any, path: str) -> None:
        self._entries[self._index] = (state, path)

    async def go(self, delta: int) -> bool:
        """Move the cursor by delta entries.

        Returns:
            False if the move would leave the history, True otherwise.
        """
        target = self._index + delta
        if delta == 0 or not 0 <= target < len(self._entries):
            return False

        self._index = target
        for listener in list(self._listeners):
            await listener(self.state)
        return True

    async def back(self) -> bool:
        return await self.go(-1)

    async def forward(self) -> bool:
        return await self.go(1)


class Navigation:
    """Handle given to an activating view to detect superseded navigations."""

    def __init__(self, router: "Router", epoch: int) -> None:
        self._router = router
        self.epoch = epoch

    def is_current(self) -> bool:
        return self._router.epoch == self.epoch


Activate = Callable[[tuple[str, ...], Navigation], Awaitable[None] | None]
Deactivate = Callable[[], None]


@dataclass(frozen=True)
class ViewBehavior:
    """What a view does when it becomes active or inactive."""

    activate: Activate | None = None
    deactivate: Deactivate | None = None


@dataclass
class View:
    """A routable UI state.

    Attributes:
        id: Unique view identifier.
        title: Page title shown while the view is active.
        pattern: Regular expression matched against the full pathname;
            its groups are the captured parameters.
        behavior: Activation hooks.
        active: Whether this is the current view. Mutated only by the router.
    """

    id: str
    title: str
    pattern: re.Pattern
    behavior: ViewBehavior = field(default_factory=ViewBehavior)
    active: bool = False

    def match(self, path: str) -> tuple[str, ...] | None:
        """Return captured parameters if path matches, None otherwise."""
        m = self.pattern.fullmatch(path)
        if m is None:
            return None
        return tuple(g for g in m.groups() if g is not None)


class Router:
    """State machine mapping pathnames to views.

    Args:
        history: History the router pushes to and listens on.
        views: Views in priority order; the earliest match wins.
        fallback: View id activated at startup if the initial path matches
            nothing. Later unmatched paths keep the current view.
        on_title: Called with the new page title after every activation.
    """

    def __init__(
        self,
        history: History,
        views: Sequence[View],
        fallback: str | None = None,
        on_title: Callable[[str], None] | None = None,
    ) -> None:
        self._history = history
        self._views: dict[str, View] = {}
        for view in views:
            if view.id in self._views:
                raise ValueError(f"Duplicate view id '{view.id}'")
            self._views[view.id] = view
        if fallback is not None and fallback not in self._views:
            raise ValueError(f"Fallback view '{fallback}' is not registered")

        self._fallback = fallback
        self._on_title = on_title
        self._active: View | None = None
        self.epoch = 0
        self.title = ""
        self._listening = False

    @property
    def history(self) -> History:
        return self._history

    @property
    def views(self) -> list[View]:
        return list(self._views.values())

    @property
    def active(self) -> View | None:
        return self._active

    def get_view(self, view_id: str) -> View:
        """Look up a registered view.

        Raises:
            KeyError: If no view has this id.
        """
        return self._views[view_id]

    async def start(self) -> None:
        """Listen for history pops and activate the view for the current location.

        Calling it again only re-resolves the location.
        """
        if not self._listening:
            self._history.add_pop_listener(self.on_history_popped)
            self._listening = True
        await self.resolve_from_location()

    async def navigate(self, view_id: str, path: str) -> None:
        """Activate a view for an in-page navigation and push it to history.

        Raises:
            KeyError: If the view id is unknown.
            RouteMismatch: If path does not match the view's pattern.
        """
        view = self.get_view(view_id)
        params = view.match(path)
        if params is None:
            raise RouteMismatch(f"Path '{path}' does not match view '{view_id}'")

        entry = NavigationEntry(view_id=view.id, params=params)
        await self._activate(view, params, push=(entry, path))

    async def resolve_from_location(self) -> bool:
        """Activate the first registered view matching the current location.

        Returns:
            True if a view was activated.
        """
        path = self._history.location
        for view in self._views.values():
            params = view.match(path)
            if params is not None:
                await self._activate(view, params)
                return True

        if self._active is None and self._fallback is not None:
            logger.debug("No view matches %s, using fallback '%s'", path, self._fallback)
            await self._activate(self._views[self._fallback], ())
            return True

        logger.debug("No view matches %s, keeping current view", path)
        return False

    async def on_history_popped(self, state: Any) -> None:
        """Handle a history move, trusting well-formed state over the URL."""
        entry = NavigationEntry.from_state(state)
        if entry is not None and entry.view_id in self._views:
            view = self._views[entry.view_id]
            # Params must fill every capture group of the view.
            if len(entry.params) == view.pattern.groups:
                await self._activate(view, entry.params)
                return
            logger.debug("History state for '%s' has %d params, resolving from URL", view.id, len(entry.params))
        await self.resolve_from_location()

    async def _activate(
        self,
        view: View,
        params: tuple[str, ...],
        push: tuple[NavigationEntry, str] | None = None,
    ) -> None:
        self.epoch += 1
        navigation = Navigation(self, self.epoch)

        previous = self._active
        if previous is not None:
            previous.active = False
            if previous.behavior.deactivate is not None:
                try:
                    previous.behavior.deactivate()
                except Exception:
                    logger.exception("Failed to deactivate view '%s'", previous.id)

        view.active = True
        self._active = view

        if push is not None:
            entry, path = push
            self._history.push_state(entry.to_state(), path)
        self._set_title(view.title)
        logger.debug("Activated view '%s' with params %s", view.id, params)

        # Pathname and title are settled; activation failures must not undo them.
        if view.behavior.activate is not None:
            try:
                result = view.behavior.activate(params, navigation)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Failed to activate view '%s'", view.id)

    def _set_title(self, title: str) -> None:
        self.title = title
        if self._on_title is not None:
            self._on_title(title)
