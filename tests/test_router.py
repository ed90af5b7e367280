"""Tests for the view router and history model."""

import asyncio
import logging
import re

import pytest

from reachard.router import History, Navigation, RouteMismatch, Router, View, ViewBehavior


class Recorder:
    """Collects activation and deactivation calls per view."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, tuple[str, ...]]] = []

    def behavior(self, view_id: str) -> ViewBehavior:
        async def activate(params: tuple[str, ...], navigation: Navigation) -> None:
            self.calls.append(("activate", view_id, params))

        def deactivate() -> None:
            self.calls.append(("deactivate", view_id, ()))

        return ViewBehavior(activate=activate, deactivate=deactivate)

    def activations(self) -> list[tuple[str, tuple[str, ...]]]:
        return [(view_id, params) for kind, view_id, params in self.calls if kind == "activate"]


def make_views(recorder: Recorder) -> list[View]:
    return [
        View("targets", "Targets", re.compile(r"/(?:targets/?)?"), recorder.behavior("targets")),
        View("add", "Add", re.compile(r"/targets/add/?"), recorder.behavior("add")),
        View("target", "Target", re.compile(r"/target/(\d+)/?"), recorder.behavior("target")),
        View("profile", "Profile", re.compile(r"/profile/?"), recorder.behavior("profile")),
    ]


def active_ids(router: Router) -> list[str]:
    return [view.id for view in router.views if view.active]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


class TestHistory:
    """Tests for the History model."""

    def test_push_truncates_forward_entries(self) -> None:
        history = History("/a")
        history.push_state({"n": 1}, "/b")
        history.push_state({"n": 2}, "/c")

        asyncio.run(history.back())
        history.push_state({"n": 3}, "/d")

        assert len(history) == 3
        assert history.location == "/d"
        assert asyncio.run(history.forward()) is False

    def test_go_notifies_listeners_with_state(self) -> None:
        history = History("/a")
        history.push_state({"n": 1}, "/b")
        seen: list[object] = []

        async def listener(state: object) -> None:
            seen.append(state)

        history.add_pop_listener(listener)

        async def scenario() -> None:
            await history.back()
            await history.forward()

        asyncio.run(scenario())
        assert seen == [None, {"n": 1}]
        assert history.location == "/b"

    def test_go_out_of_range(self) -> None:
        history = History("/a")
        assert asyncio.run(history.back()) is False
        assert asyncio.run(history.go(0)) is False
        assert history.location == "/a"

    def test_replace_state(self) -> None:
        history = History("/a")
        history.replace_state({"n": 1}, "/b")
        assert len(history) == 1
        assert history.state == {"n": 1}
        assert history.location == "/b"


class TestRouterConstruction:
    """Tests for Router validation."""

    def test_rejects_duplicate_ids(self, recorder: Recorder) -> None:
        views = make_views(recorder) + [View("profile", "Again", re.compile(r"/again"))]
        with pytest.raises(ValueError, match="Duplicate view id"):
            Router(History(), views)

    def test_rejects_unknown_fallback(self, recorder: Recorder) -> None:
        with pytest.raises(ValueError, match="Fallback view"):
            Router(History(), make_views(recorder), fallback="missing")

    def test_view_match_captures_params(self, recorder: Recorder) -> None:
        view = make_views(recorder)[2]
        assert view.match("/target/42") == ("42",)
        assert view.match("/target/42/extra") is None


class TestResolveFromLocation:
    """Tests for Router.resolve_from_location and start."""

    def test_start_activates_view_for_location(self, recorder: Recorder) -> None:
        router = Router(History("/target/7"), make_views(recorder))
        asyncio.run(router.start())

        assert active_ids(router) == ["target"]
        assert router.title == "Target"
        assert recorder.activations() == [("target", ("7",))]

    def test_first_match_wins_specific_first(self, recorder: Recorder) -> None:
        """With a catch-all registered last, the specific view wins."""
        views = [
            View("targets", "Targets", re.compile(r"^/targets/?$"), recorder.behavior("targets")),
            View("all", "All", re.compile(r"^/.*$"), recorder.behavior("all")),
        ]
        router = Router(History("/targets"), views)
        assert asyncio.run(router.resolve_from_location()) is True
        assert active_ids(router) == ["targets"]

    def test_first_match_wins_catch_all_first(self, recorder: Recorder) -> None:
        """Registration order decides even when the catch-all is first."""
        views = [
            View("all", "All", re.compile(r"^/.*$"), recorder.behavior("all")),
            View("targets", "Targets", re.compile(r"^/targets/?$"), recorder.behavior("targets")),
        ]
        router = Router(History("/targets"), views)
        asyncio.run(router.resolve_from_location())
        assert active_ids(router) == ["all"]

    def test_unmatched_path_keeps_current_view(self, recorder: Recorder) -> None:
        history = History("/profile")
        router = Router(history, make_views(recorder))

        async def scenario() -> bool:
            await router.start()
            history.push_state(None, "/nowhere")
            return await router.resolve_from_location()

        assert asyncio.run(scenario()) is False
        assert active_ids(router) == ["profile"]

    def test_unmatched_initial_path_uses_fallback(self, recorder: Recorder) -> None:
        router = Router(History("/nowhere"), make_views(recorder), fallback="targets")
        asyncio.run(router.start())
        assert active_ids(router) == ["targets"]

    def test_unmatched_initial_path_without_fallback(self, recorder: Recorder) -> None:
        router = Router(History("/nowhere"), make_views(recorder))
        asyncio.run(router.start())
        assert router.active is None
        assert active_ids(router) == []

    def test_start_twice_listens_once(self, recorder: Recorder) -> None:
        """A second start re-resolves but does not double pop handling."""
        history = History("/")
        router = Router(history, make_views(recorder))

        async def scenario() -> None:
            await router.start()
            await router.start()
            await router.navigate("profile", "/profile")
            await history.back()

        asyncio.run(scenario())

        assert recorder.activations() == [
            ("targets", ()),
            ("targets", ()),
            ("profile", ()),
            ("targets", ()),
        ]


class TestNavigate:
    """Tests for Router.navigate."""

    def test_navigate_pushes_entry_and_sets_title(self, recorder: Recorder) -> None:
        history = History("/")
        titles: list[str] = []
        router = Router(history, make_views(recorder), on_title=titles.append)

        async def scenario() -> None:
            await router.start()
            await router.navigate("target", "/target/3")

        asyncio.run(scenario())

        assert history.location == "/target/3"
        assert history.state == {"view_id": "target", "params": ["3"]}
        assert titles == ["Targets", "Target"]
        assert recorder.calls == [
            ("activate", "targets", ()),
            ("deactivate", "targets", ()),
            ("activate", "target", ("3",)),
        ]

    def test_navigate_mismatch_is_contract_violation(self, recorder: Recorder) -> None:
        router = Router(History("/"), make_views(recorder))
        asyncio.run(router.start())

        with pytest.raises(RouteMismatch):
            asyncio.run(router.navigate("target", "/profile"))
        assert active_ids(router) == ["targets"]

    def test_navigate_unknown_view(self, recorder: Recorder) -> None:
        router = Router(History("/"), make_views(recorder))
        with pytest.raises(KeyError):
            asyncio.run(router.navigate("settings", "/settings"))

    def test_activation_failure_keeps_navigation(
        self, recorder: Recorder, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A failing activation is logged; path and title stay updated."""

        async def failing(params: tuple[str, ...], navigation: Navigation) -> None:
            raise RuntimeError("fetch failed")

        views = make_views(recorder)
        views[3] = View("profile", "Profile", re.compile(r"/profile/?"), ViewBehavior(activate=failing))
        history = History("/")
        router = Router(history, views)

        async def scenario() -> None:
            await router.start()
            await router.navigate("profile", "/profile")

        with caplog.at_level(logging.ERROR, logger="reachard.router"):
            asyncio.run(scenario())

        assert history.location == "/profile"
        assert router.title == "Profile"
        assert active_ids(router) == ["profile"]
        assert "Failed to activate view 'profile'" in caplog.text

    def test_sync_behavior_is_supported(self) -> None:
        seen: list[tuple[str, ...]] = []
        view = View("a", "A", re.compile(r"/a/(\w+)"), ViewBehavior(activate=lambda params, nav: seen.append(params)))
        router = Router(History("/a/x"), [view])
        asyncio.run(router.start())
        assert seen == [("x",)]


class TestHistoryPopped:
    """Tests for Router.on_history_popped."""

    def test_back_and_forward_restore_views(self, recorder: Recorder) -> None:
        history = History("/")
        router = Router(history, make_views(recorder))

        async def scenario() -> None:
            await router.start()
            await router.navigate("target", "/target/9")
            await router.navigate("profile", "/profile")
            await history.back()
            assert active_ids(router) == ["target"]
            await history.back()
            assert active_ids(router) == ["targets"]
            await history.forward()

        asyncio.run(scenario())

        assert active_ids(router) == ["target"]
        assert recorder.activations()[-1] == ("target", ("9",))

    def test_state_is_authoritative_over_url(self, recorder: Recorder) -> None:
        """A well-formed entry is used even if the URL points elsewhere."""
        history = History("/")
        router = Router(history, make_views(recorder))

        async def scenario() -> None:
            await router.start()
            history.push_state({"view_id": "target", "params": ["5"]}, "/profile")
            await router.navigate("add", "/targets/add")
            await history.back()

        asyncio.run(scenario())

        assert active_ids(router) == ["target"]
        assert recorder.activations()[-1] == ("target", ("5",))

    @pytest.mark.parametrize(
        "state",
        [
            None,
            "profile",
            {"view_id": 3},
            {"view_id": "profile", "params": [1]},
            {"view_id": "settings", "params": []},
            {"view_id": "target", "params": []},
            {"view_id": "profile", "params": ["x"]},
        ],
    )
    def test_malformed_state_falls_back_to_location(self, recorder: Recorder, state: object) -> None:
        history = History("/profile")
        router = Router(history, make_views(recorder))

        async def scenario() -> None:
            await router.start()
            await router.navigate("targets", "/targets")
            await router.on_history_popped(state)

        asyncio.run(scenario())
        # history.location is still /targets; the URL decides
        assert active_ids(router) == ["targets"]

    def test_single_active_invariant(self, recorder: Recorder) -> None:
        history = History("/")
        router = Router(history, make_views(recorder), fallback="targets")
        observed: list[int] = []

        async def scenario() -> None:
            await router.start()
            observed.append(len(active_ids(router)))
            for view_id, path in [("target", "/target/1"), ("profile", "/profile"), ("add", "/targets/add")]:
                await router.navigate(view_id, path)
                observed.append(len(active_ids(router)))
            for _ in range(3):
                await history.back()
                observed.append(len(active_ids(router)))
            history.push_state(None, "/unknown")
            await router.resolve_from_location()
            observed.append(len(active_ids(router)))
            await router.on_history_popped({"view_id": "profile", "params": []})
            observed.append(len(active_ids(router)))

        asyncio.run(scenario())
        assert observed and all(count == 1 for count in observed)


class TestNavigationEpoch:
    """Tests for superseded activations."""

    def test_superseded_activation_is_not_current(self) -> None:
        results: dict[str, bool] = {}

        async def scenario() -> None:
            gate = asyncio.Event()

            async def slow(params: tuple[str, ...], navigation: Navigation) -> None:
                await gate.wait()
                results["slow"] = navigation.is_current()

            async def fast(params: tuple[str, ...], navigation: Navigation) -> None:
                results["fast"] = navigation.is_current()

            views = [
                View("slow", "Slow", re.compile(r"/slow"), ViewBehavior(activate=slow)),
                View("fast", "Fast", re.compile(r"/fast"), ViewBehavior(activate=fast)),
            ]
            router = Router(History("/"), views)

            pending = asyncio.create_task(router.navigate("slow", "/slow"))
            await asyncio.sleep(0)
            await router.navigate("fast", "/fast")
            gate.set()
            await pending

        asyncio.run(scenario())
        assert results == {"slow": False, "fast": True}
