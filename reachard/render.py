"""Rendering sinks for dashboard output.

The dashboard only ever hands well-formed data to a renderer. ``Renderer``
ignores everything; ``TextRenderer`` writes a plain-text rendition.
"""

import json
import sys
from datetime import UTC, datetime
from typing import TextIO

from .models import Bucket, LatencySeries, Target

NO_TARGETS = "No targets."

_BUCKET_CHARS = {
    Bucket.UNKNOWN: "?",
    Bucket.HEALTHY: ".",
    Bucket.INCIDENT: "!",
}


def bucket_row(buckets: list[Bucket]) -> str:
    """Render an incident row oldest-first, one character per hour."""
    return "".join(_BUCKET_CHARS[b] for b in reversed(buckets))


class Renderer:
    """Rendering sink that discards everything."""

    def set_title(self, title: str) -> None:
        pass

    def show_view(self, view_id: str) -> None:
        pass

    def hide_view(self, view_id: str) -> None:
        pass

    def render_login_state(self, logged_in: bool) -> None:
        pass

    def render_targets(self, targets: list[Target]) -> None:
        pass

    def render_no_targets(self) -> None:
        pass

    def render_target(self, target: Target) -> None:
        pass

    def render_incidents(self, target: Target, buckets: list[Bucket]) -> None:
        pass

    def render_latency(self, target: Target, series: LatencySeries) -> None:
        pass

    def render_add_form(self) -> None:
        pass


class TextRenderer(Renderer):
    """Writes dashboard output as plain text lines."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout

    def _write(self, line: str) -> None:
        self._stream.write(line + "\n")

    def set_title(self, title: str) -> None:
        self._write(f"== {title} ==")

    def render_login_state(self, logged_in: bool) -> None:
        self._write("Logged in." if logged_in else "Logged out.")

    def render_targets(self, targets: list[Target]) -> None:
        for target in targets:
            self._write(json.dumps(target.to_dict()))

    def render_no_targets(self) -> None:
        self._write(NO_TARGETS)

    def render_target(self, target: Target) -> None:
        added = datetime.fromtimestamp(target.time_added, UTC).strftime("%Y-%m-%d %H:%M:%S")
        self._write(f"#{target.id} {target.name} {target.url}")
        self._write(f"  every {target.interval_seconds}s, added {added} UTC")

    def render_incidents(self, target: Target, buckets: list[Bucket]) -> None:
        incidents = sum(1 for b in buckets if b is Bucket.INCIDENT)
        self._write(f"  incidents 24h [{bucket_row(buckets)}] {incidents} hour(s) with incidents")

    def render_latency(self, target: Target, series: LatencySeries) -> None:
        measured = [v for v in series.values if v is not None]
        if not measured:
            self._write("  latency: no data")
            return
        avg = sum(measured) / len(measured)
        self._write(
            f"  latency: {len(measured)} samples, avg {avg:.1f}ms, "
            f"min {min(measured):.1f}ms, max {max(measured):.1f}ms, {len(series.gaps)} gap(s)"
        )

    def render_add_form(self) -> None:
        self._write("Use 'reachard add NAME URL --interval SECONDS' to add a target.")
