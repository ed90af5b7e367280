"""Data models for targets, navigation state and chart series."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Bucket(Enum):
    """Health of one hour in the incident row."""

    UNKNOWN = "unknown"  # target did not exist yet
    HEALTHY = "healthy"
    INCIDENT = "incident"


@dataclass(frozen=True)
class Target:
    """A monitored endpoint as returned by the targets endpoint.

    Attributes:
        id: Server-assigned numeric identifier.
        name: Human-readable label.
        url: Monitored URL.
        interval_seconds: Check interval, also the expected latency sampling step.
        time_added: Creation time in seconds since the epoch.
    """

    id: int
    name: str
    url: str
    interval_seconds: int
    time_added: int

    @classmethod
    def from_json(cls, data: Any) -> "Target":
        """Build a Target from a decoded JSON object.

        Raises:
            ValueError: If a field is missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError("target record is not a JSON object")
        try:
            target_id = data["id"]
            name = data["name"]
            url = data["url"]
            interval_seconds = data["interval_seconds"]
            time_added = data["time_added"]
        except KeyError as e:
            raise ValueError(f"target record is missing {e}")

        # bool is an int subclass; reject it explicitly
        for key, value in (("id", target_id), ("interval_seconds", interval_seconds), ("time_added", time_added)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"target field '{key}' is not an integer")
        for key, value in (("name", name), ("url", url)):
            if not isinstance(value, str):
                raise ValueError(f"target field '{key}' is not a string")

        return cls(
            id=target_id,
            name=name,
            url=url,
            interval_seconds=interval_seconds,
            time_added=time_added,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "interval_seconds": self.interval_seconds,
            "time_added": self.time_added,
        }


@dataclass(frozen=True)
class NavigationEntry:
    """State pushed to history for every navigation.

    Carries enough to re-activate a view without parsing the URL again.
    """

    view_id: str
    params: tuple[str, ...] = ()

    def to_state(self) -> dict[str, Any]:
        """Serialize to a plain mapping, the shape stored in history."""
        return {"view_id": self.view_id, "params": list(self.params)}

    @classmethod
    def from_state(cls, state: Any) -> "NavigationEntry | None":
        """Decode history state, returning None when it is not a well-formed entry."""
        if isinstance(state, cls):
            return state
        if not isinstance(state, dict):
            return None

        view_id = state.get("view_id")
        params = state.get("params", [])
        if not isinstance(view_id, str) or not view_id:
            return None
        if not isinstance(params, (list, tuple)) or not all(isinstance(p, str) for p in params):
            return None
        return cls(view_id=view_id, params=tuple(params))


@dataclass(frozen=True)
class LatencySeries:
    """Latency samples ready for charting.

    Attributes:
        timestamps: Ascending sample times in seconds.
        values: Response times, None where no measurement exists.
        gaps: Sorted (start, end) index pairs the chart must not bridge.
    """

    timestamps: tuple[int, ...]
    values: tuple[float | None, ...]
    gaps: tuple[tuple[int, int], ...] = field(default_factory=tuple)
