"""
Dataclasses and small model helpers used throughout the zone trainer.

Zones are plain ints. A singles court half uses zones 1-6; the doubles
layout adds partner zones 7-12, where zone z pairs with z + 6.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from numbers import Real
from typing import Any, Dict, Iterable, List, Optional, Type

from .zt_config import (
    DEFAULT_PAUSE_TIME_MS, DEFAULT_SHOTS_PER_RALLY,
    DEFAULT_RALLY_PAUSE_SEC, DEFAULT_RALLY_SPEED_MS,
)
from .zt_errors import ConfigurationError

PRIMARY_ZONES: List[int] = [1, 2, 3, 4, 5, 6]
MIRROR_OFFSET: int = 6


def utcnow_iso() -> str:
    """UTC timestamp in ISO 8601 format (seconds precision)."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class SessionMode(Enum):
    """Operating mode of a session"""
    PRACTICE = "practice"
    RALLY = "rally"


class SequenceMode(Enum):
    """How the next zone is picked"""
    RANDOM = "random"
    SEQUENTIAL = "sequential"
    CUSTOM = "custom"


class CourtLayout(Enum):
    """Court layout; fixes the valid zone range for a session"""
    SINGLES = "singles"
    DOUBLES = "doubles"

    @property
    def max_zone(self) -> int:
        return 12 if self is CourtLayout.DOUBLES else 6


class SchedulerState(Enum):
    IDLE = "idle"
    PRACTICE_RUNNING = "practice_running"
    RALLY_RUNNING = "rally_running"


class RallyPhase(Enum):
    SHOT_BURST = "shot_burst"
    INTER_RALLY_COUNTDOWN = "inter_rally_countdown"


class SessionEndReason(Enum):
    USER_STOP = "user_stop"
    EMPTY_ZONE_SET = "empty_zone_set"


def coerce_enum(enum_cls: Type[Enum], value: Any, what: str) -> Any:
    """Accept an enum member or its string value; anything else is a ConfigurationError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(f"Unknown {what} {value!r} (expected one of: {allowed})") from None


def mirrored_zone(zone: int) -> int:
    """Partner zone in a doubles layout (1->7, 7->1). Out-of-range zones map to themselves."""
    if 1 <= zone <= 6:
        return zone + MIRROR_OFFSET
    if 7 <= zone <= 12:
        return zone - MIRROR_OFFSET
    return zone


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_custom_sequence(text: Optional[str], layout: CourtLayout = CourtLayout.SINGLES) -> List[int]:
    """
    Parse the comma-separated custom order a settings form produces.

    Entries that are not integers or fall outside 1..max_zone are dropped,
    so "1, 3, x, 9" on a singles court yields [1, 3].

    Args:
        text: e.g. "1,3,2,4,6" (blank or None gives an empty order)
        layout: court layout the order is meant for

    Returns:
        List of zones in configured order
    """
    if not text or not text.strip():
        return []

    zones: List[int] = []
    for part in text.split(","):
        part = part.strip()
        try:
            zone = int(part)
        except ValueError:
            continue
        if 1 <= zone <= layout.max_zone:
            zones.append(zone)
    return zones


@dataclass
class ZoneSet:
    """
    Enabled/disabled state for every zone of the layout.

    The scheduler reads this live at each selection; edits through the
    scheduler are refused while a session runs.
    """
    layout: CourtLayout = CourtLayout.SINGLES
    enabled: Dict[int, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.layout = coerce_enum(CourtLayout, self.layout, "court layout")
        given = dict(self.enabled)
        for zone in given:
            self._check_zone(zone)
        # Every zone of the widest layout is tracked so switching layouts keeps state
        self.enabled = {z: bool(given.get(z, True)) for z in range(1, 13)}

    @classmethod
    def all_enabled(cls, layout: CourtLayout = CourtLayout.SINGLES) -> "ZoneSet":
        return cls(layout=layout)

    @classmethod
    def from_zones(cls, zones: Iterable[int], layout: CourtLayout = CourtLayout.SINGLES) -> "ZoneSet":
        """Build a set where only the given zones are enabled."""
        wanted = set(zones)
        zone_set = cls(layout=layout)
        for zone in wanted:
            zone_set._check_zone(zone)
        zone_set.enabled = {z: z in wanted for z in range(1, 13)}
        return zone_set

    def _check_zone(self, zone: Any) -> None:
        if not _is_int(zone) or not 1 <= zone <= 12:
            raise ConfigurationError(f"Invalid zone {zone!r} (expected 1-12)")

    def is_enabled(self, zone: int) -> bool:
        return self.enabled.get(zone, False)

    def set_enabled(self, zone: int, enabled: bool) -> None:
        self._check_zone(zone)
        self.enabled[zone] = bool(enabled)

    def disable_all(self) -> None:
        for zone in self.enabled:
            self.enabled[zone] = False

    def enabled_primary_zones(self) -> List[int]:
        """Enabled zones of the near court half (1-6), ascending."""
        return [z for z in PRIMARY_ZONES if self.enabled.get(z, False)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layout": self.layout.value,
            "enabled": {str(z): self.enabled[z] for z in range(1, self.layout.max_zone + 1)},
        }


@dataclass
class SequenceConfig:
    """Selection mode plus the custom order used when mode is CUSTOM."""
    mode: SequenceMode = SequenceMode.RANDOM
    custom_order: List[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.mode = coerce_enum(SequenceMode, self.mode, "sequence mode")
        self.custom_order = list(self.custom_order or [])

    def validate(self, layout: CourtLayout) -> None:
        for zone in self.custom_order:
            if not _is_int(zone) or not 1 <= zone <= layout.max_zone:
                raise ConfigurationError(
                    f"Custom sequence entry {zone!r} outside 1-{layout.max_zone} for {layout.value} court"
                )

    def to_dict(self) -> Dict[str, Any]:
        return {"mode": self.mode.value, "custom_order": list(self.custom_order)}


@dataclass
class SequencerCursor:
    """
    Selection position for one session.

    `indices` holds one position per ordered mode (sequential, custom);
    -1 means "before start".
    """
    last_zone: Optional[int] = None
    indices: Dict[SequenceMode, int] = field(
        default_factory=lambda: {SequenceMode.SEQUENTIAL: -1, SequenceMode.CUSTOM: -1}
    )

    def index(self, mode: SequenceMode) -> int:
        return self.indices.get(mode, -1)


@dataclass
class SessionSettings:
    pause_time_ms: float = DEFAULT_PAUSE_TIME_MS
    shots_per_rally: int = DEFAULT_SHOTS_PER_RALLY
    rally_pause_sec: int = DEFAULT_RALLY_PAUSE_SEC
    rally_speed_ms: float = DEFAULT_RALLY_SPEED_MS

    def validate(self) -> None:
        """Raise ConfigurationError unless every value is positive (counts must be ints)."""
        for name in ("pause_time_ms", "rally_speed_ms"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, Real) or not value > 0:
                raise ConfigurationError(f"{name} must be a positive number, got {value!r}")
        for name in ("shots_per_rally", "rally_pause_sec"):
            value = getattr(self, name)
            if not _is_int(value) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionSettings":
        known = {k: data[k] for k in ("pause_time_ms", "shots_per_rally", "rally_pause_sec", "rally_speed_ms") if k in data}
        unknown = set(data) - set(known)
        if unknown:
            raise ConfigurationError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
        settings = cls(**known)
        settings.validate()
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pause_time_ms": self.pause_time_ms,
            "shots_per_rally": self.shots_per_rally,
            "rally_pause_sec": self.rally_pause_sec,
            "rally_speed_ms": self.rally_speed_ms,
        }


@dataclass
class SessionRunState:
    """
    Live state of one running session. Owned by SessionScheduler.

    Note: the *_timer fields are timer-host handles; stop() cancels each.
    """
    mode: SessionMode
    settings: SessionSettings
    sequence: SequenceConfig
    cursor: SequencerCursor = field(default_factory=SequencerCursor)
    is_running: bool = True
    rally_count: int = 0
    shot_count: int = 0

    # rally bookkeeping
    rally_phase: Optional[RallyPhase] = None
    shots_in_burst: int = 0
    shot_index: int = 0
    countdown_remaining: int = 0

    # owned timers
    interval_timer: Any = field(default=None, repr=False)
    shot_timer: Any = field(default=None, repr=False)
    confirmation_timer: Any = field(default=None, repr=False)
    countdown_timer: Any = field(default=None, repr=False)
    mirror_timer: Any = field(default=None, repr=False)

    def stats(self) -> Dict[str, int]:
        return {"rally_count": self.rally_count, "shot_count": self.shot_count}
