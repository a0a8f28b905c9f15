"""
Registry: the display state of the drill + a structured log.
- Receives every SessionListener call from the scheduler
- Keeps what a UI needs to draw: active zones, checkmark, rally counter, countdown
- Provides snapshot() for the UI
- Forwards callouts to the announcer (AudioManager)
"""

import logging
from collections import deque
from typing import Any, Dict, List, Optional

from .session_scheduler import SessionListener
from .zt_audio import AudioManager
from .zt_config import LOG_MAX
from .zt_models import SessionEndReason, utcnow_iso

logger = logging.getLogger(__name__)


class Registry(SessionListener):
    """Display/audio state for one local drill session."""

    def __init__(self, audio: Optional[AudioManager] = None, log_max: int = LOG_MAX) -> None:
        self.audio = audio

        # System log
        self.logs: deque = deque(maxlen=log_max)

        # Display state
        self.active_zones: List[int] = []
        self.checkmark_zone: Optional[int] = None
        self.rally_counter: Optional[Dict[str, int]] = None
        self.countdown: Optional[int] = None
        self.last_end_reason: Optional[str] = None
        self.alert: Optional[str] = None

    # ---------------- Utilities ----------------

    def log(self, msg: str, level: str = "info", source: str = "scheduler") -> None:
        """Append a structured log entry and also emit it through logging."""
        entry = {"ts": utcnow_iso(), "level": level, "source": source, "msg": msg}
        self.logs.appendleft(entry)
        logger.log(logging.getLevelName(level.upper()), "[%s] %s", source, msg)

    def _announce(self, value) -> None:
        if self.audio is None:
            return
        try:
            self.audio.announce(value)
        except Exception as e:
            self.log(f"Announce {value!r} failed: {e}", level="error", source="audio")

    # ---------------- SessionListener ----------------

    def on_zone_selected(self, zone: int, is_primary: bool) -> None:
        self.countdown = None
        self.alert = None
        if zone not in self.active_zones:
            self.active_zones.append(zone)
        if is_primary:
            self.log(f"Zone {zone}")
            self._announce(zone)
        else:
            # Partner zone: second beep, no callout
            self.log(f"Partner zone {zone}")
            self._announce("beep")

    def on_zone_cleared(self) -> None:
        self.active_zones = []
        self.checkmark_zone = None

    def on_confirmation_cue(self, zone: int) -> None:
        self.checkmark_zone = zone

    def on_rally_progress(self, shot_index_in_burst: int, configured_shots_per_rally: int) -> None:
        self.rally_counter = {"current": shot_index_in_burst, "total": configured_shots_per_rally}

    def on_countdown_tick(self, seconds_remaining: int) -> None:
        self.rally_counter = None
        self.countdown = seconds_remaining
        self._announce(f"count_{seconds_remaining}")

    def on_session_ended(self, reason: SessionEndReason) -> None:
        self.active_zones = []
        self.checkmark_zone = None
        self.rally_counter = None
        self.countdown = None
        self.last_end_reason = reason.value
        if reason is SessionEndReason.EMPTY_ZONE_SET:
            self.alert = "Please enable at least one zone!"
            self.log("Session ended: no zones enabled", level="warning")
        else:
            self.log("Session stopped")

    # ---------------- Snapshot for UI ----------------

    def snapshot(self) -> Dict[str, Any]:
        """Return the current display state consumed by the UI."""
        return {
            "active_zones": list(self.active_zones),
            "checkmark_zone": self.checkmark_zone,
            "rally_counter": dict(self.rally_counter) if self.rally_counter else None,
            "countdown": self.countdown,
            "last_end_reason": self.last_end_reason,
            "alert": self.alert,
            "muted": self.audio.muted if self.audio else None,
        }

    def recent_logs(self, limit: int = 50) -> List[Dict[str, Any]]:
        return list(self.logs)[:limit]
