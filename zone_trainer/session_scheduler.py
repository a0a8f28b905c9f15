#!/usr/bin/env python3
"""
Session Scheduler - Drives practice and rally sessions
Owns session lifecycle, every session timer, and the calls out to the
display/audio layer (SessionListener)
"""

import logging
import math
import random
from typing import Any, Dict, Optional

from .zt_config import (
    CONFIRMATION_RATIO, COUNTDOWN_STEP_MS, MIRROR_DELAY_MS, RALLY_VARIATION,
)
from .zt_errors import ConfigurationError, EmptyZoneSetError
from .zt_models import (
    CourtLayout, RallyPhase, SchedulerState, SequenceConfig, SessionEndReason,
    SessionMode, SessionRunState, SessionSettings, ZoneSet, coerce_enum, mirrored_zone,
)
from .zone_sequencer import ZoneSequencer

logger = logging.getLogger(__name__)

_TIMER_FIELDS = ("interval_timer", "shot_timer", "confirmation_timer", "countdown_timer", "mirror_timer")


class SessionListener:
    """
    Display/audio side of a session. Override what you need; defaults do nothing.

    Calls arrive on the timer host's thread, one at a time. An exception
    raised here is logged; the session keeps running.
    """

    def on_zone_selected(self, zone: int, is_primary: bool) -> None:
        pass

    def on_zone_cleared(self) -> None:
        pass

    def on_confirmation_cue(self, zone: int) -> None:
        pass

    def on_rally_progress(self, shot_index_in_burst: int, configured_shots_per_rally: int) -> None:
        pass

    def on_countdown_tick(self, seconds_remaining: int) -> None:
        pass

    def on_session_ended(self, reason: SessionEndReason) -> None:
        pass


class SessionScheduler:
    """
    Practice / rally state machine.

    States:
    - IDLE
    - PRACTICE_RUNNING: one zone every pause_time_ms, confirmation cue at 80%
    - RALLY_RUNNING: SHOT_BURST (zones every rally_speed_ms) then
      INTER_RALLY_COUNTDOWN (rally_pause_sec ticks), repeated

    Every timer a session arms is stored on its SessionRunState and
    cancelled by stop() before it returns; every callback also checks that
    its run is still the current one.
    """

    def __init__(
        self,
        timer_host,
        listener: Optional[SessionListener] = None,
        sequencer: Optional[ZoneSequencer] = None,
        zone_set: Optional[ZoneSet] = None,
        settings: Optional[SessionSettings] = None,
        practice_sequence: Optional[SequenceConfig] = None,
        rally_sequence: Optional[SequenceConfig] = None,
        mirror_delay_ms: float = MIRROR_DELAY_MS,
    ):
        self.timers = timer_host
        self.listener = listener or SessionListener()
        self.sequencer = sequencer or ZoneSequencer()
        self.rng: random.Random = self.sequencer.rng
        self.mirror_delay_ms = mirror_delay_ms

        self.zone_set: ZoneSet = zone_set or ZoneSet.all_enabled()
        self.settings: SessionSettings = settings or SessionSettings()
        self.sequences: Dict[SessionMode, SequenceConfig] = {
            SessionMode.PRACTICE: practice_sequence or SequenceConfig(),
            SessionMode.RALLY: rally_sequence or SequenceConfig(),
        }
        self.settings.validate()
        for config in self.sequences.values():
            config.validate(self.zone_set.layout)

        # Mode selected for the next start() (the "tab")
        self.mode: SessionMode = SessionMode.PRACTICE

        self._run: Optional[SessionRunState] = None
        self.last_end_reason: Optional[SessionEndReason] = None
        self.last_stats: Dict[str, int] = {"rally_count": 0, "shot_count": 0}

    # ---------------- Status ----------------

    @property
    def court_layout(self) -> CourtLayout:
        return self.zone_set.layout

    @property
    def state(self) -> SchedulerState:
        if self._run is None:
            return SchedulerState.IDLE
        if self._run.mode is SessionMode.RALLY:
            return SchedulerState.RALLY_RUNNING
        return SchedulerState.PRACTICE_RUNNING

    @property
    def rally_phase(self) -> Optional[RallyPhase]:
        return self._run.rally_phase if self._run else None

    def is_running(self) -> bool:
        return self._run is not None

    def current_session_stats(self) -> Dict[str, int]:
        """Counts for the running session; zeros when idle."""
        if self._run is None:
            return {"rally_count": 0, "shot_count": 0}
        return self._run.stats()

    # ---------------- Configuration ----------------

    def configure(
        self,
        zone_set: Optional[ZoneSet] = None,
        settings: Optional[SessionSettings] = None,
        practice_sequence: Optional[SequenceConfig] = None,
        rally_sequence: Optional[SequenceConfig] = None,
        court_layout: Any = None,
    ) -> None:
        """
        Replace any subset of the configuration. Only allowed while idle.

        Everything is validated before anything is applied.

        Raises:
            ConfigurationError: session running, or any value invalid
        """
        if self.is_running():
            raise ConfigurationError("Cannot configure while a session is running - stop it first")

        new_zone_set = zone_set or self.zone_set
        layout = coerce_enum(CourtLayout, court_layout, "court layout") if court_layout is not None else new_zone_set.layout
        new_settings = settings or self.settings
        new_practice = practice_sequence or self.sequences[SessionMode.PRACTICE]
        new_rally = rally_sequence or self.sequences[SessionMode.RALLY]

        new_settings.validate()
        new_practice.validate(layout)
        new_rally.validate(layout)

        new_zone_set.layout = layout
        self.zone_set = new_zone_set
        self.settings = new_settings
        self.sequences[SessionMode.PRACTICE] = new_practice
        self.sequences[SessionMode.RALLY] = new_rally
        logger.info(
            "Configured: layout=%s enabled=%s settings=%s practice=%s rally=%s",
            layout.value, new_zone_set.enabled_primary_zones(), new_settings.to_dict(),
            new_practice.mode.value, new_rally.mode.value,
        )

    def select_mode(self, mode: Any) -> SessionMode:
        """Switch practice/rally. A running session is stopped first."""
        mode = coerce_enum(SessionMode, mode, "session mode")
        if self.is_running():
            self.stop()
        self.mode = mode
        return mode

    def select_layout(self, layout: Any) -> CourtLayout:
        """
        Switch singles/doubles. A running session is stopped first.

        Custom order entries outside the new layout's range are dropped.
        """
        layout = coerce_enum(CourtLayout, layout, "court layout")
        if self.is_running():
            self.stop()
        self.zone_set.layout = layout
        for session_mode, config in self.sequences.items():
            kept = [z for z in config.custom_order if 1 <= z <= layout.max_zone]
            if len(kept) != len(config.custom_order):
                logger.info("Dropped out-of-range zones from %s custom order for %s court",
                            session_mode.value, layout.value)
                config.custom_order = kept
        return layout

    def set_zone_enabled(self, zone: int, enabled: bool) -> bool:
        """Enable/disable a zone. Ignored (returns False) while a session runs."""
        if self.is_running():
            logger.warning("Zone %s change ignored - session running", zone)
            return False
        self.zone_set.set_enabled(zone, enabled)
        return True

    def toggle_zone(self, zone: int) -> bool:
        if self.is_running():
            logger.warning("Zone %s toggle ignored - session running", zone)
            return False
        self.zone_set.set_enabled(zone, not self.zone_set.is_enabled(zone))
        return True

    # ---------------- Lifecycle ----------------

    def start(
        self,
        mode: Any = None,
        settings: Optional[SessionSettings] = None,
        sequence_config: Optional[SequenceConfig] = None,
    ) -> bool:
        """
        Start a session.

        Flow:
        1. Refuse (return False) if a session is already running
        2. Validate mode, settings and sequence config
        3. Fresh run state: counts at 0, new cursor
        4. Enter the practice or rally loop (first zone fires immediately)

        Returns:
            True if a session was started (it may already have ended if
            no zone is enabled; see last_end_reason)

        Raises:
            ConfigurationError: invalid mode, settings or sequence
        """
        if self.is_running():
            logger.info("Start ignored - session already running")
            return False

        mode = coerce_enum(SessionMode, mode, "session mode") if mode is not None else self.mode
        settings = settings or self.settings
        sequence = sequence_config or self.sequences[mode]
        settings.validate()
        sequence.validate(self.court_layout)

        self.mode = mode
        self.last_end_reason = None
        run = SessionRunState(mode=mode, settings=settings, sequence=sequence)
        self._run = run
        logger.info(
            "Session started: mode=%s layout=%s sequence=%s",
            mode.value, self.court_layout.value, sequence.mode.value,
        )

        if mode is SessionMode.PRACTICE:
            self._start_practice(run)
        else:
            self._start_rally(run)
        return True

    def stop(self) -> bool:
        """
        Stop the running session. Idempotent.

        All timers are cancelled before this returns, so nothing else
        (selection, cue, counter) happens for the stopped session.
        """
        if self._run is None:
            return False
        self._end_session(SessionEndReason.USER_STOP)
        return True

    def _end_session(self, reason: SessionEndReason) -> None:
        run = self._run
        if run is None:
            return

        for name in _TIMER_FIELDS:
            self.timers.cancel(getattr(run, name))
            setattr(run, name, None)
        run.is_running = False
        self._run = None
        self.last_end_reason = reason
        self.last_stats = run.stats()

        logger.info("Session ended (%s): rallies=%d shots=%d",
                    reason.value, run.rally_count, run.shot_count)
        self._notify("on_zone_cleared")
        self._notify("on_session_ended", reason)

    def _notify(self, event: str, *args: Any) -> None:
        """Call one listener method; a failing listener is logged and the session carries on."""
        try:
            getattr(self.listener, event)(*args)
        except Exception:
            logger.exception("Listener %s%r failed", event, args)

    def _is_current(self, run: SessionRunState) -> bool:
        return run.is_running and run is self._run

    # ---------------- Shared cycle steps ----------------

    def _select(self, run: SessionRunState) -> Optional[int]:
        """Next zone for this run, or None after ending the session on an empty zone set."""
        try:
            return self.sequencer.require_next_zone(self.zone_set, run.cursor, run.sequence)
        except EmptyZoneSetError as e:
            logger.warning("%s - ending session", e)
            self._end_session(SessionEndReason.EMPTY_ZONE_SET)
            return None

    def _clear_cues(self, run: SessionRunState) -> None:
        self.timers.cancel(run.mirror_timer)
        run.mirror_timer = None
        self._notify("on_zone_cleared")

    def _present(self, run: SessionRunState, zone: int) -> None:
        """Report the zone; on a doubles court, the partner zone follows shortly after."""
        self._notify("on_zone_selected", zone, True)
        if self.court_layout is CourtLayout.DOUBLES and self._is_current(run):
            run.mirror_timer = self.timers.set_timeout(
                lambda: self._present_mirror(run, zone), self.mirror_delay_ms
            )

    def _present_mirror(self, run: SessionRunState, zone: int) -> None:
        if not self._is_current(run):
            return
        run.mirror_timer = None
        self._notify("on_zone_selected", mirrored_zone(zone), False)

    # ---------------- Practice ----------------

    def _start_practice(self, run: SessionRunState) -> None:
        # Start immediately, then continue at intervals
        self._practice_cycle(run)
        if self._is_current(run):
            run.interval_timer = self.timers.set_interval(
                lambda: self._practice_cycle(run), run.settings.pause_time_ms
            )

    def _practice_cycle(self, run: SessionRunState) -> None:
        if not self._is_current(run):
            return

        self._clear_cues(run)
        zone = self._select(run) if self._is_current(run) else None
        if zone is None:
            return

        # Checkmark shortly before the next zone
        self.timers.cancel(run.confirmation_timer)
        run.confirmation_timer = self.timers.set_timeout(
            lambda: self._confirm(run, zone), run.settings.pause_time_ms * CONFIRMATION_RATIO
        )
        self._present(run, zone)

    def _confirm(self, run: SessionRunState, zone: int) -> None:
        if not self._is_current(run):
            return
        run.confirmation_timer = None
        self._notify("on_confirmation_cue", zone)

    # ---------------- Rally ----------------

    def rally_burst_length(self, shots_per_rally: int) -> int:
        """Shots in one rally: shots_per_rally +/- up to 30%, inclusive."""
        variation = int(math.floor(shots_per_rally * RALLY_VARIATION))
        return shots_per_rally + self.rng.randint(-variation, variation)

    def _start_rally(self, run: SessionRunState) -> None:
        self._begin_burst(run)

    def _begin_burst(self, run: SessionRunState) -> None:
        if not self._is_current(run):
            return
        run.rally_phase = RallyPhase.SHOT_BURST
        run.shots_in_burst = self.rally_burst_length(run.settings.shots_per_rally)
        run.shot_index = 0
        logger.debug("Rally %d: %d shots", run.rally_count + 1, run.shots_in_burst)
        self._rally_shot(run)

    def _rally_shot(self, run: SessionRunState) -> None:
        if not self._is_current(run):
            return
        run.shot_timer = None

        if run.shot_index >= run.shots_in_burst:
            self._finish_burst(run)
            return

        self._clear_cues(run)
        zone = self._select(run) if self._is_current(run) else None
        if zone is None:
            return

        run.shot_count += 1
        run.shot_index += 1
        # Armed before the listener calls below
        run.shot_timer = self.timers.set_timeout(
            lambda: self._rally_shot(run), run.settings.rally_speed_ms
        )

        self._present(run, zone)
        if self._is_current(run):
            # Counter shows the configured rally length, not this burst's varied one
            self._notify("on_rally_progress", run.shot_index, run.settings.shots_per_rally)

    def _finish_burst(self, run: SessionRunState) -> None:
        self._clear_cues(run)
        run.rally_count += 1
        run.rally_phase = RallyPhase.INTER_RALLY_COUNTDOWN
        run.countdown_remaining = run.settings.rally_pause_sec
        logger.debug("Rally %d complete - %ds pause", run.rally_count, run.countdown_remaining)
        self._countdown_tick(run)

    def _countdown_tick(self, run: SessionRunState) -> None:
        if not self._is_current(run):
            return
        run.countdown_timer = None

        if run.countdown_remaining <= 0:
            self._begin_burst(run)
            return

        seconds = run.countdown_remaining
        run.countdown_remaining -= 1
        run.countdown_timer = self.timers.set_timeout(
            lambda: self._countdown_tick(run), COUNTDOWN_STEP_MS
        )
        self._notify("on_countdown_tick", seconds)
