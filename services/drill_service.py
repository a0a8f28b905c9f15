#!/usr/bin/env python3
"""
Drill Service - Manages the local practice/rally drill session
Thin façade over SessionScheduler for the web routes and the launcher
"""

import logging
import threading
from typing import Any, Dict, Optional

from zone_trainer.session_scheduler import SessionScheduler
from zone_trainer.zt_audio import AudioManager, AudioSettings
from zone_trainer.zt_config import ENABLE_AUDIO
from zone_trainer.zt_errors import ConfigurationError
from zone_trainer.zt_models import (
    CourtLayout, SequenceConfig, SessionMode, SessionSettings, ZoneSet, coerce_enum, parse_custom_sequence,
)
from zone_trainer.zt_registry import Registry
from zone_trainer.zt_timers import ThreadedTimerHost

logger = logging.getLogger(__name__)


def _require_mapping(value: Any, key: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigurationError(f"{key} must be a JSON object, got {type(value).__name__}")
    return value


class DrillService:
    """
    Manages the one local drill session.

    Features:
    - configure / start / stop / status for practice and rally modes
    - zone toggles, court layout and mode switches
    - display state + recent log from the Registry

    Every public call holds the timer host's lock, so web threads and
    timer callbacks never interleave.
    """

    def __init__(self, timer_host, registry: Optional[Registry] = None,
                 scheduler: Optional[SessionScheduler] = None):
        self.timers = timer_host
        self.registry = registry or Registry()
        self.scheduler = scheduler or SessionScheduler(timer_host, listener=self.registry)
        self.lock = getattr(timer_host, "lock", None) or threading.RLock()

    # ---------------- Configuration ----------------

    def configure(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a configuration payload (only while idle).

        Payload keys (all optional):
            court_layout: 'singles' | 'doubles'
            zones_enabled: {"1": true, ...} or [1, 3, 5]
            settings: {pause_time_ms, shots_per_rally, rally_pause_sec, rally_speed_ms}
            practice_sequence / rally_sequence:
                {mode, custom_order: [..]} or {mode, custom_text: "1,3,2"}

        Returns:
            {'success': bool, 'error': str (if failed)}
        """
        with self.lock:
            if self.scheduler.is_running():
                return {'success': False, 'error': 'Stop the session before changing configuration',
                        'already_running': True}
            try:
                layout = coerce_enum(CourtLayout, data.get("court_layout", self.scheduler.court_layout.value),
                                     "court layout")
                zone_set = self._parse_zone_set(data.get("zones_enabled"), layout)
                settings = None
                if data.get("settings") is not None:
                    merged = self.scheduler.settings.to_dict()
                    merged.update(_require_mapping(data["settings"], "settings"))
                    settings = SessionSettings.from_dict(merged)
                practice = self._parse_sequence(data.get("practice_sequence"), layout, "practice_sequence")
                rally = self._parse_sequence(data.get("rally_sequence"), layout, "rally_sequence")

                self.scheduler.configure(
                    zone_set=zone_set,
                    settings=settings,
                    practice_sequence=practice,
                    rally_sequence=rally,
                    court_layout=layout,
                )
            except (ConfigurationError, TypeError) as e:
                self.registry.log(f"Configuration rejected: {e}", level="warning", source="service")
                return {'success': False, 'error': str(e)}

            self.registry.log("Configuration updated", source="service")
            return {'success': True, 'config': self._config_dict()}

    def _parse_zone_set(self, zones_enabled: Any, layout: CourtLayout) -> Optional[ZoneSet]:
        if zones_enabled is None:
            return None
        if isinstance(zones_enabled, dict):
            enabled = {}
            for key, value in zones_enabled.items():
                try:
                    zone = int(key)
                except ValueError:
                    raise ConfigurationError(f"Invalid zone key {key!r}") from None
                if not isinstance(value, bool):
                    raise ConfigurationError(f"Zone {key} must be true or false, got {value!r}")
                enabled[zone] = value
            base = dict(self.scheduler.zone_set.enabled)
            base.update(enabled)
            return ZoneSet(layout=layout, enabled=base)
        if isinstance(zones_enabled, list):
            return ZoneSet.from_zones(zones_enabled, layout=layout)
        raise ConfigurationError("zones_enabled must be a mapping or a list of zones")

    def _parse_sequence(self, data: Any, layout: CourtLayout, key: str) -> Optional[SequenceConfig]:
        if data is None:
            return None
        _require_mapping(data, key)
        if "custom_text" in data:
            text = data["custom_text"]
            if text is not None and not isinstance(text, str):
                raise ConfigurationError("custom_text must be a string like \"1,3,2\"")
            order = parse_custom_sequence(text, layout)
        else:
            order = data.get("custom_order", [])
            if not isinstance(order, list):
                raise ConfigurationError("custom_order must be a list of zones")
        return SequenceConfig(mode=data.get("mode", "random"), custom_order=order)

    # ---------------- Lifecycle ----------------

    def start_session(self, mode: Optional[str] = None) -> Dict[str, Any]:
        """
        Start a drill session.

        Returns:
            {'success': bool, 'error': str (if failed), 'status': {...}}
        """
        with self.lock:
            if self.scheduler.is_running():
                return {'success': False, 'error': 'Session already running', 'already_running': True}
            try:
                self.scheduler.start(mode)
            except ConfigurationError as e:
                self.registry.log(f"Start rejected: {e}", level="warning", source="service")
                return {'success': False, 'error': str(e)}

            if not self.scheduler.is_running():
                # Ended on the first selection
                return {'success': False, 'error': 'Please enable at least one zone!',
                        'status': self._status()}

            self.registry.log(f"{self.scheduler.mode.value.capitalize()} session started", source="service")
            return {'success': True, 'status': self._status()}

    def stop_session(self) -> Dict[str, Any]:
        with self.lock:
            stopped = self.scheduler.stop()
            return {'success': True, 'stopped': stopped, 'last_stats': dict(self.scheduler.last_stats)}

    def select_mode(self, mode: str) -> Dict[str, Any]:
        with self.lock:
            try:
                selected = self.scheduler.select_mode(mode)
            except ConfigurationError as e:
                return {'success': False, 'error': str(e)}
            return {'success': True, 'mode': selected.value}

    def select_layout(self, layout: str) -> Dict[str, Any]:
        with self.lock:
            try:
                selected = self.scheduler.select_layout(layout)
            except ConfigurationError as e:
                return {'success': False, 'error': str(e)}
            return {'success': True, 'court_layout': selected.value}

    def toggle_zone(self, zone: int) -> Dict[str, Any]:
        with self.lock:
            try:
                changed = self.scheduler.toggle_zone(zone)
            except ConfigurationError as e:
                return {'success': False, 'error': str(e)}
            if not changed:
                return {'success': False, 'error': 'Zones cannot be changed while a session is running',
                        'already_running': True}
            return {'success': True, 'zone': zone, 'enabled': self.scheduler.zone_set.is_enabled(zone)}

    def toggle_volume(self) -> Dict[str, Any]:
        with self.lock:
            audio = self.registry.audio
            if audio is None:
                return {'success': False, 'error': 'Audio not available'}
            sound_on = audio.toggle_mute()
            return {'success': True, 'volume': sound_on}

    def shutdown(self) -> None:
        """Stop any session and the timer host (launcher exit path)."""
        with self.lock:
            self.scheduler.stop()
        stop_timers = getattr(self.timers, "shutdown", None)
        if callable(stop_timers):
            stop_timers()

    # ---------------- Status ----------------

    def get_session_status(self) -> Dict[str, Any]:
        """
        Current session status for the API.

        Returns:
            {
                'active': bool,
                'state': 'idle' | 'practice_running' | 'rally_running',
                'mode': 'practice' | 'rally',
                'rally_phase': str or None,
                'stats': {'rally_count', 'shot_count'},
                'last_stats': {...},
                'last_end_reason': str or None,
                'display': Registry.snapshot(),
                'config': {...}
            }
        """
        with self.lock:
            return self._status()

    def _status(self) -> Dict[str, Any]:
        scheduler = self.scheduler
        phase = scheduler.rally_phase
        return {
            'active': scheduler.is_running(),
            'state': scheduler.state.value,
            'mode': scheduler.mode.value,
            'rally_phase': phase.value if phase else None,
            'stats': scheduler.current_session_stats(),
            'last_stats': dict(scheduler.last_stats),
            'last_end_reason': scheduler.last_end_reason.value if scheduler.last_end_reason else None,
            'display': self.registry.snapshot(),
            'config': self._config_dict(),
        }

    def _config_dict(self) -> Dict[str, Any]:
        scheduler = self.scheduler
        return {
            'court_layout': scheduler.court_layout.value,
            'zones': scheduler.zone_set.to_dict()['enabled'],
            'settings': scheduler.settings.to_dict(),
            'practice_sequence': scheduler.sequences[SessionMode.PRACTICE].to_dict(),
            'rally_sequence': scheduler.sequences[SessionMode.RALLY].to_dict(),
        }


# Singleton instance
drill_service = None
_drill_service_lock = threading.Lock()


def get_drill_service() -> DrillService:
    """Get or create the singleton DrillService instance."""
    global drill_service
    if drill_service is None:
        with _drill_service_lock:
            # Concurrent first requests must share one service (and one timer thread)
            if drill_service is None:
                audio = AudioManager(AudioSettings(), enabled=ENABLE_AUDIO)
                registry = Registry(audio=audio)
                drill_service = DrillService(ThreadedTimerHost(), registry=registry)
                logger.info("Drill service created (audio %s)", "on" if ENABLE_AUDIO else "off")
    return drill_service
