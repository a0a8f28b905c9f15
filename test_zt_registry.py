#!/usr/bin/env python3
"""
Registry + AudioManager Test Suite
Display state and callouts driven by a running session

Usage: pytest test_zt_registry.py -v
"""

import subprocess

import pytest

from zone_trainer.session_scheduler import SessionScheduler
from zone_trainer.zt_audio import AudioManager, AudioSettings, zone_callout
from zone_trainer.zt_models import CourtLayout, SessionEndReason, SessionSettings, ZoneSet
from zone_trainer.zt_registry import Registry
from zone_trainer.zt_timers import ManualTimerHost


class FakeAudio:
    def __init__(self, fail=False):
        self.calls = []
        self.muted = False
        self.fail = fail

    def announce(self, value):
        if self.fail:
            raise RuntimeError("no sound card")
        self.calls.append(value)
        return True


# ==================== REGISTRY ====================

def test_registry_tracks_practice_display_state():
    host = ManualTimerHost()
    audio = FakeAudio()
    registry = Registry(audio=audio)
    scheduler = SessionScheduler(host, listener=registry,
                                 zone_set=ZoneSet.from_zones([4], CourtLayout.DOUBLES),
                                 settings=SessionSettings(pause_time_ms=1000))
    scheduler.start("practice")
    assert registry.snapshot()["active_zones"] == [4]

    host.advance(200)
    assert registry.snapshot()["active_zones"] == [4, 10]
    assert audio.calls == [4, "beep"]

    host.advance(600)
    assert registry.snapshot()["checkmark_zone"] == 4

    host.advance(200)
    snap = registry.snapshot()
    assert snap["active_zones"] == [4]
    assert snap["checkmark_zone"] is None

    scheduler.stop()
    snap = registry.snapshot()
    assert snap["active_zones"] == []
    assert snap["last_end_reason"] == "user_stop"
    assert snap["alert"] is None


def test_registry_rally_counter_and_countdown():
    host = ManualTimerHost()
    audio = FakeAudio()
    registry = Registry(audio=audio)
    scheduler = SessionScheduler(host, listener=registry,
                                 settings=SessionSettings(shots_per_rally=3, rally_speed_ms=100, rally_pause_sec=2))
    scheduler.start("rally")
    host.advance(100)
    assert registry.snapshot()["rally_counter"] == {"current": 2, "total": 3}

    host.advance(200)
    snap = registry.snapshot()
    assert snap["rally_counter"] is None
    assert snap["countdown"] == 2
    assert "count_2" in audio.calls

    host.advance(2000)
    assert registry.snapshot()["countdown"] is None


def test_registry_alert_on_empty_zone_set():
    registry = Registry()
    registry.on_session_ended(SessionEndReason.EMPTY_ZONE_SET)
    snap = registry.snapshot()
    assert snap["alert"] == "Please enable at least one zone!"
    assert snap["muted"] is None
    assert registry.recent_logs(1)[0]["level"] == "warning"


def test_registry_log_is_bounded_newest_first():
    registry = Registry(log_max=3)
    for i in range(5):
        registry.log(f"entry {i}")
    assert [e["msg"] for e in registry.recent_logs()] == ["entry 4", "entry 3", "entry 2"]


def test_registry_survives_audio_failure():
    registry = Registry(audio=FakeAudio(fail=True))
    registry.on_zone_selected(2, True)
    assert registry.snapshot()["active_zones"] == [2]
    assert registry.recent_logs(1)[0]["source"] == "audio"


# ==================== AUDIO ====================

def test_zone_callout_names():
    assert zone_callout(3) == "zone_3"
    assert zone_callout(9) == "partner_9"


@pytest.fixture
def popen_calls(monkeypatch):
    calls = []

    def fake_popen(cmd, **kwargs):
        calls.append(cmd)

    monkeypatch.setattr(subprocess, "Popen", fake_popen)
    return calls


def test_audio_plays_clip_from_gender_folder(tmp_path, popen_calls):
    (tmp_path / "female").mkdir()
    (tmp_path / "female" / "zone_5.mp3").write_bytes(b"")
    audio = AudioManager(AudioSettings(audio_dir=str(tmp_path), voice_gender="female", volume_percent=50))

    assert audio.announce(5) is True
    assert len(popen_calls) == 1
    assert popen_calls[0][:4] == ["mpg123", "-q", "-f", "16384"]
    assert popen_calls[0][-1] == str(tmp_path / "female" / "zone_5.mp3")

    audio.set_volume(150)
    assert audio.settings.volume_percent == 100


def test_audio_missing_clip_muted_or_disabled(tmp_path, popen_calls):
    (tmp_path / "beep.mp3").write_bytes(b"")
    audio = AudioManager(AudioSettings(audio_dir=str(tmp_path)))

    assert audio.announce("count_3") is False
    assert audio.toggle_mute() is False
    assert audio.announce("beep") is False
    assert audio.toggle_mute() is True
    assert audio.announce("beep") is True

    disabled = AudioManager(AudioSettings(audio_dir=str(tmp_path)), enabled=False)
    assert disabled.announce("beep") is False
    assert len(popen_calls) == 1


def test_audio_popen_failure_returns_false(tmp_path, monkeypatch):
    (tmp_path / "beep.mp3").write_bytes(b"")

    def broken_popen(cmd, **kwargs):
        raise OSError("mpg123 not found")

    monkeypatch.setattr(subprocess, "Popen", broken_popen)
    assert AudioManager(AudioSettings(audio_dir=str(tmp_path))).play("beep") is False
