"""
Drill announcer (optional, off unless ZONE_TRAINER_ENABLE_AUDIO=1):
- Speaks zone callouts and countdown numbers through `mpg123`
- Clip names are logical: "zone_3", "partner_9", "count_5", "beep"
- Needs only the system player (apt-get install mpg123)

Clips are looked up as <audio_dir>/<voice>/<clip>.mp3, then <audio_dir>/<clip>.mp3.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Union

from .zt_config import AUDIO_DIR, AUDIO_VOLUME_PERCENT

logger = logging.getLogger(__name__)

MPG123_FULL_SCALE = 32768


@dataclass
class AudioSettings:
    audio_dir: str = AUDIO_DIR
    voice_gender: str = "male"    # or "female"
    volume_percent: int = AUDIO_VOLUME_PERCENT  # 0-100


def zone_callout(zone: int) -> str:
    """Clip for a spoken zone number; partner-side zones (7-12) are called as 'partner N'."""
    if 7 <= zone <= 12:
        return f"partner_{zone}"
    return f"zone_{zone}"


class AudioManager:
    def __init__(self, settings: Optional[AudioSettings] = None, enabled: bool = True):
        self.settings = settings or AudioSettings()
        self.enabled = enabled
        self.muted = False

    def _candidates(self, clip_name: str) -> List[str]:
        filename = f"{clip_name}.mp3"
        base = self.settings.audio_dir
        return [os.path.join(base, self.settings.voice_gender, filename), os.path.join(base, filename)]

    def find_clip(self, clip_name: str) -> Optional[str]:
        """First existing file for the clip (voice folder wins), or None."""
        for candidate in self._candidates(clip_name):
            if os.path.isfile(candidate):
                return candidate
        return None

    def _scale(self) -> int:
        """volume_percent as mpg123's -f output scale."""
        percent = min(100, max(0, self.settings.volume_percent))
        return int(MPG123_FULL_SCALE * percent / 100)

    def play(self, clip_name: str) -> bool:
        """
        Start playing a clip by logical name. Returns True if mpg123 was launched.

        Playback is not awaited; the timer thread moves on immediately.
        """
        if not self.enabled or self.muted:
            return False

        clip = self.find_clip(clip_name)
        if clip is None:
            logger.debug("No audio clip for %r in %s", clip_name, self.settings.audio_dir)
            return False

        args = ["mpg123", "-q", "-f", str(self._scale()), clip]
        try:
            subprocess.Popen(args, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as e:
            logger.warning("Could not launch mpg123 for %s: %s", clip_name, e)
            return False
        return True

    def announce(self, value: Union[int, str]) -> bool:
        """
        Announce a zone number (int) or a logical clip name (str).

        Ints are zone numbers: 3 -> "zone_3", 9 -> "partner_9".
        """
        clip = zone_callout(value) if isinstance(value, int) else value
        return self.play(clip)

    def toggle_mute(self) -> bool:
        """Flip mute; returns True when sound is now on."""
        self.muted = not self.muted
        logger.info("Audio %s", "muted" if self.muted else "unmuted")
        return not self.muted

    def set_volume(self, percent: int) -> None:
        self.settings.volume_percent = min(100, max(0, int(percent)))
