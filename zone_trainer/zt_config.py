"""
Central configuration and tunables.

If you need to change ports, cadences, or the audio directory, do it here.
Prefer environment overrides where sensible.
"""

import os

# Web (local control surface only)
HOST: str = os.getenv("ZONE_TRAINER_HOST", "127.0.0.1")
PORT: int = int(os.getenv("ZONE_TRAINER_PORT", "5000"))
DEBUG: bool = bool(int(os.getenv("ZONE_TRAINER_DEBUG", "0")))

# Logs
LOG_LEVEL: str = os.getenv("ZONE_TRAINER_LOG_LEVEL", "INFO")
LOG_MAX: int = int(os.getenv("ZONE_TRAINER_LOG_MAX", "1000"))

# Default session settings
DEFAULT_PAUSE_TIME_MS: int = int(os.getenv("ZONE_TRAINER_PAUSE_TIME_MS", "2500"))
DEFAULT_SHOTS_PER_RALLY: int = int(os.getenv("ZONE_TRAINER_SHOTS_PER_RALLY", "15"))
DEFAULT_RALLY_PAUSE_SEC: int = int(os.getenv("ZONE_TRAINER_RALLY_PAUSE_SEC", "10"))
DEFAULT_RALLY_SPEED_MS: int = int(os.getenv("ZONE_TRAINER_RALLY_SPEED_MS", "600"))

# Cue timing
MIRROR_DELAY_MS: int = int(os.getenv("ZONE_TRAINER_MIRROR_DELAY_MS", "200"))
CONFIRMATION_RATIO: float = float(os.getenv("ZONE_TRAINER_CONFIRMATION_RATIO", "0.8"))
COUNTDOWN_STEP_MS: int = 1000

# Rally burst length varies by up to this fraction of shots_per_rally
RALLY_VARIATION: float = float(os.getenv("ZONE_TRAINER_RALLY_VARIATION", "0.3"))

# Audio (server loudspeaker via mpg123)
ENABLE_AUDIO: bool = bool(int(os.getenv("ZONE_TRAINER_ENABLE_AUDIO", "0")))
AUDIO_DIR: str = os.getenv("ZONE_TRAINER_AUDIO_DIR", "/opt/zone-trainer/audio")
AUDIO_VOLUME_PERCENT: int = int(os.getenv("ZONE_TRAINER_AUDIO_VOLUME", "80"))
