"""
Zone Trainer core

Zone selection (ZoneSequencer) and the practice/rally session state
machine (SessionScheduler) with their timer hosts.
"""

from .session_scheduler import SessionListener, SessionScheduler
from .zone_sequencer import ZoneSequencer
from .zt_errors import ConfigurationError, EmptyZoneSetError, ZoneTrainerError
from .zt_models import (
    CourtLayout, SequenceConfig, SequenceMode, SequencerCursor, SessionEndReason,
    SessionMode, SessionSettings, ZoneSet, mirrored_zone, parse_custom_sequence,
)
from .zt_timers import ManualTimerHost, ThreadedTimerHost
from .zt_version import VERSION

__all__ = [
    "VERSION",
    "SessionListener", "SessionScheduler", "ZoneSequencer",
    "ConfigurationError", "EmptyZoneSetError", "ZoneTrainerError",
    "CourtLayout", "SequenceConfig", "SequenceMode", "SequencerCursor", "SessionEndReason",
    "SessionMode", "SessionSettings", "ZoneSet", "mirrored_zone", "parse_custom_sequence",
    "ManualTimerHost", "ThreadedTimerHost",
]
