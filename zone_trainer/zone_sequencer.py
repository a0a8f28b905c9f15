#!/usr/bin/env python3
"""
Zone Sequencer for Practice and Rally Drills
Picks the next target zone from the enabled zones
"""

import random
from typing import List, Optional

from .zt_errors import EmptyZoneSetError
from .zt_models import SequenceConfig, SequenceMode, SequencerCursor, ZoneSet


class ZoneSequencer:
    """Select target zones (random, sequential or custom order)"""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def next_zone(
        self,
        zone_set: ZoneSet,
        cursor: SequencerCursor,
        config: SequenceConfig
    ) -> Optional[int]:
        """
        Pick the next zone and advance the cursor.

        Args:
            zone_set: Current enabled/disabled zones (read live on every call)
            cursor: Session cursor; last_zone and the ordered-mode index are updated
            config: Sequence mode and custom order for the active session mode

        Returns:
            An enabled zone, or None if no zone is enabled
        """
        enabled_zones = zone_set.enabled_primary_zones()
        if not enabled_zones:
            return None

        if config.mode is SequenceMode.SEQUENTIAL:
            # Go through zones 1, 2, 3, 4, 5, 6 in order
            zone = self._advance(cursor, SequenceMode.SEQUENTIAL, enabled_zones)

        elif config.mode is SequenceMode.CUSTOM:
            valid_sequence = [z for z in config.custom_order if zone_set.is_enabled(z)]
            if valid_sequence:
                zone = self._advance(cursor, SequenceMode.CUSTOM, valid_sequence)
            else:
                # Nothing usable in the custom order: fall back to random, index untouched
                zone = self._pick_random(enabled_zones, cursor.last_zone)

        else:
            zone = self._pick_random(enabled_zones, cursor.last_zone)

        cursor.last_zone = zone
        return zone

    def require_next_zone(
        self,
        zone_set: ZoneSet,
        cursor: SequencerCursor,
        config: SequenceConfig
    ) -> int:
        """Same as next_zone() but raises EmptyZoneSetError instead of returning None."""
        zone = self.next_zone(zone_set, cursor, config)
        if zone is None:
            raise EmptyZoneSetError("Please enable at least one zone")
        return zone

    def _advance(self, cursor: SequencerCursor, mode: SequenceMode, ordered: List[int]) -> int:
        """Step the mode's index through `ordered`, wrapping to 0 past the end."""
        index = cursor.index(mode) + 1
        if index >= len(ordered):
            index = 0
        cursor.indices[mode] = index
        return ordered[index]

    def _pick_random(self, enabled_zones: List[int], last_zone: Optional[int]) -> int:
        """Random zone, avoiding an immediate repeat unless only one zone is enabled."""
        available = [z for z in enabled_zones if z != last_zone]
        if not available:
            available = enabled_zones  # Fallback if only one zone
        return self.rng.choice(available)
