"""Small helpers for presenting playback state."""

from __future__ import annotations

import math

PLAYBACK_SPEEDS: tuple[float, ...] = (0.5, 0.75, 1.0, 1.25, 1.5, 2.0)

NEAR_END_THRESHOLD = 30.0


def format_time(seconds: float) -> str:
    """Format seconds as ``M:SS``."""
    if not math.isfinite(seconds) or seconds < 0:
        seconds = 0
    minutes = int(seconds // 60)
    remaining = int(seconds % 60)
    return f"{minutes}:{remaining:02d}"


def format_duration(seconds: float | None) -> str:
    if not seconds:
        return "Unknown duration"
    return format_time(seconds)


def calculate_progress(current_time: float, duration: float | None) -> float:
    """Percentage listened, capped at 100."""
    if not duration:
        return 0.0
    return min(current_time / duration * 100, 100.0)


def get_remaining_time(current_time: float, duration: float | None) -> float:
    if not duration or current_time >= duration:
        return 0.0
    return duration - current_time


def is_near_end(
    current_time: float,
    duration: float | None,
    threshold: float = NEAR_END_THRESHOLD,
) -> bool:
    if not duration:
        return False
    return get_remaining_time(current_time, duration) <= threshold


def is_valid_playback_speed(speed: float) -> bool:
    return speed in PLAYBACK_SPEEDS


def next_playback_speed(current: float) -> float:
    """Cycle to the next speed, wrapping to the slowest."""
    index = PLAYBACK_SPEEDS.index(current) if current in PLAYBACK_SPEEDS else -1
    return PLAYBACK_SPEEDS[(index + 1) % len(PLAYBACK_SPEEDS)]


def previous_playback_speed(current: float) -> float:
    """Cycle to the previous speed, wrapping to the fastest."""
    index = PLAYBACK_SPEEDS.index(current) if current in PLAYBACK_SPEEDS else 0
    return PLAYBACK_SPEEDS[(index - 1) % len(PLAYBACK_SPEEDS)]
