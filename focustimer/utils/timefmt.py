from __future__ import annotations
import math


def format_hms(seconds: float) -> str:
    """Format a duration in seconds as HH:MM:SS. Hours are not wrapped at 24."""
    total = max(0, int(math.floor(seconds)))
    hrs, rem = divmod(total, 3600)
    mins, secs = divmod(rem, 60)
    return f"{hrs:02d}:{mins:02d}:{secs:02d}"


def format_elapsed_ms(elapsed_ms: float) -> str:
    return format_hms(int(elapsed_ms // 1000))


def round_half_up(x: float) -> int:
    # round() is banker's rounding; percentages use the browser convention
    return int(math.floor(x + 0.5))
