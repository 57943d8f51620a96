"""
Level arithmetic for gamification profiles.
"""

from typing import Optional

from academy.core.config import settings


def calculate_level(experience: int, step: Optional[int] = None) -> int:
    """Level for an amount of experience; every step of experience is one level, starting at 1."""
    step = step or settings.LEVEL_EXPERIENCE_STEP
    return max(experience, 0) // step + 1


def experience_to_next_level(experience: int, step: Optional[int] = None) -> int:
    step = step or settings.LEVEL_EXPERIENCE_STEP
    return step - (max(experience, 0) % step)


def level_progress_percentage(experience: int, step: Optional[int] = None) -> float:
    """Progress through the current level, 0..100."""
    step = step or settings.LEVEL_EXPERIENCE_STEP
    return round((max(experience, 0) % step) / step * 100, 2)
