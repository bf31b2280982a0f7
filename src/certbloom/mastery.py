"""Mastery update heuristic scaled by content richness."""
from certbloom.config import (
    BLOOMING_THRESHOLD, FIRST_EXPOSURE_GAIN, MASTERED_THRESHOLD, MAX_MASTERY,
    MEDIUM_MIN_ITEMS, REPEAT_EXPOSURE_GAIN, RICH_MIN_ITEMS, WEAK_THRESHOLD,
)


def classify_richness(content_item_count: int) -> str:
    """Return the richness tier for a concept's practice item count.

    Zero or unknown counts fall into the light tier.
    """
    if content_item_count is None:
        return "light"
    if content_item_count >= RICH_MIN_ITEMS:
        return "rich"
    if content_item_count >= MEDIUM_MIN_ITEMS:
        return "medium"
    return "light"


def update_mastery(
    current_mastery: float,
    content_item_count: int,
    is_correct: bool,
    exposures: int = 0,
) -> float:
    """Calculate a concept's new mastery after one practice session.

    Args:
        current_mastery: Stored mastery, 0.0-1.0
        content_item_count: Practice items available for the concept
        is_correct: Whether the concept was answered correctly this session
        exposures: Sessions already recorded for the concept (0 = first exposure)

    Returns:
        New mastery, never lower than current_mastery and capped at 1.0.
    """
    if not is_correct:
        return current_mastery
    if exposures == 0:
        gain = FIRST_EXPOSURE_GAIN[classify_richness(content_item_count)]
    else:
        gain = REPEAT_EXPOSURE_GAIN
    return min(MAX_MASTERY, round(current_mastery + gain, 4))


def is_mastered(mastery: float) -> bool:
    return mastery >= MASTERED_THRESHOLD


def stage_for(mastery: float) -> str:
    if mastery >= MASTERED_THRESHOLD:
        return "radiant"
    if mastery >= BLOOMING_THRESHOLD:
        return "blooming"
    if mastery > 0:
        return "budding"
    return "dormant"


def needs_review(mastery: float, last_correct: bool) -> bool:
    return not last_correct or mastery < WEAK_THRESHOLD


def mastery_band(mastery: float) -> str:
    """Partition used by the selector: weak, mid or strong."""
    if mastery < WEAK_THRESHOLD:
        return "weak"
    if mastery >= MASTERED_THRESHOLD:
        return "strong"
    return "mid"
