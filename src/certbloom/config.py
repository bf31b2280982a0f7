"""Tunable thresholds and the immutable mood/session-mix table."""
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

DEFAULT_DB_PATH = str(Path.home() / ".certbloom" / "certbloom.db")


@dataclass(frozen=True)
class SessionMix:
    """Session composition for one mood. The three percentages sum to 100."""
    review_pct: int
    new_learning_pct: int
    application_pct: int
    include_break: bool
    include_challenge: bool
    intensity: str  # gentle | balanced | deep | energized

    def to_dict(self) -> dict:
        return {
            "reviewPct": self.review_pct,
            "newLearningPct": self.new_learning_pct,
            "applicationPct": self.application_pct,
            "includeBreak": self.include_break,
            "includeChallenge": self.include_challenge,
            "intensity": self.intensity,
        }


# Mastery bands (mastery is a 0..1 score per user per concept)
WEAK_THRESHOLD = 0.7
MASTERED_THRESHOLD = 0.8
MAX_MASTERY = 1.0

# Session score needed for mastery_achieved (percent)
SESSION_MASTERY_PCT = 80

# A concept counts as answered correctly in a session at this accuracy
TOPIC_PASS_RATIO = 0.5

# Content richness tiers: minimum content item count -> tier
RICH_MIN_ITEMS = 4
MEDIUM_MIN_ITEMS = 2

FIRST_EXPOSURE_GAIN = MappingProxyType({
    "rich": 0.70,
    "medium": 0.50,
    "light": 0.40,
})
REPEAT_EXPOSURE_GAIN = 0.30

# Stage labels, lowest first
STAGES = ("dormant", "budding", "blooming", "radiant")
BLOOMING_THRESHOLD = 0.5

DIFFICULTY_TIERS = ("foundation", "application", "advanced")
LEGACY_DIFFICULTY = MappingProxyType({
    "easy": "foundation",
    "medium": "application",
    "hard": "advanced",
})
COGNITIVE_LEVELS = ("comprehension", "application", "analysis", "evaluation")
QUESTION_TYPES = ("multiple_choice", "true_false", "short_answer")
OPTION_KEYS = ("option_a", "option_b", "option_c", "option_d", "option_e")

# Share of session slots given to each mastery band when focusing on weak areas
WEAK_FOCUS_QUOTAS = MappingProxyType({
    "weak": 0.6,
    "mid": 0.2,
    "strong": 0.2,
})

DEFAULT_MOOD = "calm"

MOOD_TABLE = MappingProxyType({
    "calm": SessionMix(
        review_pct=40, new_learning_pct=40, application_pct=20,
        include_break=True, include_challenge=False, intensity="balanced",
    ),
    "tired": SessionMix(
        review_pct=60, new_learning_pct=20, application_pct=20,
        include_break=True, include_challenge=False, intensity="gentle",
    ),
    "anxious": SessionMix(
        review_pct=50, new_learning_pct=30, application_pct=20,
        include_break=True, include_challenge=False, intensity="gentle",
    ),
    "focused": SessionMix(
        review_pct=30, new_learning_pct=40, application_pct=30,
        include_break=False, include_challenge=True, intensity="deep",
    ),
    "energized": SessionMix(
        review_pct=20, new_learning_pct=50, application_pct=30,
        include_break=False, include_challenge=True, intensity="energized",
    ),
})

MOOD_MESSAGES = MappingProxyType({
    "calm": "Let's explore with peaceful curiosity",
    "tired": "Gentle practice honors your energy",
    "anxious": "Each breath brings clarity and confidence",
    "focused": "Your concentration creates space for deep learning",
    "energized": "Your enthusiasm lights the path to mastery",
})

# Lower factor = more frequent breaks
MOOD_BREAK_FACTORS = MappingProxyType({
    "tired": 0.3,
    "anxious": 0.4,
    "calm": 0.5,
    "focused": 0.6,
    "energized": 0.7,
})
INTENSITY_BREAK_FACTORS = MappingProxyType({
    "gentle": 0.3,
    "balanced": 0.5,
    "deep": 0.7,
    "energized": 0.8,
})
DEFAULT_BREAK_FACTOR = 0.5
MIN_BREAK_SPACING = 3
