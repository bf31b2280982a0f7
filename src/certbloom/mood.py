"""Mood-driven session composition and break placement."""
import logging
from collections.abc import Mapping

from certbloom.config import (
    DEFAULT_BREAK_FACTOR, DEFAULT_MOOD, INTENSITY_BREAK_FACTORS, MIN_BREAK_SPACING,
    MOOD_BREAK_FACTORS, MOOD_MESSAGES, MOOD_TABLE, SessionMix,
)
from certbloom.errors import ValidationError

logger = logging.getLogger(__name__)


class MoodModulator:
    """Map a self-reported mood to a SessionMix.

    Unknown or missing moods fall back to the default mood; mood is a soft
    signal and never fails a request.
    """

    def __init__(
        self,
        table: Mapping[str, SessionMix] = MOOD_TABLE,
        default_mood: str = DEFAULT_MOOD,
        mood_break_factors: Mapping[str, float] = MOOD_BREAK_FACTORS,
        intensity_break_factors: Mapping[str, float] = INTENSITY_BREAK_FACTORS,
        messages: Mapping[str, str] = MOOD_MESSAGES,
    ):
        if default_mood not in table:
            raise ValidationError("default_mood", f"{default_mood!r} is not in the mood table")
        for mood, mix in table.items():
            total = mix.review_pct + mix.new_learning_pct + mix.application_pct
            if total != 100:
                raise ValidationError("table", f"{mood!r} percentages sum to {total}, not 100")
        self._table = dict(table)
        self._default_mood = default_mood
        self._mood_break_factors = dict(mood_break_factors)
        self._intensity_break_factors = dict(intensity_break_factors)
        self._messages = dict(messages)

    @property
    def moods(self) -> list[str]:
        return list(self._table)

    def resolve(self, mood: str | None) -> str:
        key = (mood or "").strip().lower()
        if key in self._table:
            return key
        if mood:
            logger.info("Unknown mood %r, using %r", mood, self._default_mood)
        return self._default_mood

    def configure(self, mood: str | None) -> SessionMix:
        return self._table[self.resolve(mood)]

    def message(self, mood: str | None) -> str:
        return self._messages.get(self.resolve(mood), "")

    def should_insert_break(
        self,
        mood: str | None,
        question_index: int,
        total_questions: int,
        intensity: str | None = None,
    ) -> bool:
        """Whether a break goes before the question at question_index.

        Placement is modulo based, so identical inputs always give identical
        break points.
        """
        resolved = self.resolve(mood)
        if intensity is None:
            intensity = self._table[resolved].intensity
        mood_factor = self._mood_break_factors.get(resolved, DEFAULT_BREAK_FACTOR)
        intensity_factor = self._intensity_break_factors.get(intensity, DEFAULT_BREAK_FACTOR)
        threshold = int(total_questions * mood_factor * intensity_factor)
        return question_index > 0 and question_index % max(MIN_BREAK_SPACING, threshold) == 0

    def break_points(self, mood: str | None, total_questions: int) -> list[int]:
        """Question indexes that are preceded by a break; empty when the mood skips breaks."""
        if not self.configure(mood).include_break:
            return []
        return [i for i in range(total_questions)
                if self.should_insert_break(mood, i, total_questions)]
