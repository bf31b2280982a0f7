# tests/test_mood.py
from types import MappingProxyType

import pytest

from certbloom.config import MOOD_TABLE, SessionMix
from certbloom.errors import ValidationError
from certbloom.mood import MoodModulator


def test_every_mood_mix_sums_to_100():
    for mix in MOOD_TABLE.values():
        assert mix.review_pct + mix.new_learning_pct + mix.application_pct == 100


def test_mood_table_is_immutable():
    with pytest.raises(TypeError):
        MOOD_TABLE["calm"] = MOOD_TABLE["tired"]


def test_configure_known_mood():
    mix = MoodModulator().configure("tired")
    assert mix.review_pct == 60
    assert mix.include_break is True
    assert mix.intensity == "gentle"


def test_unknown_mood_falls_back_to_default():
    modulator = MoodModulator()
    assert modulator.resolve("curious") == "calm"
    assert modulator.configure("curious") == MOOD_TABLE["calm"]


def test_missing_mood_uses_default():
    modulator = MoodModulator()
    assert modulator.resolve(None) == "calm"
    assert modulator.resolve("") == "calm"


def test_mood_is_case_insensitive():
    assert MoodModulator().resolve("  Focused ") == "focused"


def test_message_for_mood():
    assert MoodModulator().message("anxious") == "Each breath brings clarity and confidence"


def test_injected_table():
    table = MappingProxyType({
        "steady": SessionMix(50, 25, 25, include_break=False, include_challenge=False,
                             intensity="balanced"),
    })
    modulator = MoodModulator(table=table, default_mood="steady")
    assert modulator.moods == ["steady"]
    assert modulator.configure("calm").review_pct == 50


def test_table_must_sum_to_100():
    table = {"odd": SessionMix(50, 50, 10, include_break=False, include_challenge=False,
                               intensity="balanced")}
    with pytest.raises(ValidationError):
        MoodModulator(table=table, default_mood="odd")


def test_default_mood_must_exist():
    with pytest.raises(ValidationError):
        MoodModulator(default_mood="serene")


def test_break_placement_is_deterministic():
    modulator = MoodModulator()
    first = [modulator.should_insert_break("tired", i, 20) for i in range(20)]
    second = [modulator.should_insert_break("tired", i, 20) for i in range(20)]
    assert first == second


def test_no_break_before_first_question():
    modulator = MoodModulator()
    assert not modulator.should_insert_break("tired", 0, 20)


def test_break_spacing_has_a_floor():
    # tired/gentle: int(10 * 0.3 * 0.3) = 0, so spacing falls back to 3
    assert MoodModulator().break_points("tired", 10) == [3, 6, 9]


def test_break_points_scale_with_session_length():
    # calm/balanced: int(40 * 0.5 * 0.5) = 10
    assert MoodModulator().break_points("calm", 40) == [10, 20, 30]


def test_moods_without_breaks_have_no_break_points():
    assert MoodModulator().break_points("focused", 30) == []
