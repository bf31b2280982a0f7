# tests/test_sessions.py
from unittest.mock import patch

import pytest

from certbloom.db import get_connection
from certbloom.errors import NotFoundError, StoreUnavailableError, ValidationError
from certbloom.scoring import MasteryUpdate
from certbloom.sessions import (
    apply_mastery_updates, complete_session, get_session_history, get_session_result,
    get_setting, plan_session, set_setting,
)
from certbloom.store import get_progress

PLACE_VALUE = ["q902-pv-1", "q902-pv-2", "q902-pv-3"]
PLACE_VALUE_KEYS = ["C", "B", "C"]


def test_settings_roundtrip(seeded_db):
    assert get_setting(seeded_db, "mood") is None
    assert get_setting(seeded_db, "mood", "calm") == "calm"
    set_setting(seeded_db, "mood", "tired")
    set_setting(seeded_db, "mood", "focused")
    assert get_setting(seeded_db, "mood") == "focused"


def test_plan_session_uses_mood_mix(seeded_db):
    planned = plan_session(seeded_db, "demo-user", "texes-902", mood="tired", session_length=10)
    assert planned.mood == "tired"
    assert planned.mix.review_pct == 60
    assert len(planned.selection.questions) == 10
    assert planned.break_before == [3, 6, 9]
    assert planned.message == "Gentle practice honors your energy"


def test_plan_session_unknown_mood_is_calm(seeded_db):
    planned = plan_session(seeded_db, "demo-user", "texes-902", mood="curious", session_length=4)
    assert planned.mood == "calm"


def test_plan_session_ids_are_unique(seeded_db):
    a = plan_session(seeded_db, "demo-user", "texes-902", session_length=2)
    b = plan_session(seeded_db, "demo-user", "texes-902", session_length=2)
    assert a.session_id != b.session_id


def test_complete_session_scores_and_persists(seeded_db):
    outcome = complete_session(
        seeded_db, "s-1", "demo-user", PLACE_VALUE, PLACE_VALUE_KEYS, mood="calm",
    )
    assert outcome.to_dict() == {
        "totalQuestions": 3,
        "correctAnswers": 3,
        "scorePercentage": 100,
        "masteryAchieved": True,
        "sessionId": "s-1",
    }
    stored = get_session_result(seeded_db, "s-1")
    assert stored.user_answers == PLACE_VALUE_KEYS
    assert stored.mood == "calm"

    conn = get_connection(seeded_db)
    attempts = conn.execute("SELECT * FROM attempts WHERE session_id = 's-1'").fetchall()
    conn.close()
    assert len(attempts) == 3


def test_rich_topic_mastery_progression(seeded_db):
    """place-value has 5 content items: 0 -> 0.70 -> 1.00."""
    complete_session(seeded_db, "s-1", "demo-user", PLACE_VALUE, PLACE_VALUE_KEYS)
    record = get_progress(seeded_db, "demo-user", "place-value")
    assert record.mastery == 0.70
    assert record.stage == "blooming"
    assert record.attempt_count == 1

    complete_session(seeded_db, "s-2", "demo-user", PLACE_VALUE, PLACE_VALUE_KEYS)
    record = get_progress(seeded_db, "demo-user", "place-value")
    assert record.mastery == 1.0
    assert record.stage == "radiant"
    assert record.needs_review is False


def test_light_topic_first_exposure(seeded_db):
    complete_session(seeded_db, "s-1", "demo-user", ["q902-alg-1"], ["B"])
    assert get_progress(seeded_db, "demo-user", "algebraic-reasoning").mastery == 0.40


def test_wrong_session_marks_review_without_lowering_mastery(seeded_db):
    complete_session(seeded_db, "s-1", "demo-user", PLACE_VALUE, PLACE_VALUE_KEYS)
    outcome = complete_session(seeded_db, "s-2", "demo-user", PLACE_VALUE, ["A", "A", "A"])
    assert outcome.result.score_percentage == 0
    record = get_progress(seeded_db, "demo-user", "place-value")
    assert record.mastery == 0.70
    assert record.needs_review is True
    assert record.attempt_count == 2


def test_one_mastery_update_per_topic(seeded_db):
    outcome = complete_session(
        seeded_db, "s-1", "demo-user",
        ["q902-pv-1", "q902-fd-1", "q902-pv-2"], ["C", "A", "B"],
    )
    assert [u.topic_key for u in outcome.mastery_updates] == ["place-value", "fractions-decimals"]
    assert get_progress(seeded_db, "demo-user", "fractions-decimals").mastery == 0.0


def test_duplicate_session_id_rejected(seeded_db):
    complete_session(seeded_db, "s-1", "demo-user", ["q902-pv-1"], ["C"])
    with pytest.raises(ValidationError):
        complete_session(seeded_db, "s-1", "demo-user", ["q902-pv-1"], ["C"])


def test_mismatched_answers_rejected_before_writes(seeded_db):
    with pytest.raises(ValidationError):
        complete_session(seeded_db, "s-1", "demo-user", PLACE_VALUE, ["C"])
    with pytest.raises(NotFoundError):
        get_session_result(seeded_db, "s-1")


def test_unknown_question_rejected(seeded_db):
    with pytest.raises(NotFoundError):
        complete_session(seeded_db, "s-1", "demo-user", ["nope"], ["A"])


def test_unknown_user_rejected(seeded_db):
    with pytest.raises(NotFoundError):
        complete_session(seeded_db, "s-1", "ghost", ["q902-pv-1"], ["C"])


def test_failed_mastery_write_keeps_session_result(seeded_db):
    with patch("certbloom.sessions.save_progress",
               side_effect=StoreUnavailableError("disk full")):
        outcome = complete_session(seeded_db, "s-1", "demo-user", PLACE_VALUE, PLACE_VALUE_KEYS)
    assert [u.topic_key for u in outcome.failed_updates] == ["place-value"]
    assert get_session_result(seeded_db, "s-1").score_percentage == 100
    assert get_progress(seeded_db, "demo-user", "place-value") is None


def test_apply_mastery_updates_is_independent_per_update(seeded_db):
    updates = [
        MasteryUpdate("demo-user", "place-value", "texes-902", 5, True),
        MasteryUpdate("demo-user", "no-such-concept", "texes-902", 0, True),
        MasteryUpdate("demo-user", "geometry-shapes", "texes-902", 4, True),
    ]
    failed = apply_mastery_updates(seeded_db, updates)
    assert [u.topic_key for u in failed] == ["no-such-concept"]
    assert get_progress(seeded_db, "demo-user", "geometry-shapes").mastery == 0.70


def test_session_history_newest_first(seeded_db):
    complete_session(seeded_db, "s-1", "demo-user", ["q902-pv-1"], ["C"])
    complete_session(seeded_db, "s-2", "demo-user", ["q902-pv-2"], ["A"])
    history = get_session_history(seeded_db, "demo-user")
    assert [r.id for r in history] == ["s-2", "s-1"]
    assert history[0].mastery_achieved is False
