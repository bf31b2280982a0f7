# tests/test_scoring.py
import pytest

from certbloom.errors import NotFoundError, ValidationError
from certbloom.models import Question
from certbloom.scoring import (
    encouragement, get_accuracy, get_attempt_history, percentage, record_attempt, round_half_up,
    score_session,
)


def _q(qid, concept="place-value", answer="A"):
    return Question(
        id=qid, certification_id="texes-902", question_text=f"Question {qid}",
        question_type="multiple_choice", difficulty_level="foundation",
        correct_answer=answer, concept_id=concept, options=["x", "y"],
    )


def _bank(n, concept="place-value"):
    return {f"q{i}": _q(f"q{i}", concept) for i in range(n)}


def test_eight_of_ten_achieves_mastery():
    bank = _bank(10)
    ids = list(bank)
    answers = ["A"] * 8 + ["B"] * 2
    score = score_session(ids, answers, bank)
    assert score.correct_count == 8
    assert score.percentage == 80
    assert score.mastery_achieved is True


def test_seven_of_ten_does_not_achieve_mastery():
    bank = _bank(10)
    score = score_session(list(bank), ["A"] * 7 + ["B"] * 3, bank)
    assert score.percentage == 70
    assert score.mastery_achieved is False


def test_percentage_rounds_halves_up():
    assert percentage(1, 8) == 13  # 12.5
    assert percentage(2, 3) == 67
    assert percentage(1, 3) == 33
    assert percentage(0, 5) == 0


def test_percentage_rejects_empty_total():
    with pytest.raises(ValidationError):
        percentage(0, 0)


def test_answer_match_is_exact():
    bank = {"q0": _q("q0", answer="A")}
    assert score_session(["q0"], ["a"], bank).correct_count == 0
    assert score_session(["q0"], [" A"], bank).correct_count == 0


def test_length_mismatch_rejected():
    bank = _bank(3)
    with pytest.raises(ValidationError) as exc:
        score_session(list(bank), ["A", "A"], bank)
    assert exc.value.field == "userAnswers"


def test_empty_session_rejected():
    with pytest.raises(ValidationError) as exc:
        score_session([], [], {})
    assert exc.value.field == "questionIds"


def test_unknown_question_id_raises_not_found():
    with pytest.raises(NotFoundError):
        score_session(["missing"], ["A"], _bank(1))


def test_one_update_per_distinct_topic_in_first_seen_order():
    bank = {
        "a1": _q("a1", "fractions-decimals"),
        "b1": _q("b1", "place-value"),
        "a2": _q("a2", "fractions-decimals"),
        "c1": _q("c1", None),
    }
    score = score_session(
        ["a1", "b1", "a2", "c1"], ["A", "B", "B", "A"], bank,
        user_id="demo-user", content_counts={"fractions-decimals": 2, "place-value": 5},
    )
    assert [u.topic_key for u in score.mastery_updates] == ["fractions-decimals", "place-value"]
    fractions, place = score.mastery_updates
    assert fractions.was_correct is True  # 1 of 2 is enough
    assert fractions.content_item_count == 2
    assert place.was_correct is False
    assert place.certification_id == "texes-902"


def test_no_updates_without_user():
    bank = _bank(2)
    assert score_session(list(bank), ["A", "A"], bank).mastery_updates == []


def test_encouragement_varies_by_attempt_and_stage():
    assert "persistence" in encouragement(True, 2)
    assert "shines" in encouragement(True, 1, "radiant")
    assert encouragement(False, 1) != encouragement(False, 2)


def test_record_attempt_scores_and_numbers_attempts(seeded_db):
    first = record_attempt(seeded_db, "demo-user", "q902-pv-1", "A")
    assert first.is_correct is False
    assert first.attempt_number == 1
    second = record_attempt(seeded_db, "demo-user", "q902-pv-1", "C", time_spent_seconds=12)
    assert second.is_correct is True
    assert second.attempt_number == 2
    assert "persistence" in second.encouragement


def test_record_attempt_unknown_question(seeded_db):
    with pytest.raises(NotFoundError):
        record_attempt(seeded_db, "demo-user", "nope", "A")


def test_record_attempt_unknown_user(seeded_db):
    with pytest.raises(NotFoundError):
        record_attempt(seeded_db, "ghost", "q902-pv-1", "C")


def test_record_attempt_confidence_range(seeded_db):
    with pytest.raises(ValidationError):
        record_attempt(seeded_db, "demo-user", "q902-pv-1", "C", confidence_level=6)


def test_attempt_history_and_accuracy(seeded_db):
    record_attempt(seeded_db, "demo-user", "q902-pv-1", "C")
    record_attempt(seeded_db, "demo-user", "q902-pv-2", "A")
    history = get_attempt_history(seeded_db, "demo-user")
    assert len(history) == 2
    assert history[0].question_id == "q902-pv-2"
    assert len(get_attempt_history(seeded_db, "demo-user", question_id="q902-pv-1")) == 1
    assert get_accuracy(seeded_db, "demo-user") == 50.0


def test_round_half_up():
    assert round_half_up(12.5) == 13
    assert round_half_up(0.285 * 100) == 29
    assert round_half_up(70.4) == 70
