import pytest
from unittest.mock import patch

from certbloom.app import (
    SessionExitRequested, ask_answer, cmd_admin, cmd_dashboard, cmd_practice, cmd_study, main,
    run_practice_session, session_int_prompt, session_prompt,
)
from certbloom.admin import get_question
from certbloom.models import Question
from certbloom.sessions import get_session_history
from certbloom.store import get_concept_with_content


def _mc(qid="q1"):
    return Question(
        id=qid, certification_id="texes-902", question_text="Pick one",
        question_type="multiple_choice", difficulty_level="foundation",
        correct_answer="A", options=["x", "y", "z"],
    )


def _tf():
    return Question(
        id="tf", certification_id="texes-902", question_text="True?",
        question_type="true_false", difficulty_level="foundation", correct_answer="true",
    )


def test_session_exit_requested_is_exception():
    with pytest.raises(SessionExitRequested):
        raise SessionExitRequested()


def test_session_prompt_raises_on_q():
    with patch("certbloom.app.Prompt.ask", return_value="q"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_raises_on_menu():
    with patch("certbloom.app.Prompt.ask", return_value="menu"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_returns_normal_input():
    with patch("certbloom.app.Prompt.ask", return_value="hello"):
        assert session_prompt("test prompt") == "hello"


def test_session_int_prompt_returns_normal_input():
    with patch("certbloom.app.Prompt.ask", return_value="3"):
        assert session_int_prompt("length", default=10) == 3


def test_ask_answer_normalizes_letters():
    with patch("certbloom.app.Prompt.ask", side_effect=["f", "b"]):
        assert ask_answer(_mc()) == "B"


def test_ask_answer_true_false():
    with patch("certbloom.app.Prompt.ask", side_effect=["maybe", "T"]):
        assert ask_answer(_tf()) == "true"


def test_run_practice_session_pauses_for_breaks():
    with patch("certbloom.app.Prompt.ask", side_effect=["a", "", "c"]) as ask:
        answers = run_practice_session([_mc("q1"), _mc("q2")], break_before=[1])
    assert answers == ["A", "C"]
    assert ask.call_count == 3


def test_run_practice_session_exits_on_q():
    with patch("certbloom.app.Prompt.ask", side_effect=["a", "q"]):
        with pytest.raises(SessionExitRequested):
            run_practice_session([_mc("q1"), _mc("q2")])


def test_cmd_practice_records_session(seeded_db):
    # mood, length, then one answer per question
    with patch("certbloom.app.Prompt.ask", side_effect=["calm", "3", "a", "a", "a"]):
        cmd_practice(seeded_db)
    history = get_session_history(seeded_db, "demo-user")
    assert len(history) == 1
    assert history[0].total_questions == 3
    assert history[0].mood == "calm"


def test_cmd_practice_abandoned_session_is_not_saved(seeded_db):
    with patch("certbloom.app.Prompt.ask", side_effect=["calm", "3", "a", "q"]):
        with pytest.raises(SessionExitRequested):
            cmd_practice(seeded_db)
    assert get_session_history(seeded_db, "demo-user") == []


def test_cmd_dashboard_renders(seeded_db):
    cmd_dashboard(seeded_db)


def test_cmd_admin_answer_key(seeded_db):
    with patch("certbloom.app.Prompt.ask", side_effect=["answer-key", "q902-pv-1", "d"]):
        cmd_admin(seeded_db)
    assert get_question(seeded_db, "q902-pv-1").correct_answer == "D"


def test_main_reports_errors_and_quits(tmp_db):
    with patch("certbloom.app.Prompt.ask",
               side_effect=["admin", "answer-key", "nope", "A", "bogus", "quit"]):
        main(db_path=tmp_db)


def test_session_int_prompt_asks_again_on_non_number():
    with patch("certbloom.app.Prompt.ask", side_effect=["ten", "4"]) as ask:
        assert session_int_prompt("Number of questions", default=10) == 4
    assert ask.call_count == 2


def test_main_survives_non_numeric_session_length(seeded_db):
    with patch("certbloom.app.Prompt.ask",
               side_effect=["practice", "calm", "ten", "q", "quit"]):
        main(db_path=seeded_db)
    assert get_session_history(seeded_db, "demo-user") == []


def test_cmd_study_shows_content_and_records_views(seeded_db):
    # concept number, then Enter after each of the five place value items
    with patch("certbloom.app.Prompt.ask", side_effect=["1", "", "", "", "", ""]):
        cmd_study(seeded_db)
    concept = get_concept_with_content(seeded_db, "place-value", "demo-user")
    assert [item["viewed"] for item in concept["content_items"]] == [1, 1, 1, 1, 1]


def test_cmd_study_concept_without_content(seeded_db):
    # algebraic reasoning is the fifth concept and has no study items
    with patch("certbloom.app.Prompt.ask", side_effect=["5"]) as ask:
        cmd_study(seeded_db)
    assert ask.call_count == 1
