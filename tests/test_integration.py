# tests/test_integration.py
"""End-to-end test of the core workflow."""
from certbloom.dashboard import calc_readiness_score, get_recommendations, get_study_stats
from certbloom.db import init_db
from certbloom.importer import import_content
from certbloom.seed import seed_all
from certbloom.sessions import complete_session, get_session_result, plan_session
from certbloom.store import get_progress, get_questions_by_ids


def test_full_practice_workflow(tmp_db, tmp_path):
    """Plan, answer, complete, then see progress drive the next selection."""
    init_db(tmp_db)
    seed_all(tmp_db)

    planned = plan_session(tmp_db, "demo-user", "texes-902", mood="anxious", session_length=8)
    assert planned.selection.is_adaptive
    ids = planned.selection.question_ids
    assert len(ids) == 8
    questions = get_questions_by_ids(tmp_db, ids)

    # Miss every question on the first concept, get the rest right
    first_concept = questions[ids[0]].concept_id
    answers = [
        "wrong" if questions[qid].concept_id == first_concept else questions[qid].correct_answer
        for qid in ids
    ]
    outcome = complete_session(
        tmp_db, planned.session_id, "demo-user", ids, answers, mood=planned.mood,
    )
    assert outcome.failed_updates == []
    assert get_session_result(tmp_db, planned.session_id).score_percentage == outcome.result.score_percentage

    missed = get_progress(tmp_db, "demo-user", first_concept)
    assert missed.mastery == 0.0
    assert missed.needs_review is True

    # Practiced-but-missed concept is weak and leads the next plan
    weak = get_recommendations(tmp_db, "demo-user", "texes-902")["weak_areas"]
    assert weak[0]["concept_id"] == first_concept
    follow_up = plan_session(tmp_db, "demo-user", "texes-902", mood="focused", session_length=5)
    assert follow_up.selection.questions[0].concept_id == first_concept
    assert follow_up.selection.questions[0].priority_score == 3
    assert follow_up.break_before == []

    stats = get_study_stats(tmp_db, "demo-user")
    assert stats["sessions_completed"] == 1
    assert stats["attempts_recorded"] == 8
    assert calc_readiness_score(tmp_db, "demo-user", "texes-902") > 0

    # Imported material raises richness for the next first exposure
    notes = tmp_path / "algebra.txt"
    notes.write_text("Algebraic reasoning: solving equations step by step.")
    assert import_content(tmp_db, str(notes))["concept_id"] == "algebraic-reasoning"
