"""Practice session planning, completion and per-user settings."""
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from certbloom.config import SessionMix
from certbloom.db import connect
from certbloom.errors import CertBloomError, NotFoundError, ValidationError
from certbloom.mastery import needs_review, stage_for, update_mastery
from certbloom.models import ProgressRecord, SessionResult
from certbloom.mood import MoodModulator
from certbloom.scoring import MasteryUpdate, score_session, validate_answers, write_attempt
from certbloom.selector import Selection, select_questions
from certbloom.store import (
    count_content_items, get_concept, get_progress, get_questions_by_ids, require_user,
    save_progress,
)

logger = logging.getLogger(__name__)


@dataclass
class PlannedSession:
    session_id: str
    mood: str
    mix: SessionMix
    selection: Selection
    break_before: list[int] = field(default_factory=list)
    message: str = ""


@dataclass
class CompletionOutcome:
    result: SessionResult
    mastery_updates: list[MasteryUpdate]
    failed_updates: list[MasteryUpdate] = field(default_factory=list)

    def to_dict(self) -> dict:
        return self.result.to_dict()


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    with connect(db_path) as conn:
        row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else default


def set_setting(db_path: str, key: str, value: str) -> None:
    with connect(db_path) as conn:
        conn.execute(
            "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
            (key, value, value),
        )


def plan_session(
    db_path: str,
    user_id: str,
    subject_area: str,
    mood: str = None,
    session_length: int = 10,
    focus_weak_areas: bool = True,
    modulator: MoodModulator = None,
) -> PlannedSession:
    """Pick the session mix for the mood and select questions to match it."""
    modulator = modulator or MoodModulator()
    resolved = modulator.resolve(mood)
    mix = modulator.configure(resolved)
    selection = select_questions(
        db_path, user_id, subject_area,
        session_length=session_length,
        focus_weak_areas=focus_weak_areas,
        mix=mix,
    )
    return PlannedSession(
        session_id=str(uuid.uuid4()),
        mood=resolved,
        mix=mix,
        selection=selection,
        break_before=modulator.break_points(resolved, len(selection.questions)),
        message=modulator.message(resolved),
    )


def _apply_update(db_path: str, update: MasteryUpdate, practiced_at: str) -> ProgressRecord:
    record = get_progress(db_path, update.user_id, update.topic_key)
    if record is None:
        record = ProgressRecord(
            user_id=update.user_id,
            topic_key=update.topic_key,
            certification_id=update.certification_id,
        )
    record.mastery = update_mastery(
        record.mastery, update.content_item_count, update.was_correct,
        exposures=record.attempt_count,
    )
    record.attempt_count += 1
    record.last_practiced = practiced_at
    record.needs_review = needs_review(record.mastery, update.was_correct)
    record.stage = stage_for(record.mastery)
    save_progress(db_path, record)
    return record


def apply_mastery_updates(db_path: str, updates: list[MasteryUpdate]) -> list[MasteryUpdate]:
    """Apply each update independently; return the ones that failed."""
    failed = []
    practiced_at = datetime.now().isoformat()
    for update in updates:
        try:
            _apply_update(db_path, update, practiced_at)
        except CertBloomError as e:
            logger.warning(
                "Mastery update failed for %s/%s: %s", update.user_id, update.topic_key, e
            )
            failed.append(update)
    return failed


def complete_session(
    db_path: str,
    session_id: str,
    user_id: str,
    question_ids: list[str],
    user_answers: list[str],
    concept_id: str = None,
    mood: str = None,
) -> CompletionOutcome:
    """Score a finished session, store it, then update mastery per concept.

    The score, the attempts and the session result are written together.
    Mastery writes happen afterwards; any that fail are logged and returned
    in ``failed_updates`` without affecting the stored result.
    """
    if not session_id:
        raise ValidationError("sessionId", "is required")
    if not user_id:
        raise ValidationError("userId", "is required")
    validate_answers(question_ids, user_answers)

    require_user(db_path, user_id)
    if concept_id is not None:
        get_concept(db_path, concept_id)
    questions = get_questions_by_ids(db_path, question_ids)
    content_counts = {
        topic: count_content_items(db_path, topic)
        for topic in {q.topic_key for q in questions.values() if q.topic_key}
    }
    score = score_session(
        question_ids, user_answers, questions,
        user_id=user_id, content_counts=content_counts,
    )

    completed_at = datetime.now().isoformat()
    with connect(db_path) as conn:
        if conn.execute("SELECT 1 FROM session_results WHERE id = ?", (session_id,)).fetchone():
            raise ValidationError("sessionId", f"session {session_id} is already completed")
        for qid, answer, ok in zip(question_ids, user_answers, score.correctness):
            write_attempt(conn, user_id, qid, answer, ok, session_id=session_id)
        conn.execute(
            """INSERT INTO session_results
            (id, user_id, concept_id, mood, question_ids, user_answers,
             correct_answers, total_questions, score_percentage, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (session_id, user_id, concept_id, mood, json.dumps(list(question_ids)),
             json.dumps(list(user_answers)), score.correct_count, score.total_count,
             score.percentage, completed_at),
        )

    result = SessionResult(
        id=session_id,
        user_id=user_id,
        question_ids=list(question_ids),
        user_answers=list(user_answers),
        correct_answers=score.correct_count,
        score_percentage=score.percentage,
        completed_at=completed_at,
        concept_id=concept_id,
        mood=mood,
    )
    logger.info(
        "Session %s completed: %d/%d (%d%%)",
        session_id, score.correct_count, score.total_count, score.percentage,
    )
    failed = apply_mastery_updates(db_path, score.mastery_updates)
    return CompletionOutcome(result=result, mastery_updates=score.mastery_updates, failed_updates=failed)


def get_session_result(db_path: str, session_id: str) -> SessionResult:
    with connect(db_path) as conn:
        row = conn.execute("SELECT * FROM session_results WHERE id = ?", (session_id,)).fetchone()
    if row is None:
        raise NotFoundError("session", session_id)
    return SessionResult.from_row(row)


def get_session_history(db_path: str, user_id: str, limit: int = 20) -> list[SessionResult]:
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM session_results WHERE user_id = ? ORDER BY completed_at DESC LIMIT ?",
            (user_id, limit),
        ).fetchall()
    return [SessionResult.from_row(r) for r in rows]
