"""Answer-key scoring for practice sessions and single attempts."""
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from certbloom.config import SESSION_MASTERY_PCT, TOPIC_PASS_RATIO
from certbloom.db import connect
from certbloom.errors import NotFoundError, ValidationError
from certbloom.models import Attempt, Question


@dataclass
class MasteryUpdate:
    """One pending progress write, produced by scoring and applied afterwards."""
    user_id: str
    topic_key: str
    certification_id: str
    content_item_count: int
    was_correct: bool


@dataclass
class SessionScore:
    correct_count: int
    total_count: int
    percentage: int
    correctness: list[bool]
    mastery_updates: list[MasteryUpdate] = field(default_factory=list)

    @property
    def mastery_achieved(self) -> bool:
        return self.percentage >= SESSION_MASTERY_PCT


@dataclass
class AttemptFeedback:
    attempt: Attempt
    is_correct: bool
    attempt_number: int
    encouragement: str


def validate_answers(question_ids: Sequence[str], user_answers: Sequence[str]) -> None:
    if question_ids is None or len(question_ids) == 0:
        raise ValidationError("questionIds", "at least one question is required")
    if user_answers is None:
        raise ValidationError("userAnswers", "answers are required")
    if len(question_ids) != len(user_answers):
        raise ValidationError(
            "userAnswers",
            f"expected {len(question_ids)} answers, got {len(user_answers)}",
        )
    for i, qid in enumerate(question_ids):
        if not isinstance(qid, str) or not qid:
            raise ValidationError("questionIds", f"entry {i} is not a question id")
    for i, answer in enumerate(user_answers):
        if not isinstance(answer, str):
            raise ValidationError("userAnswers", f"entry {i} is not a string")


def round_half_up(value: float) -> int:
    """Nearest whole number, halves rounded up (round() would go to even)."""
    return math.floor(round(value, 6) + 0.5)


def percentage(correct: int, total: int) -> int:
    """Whole-number percentage, halves rounded up."""
    if total <= 0:
        raise ValidationError("totalQuestions", "must be greater than zero")
    return (200 * correct + total) // (2 * total)


def is_answer_correct(question: Question, answer: str) -> bool:
    return answer == question.correct_answer


def score_session(
    question_ids: Sequence[str],
    user_answers: Sequence[str],
    questions: Mapping[str, Question],
    user_id: str = None,
    content_counts: Mapping[str, int] = None,
) -> SessionScore:
    """Score a batch of answers against the stored answer keys.

    Produces one MasteryUpdate per distinct concept in the session (in order
    of first appearance) when user_id is given. A concept counts as correct
    when at least TOPIC_PASS_RATIO of its answers are right.
    """
    validate_answers(question_ids, user_answers)
    missing = [qid for qid in question_ids if qid not in questions]
    if missing:
        raise NotFoundError("question", ", ".join(dict.fromkeys(missing)))

    correctness = [
        is_answer_correct(questions[qid], answer)
        for qid, answer in zip(question_ids, user_answers)
    ]
    correct = sum(correctness)
    total = len(question_ids)

    updates = []
    if user_id is not None:
        tallies: dict[str, list[int]] = {}
        for qid, ok in zip(question_ids, correctness):
            topic = questions[qid].topic_key
            if topic is None:
                continue
            tally = tallies.setdefault(topic, [0, 0])
            tally[0] += int(ok)
            tally[1] += 1
        first_question = {}
        for qid in question_ids:
            first_question.setdefault(questions[qid].topic_key, questions[qid])
        counts = content_counts or {}
        for topic, (right, seen) in tallies.items():
            updates.append(MasteryUpdate(
                user_id=user_id,
                topic_key=topic,
                certification_id=first_question[topic].certification_id,
                content_item_count=counts.get(topic, 0),
                was_correct=right / seen >= TOPIC_PASS_RATIO,
            ))

    return SessionScore(
        correct_count=correct,
        total_count=total,
        percentage=percentage(correct, total),
        correctness=correctness,
        mastery_updates=updates,
    )


def encouragement(is_correct: bool, attempt_number: int, stage: str = None) -> str:
    if is_correct:
        if attempt_number > 1:
            return "Success! Your persistence is paying off. Keep going!"
        if stage == "radiant":
            return "Excellent! Your mastery shines through."
        if stage == "blooming":
            return "Perfect! You're demonstrating strong understanding."
        if stage == "budding":
            return "Great work! You're building solid foundations."
        return "Well done! You're on the right path."
    if attempt_number == 1:
        return "No worries! This is part of learning. Let's explore this concept together."
    return "Learning takes time. Each attempt brings you closer to understanding."


def write_attempt(
    conn,
    user_id: str,
    question_id: str,
    user_answer: str,
    is_correct: bool,
    time_spent_seconds: int = 0,
    confidence_level: int = 3,
    hint_used: bool = False,
    session_id: str = None,
) -> Attempt:
    """Append an attempt on an open connection; the caller commits."""
    row = conn.execute(
        "SELECT MAX(attempt_number) FROM attempts WHERE user_id = ? AND question_id = ?",
        (user_id, question_id),
    ).fetchone()
    attempt_number = (row[0] or 0) + 1
    attempted_at = datetime.now().isoformat()
    cursor = conn.execute(
        """INSERT INTO attempts
        (user_id, question_id, user_answer, is_correct, time_spent_seconds,
         attempt_number, confidence_level, hint_used, session_id, attempted_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (user_id, question_id, user_answer, int(is_correct), time_spent_seconds,
         attempt_number, confidence_level, int(hint_used), session_id, attempted_at),
    )
    return Attempt(
        id=cursor.lastrowid,
        user_id=user_id,
        question_id=question_id,
        user_answer=user_answer,
        is_correct=is_correct,
        attempt_number=attempt_number,
        attempted_at=attempted_at,
        time_spent_seconds=time_spent_seconds,
        confidence_level=confidence_level,
        hint_used=hint_used,
        session_id=session_id,
    )


def record_attempt(
    db_path: str,
    user_id: str,
    question_id: str,
    user_answer: str,
    time_spent_seconds: int = 0,
    confidence_level: int = 3,
    hint_used: bool = False,
    session_id: str = None,
) -> AttemptFeedback:
    """Score one answer and append it to the attempt log."""
    if not user_id:
        raise ValidationError("userId", "is required")
    if not question_id:
        raise ValidationError("questionId", "is required")
    if user_answer is None:
        raise ValidationError("userAnswer", "is required")
    if not 1 <= confidence_level <= 5:
        raise ValidationError("confidenceLevel", "must be between 1 and 5")
    if time_spent_seconds < 0:
        raise ValidationError("timeSpentSeconds", "must not be negative")

    with connect(db_path) as conn:
        if conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is None:
            raise NotFoundError("user", user_id)
        row = conn.execute("SELECT * FROM questions WHERE id = ?", (question_id,)).fetchone()
        if row is None:
            raise NotFoundError("question", question_id)
        question = Question.from_row(row)
        is_correct = is_answer_correct(question, user_answer)
        attempt = write_attempt(
            conn, user_id, question_id, user_answer, is_correct,
            time_spent_seconds=time_spent_seconds,
            confidence_level=confidence_level,
            hint_used=hint_used,
            session_id=session_id,
        )
        stage_row = conn.execute(
            "SELECT stage FROM progress WHERE user_id = ? AND topic_key = ?",
            (user_id, question.topic_key),
        ).fetchone()

    stage = stage_row["stage"] if stage_row else None
    return AttemptFeedback(
        attempt=attempt,
        is_correct=is_correct,
        attempt_number=attempt.attempt_number,
        encouragement=encouragement(is_correct, attempt.attempt_number, stage),
    )


def get_attempt_history(
    db_path: str, user_id: str, question_id: str = None, limit: int = 50,
) -> list[Attempt]:
    """Most recent attempts first."""
    query = "SELECT * FROM attempts WHERE user_id = ?"
    params: list = [user_id]
    if question_id:
        query += " AND question_id = ?"
        params.append(question_id)
    query += " ORDER BY attempted_at DESC, id DESC LIMIT ?"
    params.append(limit)
    with connect(db_path) as conn:
        rows = conn.execute(query, params).fetchall()
    return [Attempt.from_row(r) for r in rows]


def get_accuracy(db_path: str, user_id: str) -> float:
    """Share of correct attempts as a percentage."""
    with connect(db_path) as conn:
        row = conn.execute(
            "SELECT COUNT(*) as total, SUM(is_correct) as correct FROM attempts WHERE user_id = ?",
            (user_id,),
        ).fetchone()
    if row["total"] == 0:
        return 0.0
    return round((row["correct"] / row["total"]) * 100, 1)
