"""Shared reads and writes against the content repository and progress store."""
import logging
from dataclasses import asdict
from datetime import datetime

from certbloom.db import connect
from certbloom.errors import MalformedRecordError, NotFoundError, ValidationError
from certbloom.models import Concept, ContentItem, ProgressRecord, Question

logger = logging.getLogger(__name__)


def ensure_user(db_path: str, user_id: str, email: str = None, display_name: str = None) -> None:
    with connect(db_path) as conn:
        conn.execute(
            "INSERT OR IGNORE INTO users (id, email, display_name, created_at) VALUES (?, ?, ?, ?)",
            (user_id, email, display_name, datetime.now().isoformat()),
        )


def require_user(db_path: str, user_id: str) -> None:
    with connect(db_path) as conn:
        row = conn.execute("SELECT id FROM users WHERE id = ?", (user_id,)).fetchone()
    if row is None:
        raise NotFoundError("user", user_id)


def require_certification(db_path: str, certification_id: str) -> None:
    with connect(db_path) as conn:
        row = conn.execute(
            "SELECT id FROM certifications WHERE id = ?", (certification_id,)
        ).fetchone()
    if row is None:
        raise NotFoundError("certification", certification_id)


def get_concept(db_path: str, concept_id: str) -> dict:
    """Concept joined with its domain's certification id."""
    with connect(db_path) as conn:
        row = conn.execute(
            """SELECT c.*, d.certification_id
            FROM concepts c JOIN domains d ON c.domain_id = d.id
            WHERE c.id = ?""",
            (concept_id,),
        ).fetchone()
    if row is None:
        raise NotFoundError("concept", concept_id)
    return dict(row)


def get_concepts_for_certification(db_path: str, certification_id: str) -> list[Concept]:
    with connect(db_path) as conn:
        rows = conn.execute(
            """SELECT c.* FROM concepts c JOIN domains d ON c.domain_id = d.id
            WHERE d.certification_id = ?
            ORDER BY d.order_index, c.order_index""",
            (certification_id,),
        ).fetchall()
    return [
        Concept(
            id=r["id"], domain_id=r["domain_id"], name=r["name"],
            description=r["description"] or "", difficulty_level=r["difficulty_level"],
            order_index=r["order_index"],
        )
        for r in rows
    ]


def _to_questions(rows) -> list[Question]:
    questions = []
    for row in rows:
        try:
            questions.append(Question.from_row(row))
        except MalformedRecordError as e:
            logger.warning("Skipping malformed question: %s", e)
    return questions


def get_questions_by_ids(db_path: str, question_ids) -> dict[str, Question]:
    """Load questions keyed by id. Raises NotFoundError for any missing id."""
    wanted = list(dict.fromkeys(question_ids))
    if not wanted:
        return {}
    placeholders = ", ".join("?" for _ in wanted)
    with connect(db_path) as conn:
        rows = conn.execute(
            f"SELECT * FROM questions WHERE id IN ({placeholders})", wanted
        ).fetchall()
    found = {row["id"]: Question.from_row(row) for row in rows}
    missing = [qid for qid in wanted if qid not in found]
    if missing:
        raise NotFoundError("question", ", ".join(missing))
    return found


def get_questions_for_subject(db_path: str, certification_id: str) -> list[Question]:
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM questions WHERE certification_id = ? ORDER BY id",
            (certification_id,),
        ).fetchall()
    return _to_questions(rows)


def get_standard_questions(db_path: str, certification_id: str, limit: int) -> list[Question]:
    """Unweighted pull used when adaptive ranking is unavailable."""
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM questions WHERE certification_id = ? ORDER BY RANDOM() LIMIT ?",
            (certification_id, limit),
        ).fetchall()
    return _to_questions(rows)


def count_content_items(db_path: str, concept_id: str) -> int:
    with connect(db_path) as conn:
        return conn.execute(
            "SELECT COUNT(*) FROM content_items WHERE concept_id = ?", (concept_id,)
        ).fetchone()[0]


def get_last_attempts(db_path: str, user_id: str, certification_id: str) -> dict[str, str]:
    """Most recent attempt timestamp per question for one user and subject."""
    with connect(db_path) as conn:
        rows = conn.execute(
            """SELECT a.question_id, MAX(a.attempted_at) as last_at
            FROM attempts a JOIN questions q ON a.question_id = q.id
            WHERE a.user_id = ? AND q.certification_id = ?
            GROUP BY a.question_id""",
            (user_id, certification_id),
        ).fetchall()
    return {r["question_id"]: r["last_at"] for r in rows}


def get_progress_records(db_path: str, user_id: str, certification_id: str) -> dict[str, ProgressRecord]:
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM progress WHERE user_id = ? AND certification_id = ?",
            (user_id, certification_id),
        ).fetchall()
    records = {}
    for row in rows:
        try:
            record = ProgressRecord.from_row(row)
        except MalformedRecordError as e:
            logger.warning("Skipping malformed progress record: %s", e)
            continue
        records[record.topic_key] = record
    return records


def get_progress(db_path: str, user_id: str, topic_key: str) -> ProgressRecord | None:
    with connect(db_path) as conn:
        row = conn.execute(
            "SELECT * FROM progress WHERE user_id = ? AND topic_key = ?",
            (user_id, topic_key),
        ).fetchone()
    return ProgressRecord.from_row(row) if row else None


def save_progress(db_path: str, record: ProgressRecord) -> None:
    """Upsert a progress record; the last writer wins."""
    with connect(db_path) as conn:
        conn.execute(
            """INSERT INTO progress
            (user_id, topic_key, certification_id, mastery, attempt_count,
             last_practiced, needs_review, stage)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, topic_key) DO UPDATE SET
                certification_id=excluded.certification_id,
                mastery=excluded.mastery,
                attempt_count=excluded.attempt_count,
                last_practiced=excluded.last_practiced,
                needs_review=excluded.needs_review,
                stage=excluded.stage""",
            (record.user_id, record.topic_key, record.certification_id, record.mastery,
             record.attempt_count, record.last_practiced, int(record.needs_review), record.stage),
        )


def get_content_items(db_path: str, concept_id: str) -> list[ContentItem]:
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM content_items WHERE concept_id = ? ORDER BY order_index, id",
            (concept_id,),
        ).fetchall()
    return [ContentItem.from_row(r) for r in rows]


def get_concept_with_content(db_path: str, concept_id: str, user_id: str = None) -> dict:
    """A concept with its study content, plus the learner's progress when user_id is given.

    Each content item comes back as a dict with a ``viewed`` count for the
    learner (0 when no user is given).
    """
    concept = get_concept(db_path, concept_id)
    items = get_content_items(db_path, concept_id)
    views = {}
    progress = None
    if user_id is not None:
        require_user(db_path, user_id)
        with connect(db_path) as conn:
            rows = conn.execute(
                """SELECT e.content_item_id, e.view_count FROM content_engagement e
                JOIN content_items ci ON e.content_item_id = ci.id
                WHERE e.user_id = ? AND ci.concept_id = ?""",
                (user_id, concept_id),
            ).fetchall()
        views = {r["content_item_id"]: r["view_count"] for r in rows}
        progress = get_progress(db_path, user_id, concept_id)
    concept["content_items"] = [
        {**asdict(item), "viewed": views.get(item.id, 0)} for item in items
    ]
    concept["progress"] = progress
    return concept


def record_content_engagement(
    db_path: str, user_id: str, content_item_id: int, time_spent_seconds: int = 0,
) -> dict:
    """Count one view of a content item and add the time spent on it."""
    if isinstance(time_spent_seconds, bool) or not isinstance(time_spent_seconds, int) \
            or time_spent_seconds < 0:
        raise ValidationError("timeSpentSeconds", "must be a non-negative integer")
    require_user(db_path, user_id)
    with connect(db_path) as conn:
        if conn.execute(
            "SELECT 1 FROM content_items WHERE id = ?", (content_item_id,)
        ).fetchone() is None:
            raise NotFoundError("content item", content_item_id)
        conn.execute(
            """INSERT INTO content_engagement
            (user_id, content_item_id, view_count, time_spent_seconds, last_viewed_at)
            VALUES (?, ?, 1, ?, ?)
            ON CONFLICT(user_id, content_item_id) DO UPDATE SET
                view_count = view_count + 1,
                time_spent_seconds = time_spent_seconds + excluded.time_spent_seconds,
                last_viewed_at = excluded.last_viewed_at""",
            (user_id, content_item_id, time_spent_seconds, datetime.now().isoformat()),
        )
        row = conn.execute(
            "SELECT * FROM content_engagement WHERE user_id = ? AND content_item_id = ?",
            (user_id, content_item_id),
        ).fetchone()
    return dict(row)
