"""Question bank administration: create, correct, recategorize, report."""
import logging
import uuid
from datetime import datetime

from certbloom.config import (
    COGNITIVE_LEVELS, DIFFICULTY_TIERS, LEGACY_DIFFICULTY, OPTION_KEYS, QUESTION_TYPES,
)
from certbloom.db import connect
from certbloom.errors import NotFoundError, ValidationError
from certbloom.models import Question

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("question_text", "certification_id", "difficulty_level", "question_type")
OPTION_LETTERS = "ABCDE"


def _text(value) -> str:
    return "" if value is None else str(value).strip()


def _normalize_answer(question_type: str, answer: str, options: list[str]) -> str:
    if not answer:
        raise ValidationError("correct_answer", "is required")
    if question_type == "multiple_choice":
        letter = answer.upper()
        if len(letter) == 1 and letter in OPTION_LETTERS:
            if OPTION_LETTERS.index(letter) >= len(options):
                raise ValidationError("correct_answer", f"option {letter} is not provided")
            return letter
        if answer in options:
            return OPTION_LETTERS[options.index(answer)]
        raise ValidationError("correct_answer", "must be an option letter A-E or an option's text")
    if question_type == "true_false":
        if answer.lower() not in ("true", "false"):
            raise ValidationError("correct_answer", "must be true or false")
        return answer.lower()
    return answer


def validate_question_fields(fields: dict) -> dict:
    """Check and normalize a question payload without touching the store."""
    missing = [f for f in REQUIRED_FIELDS if not _text(fields.get(f))]
    if missing:
        raise ValidationError(missing[0], f"missing required fields: {', '.join(missing)}")

    difficulty = _text(fields["difficulty_level"]).lower()
    difficulty = LEGACY_DIFFICULTY.get(difficulty, difficulty)
    if difficulty not in DIFFICULTY_TIERS:
        raise ValidationError(
            "difficulty_level",
            "must be foundation, application, advanced, easy, medium, or hard",
        )
    question_type = _text(fields["question_type"]).lower()
    if question_type not in QUESTION_TYPES:
        raise ValidationError(
            "question_type", "must be multiple_choice, true_false, or short_answer"
        )
    cognitive = _text(fields.get("cognitive_level")).lower() or "comprehension"
    if cognitive not in COGNITIVE_LEVELS:
        raise ValidationError("cognitive_level", f"must be one of {', '.join(COGNITIVE_LEVELS)}")

    options = []
    if question_type == "multiple_choice":
        options = [_text(fields.get(k)) for k in OPTION_KEYS if _text(fields.get(k))]
        if len(options) < 2:
            raise ValidationError("options", "multiple choice questions need at least 2 options")

    cleaned = {
        "id": _text(fields.get("id")) or None,
        "question_text": _text(fields["question_text"]),
        "certification_id": _text(fields["certification_id"]),
        "domain_id": _text(fields.get("domain_id")) or None,
        "concept_id": _text(fields.get("concept_id")) or None,
        "difficulty_level": difficulty,
        "question_type": question_type,
        "cognitive_level": cognitive,
        "correct_answer": _normalize_answer(question_type, _text(fields.get("correct_answer")), options),
        "explanation": _text(fields.get("explanation")),
    }
    for key, value in zip(OPTION_KEYS, options + [None] * len(OPTION_KEYS)):
        cleaned[key] = value
    return cleaned


def resolve_references(conn, cleaned: dict) -> dict:
    """Check certification/domain/concept references; fills domain_id from the concept."""
    cert = cleaned["certification_id"]
    if conn.execute("SELECT 1 FROM certifications WHERE id = ?", (cert,)).fetchone() is None:
        raise NotFoundError("certification", cert)
    if cleaned["concept_id"]:
        row = conn.execute(
            """SELECT c.domain_id, d.certification_id FROM concepts c
            JOIN domains d ON c.domain_id = d.id WHERE c.id = ?""",
            (cleaned["concept_id"],),
        ).fetchone()
        if row is None:
            raise NotFoundError("concept", cleaned["concept_id"])
        if row["certification_id"] != cert:
            raise ValidationError("concept_id", f"concept belongs to {row['certification_id']}, not {cert}")
        if cleaned["domain_id"] and cleaned["domain_id"] != row["domain_id"]:
            raise ValidationError("domain_id", "does not match the concept's domain")
        cleaned["domain_id"] = row["domain_id"]
    elif cleaned["domain_id"]:
        row = conn.execute(
            "SELECT certification_id FROM domains WHERE id = ?", (cleaned["domain_id"],)
        ).fetchone()
        if row is None:
            raise NotFoundError("domain", cleaned["domain_id"])
        if row["certification_id"] != cert:
            raise ValidationError("domain_id", f"domain belongs to {row['certification_id']}, not {cert}")
    return cleaned


def insert_question(conn, cleaned: dict, source: str = "admin") -> str:
    question_id = cleaned["id"] or uuid.uuid4().hex
    now = datetime.now().isoformat()
    conn.execute(
        """INSERT INTO questions
        (id, certification_id, domain_id, concept_id, question_text, question_type,
         difficulty_level, cognitive_level, option_a, option_b, option_c, option_d, option_e,
         correct_answer, explanation, source, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (question_id, cleaned["certification_id"], cleaned["domain_id"], cleaned["concept_id"],
         cleaned["question_text"], cleaned["question_type"], cleaned["difficulty_level"],
         cleaned["cognitive_level"], cleaned["option_a"], cleaned["option_b"], cleaned["option_c"],
         cleaned["option_d"], cleaned["option_e"], cleaned["correct_answer"],
         cleaned["explanation"], source, now, now),
    )
    return question_id


def create_question(db_path: str, **fields) -> str:
    """Validate and insert one question. Returns its id."""
    cleaned = validate_question_fields(fields)
    with connect(db_path) as conn:
        resolve_references(conn, cleaned)
        question_id = insert_question(conn, cleaned)
    logger.info("Created question %s", question_id)
    return question_id


def get_question(db_path: str, question_id: str) -> Question:
    with connect(db_path) as conn:
        row = conn.execute("SELECT * FROM questions WHERE id = ?", (question_id,)).fetchone()
    if row is None:
        raise NotFoundError("question", question_id)
    return Question.from_row(row)


def list_questions(db_path: str, certification_id: str = None, concept_id: str = None) -> list[dict]:
    query = """SELECT q.*, c.name as certification_name, c.test_code
        FROM questions q JOIN certifications c ON q.certification_id = c.id"""
    clauses, params = [], []
    if certification_id:
        clauses.append("q.certification_id = ?")
        params.append(certification_id)
    if concept_id:
        clauses.append("q.concept_id = ?")
        params.append(concept_id)
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY q.created_at DESC, q.id"
    with connect(db_path) as conn:
        rows = conn.execute(query, params).fetchall()
    return [dict(r) for r in rows]


def update_answer_key(db_path: str, question_id: str, correct_answer: str) -> str:
    """Correct a published question's answer key. Returns the stored answer."""
    question = get_question(db_path, question_id)
    options = dict(zip(OPTION_KEYS, question.options))
    answer = _normalize_answer(question.question_type, _text(correct_answer), list(options.values()))
    with connect(db_path) as conn:
        conn.execute(
            "UPDATE questions SET correct_answer = ?, updated_at = ? WHERE id = ?",
            (answer, datetime.now().isoformat(), question_id),
        )
    logger.info("Answer key for %s changed %r -> %r", question_id, question.correct_answer, answer)
    return answer


def recategorize_question(db_path: str, question_id: str, concept_id: str) -> None:
    """Move a question to another concept of the same certification."""
    question = get_question(db_path, question_id)
    with connect(db_path) as conn:
        row = conn.execute(
            """SELECT c.domain_id, d.certification_id FROM concepts c
            JOIN domains d ON c.domain_id = d.id WHERE c.id = ?""",
            (concept_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError("concept", concept_id)
        if row["certification_id"] != question.certification_id:
            raise ValidationError(
                "concept_id",
                f"concept belongs to {row['certification_id']}, question to {question.certification_id}",
            )
        conn.execute(
            "UPDATE questions SET concept_id = ?, domain_id = ?, updated_at = ? WHERE id = ?",
            (concept_id, row["domain_id"], datetime.now().isoformat(), question_id),
        )
    logger.info("Question %s moved to concept %s", question_id, concept_id)


def question_stats(db_path: str) -> dict:
    with connect(db_path) as conn:
        total = conn.execute("SELECT COUNT(*) FROM questions").fetchone()[0]
        by_cert = conn.execute(
            """SELECT c.id, c.name, COUNT(q.id) as total
            FROM certifications c LEFT JOIN questions q ON q.certification_id = c.id
            GROUP BY c.id ORDER BY c.id"""
        ).fetchall()
        by_difficulty = conn.execute(
            "SELECT difficulty_level, COUNT(*) as total FROM questions GROUP BY difficulty_level"
        ).fetchall()
        by_type = conn.execute(
            "SELECT question_type, COUNT(*) as total FROM questions GROUP BY question_type"
        ).fetchall()
        uncategorized = conn.execute(
            "SELECT COUNT(*) FROM questions WHERE concept_id IS NULL"
        ).fetchone()[0]
    return {
        "total": total,
        "by_certification": {r["id"]: r["total"] for r in by_cert},
        "by_difficulty": {r["difficulty_level"]: r["total"] for r in by_difficulty},
        "by_type": {r["question_type"]: r["total"] for r in by_type},
        "uncategorized": uncategorized,
    }
