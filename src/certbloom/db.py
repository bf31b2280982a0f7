"""Database initialization and connection management."""
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from certbloom.config import DEFAULT_DB_PATH
from certbloom.errors import StoreUnavailableError, ValidationError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT UNIQUE,
    display_name TEXT,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS certifications (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    test_code TEXT,
    description TEXT
);

CREATE TABLE IF NOT EXISTS domains (
    id TEXT PRIMARY KEY,
    certification_id TEXT NOT NULL REFERENCES certifications(id),
    name TEXT NOT NULL,
    code TEXT,
    weight_percentage REAL NOT NULL DEFAULT 0,
    order_index INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS concepts (
    id TEXT PRIMARY KEY,
    domain_id TEXT NOT NULL REFERENCES domains(id),
    name TEXT NOT NULL,
    description TEXT,
    difficulty_level INTEGER NOT NULL DEFAULT 1,
    order_index INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS content_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    concept_id TEXT NOT NULL REFERENCES concepts(id),
    type TEXT NOT NULL,
    title TEXT NOT NULL,
    body TEXT,
    order_index INTEGER NOT NULL DEFAULT 0,
    source TEXT DEFAULT 'seeded',
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS content_engagement (
    user_id TEXT NOT NULL REFERENCES users(id),
    content_item_id INTEGER NOT NULL REFERENCES content_items(id),
    view_count INTEGER NOT NULL DEFAULT 0,
    time_spent_seconds INTEGER NOT NULL DEFAULT 0,
    last_viewed_at TEXT,
    PRIMARY KEY (user_id, content_item_id)
);

CREATE TABLE IF NOT EXISTS questions (
    id TEXT PRIMARY KEY,
    certification_id TEXT NOT NULL REFERENCES certifications(id),
    domain_id TEXT REFERENCES domains(id),
    concept_id TEXT REFERENCES concepts(id),
    question_text TEXT NOT NULL,
    question_type TEXT NOT NULL,
    difficulty_level TEXT NOT NULL,
    cognitive_level TEXT NOT NULL DEFAULT 'comprehension',
    option_a TEXT,
    option_b TEXT,
    option_c TEXT,
    option_d TEXT,
    option_e TEXT,
    correct_answer TEXT NOT NULL,
    explanation TEXT,
    source TEXT DEFAULT 'seeded',
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS attempts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES users(id),
    question_id TEXT NOT NULL REFERENCES questions(id),
    user_answer TEXT NOT NULL,
    is_correct INTEGER NOT NULL,
    time_spent_seconds INTEGER NOT NULL DEFAULT 0,
    attempt_number INTEGER NOT NULL,
    confidence_level INTEGER NOT NULL DEFAULT 3,
    hint_used INTEGER NOT NULL DEFAULT 0,
    session_id TEXT,
    attempted_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS progress (
    user_id TEXT NOT NULL REFERENCES users(id),
    topic_key TEXT NOT NULL REFERENCES concepts(id),
    certification_id TEXT NOT NULL REFERENCES certifications(id),
    mastery REAL NOT NULL DEFAULT 0,
    attempt_count INTEGER NOT NULL DEFAULT 0,
    last_practiced TEXT,
    needs_review INTEGER NOT NULL DEFAULT 0,
    stage TEXT NOT NULL DEFAULT 'dormant',
    PRIMARY KEY (user_id, topic_key)
);

CREATE TABLE IF NOT EXISTS session_results (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id),
    concept_id TEXT REFERENCES concepts(id),
    mood TEXT,
    question_ids TEXT NOT NULL,
    user_answers TEXT NOT NULL,
    correct_answers INTEGER NOT NULL,
    total_questions INTEGER NOT NULL,
    score_percentage INTEGER NOT NULL,
    completed_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    value TEXT
);

CREATE INDEX IF NOT EXISTS ix_questions_certification ON questions(certification_id);
CREATE INDEX IF NOT EXISTS ix_questions_concept ON questions(concept_id);
CREATE INDEX IF NOT EXISTS ix_attempts_user_question ON attempts(user_id, question_id);
CREATE INDEX IF NOT EXISTS ix_progress_user_cert ON progress(user_id, certification_id);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def connect(db_path: str = DEFAULT_DB_PATH):
    """Yield a connection that commits on success and always closes.

    Integrity failures surface as ValidationError; any other driver error
    surfaces as StoreUnavailableError.
    """
    try:
        conn = get_connection(db_path)
    except sqlite3.Error as e:
        logger.warning("Could not open store %s: %s", db_path, e)
        raise StoreUnavailableError(f"could not open store: {e}") from e
    try:
        yield conn
        conn.commit()
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise ValidationError(None, f"integrity check failed: {e}") from e
    except sqlite3.Error as e:
        conn.rollback()
        logger.warning("Store query failed: %s", e)
        raise StoreUnavailableError(str(e)) from e
    finally:
        conn.close()


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
