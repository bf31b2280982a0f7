"""Seed the database with certifications, domains, concepts, content and questions."""
import json
import logging
from datetime import datetime
from pathlib import Path

from certbloom.config import OPTION_KEYS
from certbloom.db import connect

logger = logging.getLogger(__name__)

CONTENT_DIR = Path(__file__).parent / "content"
DEMO_USER_ID = "demo-user"


def load_content(name: str = "texes.json") -> dict:
    return json.loads((CONTENT_DIR / name).read_text())


def is_seeded(db_path: str) -> bool:
    """Check whether the database already holds certifications."""
    with connect(db_path) as conn:
        count = conn.execute("SELECT COUNT(*) FROM certifications").fetchone()[0]
    return count > 0


def seed_hierarchy(db_path: str, data: dict) -> None:
    """Insert certifications, domains, concepts and their content items."""
    now = datetime.now().isoformat()
    with connect(db_path) as conn:
        for cert in data["certifications"]:
            conn.execute(
                "INSERT OR IGNORE INTO certifications (id, name, test_code, description) VALUES (?, ?, ?, ?)",
                (cert["id"], cert["name"], cert["test_code"], cert["description"]),
            )
        for domain in data["domains"]:
            conn.execute(
                """INSERT OR IGNORE INTO domains
                (id, certification_id, name, code, weight_percentage, order_index)
                VALUES (?, ?, ?, ?, ?, ?)""",
                (domain["id"], domain["certification_id"], domain["name"], domain["code"],
                 domain["weight_percentage"], domain["order_index"]),
            )
        for concept in data["concepts"]:
            conn.execute(
                """INSERT OR IGNORE INTO concepts
                (id, domain_id, name, description, difficulty_level, order_index)
                VALUES (?, ?, ?, ?, ?, ?)""",
                (concept["id"], concept["domain_id"], concept["name"], concept["description"],
                 concept["difficulty_level"], concept["order_index"]),
            )
            for i, item in enumerate(concept.get("content", []), start=1):
                conn.execute(
                    """INSERT INTO content_items
                    (concept_id, type, title, body, order_index, source, created_at)
                    VALUES (?, ?, ?, ?, ?, 'seeded', ?)""",
                    (concept["id"], item["type"], item["title"], item["body"], i, now),
                )


def seed_questions(db_path: str, data: dict) -> None:
    """Insert questions; the domain tag comes from the question's concept."""
    now = datetime.now().isoformat()
    with connect(db_path) as conn:
        for q in data["questions"]:
            row = conn.execute(
                "SELECT domain_id FROM concepts WHERE id = ?", (q["concept_id"],)
            ).fetchone()
            domain_id = row["domain_id"] if row else None
            conn.execute(
                """INSERT OR IGNORE INTO questions
                (id, certification_id, domain_id, concept_id, question_text, question_type,
                 difficulty_level, cognitive_level, option_a, option_b, option_c, option_d, option_e,
                 correct_answer, explanation, source, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'seeded', ?, ?)""",
                (q["id"], q["certification_id"], domain_id, q["concept_id"], q["question_text"],
                 q["question_type"], q["difficulty_level"], q["cognitive_level"],
                 *(q.get(k) for k in OPTION_KEYS),
                 q["correct_answer"], q["explanation"], now, now),
            )


def seed_users(db_path: str, data: dict) -> None:
    now = datetime.now().isoformat()
    with connect(db_path) as conn:
        for user in data.get("users", []):
            conn.execute(
                "INSERT OR IGNORE INTO users (id, email, display_name, created_at) VALUES (?, ?, ?, ?)",
                (user["id"], user["email"], user["display_name"], now),
            )


def seed_all(db_path: str) -> None:
    """Run all seed functions in order."""
    if is_seeded(db_path):
        return
    data = load_content()
    seed_hierarchy(db_path, data)
    seed_questions(db_path, data)
    seed_users(db_path, data)
    logger.info(
        "Seeded %d certifications, %d concepts, %d questions",
        len(data["certifications"]), len(data["concepts"]), len(data["questions"]),
    )
