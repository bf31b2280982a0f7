"""Bulk question import and study-material import for various file formats."""
import csv
import json
import logging
import re
from datetime import datetime
from pathlib import Path

from certbloom.admin import REQUIRED_FIELDS, insert_question, resolve_references, validate_question_fields
from certbloom.db import connect
from certbloom.errors import CertBloomError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# Words too common to tell concepts apart
STOPWORDS = frozenset({
    "and", "the", "of", "to", "in", "for", "with", "a", "an", "on", "by", "or", "its", "their",
})


def read_file_content(file_path: str) -> str:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix in (".txt", ".md"):
        return path.read_text()
    elif suffix == ".json":
        data = json.loads(path.read_text())
        return json.dumps(data, indent=2) if isinstance(data, (dict, list)) else str(data)
    elif suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(path.read_text())
        return yaml.safe_dump(data, sort_keys=False) if isinstance(data, (dict, list)) else str(data)
    elif suffix == ".pdf":
        from PyPDF2 import PdfReader
        reader = PdfReader(file_path)
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    elif suffix == ".docx":
        from docx import Document
        doc = Document(file_path)
        return "\n".join(p.text for p in doc.paragraphs)
    elif suffix in (".html", ".htm"):
        from bs4 import BeautifulSoup
        html = path.read_text()
        return BeautifulSoup(html, "html.parser").get_text()
    else:
        return path.read_text()


def _csv_rows(path: Path) -> list[tuple[int, dict | None]]:
    """(line number, row) pairs; blank lines come back as None."""
    rows = []
    try:
        with path.open(newline="", encoding="utf-8-sig") as f:
            reader = csv.reader(f)
            header = next(reader, None)
            if not header or not any(h.strip() for h in header):
                raise ValidationError("file", "must contain a header and at least one data row")
            header = [h.strip() for h in header]
            for required in REQUIRED_FIELDS:
                if required not in header:
                    raise ValidationError("header", f"missing required header: {required}")
            for values in reader:
                line = reader.line_num
                if not any(v.strip() for v in values):
                    rows.append((line, None))
                    continue
                rows.append((line, dict(zip(header, values))))
    except UnicodeDecodeError as e:
        raise ValidationError("file", f"{path.name} is not UTF-8 text") from e
    except csv.Error as e:
        raise ValidationError("file", f"malformed CSV in {path.name}: {e}") from e
    return rows


def _structured_rows(path: Path) -> list[tuple[int, dict | None]]:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError("file", f"{path.name} is not UTF-8 text") from e
    if path.suffix.lower() == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError("file", f"invalid JSON at line {e.lineno}: {e.msg}") from e
    else:
        import yaml
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValidationError("file", f"invalid YAML in {path.name}") from e
    if isinstance(data, dict):
        data = data.get("questions")
    if not isinstance(data, list):
        raise ValidationError("file", "expected a list of questions or a 'questions' list")
    rows = []
    for i, item in enumerate(data, start=1):
        if not item:
            rows.append((i, None))
        elif not isinstance(item, dict):
            rows.append((i, {}))
        else:
            rows.append((i, item))
    return rows


def read_question_rows(file_path: str) -> list[tuple[int, dict | None]]:
    path = Path(file_path)
    if not path.exists():
        raise NotFoundError("file", file_path)
    if path.suffix.lower() in (".json", ".yaml", ".yml"):
        return _structured_rows(path)
    return _csv_rows(path)


def import_questions(db_path: str, file_path: str) -> dict:
    """Import questions from CSV, JSON or YAML.

    Each row goes through the same validation as create_question. Invalid
    rows are reported as ``Line N: reason`` and left out; blank rows are
    counted as skipped. Valid rows are written in a single transaction.
    """
    rows = read_question_rows(file_path)
    if not rows:
        raise ValidationError("file", "must contain a header and at least one data row")

    errors = []
    skipped = 0
    imported = 0
    with connect(db_path) as conn:
        for line, row in rows:
            if row is None:
                skipped += 1
                continue
            try:
                cleaned = validate_question_fields(row)
                resolve_references(conn, cleaned)
                if cleaned["id"] and conn.execute(
                    "SELECT 1 FROM questions WHERE id = ?", (cleaned["id"],)
                ).fetchone():
                    raise ValidationError("id", f"question {cleaned['id']} already exists")
            except ValidationError as e:
                errors.append(f"Line {line}: {e.reason}")
                continue
            except NotFoundError as e:
                errors.append(f"Line {line}: {e}")
                continue
            insert_question(conn, cleaned, source="import")
            imported += 1

    for error in errors:
        logger.warning("Import %s: %s", Path(file_path).name, error)
    logger.info("Imported %d questions from %s", imported, Path(file_path).name)
    return {
        "imported_count": imported,
        "skipped_count": skipped,
        "errors": errors,
        "message": (
            f"Successfully imported {imported} questions. "
            f"{skipped} rows skipped. {len(errors)} errors."
        ),
    }


def _words(text: str) -> set[str]:
    return {w for w in re.findall(r"[a-z]+", text.lower()) if len(w) > 2 and w not in STOPWORDS}


def categorize_content(db_path: str, text: str, certification_id: str = None) -> str | None:
    """Pick the concept whose name words appear most in the text. Returns concept id or None."""
    query = "SELECT c.id, c.name FROM concepts c JOIN domains d ON c.domain_id = d.id"
    params = ()
    if certification_id:
        query += " WHERE d.certification_id = ?"
        params = (certification_id,)
    query += " ORDER BY d.order_index, c.order_index"
    with connect(db_path) as conn:
        concepts = conn.execute(query, params).fetchall()

    text_words = _words(text)
    scores = {}
    for concept in concepts:
        scores[concept["id"]] = len(_words(concept["name"]) & text_words)
    if not scores:
        return None
    best = max(scores, key=scores.get)
    return best if scores[best] > 0 else None


def import_content(db_path: str, file_path: str, concept_id: str = None) -> dict:
    """Store a study file as a content item. Auto-categorizes if concept_id is not provided."""
    path = Path(file_path)
    if not path.exists():
        raise NotFoundError("file", file_path)
    try:
        content = read_file_content(file_path)
    except (OSError, ValueError) as e:
        logger.warning("Could not read %s: %s", path.name, e)
        raise ValidationError("file", f"could not read {path.name}: {e}") from e
    if not content.strip():
        raise ValidationError("file", f"{path.name} has no text content")

    if concept_id is None:
        concept_id = categorize_content(db_path, content)
        if concept_id is None:
            raise ValidationError("concept_id", f"could not match {path.name} to a concept")

    with connect(db_path) as conn:
        if conn.execute("SELECT 1 FROM concepts WHERE id = ?", (concept_id,)).fetchone() is None:
            raise NotFoundError("concept", concept_id)
        order = conn.execute(
            "SELECT COALESCE(MAX(order_index), 0) + 1 FROM content_items WHERE concept_id = ?",
            (concept_id,),
        ).fetchone()[0]
        conn.execute(
            """INSERT INTO content_items (concept_id, type, title, body, order_index, source, created_at)
            VALUES (?, 'imported', ?, ?, ?, 'import', ?)""",
            (concept_id, path.stem, content, order, datetime.now().isoformat()),
        )
    logger.info("Imported %s into concept %s", path.name, concept_id)
    return {"filename": path.name, "concept_id": concept_id, "length": len(content)}


def import_many(db_path: str, file_paths: list[str]) -> list[dict]:
    """Import several study files, collecting failures instead of stopping."""
    results = []
    for file_path in file_paths:
        try:
            results.append(import_content(db_path, file_path))
        except CertBloomError as e:
            logger.warning("Skipping %s: %s", file_path, e)
            results.append({"filename": Path(file_path).name, "error": str(e)})
    return results
