"""Data classes for the content hierarchy, attempts and progress.

Rows coming out of the store are turned into these records through the
``from_row`` constructors, which reject rows with missing or invalid fields
instead of passing them along.
"""
import json
from dataclasses import dataclass, field
from typing import Optional

from certbloom.config import (
    COGNITIVE_LEVELS, DIFFICULTY_TIERS, OPTION_KEYS, QUESTION_TYPES,
    SESSION_MASTERY_PCT, STAGES,
)
from certbloom.errors import MalformedRecordError


def _require(row, keys, kind: str) -> None:
    available = row.keys()
    missing = [k for k in keys if k not in available or row[k] is None]
    if missing:
        raise MalformedRecordError(f"{kind} row missing fields: {', '.join(missing)}")


@dataclass
class Concept:
    id: str
    domain_id: str
    name: str
    description: str = ""
    difficulty_level: int = 1
    order_index: int = 0


@dataclass
class ContentItem:
    id: int
    concept_id: str
    type: str
    title: str
    body: str = ""
    order_index: int = 0
    source: str = "seeded"

    @classmethod
    def from_row(cls, row) -> "ContentItem":
        _require(row, ("id", "concept_id", "type", "title"), "content item")
        return cls(
            id=row["id"],
            concept_id=row["concept_id"],
            type=row["type"],
            title=row["title"],
            body=row["body"] or "",
            order_index=row["order_index"] or 0,
            source=row["source"] or "seeded",
        )


@dataclass
class Question:
    id: str
    certification_id: str
    question_text: str
    question_type: str
    difficulty_level: str
    correct_answer: str
    domain_id: Optional[str] = None
    concept_id: Optional[str] = None
    cognitive_level: str = "comprehension"
    options: list[str] = field(default_factory=list)
    explanation: str = ""
    source: str = "seeded"

    @property
    def topic_key(self) -> Optional[str]:
        return self.concept_id

    @property
    def tier_rank(self) -> int:
        return DIFFICULTY_TIERS.index(self.difficulty_level)

    @classmethod
    def from_row(cls, row) -> "Question":
        _require(row, ("id", "certification_id", "question_text", "question_type",
                       "difficulty_level", "correct_answer"), "question")
        if row["difficulty_level"] not in DIFFICULTY_TIERS:
            raise MalformedRecordError(
                f"question {row['id']}: unknown difficulty tier {row['difficulty_level']!r}"
            )
        if row["question_type"] not in QUESTION_TYPES:
            raise MalformedRecordError(
                f"question {row['id']}: unknown question type {row['question_type']!r}"
            )
        if not str(row["correct_answer"]).strip():
            raise MalformedRecordError(f"question {row['id']}: empty answer key")
        cognitive = row["cognitive_level"] if "cognitive_level" in row.keys() else None
        if cognitive and cognitive not in COGNITIVE_LEVELS:
            raise MalformedRecordError(
                f"question {row['id']}: unknown cognitive level {cognitive!r}"
            )
        keys = row.keys()
        options = [row[k] for k in OPTION_KEYS if k in keys and row[k]]
        return cls(
            id=row["id"],
            certification_id=row["certification_id"],
            question_text=row["question_text"],
            question_type=row["question_type"],
            difficulty_level=row["difficulty_level"],
            correct_answer=row["correct_answer"],
            domain_id=row["domain_id"] if "domain_id" in keys else None,
            concept_id=row["concept_id"] if "concept_id" in keys else None,
            cognitive_level=cognitive or "comprehension",
            options=options,
            explanation=(row["explanation"] if "explanation" in keys else None) or "",
            source=(row["source"] if "source" in keys else None) or "seeded",
        )


@dataclass
class Attempt:
    id: int
    user_id: str
    question_id: str
    user_answer: str
    is_correct: bool
    attempt_number: int
    attempted_at: str
    time_spent_seconds: int = 0
    confidence_level: int = 3
    hint_used: bool = False
    session_id: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Attempt":
        _require(row, ("id", "user_id", "question_id", "user_answer", "is_correct",
                       "attempt_number", "attempted_at"), "attempt")
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            question_id=row["question_id"],
            user_answer=row["user_answer"],
            is_correct=bool(row["is_correct"]),
            attempt_number=row["attempt_number"],
            attempted_at=row["attempted_at"],
            time_spent_seconds=row["time_spent_seconds"] or 0,
            confidence_level=row["confidence_level"] or 3,
            hint_used=bool(row["hint_used"]),
            session_id=row["session_id"],
        )


@dataclass
class ProgressRecord:
    user_id: str
    topic_key: str
    certification_id: str
    mastery: float = 0.0
    attempt_count: int = 0
    last_practiced: Optional[str] = None
    needs_review: bool = False
    stage: str = "dormant"

    @classmethod
    def from_row(cls, row) -> "ProgressRecord":
        _require(row, ("user_id", "topic_key", "certification_id", "mastery",
                       "attempt_count", "stage"), "progress")
        mastery = float(row["mastery"])
        if not 0.0 <= mastery <= 1.0:
            raise MalformedRecordError(
                f"progress {row['user_id']}/{row['topic_key']}: mastery {mastery} out of range"
            )
        if row["stage"] not in STAGES:
            raise MalformedRecordError(
                f"progress {row['user_id']}/{row['topic_key']}: unknown stage {row['stage']!r}"
            )
        return cls(
            user_id=row["user_id"],
            topic_key=row["topic_key"],
            certification_id=row["certification_id"],
            mastery=mastery,
            attempt_count=row["attempt_count"],
            last_practiced=row["last_practiced"],
            needs_review=bool(row["needs_review"]),
            stage=row["stage"],
        )


@dataclass
class SessionResult:
    id: str
    user_id: str
    question_ids: list[str]
    user_answers: list[str]
    correct_answers: int
    score_percentage: int
    completed_at: str
    concept_id: Optional[str] = None
    mood: Optional[str] = None

    def __post_init__(self):
        if len(self.question_ids) != len(self.user_answers):
            raise MalformedRecordError(
                f"session {self.id}: {len(self.question_ids)} questions but "
                f"{len(self.user_answers)} answers"
            )

    @property
    def total_questions(self) -> int:
        return len(self.question_ids)

    @property
    def mastery_achieved(self) -> bool:
        return self.score_percentage >= SESSION_MASTERY_PCT

    def to_dict(self) -> dict:
        return {
            "totalQuestions": self.total_questions,
            "correctAnswers": self.correct_answers,
            "scorePercentage": self.score_percentage,
            "masteryAchieved": self.mastery_achieved,
            "sessionId": self.id,
        }

    @classmethod
    def from_row(cls, row) -> "SessionResult":
        _require(row, ("id", "user_id", "question_ids", "user_answers",
                       "correct_answers", "score_percentage", "completed_at"), "session")
        try:
            question_ids = json.loads(row["question_ids"])
            user_answers = json.loads(row["user_answers"])
        except json.JSONDecodeError as e:
            raise MalformedRecordError(f"session {row['id']}: bad answer list: {e}") from e
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            question_ids=question_ids,
            user_answers=user_answers,
            correct_answers=row["correct_answers"],
            score_percentage=row["score_percentage"],
            completed_at=row["completed_at"],
            concept_id=row["concept_id"],
            mood=row["mood"],
        )
