"""Adaptive question selection biased toward a learner's weak concepts.

Ranking looks at the learner's progress records for a subject area and splits
concepts into weak, mid and strong bands (plus concepts never practiced).
Session slots are filled from those bands by quota, round-robin across the
concepts in each band. Within a concept, questions the learner has never
attempted come first, then the least recently attempted ones.

When ranking is unavailable or yields nothing, a plain unweighted pull is
returned instead and flagged with ``is_adaptive=False``.
"""
import logging
import warnings
from collections import deque
from dataclasses import dataclass

from certbloom.config import WEAK_FOCUS_QUOTAS, SessionMix
from certbloom.errors import DegradedSelectionWarning, StoreUnavailableError, ValidationError
from certbloom.mastery import mastery_band
from certbloom.models import Question
from certbloom.scoring import round_half_up
from certbloom.store import (
    get_concepts_for_certification, get_last_attempts, get_progress_records,
    get_questions_for_subject, get_standard_questions, require_certification, require_user,
)

logger = logging.getLogger(__name__)

BAND_PRIORITY = {"weak": 3, "mid": 2, "new": 2, "application": 2, "strong": 1}
BAND_REASONS = {
    "weak": "Strengthen weak area: {}",
    "mid": "Reinforce developing concept: {}",
    "strong": "Keep {} fresh",
    "new": "Explore new concept: {}",
    "application": "Apply your knowledge: {}",
}
STANDARD_REASON = "Standard practice question"
STANDARD_PRIORITY = 2


@dataclass
class SelectedQuestion:
    question_id: str
    reason: str
    priority_score: int
    concept_id: str | None = None
    band: str = "standard"

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "reason": self.reason,
            "priorityScore": self.priority_score,
        }


@dataclass
class Selection:
    questions: list[SelectedQuestion]
    is_adaptive: bool
    message: str
    reason_code: str = "adaptive"

    @property
    def question_ids(self) -> list[str]:
        return [q.question_id for q in self.questions]

    def to_dict(self) -> dict:
        return {
            "questions": [q.to_dict() for q in self.questions],
            "isAdaptive": self.is_adaptive,
            "message": self.message,
            "reasonCode": self.reason_code,
        }


class _Picker:
    """Hands out questions without repeats across bands."""

    def __init__(self, questions: list[Question], last_attempts: dict[str, str], names: dict[str, str]):
        self.names = names
        self.last_attempts = last_attempts
        self.used: set[str] = set()
        self.queues: dict[str, deque] = {}
        by_topic: dict[str, list[Question]] = {}
        for q in questions:
            if q.topic_key is not None:
                by_topic.setdefault(q.topic_key, []).append(q)
        for topic, items in by_topic.items():
            self.queues[topic] = deque(sorted(items, key=self._question_order))
        self.all_questions = questions

    def _question_order(self, q: Question):
        last = self.last_attempts.get(q.id)
        # never-attempted first, then oldest attempt first
        return (last is not None, last or "", q.tier_rank, q.id)

    def _make(self, q: Question, band: str) -> SelectedQuestion:
        self.used.add(q.id)
        name = self.names.get(q.topic_key, q.topic_key or "general practice")
        return SelectedQuestion(
            question_id=q.id,
            reason=BAND_REASONS[band].format(name),
            priority_score=BAND_PRIORITY[band],
            concept_id=q.topic_key,
            band=band,
        )

    def _next_from(self, topic: str) -> Question | None:
        queue = self.queues.get(topic)
        while queue:
            q = queue.popleft()
            if q.id not in self.used:
                return q
        return None

    def take(self, topics: list[tuple[str, str]], count: int) -> list[SelectedQuestion]:
        """Round-robin over (topic, band) pairs until count questions are taken."""
        picked = []
        active = list(topics)
        while active and len(picked) < count:
            still_active = []
            for topic, band in active:
                if len(picked) >= count:
                    break
                q = self._next_from(topic)
                if q is not None:
                    picked.append(self._make(q, band))
                    still_active.append((topic, band))
            active = still_active
        return picked

    def take_application(self, count: int, challenge: bool, topic_order: list[str]) -> list[SelectedQuestion]:
        """Application/advanced-tier questions, advanced first when a challenge is wanted."""
        preferred = ["advanced", "application"] if challenge else ["application", "advanced"]
        rank = {t: i for i, t in enumerate(topic_order)}
        candidates = [
            q for q in self.all_questions
            if q.difficulty_level in preferred and q.id not in self.used
        ]
        candidates.sort(key=lambda q: (
            preferred.index(q.difficulty_level),
            self.last_attempts.get(q.id) is not None,
            rank.get(q.topic_key, len(rank)),
            q.id,
        ))
        return [self._make(q, "application") for q in candidates[:count]]


def rank_candidates(
    db_path: str,
    user_id: str,
    subject_area: str,
    session_length: int,
    focus_weak_areas: bool = True,
    mix: SessionMix | None = None,
) -> list[SelectedQuestion]:
    """Rank the subject's questions for one learner; at most session_length results."""
    records = get_progress_records(db_path, user_id, subject_area)
    concepts = get_concepts_for_certification(db_path, subject_area)
    questions = get_questions_for_subject(db_path, subject_area)
    last_attempts = get_last_attempts(db_path, user_id, subject_area)
    if not questions:
        return []

    names = {c.id: c.name for c in concepts}
    concept_order = [c.id for c in concepts]
    picker = _Picker(questions, last_attempts, names)

    bands: dict[str, list[str]] = {"weak": [], "mid": [], "strong": [], "new": []}
    for topic in concept_order:
        record = records.get(topic)
        if record is None or record.attempt_count == 0:
            bands["new"].append(topic)
        else:
            bands[mastery_band(record.mastery)].append(topic)
    bands["weak"].sort(key=lambda t: records[t].mastery)
    bands["mid"].sort(key=lambda t: records[t].mastery)
    bands["strong"].sort(key=lambda t: records[t].last_practiced or "")
    practiced = bands["weak"] + bands["mid"] + bands["strong"]

    picked: list[SelectedQuestion] = []
    if focus_weak_areas:
        # weak quota covers the whole session; the mood mix splits what is left
        weak_n = round_half_up(session_length * WEAK_FOCUS_QUOTAS["weak"])
        picked.extend(picker.take([(t, "weak") for t in bands["weak"]], weak_n))
    rest = session_length - len(picked)

    if mix is None:
        new_slots = app_slots = 0
    else:
        new_slots = rest * mix.new_learning_pct // 100
        app_slots = rest * mix.application_pct // 100
    review_slots = rest - new_slots - app_slots

    if focus_weak_areas:
        share = WEAK_FOCUS_QUOTAS["mid"] / (WEAK_FOCUS_QUOTAS["mid"] + WEAK_FOCUS_QUOTAS["strong"])
        got = picker.take([(t, "mid") for t in bands["mid"]], round_half_up(review_slots * share))
        picked.extend(got)
        picked.extend(picker.take(
            [(t, "strong") for t in bands["strong"]], review_slots - len(got)
        ))
    else:
        order = sorted(practiced, key=lambda t: records[t].last_practiced or "")
        picked.extend(picker.take(
            [(t, mastery_band(records[t].mastery)) for t in order], review_slots
        ))

    if new_slots:
        picked.extend(picker.take([(t, "new") for t in bands["new"]], new_slots))
    if app_slots:
        picked.extend(picker.take_application(
            app_slots, mix.include_challenge, practiced + bands["new"]
        ))

    # fill whatever the quotas could not
    remaining = session_length - len(picked)
    if remaining > 0:
        fill_order = (
            [(t, "weak") for t in bands["weak"]]
            + [(t, "mid") for t in bands["mid"]]
            + [(t, "new") for t in bands["new"]]
            + [(t, "strong") for t in bands["strong"]]
        )
        picked.extend(picker.take(fill_order, remaining))
    return picked[:session_length]


def _validate(user_id: str, subject_area: str, session_length: int) -> None:
    if not user_id:
        raise ValidationError("userId", "is required")
    if not subject_area:
        raise ValidationError("subjectArea", "is required")
    if isinstance(session_length, bool) or not isinstance(session_length, int) or session_length <= 0:
        raise ValidationError("sessionLength", "must be a positive integer")


def select_questions(
    db_path: str,
    user_id: str,
    subject_area: str,
    session_length: int = 10,
    focus_weak_areas: bool = True,
    mix: SessionMix | None = None,
    ranker=rank_candidates,
) -> Selection:
    """Choose up to session_length questions for one learner.

    An empty result is returned with reason code ``no_questions`` rather than
    raised. StoreUnavailableError still propagates if the standard pull also
    fails.
    """
    _validate(user_id, subject_area, session_length)
    require_certification(db_path, subject_area)
    require_user(db_path, user_id)

    try:
        ranked = ranker(db_path, user_id, subject_area, session_length, focus_weak_areas, mix)
    except StoreUnavailableError as e:
        logger.warning("Adaptive ranking unavailable for %s/%s: %s", user_id, subject_area, e)
        warnings.warn(
            DegradedSelectionWarning(f"adaptive ranking unavailable: {e}"), stacklevel=2
        )
        ranked = []

    if ranked:
        ranked = ranked[:session_length]
        return Selection(
            questions=ranked,
            is_adaptive=True,
            message=f"Selected {len(ranked)} personalized questions based on your learning progress",
            reason_code="adaptive",
        )

    fallback = get_standard_questions(db_path, subject_area, session_length)
    if not fallback:
        return Selection(
            questions=[],
            is_adaptive=False,
            message="No questions are available for this subject area yet",
            reason_code="no_questions",
        )
    return Selection(
        questions=[
            SelectedQuestion(
                question_id=q.id,
                reason=STANDARD_REASON,
                priority_score=STANDARD_PRIORITY,
                concept_id=q.topic_key,
            )
            for q in fallback
        ],
        is_adaptive=False,
        message="Using standard question selection",
        reason_code="standard_fallback",
    )


def suggest_next_question(
    db_path: str, user_id: str, subject_area: str, was_correct: bool,
) -> SelectedQuestion | None:
    """One follow-up question; leans on weak areas after a wrong answer."""
    selection = select_questions(
        db_path, user_id, subject_area, session_length=1, focus_weak_areas=not was_correct,
    )
    return selection.questions[0] if selection.questions else None
