"""Readiness dashboard scoring and statistics."""
from certbloom.config import MASTERED_THRESHOLD, SESSION_MASTERY_PCT, WEAK_THRESHOLD
from certbloom.db import connect
from certbloom.scoring import get_accuracy, round_half_up


def get_readiness_label(score: float) -> str:
    if score >= 80:
        return "READY"
    elif score >= 65:
        return "LIKELY"
    elif score >= 50:
        return "NEEDS WORK"
    return "NOT READY"


def get_readiness_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 65:
        return "yellow"
    elif score >= 50:
        return "dark_orange"
    return "red"


def get_concept_progress(db_path: str, user_id: str, certification_id: str) -> list[dict]:
    """Every concept of the certification with the user's mastery (0.0 when unpracticed)."""
    with connect(db_path) as conn:
        rows = conn.execute(
            """SELECT c.id as concept_id, c.name as concept_name,
                d.id as domain_id, d.name as domain_name, d.weight_percentage,
                COALESCE(p.mastery, 0) as mastery,
                COALESCE(p.attempt_count, 0) as attempt_count,
                COALESCE(p.stage, 'dormant') as stage,
                COALESCE(p.needs_review, 0) as needs_review,
                p.last_practiced
            FROM concepts c
            JOIN domains d ON c.domain_id = d.id
            LEFT JOIN progress p ON p.topic_key = c.id AND p.user_id = ?
            WHERE d.certification_id = ?
            ORDER BY d.order_index, c.order_index""",
            (user_id, certification_id),
        ).fetchall()
    return [
        {
            "concept_id": r["concept_id"],
            "concept_name": r["concept_name"],
            "domain_id": r["domain_id"],
            "domain_name": r["domain_name"],
            "weight_percentage": r["weight_percentage"],
            "mastery": r["mastery"],
            "mastery_pct": round_half_up(r["mastery"] * 100),
            "attempt_count": r["attempt_count"],
            "stage": r["stage"],
            "needs_review": bool(r["needs_review"]),
            "is_mastered": r["mastery"] >= MASTERED_THRESHOLD,
            "last_practiced": r["last_practiced"],
        }
        for r in rows
    ]


def get_domain_scores(db_path: str, user_id: str, certification_id: str) -> list[dict]:
    concepts = get_concept_progress(db_path, user_id, certification_id)
    domains: dict[str, dict] = {}
    for c in concepts:
        d = domains.setdefault(c["domain_id"], {
            "domain_id": c["domain_id"],
            "name": c["domain_name"],
            "weight_percentage": c["weight_percentage"],
            "masteries": [],
        })
        d["masteries"].append(c["mastery"])
    results = []
    for d in domains.values():
        masteries = d.pop("masteries")
        score = sum(masteries) / len(masteries) * 100
        d["score"] = round(score, 1)
        d["label"] = get_readiness_label(score)
        results.append(d)
    return results


def calc_readiness_score(db_path: str, user_id: str, certification_id: str) -> float:
    """Domain scores weighted by exam weight; unweighted when no weights are set."""
    domains = get_domain_scores(db_path, user_id, certification_id)
    if not domains:
        return 0.0
    total_weight = sum(d["weight_percentage"] for d in domains)
    if total_weight <= 0:
        return round(sum(d["score"] for d in domains) / len(domains), 1)
    score = sum(d["score"] * d["weight_percentage"] for d in domains) / total_weight
    return round(score, 1)


def get_recommendations(db_path: str, user_id: str, certification_id: str) -> dict:
    concepts = [
        c for c in get_concept_progress(db_path, user_id, certification_id)
        if c["attempt_count"] > 0
    ]
    weak = sorted((c for c in concepts if c["mastery"] < WEAK_THRESHOLD), key=lambda c: c["mastery"])
    strong = sorted(
        (c for c in concepts if c["mastery"] >= MASTERED_THRESHOLD),
        key=lambda c: c["mastery"], reverse=True,
    )
    return {"weak_areas": weak, "strong_areas": strong}


def get_study_stats(db_path: str, user_id: str) -> dict:
    with connect(db_path) as conn:
        row = conn.execute(
            """SELECT COUNT(*) as sessions,
                SUM(CASE WHEN score_percentage >= ? THEN 1 ELSE 0 END) as mastered,
                AVG(score_percentage) as avg_score
            FROM session_results WHERE user_id = ?""",
            (SESSION_MASTERY_PCT, user_id),
        ).fetchone()
        attempts = conn.execute(
            "SELECT COUNT(*) FROM attempts WHERE user_id = ?", (user_id,)
        ).fetchone()[0]
    return {
        "sessions_completed": row["sessions"],
        "sessions_mastered": row["mastered"] or 0,
        "avg_session_score": round(row["avg_score"], 1) if row["avg_score"] is not None else 0.0,
        "attempts_recorded": attempts,
        "accuracy": get_accuracy(db_path, user_id),
    }
