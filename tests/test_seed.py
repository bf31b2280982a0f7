from certbloom.db import get_connection, init_db
from certbloom.mastery import classify_richness
from certbloom.seed import is_seeded, load_content, seed_all, seed_hierarchy, seed_questions
from certbloom.store import count_content_items


def test_seed_hierarchy(tmp_db):
    init_db(tmp_db)
    seed_hierarchy(tmp_db, load_content())
    conn = get_connection(tmp_db)
    certs = conn.execute("SELECT * FROM certifications ORDER BY id").fetchall()
    assert [c["id"] for c in certs] == ["texes-901", "texes-902"]
    domains = conn.execute(
        "SELECT * FROM domains WHERE certification_id = 'texes-902'"
    ).fetchall()
    assert len(domains) == 4
    assert sum(d["weight_percentage"] for d in domains) == 100
    conn.close()


def test_is_seeded(tmp_db):
    init_db(tmp_db)
    assert not is_seeded(tmp_db)
    seed_hierarchy(tmp_db, load_content())
    assert is_seeded(tmp_db)


def test_seed_questions_take_domain_from_concept(tmp_db):
    init_db(tmp_db)
    data = load_content()
    seed_hierarchy(tmp_db, data)
    seed_questions(tmp_db, data)
    conn = get_connection(tmp_db)
    row = conn.execute("SELECT domain_id FROM questions WHERE id = 'q902-geo-1'").fetchone()
    missing = conn.execute("SELECT COUNT(*) FROM questions WHERE domain_id IS NULL").fetchone()[0]
    conn.close()
    assert row["domain_id"] == "m902-geometry"
    assert missing == 0


def test_seed_covers_every_richness_tier(seeded_db):
    tiers = {
        classify_richness(count_content_items(seeded_db, concept))
        for concept in ("place-value", "fractions-decimals", "algebraic-reasoning")
    }
    assert tiers == {"rich", "medium", "light"}


def test_seed_covers_every_difficulty_tier(seeded_db):
    conn = get_connection(seeded_db)
    tiers = {r[0] for r in conn.execute("SELECT DISTINCT difficulty_level FROM questions")}
    conn.close()
    assert tiers == {"foundation", "application", "advanced"}


def test_seed_all_is_idempotent(tmp_db):
    init_db(tmp_db)
    seed_all(tmp_db)
    seed_all(tmp_db)
    conn = get_connection(tmp_db)
    questions = conn.execute("SELECT COUNT(*) FROM questions").fetchone()[0]
    items = conn.execute("SELECT COUNT(*) FROM content_items").fetchone()[0]
    users = conn.execute("SELECT id FROM users").fetchall()
    conn.close()
    assert questions == 26
    assert items == 21
    assert [u["id"] for u in users] == ["demo-user"]
