import pytest

from certbloom.db import init_db
from certbloom.seed import seed_all


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_certbloom.db")
    return db_path


@pytest.fixture
def seeded_db(tmp_db):
    """Initialized database with the bundled TExES content and the demo learner."""
    init_db(tmp_db)
    seed_all(tmp_db)
    return tmp_db
