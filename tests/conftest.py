import pytest
from fastapi.testclient import TestClient

from database import Database, DatabaseConfig, create_schema, get_database
from main import app


@pytest.fixture
def db(tmp_path):
    """A real Database on a throwaway SQLite file, with the review table created."""
    database = Database.from_config(
        DatabaseConfig(url=f"sqlite:///{tmp_path / 'reviews.db'}", connection_limit=5)
    )
    create_schema(database)
    yield database
    database.dispose()


@pytest.fixture
def client(db):
    app.dependency_overrides[get_database] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def sample_review():
    """A valid create payload."""
    return {
        "serial_no": 101,
        "review": "  Packaging was intact and delivery on time  ",
        "status": "PASS",
        "mobile_no": "9876543210",
        "email": "Buyer@Example.COM",
    }


def row_count(database: Database) -> int:
    return database.query("SELECT COUNT(*) AS n FROM review")[0]["n"]
