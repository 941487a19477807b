"""
Unit tests for ReviewService.

Happy paths run against a SQLite file; failure paths use a mocked gateway.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from unittest.mock import Mock

import pytest

from conftest import row_count
from database import Database, DuplicateKeyError, StoreError
from reviews import DatabaseError, DuplicateSerialError, ReviewService
from schemas import Review, ReviewCreateRequest, ReviewResponse, ReviewStatus


def make_request(serial_no=1, **overrides):
    fields = {
        "serial_no": serial_no,
        "review": "Solid build",
        "status": ReviewStatus.PASS,
        "mobile_no": "9876543210",
        "email": "buyer@example.com",
    }
    fields.update(overrides)
    return ReviewCreateRequest(**fields)


@pytest.fixture
def service(db):
    return ReviewService(db)


@pytest.fixture
def mock_db():
    return Mock(spec=Database)


def test_create_returns_full_row(service, db):
    created = service.create_review(make_request(serial_no=42))

    assert isinstance(created, Review)
    assert created.id > 0
    assert created.serial_no == 42
    assert created.status is ReviewStatus.PASS
    assert created.mobile_no == "9876543210"
    assert created.email == "buyer@example.com"
    assert isinstance(created.createdAt, datetime)
    assert row_count(db) == 1


def test_list_projects_public_fields(service):
    service.create_review(make_request(serial_no=1, review="first"))

    reviews = service.list_reviews()

    assert reviews == [ReviewResponse(serial_no=1, review="first", status=ReviewStatus.PASS)]
    assert set(reviews[0].model_dump()) == {"serial_no", "review", "status"}


def test_list_is_newest_first(service):
    for serial_no in (10, 20, 30):
        service.create_review(make_request(serial_no=serial_no))

    assert [r.serial_no for r in service.list_reviews()] == [30, 20, 10]


def test_list_empty(service):
    assert service.list_reviews() == []


def test_duplicate_serial_is_rejected_before_insert(service, db):
    service.create_review(make_request(serial_no=7))

    with pytest.raises(DuplicateSerialError) as excinfo:
        service.create_review(make_request(serial_no=7, review="again"))

    assert excinfo.value.serial_no == 7
    assert str(excinfo.value) == "Review with serial_no 7 already exists"
    assert row_count(db) == 1


def test_duplicate_pre_check_skips_insert(mock_db):
    mock_db.query.return_value = [{"serial_no": 7}]

    with pytest.raises(DuplicateSerialError):
        ReviewService(mock_db).create_review(make_request(serial_no=7))

    mock_db.execute.assert_not_called()


def test_insert_race_maps_to_duplicate(mock_db):
    # Pre-check sees nothing, then the constraint fires
    mock_db.query.return_value = []
    mock_db.execute.side_effect = DuplicateKeyError("Duplicate entry '7'")

    with pytest.raises(DuplicateSerialError):
        ReviewService(mock_db).create_review(make_request(serial_no=7))


def test_missing_row_after_insert_is_a_database_error(mock_db):
    mock_db.query.side_effect = [[], []]
    mock_db.execute.return_value = 99

    with pytest.raises(DatabaseError, match="Failed to retrieve created review"):
        ReviewService(mock_db).create_review(make_request())


def test_store_failure_on_create_is_a_database_error(mock_db):
    mock_db.query.return_value = []
    mock_db.execute.side_effect = StoreError("connection lost")

    with pytest.raises(DatabaseError, match="Failed to create review in database") as excinfo:
        ReviewService(mock_db).create_review(make_request())
    assert isinstance(excinfo.value.__cause__, StoreError)


def test_store_failure_on_list_is_a_database_error(mock_db):
    mock_db.query.side_effect = StoreError("connection refused")

    with pytest.raises(DatabaseError, match="Failed to fetch reviews from database"):
        ReviewService(mock_db).list_reviews()
    assert mock_db.query.call_count == 1


def test_concurrent_creates_with_same_serial(service, db):
    barrier = threading.Barrier(2)

    def create():
        barrier.wait()
        try:
            return service.create_review(make_request(serial_no=500))
        except DuplicateSerialError as e:
            return e

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(lambda _: create(), range(2)))

    assert sum(isinstance(r, Review) for r in results) == 1
    assert sum(isinstance(r, DuplicateSerialError) for r in results) == 1
    assert row_count(db) == 1


def test_concurrent_creates_when_pre_check_misses(db):
    """Both requests pass the lookup; the unique constraint decides."""

    class SlowLookup(Database):
        def query(self, sql, params=None):
            rows = super().query(sql, params)
            if sql.startswith("SELECT serial_no FROM review WHERE"):
                time.sleep(0.2)
                return []
            return rows

    slow_service = ReviewService(SlowLookup(db.engine))
    barrier = threading.Barrier(2)

    def create():
        barrier.wait()
        try:
            return slow_service.create_review(make_request(serial_no=600))
        except DuplicateSerialError as e:
            return e

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(lambda _: create(), range(2)))

    assert sum(isinstance(r, Review) for r in results) == 1
    assert sum(isinstance(r, DuplicateSerialError) for r in results) == 1
    assert row_count(db) == 1
