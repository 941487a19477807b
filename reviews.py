"""
Review service: listing and creating reviews on top of the Database gateway.
"""

import logging
from typing import List

from database import Database, DuplicateKeyError, StoreError
from schemas import Review, ReviewCreateRequest, ReviewResponse

logger = logging.getLogger(__name__)


class ReviewServiceError(Exception):
    """Base exception for review service errors."""


class DuplicateSerialError(ReviewServiceError):
    """A review with this serial_no already exists."""

    def __init__(self, serial_no: int):
        super().__init__(f"Review with serial_no {serial_no} already exists")
        self.serial_no = serial_no


class DatabaseError(ReviewServiceError):
    """The store failed while serving a request."""


class ReviewService:
    def __init__(self, db: Database):
        self.db = db

    def list_reviews(self) -> List[ReviewResponse]:
        """Return every review, newest first, without contact details."""
        try:
            rows = self.db.query(
                "SELECT serial_no, review, status FROM review "
                "ORDER BY createdAt DESC, id DESC"
            )
        except StoreError as e:
            logger.error(f"Database error in list_reviews: {e}")
            raise DatabaseError("Failed to fetch reviews from database") from e

        return [ReviewResponse(**row) for row in rows]

    def create_review(self, data: ReviewCreateRequest) -> Review:
        """
        Insert a review and return the stored row.

        The serial_no lookup only saves an insert in the common case. The
        unique constraint on the column is what settles concurrent creates,
        and its violation is reported the same way.

        Raises:
            DuplicateSerialError: serial_no is already taken
            DatabaseError: any other store failure
        """
        try:
            existing = self.db.query(
                "SELECT serial_no FROM review WHERE serial_no = :serial_no",
                {"serial_no": data.serial_no},
            )
            if existing:
                logger.info(f"Rejected duplicate serial_no {data.serial_no}")
                raise DuplicateSerialError(data.serial_no)

            insert_id = self.db.execute(
                "INSERT INTO review (serial_no, review, status, mobile_no, email) "
                "VALUES (:serial_no, :review, :status, :mobile_no, :email)",
                {
                    "serial_no": data.serial_no,
                    "review": data.review,
                    "status": data.status.value,
                    "mobile_no": data.mobile_no,
                    "email": data.email,
                },
            )

            created = self.db.query(
                "SELECT * FROM review WHERE id = :id",
                {"id": insert_id},
            )
        except DuplicateKeyError as e:
            logger.info(f"serial_no {data.serial_no} was inserted concurrently")
            raise DuplicateSerialError(data.serial_no) from e
        except StoreError as e:
            logger.error(f"Database error in create_review: {e}")
            raise DatabaseError("Failed to create review in database") from e

        if not created:
            logger.error(f"Review {insert_id} was inserted but could not be read back")
            raise DatabaseError("Failed to retrieve created review")

        return Review(**created[0])
