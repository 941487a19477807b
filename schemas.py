"""
Review Schemas

Pydantic models for the `review` table and the shapes the API exchanges.
- Review -> full persisted row (returned once, on create)
- ReviewResponse -> public projection used by the list endpoint
- ReviewCreateRequest -> normalized input accepted by the service
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ReviewStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class ReviewCreateRequest(BaseModel):
    serial_no: int = Field(..., description="Caller supplied unique serial number")
    review: str = Field(..., min_length=1, description="Review text, trimmed")
    status: ReviewStatus
    mobile_no: str = Field(..., pattern=r"^[0-9]{10}$", description="10 digit mobile number")
    email: str = Field(..., description="Lower-cased contact email")


class ReviewResponse(BaseModel):
    """
    Public view of a review.
    mobile_no and email are never part of it.
    """
    serial_no: int
    review: str
    status: ReviewStatus


class Review(ReviewCreateRequest):
    """
    Stored review row
    Table name: "review"
    """
    id: int = Field(..., description="Store assigned surrogate key")
    createdAt: Optional[datetime] = Field(None, description="Insertion timestamp")


class ValidationIssue(BaseModel):
    field: str
    message: str
