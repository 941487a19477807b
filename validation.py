"""
Validation helpers for review submissions.

Everything here is pure: input in, issues out. Issues are returned as data,
never raised, so the caller can report every bad field at once.
"""

import math
import re
from typing import Any, Dict, List, Optional

from schemas import ReviewCreateRequest, ReviewStatus, ValidationIssue

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MOBILE_RE = re.compile(r"^[0-9]{10}$")

# Bounds of the signed 32-bit INTEGER column
SERIAL_NO_MIN = -(2 ** 31)
SERIAL_NO_MAX = 2 ** 31 - 1


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def is_valid_mobile_number(mobile_no: str) -> bool:
    # fullmatch so a trailing newline does not slip past "$"
    return bool(MOBILE_RE.fullmatch(mobile_no))


def is_valid_status(status: Any) -> bool:
    return status in (ReviewStatus.PASS.value, ReviewStatus.FAIL.value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integral(value: Any) -> bool:
    if isinstance(value, int):
        return True
    return math.isfinite(value) and value.is_integer()


def _as_fields(data: Any) -> Dict[str, Any]:
    # A body that is not a JSON object has none of the required fields
    return data if isinstance(data, dict) else {}


def validate_create_request(data: Any) -> List[ValidationIssue]:
    """Check a decoded request body and return one issue per bad field.

    Every rule runs, so a body missing several fields lists all of them.
    An empty list means the body is valid.
    """
    fields = _as_fields(data)
    issues: List[ValidationIssue] = []

    def add(field: str, message: str) -> None:
        issues.append(ValidationIssue(field=field, message=message))

    serial_no = fields.get("serial_no")
    if serial_no is None:
        add("serial_no", "serial_no is required")
    elif not _is_number(serial_no):
        add("serial_no", "serial_no must be a number")
    elif not _is_integral(serial_no):
        add("serial_no", "serial_no must be an integer")
    elif not SERIAL_NO_MIN <= serial_no <= SERIAL_NO_MAX:
        add("serial_no", f"serial_no must be between {SERIAL_NO_MIN} and {SERIAL_NO_MAX}")

    review = fields.get("review")
    if not isinstance(review, str) or not review.strip():
        add("review", "review is required and must be a non-empty string")

    status = fields.get("status")
    if not status:
        add("status", "status is required")
    elif not is_valid_status(status):
        add("status", "status must be either PASS or FAIL")

    mobile_no = fields.get("mobile_no")
    if not isinstance(mobile_no, str) or not mobile_no:
        add("mobile_no", "mobile_no is required and must be a string")
    elif not is_valid_mobile_number(mobile_no):
        add("mobile_no", "mobile_no must be exactly 10 digits")

    email = fields.get("email")
    if not isinstance(email, str) or not email:
        add("email", "email is required and must be a string")
    elif not is_valid_email(email):
        add("email", "email must be a valid email format")

    return issues


def parse_and_validate(data: Any) -> Optional[ReviewCreateRequest]:
    """Return the normalized create request, or None if any rule fails.

    Normalization trims the review text and trims and lower-cases the email.
    Callers wanting the reasons should run validate_create_request.
    """
    if validate_create_request(data):
        return None

    return ReviewCreateRequest(
        serial_no=int(data["serial_no"]),
        review=data["review"].strip(),
        status=ReviewStatus(data["status"]),
        mobile_no=data["mobile_no"],
        email=data["email"].strip().lower(),
    )


def format_issues(issues: List[ValidationIssue]) -> str:
    return ", ".join(f"{issue.field}: {issue.message}" for issue in issues)
