import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from database import Database, close_database, get_database
from responses import error_response, success_response
from reviews import DatabaseError, DuplicateSerialError, ReviewService
from validation import format_issues, parse_and_validate, validate_create_request

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = LOG_LEVEL):
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    yield
    close_database()


app = FastAPI(title="Reviews API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(str(exc.detail), exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return error_response("Internal server error", 500)


def get_review_service(db: Database = Depends(get_database)) -> ReviewService:
    return ReviewService(db)


@app.get("/")
def root():
    return success_response({"status": "ok", "message": "Reviews API running"})


@app.get("/test")
def database_status(db: Database = Depends(get_database)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
    }
    if db.ping():
        response["database"] = "✅ Connected"
    return success_response(response)


@app.get("/reviews")
def list_reviews(service: ReviewService = Depends(get_review_service)):
    """List every review: serial_no, review and status only."""
    try:
        reviews = service.list_reviews()
    except DatabaseError as e:
        return error_response(str(e), 500)
    except Exception:
        logger.exception("Error fetching reviews")
        return error_response("An error occurred while fetching reviews", 500)
    return success_response(reviews)


@app.post("/reviews", status_code=201)
async def add_review(request: Request, service: ReviewService = Depends(get_review_service)):
    """Create a review. The response carries the full stored row."""
    try:
        body = await request.json()
    except (ValueError, RecursionError):
        return error_response("Invalid JSON in request body", 400)

    try:
        data = parse_and_validate(body)
        if data is None:
            issues = validate_create_request(body)
            return error_response(f"Validation failed: {format_issues(issues)}", 400)

        # Store calls are blocking, keep them off the event loop
        review = await run_in_threadpool(service.create_review, data)
    except DuplicateSerialError as e:
        return error_response(str(e), 409)
    except DatabaseError as e:
        return error_response(str(e), 500)
    except Exception:
        logger.exception("Error creating review")
        return error_response("An error occurred while creating the review", 500)

    return success_response(
        {"message": "Review created successfully", "review": review},
        201,
    )


if __name__ == "__main__":
    import uvicorn
    setup_logging()
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
