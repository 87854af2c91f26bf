"""
FastAPI application factory.

* Registers routes for bookings, riders and admin.
* Converts workflow errors into JSON responses with their status codes.
* Closes the Redis pool on shutdown.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, bookings, riders
from src.config import settings
from src.domain.catalog import STAGE_CATALOG
from src.domain.errors import BookingWorkflowError
from src.infrastructure.events import close_redis

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Stage catalog loaded (%d entries)", len(STAGE_CATALOG))
    yield
    await close_redis()


async def _workflow_error_handler(
    request: Request, exc: BookingWorkflowError
) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Helmet Service Booking Workflow API",
        description=(
            "Moves helmet washing and repair bookings through their stage "
            "sequence, assigns pickup and delivery riders, and manages the "
            "global rider allotment policy."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(BookingWorkflowError, _workflow_error_handler)

    # Routers
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(riders.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
