import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bookingapi.client import BookingAPIClient
from bookingapi.config import config
from bookingapi.errors import (
    APIError,
    CommentFormValidationError,
    EventCategoryNotFound,
    EventTypeOrCategoryNotFound,
    EventUnavailable,
    ForbiddenWithCurrentInsuranceSettings,
    InstitutionNotFound,
)
from bookingapi.logging_conf import configure_logging
from bookingapi.mappers import SchemaError
from bookingapi.routers.availability import router as availability_router
from bookingapi.routers.booking import router as booking_router
from bookingapi.routers.catalog import router as catalog_router
from bookingapi.routers.session import router as session_router

logger = logging.getLogger(__name__)

ERROR_STATUS = (
    (InstitutionNotFound, 404),
    (EventCategoryNotFound, 404),
    (EventTypeOrCategoryNotFound, 404),
    (ForbiddenWithCurrentInsuranceSettings, 403),
    (EventUnavailable, 409),
    (CommentFormValidationError, 422),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # keep a client installed before startup
    if getattr(app.state, "booking_client", None) is None:
        app.state.booking_client = BookingAPIClient()
    yield
    await app.state.booking_client.aclose()
    app.state.booking_client = None


app = FastAPI(
    title="Patient Booking API",
    description="Booking front end for the samedi Booking API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    for error_class, status_code in ERROR_STATUS:
        if isinstance(exc, error_class):
            break
    else:
        logger.error(f"Booking API error on {request.url.path}: {exc}")
        status_code = 502

    content = {"detail": str(exc) or type(exc).__name__}
    if isinstance(exc, CommentFormValidationError):
        content["invalid_fields"] = exc.errors
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(SchemaError)
async def schema_error_handler(request: Request, exc: SchemaError):
    logger.error(f"Malformed comment form on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": "Event type cannot be booked"})


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(catalog_router, prefix="/api", tags=["Catalog"])
app.include_router(availability_router, prefix="/api", tags=["Availability"])
app.include_router(booking_router, prefix="/api/bookings", tags=["Booking"])
app.include_router(session_router, prefix="/auth", tags=["Session"])
