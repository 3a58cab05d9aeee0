import logging

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from docreach.api import contact, doctors, emergency, verification
from docreach.config import settings
from docreach.core.errors import DependencyError, DomainError
from docreach.db.database import init_db

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Doctor verification, location-based matching and emergency contact dispatch",
    version="0.1.0",
    debug=settings.debug,
)


@app.on_event("startup")
def on_startup():
    """Create tables on startup."""
    init_db()


# Register routers
app.include_router(verification.router, prefix="/verification", tags=["Verification"])
app.include_router(doctors.router, prefix="/doctors", tags=["Doctors"])
app.include_router(emergency.router, prefix="/emergency", tags=["Emergency"])
app.include_router(contact.router, prefix="/contact", tags=["Contact"])


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Map domain errors to {error, message, details} with the error's HTTP status."""
    if isinstance(exc, DependencyError):
        # Internals of the failing collaborator stay in the log
        logger.error("%s %s failed: %s %s", request.method, request.url.path, exc.error_code, exc.message)
        return JSONResponse(
            status_code=exc.http_status,
            content={"error": exc.error_code, "message": "A required service is unavailable", "details": {}},
        )
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.error_code)
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.error_code, "message": exc.message, "details": exc.details},
    )


@app.exception_handler(SQLAlchemyError)
async def persistence_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Persistence failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=DependencyError.http_status,
        content={"error": "PERSISTENCE_FAILURE", "message": "A required service is unavailable", "details": {}},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Ensure all errors return JSON."""
    if isinstance(exc, HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "Internal server error",
            "details": {},
        },
    )
