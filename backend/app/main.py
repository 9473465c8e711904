"""
CivicEye - FastAPI Application

Main entry point for the CivicEye grievance backend.

Lifecycle:
- Citizen reports a grievance → pending
- Admin works on it → in_progress
- Admin closes it → resolved (citizen notified, may leave feedback)
                  or rejected (citizen notified with the reason)
"""
from contextlib import asynccontextmanager
import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .routers import (
    auth_router,
    users_router,
    grievances_router,
    feedbacks_router,
    notifications_router,
    dashboard_router,
    admin_router,
)
from .database import init_db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="CivicEye",
    description="""
    CivicEye - Civic Grievance Tracking

    Citizens report local issues (garbage, streetlights, water, roads, noise),
    administrators triage them and everyone can see how they were resolved.

    ## Lifecycle
    - pending → in_progress → resolved | rejected
    - resolved and rejected are final
    - re-sending the current status is a no-op

    ## Side effects
    - Citizens are notified when their grievance is resolved or rejected
    - Feedback is accepted once per citizen, on resolved grievances only
    - Emergencies and same-category hotspots alert every admin
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(grievances_router)
app.include_router(feedbacks_router)
app.include_router(notifications_router)
app.include_router(dashboard_router)
app.include_router(admin_router)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Storage failures never leak driver details to the client."""
    logger.exception(f"Database error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "CivicEye",
        "version": "1.0.0",
        "description": "Civic Grievance Tracking",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m app.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
