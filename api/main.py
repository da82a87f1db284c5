"""
PMS Kalender API - Main Application
===================================

HYBRID MONOLITH ARCHITECTURE:
- FastAPI layer in /api/ folder
- Imports services from root services.py (Single Source of Truth)
- Imports schemas from root schemas.py
- Streamlit app (app.py) shares the same services

Run with: python -m uvicorn api.main:app --reload --port 8000
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.v1.endpoints import auth, rooms, calendar, bookings, deposits, preferences
from config import CORS_ORIGINS, DATABASE_URL
from errors import (
    PMSError, NotAuthenticated, PermissionDenied, NotFound, ValidationError, BackendError,
)
from logging_config import get_logger

logger = get_logger(__name__)

# ==========================================
# APP CONFIGURATION
# ==========================================

app = FastAPI(
    title="PMS Kalender API",
    version="1.0.0",
    description="""
## PMS Kalender - Occupancy Calendar API

Back office for short-stay room rentals.

### Endpoints
- **Rooms**: Rooms, daily housekeeping status and room deposits
- **Calendar**: Visible 14-day window and placement grid
- **Bookings**: Create, edit, search and status transitions (deposit aware)
- **Deposits**: Active deposits, returns
- **Preferences**: Display settings of the dashboard

Mutating requests identify the user with the `X-User-Id` header.
""",
    docs_url="/docs",
    redoc_url="/redoc",
)


# ==========================================
# MIDDLEWARE
# ==========================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==========================================
# ERROR HANDLERS
# ==========================================

ERROR_STATUS = [
    (NotAuthenticated, 401),
    (PermissionDenied, 403),
    (NotFound, 404),
    (ValidationError, 422),
    (BackendError, 500),
]


@app.exception_handler(PMSError)
def handle_pms_error(request: Request, exc: PMSError):
    code = next((c for cls, c in ERROR_STATUS if isinstance(exc, cls)), 400)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=code, content={"detail": str(exc), "error": type(exc).__name__})


# ==========================================
# ROUTERS
# ==========================================

app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(rooms.router, prefix="/api/v1/rooms", tags=["Rooms"])
app.include_router(calendar.router, prefix="/api/v1/calendar", tags=["Calendar"])
app.include_router(bookings.router, prefix="/api/v1/bookings", tags=["Bookings"])
app.include_router(deposits.router, prefix="/api/v1/deposits", tags=["Deposits"])
app.include_router(preferences.router, prefix="/api/v1/preferences", tags=["Preferences"])


# ==========================================
# HEALTH ENDPOINTS
# ==========================================

@app.get("/", tags=["Health"])
def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "api": "PMS Kalender API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"])
def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "database": DATABASE_URL.split(":", 1)[0],
        "cors_origins": CORS_ORIGINS,
    }
