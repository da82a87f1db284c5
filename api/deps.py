"""
PMS Kalender API - Dependency Injection
=======================================

Provides the database session and current-user dependencies for FastAPI
endpoints. Services live in the root services.py; the @with_db decorator
detects the injected session and uses it instead of creating its own.
"""

from typing import Generator, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from database import SessionLocal
from schemas import UserDTO
from services import AuthService


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI.

    Usage:
        @router.post("/")
        def create_item(db: Session = Depends(get_db)):
            return SomeService.some_method(db, ...)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        SessionLocal.remove()


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> Optional[UserDTO]:
    """
    Resolves the X-User-Id header to a user.

    Returns None for anonymous requests; services decide whether the
    operation needs a user (NotAuthenticated -> 401).
    """
    if not x_user_id:
        return None
    return AuthService.get_user(db, x_user_id)
