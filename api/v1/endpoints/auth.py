"""
PMS Kalender API - Login
========================

There are no tokens: the client keeps the returned user id and sends it
back as the X-User-Id header on mutating requests.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user
from services import AuthService
from schemas import UserDTO

router = APIRouter()


class Credentials(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)


class SessionInfo(BaseModel):
    user: UserDTO
    header: str = "X-User-Id"


@router.post("/login", response_model=SessionInfo, summary="Login")
def login(credentials: Credentials, db: Session = Depends(get_db)):
    user = AuthService.authenticate(db, credentials.username.strip(), credentials.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Username atau password salah")
    return SessionInfo(user=user)


@router.get("/me", response_model=UserDTO, summary="Current User")
def me(user: Optional[UserDTO] = Depends(get_current_user)):
    if user is None:
        raise HTTPException(status_code=401, detail="Anda belum login")
    return user
