"""
PMS Kalender API - Calendar Endpoints
=====================================
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user
from config import DEFAULT_STORE_ID
from occupancy import visible_dates
from services import CalendarService
from schemas import CalendarGridDTO, UserDTO

router = APIRouter()


@router.get(
    "/window",
    response_model=List[date],
    summary="Visible Dates",
    description="The 14 visible dates: 3 days before the selected date through 10 days after."
)
def get_window(target_date: Optional[date] = Query(default=None, alias="date", description="Selected date (defaults to today)")):
    return visible_dates(target_date or date.today())


@router.get(
    "/grid",
    response_model=CalendarGridDTO,
    summary="Calendar Grid",
    description="Rooms × visible dates with booking cards (START, with colspan) and free cells."
)
def get_grid(
    store_id: str = Query(default=DEFAULT_STORE_ID),
    target_date: Optional[date] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    user: Optional[UserDTO] = Depends(get_current_user),
):
    return CalendarService.get_grid(db, store_id, target_date or date.today(), user)
