"""
PMS Kalender API - Room Endpoints
=================================

Rooms, daily housekeeping status (Kotor / Aktif) and the active deposit of a room.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user
from config import DEFAULT_STORE_ID
from errors import NotFound
from services import RoomService, RoomStatusService, DepositService
from schemas import RoomDTO, RoomCreate, DailyStatusUpdate, DepositDTO, UserDTO

router = APIRouter()


@router.get(
    "",
    response_model=List[RoomDTO],
    summary="List Rooms",
    description="All rooms of a store ordered by name, blocked ones included."
)
def list_rooms(store_id: str = Query(default=DEFAULT_STORE_ID), db: Session = Depends(get_db)):
    return RoomService.list_rooms(db, store_id)


@router.post(
    "",
    response_model=RoomDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Create Room",
)
def create_room(data: RoomCreate, db: Session = Depends(get_db)):
    return RoomService.create_room(db, data)


@router.get(
    "/{room_id}/deposit",
    response_model=Optional[DepositDTO],
    summary="Active Deposit of a Room",
    description="Most recent active deposit of the room, or null."
)
def get_room_deposit(room_id: str, db: Session = Depends(get_db)):
    if RoomService.get_room(db, room_id) is None:
        raise NotFound(f"Room {room_id} not found")
    return DepositService.get_active_deposit(db, room_id)


@router.put(
    "/{room_id}/daily-status",
    summary="Set Daily Status",
    description="Marks a room Kotor (dirty) or Aktif (ready) for one date. Last writer wins."
)
def set_daily_status(
    room_id: str,
    data: DailyStatusUpdate,
    db: Session = Depends(get_db),
    user: Optional[UserDTO] = Depends(get_current_user),
):
    RoomStatusService.set_daily_status(db, room_id, data.date, data.status, user)
    return {"room_id": room_id, "date": data.date.isoformat(), "status": data.status}
