"""
PMS Kalender API - Deposit Endpoints
====================================
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user
from config import DEFAULT_STORE_ID
from services import DepositService
from schemas import DepositCreate, DepositDTO, UserDTO

router = APIRouter()


class RoomDepositCreate(DepositCreate):
    room_id: str = Field(..., min_length=1)


@router.get("", response_model=List[DepositDTO], summary="Active Deposits")
def list_active_deposits(store_id: str = Query(default=DEFAULT_STORE_ID), db: Session = Depends(get_db)):
    return DepositService.list_active(db, store_id)


@router.post(
    "",
    response_model=DepositDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Create Deposit",
    description="Registers a deposit for a room outside check-in. A room holds one active deposit."
)
def create_deposit(
    data: RoomDepositCreate,
    db: Session = Depends(get_db),
    user: Optional[UserDTO] = Depends(get_current_user),
):
    deposit = DepositCreate.model_validate(data.model_dump(exclude={"room_id"}))
    return DepositService.create_deposit(db, data.room_id, deposit, user)


@router.post("/{deposit_id}/return", response_model=DepositDTO, summary="Return Deposit")
def return_deposit(
    deposit_id: str,
    db: Session = Depends(get_db),
    user: Optional[UserDTO] = Depends(get_current_user),
):
    return DepositService.return_deposit(db, deposit_id, user)


@router.delete("/{deposit_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Deposit")
def delete_deposit(
    deposit_id: str,
    db: Session = Depends(get_db),
    user: Optional[UserDTO] = Depends(get_current_user),
):
    DepositService.delete_deposit(db, deposit_id, user)
