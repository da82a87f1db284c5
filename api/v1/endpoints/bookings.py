"""
PMS Kalender API - Booking Endpoints
====================================

Status changes go through the deposit gate: POST /{id}/status answers with
``committed: false`` and a ``pending_step`` when a deposit must be captured
(check-in) or reviewed (check-out). The client then completes the change with
/{id}/check-in or /{id}/check-out.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user
from config import DEFAULT_STORE_ID
from errors import NotAuthenticated, NotFound
from services import BookingService, DepositService
from schemas import (
    BookingCreate, BookingDTO, DepositCreate, StatusChangeRequest, StatusChangeResultDTO, UserDTO,
)
from transitions import assert_transition, available_transitions, deposit_step_for

router = APIRouter()


# ==========================================
# API-SPECIFIC SCHEMAS
# ==========================================

class CheckInRequest(BaseModel):
    """Deposit captured at check-in; null means the step was skipped."""
    deposit: Optional[DepositCreate] = None


class CheckOutRequest(BaseModel):
    return_deposits: bool = True


def _get_or_404(db: Session, booking_id: str) -> BookingDTO:
    booking = BookingService.get_booking(db, booking_id)
    if booking is None:
        raise NotFound(f"Booking {booking_id} not found")
    return booking


# ==========================================
# ENDPOINTS
# ==========================================

@router.get(
    "/search",
    response_model=List[BookingDTO],
    summary="Search Bookings",
    description="Case-insensitive match on booking code, customer name or phone. Newest first, max 50."
)
def search_bookings(
    q: str = Query(default=""),
    store_id: str = Query(default=DEFAULT_STORE_ID),
    db: Session = Depends(get_db),
):
    return BookingService.search(db, store_id, q)


@router.post(
    "",
    response_model=BookingDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Create Booking",
)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    user: Optional[UserDTO] = Depends(get_current_user),
):
    return BookingService.create_booking(db, data, user)


@router.get("/{booking_id}", response_model=BookingDTO, summary="Get Booking")
def get_booking(booking_id: str, db: Session = Depends(get_db)):
    return _get_or_404(db, booking_id)


@router.put("/{booking_id}", response_model=BookingDTO, summary="Edit Booking")
def update_booking(
    booking_id: str,
    data: BookingCreate,
    db: Session = Depends(get_db),
    user: Optional[UserDTO] = Depends(get_current_user),
):
    return BookingService.update_booking(db, booking_id, data, user)


@router.delete(
    "/{booking_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Booking",
    description="Permanent delete. Requires the delete_bookings permission."
)
def delete_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    user: Optional[UserDTO] = Depends(get_current_user),
):
    BookingService.delete_booking(db, booking_id, user)


@router.get("/{booking_id}/transitions", response_model=List[str], summary="Available Transitions")
def get_transitions(booking_id: str, db: Session = Depends(get_db)):
    return available_transitions(_get_or_404(db, booking_id).status)


@router.post(
    "/{booking_id}/status",
    response_model=StatusChangeResultDTO,
    summary="Request Status Change",
    description="Applies BO/CI/CO/BATAL transitions, or returns the pending deposit step."
)
def request_status_change(
    booking_id: str,
    data: StatusChangeRequest,
    db: Session = Depends(get_db),
    user: Optional[UserDTO] = Depends(get_current_user),
):
    if user is None:
        raise NotAuthenticated()
    booking = _get_or_404(db, booking_id)
    target = data.status.value
    assert_transition(booking.status, target)

    active = DepositService.list_active_for_room(db, booking.room_id)
    step = deposit_step_for(target, bool(active))
    if step is not None:
        return StatusChangeResultDTO(
            committed=False, booking=booking, pending_step=step.value, active_deposits=active,
        )

    updated = BookingService.change_status(db, booking_id, target, user)
    return StatusChangeResultDTO(committed=True, booking=updated)


@router.post("/{booking_id}/check-in", response_model=StatusChangeResultDTO, summary="Complete Check-In")
def check_in(
    booking_id: str,
    data: CheckInRequest,
    db: Session = Depends(get_db),
    user: Optional[UserDTO] = Depends(get_current_user),
):
    updated = BookingService.change_status(db, booking_id, "CI", user, deposit=data.deposit)
    return StatusChangeResultDTO(committed=True, booking=updated)


@router.post("/{booking_id}/check-out", response_model=StatusChangeResultDTO, summary="Complete Check-Out")
def check_out(
    booking_id: str,
    data: CheckOutRequest,
    db: Session = Depends(get_db),
    user: Optional[UserDTO] = Depends(get_current_user),
):
    updated = BookingService.change_status(db, booking_id, "CO", user, return_deposits=data.return_deposits)
    return StatusChangeResultDTO(committed=True, booking=updated)
