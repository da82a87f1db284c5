"""
PMS Kalender - Máquina de estados de reservas
=============================================

Tabla única de transiciones permitidas y de los efectos que cada estado
destino produce (sellos de actor en la reserva, estado diario de la
habitación, paso de depósito).

    BO  -> CI, BATAL
    CI  -> CO, BATAL
    CO, BATAL: terminales
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from errors import InvalidTransition, ValidationError


class BookingStatus(str, Enum):
    BO = "BO"          # Reservasi
    CI = "CI"          # Check In
    CO = "CO"          # Check Out
    BATAL = "BATAL"    # Batal


STATUS_LABELS = {
    "BO": "Reservasi",
    "CI": "Check In",
    "CO": "Check Out",
    "BATAL": "Batal",
}

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "BO": frozenset({"CI", "BATAL"}),
    "CI": frozenset({"CO", "BATAL"}),
    "CO": frozenset(),
    "BATAL": frozenset(),
}

# Orden de presentación de los botones de estado
_DISPLAY_ORDER = ("BO", "CI", "CO", "BATAL")


class RoomDateRule(str, Enum):
    TODAY = "today"                # fecha real de hoy
    BOOKING_DATE = "booking_date"  # fecha de check-in de la reserva


@dataclass(frozen=True)
class RoomStatusEffect:
    status: str
    on: RoomDateRule

    def target_date(self, booking_date: date, today: date) -> date:
        return today if self.on == RoomDateRule.TODAY else booking_date


@dataclass(frozen=True)
class StatusEffects:
    # (campo_por, campo_en) a sellar en la reserva
    stamps: Optional[Tuple[str, str]] = None
    room_status: Optional[RoomStatusEffect] = None
    action_type: str = "updated"


STATUS_EFFECTS: Dict[str, StatusEffects] = {
    "BO": StatusEffects(stamps=("confirmed_by", "confirmed_at"), action_type="confirm"),
    "CI": StatusEffects(stamps=("checked_in_by", "checked_in_at"), action_type="check-in"),
    "CO": StatusEffects(
        stamps=("checked_out_by", "checked_out_at"),
        room_status=RoomStatusEffect("Kotor", RoomDateRule.TODAY),
        action_type="check-out",
    ),
    # Una reserva cancelada nunca ensució la habitación
    "BATAL": StatusEffects(room_status=RoomStatusEffect("Aktif", RoomDateRule.BOOKING_DATE)),
}


def available_transitions(current_status: str) -> list:
    """Estados a los que puede pasar una reserva (vacío si es terminal o desconocido)."""
    allowed = ALLOWED_TRANSITIONS.get(current_status, frozenset())
    return [s for s in _DISPLAY_ORDER if s in allowed]


def assert_transition(current_status: str, target_status: str) -> StatusEffects:
    """Valida la transición y devuelve los efectos declarados del estado destino."""
    if target_status not in STATUS_EFFECTS:
        raise ValidationError(f"Unknown booking status: {target_status}")
    if target_status not in ALLOWED_TRANSITIONS.get(current_status, frozenset()):
        raise InvalidTransition(current_status, target_status)
    return STATUS_EFFECTS[target_status]


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


# ==========================================
# DEPOSIT GATE
# ==========================================

class DepositStep(str, Enum):
    CAPTURE = "deposit_capture"  # pedir depósito antes del check-in
    RETURN = "deposit_return"    # revisar/devolver depósito antes del check-out


def deposit_step_for(target_status: str, has_active_deposit: bool) -> Optional[DepositStep]:
    """
    Decide si la transición debe pausar por un paso de depósito.

    Check-in sin depósito activo en la habitación pide capturarlo; con uno
    activo continúa directamente. Check-out con depósito activo pide
    devolverlo; sin depósito continúa directamente.
    """
    if target_status == "CI" and not has_active_deposit:
        return DepositStep.CAPTURE
    if target_status == "CO" and has_active_deposit:
        return DepositStep.RETURN
    return None
