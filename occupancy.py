"""
PMS Kalender - Lógica del calendario de ocupación
=================================================

Funciones puras (sin base de datos) que deciden qué muestra cada celda de la
grilla habitaciones × fechas:

- visible_dates: la ventana fija de 14 días alrededor de la fecha elegida
- resolve_placements: START / CONTINUATION / FREE por (habitación, fecha)
- resolve_door_status / free_cell_view: estado diario de una celda libre

Las reservas se reciben como objetos con ``id``, ``room_id``, ``date``,
``duration`` y ``status`` (BookingDTO o modelos ORM).
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from config import WINDOW_DAYS_BEFORE, WINDOW_LENGTH, BOOKING_LOOKBACK_DAYS
from logging_config import get_logger

logger = get_logger(__name__)

# Estados que ya no ocupan celdas del calendario
TERMINAL_STATUSES = ("CO", "BATAL")

ROOM_ACTIVE = "Aktif"
DAILY_DIRTY = "Kotor"
DAILY_READY = "Aktif"


# ==========================================
# VENTANA DE FECHAS
# ==========================================

def visible_dates(selected_date: date,
                  days_before: int = WINDOW_DAYS_BEFORE,
                  length: int = WINDOW_LENGTH) -> List[date]:
    """
    Devuelve las fechas visibles: [selected_date - 3 ... selected_date + 10].

    Ejemplo:
        visible_dates(date(2024, 6, 1))[0] == date(2024, 5, 29)
    """
    start = selected_date - timedelta(days=days_before)
    return [start + timedelta(days=i) for i in range(length)]


def window_query_bounds(dates: Sequence[date],
                        lookback_days: int = BOOKING_LOOKBACK_DAYS) -> Tuple[date, date]:
    """Rango de fechas de inicio a consultar para no perder estadías largas."""
    return dates[0] - timedelta(days=lookback_days), dates[-1]


def occupied_range(booking) -> Tuple[date, date]:
    """Primer y último día (inclusive) que ocupa una reserva."""
    nights = booking.duration or 1
    return booking.date, booking.date + timedelta(days=nights - 1)


def overlaps_window(booking, dates: Sequence[date]) -> bool:
    start, end = occupied_range(booking)
    return end >= dates[0] and start <= dates[-1]


def is_placeable(booking) -> bool:
    return (booking.status or "BO") not in TERMINAL_STATUSES


# ==========================================
# UBICACIÓN DE RESERVAS
# ==========================================

class CellKind(str, Enum):
    START = "START"
    CONTINUATION = "CONTINUATION"
    FREE = "FREE"


@dataclass(frozen=True)
class Placement:
    kind: CellKind
    booking: Optional[object] = None
    colspan: int = 0
    # True cuando la tarjeta no empieza en el día real de check-in
    synthetic: bool = False


FREE_CELL = Placement(CellKind.FREE)


@dataclass(frozen=True)
class PlacementConflict:
    """A booking with visible days claimed by another booking on the same room."""
    room_id: str
    date: date
    booking_id: str
    shadowed_by: str


@dataclass
class PlacementGrid:
    dates: List[date]
    cells: Dict[Tuple[str, date], Placement] = field(default_factory=dict)
    conflicts: List[PlacementConflict] = field(default_factory=list)

    def cell(self, room_id: str, day: date) -> Placement:
        return self.cells.get((room_id, day), FREE_CELL)

    def row(self, room_id: str) -> List[Placement]:
        return [self.cell(room_id, d) for d in self.dates]


def _choose(candidates: Iterable, day: date):
    starting = [b for b in candidates if b.date == day]
    if starting:
        return min(starting, key=lambda b: str(b.id))
    return min(candidates, key=lambda b: (b.date, str(b.id)))


def resolve_room_row(room_id: str, dates: Sequence[date], bookings: Iterable) -> Tuple[Dict[date, Placement], List[PlacementConflict]]:
    """
    Resuelve una fila de la grilla.

    Recorre las fechas de izquierda a derecha. Una fecha ya cubierta por el
    colspan de una tarjeta anterior es CONTINUATION; si no, la reserva que la
    ocupa abre una tarjeta (START) que se extiende mientras siga ocupando
    fechas visibles.
    """
    candidates = [
        b for b in bookings
        if b.room_id == room_id and is_placeable(b) and overlaps_window(b, dates)
    ]

    row: Dict[date, Placement] = {}
    owner_by_date: Dict[date, object] = {}
    claimed_until = -1
    owner = None

    for i, day in enumerate(dates):
        if i <= claimed_until:
            row[day] = Placement(CellKind.CONTINUATION, booking=owner)
            owner_by_date[day] = owner
            continue

        covering = [b for b in candidates if occupied_range(b)[0] <= day <= occupied_range(b)[1]]
        if not covering:
            row[day] = FREE_CELL
            continue

        owner = _choose(covering, day)
        end = occupied_range(owner)[1]
        colspan = min(len(dates) - i, (end - day).days + 1)
        row[day] = Placement(CellKind.START, booking=owner, colspan=colspan, synthetic=owner.date != day)
        owner_by_date[day] = owner
        claimed_until = i + colspan - 1

    conflicts: List[PlacementConflict] = []
    for booking in sorted(candidates, key=lambda b: str(b.id)):
        start, end = occupied_range(booking)
        for day in dates:
            claimer = owner_by_date.get(day)
            if start <= day <= end and claimer is not None and claimer.id != booking.id:
                conflicts.append(PlacementConflict(room_id, day, str(booking.id), str(claimer.id)))
                break

    return row, conflicts


def resolve_placements(room_ids: Iterable[str], dates: Sequence[date], bookings: Iterable) -> PlacementGrid:
    """
    Decide START / CONTINUATION / FREE para cada (habitación, fecha).

    Las reservas CO y BATAL no ocupan celdas. Si dos reservas se solapan en
    la misma habitación, la de inicio más temprano (o menor id en empate)
    gana y la otra se reporta en ``conflicts``.
    """
    bookings = list(bookings)
    grid = PlacementGrid(dates=list(dates))
    for room_id in room_ids:
        row, conflicts = resolve_room_row(room_id, grid.dates, bookings)
        for day, placement in row.items():
            grid.cells[(room_id, day)] = placement
        grid.conflicts.extend(conflicts)

    for c in grid.conflicts:
        logger.warning(
            f"Booking {c.booking_id} overlaps booking {c.shadowed_by} "
            f"in room {c.room_id} on {c.date.isoformat()}"
        )
    return grid


# ==========================================
# ESTADO DIARIO DE LA HABITACIÓN
# ==========================================

class DoorStatus(str, Enum):
    DIRTY = "DIRTY"
    READY = "READY"
    DEFAULT = "DEFAULT"


@dataclass(frozen=True)
class DailyStatusEntry:
    status: str
    updated_by_name: Optional[str] = None


def resolve_door_status(room_id: str, day: date, status_map: Dict[Tuple[str, date], DailyStatusEntry]) -> DoorStatus:
    entry = status_map.get((room_id, day))
    if entry is None:
        return DoorStatus.DEFAULT
    if entry.status == DAILY_DIRTY:
        return DoorStatus.DIRTY
    if entry.status == DAILY_READY:
        return DoorStatus.READY
    return DoorStatus.DEFAULT


@dataclass(frozen=True)
class FreeCellView:
    door_status: DoorStatus
    action: Optional[str]  # "mark_ready", "create_booking" o None
    label: str
    ready_by: Optional[str] = None
    highlight: bool = False


def free_cell_view(room, door_status: DoorStatus, entry: Optional[DailyStatusEntry], can_create: bool) -> FreeCellView:
    """
    Qué muestra una celda libre.

    Kotor siempre ofrece marcar la habitación como lista. Ready y el estado
    por defecto solo permiten crear reservas si la habitación está Aktif y
    el usuario puede crear reservas.
    """
    if door_status == DoorStatus.DIRTY:
        return FreeCellView(door_status, action="mark_ready", label="Kotor")

    blocked = room.status != ROOM_ACTIVE
    ready_by = entry.updated_by_name if (door_status == DoorStatus.READY and entry) else None

    if not blocked and can_create:
        return FreeCellView(
            door_status,
            action="create_booking",
            label="Ready",
            ready_by=ready_by,
            highlight=ready_by is not None,
        )
    return FreeCellView(door_status, action=None, label=room.status if blocked else "-", ready_by=ready_by)
