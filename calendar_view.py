"""
PMS Kalender - Vista del calendario
===================================

Controlador con estado detrás del tablero: la ventana visible, los datos en
caché, las suscripciones en tiempo real y la única interacción pendiente
(paso de depósito o confirmación de "Ready").

Los errores no se propagan: se reportan por ``notify(kind, message)`` y el
método devuelve False/None, igual que el flujo de toasts de la UI.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError

from config import BOOKING_REFRESH_DEBOUNCE_SECONDS
from database import SessionLocal
from errors import PMSError, NotAuthenticated
from logging_config import get_logger
from occupancy import DailyStatusEntry, DAILY_READY, visible_dates
from realtime import Debouncer, hub as default_hub
from schemas import BookingDTO, CalendarGridDTO, DepositCreate, DepositDTO, RoomDTO, UserDTO
from services import (
    BookingService, DepositService, RoomService, RoomStatusService, assemble_grid,
)
from transitions import DepositStep, deposit_step_for, status_label

logger = get_logger(__name__)

Notify = Callable[[str, str], None]


@dataclass
class PendingDepositStep:
    step: DepositStep
    booking: BookingDTO
    target_status: str
    # Depósitos activos de la habitación (solo para RETURN)
    active_deposits: List[DepositDTO]


@dataclass
class PendingMarkReady:
    room: RoomDTO
    day: date


def _log_notify(kind: str, message: str) -> None:
    logger.info(f"[{kind}] {message}")


class CalendarView:
    """
    Un tablero abierto para un store y un usuario.

    Ejemplo:
        view = CalendarView(store_id, user, notify=toast)
        grid = view.grid()
        pending = view.request_status_change(booking_id, "CI")
        if pending:
            view.confirm_checkin_deposit(None)  # "skip"
        view.close()
    """

    def __init__(self, store_id: str, user: Optional[UserDTO],
                 session_factory=SessionLocal, hub=default_hub,
                 notify: Optional[Notify] = None,
                 selected_date: Optional[date] = None,
                 debounce: float = BOOKING_REFRESH_DEBOUNCE_SECONDS):
        self.store_id = store_id
        self.user = user
        self._session_factory = session_factory
        self._hub = hub
        self._notify = notify or _log_notify

        self.selected_date = selected_date or date.today()
        self.rooms: List[RoomDTO] = []
        self.bookings: List[BookingDTO] = []
        self.status_map: Dict[Tuple[str, date], DailyStatusEntry] = {}
        self.deposit_rooms: Set[str] = set()
        self.search_results: List[BookingDTO] = []
        self.pending = None

        self._booking_debouncer = Debouncer(self.refresh_bookings, debounce)
        self._subscriptions = [
            hub.subscribe("rooms", store_id, self.refresh_rooms),
            hub.subscribe("bookings", store_id, self._booking_debouncer.trigger),
            hub.subscribe("room_daily_status", store_id, self.refresh_statuses),
            hub.subscribe("room_deposits", store_id, self.refresh_deposits),
        ]
        self.refresh()

    # ------------------------------------------
    # Datos
    # ------------------------------------------

    @property
    def dates(self) -> List[date]:
        return visible_dates(self.selected_date)

    def _read(self, what: str, func, *args):
        """Lectura con sesión propia. En error devuelve None y se conserva lo anterior."""
        db = self._session_factory()
        try:
            return func(db, *args)
        except (SQLAlchemyError, PMSError) as e:
            logger.error(f"Error al cargar {what}: {e}")
            return None
        finally:
            db.close()

    def refresh_rooms(self) -> None:
        rooms = self._read("rooms", RoomService.list_rooms, self.store_id)
        if rooms is not None:
            self.rooms = rooms

    def refresh_bookings(self) -> None:
        bookings = self._read("bookings", BookingService.window_bookings, self.store_id, self.dates)
        if bookings is not None:
            self.bookings = bookings

    def refresh_statuses(self) -> None:
        status_map = self._read("room_daily_status", RoomStatusService.get_status_map, self.store_id, self.dates)
        if status_map is not None:
            self.status_map = status_map

    def refresh_deposits(self) -> None:
        deposit_rooms = self._read("room_deposits", DepositService.active_room_ids, self.store_id)
        if deposit_rooms is not None:
            self.deposit_rooms = deposit_rooms

    def refresh(self) -> None:
        self.refresh_rooms()
        self.refresh_bookings()
        self.refresh_statuses()
        self.refresh_deposits()

    def grid(self) -> CalendarGridDTO:
        return assemble_grid(
            self.selected_date, self.dates, self.rooms, self.bookings,
            self.status_map, self.deposit_rooms, self.user,
        )

    # ------------------------------------------
    # Navegación
    # ------------------------------------------

    def go_to(self, day: date) -> None:
        self.selected_date = day
        self.refresh_bookings()
        self.refresh_statuses()

    def yesterday(self) -> None:
        self.go_to(date.today() - timedelta(days=1))

    def today(self) -> None:
        self.go_to(date.today())

    def tomorrow(self) -> None:
        self.go_to(date.today() + timedelta(days=1))

    def prev_week(self) -> None:
        self.go_to(self.selected_date - timedelta(days=7))

    def next_week(self) -> None:
        self.go_to(self.selected_date + timedelta(days=7))

    # ------------------------------------------
    # Mutaciones
    # ------------------------------------------

    def _mutate(self, func, *args, **kwargs):
        db = self._session_factory()
        try:
            return func(db, *args, **kwargs), None
        except PMSError as e:
            logger.warning(f"{func.__name__} rechazado: {e}")
            return None, e
        finally:
            db.close()

    def _fail(self, error: Exception) -> None:
        self._notify("error", str(error))

    def request_status_change(self, booking_id: str, target_status: str) -> Optional[PendingDepositStep]:
        """
        Pide una transición de estado.

        Si el check-in/check-out necesita un paso de depósito, no cambia nada
        y devuelve el paso pendiente. Si no, aplica el cambio de inmediato.
        """
        if self.user is None:
            self._fail(NotAuthenticated())
            return None

        booking = next((b for b in self.bookings if b.id == booking_id), None)
        if booking is None:
            booking = self._read("booking", BookingService.get_booking, booking_id)
        if booking is None:
            self._notify("error", "Booking tidak ditemukan")
            return None

        if target_status in ("CI", "CO"):
            active = self._read("deposits", DepositService.list_active_for_room, booking.room_id)
            if active is None:
                self._notify("error", "Gagal memuat deposit")
                return None
            step = deposit_step_for(target_status, bool(active))
            if step is not None:
                self.pending = PendingDepositStep(step, booking, target_status, active)
                return self.pending

        self._commit_status(booking, target_status)
        return None

    def _commit_status(self, booking: BookingDTO, target_status: str,
                       deposit: Optional[DepositCreate] = None, return_deposits: bool = False) -> bool:
        result, error = self._mutate(
            BookingService.change_status, booking.id, target_status, self.user,
            deposit=deposit, return_deposits=return_deposits,
        )
        if error is not None:
            self._fail(error)
            return False
        self._notify("success", f"Status diubah ke {status_label(target_status)}")
        self.refresh_bookings()
        self.refresh_statuses()
        self.refresh_deposits()
        return True

    def confirm_checkin_deposit(self, deposit: Optional[DepositCreate]) -> bool:
        """Completa el check-in pendiente con un depósito, o sin él (skip)."""
        pending = self.pending
        if not isinstance(pending, PendingDepositStep) or pending.step != DepositStep.CAPTURE:
            self._notify("error", "Tidak ada check-in yang menunggu")
            return False
        self.pending = None
        return self._commit_status(pending.booking, pending.target_status, deposit=deposit)

    def confirm_checkout_return(self, return_deposits: bool) -> bool:
        """Completa el check-out pendiente devolviendo los depósitos o dejándolos activos."""
        pending = self.pending
        if not isinstance(pending, PendingDepositStep) or pending.step != DepositStep.RETURN:
            self._notify("error", "Tidak ada check-out yang menunggu")
            return False
        self.pending = None
        return self._commit_status(pending.booking, pending.target_status, return_deposits=return_deposits)

    def cancel_pending(self) -> None:
        self.pending = None

    # Housekeeping

    def request_mark_ready(self, room_id: str, day: date) -> Optional[PendingMarkReady]:
        room = next((r for r in self.rooms if r.id == room_id), None)
        if room is None:
            self._notify("error", "Kamar tidak ditemukan")
            return None
        self.pending = PendingMarkReady(room, day)
        return self.pending

    def confirm_mark_ready(self) -> bool:
        pending = self.pending
        if not isinstance(pending, PendingMarkReady):
            self._notify("error", "Tidak ada perubahan yang menunggu")
            return False
        self.pending = None
        _, error = self._mutate(
            RoomStatusService.set_daily_status, pending.room.id, pending.day, DAILY_READY, self.user,
        )
        if error is not None:
            self._fail(error)
            return False
        self._notify("success", f"Kamar {pending.room.name} siap digunakan")
        self.refresh_statuses()
        return True

    # ------------------------------------------
    # Búsqueda
    # ------------------------------------------

    def search(self, query: str) -> List[BookingDTO]:
        results = self._read("search", BookingService.search, self.store_id, query)
        self.search_results = results or []
        return self.search_results

    def clear_search(self) -> None:
        self.search_results = []

    def select_search_result(self, booking: BookingDTO) -> BookingDTO:
        """Lleva la ventana a la fecha de la reserva y devuelve la reserva para editarla."""
        self.clear_search()
        self.go_to(booking.date)
        return booking

    # ------------------------------------------

    def close(self) -> None:
        for handle in self._subscriptions:
            self._hub.unsubscribe(handle)
        self._subscriptions = []
        self._booking_debouncer.cancel()
