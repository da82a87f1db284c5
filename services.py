from datetime import date, datetime
from functools import wraps
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import SEARCH_RESULT_LIMIT
from database import SessionLocal, Profile, Room, Booking, RoomDailyStatus, RoomDeposit, ActivityLog
from errors import NotAuthenticated, PermissionDenied, NotFound, ValidationError, BackendError
from logging_config import get_logger
from occupancy import (
    CellKind, DailyStatusEntry, TERMINAL_STATUSES, ROOM_ACTIVE,
    visible_dates, window_query_bounds, overlaps_window, resolve_placements,
    resolve_door_status, free_cell_view,
)
from realtime import hub
from schemas import (
    UserDTO, RoomDTO, RoomCreate, BookingCreate, BookingDTO, DepositCreate, DepositDTO,
    CalendarCellDTO, CalendarRowDTO, CalendarGridDTO, PlacementConflictDTO,
)
from security import verify_password
from transitions import STATUS_EFFECTS, assert_transition, available_transitions, status_label

# Logger para este módulo
logger = get_logger(__name__)


# ==========================================
# SESIÓN
# ==========================================

def with_db(func):
    """
    Decorator que maneja el ciclo de vida de la sesión.

    - Si la sesión llega como primer argumento o en kwargs (API, tests): se usa
      tal cual y el llamador es dueño de su ciclo de vida.
    - Si no: se crea una sesión propia (Streamlit) y se libera al terminar.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        if args and isinstance(args[0], Session):
            return func(*args, **kwargs)
        if kwargs.get('db') is not None:
            return func(*args, **kwargs)

        kwargs.pop('db', None)
        db = SessionLocal()
        try:
            return func(db, *args, **kwargs)
        except Exception as e:
            db.rollback()
            logger.error(f"Error in {func.__name__}: {e}")
            raise
        finally:
            SessionLocal.remove()

    return wrapper


def _require_user(user: Optional[UserDTO]) -> UserDTO:
    if user is None:
        raise NotAuthenticated()
    return user


def _require_permission(user: Optional[UserDTO], permission: str) -> UserDTO:
    user = _require_user(user)
    if not user.has_permission(permission):
        raise PermissionDenied(f"Permission '{permission}' required")
    return user


def _profile_names(db: Session, ids: Iterable[Optional[str]]) -> Dict[str, str]:
    wanted = {i for i in ids if i}
    if not wanted:
        return {}
    rows = db.query(Profile.id, Profile.name).filter(Profile.id.in_(wanted)).all()
    return {r.id: r.name for r in rows}


def _to_user_dto(profile: Profile) -> UserDTO:
    return UserDTO(
        id=profile.id,
        username=profile.username,
        name=profile.name or profile.username,
        email=profile.email,
        role=profile.role or "staff",
        permissions=profile.permission_list,
    )


# ==========================================
# SERVICES
# ==========================================

class AuthService:
    """Service for user authentication."""

    @staticmethod
    @with_db
    def authenticate(db: Session, username: str, password: str) -> Optional[UserDTO]:
        """
        Verifies user credentials.

        Returns:
            UserDTO if successful, None otherwise.
        """
        profile = db.query(Profile).filter(Profile.username == username).first()
        if profile and verify_password(profile.password_hash, password):
            return _to_user_dto(profile)
        logger.info(f"Login fallido para '{username}'")
        return None

    @staticmethod
    @with_db
    def get_user(db: Session, user_id: str) -> Optional[UserDTO]:
        profile = db.query(Profile).filter(Profile.id == user_id).first()
        return _to_user_dto(profile) if profile else None


class ActivityService:
    """Audit trail. Best effort: a failed write never blocks the primary operation."""

    @staticmethod
    @with_db
    def log_activity(db: Session, user: Optional[UserDTO], action_type: str, entity_type: str,
                     description: str, entity_id: Optional[str] = None,
                     store_id: Optional[str] = None) -> bool:
        if user is None:
            return False
        try:
            db.add(ActivityLog(
                user_id=user.id,
                user_name=user.name or user.email or "Unknown",
                user_role=user.role,
                action_type=action_type,
                entity_type=entity_type,
                entity_id=entity_id,
                description=description,
                store_id=store_id,
            ))
            db.commit()
            return True
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to log activity")
            return False


class RoomService:

    @staticmethod
    @with_db
    def list_rooms(db: Session, store_id: str) -> List[RoomDTO]:
        rooms = db.query(Room).filter(Room.store_id == store_id).order_by(Room.name).all()
        return [RoomDTO.model_validate(r) for r in rooms]

    @staticmethod
    @with_db
    def get_room(db: Session, room_id: str) -> Optional[RoomDTO]:
        room = db.query(Room).filter(Room.id == room_id).first()
        return RoomDTO.model_validate(room) if room else None

    @staticmethod
    @with_db
    def create_room(db: Session, data: RoomCreate) -> RoomDTO:
        room = Room(store_id=data.store_id, name=data.name, status=data.status)
        try:
            db.add(room)
            db.commit()
            db.refresh(room)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"create_room: {e}")
            raise BackendError("Gagal menambah kamar") from e
        hub.publish("rooms", data.store_id)
        return RoomDTO.model_validate(room)


def _upsert_daily_status(db: Session, room_id: str, day: date, status: str, user_id: Optional[str]) -> RoomDailyStatus:
    """Una fila por (habitación, fecha); el último que escribe gana. No hace commit."""
    row = db.query(RoomDailyStatus).filter(
        RoomDailyStatus.room_id == room_id,
        RoomDailyStatus.date == day,
    ).first()
    if row is None:
        row = RoomDailyStatus(room_id=room_id, date=day)
        db.add(row)
    row.status = status
    row.updated_by = user_id
    row.updated_at = datetime.now()
    db.flush()
    return row


class RoomStatusService:
    """Estado diario de habitaciones (Kotor / Aktif)."""

    @staticmethod
    @with_db
    def get_status_map(db: Session, store_id: str, dates: List[date]) -> Dict[Tuple[str, date], DailyStatusEntry]:
        """
        Devuelve {(room_id, fecha): DailyStatusEntry} para la ventana visible,
        con el nombre de quien hizo el último cambio.
        """
        rows = db.query(RoomDailyStatus).join(Room, Room.id == RoomDailyStatus.room_id).filter(
            Room.store_id == store_id,
            RoomDailyStatus.date >= dates[0],
            RoomDailyStatus.date <= dates[-1],
        ).all()
        names = _profile_names(db, (r.updated_by for r in rows))
        return {
            (r.room_id, r.date): DailyStatusEntry(r.status, names.get(r.updated_by))
            for r in rows
        }

    @staticmethod
    @with_db
    def set_daily_status(db: Session, room_id: str, day: date, status: str, user: Optional[UserDTO]) -> None:
        user = _require_user(user)
        if status not in ("Kotor", "Aktif"):
            raise ValidationError(f"Unknown room daily status: {status}")
        room = db.query(Room).filter(Room.id == room_id).first()
        if not room:
            raise NotFound(f"Room {room_id} not found")

        try:
            _upsert_daily_status(db, room_id, day, status, user.id)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"set_daily_status {room_id} {day}: {e}")
            raise BackendError("Gagal mengubah status kamar") from e

        label = "Ready" if status == "Aktif" else status
        logger.info(f"Room {room.name} {day.isoformat()} -> {status} by {user.username}")
        ActivityService.log_activity(
            db, user, "updated", "Room",
            f"Mengubah status kamar {room.name} tanggal {day.isoformat()} menjadi {label}",
            entity_id=room_id, store_id=room.store_id,
        )
        hub.publish("room_daily_status", room.store_id)


def _add_deposit(db: Session, room: Room, data: DepositCreate, user_id: str, owner_name: Optional[str] = None) -> RoomDeposit:
    deposit = RoomDeposit(
        room_id=room.id,
        store_id=room.store_id,
        deposit_type=data.deposit_type,
        amount=data.amount,
        identity_type=data.identity_type,
        identity_owner_name=(data.identity_owner_name or owner_name) if data.deposit_type == "identitas" else None,
        notes=data.notes,
        status="active",
        created_by=user_id,
    )
    db.add(deposit)
    db.flush()
    return deposit


def _return_active_deposits(db: Session, room_id: str, user_id: str) -> List[RoomDeposit]:
    deposits = db.query(RoomDeposit).filter(
        RoomDeposit.room_id == room_id,
        RoomDeposit.status == "active",
    ).all()
    now = datetime.now()
    for d in deposits:
        d.status = "returned"
        d.returned_by = user_id
        d.returned_at = now
        d.updated_at = now
    db.flush()
    return deposits


class DepositService:
    """
    Depósitos de garantía por habitación.

    Se asume a lo sumo un depósito activo por habitación; las consultas toman
    el más reciente.
    """

    @staticmethod
    @with_db
    def active_room_ids(db: Session, store_id: str) -> Set[str]:
        rows = db.query(RoomDeposit.room_id).filter(
            RoomDeposit.store_id == store_id,
            RoomDeposit.status == "active",
        ).all()
        return {r.room_id for r in rows}

    @staticmethod
    @with_db
    def list_active(db: Session, store_id: str) -> List[DepositDTO]:
        rows = db.query(RoomDeposit).filter(
            RoomDeposit.store_id == store_id,
            RoomDeposit.status == "active",
        ).order_by(RoomDeposit.created_at.desc()).all()
        return [DepositDTO.model_validate(r) for r in rows]

    @staticmethod
    @with_db
    def list_active_for_room(db: Session, room_id: str) -> List[DepositDTO]:
        rows = db.query(RoomDeposit).filter(
            RoomDeposit.room_id == room_id,
            RoomDeposit.status == "active",
        ).order_by(RoomDeposit.created_at.desc()).all()
        return [DepositDTO.model_validate(r) for r in rows]

    @staticmethod
    @with_db
    def get_active_deposit(db: Session, room_id: str) -> Optional[DepositDTO]:
        deposits = DepositService.list_active_for_room(db, room_id)
        return deposits[0] if deposits else None

    @staticmethod
    @with_db
    def has_active_deposit(db: Session, room_id: str) -> bool:
        return db.query(RoomDeposit.id).filter(
            RoomDeposit.room_id == room_id,
            RoomDeposit.status == "active",
        ).first() is not None

    @staticmethod
    @with_db
    def create_deposit(db: Session, room_id: str, data: DepositCreate, user: Optional[UserDTO]) -> DepositDTO:
        """Registra un depósito fuera del check-in (modo depósito del calendario)."""
        user = _require_user(user)
        room = db.query(Room).filter(Room.id == room_id).first()
        if not room:
            raise NotFound(f"Room {room_id} not found")
        if room.status != ROOM_ACTIVE:
            raise ValidationError(f"Kamar {room.name} tidak aktif ({room.status})")
        if DepositService.has_active_deposit(db, room_id):
            raise ValidationError(f"Kamar {room.name} sudah ada deposit")

        try:
            deposit = _add_deposit(db, room, data, user.id)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"create_deposit {room_id}: {e}")
            raise BackendError("Gagal menyimpan deposit") from e

        dto = DepositDTO.model_validate(deposit)
        ActivityService.log_activity(
            db, user, "created", "Deposit",
            f"Menambahkan deposit {dto.description} untuk kamar {room.name}",
            entity_id=dto.id, store_id=room.store_id,
        )
        hub.publish("room_deposits", room.store_id)
        return dto

    @staticmethod
    @with_db
    def return_deposit(db: Session, deposit_id: str, user: Optional[UserDTO]) -> DepositDTO:
        user = _require_user(user)
        deposit = db.query(RoomDeposit).filter(RoomDeposit.id == deposit_id).first()
        if not deposit:
            raise NotFound(f"Deposit {deposit_id} not found")
        if deposit.status != "active":
            raise ValidationError("Deposit sudah dikembalikan")

        try:
            now = datetime.now()
            deposit.status = "returned"
            deposit.returned_by = user.id
            deposit.returned_at = now
            deposit.updated_at = now
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"return_deposit {deposit_id}: {e}")
            raise BackendError("Gagal mengembalikan deposit") from e

        dto = DepositDTO.model_validate(deposit)
        ActivityService.log_activity(
            db, user, "updated", "Deposit", f"Mengembalikan deposit {dto.description}",
            entity_id=dto.id, store_id=dto.store_id,
        )
        hub.publish("room_deposits", dto.store_id)
        return dto

    @staticmethod
    @with_db
    def delete_deposit(db: Session, deposit_id: str, user: Optional[UserDTO]) -> None:
        user = _require_user(user)
        deposit = db.query(RoomDeposit).filter(RoomDeposit.id == deposit_id).first()
        if not deposit:
            raise NotFound(f"Deposit {deposit_id} not found")
        dto = DepositDTO.model_validate(deposit)

        try:
            db.delete(deposit)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"delete_deposit {deposit_id}: {e}")
            raise BackendError("Gagal menghapus deposit") from e

        ActivityService.log_activity(
            db, user, "deleted", "Deposit", f"Menghapus deposit {dto.description}",
            entity_id=dto.id, store_id=dto.store_id,
        )
        hub.publish("room_deposits", dto.store_id)


def _booking_dtos(db: Session, bookings: List[Booking]) -> List[BookingDTO]:
    names = _profile_names(db, (b.created_by for b in bookings))
    result = []
    for b in bookings:
        dto = BookingDTO.model_validate(b)
        dto.admin_name = names.get(b.created_by, "Unknown")
        dto.room_name = b.room.name if b.room else None
        result.append(dto)
    return result


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BookingService:
    """Service for managing bookings and their status lifecycle."""

    @staticmethod
    @with_db
    def window_bookings(db: Session, store_id: str, dates: List[date]) -> List[BookingDTO]:
        """
        Reservas que ocupan alguna fecha de la ventana visible.

        Se consultan las que empiezan hasta BOOKING_LOOKBACK_DAYS antes de la
        ventana y luego se filtran por solapamiento real. CO y BATAL no se
        muestran en el calendario.
        """
        earliest, latest = window_query_bounds(dates)
        rows = db.query(Booking).filter(
            Booking.store_id == store_id,
            Booking.date >= earliest,
            Booking.date <= latest,
            Booking.status.notin_(TERMINAL_STATUSES),
        ).all()
        relevant = [b for b in rows if overlaps_window(b, dates)]
        return _booking_dtos(db, relevant)

    @staticmethod
    @with_db
    def get_booking(db: Session, booking_id: str) -> Optional[BookingDTO]:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            return None
        return _booking_dtos(db, [booking])[0]

    @staticmethod
    @with_db
    def create_booking(db: Session, data: BookingCreate, user: Optional[UserDTO]) -> BookingDTO:
        """Crea una reserva en estado BO (confirmada por quien la crea)."""
        user = _require_permission(user, "create_bookings")
        room = db.query(Room).filter(Room.id == data.room_id, Room.store_id == data.store_id).first()
        if not room:
            raise NotFound(f"Room {data.room_id} not found")
        if room.status != ROOM_ACTIVE:
            raise ValidationError(f"Kamar {room.name} tidak aktif ({room.status})")

        now = datetime.now()
        booking = Booking(
            store_id=data.store_id,
            room_id=data.room_id,
            bid=data.bid,
            customer_name=data.customer_name,
            phone=data.phone or None,
            reference_no=data.reference_no or None,
            note=data.note,
            date=data.date,
            duration=data.duration,
            price=data.price,
            payment_status=data.payment_status,
            status="BO",
            created_by=user.id,
            created_at=now,
            updated_at=now,
        )
        by_field, at_field = STATUS_EFFECTS["BO"].stamps
        setattr(booking, by_field, user.id)
        setattr(booking, at_field, now)

        try:
            db.add(booking)
            db.commit()
            db.refresh(booking)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"create_booking: {e}")
            raise BackendError("Gagal menyimpan booking") from e

        logger.info(f"Booking {booking.id} creada: {booking.customer_name} room={room.name} {booking.date} x{booking.duration}")
        ActivityService.log_activity(
            db, user, "created", "Booking",
            f"Membuat booking {booking.customer_name} di kamar {room.name} pada {booking.date.isoformat()}",
            entity_id=booking.id, store_id=booking.store_id,
        )
        hub.publish("bookings", booking.store_id)
        return _booking_dtos(db, [booking])[0]

    @staticmethod
    @with_db
    def update_booking(db: Session, booking_id: str, data: BookingCreate, user: Optional[UserDTO]) -> BookingDTO:
        """Edita los datos de una reserva (no su estado)."""
        user = _require_permission(user, "edit_bookings")
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFound(f"Booking {booking_id} not found")
        if booking.status == "BATAL" and user.role != "admin":
            raise PermissionDenied("Booking dibatalkan")
        if data.room_id != booking.room_id:
            room = db.query(Room).filter(Room.id == data.room_id, Room.store_id == booking.store_id).first()
            if not room:
                raise NotFound(f"Room {data.room_id} not found")
            if room.status != ROOM_ACTIVE:
                raise ValidationError(f"Kamar {room.name} tidak aktif ({room.status})")

        try:
            booking.room_id = data.room_id
            booking.bid = data.bid
            booking.customer_name = data.customer_name
            booking.phone = data.phone or None
            booking.reference_no = data.reference_no or None
            booking.note = data.note
            booking.date = data.date
            booking.duration = data.duration
            booking.price = data.price
            booking.payment_status = data.payment_status
            booking.updated_at = datetime.now()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"update_booking {booking_id}: {e}")
            raise BackendError("Gagal mengubah booking") from e

        ActivityService.log_activity(
            db, user, "updated", "Booking", f"Mengubah booking {booking.customer_name}",
            entity_id=booking.id, store_id=booking.store_id,
        )
        hub.publish("bookings", booking.store_id)
        return _booking_dtos(db, [booking])[0]

    @staticmethod
    @with_db
    def delete_booking(db: Session, booking_id: str, user: Optional[UserDTO]) -> None:
        """Borrado físico e irreversible. Preferir BATAL."""
        user = _require_permission(user, "delete_bookings")
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFound(f"Booking {booking_id} not found")
        if booking.status == "BATAL" and user.role != "admin":
            raise PermissionDenied("Booking dibatalkan")

        room_name = booking.room.name if booking.room else "Unknown"
        description = (
            f"Menghapus booking {booking.customer_name} di kamar {room_name} pada {booking.date.isoformat()}"
        )
        store_id = booking.store_id
        try:
            db.delete(booking)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"delete_booking {booking_id}: {e}")
            raise BackendError("Gagal menghapus booking") from e

        logger.info(f"Booking {booking_id} eliminada por {user.username}")
        ActivityService.log_activity(db, user, "deleted", "Booking", description, entity_id=booking_id, store_id=store_id)
        hub.publish("bookings", store_id)

    @staticmethod
    @with_db
    def change_status(db: Session, booking_id: str, target_status: str, user: Optional[UserDTO],
                      deposit: Optional[DepositCreate] = None, return_deposits: bool = False,
                      today: Optional[date] = None) -> BookingDTO:
        """
        Aplica una transición de estado y sus efectos en una sola transacción.

        Args:
            deposit: depósito capturado en el check-in (solo CI).
            return_deposits: devolver los depósitos activos de la habitación (solo CO).
            today: fecha "real" para el estado Kotor del check-out (por defecto hoy).

        Raises:
            NotAuthenticated, NotFound, ValidationError/InvalidTransition, BackendError
        """
        user = _require_user(user)
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFound(f"Booking {booking_id} not found")

        current = booking.status or "BO"
        effects = assert_transition(current, target_status)
        if deposit is not None and target_status != "CI":
            raise ValidationError("A deposit can only be captured on check-in")
        if deposit is not None and DepositService.has_active_deposit(db, booking.room_id):
            raise ValidationError(f"Kamar {booking.room.name} sudah ada deposit")
        if return_deposits and target_status != "CO":
            raise ValidationError("Deposits can only be returned on check-out")

        now = datetime.now()
        today = today or date.today()
        room_status_written = False
        deposits_touched = False

        try:
            if deposit is not None:
                _add_deposit(db, booking.room, deposit, user.id, owner_name=booking.customer_name)
                deposits_touched = True
            if return_deposits:
                deposits_touched = bool(_return_active_deposits(db, booking.room_id, user.id)) or deposits_touched

            booking.status = target_status
            booking.updated_at = now
            if effects.stamps:
                by_field, at_field = effects.stamps
                setattr(booking, by_field, user.id)
                setattr(booking, at_field, now)
            db.flush()

            # El estado diario se escribe solo si la reserva se actualizó
            if effects.room_status:
                day = effects.room_status.target_date(booking.date, today)
                _upsert_daily_status(db, booking.room_id, day, effects.room_status.status, user.id)
                room_status_written = True

            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"change_status {booking_id} {current}->{target_status}: {e}")
            raise BackendError("Gagal mengubah status") from e

        logger.info(f"Booking {booking_id}: {current} -> {target_status} by {user.username}")
        ActivityService.log_activity(
            db, user, effects.action_type, "Booking",
            f"Mengubah status booking {booking.customer_name} ke {status_label(target_status)}",
            entity_id=booking.id, store_id=booking.store_id,
        )
        hub.publish("bookings", booking.store_id)
        if room_status_written:
            hub.publish("room_daily_status", booking.store_id)
        if deposits_touched:
            hub.publish("room_deposits", booking.store_id)
        return _booking_dtos(db, [booking])[0]

    @staticmethod
    @with_db
    def search(db: Session, store_id: str, query: str, limit: int = SEARCH_RESULT_LIMIT) -> List[BookingDTO]:
        """
        Busca por código (bid), nombre o teléfono en TODAS las reservas del
        store, sin límite de fechas ni de estado. Más nuevas primero.
        """
        term = (query or "").strip()
        if not term:
            return []
        q = f"%{_escape_like(term)}%"
        rows = db.query(Booking).filter(
            Booking.store_id == store_id,
            or_(
                Booking.bid.ilike(q, escape="\\"),
                Booking.customer_name.ilike(q, escape="\\"),
                Booking.phone.ilike(q, escape="\\"),
            )
        ).order_by(Booking.date.desc(), Booking.created_at.desc()).limit(limit).all()
        return _booking_dtos(db, rows)


# ==========================================
# GRILLA DEL CALENDARIO
# ==========================================

def assemble_grid(selected_date: date, dates: List[date], rooms: List[RoomDTO], bookings: List[BookingDTO],
                  status_map: Dict[Tuple[str, date], DailyStatusEntry], deposit_rooms: Set[str],
                  user: Optional[UserDTO]) -> CalendarGridDTO:
    """Combina ubicación de reservas y estado diario en la grilla visible."""
    if user is not None and user.sees_all_rooms:
        display_rooms = rooms
    else:
        display_rooms = [r for r in rooms if not r.is_blocked]
    can_create = user is not None and user.has_permission("create_bookings")

    placements = resolve_placements([r.id for r in display_rooms], dates, bookings)

    rows = []
    for room in display_rooms:
        cells = []
        for day in dates:
            placement = placements.cell(room.id, day)
            if placement.kind == CellKind.CONTINUATION:
                continue
            if placement.kind == CellKind.START:
                cells.append(CalendarCellDTO(
                    date=day,
                    kind="START",
                    colspan=placement.colspan,
                    synthetic=placement.synthetic,
                    booking=placement.booking,
                    available_transitions=available_transitions(placement.booking.status),
                ))
                continue
            entry = status_map.get((room.id, day))
            door = resolve_door_status(room.id, day, status_map)
            view = free_cell_view(room, door, entry, can_create)
            cells.append(CalendarCellDTO(
                date=day,
                kind="FREE",
                door_status=view.door_status.value,
                action=view.action,
                label=view.label,
                ready_by=view.ready_by,
                highlight=view.highlight,
            ))
        rows.append(CalendarRowDTO(
            room=room,
            blocked=room.is_blocked,
            has_deposit=room.id in deposit_rooms,
            cells=cells,
        ))

    conflicts = [
        PlacementConflictDTO(room_id=c.room_id, date=c.date, booking_id=c.booking_id, shadowed_by=c.shadowed_by)
        for c in placements.conflicts
    ]
    return CalendarGridDTO(selected_date=selected_date, dates=dates, rows=rows, conflicts=conflicts)


class CalendarService:

    @staticmethod
    @with_db
    def get_grid(db: Session, store_id: str, selected_date: date, user: Optional[UserDTO]) -> CalendarGridDTO:
        dates = visible_dates(selected_date)
        grid = assemble_grid(
            selected_date,
            dates,
            RoomService.list_rooms(db, store_id),
            BookingService.window_bookings(db, store_id, dates),
            RoomStatusService.get_status_map(db, store_id, dates),
            DepositService.active_room_ids(db, store_id),
            user,
        )
        logger.info(f"get_grid: store={store_id} {dates[0]}..{dates[-1]} rows={len(grid.rows)}")
        return grid
