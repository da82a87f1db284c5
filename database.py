import uuid
from datetime import datetime

from sqlalchemy import (
    create_engine, Column, Integer, String, Date, Float, ForeignKey, DateTime, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, sessionmaker, scoped_session, relationship

from config import DATABASE_URL, ADMIN_USERNAME, ADMIN_PASSWORD, DEFAULT_STORE_ID
from logging_config import get_logger
from security import hash_password

logger = get_logger(__name__)

# Base de datos
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)
Base = declarative_base()
SessionLocal = scoped_session(sessionmaker(bind=engine))


def new_id() -> str:
    return str(uuid.uuid4())


# ==========================================
# MODELOS (Tablas)
# ==========================================

class Profile(Base):
    __tablename__ = "profiles"
    id = Column(String, primary_key=True, default=new_id)
    store_id = Column(String, index=True, default=DEFAULT_STORE_ID)
    username = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    name = Column(String)
    email = Column(String, nullable=True)
    role = Column(String, default="staff")  # admin, leader, staff
    permissions = Column(String, default="")  # "create_bookings,edit_bookings"

    @property
    def permission_list(self):
        return [p.strip() for p in (self.permissions or "").split(",") if p.strip()]


class Room(Base):
    __tablename__ = "rooms"
    id = Column(String, primary_key=True, default=new_id)
    store_id = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)  # "101", "102"
    status = Column(String, default="Aktif")  # Aktif o motivo de bloqueo
    created_at = Column(DateTime, default=datetime.now)

    bookings = relationship("Booking", back_populates="room")


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(String, primary_key=True, default=new_id)
    store_id = Column(String, index=True, nullable=False)
    room_id = Column(String, ForeignKey("rooms.id"), nullable=False)
    bid = Column(String, nullable=True, index=True)  # Código de referencia

    customer_name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    reference_no = Column(String, nullable=True)
    note = Column(Text, nullable=True)

    date = Column(Date, nullable=False, index=True)  # Día de check-in
    duration = Column(Integer, nullable=False, default=1)  # Noches

    price = Column(Float, default=0.0)
    payment_status = Column(String, default="belum_lunas")  # lunas, belum_lunas

    status = Column(String, nullable=False, default="BO")  # BO, CI, CO, BATAL

    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    confirmed_by = Column(String, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    checked_in_by = Column(String, nullable=True)
    checked_in_at = Column(DateTime, nullable=True)
    checked_out_by = Column(String, nullable=True)
    checked_out_at = Column(DateTime, nullable=True)

    room = relationship("Room", back_populates="bookings")


class RoomDailyStatus(Base):
    __tablename__ = "room_daily_status"
    __table_args__ = (UniqueConstraint("room_id", "date", name="uq_room_daily_status_room_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String, ForeignKey("rooms.id"), nullable=False)
    date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="Kotor")  # Kotor, Aktif
    updated_by = Column(String, nullable=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class RoomDeposit(Base):
    __tablename__ = "room_deposits"
    id = Column(String, primary_key=True, default=new_id)
    room_id = Column(String, ForeignKey("rooms.id"), nullable=False)
    store_id = Column(String, index=True, nullable=False)

    deposit_type = Column(String, nullable=False)  # uang, identitas
    amount = Column(Float, nullable=True)
    identity_type = Column(String, nullable=True)  # KTP, SIM, Paspor
    identity_owner_name = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(String, nullable=False, default="active")  # active, returned
    returned_at = Column(DateTime, nullable=True)
    returned_by = Column(String, nullable=True)

    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    user_name = Column(String)
    user_role = Column(String)
    action_type = Column(String, nullable=False)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=True)
    description = Column(Text)
    store_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.now)


class DisplaySetting(Base):
    __tablename__ = "display_settings"
    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


# ==========================================
# INICIALIZACIÓN
# ==========================================

DEMO_ROOMS = ["101", "102", "103", "104", "105", "201", "202", "203"]


def init_db(bind=None, store_id: str = DEFAULT_STORE_ID):
    bind = bind or engine
    Base.metadata.create_all(bind)

    session = sessionmaker(bind=bind)()
    try:
        # 1. Habitaciones de ejemplo
        if session.query(Room).count() == 0:
            for name in DEMO_ROOMS:
                session.add(Room(store_id=store_id, name=name, status="Aktif"))
            session.commit()
            logger.info(f"init_db: {len(DEMO_ROOMS)} habitaciones creadas para store {store_id}")

        # 2. Usuario admin (solo si hay password configurado)
        if ADMIN_PASSWORD and session.query(Profile).filter(Profile.username == ADMIN_USERNAME).count() == 0:
            session.add(Profile(
                store_id=store_id,
                username=ADMIN_USERNAME,
                password_hash=hash_password(ADMIN_PASSWORD),
                name="Administrator",
                role="admin",
                permissions="create_bookings,edit_bookings,delete_bookings",
            ))
            session.commit()
            logger.info(f"init_db: admin '{ADMIN_USERNAME}' creado")
    finally:
        session.close()


if __name__ == "__main__":
    init_db()
