import datetime as dt
from types import SimpleNamespace

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, Booking, Profile, Room
from schemas import UserDTO
from security import hash_password

STORE = "store-1"
ALL_PERMISSIONS = "create_bookings,edit_bookings,delete_bookings"


def make_session_factory():
    """In-memory SQLite shared across threads, with the schema created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine, sessionmaker(bind=engine)


def add_room(db, name, status="Aktif", store_id=STORE, room_id=None):
    room = Room(id=room_id or f"room-{name}", store_id=store_id, name=name, status=status)
    db.add(room)
    db.commit()
    return room


def add_profile(db, username, role="staff", permissions=ALL_PERMISSIONS, password="Password!23", name=None):
    profile = Profile(
        id=f"user-{username}",
        store_id=STORE,
        username=username,
        password_hash=hash_password(password),
        name=name or username.title(),
        role=role,
        permissions=permissions,
    )
    db.add(profile)
    db.commit()
    return UserDTO(
        id=profile.id,
        username=username,
        name=profile.name,
        role=role,
        permissions=profile.permission_list,
    )


def add_booking(db, room, day, duration=1, status="BO", booking_id=None, **fields):
    values = dict(
        store_id=room.store_id,
        room_id=room.id,
        customer_name="Budi Santoso",
        phone="081200000000",
        date=day,
        duration=duration,
        status=status,
        created_by="user-admin",
    )
    values.update(fields)
    if booking_id:
        values["id"] = booking_id
    booking = Booking(**values)
    db.add(booking)
    db.commit()
    return booking


def stub_booking(booking_id, day, duration=1, room_id="r1", status="BO"):
    """Plain object with the attributes the pure calendar functions read."""
    return SimpleNamespace(id=booking_id, room_id=room_id, date=day, duration=duration, status=status)


def days(start, count):
    return [start + dt.timedelta(days=i) for i in range(count)]
