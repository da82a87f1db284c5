import datetime as dt
import unittest
from unittest import mock

from sqlalchemy.exc import OperationalError

from database import ActivityLog, Booking, RoomDailyStatus, RoomDeposit
from errors import BackendError, InvalidTransition, NotAuthenticated, NotFound, PermissionDenied, ValidationError
from occupancy import visible_dates
from realtime import hub
from schemas import BookingCreate, DepositCreate
from services import (
    AuthService, BookingService, CalendarService, DepositService, RoomStatusService,
)
from support import STORE, add_booking, add_profile, add_room, make_session_factory


class ServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, self.Session = make_session_factory()
        self.db = self.Session()
        self.admin = add_profile(self.db, "admin", role="admin", permissions="", name="Admin Satu")
        self.staff = add_profile(self.db, "sari", role="staff", name="Sari")
        self.viewer = add_profile(self.db, "tamu", role="staff", permissions="")
        self.room = add_room(self.db, "101")
        self.today = dt.date(2024, 6, 1)

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def _reload(self, booking_id):
        self.db.expire_all()
        return self.db.query(Booking).filter(Booking.id == booking_id).one()

    def _daily(self, day):
        return self.db.query(RoomDailyStatus).filter(
            RoomDailyStatus.room_id == self.room.id, RoomDailyStatus.date == day,
        ).first()


class AuthServiceTestCase(ServiceTestCase):
    def test_authenticate(self) -> None:
        user = AuthService.authenticate(self.db, "sari", "Password!23")
        self.assertEqual(user.id, "user-sari")
        self.assertIn("create_bookings", user.permissions)
        self.assertIsNone(AuthService.authenticate(self.db, "sari", "wrong"))
        self.assertIsNone(AuthService.authenticate(self.db, "nobody", "Password!23"))

    def test_admin_bypasses_permission_checks(self) -> None:
        self.assertTrue(self.admin.has_permission("delete_bookings"))
        self.assertFalse(self.viewer.has_permission("create_bookings"))


class ChangeStatusTestCase(ServiceTestCase):
    def test_check_in_stamps_actor(self) -> None:
        booking = add_booking(self.db, self.room, self.today, duration=2)
        dto = BookingService.change_status(self.db, booking.id, "CI", self.staff)

        self.assertEqual(dto.status, "CI")
        stored = self._reload(booking.id)
        self.assertEqual(stored.checked_in_by, self.staff.id)
        self.assertIsNotNone(stored.checked_in_at)
        self.assertEqual(self.db.query(RoomDailyStatus).count(), 0)

    def test_check_out_marks_room_dirty_on_todays_date(self) -> None:
        booking = add_booking(self.db, self.room, dt.date(2024, 3, 10), duration=3, status="CI")
        checkout_day = dt.date(2024, 3, 12)
        BookingService.change_status(self.db, booking.id, "CO", self.staff, today=checkout_day)

        stored = self._reload(booking.id)
        self.assertEqual(stored.status, "CO")
        self.assertEqual(stored.checked_out_by, self.staff.id)
        self.assertEqual(self._daily(checkout_day).status, "Kotor")
        self.assertIsNone(self._daily(dt.date(2024, 3, 10)))

    def test_cancel_marks_booking_date_ready_and_never_dirty(self) -> None:
        booking = add_booking(self.db, self.room, dt.date(2024, 3, 10))
        BookingService.change_status(self.db, booking.id, "BATAL", self.staff, today=dt.date(2024, 3, 8))

        self.assertEqual(self._daily(dt.date(2024, 3, 10)).status, "Aktif")
        self.assertEqual(self.db.query(RoomDailyStatus).filter(RoomDailyStatus.status == "Kotor").count(), 0)

    def test_cancel_overwrites_existing_dirty_status(self) -> None:
        day = dt.date(2024, 3, 10)
        self.db.add(RoomDailyStatus(room_id=self.room.id, date=day, status="Kotor"))
        self.db.commit()
        booking = add_booking(self.db, self.room, day)

        BookingService.change_status(self.db, booking.id, "BATAL", self.staff)
        self.db.expire_all()
        self.assertEqual(self._daily(day).status, "Aktif")
        self.assertEqual(self.db.query(RoomDailyStatus).count(), 1)

    def test_unauthenticated_change_is_rejected(self) -> None:
        booking = add_booking(self.db, self.room, self.today)
        with self.assertRaises(NotAuthenticated):
            BookingService.change_status(self.db, booking.id, "CI", None)
        self.assertEqual(self._reload(booking.id).status, "BO")

    def test_invalid_and_unknown_targets(self) -> None:
        booking = add_booking(self.db, self.room, self.today, status="CO")
        with self.assertRaises(InvalidTransition):
            BookingService.change_status(self.db, booking.id, "CI", self.staff)
        with self.assertRaises(ValidationError):
            BookingService.change_status(self.db, booking.id, "XX", self.staff)
        with self.assertRaises(NotFound):
            BookingService.change_status(self.db, "missing", "CI", self.staff)

    def test_failed_room_status_write_rolls_back_status(self) -> None:
        booking = add_booking(self.db, self.room, self.today, status="CI")
        error = OperationalError("INSERT INTO room_daily_status", {}, Exception("disk I/O error"))

        with mock.patch("services._upsert_daily_status", side_effect=error):
            with self.assertRaises(BackendError) as ctx:
                BookingService.change_status(self.db, booking.id, "CO", self.staff)

        self.assertEqual(str(ctx.exception), "Gagal mengubah status")
        stored = self._reload(booking.id)
        self.assertEqual(stored.status, "CI")
        self.assertIsNone(stored.checked_out_by)

    def test_check_in_with_deposit_is_one_transaction(self) -> None:
        booking = add_booking(self.db, self.room, self.today, customer_name="Rina")
        deposit = DepositCreate(deposit_type="identitas", identity_type="KTP")
        BookingService.change_status(self.db, booking.id, "CI", self.staff, deposit=deposit)

        stored = self.db.query(RoomDeposit).one()
        self.assertEqual(stored.status, "active")
        self.assertEqual(stored.identity_owner_name, "Rina")
        self.assertEqual(stored.created_by, self.staff.id)

    def test_check_out_with_return_closes_active_deposits(self) -> None:
        booking = add_booking(self.db, self.room, self.today, status="CI")
        DepositService.create_deposit(self.db, self.room.id, DepositCreate(amount=200000), self.staff)

        BookingService.change_status(self.db, booking.id, "CO", self.staff, return_deposits=True)
        self.db.expire_all()
        deposit = self.db.query(RoomDeposit).one()
        self.assertEqual(deposit.status, "returned")
        self.assertEqual(deposit.returned_by, self.staff.id)
        self.assertIsNotNone(deposit.returned_at)

    def test_deposit_only_allowed_on_check_in(self) -> None:
        booking = add_booking(self.db, self.room, self.today)
        with self.assertRaises(ValidationError):
            BookingService.change_status(
                self.db, booking.id, "BATAL", self.staff, deposit=DepositCreate(amount=1000),
            )
        self.assertEqual(self.db.query(RoomDeposit).count(), 0)

    def test_check_in_deposit_rejected_when_room_already_holds_one(self) -> None:
        booking = add_booking(self.db, self.room, self.today)
        DepositService.create_deposit(self.db, self.room.id, DepositCreate(amount=100000), self.staff)

        with self.assertRaises(ValidationError):
            BookingService.change_status(
                self.db, booking.id, "CI", self.staff, deposit=DepositCreate(amount=50000),
            )

        self.assertEqual(self._reload(booking.id).status, "BO")
        active = self.db.query(RoomDeposit).filter(RoomDeposit.status == "active").all()
        self.assertEqual(len(active), 1)
        self.assertEqual(active[0].amount, 100000)

    def test_change_is_logged_and_published(self) -> None:
        booking = add_booking(self.db, self.room, self.today, status="CI")
        seen = []
        handles = [
            hub.subscribe("bookings", STORE, lambda: seen.append("bookings")),
            hub.subscribe("room_daily_status", STORE, lambda: seen.append("room_daily_status")),
        ]
        try:
            BookingService.change_status(self.db, booking.id, "CO", self.staff)
        finally:
            for handle in handles:
                hub.unsubscribe(handle)

        self.assertEqual(seen, ["bookings", "room_daily_status"])
        log = self.db.query(ActivityLog).one()
        self.assertEqual(log.action_type, "check-out")
        self.assertEqual(log.entity_id, booking.id)
        self.assertEqual(log.user_name, "Sari")

    def test_activity_log_failure_does_not_undo_change(self) -> None:
        booking = add_booking(self.db, self.room, self.today)
        with mock.patch("services.ActivityLog", side_effect=OperationalError("INSERT", {}, Exception("x"))):
            with self.assertLogs("pms_kalender.services", level="ERROR"):
                dto = BookingService.change_status(self.db, booking.id, "CI", self.staff)
        self.assertEqual(dto.status, "CI")
        self.assertEqual(self._reload(booking.id).status, "CI")


class BookingCrudTestCase(ServiceTestCase):
    def _form(self, **overrides):
        values = dict(
            store_id=STORE, room_id=self.room.id, date=self.today, duration=2,
            customer_name="  Dewi  ", phone="0812 3456 789",
        )
        values.update(overrides)
        return BookingCreate(**values)

    def test_create_booking_starts_confirmed(self) -> None:
        dto = BookingService.create_booking(self.db, self._form(), self.staff)
        self.assertEqual(dto.status, "BO")
        self.assertEqual(dto.customer_name, "Dewi")
        self.assertEqual(dto.admin_name, "Sari")
        self.assertEqual(dto.room_name, "101")

        stored = self._reload(dto.id)
        self.assertEqual(stored.confirmed_by, self.staff.id)
        self.assertIsNotNone(stored.confirmed_at)

    def test_create_requires_permission_and_active_room(self) -> None:
        with self.assertRaises(NotAuthenticated):
            BookingService.create_booking(self.db, self._form(), None)
        with self.assertRaises(PermissionDenied):
            BookingService.create_booking(self.db, self._form(), self.viewer)

        blocked = add_room(self.db, "102", status="Renovasi")
        with self.assertRaises(ValidationError):
            BookingService.create_booking(self.db, self._form(room_id=blocked.id), self.staff)
        self.assertEqual(self.db.query(Booking).count(), 0)

    def test_update_and_delete(self) -> None:
        dto = BookingService.create_booking(self.db, self._form(), self.staff)
        updated = BookingService.update_booking(self.db, dto.id, self._form(duration=4, note="Late"), self.staff)
        self.assertEqual(updated.duration, 4)
        self.assertEqual(updated.note, "Late")

        with self.assertRaises(PermissionDenied):
            BookingService.delete_booking(self.db, dto.id, self.viewer)
        BookingService.delete_booking(self.db, dto.id, self.staff)
        self.assertIsNone(BookingService.get_booking(self.db, dto.id))

    def test_form_parses_iso_date(self) -> None:
        form = self._form(date="2024-06-03")
        self.assertEqual(form.date, dt.date(2024, 6, 3))

    def test_update_checks_the_new_room(self) -> None:
        booking = add_booking(self.db, self.room, self.today)
        blocked = add_room(self.db, "102", status="Renovasi")
        elsewhere = add_room(self.db, "201", store_id="store-2")

        with self.assertRaises(ValidationError):
            BookingService.update_booking(self.db, booking.id, self._form(room_id=blocked.id), self.staff)
        with self.assertRaises(NotFound):
            BookingService.update_booking(self.db, booking.id, self._form(room_id=elsewhere.id), self.staff)
        self.assertEqual(self._reload(booking.id).room_id, self.room.id)

        moved = add_room(self.db, "103")
        dto = BookingService.update_booking(self.db, booking.id, self._form(room_id=moved.id), self.staff)
        self.assertEqual(dto.room_name, "103")

    def test_cancelled_booking_only_editable_by_admin(self) -> None:
        booking = add_booking(self.db, self.room, self.today, status="BATAL")
        with self.assertRaises(PermissionDenied):
            BookingService.update_booking(self.db, booking.id, self._form(), self.staff)
        BookingService.delete_booking(self.db, booking.id, self.admin)
        self.assertEqual(self.db.query(Booking).count(), 0)


class WindowAndSearchTestCase(ServiceTestCase):
    def test_window_bookings_include_long_stays_and_skip_terminal(self) -> None:
        dates = visible_dates(self.today)
        long_stay = add_booking(self.db, self.room, dates[0] - dt.timedelta(days=40), duration=45)
        add_booking(self.db, self.room, dates[0] - dt.timedelta(days=10), duration=2)
        add_booking(self.db, self.room, self.today, status="CO")
        add_booking(self.db, self.room, self.today, status="BATAL")
        inside = add_booking(self.db, self.room, self.today, duration=2)
        add_booking(self.db, self.room, dates[-1] + dt.timedelta(days=1))

        found = BookingService.window_bookings(self.db, STORE, dates)
        self.assertEqual({b.id for b in found}, {long_stay.id, inside.id})

    def test_search_matches_phone_outside_window(self) -> None:
        old = add_booking(self.db, self.room, dt.date(2022, 1, 5), phone="081234567890", status="CO")
        add_booking(self.db, self.room, self.today, phone="089999999999")

        results = BookingService.search(self.db, STORE, "081234")
        self.assertEqual([r.id for r in results], [old.id])
        self.assertEqual(results[0].room_name, "101")

    def test_search_is_case_insensitive_and_newest_first(self) -> None:
        add_booking(self.db, self.room, dt.date(2024, 1, 1), customer_name="Andi Wijaya", booking_id="b-old")
        add_booking(self.db, self.room, dt.date(2024, 5, 1), customer_name="ANDI Pratama", booking_id="b-new")
        add_booking(self.db, self.room, dt.date(2024, 5, 2), bid="ANDI-77", customer_name="Lina", booking_id="b-bid")

        results = BookingService.search(self.db, STORE, "andi")
        self.assertEqual([r.id for r in results], ["b-bid", "b-new", "b-old"])

    def test_search_blank_and_wildcards(self) -> None:
        add_booking(self.db, self.room, self.today, customer_name="Budi")
        self.assertEqual(BookingService.search(self.db, STORE, "   "), [])
        self.assertEqual(BookingService.search(self.db, STORE, "%"), [])

    def test_search_is_capped(self) -> None:
        for i in range(55):
            add_booking(self.db, self.room, self.today - dt.timedelta(days=i), customer_name=f"Tamu {i}")
        self.assertEqual(len(BookingService.search(self.db, STORE, "tamu")), 50)


class RoomStatusAndDepositTestCase(ServiceTestCase):
    def test_set_daily_status_is_last_writer_wins(self) -> None:
        RoomStatusService.set_daily_status(self.db, self.room.id, self.today, "Kotor", self.staff)
        RoomStatusService.set_daily_status(self.db, self.room.id, self.today, "Aktif", self.admin)

        status_map = RoomStatusService.get_status_map(self.db, STORE, visible_dates(self.today))
        entry = status_map[(self.room.id, self.today)]
        self.assertEqual(entry.status, "Aktif")
        self.assertEqual(entry.updated_by_name, "Admin Satu")
        self.assertEqual(self.db.query(RoomDailyStatus).count(), 1)

    def test_set_daily_status_requires_user(self) -> None:
        with self.assertRaises(NotAuthenticated):
            RoomStatusService.set_daily_status(self.db, self.room.id, self.today, "Aktif", None)

    def test_one_active_deposit_per_room(self) -> None:
        first = DepositService.create_deposit(self.db, self.room.id, DepositCreate(amount=150000), self.staff)
        self.assertEqual(first.description, "Rp 150.000")
        with self.assertRaises(ValidationError):
            DepositService.create_deposit(self.db, self.room.id, DepositCreate(amount=1000), self.staff)

        self.assertEqual(DepositService.active_room_ids(self.db, STORE), {self.room.id})
        returned = DepositService.return_deposit(self.db, first.id, self.staff)
        self.assertEqual(returned.status, "returned")
        self.assertIsNone(DepositService.get_active_deposit(self.db, self.room.id))
        with self.assertRaises(ValidationError):
            DepositService.return_deposit(self.db, first.id, self.staff)

    def test_blocked_room_rejects_deposit(self) -> None:
        blocked = add_room(self.db, "102", status="Renovasi")
        with self.assertRaises(ValidationError):
            DepositService.create_deposit(self.db, blocked.id, DepositCreate(amount=1000), self.staff)

    def test_delete_deposit(self) -> None:
        deposit = DepositService.create_deposit(
            self.db, self.room.id, DepositCreate(deposit_type="identitas", identity_type="SIM"), self.staff,
        )
        DepositService.delete_deposit(self.db, deposit.id, self.staff)
        self.assertEqual(DepositService.list_active(self.db, STORE), [])


class CalendarServiceTestCase(ServiceTestCase):
    def test_grid_rows_and_cells(self) -> None:
        add_room(self.db, "102", status="Renovasi")
        add_booking(self.db, self.room, self.today, duration=3, booking_id="B1")
        self.db.add(RoomDailyStatus(room_id=self.room.id, date=self.today + dt.timedelta(days=3), status="Kotor"))
        self.db.commit()

        grid = CalendarService.get_grid(self.db, STORE, self.today, self.staff)
        self.assertEqual([r.room.name for r in grid.rows], ["101"])

        row = grid.rows[0]
        self.assertEqual(len(row.cells), 12)
        start = next(c for c in row.cells if c.kind == "START")
        self.assertEqual((start.date, start.colspan, start.booking.id), (self.today, 3, "B1"))
        self.assertEqual(start.available_transitions, ["CI", "BATAL"])
        dirty = next(c for c in row.cells if c.date == self.today + dt.timedelta(days=3))
        self.assertEqual(dirty.action, "mark_ready")
        self.assertEqual(sum(c.colspan for c in row.cells), 14)

    def test_admin_sees_blocked_rooms(self) -> None:
        add_room(self.db, "102", status="Renovasi")
        grid = CalendarService.get_grid(self.db, STORE, self.today, self.admin)
        blocked = [r for r in grid.rows if r.blocked]
        self.assertEqual([r.room.name for r in blocked], ["102"])
        self.assertTrue(all(c.action is None for c in blocked[0].cells))


if __name__ == "__main__":
    unittest.main()
