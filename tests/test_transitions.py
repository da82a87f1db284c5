import datetime as dt
import unittest

from errors import InvalidTransition, ValidationError
from transitions import (
    DepositStep, RoomDateRule, STATUS_EFFECTS,
    assert_transition, available_transitions, deposit_step_for, status_label,
)


class StatusMachineTestCase(unittest.TestCase):
    def test_offered_transitions(self) -> None:
        self.assertEqual(available_transitions("BO"), ["CI", "BATAL"])
        self.assertEqual(available_transitions("CI"), ["CO", "BATAL"])
        self.assertEqual(available_transitions("CO"), [])
        self.assertEqual(available_transitions("BATAL"), [])
        self.assertEqual(available_transitions("??"), [])

    def test_terminal_states_reject_every_target(self) -> None:
        for current in ("CO", "BATAL"):
            for target in ("BO", "CI", "CO", "BATAL"):
                with self.assertRaises(InvalidTransition):
                    assert_transition(current, target)

    def test_skipping_check_in_is_invalid(self) -> None:
        with self.assertRaises(InvalidTransition) as ctx:
            assert_transition("BO", "CO")
        self.assertEqual(ctx.exception.current, "BO")
        self.assertEqual(ctx.exception.target, "CO")

    def test_unknown_target_is_a_validation_error(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            assert_transition("BO", "CHECKIN")
        self.assertNotIsInstance(ctx.exception, InvalidTransition)

    def test_effects_table(self) -> None:
        self.assertEqual(assert_transition("BO", "CI").stamps, ("checked_in_by", "checked_in_at"))
        self.assertIsNone(STATUS_EFFECTS["CI"].room_status)

        checkout = assert_transition("CI", "CO")
        self.assertEqual(checkout.stamps, ("checked_out_by", "checked_out_at"))
        self.assertEqual(checkout.room_status.status, "Kotor")
        self.assertEqual(checkout.room_status.on, RoomDateRule.TODAY)

        cancel = assert_transition("BO", "BATAL")
        self.assertIsNone(cancel.stamps)
        self.assertEqual(cancel.room_status.status, "Aktif")

    def test_room_status_date_rules(self) -> None:
        booking_day = dt.date(2024, 3, 10)
        today = dt.date(2024, 3, 14)
        self.assertEqual(STATUS_EFFECTS["CO"].room_status.target_date(booking_day, today), today)
        self.assertEqual(STATUS_EFFECTS["BATAL"].room_status.target_date(booking_day, today), booking_day)

    def test_labels(self) -> None:
        self.assertEqual(status_label("CI"), "Check In")
        self.assertEqual(status_label("XYZ"), "XYZ")


class DepositGateTestCase(unittest.TestCase):
    def test_check_in_without_deposit_asks_for_capture(self) -> None:
        self.assertEqual(deposit_step_for("CI", has_active_deposit=False), DepositStep.CAPTURE)

    def test_check_in_with_deposit_proceeds(self) -> None:
        self.assertIsNone(deposit_step_for("CI", has_active_deposit=True))

    def test_check_out_with_deposit_asks_for_return(self) -> None:
        self.assertEqual(deposit_step_for("CO", has_active_deposit=True), DepositStep.RETURN)

    def test_check_out_without_deposit_proceeds(self) -> None:
        self.assertIsNone(deposit_step_for("CO", has_active_deposit=False))

    def test_cancel_never_gated(self) -> None:
        self.assertIsNone(deposit_step_for("BATAL", has_active_deposit=True))
        self.assertIsNone(deposit_step_for("BATAL", has_active_deposit=False))


if __name__ == "__main__":
    unittest.main()
