import threading
import time
import unittest

from realtime import Debouncer, RealtimeHub


class RealtimeHubTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.hub = RealtimeHub()
        self.calls = []

    def test_publish_reaches_subscribers_of_same_table_and_store(self) -> None:
        self.hub.subscribe("bookings", "s1", lambda: self.calls.append("s1"))
        self.hub.subscribe("bookings", "s2", lambda: self.calls.append("s2"))
        self.hub.subscribe("rooms", "s1", lambda: self.calls.append("rooms"))
        self.hub.subscribe("bookings", None, lambda: self.calls.append("any"))

        self.hub.publish("bookings", "s1")
        self.assertEqual(sorted(self.calls), ["any", "s1"])

    def test_unsubscribe_stops_delivery(self) -> None:
        handle = self.hub.subscribe("room_deposits", "s1", lambda: self.calls.append(1))
        self.hub.unsubscribe(handle)
        self.hub.publish("room_deposits", "s1")
        self.assertEqual(self.calls, [])
        self.assertEqual(self.hub.subscriber_count(), 0)

    def test_unknown_table_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.hub.subscribe("invoices", "s1", lambda: None)

    def test_broken_callback_does_not_block_others(self) -> None:
        def broken():
            raise RuntimeError("boom")

        self.hub.subscribe("rooms", "s1", broken)
        self.hub.subscribe("rooms", "s1", lambda: self.calls.append("ok"))
        with self.assertLogs("pms_kalender.realtime", level="ERROR"):
            self.hub.publish("rooms", "s1")
        self.assertEqual(self.calls, ["ok"])


class DebouncerTestCase(unittest.TestCase):
    def test_burst_collapses_into_one_call(self) -> None:
        fired = threading.Event()
        calls = []

        def refresh():
            calls.append(time.monotonic())
            fired.set()

        debouncer = Debouncer(refresh, wait=0.05)
        for _ in range(5):
            debouncer.trigger()
        self.assertTrue(fired.wait(2))
        time.sleep(0.15)
        self.assertEqual(len(calls), 1)

    def test_cancel_drops_pending_call(self) -> None:
        calls = []
        debouncer = Debouncer(lambda: calls.append(1), wait=0.05)
        debouncer.trigger()
        debouncer.cancel()
        time.sleep(0.15)
        self.assertEqual(calls, [])


if __name__ == "__main__":
    unittest.main()
