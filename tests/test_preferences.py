import unittest

from pydantic import ValidationError

from preferences import InMemoryKeyValueStore, PREFERENCES_KEY, PreferencesService, SqlKeyValueStore
from support import make_session_factory


class PreferencesServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryKeyValueStore()
        self.service = PreferencesService(self.store)

    def test_defaults_when_nothing_saved(self) -> None:
        prefs = self.service.load()
        self.assertEqual(prefs.display_size, "normal")
        self.assertEqual(prefs.status_colors["CI"], "#90EE90")

    def test_update_persists_and_notifies(self) -> None:
        received = []
        self.service.subscribe(received.append)

        updated = self.service.update(display_size="large", primary_color="#112233")
        self.assertEqual(updated.primary_color, "#112233")
        self.assertEqual(len(received), 1)
        self.assertEqual(received[0].display_size, "large")

        reloaded = PreferencesService(self.store).load()
        self.assertEqual(reloaded.display_size, "large")

    def test_partial_status_colors_merge_with_current(self) -> None:
        self.service.update(status_colors={"BO": "#000000"})
        prefs = self.service.update(status_colors={"CI": "#ffffff"})
        self.assertEqual(prefs.status_colors["BO"], "#000000")
        self.assertEqual(prefs.status_colors["CI"], "#FFFFFF")
        self.assertEqual(prefs.status_colors["BATAL"], "#9CA3AF")

    def test_invalid_values_are_rejected_and_not_saved(self) -> None:
        with self.assertRaises(ValidationError):
            self.service.update(primary_color="purple")
        with self.assertRaises(ValidationError):
            self.service.update(status_colors={"XX": "#000000"})
        self.assertIsNone(self.store.get(PREFERENCES_KEY))

    def test_unsubscribe(self) -> None:
        received = []
        handle = self.service.subscribe(received.append)
        self.service.unsubscribe(handle)
        self.service.update(font_weight="bold")
        self.assertEqual(received, [])

    def test_corrupt_value_falls_back_to_defaults(self) -> None:
        self.store.set(PREFERENCES_KEY, "{not json")
        with self.assertLogs("pms_kalender.preferences", level="ERROR"):
            prefs = self.service.load()
        self.assertEqual(prefs.display_size, "normal")


class SqlKeyValueStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, Session = make_session_factory()
        self.store = SqlKeyValueStore(Session)

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_last_writer_wins(self) -> None:
        self.assertIsNone(self.store.get("k"))
        self.store.set("k", "one")
        self.store.set("k", "two")
        self.assertEqual(self.store.get("k"), "two")

    def test_preferences_round_through_table(self) -> None:
        PreferencesService(self.store).update(display_size="compact")
        self.assertEqual(PreferencesService(self.store).load().display_size, "compact")


if __name__ == "__main__":
    unittest.main()
