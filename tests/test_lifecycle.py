import dataclasses
import os
import tempfile
import threading
import unittest
from datetime import timedelta
from unittest.mock import patch

from tests.support import FIXED_NOW, connected_manager, new_paste
from wastebin.errors import Gone, InvalidID, NotFound
from wastebin.lifecycle import LifecycleEvaluator, PasteState
from wastebin.store import PasteStore


class LifecycleTests(unittest.TestCase):
    def setUp(self):
        self.connections = connected_manager()
        self.addCleanup(self.connections.close)
        self.store = PasteStore(self.connections)
        self.lifecycle = LifecycleEvaluator(self.store, clock=lambda: FIXED_NOW)

    def create(self, **kwargs):
        kwargs.setdefault("now", FIXED_NOW)
        return self.store.create(new_paste(**kwargs))

    def test_evaluate_states(self):
        live = self.create()
        burn = self.create(burn=True)
        later = FIXED_NOW + timedelta(hours=2)

        self.assertIs(self.lifecycle.evaluate(live, FIXED_NOW), PasteState.LIVE)
        self.assertIs(self.lifecycle.evaluate(burn, FIXED_NOW), PasteState.CONSUMED)
        self.assertIs(self.lifecycle.evaluate(live, later), PasteState.EXPIRED)
        # Expiry wins over burn
        self.assertIs(self.lifecycle.evaluate(burn, later), PasteState.EXPIRED)

    def test_expiry_boundary_is_exclusive(self):
        paste = self.create(expires_in=timedelta(minutes=1))
        self.assertIs(self.lifecycle.evaluate(paste, paste.expiry_timestamp), PasteState.LIVE)
        self.assertIs(
            self.lifecycle.evaluate(paste, paste.expiry_timestamp + timedelta(microseconds=1)),
            PasteState.EXPIRED,
        )

    def test_live_paste_is_served_repeatedly(self):
        paste = self.create(content="hello")
        for _ in range(3):
            self.assertEqual(self.lifecycle.read(str(paste.id)).content, "hello")
        self.assertEqual(self.store.count(), 1)

    def test_expired_paste_is_gone_then_not_found(self):
        paste = self.create(expires_in=timedelta(minutes=1))
        later = FIXED_NOW + timedelta(minutes=2)

        with self.assertRaises(Gone):
            self.lifecycle.read(str(paste.id), later)
        self.assertEqual(self.store.count(), 0)
        with self.assertRaises(NotFound):
            self.lifecycle.read(str(paste.id), later)

    def test_burn_serves_once(self):
        paste = self.create(content="only once", burn=True)

        served = self.lifecycle.read(str(paste.id))
        self.assertEqual(served.content, "only once")
        self.assertEqual(self.store.count(), 0)
        with self.assertRaises(NotFound):
            self.lifecycle.read(str(paste.id))

    def test_expired_burn_paste_is_not_served(self):
        paste = self.create(burn=True, expires_in=timedelta(minutes=1))
        with self.assertRaises(Gone):
            self.lifecycle.read(str(paste.id), FIXED_NOW + timedelta(minutes=5))

    def test_burn_race_loser_gets_gone(self):
        paste = self.create(burn=True)
        stale = self.store.fetch_by_id(paste.id)
        # Another reader consumes the paste between our fetch and our delete
        self.store.take_by_id(paste.id)

        with patch.object(self.store, "fetch_by_id", return_value=stale):
            with self.assertRaises(Gone):
                self.lifecycle.read(str(paste.id))

    def test_burn_paste_expiring_before_the_take_is_not_served(self):
        paste = self.create(burn=True, expires_in=timedelta(minutes=1))
        later = FIXED_NOW + timedelta(minutes=2)
        # The reader saw the paste while it was still live
        stale = dataclasses.replace(paste, expiry_timestamp=later + timedelta(hours=1))

        with patch.object(self.store, "fetch_by_id", return_value=stale):
            with self.assertRaises(Gone):
                self.lifecycle.read(str(paste.id), later)
        self.assertEqual(self.store.count(), 1)

    def test_expiry_race_loser_gets_gone(self):
        paste = self.create(expires_in=timedelta(minutes=1))
        stale = self.store.fetch_by_id(paste.id)
        self.store.delete_by_id(paste.id)

        with patch.object(self.store, "fetch_by_id", return_value=stale):
            with self.assertRaises(Gone):
                self.lifecycle.read(str(paste.id), FIXED_NOW + timedelta(minutes=2))

    def test_missing_and_invalid_ids(self):
        with self.assertRaises(InvalidID):
            self.lifecycle.read("definitely-not-a-uuid")
        with self.assertRaises(NotFound):
            self.lifecycle.read("00000000-0000-4000-8000-000000000000")


class ConcurrentBurnTests(unittest.TestCase):
    """Readers racing for one burn-after-read paste on a shared SQLite file."""

    def test_content_is_served_at_most_once(self):
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        connections = connected_manager(DB_PATH=os.path.join(tmpdir.name, "race.db"))
        self.addCleanup(connections.close)
        store = PasteStore(connections)
        lifecycle = LifecycleEvaluator(store)
        paste = store.create(new_paste(content="once", burn=True))

        barrier = threading.Barrier(8)
        outcomes = []
        lock = threading.Lock()

        def reader():
            barrier.wait()
            try:
                result = lifecycle.read(str(paste.id)).content
            except (Gone, NotFound) as e:
                result = type(e).__name__
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=reader) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

        self.assertEqual(len(outcomes), 8)
        self.assertEqual(outcomes.count("once"), 1)
        self.assertTrue(set(outcomes) <= {"once", "Gone", "NotFound"})
        self.assertEqual(store.count(), 0)


if __name__ == "__main__":
    unittest.main()
