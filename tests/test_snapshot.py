"""Process snapshot store: partial updates and tag mapping."""

import pytest

from digester.snapshot import ProcessSnapshot, SnapshotStore


class TestSnapshotStore:

    def test_partial_update_keeps_other_fields(self):
        store = SnapshotStore(ProcessSnapshot(li100=50, ti300=42.0))
        store.update(li400=30)

        snap = store.current()
        assert snap.li400 == 30
        assert snap.li100 == 50
        assert snap.ti300 == 42.0

    def test_snapshots_are_immutable_values(self):
        store = SnapshotStore()
        before = store.current()
        store.update(pi300=120)

        assert before.pi300 == 0
        assert store.current().pi300 == 120
        with pytest.raises(AttributeError):
            before.pi300 = 1

    def test_apply_items_maps_tags(self):
        store = SnapshotStore()
        snap = store.apply_items({"LI400": "28", "LS+300": 1, "TI300": 85, "PI300": 14.7})

        assert snap.li400 == 28
        assert snap.ls_plus_300 is True
        assert snap.ti300 == 85.0
        assert snap.pi300 == 14

    def test_apply_items_skips_unknown_and_bad_values(self):
        store = SnapshotStore(ProcessSnapshot(li100=10))
        snap = store.apply_items({"FI100": 3, "LI100": "n/a", "LI200": 7})

        assert snap.li100 == 10
        assert snap.li200 == 7
