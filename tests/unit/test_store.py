"""Tests for the in-memory state store."""

from unittest.mock import Mock

import pytest

from diff_digest.state.schema import GenerationRecord, GenerationState, PaginationState
from diff_digest.state.store import StateChange, StateStore
from diff_digest.utils.exceptions import StateError
from tests.helpers.fakes import make_item


class TestItems:
    """Test the item sequence."""

    def test_replace_keeps_first_occurrence(self):
        """Test duplicates within one batch keep the first item."""
        store = StateStore()
        first = make_item("1", description="first")
        held = store.replace_items([first, make_item("2"), make_item("1", description="second")])
        assert held == 2
        assert [i.id for i in store.items] == ["1", "2"]
        assert store.get_item("1") is first

    def test_append_skips_held_ids(self, store: StateStore):
        """Test appending only adds unseen ids, in order."""
        added = store.append_items([make_item("3"), make_item("4"), make_item("5")])
        assert added == 2
        assert [i.id for i in store.items] == ["1", "2", "3", "4", "5"]

    def test_get_unknown_item(self, store: StateStore):
        with pytest.raises(StateError):
            store.get_item("missing")

    def test_items_is_a_snapshot(self, store: StateStore):
        items = store.items
        store.append_items([make_item("9")])
        assert len(items) == 3


class TestRecords:
    """Test generation records."""

    def test_ensure_record_creates_idle(self, store: StateStore):
        record = store.ensure_record("1")
        assert record.state is GenerationState.IDLE
        assert store.ensure_record("1") is record

    def test_ensure_record_requires_item(self, store: StateStore):
        """Test records cannot exist without their item."""
        with pytest.raises(StateError):
            store.ensure_record("missing")

    def test_prune_orphans_keeps_generating(self, store: StateStore):
        """Test orphan pruning leaves running sessions alone."""
        store.ensure_record("1").state = GenerationState.COMPLETE
        store.ensure_record("2").state = GenerationState.GENERATING
        store.replace_items([make_item("3")])

        assert store.prune_orphan_records() == ["1"]
        assert store.get_record("1") is None
        assert store.get_record("2") is not None

    def test_drop_record(self, store: StateStore):
        store.ensure_record("1")
        assert store.drop_record("1")
        assert not store.drop_record("1")


class TestNotifications:
    """Test change notification."""

    def test_notifications(self, store: StateStore):
        listener = Mock()
        store.subscribe(listener)

        store.append_items([make_item("4")])
        store.commit_record(store.ensure_record("4"))
        store.set_pagination(PaginationState(cursor=2, initial_fetch_done=True))
        store.reset()

        assert [c.args for c in listener.call_args_list] == [
            (StateChange.ITEMS, None),
            (StateChange.RECORDS, "4"),
            (StateChange.PAGINATION, None),
            (StateChange.RESET, None),
        ]

    def test_no_notification_when_nothing_added(self, store: StateStore):
        listener = Mock()
        store.subscribe(listener)
        store.append_items([make_item("1")])
        listener.assert_not_called()

    def test_unsubscribe(self, store: StateStore):
        listener = Mock()
        unsubscribe = store.subscribe(listener)
        unsubscribe()
        store.reset()
        listener.assert_not_called()

    def test_failing_listener_does_not_break_others(self, store: StateStore):
        """Test listener errors are logged, not raised."""
        failing = Mock(side_effect=RuntimeError("boom"))
        other = Mock()
        store.subscribe(failing)
        store.subscribe(other)
        store.reset()
        other.assert_called_once_with(StateChange.RESET, None)


class TestWholeStore:
    """Test hydration, reset and views."""

    def test_hydrate_drops_orphan_records(self):
        """Test restored records need a restored item."""
        store = StateStore()
        listener = Mock()
        store.subscribe(listener)
        store.hydrate(
            [make_item("1")],
            {
                "1": GenerationRecord(item_id="1", accumulated_text="kept"),
                "9": GenerationRecord(item_id="9", accumulated_text="orphan"),
            },
            PaginationState(cursor=2, initial_fetch_done=True),
        )
        assert list(store.records) == ["1"]
        assert store.pagination.cursor == 2
        listener.assert_not_called()

    def test_reset(self, store: StateStore):
        store.ensure_record("1")
        store.set_pagination(PaginationState(cursor=2, initial_fetch_done=True))
        store.reset()
        assert store.items == ()
        assert store.records == {}
        assert store.pagination == PaginationState()

    def test_pagination_is_a_copy(self, store: StateStore):
        store.pagination.cursor = 5
        assert store.pagination.cursor is None

    def test_views_follow_item_order(self, store: StateStore):
        record = store.ensure_record("2")
        record.state = GenerationState.COMPLETE
        record.accumulated_text = "notes"
        views = store.views()
        assert [v.item.id for v in views] == ["1", "2", "3"]
        assert views[1].accumulated_text == "notes"
        assert store.view("2").state is GenerationState.COMPLETE
