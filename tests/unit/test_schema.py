"""Tests for the state schema."""

import pytest

from diff_digest.state.schema import (
    GenerationRecord,
    GenerationState,
    Item,
    ItemView,
    PaginationState,
)
from tests.helpers.fakes import item_payload, make_item


class TestItem:
    """Test item validation from wire records."""

    def test_from_payload(self):
        """Test a complete record becomes an item."""
        item = Item.from_payload(item_payload("7"))
        assert item == make_item("7")
        assert item.prompt_payload == "diff --git a/x b/x"

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "7",
            {"id": "7", "description": "x", "diff": "y"},
            item_payload("7", id=7),
            item_payload("7", diff=None),
        ],
    )
    def test_from_payload_rejects_invalid(self, raw):
        """Test missing or non-string fields are rejected."""
        assert Item.from_payload(raw) is None

    def test_to_payload_uses_wire_names(self):
        """Test the wire field names."""
        assert set(make_item("1").to_payload()) == {"id", "description", "diff", "url"}


class TestGenerationRecord:
    """Test the generation record."""

    def test_defaults(self):
        record = GenerationRecord(item_id="1")
        assert record.state is GenerationState.IDLE
        assert record.accumulated_text == ""
        assert record.visible is False
        assert record.interruption_marker is None

    def test_append_while_generating(self):
        """Test increments are appended verbatim."""
        record = GenerationRecord(item_id="1", state=GenerationState.GENERATING)
        record.append("Hello, ")
        record.append("world")
        assert record.accumulated_text == "Hello, world"

    def test_append_outside_generating(self):
        """Test text cannot grow once settled."""
        record = GenerationRecord(item_id="1", state=GenerationState.COMPLETE)
        with pytest.raises(ValueError):
            record.append("more")

    def test_has_partial_text(self):
        assert not GenerationRecord(item_id="1", accumulated_text="  \n").has_partial_text
        assert GenerationRecord(item_id="1", accumulated_text="x").has_partial_text


class TestPaginationState:
    """Test pagination snapshots."""

    def test_has_more(self):
        """Test has_more before and after the first fetch."""
        assert PaginationState().has_more
        assert PaginationState(cursor=2, initial_fetch_done=True).has_more
        assert not PaginationState(cursor=None, initial_fetch_done=True).has_more

    def test_snapshot_round_trip(self):
        state = PaginationState(cursor=3, current_page=2, initial_fetch_done=True)
        assert state.to_dict() == {"currentPage": 2, "nextPage": 3, "initialFetchDone": True}
        assert PaginationState.from_dict(state.to_dict()) == state

    @pytest.mark.parametrize(
        "raw",
        [
            [],
            {"currentPage": "2"},
            {"currentPage": 0},
            {"nextPage": -1},
            {"nextPage": True},
            {"initialFetchDone": "yes"},
        ],
    )
    def test_from_dict_rejects_malformed(self, raw):
        with pytest.raises(ValueError):
            PaginationState.from_dict(raw)


class TestItemView:
    """Test read-only views."""

    def test_view_without_record(self):
        view = ItemView.build(make_item("1"), None)
        assert view.state is GenerationState.IDLE
        assert not view.can_resume

    def test_view_copies_record(self):
        record = GenerationRecord(
            item_id="1",
            state=GenerationState.INTERRUPTED,
            accumulated_text="partial",
            visible=True,
            interruption_marker="cut",
        )
        view = ItemView.build(make_item("1"), record)
        record.accumulated_text = "changed"
        assert view.accumulated_text == "partial"
        assert view.can_resume
        assert view.to_dict()["state"] == "interrupted"
