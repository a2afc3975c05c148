"""Unit tests for the shared filter context."""

from datetime import date

import pytest

from lifecycle_attribution.foundation import (
    AVAILABLE_CHANNELS,
    DateRange,
    FilterState,
    InvalidRangeError,
    UnknownChannelError,
    UnknownSegmentError,
)

TODAY = date(2024, 3, 31)


@pytest.fixture
def state():
    return FilterState(today=TODAY)


class TestDateRange:
    def test_single_day_range_is_valid(self):
        """Test start == end is accepted."""
        rng = DateRange(TODAY, TODAY)
        assert rng.days == 1

    def test_reversed_range_rejected(self):
        with pytest.raises(InvalidRangeError, match="start must be on or before end"):
            DateRange(date(2024, 2, 1), date(2024, 1, 1))


class TestDefaults:
    def test_default_filters(self, state):
        """Test a new state covers the last 30 days, all channels and segment All."""
        assert state.date_range == DateRange(date(2024, 3, 1), TODAY)
        assert state.selected_channels == frozenset(AVAILABLE_CHANNELS)
        assert state.selected_segment == "All"
        assert state.has_active_filters is False

    def test_defaults_are_captured_at_creation(self, state):
        assert state.defaults.date_range.end == TODAY
        state.update_date_range(date(2023, 1, 1), date(2023, 1, 31))
        assert state.defaults.date_range.end == TODAY


class TestMutations:
    def test_update_date_range(self, state):
        state.update_date_range(date(2024, 1, 1), date(2024, 1, 31))
        assert state.date_range == DateRange(date(2024, 1, 1), date(2024, 1, 31))
        # Date range alone is not an "active filter"
        assert state.has_active_filters is False

    def test_invalid_date_range_leaves_state_unchanged(self, state):
        """Test a reversed range raises and changes neither state nor key."""
        before = state.snapshot()
        key_before = state.query_key
        notified = []
        state.subscribe(lambda s, k: notified.append(k))

        with pytest.raises(InvalidRangeError):
            state.update_date_range(date(2024, 2, 1), date(2024, 1, 1))

        assert state.snapshot() == before
        assert state.query_key == key_before
        assert notified == []

    def test_toggle_channel_removes_then_adds(self, state):
        state.toggle_channel("Meta")
        assert "Meta" not in state.selected_channels
        assert state.has_active_filters is True

        state.toggle_channel("Meta")
        assert "Meta" in state.selected_channels
        assert state.has_active_filters is False

    def test_toggle_twice_restores_query_key(self, state):
        """Test toggle is an involution on the derived key."""
        original = state.query_key
        state.toggle_channel("TikTok")
        assert state.query_key != original
        state.toggle_channel("TikTok")
        assert state.query_key == original

    def test_toggle_unknown_channel_rejected(self, state):
        with pytest.raises(UnknownChannelError):
            state.toggle_channel("Carrier Pigeon")
        assert state.selected_channels == frozenset(AVAILABLE_CHANNELS)

    def test_clear_and_select_all_channels(self, state):
        state.clear_channels()
        assert state.selected_channels == frozenset()
        assert state.has_active_filters is True

        state.select_all_channels()
        assert state.selected_channels == frozenset(AVAILABLE_CHANNELS)
        assert state.has_active_filters is False

    def test_update_segment(self, state):
        state.update_segment("High Value")
        assert state.selected_segment == "High Value"
        assert state.has_active_filters is True

    def test_unknown_segment_rejected(self, state):
        with pytest.raises(UnknownSegmentError):
            state.update_segment("VIP Platinum")
        assert state.selected_segment == "All"

    def test_validation_errors_are_value_errors(self, state):
        """Test callers can catch filter validation errors as ValueError."""
        with pytest.raises(ValueError):
            state.update_segment("nope")
        with pytest.raises(ValueError):
            state.toggle_channel("nope")

    def test_reset_restores_session_defaults(self, state):
        state.update_date_range(date(2023, 6, 1), date(2023, 6, 30))
        state.clear_channels()
        state.toggle_channel("Email")
        state.update_segment("At Risk")

        state.reset_filters()

        assert state.snapshot() == state.defaults
        assert state.query_key == FilterState(today=TODAY).query_key
        assert state.has_active_filters is False


class TestListeners:
    def test_listener_receives_new_key(self, state):
        seen = []
        state.subscribe(lambda s, key: seen.append(key))

        state.update_segment("New Customers")

        assert seen == [state.query_key]
        assert seen[0].segment == "New Customers"

    def test_mutation_without_content_change_still_notifies(self, state):
        """Test select_all on an already-full selection notifies with the same key."""
        seen = []
        state.subscribe(lambda s, key: seen.append(key))
        key = state.query_key

        state.select_all_channels()

        assert seen == [key]

    def test_unsubscribe(self, state):
        seen = []
        unsubscribe = state.subscribe(lambda s, key: seen.append(key))
        unsubscribe()
        unsubscribe()  # idempotent

        state.clear_channels()

        assert seen == []

    def test_failing_listener_does_not_starve_others(self, state):
        """Test every listener runs and the first failure surfaces after the mutation."""
        seen = []

        def failing(s, key):
            raise RuntimeError("no running event loop")

        state.subscribe(failing)
        state.subscribe(lambda s, key: seen.append(key))

        with pytest.raises(RuntimeError, match="no running event loop"):
            state.update_segment("At Risk")

        assert state.selected_segment == "At Risk"
        assert seen == [state.query_key]
