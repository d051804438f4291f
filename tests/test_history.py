"""
Tests for the EventHistoryWalker.
"""
import logging

import pytest
from unittest.mock import MagicMock

from ethr_did_sdk.exceptions import HistoryTruncatedError
from ethr_did_sdk.history import EventHistoryWalker
from ethr_did_sdk.models import DelegateChanged, OwnerChanged

IDENTITY = "0x1234567890123456789012345678901234567890"
OTHER = "0x2345678901234567890123456789012345678901"


def _owner_event(block, previous, log_index=0, owner=OTHER):
    return OwnerChanged(
        identity=IDENTITY, owner=owner, previous_change=previous, block_number=block, log_index=log_index
    )


def _scripted_registry(pointer, blocks):
    """Registry mock answering get_events from a {block: [events]} map"""
    registry = MagicMock()
    registry.get_change_pointer.return_value = pointer
    registry.get_events.side_effect = lambda identity, block: list(blocks.get(block, []))
    return registry


class TestWalk:
    """History walking over scripted registries"""

    def test_identity_without_history(self):
        registry = _scripted_registry(0, {})
        walker = EventHistoryWalker(registry)

        assert walker.walk(IDENTITY) == []
        registry.get_events.assert_not_called()

    def test_follows_previous_change_chain(self):
        blocks = {
            30: [_owner_event(30, 20)],
            20: [_owner_event(20, 10)],
            10: [_owner_event(10, 0)],
        }
        walker = EventHistoryWalker(_scripted_registry(30, blocks))

        history = walker.walk(IDENTITY)

        assert [e.block_number for e in history] == [30, 20, 10]
        assert [e.block_number for e in walker.history(IDENTITY)] == [10, 20, 30]

    def test_same_block_siblings_are_visited_once(self):
        # Second event in block 20 points at its own block
        blocks = {
            20: [_owner_event(20, 10, log_index=0), _owner_event(20, 20, log_index=1)],
            10: [_owner_event(10, 0)],
        }
        registry = _scripted_registry(20, blocks)
        walker = EventHistoryWalker(registry)

        history = walker.walk(IDENTITY)

        assert [(e.block_number, e.log_index) for e in history] == [(20, 1), (20, 0), (10, 0)]
        assert registry.get_events.call_count == 2

    def test_pointer_that_does_not_decrease_ends_the_walk(self):
        blocks = {20: [_owner_event(20, 25)]}
        registry = _scripted_registry(20, blocks)

        history = EventHistoryWalker(registry).walk(IDENTITY)

        assert len(history) == 1
        assert registry.get_events.call_count == 1

    def test_block_without_events_logs_warning(self, caplog):
        registry = _scripted_registry(40, {})

        with caplog.at_level(logging.WARNING):
            history = EventHistoryWalker(registry).walk(IDENTITY)

        assert history == []
        assert "without events" in caplog.text

    def test_to_block_excludes_newer_events(self):
        blocks = {
            30: [_owner_event(30, 20)],
            20: [_owner_event(20, 0)],
        }
        walker = EventHistoryWalker(_scripted_registry(30, blocks))

        history = walker.walk(IDENTITY, to_block=25)

        assert [e.block_number for e in history] == [20]

    def test_start_block_skips_pointer_read(self):
        blocks = {15: [_owner_event(15, 0)]}
        registry = _scripted_registry(99, blocks)

        history = EventHistoryWalker(registry).walk(IDENTITY, start_block=15)

        registry.get_change_pointer.assert_not_called()
        assert [e.block_number for e in history] == [15]

    def test_mixed_event_types_keep_emission_order(self):
        delegate = DelegateChanged(
            identity=IDENTITY, delegate_type="veriKey", delegate=OTHER,
            valid_to=2_000_000_000, previous_change=8, block_number=8, log_index=1
        )
        blocks = {8: [_owner_event(8, 0, log_index=0), delegate]}

        history = EventHistoryWalker(_scripted_registry(8, blocks)).history(IDENTITY)

        assert [type(e) for e in history] == [OwnerChanged, DelegateChanged]


class TestHopLimit:
    """max_hops handling"""

    def _long_chain(self, length):
        blocks = {b: [_owner_event(b, b - 1 if b > 1 else 0)] for b in range(1, length + 1)}
        return _scripted_registry(length, blocks)

    def test_exact_limit_completes(self):
        history = EventHistoryWalker(self._long_chain(5), max_hops=5).walk(IDENTITY)
        assert len(history) == 5

    def test_exceeding_limit_raises_with_partial_history(self):
        walker = EventHistoryWalker(self._long_chain(10), max_hops=3)

        with pytest.raises(HistoryTruncatedError) as exc_info:
            walker.walk(IDENTITY)

        error = exc_info.value
        assert error.max_hops == 3
        assert error.cursor == 7
        assert [e.block_number for e in error.partial_history] == [10, 9, 8]
        assert IDENTITY in str(error)

    def test_limit_from_environment(self, monkeypatch):
        monkeypatch.setenv("ETHR_DID_MAX_HOPS", "2")
        walker = EventHistoryWalker(self._long_chain(4))

        assert walker.max_hops == 2
        with pytest.raises(HistoryTruncatedError):
            walker.walk(IDENTITY)

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            EventHistoryWalker(MagicMock(), max_hops=0)


class TestAgainstRegistry:
    """Walking chains produced by registry writes"""

    def test_walk_matches_every_submitted_change(self, fake_registry, controller):
        controller.add_delegate("veriKey", OTHER, 3600)
        with fake_registry.same_block():
            controller.set_attribute("did/svc/HubService", "https://hub.example.com", 3600)
            controller.set_attribute("did/svc/Messaging", "https://msg.example.com", 3600)
        controller.revoke_delegate("veriKey", OTHER)

        history = EventHistoryWalker(fake_registry).history(controller.identity)

        assert len(history) == 4
        assert [type(e).__name__ for e in history] == [
            "DelegateChanged", "AttributeChanged", "AttributeChanged", "DelegateChanged"
        ]
        assert history[1].block_number == history[2].block_number
        assert history[2].previous_change == history[2].block_number
