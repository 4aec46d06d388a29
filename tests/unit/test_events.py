"""
Unit tests for the EventBus (gigcrm/bus/events.py).
No mocking required, pure Python.
"""

import pytest
from gigcrm.bus.events import (
    EventBus,
    EVENT_CONTRACT_CREATED, EVENT_CONTRACT_GENERATED, EVENT_CONTRACT_SENT,
    EVENT_CONTRACT_RESENT, EVENT_CONTRACT_CANCELLED,
    EVENT_DATE_RESPONDED, EVENT_BULK_RESPONSE_COMPLETE, EVENT_CACHE_INVALIDATED,
)

ALL_EVENTS = [
    EVENT_CONTRACT_CREATED, EVENT_CONTRACT_GENERATED, EVENT_CONTRACT_SENT,
    EVENT_CONTRACT_RESENT, EVENT_CONTRACT_CANCELLED,
    EVENT_DATE_RESPONDED, EVENT_BULK_RESPONSE_COMPLETE, EVENT_CACHE_INVALIDATED,
]


@pytest.fixture
def bus():
    """Fresh EventBus for each test."""
    return EventBus()


# ---------------------------------------------------------------------------
# Basic emit / subscribe
# ---------------------------------------------------------------------------

def test_handler_called_on_emit(bus):
    received = []
    bus.on(EVENT_CONTRACT_SENT, lambda data: received.append(data))
    bus.emit(EVENT_CONTRACT_SENT, {'contract_id': 12})
    assert received == [{'contract_id': 12}]


def test_multiple_handlers_called_in_order(bus):
    calls = []
    bus.on('evt', lambda d: calls.append('a'))
    bus.on('evt', lambda d: calls.append('b'))
    bus.emit('evt', {})
    assert calls == ['a', 'b']


def test_emit_no_handlers_is_silent(bus):
    bus.emit('unknown_event', {'x': 1})


def test_emit_default_data_is_empty_dict(bus):
    received = []
    bus.on('evt', lambda data: received.append(data))
    bus.emit('evt')
    assert received == [{}]


def test_events_are_isolated(bus):
    sent = []
    bus.on(EVENT_CONTRACT_SENT, lambda d: sent.append(True))
    bus.emit(EVENT_CONTRACT_CANCELLED, {})
    assert sent == []


# ---------------------------------------------------------------------------
# Error isolation
# ---------------------------------------------------------------------------

def test_handler_exception_does_not_propagate(bus):
    """A bad handler must not crash the bus or prevent other handlers from running."""
    good_calls = []

    def bad_handler(data):
        raise RuntimeError("handler exploded")

    bus.on(EVENT_DATE_RESPONDED, bad_handler)
    bus.on(EVENT_DATE_RESPONDED, lambda d: good_calls.append(True))

    bus.emit(EVENT_DATE_RESPONDED, {'date_id': 1, 'status': 'accepted'})
    assert good_calls == [True]


# ---------------------------------------------------------------------------
# clear()
# ---------------------------------------------------------------------------

def test_clear_removes_all_handlers(bus):
    calls = []
    bus.on('evt', lambda d: calls.append(1))
    bus.clear()
    bus.emit('evt', {})
    assert calls == []


# ---------------------------------------------------------------------------
# Event name constants
# ---------------------------------------------------------------------------

def test_event_constants_are_strings():
    for c in ALL_EVENTS:
        assert isinstance(c, str) and len(c) > 0


def test_event_constants_are_unique():
    assert len(ALL_EVENTS) == len(set(ALL_EVENTS))
