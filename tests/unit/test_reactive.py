"""Tests for the Signal observable value."""

from unittest.mock import MagicMock

from festival_finder.core.domain.reactive import Signal


def test_set_notifies_on_change() -> None:
    signal = Signal(1, name="counter")
    handler = MagicMock()
    signal.subscribe(handler)

    assert signal.set(2) is True
    assert signal.set(2) is False

    handler.assert_called_once_with(2)
    assert signal.value == 2


def test_unsubscribe() -> None:
    signal = Signal("a")
    handler = MagicMock()
    unsubscribe = signal.subscribe(handler)

    unsubscribe()
    unsubscribe()
    signal.set("b")

    handler.assert_not_called()
    assert not signal.has_handlers()


def test_failing_handler_does_not_block_others() -> None:
    signal = Signal(0)
    received = []
    signal.subscribe(MagicMock(side_effect=RuntimeError("boom")))
    signal.subscribe(received.append)

    signal.set(1)

    assert received == [1]


def test_handler_may_unsubscribe_during_notification() -> None:
    signal = Signal(0)
    received = []

    def once(value: int) -> None:
        received.append(value)
        unsubscribe()

    unsubscribe = signal.subscribe(once)
    signal.subscribe(received.append)

    signal.set(1)
    signal.set(2)

    assert received == [1, 1, 2]


def test_clear_handlers() -> None:
    signal = Signal(0)
    signal.subscribe(lambda value: None)

    signal.clear_handlers()

    assert not signal.has_handlers()
