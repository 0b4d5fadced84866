"""Test module."""
import time
from unittest.mock import MagicMock

import pytest
from pyroomlock import (
    ControllerNotSetException,
    FeedbackEvent,
    PinLockController,
    SubscriptionRegistry,
    parse_feedback,
)
from pyroomlock.subscribe import (
    EVENT_FORM_CANCELLED,
    EVENT_FORM_SUBMITTED,
    EVENT_STANDBY_STATE,
)

from .common import clear_feedback, response_feedback, standby_feedback


def wait_for(mock: MagicMock, timeout: float = 3) -> None:
    """Wait until the mock was called."""
    end = time.time() + timeout
    while not mock.called and time.time() < end:
        time.sleep(0.01)


def test_parse_feedback() -> None:
    """Test function."""
    assert parse_feedback(response_feedback("pin-code", "1234")) == FeedbackEvent(
        EVENT_FORM_SUBMITTED, "pin-code", "1234"
    )
    assert parse_feedback(clear_feedback("pin-code")) == FeedbackEvent(
        EVENT_FORM_CANCELLED, "pin-code"
    )
    assert parse_feedback(standby_feedback("Off")) == FeedbackEvent(
        EVENT_STANDBY_STATE, value="Off"
    )


def test_parse_feedback_plain_values() -> None:
    """Test function."""
    payload = {
        "Event": {
            "UserInterface": {
                "Message": {
                    "TextInput": {"Response": {"FeedbackId": "pin-setup", "Text": None}}
                }
            }
        }
    }
    assert parse_feedback(payload) == FeedbackEvent(EVENT_FORM_SUBMITTED, "pin-setup", "")


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {},
        {"Event": {"UserInterface": {"Extensions": {"Panel": {"Clicked": {}}}}}},
        {"Event": {"UserInterface": {"Message": {"TextInput": "Response"}}}},
        {"Status": {"Audio": {"Volume": {"Value": "50"}}}},
    ],
)
def test_parse_unrelated_feedback(payload: object) -> None:
    """Test function."""
    assert parse_feedback(payload) is None


def test_event_without_controller() -> None:
    """Test function."""
    registry = SubscriptionRegistry()

    with pytest.raises(ControllerNotSetException):
        registry.start()


def test_event_thread_delivers_events() -> None:
    """Test function."""
    registry = SubscriptionRegistry()
    controller = MagicMock(spec=PinLockController)
    registry.set_controller(controller)
    registry.start()

    try:
        # Failing handlers don't stop the thread
        controller.on_standby_state.side_effect = RuntimeError("boom")
        registry.push(standby_feedback("Off"))
        registry.push({"unrelated": True})
        registry.push(response_feedback("pin-code", "0000"))
        wait_for(controller.on_form_submitted)
    finally:
        registry.stop()

    controller.on_standby_state.assert_called_once_with("Off")
    controller.on_form_submitted.assert_called_once_with("pin-code", "0000")
    controller.on_form_cancelled.assert_not_called()
