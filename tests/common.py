"""Common code for tests."""

from typing import Any, List, NamedTuple, Optional, Tuple
from unittest.mock import MagicMock

from pyroomlock import (
    AbstractCountdown,
    MemoryPinStore,
    PinLockController,
    SubscriptionRegistry,
    XapiController,
)
import responses

DEVICE_URL = "http://device.local"
PUTXML_URL = DEVICE_URL + "/putxml"

LockData = NamedTuple(
    "LockData",
    [
        ("lock", PinLockController),
        ("xapi", MagicMock),
        ("store", MemoryPinStore),
    ],
)


class ManualCountdown(AbstractCountdown):
    """Countdown that only moves when the test ticks it."""

    started = False
    cancelled = False

    def start(self) -> None:
        """Start the countdown."""
        self.started = True

    def cancel(self) -> None:
        """Cancel the countdown."""
        self.cancelled = True


class ManualSubscriptionRegistry(SubscriptionRegistry):
    """Registry delivering pushed events immediately, without a thread."""

    def push(self, payload: Any) -> None:
        """Deliver the event now."""
        self._event(payload)

    def start(self) -> None:
        """Start the registry."""

    def stop(self) -> None:
        """Stop the registry."""


def new_lock(
    store: Optional[MemoryPinStore] = None, **kwargs: Any
) -> LockData:
    """Create a lock talking to a mocked device."""
    xapi = MagicMock(spec=XapiController)
    store = store if store is not None else MemoryPinStore()
    lock = PinLockController(
        xapi,
        store,
        subscription_registry=ManualSubscriptionRegistry(),
        countdown_class=ManualCountdown,
        **kwargs
    )
    return LockData(lock=lock, xapi=xapi, store=store)


def displayed(xapi: MagicMock) -> List[Tuple[str, str]]:
    """List the (feedback id, text) of every form shown on the device."""
    return [
        (call.args[0], call.args[1]) for call in xapi.display_text_input.call_args_list
    ]


def last_displayed(xapi: MagicMock) -> Tuple[str, str]:
    """Get the (feedback id, text) of the last form shown on the device."""
    return displayed(xapi)[-1]


def tick(lock: PinLockController, count: int = 1) -> None:
    """Advance the running disablement countdown."""
    for _ in range(count):
        assert lock.countdown is not None
        lock.countdown.tick()


def response_feedback(feedback_id: str, text: str) -> dict:
    """JSON feedback for an OK on a text input form."""
    return {
        "Event": {
            "Identification": {"SystemName": {"Value": "Room"}},
            "UserInterface": {
                "Message": {
                    "TextInput": {
                        "Response": {
                            "FeedbackId": {"Value": feedback_id},
                            "Text": {"Value": text},
                        }
                    }
                }
            },
        }
    }


def clear_feedback(feedback_id: str) -> dict:
    """JSON feedback for a cancel on a text input form."""
    return {
        "Event": {
            "UserInterface": {
                "Message": {"TextInput": {"Clear": {"FeedbackId": {"Value": feedback_id}}}}
            }
        }
    }


def standby_feedback(state: str) -> dict:
    """JSON feedback for a standby state change."""
    return {"Status": {"Standby": {"State": {"Value": state}}}}


def command_ok(result: str) -> str:
    """XML body of a successful command."""
    return f'<?xml version="1.0"?><Command><{result} status="OK"/></Command>'


def command_error(result: str, reason: str) -> str:
    """XML body of a refused command."""
    return (
        f'<?xml version="1.0"?><Command><{result} status="Error">'
        f"<Reason>{reason}</Reason></{result}></Command>"
    )


def macro_get_ok(name: str, content: str) -> str:
    """XML body of a Macros Macro Get result."""
    return (
        '<?xml version="1.0"?><Command><MacroGetResult status="OK">'
        f'<Macro item="1"><Name>{name}</Name><Content>{content}</Content></Macro>'
        "</MacroGetResult></Command>"
    )


def add_putxml(rsps: responses.RequestsMock, body: str, status: int = 200) -> None:
    """Queue a /putxml response."""
    rsps.add(
        responses.POST, PUTXML_URL, body=body, status=status, content_type="text/xml"
    )
