"""Module to deliver device feedback to the PIN lock."""
from abc import ABC, abstractmethod
import logging
import queue
import threading
from typing import TYPE_CHECKING, Any, NamedTuple, Optional

if TYPE_CHECKING:
    from . import PinLockController

EVENT_FORM_SUBMITTED = "form_submitted"
EVENT_FORM_CANCELLED = "form_cancelled"
EVENT_STANDBY_STATE = "standby_state"

# Feedback expressions the lock needs from the device
FEEDBACK_EXPRESSIONS = [
    "/Event/UserInterface/Message/TextInput/Response",
    "/Event/UserInterface/Message/TextInput/Clear",
    "/Status/Standby/State",
]

# How long the worker waits for an event before checking for shutdown
QUEUE_WAIT = 1

LOG = logging.getLogger(__name__)


class FeedbackEvent(NamedTuple):
    """A device event the lock reacts to."""

    kind: str
    feedback_id: str = ""
    value: str = ""


class ControllerNotSetException(Exception):
    """The controller was not set in the subscription registry."""


def _leaf(node: Any) -> str:
    # JSON feedback wraps leaf values as {"Value": ...}
    if isinstance(node, dict):
        node = node.get("Value", "")
    return "" if node is None else str(node)


def _path(payload: Any, *keys: str) -> Any:
    node = payload
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def parse_feedback(payload: Any) -> Optional[FeedbackEvent]:
    """Turn a JSON feedback document into a FeedbackEvent.

    Returns None for documents the lock is not interested in.
    """
    text_input = _path(payload, "Event", "UserInterface", "Message", "TextInput")
    if isinstance(text_input, dict):
        response = text_input.get("Response")
        if isinstance(response, dict):
            return FeedbackEvent(
                EVENT_FORM_SUBMITTED,
                _leaf(response.get("FeedbackId")),
                _leaf(response.get("Text")),
            )
        clear = text_input.get("Clear")
        if isinstance(clear, dict):
            return FeedbackEvent(EVENT_FORM_CANCELLED, _leaf(clear.get("FeedbackId")))

    state = _path(payload, "Status", "Standby", "State")
    if state is not None:
        return FeedbackEvent(EVENT_STANDBY_STATE, value=_leaf(state))

    return None


class AbstractSubscriptionRegistry(ABC):
    """Class for delivering device events to the lock."""

    def __init__(self) -> None:
        """Init subscription."""
        self._controller: Optional["PinLockController"] = None

    def set_controller(self, controller: "PinLockController") -> None:
        """Set the controller."""
        self._controller = controller

    def get_controller(self) -> Optional["PinLockController"]:
        """Get the controller."""
        return self._controller

    def _event(self, payload: Any) -> None:
        if not self._controller:
            raise ControllerNotSetException()

        event = parse_feedback(payload)
        if event is None:
            LOG.debug("Ignoring feedback: %s", payload)
            return

        LOG.debug("Event: %s %s", event.kind, event.feedback_id)
        try:
            if event.kind == EVENT_FORM_SUBMITTED:
                self._controller.on_form_submitted(event.feedback_id, event.value)
            elif event.kind == EVENT_FORM_CANCELLED:
                self._controller.on_form_cancelled(event.feedback_id)
            elif event.kind == EVENT_STANDBY_STATE:
                self._controller.on_standby_state(event.value)
        # pylint: disable=broad-except
        except Exception:
            # (Very) broad check to not let a failing handler kill the
            # event thread. Log it and move on to the next event.
            LOG.exception("Unhandled exception handling %s event", event.kind)

    @abstractmethod
    def start(self) -> None:
        """Start delivering events."""
        raise NotImplementedError("start method is not implemented.")

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering events."""
        raise NotImplementedError("stop method is not implemented.")


class SubscriptionRegistry(AbstractSubscriptionRegistry):
    """Deliver pushed feedback documents one at a time from a worker thread."""

    def __init__(self) -> None:
        """Init subscription."""
        super().__init__()
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._exiting = threading.Event()
        self._event_thread: Optional[threading.Thread] = None

    def push(self, payload: Any) -> None:
        """Queue a feedback document received from the device."""
        self._queue.put(payload)

    def join(self) -> None:
        """Don't allow the main thread to terminate until we have."""
        if self._event_thread:
            self._event_thread.join()

    def start(self) -> None:
        """Start a thread to handle queued events."""
        if not self._controller:
            raise ControllerNotSetException()
        self._exiting = threading.Event()
        self._event_thread = threading.Thread(
            target=self._run_event_loop, name="Feedback Event Thread"
        )
        self._event_thread.daemon = True
        self._event_thread.start()

    def stop(self) -> None:
        """Tell the event thread to terminate."""
        self._exiting.set()
        self.join()
        LOG.info("Terminated thread")

    def _run_event_loop(self) -> None:
        while not self._exiting.is_set():
            try:
                payload = self._queue.get(timeout=QUEUE_WAIT)
            except queue.Empty:
                continue
            self._event(payload)

        LOG.info("Shutdown Feedback Event Thread")
