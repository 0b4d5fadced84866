"""PIN lock for Cisco video endpoints.

This lib asks for a PIN when the device wakes up from standby and disables
the device for a while after too many wrong PINs.
"""
from datetime import datetime
import logging
import os
import threading
from typing import Optional, Type

import requests

from .common import PyroomlockError, XapiError, init_logging
from .countdown import AbstractCountdown, Countdown
from .store import (
    DEFAULT_PIN,
    RECORD_PREFIX,
    AbstractPinStore,
    FilePinStore,
    MacroPinStore,
    MemoryPinStore,
    PinRecord,
    PinStoreError,
    SerializationFailure,
    StorageLimitExceeded,
    StoreCorrupted,
    StoreUnreadable,
    WriteFailure,
    decode_record,
    encode_record,
)
from .subscribe import (
    FEEDBACK_EXPRESSIONS,
    AbstractSubscriptionRegistry,
    ControllerNotSetException,
    FeedbackEvent,
    SubscriptionRegistry,
    parse_feedback,
)
from .xapi import KEYBOARD_CLOSED, XapiController

MAX_TRIES = 3
# Seconds the device stays disabled after MAX_TRIES wrong PINs
TIME_TO_DISABLE = 120

# Feedback ids of the forms shown on the touch panel
FEEDBACK_PIN_CODE = "pin-code"
FEEDBACK_DISABLED_ALERT = "device-disabled-alert"
FEEDBACK_PIN_SETUP = "pin-setup"
FEEDBACK_PIN_CONFIRM = "pin-confirm"

# Standby state reported when the device becomes active
STANDBY_STATE_OFF = "Off"

# Set up the console logger for debugging
LOG = logging.getLogger(__name__)
init_logging(LOG, os.environ.get("PYROOMLOCK_LOGLEVEL"))
LOG.debug("DEBUG logging is ON")


def pin_prompt_text(attempt: int, max_tries: int) -> str:
    """Text of the PIN prompt."""
    return f"Enter PIN code: ({attempt}/{max_tries})"


def incorrect_pin_text(attempt: int, max_tries: int) -> str:
    """Text of the PIN prompt after a wrong PIN."""
    return f"Incorrect PIN, try again: ({attempt}/{max_tries})"


def disabled_alert_text(remaining_seconds: int) -> str:
    """Text of the disablement alert."""
    return (
        "Device is disabled! Please contact support..."
        f"<br>Remaining time: {remaining_seconds}"
    )


def setup_prompt_text(error: Optional[str] = None) -> str:
    """Text of the PIN setup prompt, with an optional error line."""
    text = "Choose a new PIN code:"
    if error:
        text = error + "<br>" + text
    return text


def confirm_prompt_text() -> str:
    """Text of the PIN confirmation prompt."""
    return "Enter the new PIN code again:"


def _now() -> str:
    # Example: 04-04-2021 18:06:37 (UTC+03:00)
    return datetime.now().astimezone().strftime("%d-%m-%Y %H:%M:%S (UTC%z)")


# pylint: disable=too-many-instance-attributes
class PinLockController:
    """Class holding the PIN lock state of one device.

    The on_* handlers are called by the subscription registry for device
    events. Countdown ticks arrive on another thread, so every handler runs
    under the same lock.
    """

    def __init__(
        self,
        xapi: XapiController,
        pin_store: Optional[AbstractPinStore] = None,
        subscription_registry: Optional[AbstractSubscriptionRegistry] = None,
        pin: str = DEFAULT_PIN,
        configurable: bool = True,
        max_tries: int = MAX_TRIES,
        disable_seconds: int = TIME_TO_DISABLE,
        countdown_class: Type[AbstractCountdown] = Countdown,
    ):
        """Init the lock.

        xapi: client for the device.
        pin_store: where a configured PIN is kept, in memory by default.
        pin: default PIN, or the fixed PIN if configurable is False.
        configurable: whether users can set their own PIN.
        """
        self.xapi = xapi
        self.configurable = configurable
        self.max_tries = max_tries
        self.disable_seconds = disable_seconds
        self.countdown_class = countdown_class
        self.pin_store: AbstractPinStore = pin_store or MemoryPinStore()
        self.record = PinRecord(pin_is_configured=not configurable, pin_code=pin)

        self.attempt_count = 1
        self.is_disabled = False
        self.remaining_seconds = 0
        self.countdown: Optional[AbstractCountdown] = None
        self._staged_pin: Optional[str] = None
        self._lock = threading.RLock()

        self.subscription_registry = subscription_registry or SubscriptionRegistry()
        self.subscription_registry.set_controller(self)

    def __repr__(self) -> str:
        """Get a string representation."""
        return (
            f"{self.__class__.__name__} (attempt={self.attempt_count}/{self.max_tries}"
            f" disabled={self.is_disabled} remaining={self.remaining_seconds})"
        )

    @property
    def pin_configured(self) -> bool:
        """A PIN was set by the user (always True for a fixed PIN)."""
        return self.record.pin_is_configured

    @property
    def staged_pin(self) -> Optional[str]:
        """PIN entered on the setup form, waiting for confirmation."""
        return self._staged_pin

    def start(self) -> None:
        """Load the PIN and start listening for device events."""
        self.load_pin_record()
        self.subscription_registry.start()

    def stop(self) -> None:
        """Stop listening and cancel a running disablement countdown."""
        # Not under the lock: the countdown thread may be waiting for it.
        countdown = self.countdown
        if countdown is not None:
            countdown.cancel()
        self.subscription_registry.stop()

    def load_pin_record(self) -> PinRecord:
        """Read the configured PIN, storing the defaults on first run."""
        with self._lock:
            if not self.configurable:
                return self.record

            try:
                record = self.pin_store.read()
            except PinStoreError as ex:
                self._fall_back(ex)
                return self.record

            if record is None:
                LOG.info("No stored PIN record, storing defaults")
                self._persist(self.record)
            else:
                self.record = record
            return self.record

    # Device events

    def on_standby_state(self, state: str) -> None:
        """Handle a standby state change."""
        LOG.debug("Standby state: %s", state)
        if state == STANDBY_STATE_OFF:
            self.on_wake()

    def on_wake(self) -> None:
        """Handle the device waking up from standby."""
        with self._lock:
            LOG.debug("Device woke up")
            self._show_lock_surface()

    def on_form_submitted(self, feedback_id: str, text: str) -> None:
        """Handle OK on one of our forms."""
        with self._lock:
            if feedback_id == FEEDBACK_PIN_CODE:
                self._check_pin(text)
            elif feedback_id == FEEDBACK_DISABLED_ALERT:
                self._show_lock_surface()
                self.xapi.standby_halfwake()
            elif feedback_id == FEEDBACK_PIN_SETUP:
                self._setup_submitted(text)
            elif feedback_id == FEEDBACK_PIN_CONFIRM:
                self._confirm_submitted(text)
            else:
                LOG.debug("Ignoring response for form %s", feedback_id)

    def on_form_cancelled(self, feedback_id: str) -> None:
        """Handle cancel on one of our forms."""
        with self._lock:
            if feedback_id in (FEEDBACK_PIN_CODE, FEEDBACK_DISABLED_ALERT):
                # The check cannot be dismissed
                self._show_lock_surface()
                self.xapi.standby_halfwake()
            elif feedback_id in (FEEDBACK_PIN_SETUP, FEEDBACK_PIN_CONFIRM):
                LOG.info("PIN setup was abandoned")
                self._staged_pin = None
            else:
                LOG.debug("Ignoring cancel for form %s", feedback_id)

    # PIN check

    def _check_pin(self, text: str) -> None:
        if self.is_disabled:
            self._alert()
            return

        LOG.info("Try PIN, attempt %s of %s", self.attempt_count, self.max_tries)
        if text == self.record.pin_code:
            LOG.info("PIN was accepted")
            self._reset_tries()
        elif text == "":
            LOG.info("Empty PIN was entered")
            self._prompt()
        else:
            LOG.info("PIN was rejected")
            if self.attempt_count >= self.max_tries:
                LOG.warning("Reached maximum tries")
                self.disable()
            else:
                self.attempt_count += 1
                self._prompt(incorrect_pin_text(self.attempt_count, self.max_tries))

    def _reset_tries(self) -> None:
        self.attempt_count = 1
        LOG.debug("Number of tries has been reset")

    def disable(self) -> None:
        """Disable the device for disable_seconds."""
        with self._lock:
            if self.is_disabled:
                LOG.debug("Device is already disabled")
                self._alert()
                return
            LOG.warning(
                "Disabling device for %s seconds starting at: %s",
                self.disable_seconds,
                _now(),
            )
            self.is_disabled = True
            self.remaining_seconds = self.disable_seconds
            self.countdown = self.countdown_class(
                self.disable_seconds, self._countdown_tick, self._countdown_expired
            )
            # The countdown runs even when the alert fails to show.
            self.countdown.start()
            self._alert()

    def _countdown_tick(self, remaining: int) -> None:
        with self._lock:
            self.remaining_seconds = remaining
            self._alert()

    def _countdown_expired(self) -> None:
        with self._lock:
            self.remaining_seconds = 0
            self.is_disabled = False
            self.countdown = None
            self._reset_tries()
            LOG.warning("Device has been re-enabled at: %s", _now())
            try:
                self.xapi.clear_text_input(FEEDBACK_DISABLED_ALERT)
            except (XapiError, requests.RequestException) as ex:
                LOG.error("Could not clear the disabled alert: %s", ex)
            self._prompt()

    # PIN setup

    def begin_setup(self) -> None:
        """Ask the user to choose a new PIN."""
        with self._lock:
            if not self.configurable:
                LOG.warning("PIN is fixed, setup is not available")
                return
            if self.is_disabled:
                self._alert()
                return
            self._staged_pin = None
            self._show_setup()

    def _setup_submitted(self, text: str) -> None:
        if text == "":
            self._show_setup("PIN cannot be empty.")
        elif not text.isdigit():
            self._show_setup("PIN must contain digits only.")
        else:
            self._staged_pin = text
            self.xapi.display_text_input(FEEDBACK_PIN_CONFIRM, confirm_prompt_text())

    def _confirm_submitted(self, text: str) -> None:
        if self._staged_pin is None:
            LOG.debug("Confirmation without a staged PIN, restarting setup")
            self._show_setup()
            return

        if text != self._staged_pin:
            LOG.info("PIN confirmation did not match")
            self._staged_pin = None
            self._show_setup("PINs did not match.")
            return

        self.record = PinRecord(pin_is_configured=True, pin_code=self._staged_pin)
        self._staged_pin = None
        self._reset_tries()
        LOG.info("New PIN was configured")
        self._persist(self.record)

    # Persistence

    def _persist(self, record: PinRecord) -> None:
        try:
            self.pin_store.write(record)
        except PinStoreError as ex:
            self._fall_back(ex)

    def _fall_back(self, ex: PinStoreError) -> None:
        LOG.error(
            "PIN store failed (%s: %s), keeping the PIN in memory only",
            ex.__class__.__name__,
            ex,
        )
        self.pin_store = MemoryPinStore(self.record)

    # Display

    def _show_lock_surface(self) -> None:
        if self.is_disabled:
            self._alert()
        elif self.configurable and not self.record.pin_is_configured:
            self.begin_setup()
        else:
            self._prompt()

    def _prompt(self, text: Optional[str] = None) -> None:
        if text is None:
            text = pin_prompt_text(self.attempt_count, self.max_tries)
        self.xapi.display_text_input(FEEDBACK_PIN_CODE, text)

    def _alert(self) -> None:
        self.xapi.display_text_input(
            FEEDBACK_DISABLED_ALERT,
            disabled_alert_text(self.remaining_seconds),
            keyboard_state=KEYBOARD_CLOSED,
        )

    def _show_setup(self, error: Optional[str] = None) -> None:
        self.xapi.display_text_input(FEEDBACK_PIN_SETUP, setup_prompt_text(error))
