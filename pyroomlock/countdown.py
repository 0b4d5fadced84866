"""Countdown driven by one recurring timer."""
from abc import ABC, abstractmethod
import logging
import threading
import time
from typing import Callable, Optional

# Seconds between ticks
TICK_INTERVAL = 1.0

TickCallback = Callable[[int], None]
ExpireCallback = Callable[[], None]

LOG = logging.getLogger(__name__)


class AbstractCountdown(ABC):
    """Count down from a number of seconds, one tick at a time.

    on_tick is called with the remaining seconds after every tick that does
    not end the countdown, on_expire once when it reaches zero.
    """

    def __init__(
        self, seconds: int, on_tick: TickCallback, on_expire: ExpireCallback
    ) -> None:
        """Init countdown."""
        self.remaining = seconds
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._expired = False

    @property
    def expired(self) -> bool:
        """Countdown has reached zero."""
        return self._expired

    def tick(self) -> None:
        """Advance the countdown by one second."""
        if self._expired:
            return
        self.remaining = max(self.remaining - 1, 0)
        if self.remaining > 0:
            self._on_tick(self.remaining)
            return
        self._expired = True
        self._on_expire()

    @abstractmethod
    def start(self) -> None:
        """Start ticking."""
        raise NotImplementedError("start method is not implemented.")

    @abstractmethod
    def cancel(self) -> None:
        """Stop ticking without expiring."""
        raise NotImplementedError("cancel method is not implemented.")


class Countdown(AbstractCountdown):
    """Countdown ticking on a background thread."""

    interval = TICK_INTERVAL

    def __init__(
        self, seconds: int, on_tick: TickCallback, on_expire: ExpireCallback
    ) -> None:
        """Init countdown."""
        super().__init__(seconds, on_tick, on_expire)
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start a thread ticking once per interval."""
        self._thread = threading.Thread(target=self._run, name="Countdown Thread")
        self._thread.daemon = True
        self._thread.start()

    def cancel(self) -> None:
        """Tell the countdown thread to terminate."""
        self._cancelled.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join()

    def _run(self) -> None:
        # Ticks are due at fixed offsets from the start, however long the
        # callbacks take.
        started = time.monotonic()
        ticks = 0
        while not self._expired:
            ticks += 1
            delay = started + ticks * self.interval - time.monotonic()
            if self._cancelled.wait(timeout=max(delay, 0)):
                break
            try:
                self.tick()
            # pylint: disable=broad-except
            except Exception:
                # Keep ticking when a display update fails.
                LOG.exception("Unhandled exception in countdown tick")

        LOG.debug("Countdown thread stopped, %s seconds remaining", self.remaining)
