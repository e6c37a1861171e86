# damage_capture/core/expiry_watcher.py
"""Background poll that clears the session at the end of the day."""
import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from damage_capture.config.settings import SessionConfig

class ExpiryWatcher:
    def __init__(self, on_expire: Callable,
                 expiry_hour: int = SessionConfig.EXPIRY_HOUR,
                 expiry_minute: int = SessionConfig.EXPIRY_MINUTE,
                 poll_interval: float = SessionConfig.POLL_INTERVAL):
        """
        Args:
            on_expire: called with the triggering datetime, once per day
            expiry_hour, expiry_minute: local time of the day boundary
            poll_interval: seconds between checks
        """
        self.logger = logging.getLogger(__name__)
        self.on_expire = on_expire
        self.expiry_hour = expiry_hour
        self.expiry_minute = expiry_minute
        self.poll_interval = poll_interval
        self.last_fired_date = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def boundary_for(self, now: datetime) -> datetime:
        return now.replace(hour=self.expiry_hour, minute=self.expiry_minute,
                           second=0, microsecond=0)

    def check(self, now: Optional[datetime] = None) -> bool:
        """Fire on_expire if the boundary has been reached and not yet handled today."""
        now = now or datetime.now()
        if now < self.boundary_for(now) or self.last_fired_date == now.date():
            return False

        self.last_fired_date = now.date()
        self.logger.info(f"Day boundary reached at {now:%Y-%m-%d %H:%M:%S}")
        self.on_expire(now)
        return True

    def _watch(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.check()
            except Exception as e:
                self.logger.error(f"Error in expiry check: {e}")
            self._stop_event.wait(self.poll_interval)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._watch, daemon=True)
        self._thread.start()
        self.logger.info("Expiry watcher started")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        self._thread = None
