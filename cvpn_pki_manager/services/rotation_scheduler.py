"""
Daily CRL rotation.
"""
import logging
import threading
import time
from datetime import datetime
from typing import Optional

import schedule

from .crl_service import CRLService


class CRLRotationScheduler:
    """Rotates the Vault CRL and syncs it to the VPN endpoint once a day."""

    def __init__(self, crl_service: CRLService, pki_path: str, endpoint_id: str,
                 poll_interval: float = 60):
        """
        Args:
            crl_service: Service performing the rotation
            pki_path: Issuing PKI path whose CRL is rotated
            endpoint_id: Client VPN endpoint receiving the CRL
            poll_interval: Seconds between checks for pending jobs
        """
        self.crl_service = crl_service
        self.pki_path = pki_path
        self.endpoint_id = endpoint_id
        self.poll_interval = poll_interval

        self.logger = logging.getLogger(__name__)
        self._scheduler = schedule.Scheduler()
        self._scheduler_running = False
        self._scheduler_thread: Optional[threading.Thread] = None
        self._stop_scheduler = threading.Event()

        self.last_run: Optional[datetime] = None
        self.last_error: Optional[str] = None

    def schedule_daily_rotation(self, rotation_time: str = "00:00") -> None:
        """
        Schedule the daily rotation.

        Args:
            rotation_time: Time to rotate in HH:MM format (24-hour)
        """
        try:
            time.strptime(rotation_time, "%H:%M")
        except ValueError:
            raise ValueError(f"Invalid time format: {rotation_time}. Use HH:MM format.")

        self._scheduler.clear()
        self._scheduler.every().day.at(rotation_time).do(self._scheduled_rotation_wrapper)

        self.logger.info(f"Scheduled daily CRL rotation at {rotation_time}")

    def start_scheduler(self, rotation_time: str = "00:00") -> None:
        """
        Start the scheduler in a background thread.

        Args:
            rotation_time: Time to rotate in HH:MM format (24-hour)
        """
        if self._scheduler_running:
            self.logger.warning("Scheduler is already running")
            return

        self.schedule_daily_rotation(rotation_time)
        self._stop_scheduler.clear()
        self._scheduler_running = True

        self._scheduler_thread = threading.Thread(
            target=self._run_scheduler, name="crl-rotation-scheduler", daemon=True
        )
        self._scheduler_thread.start()

        self.logger.info("CRL rotation scheduler started")

    def stop_scheduler(self) -> None:
        """Stop the scheduler."""
        if not self._scheduler_running:
            self.logger.warning("Scheduler is not running")
            return

        self._stop_scheduler.set()
        self._scheduler_running = False

        if self._scheduler_thread and self._scheduler_thread.is_alive():
            self._scheduler_thread.join(timeout=5)

        self._scheduler.clear()
        self.logger.info("CRL rotation scheduler stopped")

    def _run_scheduler(self) -> None:
        """Run the scheduler loop."""
        while not self._stop_scheduler.is_set():
            try:
                self._scheduler.run_pending()
            except Exception as e:
                self.logger.error(f"Error in scheduler loop: {str(e)}")
            self._stop_scheduler.wait(self.poll_interval)

    def _scheduled_rotation_wrapper(self) -> None:
        """Wrapper for scheduled rotations with error handling."""
        try:
            self.run_now()
        except Exception as e:
            self.logger.error(f"Cron processor failed trying to rotate the CRL: {str(e)}")

    def run_now(self) -> str:
        """Rotate the CRL immediately and return it."""
        self.last_run = datetime.now()
        try:
            crl = self.crl_service.rotate_crl(self.pki_path, self.endpoint_id)
        except Exception as e:
            self.last_error = str(e)
            raise
        self.last_error = None
        self.logger.info("Vault CRL rotated by cron processor")
        return crl

    def is_scheduler_running(self) -> bool:
        """Check if the scheduler is currently running."""
        return self._scheduler_running

    def get_next_scheduled_run(self) -> Optional[datetime]:
        """Next scheduled rotation, or None if not scheduled."""
        if not self._scheduler_running or not self._scheduler.jobs:
            return None
        return self._scheduler.next_run
