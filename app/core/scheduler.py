# ================================
# BACKGROUND SCHEDULER (core/scheduler.py)
# ================================

import asyncio
import logging
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, Optional, Callable
import traceback

from app.core.database import get_db_session
from app.config import settings

logger = logging.getLogger(__name__)

class BackgroundScheduler:
    """Interval scheduler for periodic jobs running inside the API process"""

    def __init__(self):
        self.tasks: Dict[str, Dict[str, Any]] = {}
        self.running = False
        self._task_handles: Dict[str, asyncio.Task] = {}

    def add_task(
        self,
        name: str,
        func: Callable,
        interval_seconds: int,
        initial_delay: int = 0,
        enabled: bool = True
    ):
        """Register a job; blocking (sync) jobs run in a worker thread"""
        self.tasks[name] = {
            "func": func,
            "interval": interval_seconds,
            "initial_delay": initial_delay,
            "enabled": enabled,
            "last_run": None,
            "next_run": None,
            "last_result": None,
            "run_count": 0,
            "error_count": 0,
            "last_error": None
        }
        logger.info(f"Scheduled task '{name}' every {interval_seconds}s (enabled={enabled})")

    async def start(self):
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.running = True
        logger.info("Starting background scheduler")

        for task_name, task_config in self.tasks.items():
            if task_config["enabled"]:
                self._task_handles[task_name] = asyncio.create_task(
                    self._run_task_loop(task_name)
                )

    async def stop(self):
        self.running = False
        logger.info("Stopping background scheduler")

        for task_handle in self._task_handles.values():
            task_handle.cancel()
            try:
                await task_handle
            except asyncio.CancelledError:
                pass

        self._task_handles.clear()
        logger.info("Background scheduler stopped")

    async def run_once(self, task_name: str) -> Any:
        """Run a job immediately and record its outcome; errors propagate"""
        if task_name not in self.tasks:
            raise ValueError(f"Task '{task_name}' not found")

        task_config = self.tasks[task_name]
        start_time = datetime.now(timezone.utc)
        logger.info(f"Running scheduled task '{task_name}'")

        try:
            func = task_config["func"]
            if asyncio.iscoroutinefunction(func):
                result = await func()
            else:
                result = await asyncio.to_thread(func)
        except Exception as e:
            task_config["error_count"] += 1
            task_config["last_error"] = {
                "time": start_time,
                "error": str(e),
                "traceback": traceback.format_exc()
            }
            raise

        task_config["last_run"] = start_time
        task_config["last_result"] = result
        task_config["run_count"] += 1

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        logger.info(f"Task '{task_name}' completed in {duration:.2f}s")
        return result

    async def _run_task_loop(self, task_name: str):
        task_config = self.tasks[task_name]

        if task_config["initial_delay"] > 0:
            logger.info(f"Task '{task_name}' waiting {task_config['initial_delay']}s before first run")
            await asyncio.sleep(task_config["initial_delay"])

        while self.running and task_config["enabled"]:
            task_config["next_run"] = datetime.now(timezone.utc) + timedelta(
                seconds=task_config["interval"]
            )

            try:
                await self.run_once(task_name)
            except Exception as e:
                # A missed run only delays the job until the next interval
                logger.error(f"Error in scheduled task '{task_name}': {e}")
                logger.debug(task_config["last_error"]["traceback"])

            await asyncio.sleep(task_config["interval"])

    def get_task_status(self, task_name: Optional[str] = None) -> Dict[str, Any]:
        if task_name:
            if task_name not in self.tasks:
                return {"error": f"Task '{task_name}' not found"}

            task = self.tasks[task_name]
            return {
                "name": task_name,
                "enabled": task["enabled"],
                "interval": task["interval"],
                "last_run": task["last_run"].isoformat() if task["last_run"] else None,
                "next_run": task["next_run"].isoformat() if task["next_run"] else None,
                "run_count": task["run_count"],
                "error_count": task["error_count"],
                "last_error": task["last_error"]["error"] if task["last_error"] else None
            }

        return {
            name: self.get_task_status(name)
            for name in self.tasks
        }

# Global scheduler instance
scheduler = BackgroundScheduler()

# ================================
# SCHEDULED TASKS
# ================================

def expire_abandoned_bookings():
    """Expire draft bookings whose payment never completed"""
    from app.services.booking_service import BookingService

    with get_db_session() as db:
        result = BookingService.sweep_abandoned_bookings(db)

    if result.expired_count:
        logger.info(f"Abandoned booking sweep expired {result.expired_count} bookings")
    return result

# ================================
# SCHEDULER INITIALIZATION
# ================================

def initialize_scheduler():
    """Register the default jobs"""

    if "abandoned_booking_sweep" not in scheduler.tasks:
        scheduler.add_task(
            name="abandoned_booking_sweep",
            func=expire_abandoned_bookings,
            interval_seconds=settings.BOOKING_SWEEP_INTERVAL_SECONDS,
            initial_delay=settings.BOOKING_SWEEP_INITIAL_DELAY_SECONDS,
            enabled=settings.ENABLE_BOOKING_SWEEP
        )

    logger.info("Scheduler initialized with default tasks")
