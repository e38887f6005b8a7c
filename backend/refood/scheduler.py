# Overview: Background scheduler owning the cron-triggered maintenance jobs.

"""
RefoodScheduler

One instance per application, created by create_app() when
SCHEDULER_ENABLED is set and stored in app.extensions["refood.scheduler"].

Jobs (cron, server local time):
    status_sweep       every hour at minute 0      (0 * * * *)
    archive_expired    every day at 00:00          (0 0 * * *)
    daily_statistics   every day at 23:30          (30 23 * * *)

Each job runs inside an application context and its own transaction. A
failing job is rolled back and logged; it is not retried before its next
tick and does not affect the other jobs.
"""

from __future__ import annotations

import logging
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .extensions import db
from .services import maintenance_service


logger = logging.getLogger(__name__)

EXTENSION_KEY = "refood.scheduler"


class RefoodScheduler:
    JOBS = (
        ("status_sweep", "Aggiornamento stato lotti", {"minute": 0}),
        ("archive_expired", "Archiviazione lotti scaduti", {"hour": 0, "minute": 0}),
        ("daily_statistics", "Statistiche giornaliere", {"hour": 23, "minute": 30}),
    )

    def __init__(self, app, scheduler: BackgroundScheduler | None = None):
        self.app = app
        self.scheduler = scheduler or BackgroundScheduler(
            job_defaults={"coalesce": True, "max_instances": 1}
        )
        self._registered = False

    def _job_function(self, job_id: str) -> Callable[[], object]:
        return {
            "status_sweep": maintenance_service.run_status_sweep,
            "archive_expired": maintenance_service.archive_expired_lots,
            "daily_statistics": maintenance_service.collect_daily_statistics,
        }[job_id]

    def run_job(self, job_id: str):
        """
        Run one job now, inside the app context.

        Returns the job's result, or None if it failed (the failure is
        rolled back and logged).
        """
        fn = self._job_function(job_id)
        with self.app.app_context():
            logger.info("Job %s started", job_id)
            try:
                result = fn()
            except Exception:
                db.session.rollback()
                logger.exception("Job %s failed; rolled back, will run again at next tick", job_id)
                return None
            finally:
                db.session.remove()
            logger.info("Job %s completed", job_id)
            return result

    def register_jobs(self) -> None:
        if self._registered:
            return
        for job_id, name, cron in self.JOBS:
            self.scheduler.add_job(
                self.run_job,
                CronTrigger(**cron),
                args=[job_id],
                id=job_id,
                name=name,
                replace_existing=True,
            )
        self._registered = True

    def start(self) -> None:
        self.register_jobs()
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started with jobs: %s", ", ".join(j[0] for j in self.JOBS))

    def shutdown(self, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def jobs(self) -> list[dict]:
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
            }
            for job in self.scheduler.get_jobs()
        ]


def get_scheduler(app) -> RefoodScheduler | None:
    return app.extensions.get(EXTENSION_KEY)
