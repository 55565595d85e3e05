"""
Profile-view telemetry.

Views are append-only and bucketed by ISO week in the configured timezone.
Reads only ever see the retention window (default 7 days); older rows are
deleted by ``purge_expired``, which the reaper schedules on APScheduler.
Telemetry is advisory: storage failures on ``record`` are logged and the
caller gets ``None`` instead of an exception.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from .. import repo
from ..config import REAPER_INTERVAL_SECONDS, TELEMETRY_TIMEZONE, VIEW_RETENTION_DAYS
from .directory import ProfileDirectory, guard_not_self
from .domain import NotificationEvent, NotificationType, ViewRecord, as_utc
from .notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_week_start_date(now: datetime, tz: str = TELEMETRY_TIMEZONE) -> date:
    local_now = now.astimezone(ZoneInfo(tz))
    return local_now.date() - timedelta(days=local_now.weekday())


def get_week_number(now: datetime, tz: str = TELEMETRY_TIMEZONE) -> int:
    return now.astimezone(ZoneInfo(tz)).isocalendar()[1]


def local_day_bounds(now: datetime, tz: str = TELEMETRY_TIMEZONE) -> tuple[datetime, datetime]:
    zone = ZoneInfo(tz)
    day = now.astimezone(zone).date()
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


class ViewTelemetry:
    def __init__(
        self,
        session_factory: Callable[[], Any],
        directory: ProfileDirectory,
        dispatcher: NotificationDispatcher,
        *,
        retention_days: int = VIEW_RETENTION_DAYS,
        tz: str = TELEMETRY_TIMEZONE,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._session_factory = session_factory
        self.directory = directory
        self.dispatcher = dispatcher
        self.retention = timedelta(days=retention_days)
        self.tz = tz
        self._clock = clock

    def _now(self, now: datetime | None) -> datetime:
        return as_utc(now) if now is not None else self._clock()

    def window_start(self, now: datetime | None = None) -> datetime:
        return self._now(now) - self.retention

    def record(self, viewer_id: str, candidate_id: str, now: datetime | None = None) -> ViewRecord | None:
        guard_not_self(viewer_id, candidate_id)
        now = self._now(now)
        with self._session_factory() as db:
            self.directory.ensure_exists(db, viewer_id, candidate_id)

        day_start, day_end = local_day_bounds(now, self.tz)
        try:
            with self._session_factory() as db:
                first_today = (
                    repo.count_views_between(
                        db, viewer_id=viewer_id, candidate_id=candidate_id, start=day_start, end=day_end
                    )
                    == 0
                )
                row = repo.insert_profile_view(
                    db,
                    viewer_id=viewer_id,
                    candidate_id=candidate_id,
                    viewed_at=now,
                    week_start_date=get_week_start_date(now, self.tz),
                    week_number=get_week_number(now, self.tz),
                )
                db.commit()
        except SQLAlchemyError:
            logger.exception("[telemetry] failed to record view viewer=%s candidate=%s", viewer_id, candidate_id)
            return None

        view = ViewRecord.from_row(row)
        logger.debug("[telemetry] view viewer=%s candidate=%s week=%s", viewer_id, candidate_id, view.week_start_date)
        if first_today:
            local_day = now.astimezone(ZoneInfo(self.tz)).date()
            self.dispatcher.dispatch(
                NotificationEvent(
                    id=f"profile_view:{viewer_id}:{candidate_id}:{local_day.isoformat()}",
                    type=NotificationType.PROFILE_VIEW,
                    recipients=[candidate_id],
                    actor_id=viewer_id,
                    subject_id=candidate_id,
                    meta={"view_id": view.id},
                )
            )
        return view

    def list_views_for_candidate(self, candidate_id: str, now: datetime | None = None, limit: int = 100) -> list[ViewRecord]:
        with self._session_factory() as db:
            rows = repo.list_views_for_candidate(db, candidate_id, self.window_start(now), limit)
        return [ViewRecord.from_row(r) for r in rows]

    def list_views_by_viewer(self, viewer_id: str, now: datetime | None = None, limit: int = 100) -> list[ViewRecord]:
        with self._session_factory() as db:
            rows = repo.list_views_by_viewer(db, viewer_id, self.window_start(now), limit)
        return [ViewRecord.from_row(r) for r in rows]

    def weekly_counts(self, candidate_id: str, now: datetime | None = None) -> list[dict[str, Any]]:
        with self._session_factory() as db:
            rows = repo.weekly_view_counts(db, candidate_id, self.window_start(now))
        return [
            {
                "week_start_date": str(r["week_start_date"]),
                "week_number": int(r["week_number"]),
                "views": int(r["views"]),
                "unique_viewers": int(r["unique_viewers"]),
            }
            for r in rows
        ]

    def purge_expired(self, now: datetime | None = None) -> int:
        cutoff = self.window_start(now)
        with self._session_factory() as db:
            deleted = repo.delete_views_before(db, cutoff)
            db.commit()
        logger.info("[telemetry] purged %s views older than %s", deleted, cutoff.isoformat())
        return deleted


class TelemetryReaper:
    """Runs ``purge_expired`` every ``interval_seconds`` on an APScheduler background thread."""

    JOB_ID = "telemetry-purge"

    def __init__(self, telemetry: ViewTelemetry, interval_seconds: int = REAPER_INTERVAL_SECONDS) -> None:
        self.telemetry = telemetry
        self.interval_seconds = interval_seconds
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.interval_seconds <= 0 or self.running:
            return
        self._scheduler = BackgroundScheduler(timezone="UTC")
        self._scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=self.JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self._scheduler.start()
        logger.info("[telemetry] reaper started interval=%ss", self.interval_seconds)

    def stop(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

    def run_once(self) -> int:
        try:
            return self.telemetry.purge_expired()
        except SQLAlchemyError:
            logger.exception("[telemetry] reaper pass failed")
            return 0
