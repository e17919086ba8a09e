"""Calendar bucketing and list/map filters for scheduled jobs."""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Mapping

import pandas as pd

from .errors import ValidationError

PERIODS: tuple[str, ...] = ("all", "this_week", "this_month", "next_month")


def to_day(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


def job_span(job: Mapping[str, Any]) -> tuple[date, date] | None:
    """Inclusive day range a job occupies; a job without an end date is one day long."""
    start = to_day(job.get("scheduled_start_date"))
    if start is None:
        return None
    end = to_day(job.get("scheduled_end_date")) or start
    return start, end


def _occupies(job: Mapping[str, Any], day: date) -> bool:
    span = job_span(job)
    if span is None:
        return False
    job_start = datetime.combine(span[0], time.min)
    job_end = datetime.combine(span[1], time.max)
    day_start = datetime.combine(day, time.min)
    day_end = datetime.combine(day, time.max)
    return day_start <= job_end and day_end >= job_start


def jobs_on_date(jobs: Iterable[Mapping[str, Any]], day: Any) -> list[Mapping[str, Any]]:
    target = to_day(day)
    if target is None:
        return []
    return [job for job in jobs if _occupies(job, target)]


def group_jobs_by_day(jobs: Iterable[Mapping[str, Any]], start: Any, end: Any) -> dict[date, list[Mapping[str, Any]]]:
    first, last = to_day(start), to_day(end)
    if first is None or last is None:
        return {}
    jobs = list(jobs)
    out: dict[date, list[Mapping[str, Any]]] = {}
    day = first
    while day <= last:
        out[day] = jobs_on_date(jobs, day)
        day += timedelta(days=1)
    return out


def month_grid_range(year: int, month: int) -> tuple[date, date]:
    """First and last day shown for a month: Sunday-first weeks padded with neighbouring days."""
    weeks = calendar.Calendar(firstweekday=6).monthdatescalendar(year, month)
    return weeks[0][0], weeks[-1][-1]


def month_view(jobs: Iterable[Mapping[str, Any]], year: int, month: int) -> list[list[dict[str, Any]]]:
    """Sunday-first weeks covering the month, padded with neighbouring days."""
    first, last = month_grid_range(year, month)
    by_day = group_jobs_by_day(jobs, first, last)
    days = list(by_day)
    return [
        [{"date": day, "in_month": day.month == month, "jobs": by_day[day]} for day in days[i:i + 7]]
        for i in range(0, len(days), 7)
    ]


def week_start(day: date) -> date:
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_view(jobs: Iterable[Mapping[str, Any]], day: Any) -> list[dict[str, Any]]:
    target = to_day(day)
    if target is None:
        return []
    first = week_start(target)
    by_day = group_jobs_by_day(jobs, first, first + timedelta(days=6))
    return [{"date": d, "jobs": js} for d, js in by_day.items()]


def period_window(period: str, today: date) -> tuple[date, date] | None:
    if period == "this_week":
        # Days left until the coming Sunday; on a Sunday that is a full week.
        js_weekday = (today.weekday() + 1) % 7
        return today, today + timedelta(days=7 - js_weekday)
    if period == "this_month":
        last = calendar.monthrange(today.year, today.month)[1]
        return today, today.replace(day=last)
    if period == "next_month":
        year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
        return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])
    return None


def _matches(job: Mapping[str, Any], statuses: set[str] | None, subcontractor_id: Any, window: tuple[date, date] | None) -> bool:
    if statuses is not None and job.get("status") not in statuses:
        return False
    if subcontractor_id not in (None, "all") and str(job.get("subcontractor_id")) != str(subcontractor_id):
        return False
    if window is not None:
        start = to_day(job.get("scheduled_start_date"))
        if start is not None and not (window[0] <= start <= window[1]):
            return False
    return True


def filter_jobs(
    jobs: Iterable[Mapping[str, Any]],
    status: str | Iterable[str] = "all",
    subcontractor_id: Any = "all",
    period: str = "all",
    today: date | None = None,
) -> list[Mapping[str, Any]]:
    """Jobs passing the status, subcontractor and period filters.

    A job with no scheduled start is unconstrained by ``period``.
    """
    if isinstance(status, str):
        statuses = None if status == "all" else {status}
    else:
        statuses = set(status)
        if "all" in statuses:
            statuses = None
    window = period_window(period, today or date.today())
    return [job for job in jobs if _matches(job, statuses, subcontractor_id, window)]


def hours_worked(work_date: date, start_time: time, end_time: time) -> float:
    """Hours between two clock times on ``work_date``; the end must come after the start."""
    start = datetime.combine(work_date, start_time)
    end = datetime.combine(work_date, end_time)
    if end <= start:
        raise ValidationError("end_time must be after start_time")
    return (end - start).total_seconds() / 3600


def mappable_jobs(jobs: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    return [
        job
        for job in jobs
        if job.get("latitude") is not None
        and job.get("longitude") is not None
        and to_day(job.get("scheduled_start_date")) is not None
    ]
