from __future__ import annotations

from datetime import date, datetime, time

import pytest

from paintops.errors import ValidationError
from paintops.scheduling import (
    filter_jobs,
    group_jobs_by_day,
    hours_worked,
    jobs_on_date,
    mappable_jobs,
    month_grid_range,
    month_view,
    period_window,
    week_start,
    week_view,
)

SPAN_JOB = {"id": 1, "scheduled_start_date": date(2025, 6, 10), "scheduled_end_date": date(2025, 6, 12)}
ONE_DAY_JOB = {"id": 2, "scheduled_start_date": "2025-06-11", "scheduled_end_date": None}
UNSCHEDULED = {"id": 3, "scheduled_start_date": None}


@pytest.mark.parametrize(
    "day,expected",
    [
        (date(2025, 6, 9), False),
        (date(2025, 6, 10), True),
        (date(2025, 6, 11), True),
        (date(2025, 6, 12), True),
        (date(2025, 6, 13), False),
    ],
)
def test_multi_day_job_occupies_every_day_of_its_span(day: date, expected: bool) -> None:
    assert (SPAN_JOB in jobs_on_date([SPAN_JOB], day)) is expected


def test_job_without_end_date_is_one_day() -> None:
    assert jobs_on_date([ONE_DAY_JOB], date(2025, 6, 11)) == [ONE_DAY_JOB]
    assert jobs_on_date([ONE_DAY_JOB], date(2025, 6, 12)) == []


def test_timestamps_are_normalised_to_days() -> None:
    job = {"scheduled_start_date": datetime(2025, 6, 10, 15, 30), "scheduled_end_date": datetime(2025, 6, 11, 8, 0)}
    assert jobs_on_date([job], "2025-06-11") == [job]
    assert jobs_on_date([job], datetime(2025, 6, 10, 0, 0)) == [job]


def test_unscheduled_jobs_never_on_calendar() -> None:
    assert jobs_on_date([UNSCHEDULED], date(2025, 6, 11)) == []


def test_group_jobs_by_day() -> None:
    out = group_jobs_by_day([SPAN_JOB, ONE_DAY_JOB, UNSCHEDULED], date(2025, 6, 9), date(2025, 6, 12))
    assert list(out) == [date(2025, 6, d) for d in (9, 10, 11, 12)]
    assert [j["id"] for j in out[date(2025, 6, 11)]] == [1, 2]
    assert out[date(2025, 6, 9)] == []


def test_month_view_is_sunday_first_and_padded() -> None:
    weeks = month_view([SPAN_JOB], 2025, 6)
    # June 1 2025 is a Sunday; June 30 a Monday
    assert weeks[0][0]["date"] == date(2025, 6, 1)
    assert weeks[-1][-1]["date"] == date(2025, 7, 5)
    assert all(len(w) == 7 for w in weeks)
    assert weeks[-1][-1]["in_month"] is False
    busy = [c["date"].day for w in weeks for c in w if c["jobs"]]
    assert busy == [10, 11, 12]


def test_week_view_contains_day() -> None:
    days = week_view([SPAN_JOB], date(2025, 6, 11))
    assert [d["date"] for d in days] == [date(2025, 6, d) for d in range(8, 15)]
    assert [len(d["jobs"]) for d in days] == [0, 0, 1, 1, 1, 0, 0]


def test_week_start_is_sunday() -> None:
    assert week_start(date(2025, 6, 8)) == date(2025, 6, 8)
    assert week_start(date(2025, 6, 14)) == date(2025, 6, 8)


class TestPeriodWindow:
    def test_this_week_runs_to_coming_sunday(self) -> None:
        # Wednesday 2025-06-11 -> Sunday 2025-06-15
        assert period_window("this_week", date(2025, 6, 11)) == (date(2025, 6, 11), date(2025, 6, 15))

    def test_this_week_on_sunday_spans_a_full_week(self) -> None:
        assert period_window("this_week", date(2025, 6, 8)) == (date(2025, 6, 8), date(2025, 6, 15))

    def test_this_month(self) -> None:
        assert period_window("this_month", date(2025, 2, 10)) == (date(2025, 2, 10), date(2025, 2, 28))

    def test_next_month_wraps_year(self) -> None:
        assert period_window("next_month", date(2025, 12, 20)) == (date(2026, 1, 1), date(2026, 1, 31))

    def test_all_has_no_window(self) -> None:
        assert period_window("all", date(2025, 6, 11)) is None


JOBS = [
    {"id": 1, "status": "scheduled", "subcontractor_id": "sub-a", "scheduled_start_date": date(2025, 6, 12)},
    {"id": 2, "status": "completed", "subcontractor_id": "sub-b", "scheduled_start_date": date(2025, 7, 3)},
    {"id": 3, "status": "lead", "subcontractor_id": None, "scheduled_start_date": None},
    {"id": 4, "status": "scheduled", "subcontractor_id": "sub-b", "scheduled_start_date": date(2025, 6, 1)},
]


def _ids(jobs) -> list[int]:
    return [j["id"] for j in jobs]


def test_filter_all_passes_everything() -> None:
    assert _ids(filter_jobs(JOBS)) == [1, 2, 3, 4]


def test_filter_by_status_and_subcontractor() -> None:
    assert _ids(filter_jobs(JOBS, status="scheduled")) == [1, 4]
    assert _ids(filter_jobs(JOBS, status=["scheduled", "completed"], subcontractor_id="sub-b")) == [2, 4]


def test_filter_period_keeps_unscheduled_jobs() -> None:
    today = date(2025, 6, 11)
    assert _ids(filter_jobs(JOBS, period="this_week", today=today)) == [1, 3]
    assert _ids(filter_jobs(JOBS, period="next_month", today=today)) == [2, 3]
    # job 4 started before today
    assert _ids(filter_jobs(JOBS, period="this_month", today=today)) == [1, 3]


def test_mappable_jobs_need_coordinates_and_date() -> None:
    jobs = [
        {"id": 1, "latitude": 39.7, "longitude": -89.6, "scheduled_start_date": date(2025, 6, 1)},
        {"id": 2, "latitude": 39.7, "longitude": None, "scheduled_start_date": date(2025, 6, 1)},
        {"id": 3, "latitude": 39.7, "longitude": -89.6, "scheduled_start_date": None},
        {"id": 4, "latitude": 0.0, "longitude": 0.0, "scheduled_start_date": "2025-06-02"},
    ]
    assert _ids(mappable_jobs(jobs)) == [1, 4]


def test_hours_worked() -> None:
    assert hours_worked(date(2025, 6, 11), time(8, 0), time(16, 30)) == pytest.approx(8.5)
    with pytest.raises(ValidationError):
        hours_worked(date(2025, 6, 11), time(9, 0), time(9, 0))


@pytest.mark.parametrize(
    "year,month,first,last",
    [
        (2025, 6, date(2025, 6, 1), date(2025, 7, 5)),
        (2025, 3, date(2025, 2, 23), date(2025, 4, 5)),
        (2024, 12, date(2024, 12, 1), date(2025, 1, 4)),
    ],
)
def test_month_grid_range_is_sunday_to_saturday(year, month, first, last) -> None:
    assert month_grid_range(year, month) == (first, last)
