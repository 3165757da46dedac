"""Maintenance recurrence: next due dates, calendar entries and alerts.

A schedule is either a literal next date (``NONE``) or "the K-th weekday W
of every month" (``MONTHLY_WEEKDAY``). Resolution is total: a misconfigured
rule yields ``None`` instead of raising, since this runs on every view
refresh.
"""
from __future__ import annotations

import calendar
import datetime as _dt
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from core.constants import DEFAULT_DUE_WINDOW_DAYS, RECURRENCE_HORIZON_MONTHS
from core.date_utils import add_months, month_grid_start, parse_date, sunday_weekday

from .models import AssetRecord, RepeatMode, ScheduleRule

__all__ = [
    "CalendarEntry",
    "DueAlert",
    "GRID_DAYS",
    "calendar_window",
    "due_alerts",
    "materialize_calendar",
    "next_occurrence",
    "nth_weekday_of_month",
    "occurrences_between",
]

GRID_DAYS = 42  # 6 weeks

KIND_MAINTENANCE = "maintenance"
KIND_VERIFICATION = "verification"

RETIRED_STATUS = "Retired"


def nth_weekday_of_month(year: int, month: int, week_of_month: int, weekday: int) -> Optional[_dt.date]:
    """Date of the week_of_month-th weekday (0 = Sunday) in the month, or None if it does not exist."""
    if not _dt.MINYEAR <= year <= _dt.MAXYEAR:
        return None
    first = _dt.date(year, month, 1)
    offset = (weekday - sunday_weekday(first) + 7) % 7
    day = 1 + offset + (week_of_month - 1) * 7
    if day < 1 or day > calendar.monthrange(year, month)[1]:
        return None
    return _dt.date(year, month, day)


def next_occurrence(
    rule: ScheduleRule,
    reference: _dt.date,
    horizon_months: int = RECURRENCE_HORIZON_MONTHS,
) -> Optional[_dt.date]:
    """Earliest due date on or after reference.

    For ``NONE`` the configured date is returned as-is (even when it is in
    the past, so it can show as overdue). For ``MONTHLY_WEEKDAY`` months
    without a matching day are skipped; nothing within ``horizon_months``
    gives None.
    """
    if rule.mode == RepeatMode.NONE:
        return parse_date(rule.next_date)
    if rule.validation_error():
        return None
    for i in range(horizon_months):
        y, m = add_months(reference.year, reference.month, i)
        d = nth_weekday_of_month(y, m, rule.week_of_month, rule.weekday)
        if d is not None and d >= reference:
            return d
    return None


def occurrences_between(rule: ScheduleRule, start: _dt.date, end: _dt.date) -> List[_dt.date]:
    """All due dates of rule within [start, end], oldest first."""
    if end < start:
        return []
    if rule.mode == RepeatMode.NONE:
        d = parse_date(rule.next_date)
        return [d] if d is not None and start <= d <= end else []
    if rule.validation_error():
        return []
    out: List[_dt.date] = []
    months = (end.year - start.year) * 12 + (end.month - start.month) + 1
    for i in range(months):
        y, m = add_months(start.year, start.month, i)
        d = nth_weekday_of_month(y, m, rule.week_of_month, rule.weekday)
        if d is not None and start <= d <= end:
            out.append(d)
    return out


def calendar_window(year: int, month: int) -> Tuple[_dt.date, _dt.date]:
    """First and last day of the 6-week grid shown for a month."""
    start = month_grid_start(year, month)
    return start, start + _dt.timedelta(days=GRID_DAYS - 1)


@dataclass(frozen=True)
class CalendarEntry:
    """One due date shown on the calendar; recurring rules yield one entry per month."""

    date: _dt.date
    asset_key: Tuple[str, str]
    asset_id: str
    kind: str
    recurring: bool = False
    note: str = ""


def materialize_calendar(records: Iterable[AssetRecord], year: int, month: int) -> List[CalendarEntry]:
    start, end = calendar_window(year, month)
    entries: List[CalendarEntry] = []
    for rec in records:
        recurring = rec.schedule.mode == RepeatMode.MONTHLY_WEEKDAY
        for d in occurrences_between(rec.schedule, start, end):
            entries.append(
                CalendarEntry(d, rec.key, rec.asset_id, KIND_MAINTENANCE, recurring, rec.schedule.note)
            )
        vd = parse_date(rec.verification.next_date)
        if vd is not None and start <= vd <= end:
            entries.append(CalendarEntry(vd, rec.key, rec.asset_id, KIND_VERIFICATION))
    entries.sort(key=lambda e: (e.date, e.asset_id, e.kind))
    return entries


@dataclass(frozen=True)
class DueAlert:
    asset_key: Tuple[str, str]
    asset_id: str
    kind: str
    date: _dt.date
    days_until: int

    @property
    def overdue(self) -> bool:
        return self.days_until < 0


def due_alerts(
    records: Iterable[AssetRecord],
    today: _dt.date,
    window_days: int = DEFAULT_DUE_WINDOW_DAYS,
) -> List[DueAlert]:
    """Overdue and due-soon maintenance/verification dates, soonest first.

    Retired assets are skipped. Recurring rules never produce overdue
    alerts since they always resolve to a date on or after today.
    """
    alerts: List[DueAlert] = []
    for rec in records:
        if rec.status == RETIRED_STATUS:
            continue
        candidates = (
            (KIND_MAINTENANCE, next_occurrence(rec.schedule, today)),
            (KIND_VERIFICATION, parse_date(rec.verification.next_date)),
        )
        for kind, d in candidates:
            if d is None:
                continue
            days = (d - today).days
            if days <= window_days:
                alerts.append(DueAlert(rec.key, rec.asset_id, kind, d, days))
    alerts.sort(key=lambda a: (a.date, a.asset_id, a.kind))
    return alerts
