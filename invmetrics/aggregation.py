from __future__ import annotations
from typing import Iterable, List, Mapping
from invmetrics.dates import each_day_inclusive, offset_days
from invmetrics.repository import InvitationRepository, count_by_day
from invmetrics.schemas import DailyCount, DateRange, RawInvitation

COMPARISON_WINDOW_DAYS = 7

def zero_fill(window: DateRange, counts: Mapping[str, int]) -> List[DailyCount]:
    """One DailyCount per day of the window, ascending; days without events count 0.

    Counts for days outside the window are ignored.
    """
    return [DailyCount(date=d, count=counts.get(d, 0)) for d in each_day_inclusive(window.start, window.end)]

def aggregate_daily(window: DateRange, invitations: Iterable[RawInvitation]) -> List[DailyCount]:
    return zero_fill(window, count_by_day(invitations))

def previous_period(start: str) -> DateRange:
    """The fixed 7-day window ending the day before ``start``."""
    return DateRange(start=offset_days(start, -COMPARISON_WINDOW_DAYS), end=offset_days(start, -1))

async def previous_period_total(repo: InvitationRepository, tenant_id: str, account_id: str, start: str) -> int:
    window = previous_period(start)
    return await repo.total_invitations_in_period(tenant_id, account_id, window.start, window.end)
