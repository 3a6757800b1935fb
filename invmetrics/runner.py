from __future__ import annotations
import logging
from typing import Any, Callable, List, Optional
from datetime import datetime, timezone
from pydantic import ValidationError
from invmetrics.aggregation import COMPARISON_WINDOW_DAYS, aggregate_daily, previous_period, previous_period_total
from invmetrics.config import Settings
from invmetrics.dates import is_valid_day, offset_days
from invmetrics.errors import GenerationError, MetricsError, QueryValidationError
from invmetrics.observability import set_log_context
from invmetrics.repository import InvitationRepository
from invmetrics.schemas import DateRange, MetricDataPoint, MetricsQuery, RawInvitation
from invmetrics.source import fetch_invitations
from invmetrics.stores.base import RecordStore

logger = logging.getLogger(__name__)

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

def build_query(tenant_id: Any, account_id: Any, from_: Any, to: Any) -> MetricsQuery:
    """Validates raw request parameters; raises QueryValidationError on the first problem."""
    if not tenant_id or not isinstance(tenant_id, str):
        raise QueryValidationError("tenantId is required and must be a string")
    if not account_id or not isinstance(account_id, str):
        raise QueryValidationError("accountId is required and must be a string")
    if not from_ or not isinstance(from_, str):
        raise QueryValidationError("from is required and must be a string in YYYY-MM-DD format")
    if not to or not isinstance(to, str):
        raise QueryValidationError("to is required and must be a string in YYYY-MM-DD format")
    if not is_valid_day(from_):
        raise QueryValidationError("from must be a valid date in YYYY-MM-DD format")
    if not is_valid_day(to):
        raise QueryValidationError("to must be a valid date in YYYY-MM-DD format")
    if from_ > to:
        raise QueryValidationError("from date must be less than or equal to to date")
    try:
        # The comparison window and the exclusive upper bound must stay inside 0001..9999.
        offset_days(from_, -COMPARISON_WINDOW_DAYS)
        offset_days(to, 1)
    except OverflowError as e:
        raise QueryValidationError("from must be on or after 0001-01-08 and to must be before 9999-12-31") from e
    try:
        return MetricsQuery(tenant_id=tenant_id, account_id=account_id, window=DateRange(start=from_, end=to))
    except ValidationError as e:
        raise QueryValidationError(str(e)) from e

class MetricsPipeline:
    """generate -> persist -> re-read -> aggregate -> roll up -> compare.

    Steps run strictly in order; the first failure propagates and nothing
    after it executes. Writes that already committed are idempotent, so the
    caller can retry the whole request.
    """

    def __init__(self, settings: Settings, store: RecordStore, clock: Optional[Callable[[], datetime]] = None):
        self.s = settings
        self.store = store
        self.repo = InvitationRepository(store, settings.invitations_collection, settings.rollups_collection)
        self._clock = clock or _now_utc

    async def run(self, query: MetricsQuery) -> List[MetricDataPoint]:
        tenant_id, account_id, window = query.tenant_id, query.account_id, query.window
        set_log_context(tenant_id=tenant_id, account_id=account_id)
        logger.info("Processing metrics request: from=%s to=%s", window.start, window.end)

        try:
            fetched = await fetch_invitations(tenant_id, account_id, window.start, window.end,
                                              delay_seconds=self.s.source_delay_seconds)
        except MetricsError:
            raise
        except Exception as e:
            raise GenerationError(f"invitation source failed: {e}") from e
        logger.info("Fetched %d invitations from source", len(fetched))

        raw = [RawInvitation(tenant_id=tenant_id, account_id=account_id,
                             external_id=inv.external_id, received_at=inv.received_at) for inv in fetched]
        written = await self.repo.write_raw_invitations(raw)
        logger.info("Wrote %d raw invitations", written)

        # The store, not the fetched batch, is the source of truth for counts.
        stored = await self.repo.query_invitations(tenant_id, account_id, window.start, window.end)
        counts = aggregate_daily(window, stored)
        logger.info("Zero-filled %d days in range", len(counts))

        written = await self.repo.write_daily_rollups(tenant_id, account_id, counts, now=self._clock())
        logger.info("Wrote %d daily rollups", written)

        prev = previous_period(window.start)
        comparison = await previous_period_total(self.repo, tenant_id, account_id, window.start)
        logger.info("Previous period %s..%s total: %d", prev.start, prev.end, comparison)

        return [
            MetricDataPoint(date=c.date, value=c.count,
                            previous_period_comparison=comparison if i == 0 else None)
            for i, c in enumerate(counts)
        ]
