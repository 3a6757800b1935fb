from __future__ import annotations
from typing import Dict, Iterable, List, Sequence
from datetime import datetime
from urllib.parse import quote
from invmetrics.dates import day_of, day_start, format_instant, offset_days, parse_instant
from invmetrics.schemas import DailyCount, DailyRollup, RawInvitation
from invmetrics.stores.base import Collection, RecordStore

def scoped_key(*parts: str) -> str:
    # Parts are percent-encoded so a "/" inside an id cannot shift the boundaries.
    return "/".join(quote(part, safe="") for part in parts)

def rollup_key(tenant_id: str, account_id: str, day: str) -> str:
    return scoped_key(tenant_id, account_id, day)

def invitation_key(inv: RawInvitation) -> str:
    """External ids are only unique within one tenant and account."""
    return scoped_key(inv.tenant_id, inv.account_id, inv.external_id)

def count_by_day(invitations: Iterable[RawInvitation]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for inv in invitations:
        d = day_of(inv.received_at)
        counts[d] = counts.get(d, 0) + 1
    return counts

class InvitationRepository:
    """Invitation and rollup access on top of a RecordStore."""

    def __init__(self, store: RecordStore, invitations: str = "invitations", rollups: str = "daily_rollups"):
        self.store = store
        self.invitations = Collection(invitations, instant_field="received_at")
        self.rollups = Collection(rollups, instant_field="date")

    async def write_raw_invitations(self, invitations: Sequence[RawInvitation]) -> int:
        return await self.store.upsert_many(
            self.invitations, [(invitation_key(inv), inv.to_document()) for inv in invitations]
        )

    async def query_invitations(self, tenant_id: str, account_id: str, start: str, end: str) -> List[RawInvitation]:
        # Upper bound is the next day's midnight, exclusive.
        docs = await self.store.query_range(
            self.invitations,
            {"tenant_id": tenant_id, "account_id": account_id},
            day_start(start),
            day_start(offset_days(end, 1)),
        )
        return [RawInvitation(
            tenant_id=d["tenant_id"],
            account_id=d["account_id"],
            external_id=d["external_id"],
            received_at=parse_instant(d["received_at"]),
        ) for d in docs]

    async def query_invitation_counts(self, tenant_id: str, account_id: str, start: str, end: str) -> Dict[str, int]:
        """Stored invitation counts per UTC day; days without invitations are absent."""
        return count_by_day(await self.query_invitations(tenant_id, account_id, start, end))

    async def total_invitations_in_period(self, tenant_id: str, account_id: str, start: str, end: str) -> int:
        counts = await self.query_invitation_counts(tenant_id, account_id, start, end)
        return sum(counts.values())

    async def write_daily_rollups(self, tenant_id: str, account_id: str,
                                  counts: Sequence[DailyCount], now: datetime) -> int:
        updated_at = format_instant(now)
        items = []
        for c in counts:
            rollup = DailyRollup(tenant_id=tenant_id, account_id=account_id, date=c.date,
                                 invitations_count=c.count, updated_at=updated_at)
            items.append((rollup_key(tenant_id, account_id, c.date), rollup.model_dump()))
        return await self.store.upsert_many(self.rollups, items)

    async def read_daily_rollups(self, tenant_id: str, account_id: str, start: str, end: str) -> List[DailyRollup]:
        docs = await self.store.query_range(
            self.rollups,
            {"tenant_id": tenant_id, "account_id": account_id},
            day_start(start),
            day_start(offset_days(end, 1)),
        )
        return [DailyRollup.model_validate(d) for d in docs]
