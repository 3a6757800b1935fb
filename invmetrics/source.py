"""Deterministic stand-in for the upstream invitations API.

Every field is derived from a seeded string hash, so the same
(tenant, account, day) always yields the same invitations. Repeated ingestion
of a range therefore produces identical external ids, which is what makes the
downstream upserts idempotent.
"""
from __future__ import annotations
import asyncio
from typing import List
from datetime import timedelta
from invmetrics.dates import day_start, each_day_inclusive
from invmetrics.schemas import Invitation

MAX_DAILY_INVITATIONS = 5
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

def simple_hash(s: str) -> int:
    """32-bit rolling hash: h = h * 31 + code_unit over UTF-16 code units.

    Arithmetic wraps to a signed 32-bit integer after every step; the absolute
    value is returned, so the result lies in [0, 2**31].
    """
    h = 0
    data = s.encode("utf-16-le")
    for i in range(0, len(data), 2):
        h = (h * 31 + int.from_bytes(data[i:i + 2], "little")) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)

def to_base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_BASE36[r])
    return "".join(reversed(out))

def daily_invitation_count(tenant_id: str, account_id: str, day: str) -> int:
    return simple_hash(f"{tenant_id}-{account_id}-{day}") % (MAX_DAILY_INVITATIONS + 1)

def generate_invitations_for_day(tenant_id: str, account_id: str, day: str, count: int) -> List[Invitation]:
    midnight = day_start(day)
    compact = day.replace("-", "")
    out = []
    for i in range(count):
        seed = f"{tenant_id}-{account_id}-{day}-{i}"
        hour = simple_hash(f"hour-{seed}") % 24
        minute = simple_hash(f"minute-{seed}") % 60
        out.append(Invitation(
            external_id=f"inv_{to_base36(simple_hash(seed))}_{compact}_{i}",
            sender_id=f"sender_{to_base36(simple_hash(f'sender-{seed}'))}",
            received_at=midnight + timedelta(hours=hour, minutes=minute),
        ))
    return out

def generate_invitations(tenant_id: str, account_id: str, start: str, end: str) -> List[Invitation]:
    invitations: List[Invitation] = []
    for day in each_day_inclusive(start, end):
        count = daily_invitation_count(tenant_id, account_id, day)
        invitations.extend(generate_invitations_for_day(tenant_id, account_id, day, count))
    invitations.sort(key=lambda inv: inv.received_at)
    return invitations

async def fetch_invitations(tenant_id: str, account_id: str, start: str, end: str,
                            delay_seconds: float = 0.0) -> List[Invitation]:
    if delay_seconds > 0:
        await asyncio.sleep(delay_seconds)
    return generate_invitations(tenant_id, account_id, start, end)

def expected_daily_count(tenant_id: str, account_id: str, day: str) -> int:
    return daily_invitation_count(tenant_id, account_id, day)

def sample_sender_ids(tenant_id: str, account_id: str, count: int) -> List[str]:
    return [f"sender_{to_base36(simple_hash(f'sender-{tenant_id}-{account_id}-{i}'))}" for i in range(count)]
