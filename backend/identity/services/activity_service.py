# Overview: Bounded per-account activity log; appended inside the caller's transaction.

"""
Activity Audit Log

WHY: Every account-affecting action (login, password change, token
issuance, verification decision) is attributable after the fact.

BOUNDED FIFO: Only the most recent ACTIVITY_LOG_LIMIT entries are kept per
account. Eviction removes the oldest entries first; recency ordering is
exact (by insertion id), never sampled.

CONCURRENCY: Appending stamps account.last_activity_at, which bumps the
account's version_id. Two racing appends for the same account therefore
conflict on flush and one of them retries with a fresh read, so the bound
holds under concurrent writers.
"""

from __future__ import annotations

from ..models import Account, ActivityLogEntry
from identity.time_utils import utcnow


ACTIVITY_LOG_LIMIT = 100


def log_activity(
    account: Account,
    action: str,
    description: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> ActivityLogEntry:
    """
    Append an activity entry and evict the oldest beyond ACTIVITY_LOG_LIMIT.

    Does not commit. Callers commit together with the mutation being logged.
    """
    now = utcnow()
    entry = ActivityLogEntry(
        action=action,
        description=description,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=now,
    )
    account.activity_log.append(entry)
    account.last_activity_at = now

    overflow = len(account.activity_log) - ACTIVITY_LOG_LIMIT
    if overflow > 0:
        # delete-orphan cascade removes the evicted rows
        del account.activity_log[:overflow]

    return entry


def get_activity(account: Account, limit: int | None = None) -> list[ActivityLogEntry]:
    """Entries newest first."""
    entries = list(reversed(account.activity_log))
    if limit is not None:
        entries = entries[:limit]
    return entries
