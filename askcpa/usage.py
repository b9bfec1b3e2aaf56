from __future__ import annotations
"""
AskCPA — Usage Tracker
=======================
Per-email submission counter. Tracked for future gating; no limit is
enforced yet.
"""
import logging

import aiosqlite

import askcpa.database as database
from askcpa.models import EmailUsage

logger = logging.getLogger(__name__)


async def record_submission(
    email: str,
    db: aiosqlite.Connection | None = None,
) -> EmailUsage:
    """Count one submission from ``email``.

    The counter is bumped with a single upsert, so concurrent submissions from
    the same address cannot lose an update. Pass ``db`` to make the write part
    of the caller's transaction.
    """
    usage = await database.upsert_email_usage(email, db=db)
    logger.debug(f"[usage] {email} now at {usage.question_count} question(s)")
    return usage


async def get_usage(email: str) -> EmailUsage | None:
    return await database.get_email_usage(email)
