from __future__ import annotations
"""
AskCPA — Dashboard Session Gate
================================
One shared secret (DASHBOARD_SECRET) guards the dashboard. A correct secret
buys an opaque bearer token that expires after DASHBOARD_SESSION_HOURS.

This is a placeholder gate, not a security boundary: there is no per-user
identity and no brute-force protection.
"""
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone

import askcpa.database as database
from askcpa.errors import ConfigurationError
from askcpa.models import DashboardSession

logger = logging.getLogger(__name__)


class SessionGate:

    def __init__(self, secret: str, session_hours: float = 12.0):
        self._secret = secret
        self.session_ttl = timedelta(hours=session_hours)

    def is_configured(self) -> bool:
        return bool(self._secret)

    def authenticate(self, supplied_secret: str) -> bool:
        if not self._secret:
            raise ConfigurationError("Dashboard not configured. Set DASHBOARD_SECRET in .env")
        return hmac.compare_digest(
            (supplied_secret or "").encode("utf-8"),
            self._secret.encode("utf-8"),
        )

    async def login(self, supplied_secret: str) -> DashboardSession | None:
        """Issue a session token for a correct secret, else None."""
        if not self.authenticate(supplied_secret):
            logger.warning("[dashboard] Rejected login attempt")
            return None

        token = secrets.token_urlsafe(32)
        expires_at = datetime.now(timezone.utc) + self.session_ttl
        session = await database.create_dashboard_session(token, expires_at)
        logger.info(f"[dashboard] Session issued, expires {session.expires_at.isoformat()}")
        return session

    async def verify(self, token: str | None) -> bool:
        if not token:
            return False
        return await database.get_dashboard_session(token) is not None

    async def logout(self, token: str | None) -> bool:
        if not token:
            return False
        return await database.delete_dashboard_session(token)
