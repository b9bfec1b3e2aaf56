#!/usr/bin/env python3
"""
Dashboard Session Gate Tests
=============================
Shared-secret check, token issue/verify/logout, and expiry.
"""
from __future__ import annotations
import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

import askcpa.database as database
from askcpa.errors import ConfigurationError
from askcpa.session_gate import SessionGate

from helpers import drop_db, fresh_db


def test_authenticate_compares_secret():
    gate = SessionGate("hunter2")
    assert gate.authenticate("hunter2") is True
    assert gate.authenticate("hunter3") is False
    assert gate.authenticate("") is False
    assert gate.authenticate(None) is False


def test_authenticate_without_secret_is_configuration_error():
    gate = SessionGate("")
    assert gate.is_configured() is False
    try:
        gate.authenticate("anything")
        raise AssertionError("expected ConfigurationError")
    except ConfigurationError:
        pass


def test_login_issues_verifiable_token():
    db = fresh_db()
    gate = SessionGate("hunter2", session_hours=1)

    async def run():
        rejected = await gate.login("wrong")
        session = await gate.login("hunter2")
        valid = await gate.verify(session.token)
        bogus = await gate.verify("not-a-token")
        empty = await gate.verify(None)
        return rejected, session, valid, bogus, empty

    try:
        rejected, session, valid, bogus, empty = asyncio.run(run())
        assert rejected is None
        assert session.token
        assert session.expires_at > datetime.now(timezone.utc)
        assert session.expires_at <= datetime.now(timezone.utc) + timedelta(hours=1, minutes=1)
        assert valid is True
        assert bogus is False
        assert empty is False
    finally:
        drop_db(db)


def test_logout_revokes_token():
    db = fresh_db()
    gate = SessionGate("hunter2")

    async def run():
        session = await gate.login("hunter2")
        removed = await gate.logout(session.token)
        again = await gate.logout(session.token)
        return removed, again, await gate.verify(session.token)

    try:
        removed, again, still_valid = asyncio.run(run())
        assert removed is True
        assert again is False
        assert still_valid is False
    finally:
        drop_db(db)


def test_expired_token_is_rejected():
    db = fresh_db()
    gate = SessionGate("hunter2")

    async def run():
        past = datetime.now(timezone.utc) - timedelta(minutes=5)
        await database.create_dashboard_session("stale-token", past)
        return await gate.verify("stale-token")

    try:
        assert asyncio.run(run()) is False
    finally:
        drop_db(db)


def test_new_login_purges_expired_tokens():
    db = fresh_db()
    gate = SessionGate("hunter2")

    async def run():
        past = datetime.now(timezone.utc) - timedelta(minutes=5)
        await database.create_dashboard_session("stale-token", past)
        await gate.login("hunter2")

    try:
        asyncio.run(run())
        import sqlite3
        conn = sqlite3.connect(db)
        tokens = [r[0] for r in conn.execute("SELECT token FROM dashboard_sessions")]
        conn.close()
        assert "stale-token" not in tokens
        assert len(tokens) == 1
    finally:
        drop_db(db)


if __name__ == "__main__":
    import pytest
    sys.exit(pytest.main([__file__, "-v"]))
