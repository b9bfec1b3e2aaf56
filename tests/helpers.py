"""
Shared test fixtures: temp SQLite store and a recording notification sink.
"""
from __future__ import annotations
import asyncio
import os
import tempfile

import askcpa.database as database
from askcpa.lifecycle import QuestionLifecycle
from askcpa.notifications import NotificationDispatcher


class RecordingSink:
    """Stands in for SmtpNotificationSink.send and remembers every call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[str, str, dict]] = []

    def __call__(self, to: str, template: str, data: dict) -> bool:
        self.calls.append((to, template, dict(data)))
        return not self.fail

    def templates_to(self, to: str) -> list[str]:
        return [t for (addr, t, _) in self.calls if addr == to]


def fresh_db() -> str:
    """Point the store at a new temp file with the schema created."""
    tmp = tempfile.mktemp(suffix=".db")
    database.set_db_path(tmp)
    asyncio.run(database.init_db())
    return tmp


def drop_db(path: str):
    database.set_db_path("")
    if os.path.exists(path):
        os.unlink(path)


def make_engine(sink: RecordingSink, admin_email: str = "", max_attempts: int = 1):
    dispatcher = NotificationDispatcher(sink, max_attempts=max_attempts, backoff_seconds=0)
    return QuestionLifecycle(dispatcher, admin_email=admin_email), dispatcher
