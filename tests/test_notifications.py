#!/usr/bin/env python3
"""
Notification Sink & Dispatcher Tests
=====================================
Template rendering, SMTP failure handling, and retry/backoff. No real SMTP
server is contacted.
"""
from __future__ import annotations
import asyncio
import smtplib
import sys
import threading
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

import askcpa.email_utils as email_utils
from askcpa.config import Settings
from askcpa.email_utils import SmtpNotificationSink, render_template
from askcpa.errors import NotificationError
from askcpa.notifications import NotificationDispatcher

from helpers import RecordingSink

CONFIGURED = Settings(
    smtp_user="sender@azeasycpa.com",
    smtp_password="app-password",
    base_url="https://askthecpaguy.com",
)


# ── Templates ───────────────────────────────────────────────────────────

def test_question_received_template():
    subject, html_body, text_body = render_template(
        "question-received", {"question": "What is a 1099?"}
    )
    assert "Received" in subject
    assert "What is a 1099?" in html_body
    assert "What is a 1099?" in text_body


def test_answer_template_includes_answer_and_status_link():
    subject, html_body, text_body = render_template(
        "answer-notification",
        {"question": "What is a 1099?", "answer": "An information return."},
        base_url="https://askthecpaguy.com",
    )
    assert "Answered" in subject
    assert "An information return." in html_body
    assert "An information return." in text_body
    assert "https://askthecpaguy.com/status" in text_body


def test_admin_template_names_submitter():
    _, html_body, text_body = render_template(
        "admin-notification", {"question": "What is a 1099?", "email": "a@x.com"}
    )
    assert "a@x.com" in html_body
    assert "From: a@x.com" in text_body


def test_templates_escape_html_in_user_text():
    _, html_body, text_body = render_template(
        "question-received", {"question": "Is <script>x</script> deductible?"}
    )
    assert "<script>" not in html_body
    assert "&lt;script&gt;" in html_body
    assert "<script>" in text_body


def test_unknown_template_rejected():
    try:
        render_template("weekly-digest", {"question": "q"})
        raise AssertionError("expected ValueError")
    except ValueError:
        pass


# ── SMTP Sink ───────────────────────────────────────────────────────────

class _FakeSMTP:
    sent: list = []
    fail_with: Exception | None = None

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        if _FakeSMTP.fail_with is not None:
            raise _FakeSMTP.fail_with

    def sendmail(self, from_addr, to, msg):
        _FakeSMTP.sent.append((from_addr, to, msg))


def test_sink_sends_via_smtp(monkeypatch):
    _FakeSMTP.sent = []
    _FakeSMTP.fail_with = None
    monkeypatch.setattr(email_utils.smtplib, "SMTP", _FakeSMTP)

    sink = SmtpNotificationSink(CONFIGURED)
    ok = sink.send("a@x.com", "question-received", {"question": "What is a 1099?"})

    assert ok is True
    assert len(_FakeSMTP.sent) == 1
    from_addr, to, _ = _FakeSMTP.sent[0]
    assert from_addr == "sender@azeasycpa.com"
    assert to == "a@x.com"


def test_sink_reports_smtp_failure_as_false(monkeypatch):
    _FakeSMTP.sent = []
    _FakeSMTP.fail_with = smtplib.SMTPAuthenticationError(535, b"bad credentials")
    monkeypatch.setattr(email_utils.smtplib, "SMTP", _FakeSMTP)

    sink = SmtpNotificationSink(CONFIGURED)
    assert sink.send("a@x.com", "question-received", {"question": "q"}) is False
    assert _FakeSMTP.sent == []


def test_sink_without_credentials_skips_send():
    sink = SmtpNotificationSink(Settings())
    assert sink.is_configured() is False
    assert sink.send("a@x.com", "question-received", {"question": "q"}) is False


def test_sink_rejects_unknown_template_and_empty_recipient():
    sink = SmtpNotificationSink(CONFIGURED)
    assert sink.send("a@x.com", "weekly-digest", {"question": "q"}) is False
    assert sink.send("", "question-received", {"question": "q"}) is False


def test_sender_address_falls_back_to_smtp_user():
    assert CONFIGURED.sender_address == "sender@azeasycpa.com"
    explicit = Settings(smtp_user="u@x.com", from_email="chris@azeasycpa.com")
    assert explicit.sender_address == "chris@azeasycpa.com"


# ── Dispatcher ──────────────────────────────────────────────────────────

def test_dispatcher_retries_until_success():
    attempts = []

    def flaky(to, template, data):
        attempts.append(template)
        return len(attempts) >= 3

    dispatcher = NotificationDispatcher(flaky, max_attempts=5, backoff_seconds=0)
    assert asyncio.run(dispatcher.deliver("a@x.com", "question-received", {})) is True
    assert len(attempts) == 3


def test_dispatcher_gives_up_with_notification_error():
    sink = RecordingSink(fail=True)
    dispatcher = NotificationDispatcher(sink, max_attempts=2, backoff_seconds=0)
    try:
        asyncio.run(dispatcher.deliver("a@x.com", "question-received", {}))
        raise AssertionError("expected NotificationError")
    except NotificationError as e:
        assert e.attempts == 2
        assert e.template == "question-received"
    assert len(sink.calls) == 2


def test_dispatcher_swallows_sink_exceptions_in_background():
    def broken(to, template, data):
        raise RuntimeError("sink exploded")

    dispatcher = NotificationDispatcher(broken, max_attempts=2, backoff_seconds=0)

    async def run():
        task = dispatcher.dispatch("a@x.com", "answer-notification", {})
        assert dispatcher.pending == 1
        await dispatcher.drain()
        return task.result()

    assert asyncio.run(run()) is False
    assert dispatcher.pending == 0


def test_drain_cancels_sends_that_outlive_timeout():
    release = threading.Event()

    def stuck(to, template, data):
        release.wait(2)
        return True

    dispatcher = NotificationDispatcher(stuck, max_attempts=1, backoff_seconds=0)

    async def run():
        task = dispatcher.dispatch("a@x.com", "question-received", {})
        await dispatcher.drain(timeout=0.05)
        # Let the worker thread finish so the default executor can shut down.
        release.set()
        return task

    task = asyncio.run(run())
    assert task.cancelled()
    assert dispatcher.pending == 0


if __name__ == "__main__":
    import pytest
    sys.exit(pytest.main([__file__, "-v"]))
