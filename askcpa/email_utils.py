from __future__ import annotations
"""
AskCPA — Email Utilities
=========================
SMTP notification sink for the three transactional templates:

    question-received    — to the submitter, right after a question is saved
    answer-notification  — to the submitter, when the CPA answers
    admin-notification   — to ADMIN_EMAIL, when a new question arrives

SmtpNotificationSink.send() never raises: every failure is logged and
reported as False.
"""

import html
import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from askcpa.config import Settings

logger = logging.getLogger(__name__)

QUESTION_RECEIVED = "question-received"
ANSWER_NOTIFICATION = "answer-notification"
ADMIN_NOTIFICATION = "admin-notification"

TEMPLATES = (QUESTION_RECEIVED, ANSWER_NOTIFICATION, ADMIN_NOTIFICATION)

_WRAPPER_STYLE = "font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;"
_QUOTE_STYLE = "background-color: #f5f5f5; padding: 15px; border-left: 4px solid #cd9f27; margin: 20px 0;"
_ANSWER_STYLE = "background-color: #f9f5e7; padding: 15px; border-left: 4px solid #cd9f27; margin: 20px 0;"


def _footer() -> str:
    year = datetime.now(timezone.utc).year
    return (
        '<p style="margin-top: 30px; font-size: 12px; color: #666;">'
        f"&copy; {year} AZ Easy CPA. All rights reserved.</p>"
    )


# ---------------------------------------------------------------------------
# Email templates
# ---------------------------------------------------------------------------

def render_template(template: str, data: dict, base_url: str = "") -> tuple[str, str, str]:
    """Return (subject, html_body, text_body) for a template.

    ``data`` carries ``question`` and, depending on the template, ``answer``
    or ``email``. Raises ValueError for an unknown template.
    """
    question = data.get("question", "")
    q_html = html.escape(question)

    if template == QUESTION_RECEIVED:
        subject = "Your Question Has Been Received - Ask the CPA Guy"
        text_body = (
            "Thank you for submitting your question to Ask the CPA Guy. "
            f'Your question: "{question}" has been received and will be reviewed by our CPA. '
            "We'll notify you when your answer is ready."
        )
        html_body = f"""
        <div style="{_WRAPPER_STYLE}">
            <h2 style="color: #cd9f27;">Your Question Has Been Received</h2>
            <p>Thank you for submitting your question to Ask the CPA Guy.</p>
            <div style="{_QUOTE_STYLE}">
                <p style="margin: 0;"><strong>Your question:</strong> {q_html}</p>
            </div>
            <p>Your question has been received and will be reviewed by our CPA.
               We'll notify you when your answer is ready.</p>
            {_footer()}
        </div>
        """

    elif template == ANSWER_NOTIFICATION:
        answer = data.get("answer") or ""
        status_url = f"{base_url}/status"
        subject = "Your Question Has Been Answered - Ask the CPA Guy"
        text_body = (
            f'The CPA has answered your question: "{question}"\n\n'
            f"Answer: {answer}\n\n"
            f"Check your question status: {status_url}\n\n"
            "Thank you for using Ask the CPA Guy."
        )
        html_body = f"""
        <div style="{_WRAPPER_STYLE}">
            <h2 style="color: #cd9f27;">Your Question Has Been Answered</h2>
            <p>The CPA has answered your question:</p>
            <div style="{_QUOTE_STYLE}">
                <p style="margin: 0;"><strong>Your question:</strong> {q_html}</p>
            </div>
            <div style="{_ANSWER_STYLE}">
                <p style="margin: 0;"><strong>Answer:</strong> {html.escape(answer)}</p>
            </div>
            <p><a href="{status_url}" style="color: #cd9f27;">Check your question status</a></p>
            {_footer()}
        </div>
        """

    elif template == ADMIN_NOTIFICATION:
        sender = data.get("email") or ""
        dashboard_url = f"{base_url}/dashboard"
        submitted = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        subject = "New Question Submitted - CPA Dashboard"
        text_body = (
            f'A new question has been submitted: "{question}"\n\n'
            f"From: {sender}\n\n"
            f"Please log in to the dashboard to review: {dashboard_url}"
        )
        html_body = f"""
        <div style="{_WRAPPER_STYLE}">
            <h2 style="color: #cd9f27;">New Question Submitted</h2>
            <div style="{_QUOTE_STYLE}">
                <p style="margin: 0;"><strong>Question:</strong> {q_html}</p>
                <p style="margin: 10px 0 0;"><strong>From:</strong> {html.escape(sender)}</p>
                <p style="margin: 10px 0 0;"><strong>Submitted:</strong> {submitted}</p>
            </div>
            <p><a href="{dashboard_url}" style="color: #cd9f27;">Go to Dashboard</a></p>
            {_footer()}
        </div>
        """

    else:
        raise ValueError(f"Unknown email template: {template}")

    return subject, html_body, text_body


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------

class SmtpNotificationSink:
    """Sends templated messages over SMTP with STARTTLS."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def is_configured(self) -> bool:
        """Check if SMTP credentials are configured."""
        return bool(self.settings.smtp_user and self.settings.smtp_password)

    def _send_email(self, to: str, subject: str, html_body: str, text_body: str = "") -> bool:
        """Send an email via SMTP. Returns True on success, False on failure."""
        if not self.is_configured():
            logger.warning("[email] SMTP not configured — skipping email send")
            return False

        s = self.settings
        msg = MIMEMultipart("alternative")
        msg["From"] = s.sender_address
        msg["To"] = to
        msg["Subject"] = subject

        if text_body:
            msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=30) as server:
                server.starttls()
                server.login(s.smtp_user, s.smtp_password)
                server.sendmail(s.sender_address, to, msg.as_string())
            logger.info(f"[email] Sent to {to}: {subject}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[email] Failed to send to {to}: {e}")
            return False

    def send(self, to: str, template: str, data: dict) -> bool:
        if not to:
            logger.warning(f"[email] No recipient for {template} — skipping")
            return False
        try:
            subject, html_body, text_body = render_template(template, data, self.settings.base_url)
        except ValueError as e:
            logger.error(f"[email] {e}")
            return False
        return self._send_email(to, subject, html_body, text_body)
