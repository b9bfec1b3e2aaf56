from __future__ import annotations
"""
AskCPA — Question Lifecycle Engine
===================================
Owns every write to a Question and the notifications that follow it.

State machine:

    pending ──mark_reviewed──▶ reviewed
       │                          │
       └────────answer──────▶ answered ◀──answer (re-answer overwrites)

No transition returns a question to pending and nothing deletes one.
mark_reviewed on an answered question leaves it untouched.

Notifications go through the NotificationDispatcher after the write commits;
their success or failure never changes what these methods return.
"""
import logging
import re

import askcpa.database as database
from askcpa.email_utils import ADMIN_NOTIFICATION, ANSWER_NOTIFICATION, QUESTION_RECEIVED
from askcpa.errors import NotFoundError, ValidationError
from askcpa.models import Question, QuestionStatus
from askcpa.notifications import NotificationDispatcher
from askcpa.usage import record_submission

logger = logging.getLogger(__name__)

QUESTION_MIN_LENGTH = 10
QUESTION_MAX_LENGTH = 500

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ALLOWED_TRANSITIONS: dict[QuestionStatus, set[QuestionStatus]] = {
    QuestionStatus.PENDING: {QuestionStatus.REVIEWED, QuestionStatus.ANSWERED},
    QuestionStatus.REVIEWED: {QuestionStatus.REVIEWED, QuestionStatus.ANSWERED},
    QuestionStatus.ANSWERED: {QuestionStatus.ANSWERED},
}


def can_transition(current: QuestionStatus, target: QuestionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_email(email: str) -> str:
    """Return the normalized address or raise ValidationError."""
    normalized = normalize_email(email)
    if len(normalized) > 254 or not _EMAIL_RE.match(normalized):
        raise ValidationError("email", "Please enter a valid email address")
    return normalized


def validate_question_text(text: str) -> str:
    cleaned = (text or "").strip()
    if len(cleaned) < QUESTION_MIN_LENGTH:
        raise ValidationError(
            "question", f"Your question must be at least {QUESTION_MIN_LENGTH} characters"
        )
    if len(cleaned) > QUESTION_MAX_LENGTH:
        raise ValidationError(
            "question", f"Your question cannot exceed {QUESTION_MAX_LENGTH} characters"
        )
    return cleaned


def parse_status(status: str | QuestionStatus | None) -> QuestionStatus | None:
    if status is None or status == "":
        return None
    try:
        return QuestionStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in QuestionStatus)
        raise ValidationError("status", f"Status must be one of: {allowed}") from None


# ===========================================================================
# Engine
# ===========================================================================

class QuestionLifecycle:

    def __init__(self, notifier: NotificationDispatcher, admin_email: str = ""):
        self.notifier = notifier
        self.admin_email = admin_email

    # --- Submission ---------------------------------------------------------

    async def submit(self, email: str, text: str) -> Question:
        """Create a pending question and count the submission.

        Both writes share one transaction. Raises ValidationError before
        touching the store, PersistenceError if the store fails.
        """
        email = validate_email(email)
        text = validate_question_text(text)

        async with database.transaction() as db:
            usage = await record_submission(email, db=db)
            question = await database.insert_question(email, text, db=db)

        logger.info(
            f"[submit] Question {question.id} from {email} "
            f"(submission #{usage.question_count})"
        )

        self.notifier.dispatch(email, QUESTION_RECEIVED, {"question": text})
        if self.admin_email:
            self.notifier.dispatch(
                self.admin_email, ADMIN_NOTIFICATION, {"question": text, "email": email}
            )

        return question

    # --- Dashboard mutations ------------------------------------------------

    async def get(self, question_id: str) -> Question:
        question = await database.get_question(question_id)
        if question is None:
            raise NotFoundError(question_id)
        return question

    async def mark_reviewed(self, question_id: str) -> Question:
        question = await self.get(question_id)

        if not can_transition(question.status, QuestionStatus.REVIEWED):
            logger.info(f"[dashboard] {question_id} is already {question.status.value}; status unchanged")
            return question

        updated = await database.update_question(question_id, status=QuestionStatus.REVIEWED)
        if updated is None:
            raise NotFoundError(question_id)

        logger.info(f"[dashboard] {question_id}: {question.status.value} -> reviewed")
        return updated

    async def answer(self, question_id: str, response_text: str) -> Question:
        """Store the CPA's response and mark the question answered.

        Re-answering an answered question overwrites the response. The
        answer notification is dispatched after the write and cannot undo it.
        """
        response = (response_text or "").strip()
        if not response:
            raise ValidationError("response", "Response cannot be empty")

        question = await self.get(question_id)

        updated = await database.update_question(
            question_id,
            status=QuestionStatus.ANSWERED,
            cpa_response=response,
        )
        if updated is None:
            raise NotFoundError(question_id)

        verb = "re-answered" if question.status == QuestionStatus.ANSWERED else "answered"
        logger.info(f"[dashboard] {question_id} {verb}")

        self.notifier.dispatch(
            updated.user_email,
            ANSWER_NOTIFICATION,
            {"question": updated.question_text, "answer": response},
        )
        return updated

    # --- Reads --------------------------------------------------------------

    async def list_all(self, status: str | QuestionStatus | None = None) -> list[Question]:
        """All questions, newest first, optionally filtered by status."""
        return await database.list_questions(parse_status(status))

    async def find_by_email(self, email: str) -> list[Question]:
        """Questions submitted by ``email``, newest first. Empty is not an error."""
        return await database.get_questions_by_email(normalize_email(email))
