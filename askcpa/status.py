from __future__ import annotations
"""
AskCPA — Status Lookup View
============================
Read-only public projection of the lifecycle engine, keyed by submitter
email. No dashboard secret, no writes, and only the fields in StatusEntry.
"""
from askcpa.lifecycle import QuestionLifecycle, validate_email
from askcpa.models import StatusEntry, StatusResult

NO_QUESTIONS_MESSAGE = "No questions found for this email address."


class StatusLookup:

    def __init__(self, lifecycle: QuestionLifecycle):
        self._lifecycle = lifecycle

    async def lookup(self, email: str) -> StatusResult:
        email = validate_email(email)
        questions = await self._lifecycle.find_by_email(email)

        entries = [
            StatusEntry(
                id=q.id,
                question_text=q.question_text,
                status=q.status,
                cpa_response=q.cpa_response,
                created_at=q.created_at,
                updated_at=q.updated_at,
            )
            for q in questions
        ]
        if not entries:
            return StatusResult(email=email, found=False, message=NO_QUESTIONS_MESSAGE, questions=[])

        noun = "question" if len(entries) == 1 else "questions"
        return StatusResult(
            email=email,
            found=True,
            message=f"Found {len(entries)} {noun}.",
            questions=entries,
        )
