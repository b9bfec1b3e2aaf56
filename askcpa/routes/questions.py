from __future__ import annotations
"""
AskCPA — Public Question Routes
================================
Submission and status lookup. Neither needs the dashboard secret.
"""
import logging

from fastapi import APIRouter, Depends, Request

from askcpa.lifecycle import QuestionLifecycle
from askcpa.models import Question, StatusResult, SubmitQuestionRequest
from askcpa.status import StatusLookup

logger = logging.getLogger(__name__)

router = APIRouter()


def get_lifecycle(request: Request) -> QuestionLifecycle:
    return request.app.state.lifecycle


def get_status_lookup(request: Request) -> StatusLookup:
    return request.app.state.status_lookup


# ===========================================================================
# Routes: Questions
# ===========================================================================

@router.post("/api/questions", status_code=201, response_model=Question)
async def submit_question(
    req: SubmitQuestionRequest,
    lifecycle: QuestionLifecycle = Depends(get_lifecycle),
):
    """Submit a question for the CPA. Confirmation email is sent in the background."""
    return await lifecycle.submit(req.email, req.question)


@router.get("/api/status", response_model=StatusResult)
async def question_status(
    email: str,
    status_lookup: StatusLookup = Depends(get_status_lookup),
):
    """All questions submitted from an email address, newest first."""
    return await status_lookup.lookup(email)
