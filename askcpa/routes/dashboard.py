from __future__ import annotations
"""
AskCPA — Dashboard Routes
==========================
CPA-facing list/review/answer endpoints. Everything except login requires
``Authorization: Bearer <token>`` obtained from /api/dashboard/login.
"""
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from askcpa.errors import ConfigurationError
from askcpa.lifecycle import QuestionLifecycle
from askcpa.models import AnswerRequest, DashboardLoginRequest, Question
from askcpa.routes.questions import get_lifecycle
from askcpa.session_gate import SessionGate

logger = logging.getLogger(__name__)

router = APIRouter()


def get_gate(request: Request) -> SessionGate:
    return request.app.state.session_gate


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    if authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return authorization.strip() or None


async def require_dashboard(
    authorization: str | None = Header(default=None),
    gate: SessionGate = Depends(get_gate),
) -> str:
    """Dependency: a live dashboard session token, or 401."""
    if not gate.is_configured():
        raise ConfigurationError("Dashboard not configured. Set DASHBOARD_SECRET in .env")
    token = _bearer_token(authorization)
    if not await gate.verify(token):
        raise HTTPException(status_code=401, detail="Not authenticated")
    return token


# ===========================================================================
# Routes: Session
# ===========================================================================

@router.post("/api/dashboard/login")
async def dashboard_login(
    req: DashboardLoginRequest,
    gate: SessionGate = Depends(get_gate),
):
    """Exchange the dashboard password for a session token."""
    session = await gate.login(req.password)
    if session is None:
        raise HTTPException(status_code=401, detail="Incorrect password")
    return {"token": session.token, "expires_at": session.expires_at}


@router.post("/api/dashboard/logout")
async def dashboard_logout(
    authorization: str | None = Header(default=None),
    gate: SessionGate = Depends(get_gate),
):
    """Invalidate the current session token."""
    await gate.logout(_bearer_token(authorization))
    return {"success": True}


# ===========================================================================
# Routes: Questions (dashboard-gated)
# ===========================================================================

@router.get("/api/dashboard/questions")
async def dashboard_list_questions(
    status: str | None = None,
    _token: str = Depends(require_dashboard),
    lifecycle: QuestionLifecycle = Depends(get_lifecycle),
):
    """All questions, newest first. ``?status=pending|reviewed|answered`` filters."""
    questions = await lifecycle.list_all(status)
    return {"questions": questions, "count": len(questions), "status": status}


@router.get("/api/dashboard/questions/{question_id}", response_model=Question)
async def dashboard_get_question(
    question_id: str,
    _token: str = Depends(require_dashboard),
    lifecycle: QuestionLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.get(question_id)


@router.patch("/api/dashboard/questions/{question_id}/reviewed", response_model=Question)
async def dashboard_mark_reviewed(
    question_id: str,
    _token: str = Depends(require_dashboard),
    lifecycle: QuestionLifecycle = Depends(get_lifecycle),
):
    """Mark a question as in progress."""
    return await lifecycle.mark_reviewed(question_id)


@router.patch("/api/dashboard/questions/{question_id}/answer", response_model=Question)
async def dashboard_answer(
    question_id: str,
    req: AnswerRequest,
    _token: str = Depends(require_dashboard),
    lifecycle: QuestionLifecycle = Depends(get_lifecycle),
):
    """Save the CPA's response. The answer email goes out in the background."""
    return await lifecycle.answer(question_id, req.response)
