from __future__ import annotations
"""
AskCPA — Pydantic Models
=========================
Request bodies for the HTTP surface, and the strict record shapes the store
adapter validates every row into.
"""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ===========================================================================
# Records
# ===========================================================================

class QuestionStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    ANSWERED = "answered"


class Question(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    user_email: str
    question_text: str
    status: QuestionStatus
    cpa_response: str | None = None
    ai_response: str | None = None
    category: str | None = None
    created_at: datetime
    updated_at: datetime


class EmailUsage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str
    question_count: int = Field(..., ge=1)
    last_question_at: datetime


class DashboardSession(BaseModel):
    token: str
    created_at: datetime
    expires_at: datetime


class StatusEntry(BaseModel):
    """What the public status page is allowed to see of a Question."""

    id: str
    question_text: str
    status: QuestionStatus
    cpa_response: str | None = None
    created_at: datetime
    updated_at: datetime


class StatusResult(BaseModel):
    email: str
    found: bool
    message: str
    questions: list[StatusEntry]


# ===========================================================================
# Requests
# ===========================================================================
# Lengths and email syntax are checked by the lifecycle engine so that the
# API reports them as field-level 400s.

class SubmitQuestionRequest(BaseModel):
    email: str = Field(..., max_length=255)
    question: str = Field(..., max_length=5000)


class AnswerRequest(BaseModel):
    response: str = Field(..., max_length=20000)


class DashboardLoginRequest(BaseModel):
    password: str = Field(..., max_length=500)
