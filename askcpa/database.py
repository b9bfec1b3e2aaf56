from __future__ import annotations
"""
AskCPA — Database Layer
========================
Async SQLite record store for the question workflow: questions, per-email
usage counters, and dashboard session tokens.

Every row leaving this module is validated into a pydantic model, so the
lifecycle engine never sees a malformed record. aiosqlite errors surface as
PersistenceError; an unset database path surfaces as ConfigurationError on
first use.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
from pydantic import ValidationError as PydanticValidationError

from askcpa.errors import ConfigurationError, PersistenceError
from askcpa.models import DashboardSession, EmailUsage, Question, QuestionStatus

# ---------------------------------------------------------------------------
# Database path (set by main.py at startup)
# ---------------------------------------------------------------------------
_db_path: str = ""


def set_db_path(path: str):
    global _db_path
    _db_path = path


def _get_db_path() -> str:
    if not _db_path:
        raise ConfigurationError("Database path not set. Configure DATABASE_PATH.")
    return _db_path


def is_configured() -> bool:
    return bool(_db_path)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------

@asynccontextmanager
async def _connection():
    """Open a connection with Row access; translate driver errors."""
    try:
        async with aiosqlite.connect(_get_db_path()) as db:
            db.row_factory = aiosqlite.Row
            yield db
    except aiosqlite.Error as e:
        raise PersistenceError(f"SQLite error: {e}") from e


@asynccontextmanager
async def transaction(db: aiosqlite.Connection | None = None):
    """Yield a connection whose writes commit together or not at all.

    Passing an existing connection joins that caller's transaction instead;
    the outermost transaction() owns the commit.
    """
    if db is not None:
        yield db
        return

    async with _connection() as conn:
        try:
            yield conn
        except BaseException:
            await conn.rollback()
            raise
        await conn.commit()


def _to_question(row) -> Question:
    try:
        return Question.model_validate(dict(row))
    except PydanticValidationError as e:
        raise PersistenceError(f"Malformed question row {row['id']!r}: {e}") from e


def _to_usage(row) -> EmailUsage:
    try:
        return EmailUsage.model_validate(dict(row))
    except PydanticValidationError as e:
        raise PersistenceError(f"Malformed email_usage row {row['email']!r}: {e}") from e


# ===========================================================================
# Initialization
# ===========================================================================

async def init_db():
    """Create tables if they don't exist."""
    Path(_get_db_path()).parent.mkdir(parents=True, exist_ok=True)

    async with transaction() as db:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS questions (
                id TEXT PRIMARY KEY,
                user_email TEXT NOT NULL,
                question_text TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'reviewed', 'answered')),
                cpa_response TEXT,
                ai_response TEXT,
                category TEXT,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_questions_user_email ON questions(user_email)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_questions_created_at ON questions(created_at)"
        )

        await db.execute("""
            CREATE TABLE IF NOT EXISTS email_usage (
                email TEXT PRIMARY KEY,
                question_count INTEGER NOT NULL DEFAULT 1,
                last_question_at TIMESTAMP NOT NULL
            )
        """)

        # --- Dashboard sessions (bearer tokens) ---
        await db.execute("""
            CREATE TABLE IF NOT EXISTS dashboard_sessions (
                token TEXT PRIMARY KEY,
                created_at TIMESTAMP NOT NULL,
                expires_at TIMESTAMP NOT NULL
            )
        """)


# ===========================================================================
# Questions
# ===========================================================================

async def insert_question(
    user_email: str,
    question_text: str,
    category: str | None = None,
    db: aiosqlite.Connection | None = None,
) -> Question:
    """Insert a new pending question. The store assigns id and timestamps."""
    question_id = str(uuid.uuid4())
    now = _now()

    async with transaction(db) as conn:
        await conn.execute(
            """
            INSERT INTO questions
                (id, user_email, question_text, status, category, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (question_id, user_email, question_text, QuestionStatus.PENDING.value,
             category, now, now),
        )
        cursor = await conn.execute("SELECT * FROM questions WHERE id = ?", (question_id,))
        row = await cursor.fetchone()

    return _to_question(row)


async def get_question(id: str) -> Question | None:
    async with _connection() as db:
        cursor = await db.execute("SELECT * FROM questions WHERE id = ?", (id,))
        row = await cursor.fetchone()

    if row is None:
        return None
    return _to_question(row)


_UPDATABLE_COLUMNS = ("status", "cpa_response")


async def update_question(id: str, **fields) -> Question | None:
    """Partial update by id; always re-stamps updated_at.

    Returns the updated record, or None if no row has that id.
    """
    unknown = set(fields) - set(_UPDATABLE_COLUMNS)
    if unknown:
        raise ValueError(f"Cannot update question columns: {sorted(unknown)}")

    values = {
        k: (v.value if isinstance(v, QuestionStatus) else v)
        for k, v in fields.items()
    }
    values["updated_at"] = _now()
    assignments = ", ".join(f"{col} = ?" for col in values)

    async with transaction() as db:
        cursor = await db.execute(
            f"UPDATE questions SET {assignments} WHERE id = ?",
            (*values.values(), id),
        )
        if cursor.rowcount == 0:
            return None
        cursor = await db.execute("SELECT * FROM questions WHERE id = ?", (id,))
        row = await cursor.fetchone()

    return _to_question(row)


async def list_questions(status: QuestionStatus | None = None) -> list[Question]:
    """All questions, newest first, optionally filtered by exact status."""
    query = "SELECT * FROM questions"
    params: tuple = ()
    if status is not None:
        query += " WHERE status = ?"
        params = (QuestionStatus(status).value,)
    query += " ORDER BY created_at DESC, rowid DESC"

    async with _connection() as db:
        rows = await db.execute_fetchall(query, params)

    return [_to_question(r) for r in rows]


async def get_questions_by_email(email: str) -> list[Question]:
    async with _connection() as db:
        rows = await db.execute_fetchall(
            """
            SELECT * FROM questions
            WHERE user_email = ?
            ORDER BY created_at DESC, rowid DESC
            """,
            (email,),
        )

    return [_to_question(r) for r in rows]


# ===========================================================================
# Email usage
# ===========================================================================

async def upsert_email_usage(
    email: str,
    db: aiosqlite.Connection | None = None,
) -> EmailUsage:
    """Insert {count: 1} or atomically increment the existing counter."""
    now = _now()

    async with transaction(db) as conn:
        await conn.execute(
            """
            INSERT INTO email_usage (email, question_count, last_question_at)
            VALUES (?, 1, ?)
            ON CONFLICT(email) DO UPDATE SET
                question_count = question_count + 1,
                last_question_at = excluded.last_question_at
            """,
            (email, now),
        )
        cursor = await conn.execute("SELECT * FROM email_usage WHERE email = ?", (email,))
        row = await cursor.fetchone()

    return _to_usage(row)


async def get_email_usage(email: str) -> EmailUsage | None:
    async with _connection() as db:
        cursor = await db.execute("SELECT * FROM email_usage WHERE email = ?", (email,))
        row = await cursor.fetchone()

    if row is None:
        return None
    return _to_usage(row)


# ===========================================================================
# Dashboard sessions
# ===========================================================================

async def create_dashboard_session(token: str, expires_at: datetime) -> DashboardSession:
    now = _now()
    expires = expires_at.isoformat(timespec="microseconds")

    async with transaction() as db:
        # Expired tokens are useless; clear them out whenever a new one is issued.
        await db.execute("DELETE FROM dashboard_sessions WHERE expires_at <= ?", (now,))
        await db.execute(
            "INSERT INTO dashboard_sessions (token, created_at, expires_at) VALUES (?, ?, ?)",
            (token, now, expires),
        )

    return DashboardSession(token=token, created_at=now, expires_at=expires)


async def get_dashboard_session(token: str) -> DashboardSession | None:
    """Look up a session token. Returns None if unknown or expired."""
    async with _connection() as db:
        cursor = await db.execute(
            "SELECT * FROM dashboard_sessions WHERE token = ? AND expires_at > ?",
            (token, _now()),
        )
        row = await cursor.fetchone()

    if row is None:
        return None
    return DashboardSession.model_validate(dict(row))


async def delete_dashboard_session(token: str) -> bool:
    async with transaction() as db:
        cursor = await db.execute("DELETE FROM dashboard_sessions WHERE token = ?", (token,))
        return cursor.rowcount > 0
