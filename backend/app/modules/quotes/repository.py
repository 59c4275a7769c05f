"""
Quote Repository - every database access for quote requests.

Uniqueness conflicts on insert come back as a typed UniqueConflict result
naming the constraint that fired; any other database failure is raised as
PersistenceError.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, func, asc, desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import PersistenceError
from app.core.logging_config import logger
from app.models.quote_request import QuoteRequest, QuoteStatus, QUOTE_UNIQUE_CONSTRAINT, QUOTA_SLOT_CONSTRAINT
from app.modules.quotes.results import InsertResult, Inserted, UniqueConflict
from app.utils.pagination import paginate


UNIQUE_VIOLATION_SQLSTATE = "23505"

SORTABLE_COLUMNS = {
    "created_at": QuoteRequest.created_at,
    "updated_at": QuoteRequest.updated_at,
    "status": QuoteRequest.status,
    "name": QuoteRequest.name,
}


def is_unique_violation(error: IntegrityError) -> bool:
    """
    True when the driver reports a unique-key violation.

    PostgreSQL drivers expose SQLSTATE 23505; SQLite reports
    SQLITE_CONSTRAINT_UNIQUE or a "UNIQUE constraint failed" message.
    """
    orig = getattr(error, "orig", None)
    candidates = (orig, getattr(orig, "__cause__", None))

    for candidate in candidates:
        if candidate is None:
            continue
        sqlstate = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if sqlstate:
            return sqlstate == UNIQUE_VIOLATION_SQLSTATE
        if getattr(candidate, "sqlite_errorname", None) == "SQLITE_CONSTRAINT_UNIQUE":
            return True

    message = str(orig if orig is not None else error)
    return "UNIQUE constraint failed" in message or any(
        name in message for name in (QUOTE_UNIQUE_CONSTRAINT, QUOTA_SLOT_CONSTRAINT)
    )


def violated_constraint(error: IntegrityError) -> str:
    """
    Name of the unique constraint behind ``error``.

    asyncpg reports the constraint name; SQLite only lists the columns, and
    quota_slot appears in the slot constraint alone.
    """
    orig = getattr(error, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        name = getattr(candidate, "constraint_name", None)
        if name:
            return name

    message = str(orig if orig is not None else error)
    if QUOTA_SLOT_CONSTRAINT in message or "quote_requests.quota_slot" in message:
        return QUOTA_SLOT_CONSTRAINT
    return QUOTE_UNIQUE_CONSTRAINT


class QuoteRepository:
    """Persistence for QuoteRequest rows"""

    async def insert_quote(self, db: AsyncSession, quote: QuoteRequest) -> InsertResult:
        """Insert and commit; a unique-key clash yields UniqueConflict"""
        db.add(quote)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if is_unique_violation(e):
                return UniqueConflict(constraint=violated_constraint(e))
            logger.error(f"[QuoteRepo] Integrity error inserting quote: {e.orig}")
            raise PersistenceError("Quote insert violated a constraint", operation="insert") from e
        except (SQLAlchemyError, OSError) as e:
            await db.rollback()
            logger.error(f"[QuoteRepo] Insert failed: {e}")
            raise PersistenceError("Quote insert failed", operation="insert") from e

        return Inserted(quote)

    async def count_by_email_since(self, db: AsyncSession, email: str, since: datetime) -> int:
        """Quotes stored for ``email`` with created_at >= since"""
        try:
            result = await db.execute(
                select(func.count(QuoteRequest.id)).where(
                    QuoteRequest.email == email,
                    QuoteRequest.created_at >= since,
                )
            )
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"[QuoteRepo] Quota count failed: {e}")
            raise PersistenceError("Quota lookup failed", operation="count_by_email") from e
        return result.scalar() or 0

    async def find_recent_by_email_phone(
        self, db: AsyncSession, email: str, phone: str, since: datetime
    ) -> Optional[QuoteRequest]:
        """Most recent quote with this email and phone created at or after ``since``"""
        try:
            result = await db.execute(
                select(QuoteRequest)
                .where(
                    QuoteRequest.email == email,
                    QuoteRequest.phone == phone,
                    QuoteRequest.created_at >= since,
                )
                .order_by(QuoteRequest.created_at.desc())
                .limit(1)
            )
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"[QuoteRepo] Duplicate lookup failed: {e}")
            raise PersistenceError("Duplicate lookup failed", operation="find_recent") from e
        return result.scalar_one_or_none()

    async def get_by_id(self, db: AsyncSession, quote_id: str) -> Optional[QuoteRequest]:
        try:
            result = await db.execute(select(QuoteRequest).where(QuoteRequest.id == quote_id))
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError("Quote lookup failed", operation="get") from e
        return result.scalar_one_or_none()

    async def list_quotes(
        self,
        db: AsyncSession,
        status: Optional[QuoteStatus] = None,
        page: int = 1,
        page_size: int = 20,
        sort_by: str = "created_at",
        order: str = "desc",
    ) -> Dict[str, Any]:
        """Paginated inbox listing, newest first by default"""
        column = SORTABLE_COLUMNS.get(sort_by, QuoteRequest.created_at)
        direction = asc if order == "asc" else desc

        query = select(QuoteRequest)
        count_query = select(func.count(QuoteRequest.id))
        if status is not None:
            query = query.where(QuoteRequest.status == status)
            count_query = count_query.where(QuoteRequest.status == status)
        query = query.order_by(direction(column), direction(QuoteRequest.id))

        try:
            return await paginate(db, query, page, page_size, count_query=count_query)
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError("Quote listing failed", operation="list") from e

    async def update(self, db: AsyncSession, quote: QuoteRequest, changes: Dict[str, Any]) -> QuoteRequest:
        """Apply admin changes (status, notes) and commit"""
        for key, value in changes.items():
            setattr(quote, key, value)
        quote.updated_at = datetime.utcnow()
        try:
            await db.commit()
            await db.refresh(quote)
        except (SQLAlchemyError, OSError) as e:
            await db.rollback()
            raise PersistenceError("Quote update failed", operation="update") from e
        return quote
