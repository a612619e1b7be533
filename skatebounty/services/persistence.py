from __future__ import annotations
import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from skatebounty.errors import ConstraintViolation, TransientError

log = structlog.get_logger()

async def commit_or_raise(session: AsyncSession, conflict_message: str, field: str | None = None) -> None:
    """Commit, turning constraint failures into ConstraintViolation and anything else from the driver into TransientError."""
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ConstraintViolation(conflict_message, field=field) from e
    except DBAPIError as e:
        await session.rollback()
        log.error("store_unavailable", error=str(e.orig))
        raise TransientError("The store is unavailable, try again") from e
