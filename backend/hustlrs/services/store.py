"""Mapping of SQLAlchemy failures to domain errors around a unit of work."""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.common.errors import ConsistencyError, DuplicateEntry, UpstreamUnavailable

logger = logging.getLogger(__name__)


@asynccontextmanager
async def unit_of_work(
    session: AsyncSession,
    action: str,
    *,
    atomic: bool = False,
    on_rollback: Optional[Callable[[], None]] = None,
) -> AsyncIterator[None]:
    """Roll back on any failure inside the block and translate store errors.

    With atomic=True every store failure other than an unreachable store is a
    ConsistencyError: the block was a multi-step write that must not half-apply.
    """
    try:
        yield
    except BaseException as exc:
        await session.rollback()
        if on_rollback is not None:
            on_rollback()
        if isinstance(exc, (OperationalError, InterfaceError)):
            logger.error("Store unavailable during %s: %s", action, exc)
            raise UpstreamUnavailable() from exc
        if isinstance(exc, SQLAlchemyError):
            if atomic:
                logger.exception("Store error during %s; rolled back", action)
                raise ConsistencyError(f"Could not {action}; no changes were applied") from exc
            if isinstance(exc, IntegrityError):
                logger.info("Duplicate entry during %s: %s", action, exc.orig)
                raise DuplicateEntry() from exc
            logger.exception("Store error during %s; rolled back", action)
        raise
