"""
Transaction contexts and storage error classification for the reservation path.

A reservation runs the same algorithm whether or not the storage deployment
supports multi-statement transactions. The algorithm talks to a
``TransactionContext``; only the caller opening the context decides whether it
is a real transaction or a pass-through where each write commits on its own.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.seat_reservation import ACTIVE_SEAT_INDEX
from .exceptions import (
    GoBusError,
    ReferenceCollisionError,
    TransactionUnsupportedError,
    TransientInfrastructureError,
)

logger = logging.getLogger(__name__)

# SQLSTATE codes that mean the deployment cannot run the transaction at all
TRANSACTION_UNSUPPORTED_SQLSTATES = frozenset({"0A000", "25P01"})

# SQLSTATE codes for contention that a fresh attempt may get past
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})

TRANSACTION_UNSUPPORTED_MESSAGES = (
    "transactions are not supported",
    "transaction numbers are only allowed",
)
RETRYABLE_MESSAGES = (
    "database is locked",
    "could not serialize access",
    "deadlock detected",
)

BOOKING_REFERENCE_MARKERS = ("uq_bookings_reference", "bookings.reference")
ACTIVE_SEAT_MARKERS = (ACTIVE_SEAT_INDEX, "seat_reservations.seat_number")


class TransactionContext:
    """Storage capability handed to the reservation algorithm."""

    def __init__(self, session: AsyncSession, transactional: bool):
        self.session = session
        self.transactional = transactional

    def lock_for_update(self, statement):
        """Row-lock a select inside a transaction; plain select otherwise."""
        if self.transactional:
            return statement.with_for_update()
        return statement

    async def persist(self, *instances) -> None:
        """Write instances so later reads in this context observe them."""
        self.session.add_all(instances)
        await self.session.flush()
        if not self.transactional:
            await self.session.commit()


@asynccontextmanager
async def session_transaction(session: AsyncSession) -> AsyncIterator[TransactionContext]:
    """Run the body inside one multi-statement transaction, committed on exit."""
    async with session.begin():
        yield TransactionContext(session, transactional=True)


@asynccontextmanager
async def pass_through(session: AsyncSession) -> AsyncIterator[TransactionContext]:
    """Run the body as ordinary sequential reads and writes."""
    try:
        yield TransactionContext(session, transactional=False)
        await session.commit()
    except Exception:
        await session.rollback()
        raise


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    for attribute in ("sqlstate", "pgcode"):
        code = getattr(orig, attribute, None)
        if code:
            return str(code)
    return None


def _message(exc: BaseException) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc).lower()


def is_active_seat_violation(exc: BaseException) -> bool:
    """Check whether an integrity error came from the active-seat unique index."""
    if not isinstance(exc, IntegrityError):
        return False
    message = _message(exc)
    return any(marker in message for marker in ACTIVE_SEAT_MARKERS)


def is_reference_violation(exc: BaseException) -> bool:
    """Check whether an integrity error came from the booking reference constraint."""
    if not isinstance(exc, IntegrityError):
        return False
    message = _message(exc)
    return any(marker in message for marker in BOOKING_REFERENCE_MARKERS)


def classify_storage_error(exc: BaseException) -> Optional[GoBusError]:
    """
    Map a storage driver error onto the transient part of the error taxonomy.

    Returns None for errors that are not transient infrastructure problems.
    Seat constraint violations are business conflicts and are left to the caller.
    """
    if isinstance(exc, TransientInfrastructureError):
        return exc

    if not isinstance(exc, DBAPIError):
        return None

    if is_reference_violation(exc):
        return ReferenceCollisionError("unknown")

    code = _sqlstate(exc)
    message = _message(exc)

    if code in TRANSACTION_UNSUPPORTED_SQLSTATES or any(
        text in message for text in TRANSACTION_UNSUPPORTED_MESSAGES
    ):
        return TransactionUnsupportedError(details={"sqlstate": code})

    if (
        code in RETRYABLE_SQLSTATES
        or exc.connection_invalidated
        or any(text in message for text in RETRYABLE_MESSAGES)
    ):
        return TransientInfrastructureError(
            "Storage contention, the operation can be retried",
            details={"sqlstate": code},
        )

    return None
