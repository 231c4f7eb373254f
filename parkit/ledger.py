"""Session ledger: vehicle entries and exits.

An entry reserves a space and records the session in one transaction; an exit
closes the session, bills it and releases the space in one transaction.
Either step failing rolls back the other. Locks are always taken plate first,
then lot.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parkit import crud, registry
from parkit.billing import billable_hours, charge
from parkit.clock import utcnow
from parkit.errors import AlreadyActiveError, AlreadyClosedError, LotNotFoundError, SessionNotFoundError
from parkit.locks import lot_locks, plate_locks
from parkit.models import ParkingSession

logger = logging.getLogger(__name__)


@dataclass
class Bill:
    id: int
    plate_number: str
    lot_id: int
    entry_time: datetime
    exit_time: datetime
    charged_amount: Decimal
    duration_hours: int
    hourly_rate: Decimal
    lot_name: str


@dataclass
class SessionDetail:
    id: int
    plate_number: str
    lot_id: Optional[int]
    entry_time: datetime
    exit_time: Optional[datetime]
    charged_amount: Optional[Decimal]
    lot_code: Optional[str]
    lot_name: Optional[str]
    hourly_rate: Optional[Decimal]
    duration_hours: Optional[int]

    @classmethod
    def from_row(cls, row):
        session = row.ParkingSession
        duration = None
        if session.exit_time is not None:
            duration = billable_hours(session.entry_time, session.exit_time)
        return cls(
            id=session.id,
            plate_number=session.plate_number,
            lot_id=session.lot_id,
            entry_time=session.entry_time,
            exit_time=session.exit_time,
            charged_amount=session.charged_amount,
            lot_code=row.lot_code,
            lot_name=row.lot_name,
            hourly_rate=row.hourly_rate,
            duration_hours=duration,
        )


def normalize_plate(plate_number: str):
    return plate_number.strip().upper()


async def open_session(db: AsyncSession, plate_number: str, lot_id: int, now: datetime = None):
    plate_number = normalize_plate(plate_number)
    async with plate_locks.hold(plate_number), lot_locks.hold(lot_id):
        try:
            if await crud.get_active_session_by_plate(db, plate_number):
                logger.warning(f"Rejected entry for {plate_number}: session already open")
                raise AlreadyActiveError()
            lot = await registry.try_reserve_space(db, lot_id)
            session = await crud.create_parking_session(db, plate_number, lot.id, now or utcnow())
            await db.commit()
        except IntegrityError:
            # Another worker opened a session for this plate first.
            await db.rollback()
            logger.warning(f"Rejected entry for {plate_number}: concurrent session")
            raise AlreadyActiveError()
        except Exception:
            await db.rollback()
            raise
    logger.info(f"Vehicle {plate_number} entered lot {lot.code} ({lot.occupied}/{lot.capacity})")
    return session, lot


async def close_session(db: AsyncSession, session_id: int, now: datetime = None):
    record = await crud.get_session(db, session_id)
    if record is None:
        raise SessionNotFoundError()
    plate_number, lot_id = record.plate_number, record.lot_id

    async with plate_locks.hold(plate_number), lot_locks.hold(lot_id):
        try:
            record = await crud.get_session(db, session_id)
            if not record.is_active:
                raise AlreadyClosedError()
            lot = await crud.get_lot(db, lot_id)
            if lot is None:
                raise LotNotFoundError()
            exit_time = now or utcnow()
            amount = charge(record.entry_time, exit_time, lot.hourly_rate)
            result = await db.execute(
                update(ParkingSession)
                .where(ParkingSession.id == session_id, ParkingSession.exit_time.is_(None))
                .values(exit_time=exit_time, charged_amount=amount)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise AlreadyClosedError()
            lot = await registry.release_space(db, lot_id)
            await db.commit()
        except AlreadyClosedError:
            await db.rollback()
            logger.warning(f"Rejected exit for session {session_id}: already closed")
            raise
        except Exception:
            await db.rollback()
            raise

    bill = Bill(
        id=record.id,
        plate_number=plate_number,
        lot_id=lot_id,
        entry_time=record.entry_time,
        exit_time=exit_time,
        charged_amount=amount,
        duration_hours=billable_hours(record.entry_time, exit_time),
        hourly_rate=lot.hourly_rate,
        lot_name=lot.name,
    )
    logger.info(
        f"Vehicle {plate_number} left lot {lot.code} after {bill.duration_hours}h, charged {amount}"
    )
    return bill, lot


async def find_open_session_by_plate(db: AsyncSession, plate_number: str):
    row = await crud.get_active_session_detail_by_plate(db, normalize_plate(plate_number))
    if row is None:
        raise SessionNotFoundError("No active parking record found for this vehicle")
    return SessionDetail.from_row(row)


async def get_session(db: AsyncSession, session_id: int):
    row = await crud.get_session_detail(db, session_id)
    if row is None:
        raise SessionNotFoundError()
    return SessionDetail.from_row(row)


async def list_sessions(db: AsyncSession, page: int, limit: int):
    rows, total = await crud.list_sessions(db, page, limit)
    return [SessionDetail.from_row(row) for row in rows], total
