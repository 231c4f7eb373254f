"""Lot registry and space counter.

This module is the only writer of ``ParkingLot.occupied``. Every counter change
is a single conditional UPDATE, so the check and the write cannot be split by
another transaction; callers that span more than one statement also hold
``lot_locks`` for the lot until they commit.
"""
import logging

from sqlalchemy import case, delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from parkit import crud
from parkit.errors import DuplicateError, HasActiveSessionsError, LotFullError, LotNotFoundError
from parkit.locks import lot_locks
from parkit.models import ParkingLot, ParkingSession

logger = logging.getLogger(__name__)


async def try_reserve_space(db: AsyncSession, lot_id: int):
    result = await db.execute(
        update(ParkingLot)
        .where(ParkingLot.id == lot_id, ParkingLot.occupied < ParkingLot.capacity)
        .values(occupied=ParkingLot.occupied + 1)
        .execution_options(synchronize_session=False)
    )
    lot = await crud.get_lot(db, lot_id)
    if result.rowcount == 0:
        if lot is None:
            raise LotNotFoundError()
        logger.warning(f"Lot {lot.code} is full ({lot.occupied}/{lot.capacity})")
        raise LotFullError()
    return lot


async def release_space(db: AsyncSession, lot_id: int):
    result = await db.execute(
        update(ParkingLot)
        .where(ParkingLot.id == lot_id, ParkingLot.occupied > 0)
        .values(occupied=ParkingLot.occupied - 1)
        .execution_options(synchronize_session=False)
    )
    lot = await crud.get_lot(db, lot_id)
    if lot is None:
        raise LotNotFoundError()
    if result.rowcount == 0:
        logger.warning(f"Release on lot {lot.code} with no occupied spaces, counter kept at 0")
    return lot


async def resize_capacity(db: AsyncSession, lot_id: int, new_capacity: int):
    """Set a new capacity, carrying the occupied count over clamped to it.

    Free spaces become ``max(0, new_capacity - occupied)``; a lot at 8/10
    resized to 5 ends up at 5/5, resized to 15 at 8/15.
    """
    new_available = case(
        (ParkingLot.occupied < new_capacity, new_capacity - ParkingLot.occupied),
        else_=0,
    )
    result = await db.execute(
        update(ParkingLot)
        .where(ParkingLot.id == lot_id)
        .values(capacity=new_capacity, occupied=new_capacity - new_available)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise LotNotFoundError()
    return await crud.get_lot(db, lot_id)


async def resolve_lot(db: AsyncSession, lot_id: int = None, code: str = None):
    if lot_id is not None:
        lot = await crud.get_lot(db, lot_id)
    else:
        lot = await crud.get_lot_by_code(db, code)
    if lot is None:
        if lot_id is None:
            raise LotNotFoundError("Parking lot not found with the provided code")
        raise LotNotFoundError()
    return lot


async def get_lot(db: AsyncSession, lot_id: int):
    return await resolve_lot(db, lot_id=lot_id)


async def list_lots(db: AsyncSession, page: int, limit: int):
    return await crud.list_lots(db, page, limit)


async def create_lot(db: AsyncSession, code: str, name: str, capacity: int, location=None, hourly_rate=0):
    if await crud.get_lot_by_code(db, code):
        raise DuplicateError("Parking lot with this code already exists")
    try:
        lot = await crud.create_lot(db, code, name, capacity, location, hourly_rate)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateError("Parking lot with this code already exists")
    logger.info(f"Created parking lot {lot.code} with {lot.capacity} spaces")
    return lot


async def update_lot(db: AsyncSession, lot_id: int, name: str, capacity: int, location, hourly_rate):
    async with lot_locks.hold(lot_id):
        try:
            lot = await resolve_lot(db, lot_id=lot_id)
            old_capacity = lot.capacity
            lot.name = name
            lot.location = location
            lot.hourly_rate = hourly_rate
            await db.flush()
            if capacity != old_capacity:
                lot = await resize_capacity(db, lot_id, capacity)
                logger.info(
                    f"Resized lot {lot.code} from {old_capacity} to {capacity}, occupied now {lot.occupied}"
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    return lot


async def delete_lot(db: AsyncSession, lot_id: int):
    async with lot_locks.hold(lot_id):
        try:
            lot = await resolve_lot(db, lot_id=lot_id)
            if await crud.count_open_sessions_for_lot(db, lot_id):
                raise HasActiveSessionsError()
            # Closed sessions outlive the lot so revenue history stays intact.
            await db.execute(
                update(ParkingSession)
                .where(ParkingSession.lot_id == lot_id, ParkingSession.exit_time.is_not(None))
                .values(lot_id=None)
                .execution_options(synchronize_session=False)
            )
            # An entry committed by another worker after the count above must
            # still block the delete.
            open_session_exists = (
                select(ParkingSession.id)
                .where(ParkingSession.lot_id == lot_id, ParkingSession.exit_time.is_(None))
                .exists()
            )
            result = await db.execute(
                delete(ParkingLot)
                .where(ParkingLot.id == lot_id, ParkingLot.occupied == 0, ~open_session_exists)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise HasActiveSessionsError()
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    logger.info(f"Deleted parking lot {lot.code}")
