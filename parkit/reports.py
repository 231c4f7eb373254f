"""Read-only projections over the session ledger.

Nothing here takes the write locks; readers see whatever the ledger has
committed.
"""
import logging
from datetime import date, datetime, time

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from parkit import crud
from parkit.billing import billable_hours
from parkit.clock import start_of_day, utcnow
from parkit.config import RECENT_ACTIVITY_LIMIT
from parkit.errors import ValidationError
from parkit.models import ParkingLot, ParkingSession

logger = logging.getLogger(__name__)


def date_bounds(start_date: date, end_date: date):
    if end_date < start_date:
        raise ValidationError("End date must be greater than or equal to start date")
    return datetime.combine(start_date, time.min), datetime.combine(end_date, time.max)


async def dashboard_summary(db: AsyncSession, now: datetime = None, recent_limit: int = RECENT_ACTIVITY_LIMIT):
    today = start_of_day(now or utcnow())

    check_ins = await db.execute(
        select(func.count(ParkingSession.id)).where(ParkingSession.entry_time >= today)
    )
    check_outs = await db.execute(
        select(func.count(ParkingSession.id)).where(
            ParkingSession.exit_time.is_not(None),
            ParkingSession.exit_time >= today,
        )
    )

    activity_time = func.coalesce(ParkingSession.exit_time, ParkingSession.entry_time)
    recent = await db.execute(
        select(ParkingSession)
        .order_by(activity_time.desc(), ParkingSession.id.desc())
        .limit(recent_limit)
    )
    recent_activity = [
        {
            "id": s.id,
            "plate_number": s.plate_number,
            "activity": "Entry" if s.is_active else "Exit",
            "time": s.entry_time if s.is_active else s.exit_time,
        }
        for s in recent.scalars().all()
    ]

    totals = await db.execute(
        select(
            func.coalesce(func.sum(ParkingLot.capacity), 0),
            func.coalesce(func.sum(ParkingLot.occupied), 0),
        )
    )
    capacity, occupied = totals.one()

    summary = {
        "today_summary": {
            "check_ins": check_ins.scalar_one(),
            "check_outs": check_outs.scalar_one(),
        },
        "occupancy": {
            "capacity": capacity,
            "occupied": occupied,
            "available": capacity - occupied,
        },
        "recent_activity": recent_activity,
    }
    logger.debug(
        f"Dashboard summary: {summary['today_summary']}, {len(recent_activity)} recent events"
    )
    return summary


def report_record(row):
    session = row.ParkingSession
    closed = session.exit_time is not None
    return {
        "id": session.id,
        "plate_number": session.plate_number,
        "lot_name": row.lot_name,
        "entry_time": session.entry_time,
        "exit_time": session.exit_time,
        "duration_hours": billable_hours(session.entry_time, session.exit_time) if closed else 0,
        "fee": session.charged_amount or 0,
    }


async def outgoing_cars_report(db: AsyncSession, start_date: date, end_date: date, page: int, limit: int):
    start, end = date_bounds(start_date, end_date)
    in_range = (
        ParkingSession.exit_time.is_not(None),
        ParkingSession.exit_time.between(start, end),
    )
    logger.info(f"Generating outgoing cars report {start_date}..{end_date} page={page} limit={limit}")

    totals = await db.execute(
        select(
            func.count(ParkingSession.id),
            func.coalesce(func.sum(ParkingSession.charged_amount), 0),
        ).where(*in_range)
    )
    total, total_amount = totals.one()

    rows = await db.execute(
        crud.session_detail_query()
        .where(*in_range)
        .order_by(ParkingSession.exit_time.desc(), ParkingSession.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return {
        "records": [report_record(row) for row in rows.all()],
        "summary": {"total_records": total, "total_amount": total_amount},
        "total": total,
    }


async def entered_cars_report(db: AsyncSession, start_date: date, end_date: date, page: int, limit: int):
    start, end = date_bounds(start_date, end_date)
    logger.info(f"Generating entered cars report {start_date}..{end_date} page={page} limit={limit}")

    stmt = (
        crud.session_detail_query()
        .where(ParkingSession.entry_time.between(start, end))
        .order_by(ParkingSession.entry_time.desc(), ParkingSession.id.desc())
    )
    rows, total = await crud.paginate(db, stmt, page, limit)
    return {
        "records": [report_record(row) for row in rows.all()],
        "summary": {"total_records": total},
        "total": total,
    }
