from datetime import datetime

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from parkit.models import ParkingLot, ParkingSession, User


async def count_rows(db: AsyncSession, stmt):
    result = await db.execute(select(func.count()).select_from(stmt.subquery()))
    return result.scalar_one()


async def paginate(db: AsyncSession, stmt, page: int, limit: int):
    total = await count_rows(db, stmt)
    result = await db.execute(stmt.limit(limit).offset((page - 1) * limit))
    return result, total


# Parking lots

async def get_lot(db: AsyncSession, lot_id: int):
    result = await db.execute(
        select(ParkingLot)
        .where(ParkingLot.id == lot_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_lot_by_code(db: AsyncSession, code: str):
    result = await db.execute(select(ParkingLot).where(ParkingLot.code == code))
    return result.scalars().first()


async def list_lots(db: AsyncSession, page: int, limit: int):
    stmt = select(ParkingLot).order_by(ParkingLot.created_at.desc(), ParkingLot.id.desc())
    result, total = await paginate(db, stmt, page, limit)
    return result.scalars().all(), total


async def create_lot(db: AsyncSession, code: str, name: str, capacity: int, location, hourly_rate):
    lot = ParkingLot(
        code=code,
        name=name,
        capacity=capacity,
        occupied=0,
        location=location,
        hourly_rate=hourly_rate,
    )
    db.add(lot)
    await db.flush()
    await db.refresh(lot)
    return lot


async def count_open_sessions_for_lot(db: AsyncSession, lot_id: int):
    result = await db.execute(
        select(func.count(ParkingSession.id)).where(
            ParkingSession.lot_id == lot_id,
            ParkingSession.exit_time.is_(None),
        )
    )
    return result.scalar_one()


# Parking sessions

def session_detail_query():
    return select(
        ParkingSession,
        ParkingLot.code.label("lot_code"),
        ParkingLot.name.label("lot_name"),
        ParkingLot.hourly_rate.label("hourly_rate"),
    ).outerjoin(ParkingLot, ParkingSession.lot_id == ParkingLot.id)


async def get_session(db: AsyncSession, session_id: int):
    result = await db.execute(
        select(ParkingSession)
        .where(ParkingSession.id == session_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_session_detail(db: AsyncSession, session_id: int):
    result = await db.execute(session_detail_query().where(ParkingSession.id == session_id))
    return result.first()


async def get_active_session_by_plate(db: AsyncSession, plate_number: str):
    result = await db.execute(
        select(ParkingSession).where(
            ParkingSession.plate_number == plate_number,
            ParkingSession.exit_time.is_(None),
        )
    )
    return result.scalars().first()


async def get_active_session_detail_by_plate(db: AsyncSession, plate_number: str):
    result = await db.execute(
        session_detail_query()
        .where(
            ParkingSession.plate_number == plate_number,
            ParkingSession.exit_time.is_(None),
        )
        .order_by(ParkingSession.entry_time.desc())
        .limit(1)
    )
    return result.first()


async def list_sessions(db: AsyncSession, page: int, limit: int):
    stmt = session_detail_query().order_by(
        ParkingSession.created_at.desc(), ParkingSession.id.desc()
    )
    result, total = await paginate(db, stmt, page, limit)
    return result.all(), total


async def create_parking_session(db: AsyncSession, plate_number: str, lot_id: int, entry_time: datetime):
    new_session = ParkingSession(
        plate_number=plate_number,
        lot_id=lot_id,
        entry_time=entry_time,
        created_at=entry_time,
    )
    db.add(new_session)
    await db.flush()
    await db.refresh(new_session)
    return new_session


# Users

async def get_user(db: AsyncSession, user_id: int):
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalars().first()


async def get_user_by_email(db: AsyncSession, email: str):
    result = await db.execute(select(User).where(User.email == email))
    return result.scalars().first()


async def list_users(db: AsyncSession, page: int, limit: int):
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
    result, total = await paginate(db, stmt, page, limit)
    return result.scalars().all(), total


async def create_user(db: AsyncSession, first_name: str, last_name: str, email: str, password_hash: str, role: str):
    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash=password_hash,
        role=role,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user
