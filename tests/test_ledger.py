import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update

from parkit import crud, ledger, registry
from parkit.errors import (
    AlreadyActiveError,
    AlreadyClosedError,
    LotFullError,
    LotNotFoundError,
    SessionNotFoundError,
)
from parkit.models import ParkingSession

T = datetime(2024, 5, 19, 9, 0, 0)


async def test_entry_reserves_a_space(db, lot):
    session, updated = await ledger.open_session(db, "abc123 ", lot.id, now=T)

    assert session.plate_number == "ABC123"
    assert session.entry_time == T
    assert session.exit_time is None
    assert updated.occupied == 1


async def test_same_plate_cannot_enter_twice_and_full_lot_rejects(db):
    tiny = await registry.create_lot(db, "TINY", "Tiny Lot", 1, None, Decimal("5.00"))
    await ledger.open_session(db, "ABC123", tiny.id)

    with pytest.raises(AlreadyActiveError):
        await ledger.open_session(db, "ABC123", tiny.id)
    with pytest.raises(LotFullError):
        await ledger.open_session(db, "XYZ999", tiny.id)

    refreshed = await crud.get_lot(db, tiny.id)
    assert refreshed.occupied == 1


async def test_plate_active_in_another_lot_is_rejected(db, lot):
    other = await registry.create_lot(db, "LOT-B", "Second Lot", 5, None, Decimal("1.00"))
    await ledger.open_session(db, "ABC123", lot.id)

    with pytest.raises(AlreadyActiveError):
        await ledger.open_session(db, "ABC123", other.id)

    assert (await crud.get_lot(db, other.id)).occupied == 0


async def test_failed_entry_leaves_no_session(db):
    with pytest.raises(LotNotFoundError):
        await ledger.open_session(db, "ABC123", 999)
    assert await crud.get_active_session_by_plate(db, "ABC123") is None


async def test_exit_bills_and_releases(db, lot):
    session, _ = await ledger.open_session(db, "ABC123", lot.id, now=T)

    bill, updated = await ledger.close_session(db, session.id, now=T + timedelta(minutes=125))

    assert bill.charged_amount == Decimal("15.00")
    assert bill.duration_hours == 3
    assert bill.hourly_rate == Decimal("5.00")
    assert bill.lot_name == "Main Street Lot"
    assert updated.occupied == 0

    stored = await crud.get_session(db, session.id)
    assert stored.exit_time == T + timedelta(minutes=125)
    assert stored.charged_amount == Decimal("15.00")


async def test_second_exit_is_rejected_without_double_release(db, lot):
    first, _ = await ledger.open_session(db, "ABC123", lot.id, now=T)
    await ledger.open_session(db, "XYZ999", lot.id, now=T)

    await ledger.close_session(db, first.id, now=T + timedelta(minutes=30))
    with pytest.raises(AlreadyClosedError):
        await ledger.close_session(db, first.id, now=T + timedelta(minutes=45))

    refreshed = await crud.get_lot(db, lot.id)
    assert refreshed.occupied == 1
    stored = await crud.get_session(db, first.id)
    assert stored.exit_time == T + timedelta(minutes=30)


async def test_exit_unknown_session(db):
    with pytest.raises(SessionNotFoundError):
        await ledger.close_session(db, 12345)


async def test_plate_can_return_after_exit(db, lot):
    first, _ = await ledger.open_session(db, "ABC123", lot.id, now=T)
    await ledger.close_session(db, first.id, now=T + timedelta(hours=1))

    second, updated = await ledger.open_session(db, "ABC123", lot.id, now=T + timedelta(hours=2))

    assert second.id != first.id
    assert updated.occupied == 1


async def test_find_open_session_by_plate(db, lot):
    session, _ = await ledger.open_session(db, "ABC123", lot.id, now=T)

    found = await ledger.find_open_session_by_plate(db, "abc123")

    assert found.id == session.id
    assert found.lot_code == "LOT-A"
    assert found.duration_hours is None

    await ledger.close_session(db, session.id, now=T + timedelta(minutes=10))
    with pytest.raises(SessionNotFoundError):
        await ledger.find_open_session_by_plate(db, "ABC123")


async def test_get_session_reports_duration_once_closed(db, lot):
    session, _ = await ledger.open_session(db, "ABC123", lot.id, now=T)
    await ledger.close_session(db, session.id, now=T + timedelta(minutes=61))

    detail = await ledger.get_session(db, session.id)

    assert detail.duration_hours == 2
    assert detail.lot_name == "Main Street Lot"
    assert detail.charged_amount == Decimal("10.00")


async def test_concurrent_entries_fill_exactly_to_capacity(session_factory, db):
    small = await registry.create_lot(db, "SMALL", "Small Lot", 3, None, Decimal("2.00"))

    async def enter(plate):
        async with session_factory() as session:
            try:
                await ledger.open_session(session, plate, small.id)
                return True
            except LotFullError:
                return False

    results = await asyncio.gather(*(enter(f"CAR{i}") for i in range(8)))

    assert results.count(True) == 3
    final = await crud.get_lot(db, small.id)
    assert final.occupied == final.capacity == 3


async def test_concurrent_entries_for_one_plate_open_one_session(session_factory, db, lot):
    async def enter():
        async with session_factory() as session:
            try:
                await ledger.open_session(session, "ABC123", lot.id)
                return True
            except AlreadyActiveError:
                return False

    results = await asyncio.gather(*(enter() for _ in range(5)))

    assert results.count(True) == 1
    assert (await crud.get_lot(db, lot.id)).occupied == 1


async def test_concurrent_exits_release_once(session_factory, db, lot):
    session, _ = await ledger.open_session(db, "ABC123", lot.id, now=T)

    async def leave():
        async with session_factory() as s:
            try:
                await ledger.close_session(s, session.id)
                return True
            except AlreadyClosedError:
                return False

    results = await asyncio.gather(*(leave() for _ in range(4)))

    assert results.count(True) == 1
    assert (await crud.get_lot(db, lot.id)).occupied == 0


async def test_list_sessions(db, lot):
    for plate in ("AAA111", "BBB222", "CCC333"):
        await ledger.open_session(db, plate, lot.id)
    records, total = await ledger.list_sessions(db, page=1, limit=2)
    assert total == 3
    assert len(records) == 2
    assert all(r.lot_code == "LOT-A" for r in records)


async def test_failed_insert_after_reserve_rolls_back_the_space(db, lot, monkeypatch):
    async def broken_insert(*args, **kwargs):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(crud, "create_parking_session", broken_insert)

    with pytest.raises(RuntimeError):
        await ledger.open_session(db, "ABC123", lot.id, now=T)

    assert (await crud.get_lot(db, lot.id)).occupied == 0
    assert await crud.get_active_session_by_plate(db, "ABC123") is None


async def test_failed_release_keeps_session_open(db, lot, monkeypatch):
    session, _ = await ledger.open_session(db, "ABC123", lot.id, now=T)

    async def broken_release(*args, **kwargs):
        raise RuntimeError("release failed")

    monkeypatch.setattr(registry, "release_space", broken_release)

    with pytest.raises(RuntimeError):
        await ledger.close_session(db, session.id, now=T + timedelta(hours=1))

    stored = await crud.get_session(db, session.id)
    assert stored.exit_time is None
    assert stored.charged_amount is None
    assert (await crud.get_lot(db, lot.id)).occupied == 1


async def test_exit_from_missing_lot_is_not_found(db, lot):
    session, _ = await ledger.open_session(db, "ABC123", lot.id, now=T)
    await db.execute(
        update(ParkingSession)
        .where(ParkingSession.id == session.id)
        .values(lot_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    with pytest.raises(LotNotFoundError):
        await ledger.close_session(db, session.id, now=T + timedelta(hours=1))

    assert (await crud.get_session(db, session.id)).exit_time is None
