from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from parkit import gate, ledger, registry
from parkit.auth import require_admin, require_attendant_or_admin
from parkit.database import get_db
from parkit.routers import page_params
from parkit.schemas import (
    BillOut,
    Pagination,
    ParkingLotOut,
    ParkingSessionDetail,
    ParkingSessionListResponse,
    ParkingSessionOut,
    ParkingSessionResponse,
    VehicleEntryCreate,
    VehicleEntryData,
    VehicleEntryResponse,
    VehicleExitData,
    VehicleExitResponse,
)

router = APIRouter(prefix="/api/parking-records", tags=["Parking Records"])


@router.post(
    "/entry",
    response_model=VehicleEntryResponse,
    status_code=HTTP_201_CREATED,
    dependencies=[Depends(require_attendant_or_admin)],
)
async def vehicle_entry(entry: VehicleEntryCreate, db: AsyncSession = Depends(get_db)):
    lot = await registry.resolve_lot(db, lot_id=entry.parking_lot_id, code=entry.parking_code)
    new_session, lot = await ledger.open_session(db, entry.plate_number, lot.id)

    gate.open_gate(lot.code, gate.GATE_ENTRY, new_session.plate_number, new_session.id)

    return VehicleEntryResponse(
        data=VehicleEntryData(
            session=ParkingSessionOut.model_validate(new_session),
            lot=ParkingLotOut.model_validate(lot),
        )
    )


@router.put(
    "/exit/{session_id}",
    response_model=VehicleExitResponse,
    dependencies=[Depends(require_attendant_or_admin)],
)
async def vehicle_exit(session_id: int, db: AsyncSession = Depends(get_db)):
    bill, lot = await ledger.close_session(db, session_id)

    gate.open_gate(lot.code, gate.GATE_EXIT, bill.plate_number, bill.id)

    return VehicleExitResponse(
        message="Exit recorded, bill generated",
        data=VehicleExitData(
            bill=BillOut.model_validate(bill),
            lot=ParkingLotOut.model_validate(lot),
        ),
    )


@router.get("", response_model=ParkingSessionListResponse, dependencies=[Depends(require_admin)])
async def list_parking_records(paging=Depends(page_params), db: AsyncSession = Depends(get_db)):
    page, limit = paging
    records, total = await ledger.list_sessions(db, page, limit)
    return ParkingSessionListResponse(
        data=[ParkingSessionDetail.model_validate(r) for r in records],
        pagination=Pagination.build(page, limit, total),
    )


@router.get(
    "/plate/{plate_number}",
    response_model=ParkingSessionResponse,
    dependencies=[Depends(require_attendant_or_admin)],
)
async def active_session_by_plate(plate_number: str, db: AsyncSession = Depends(get_db)):
    record = await ledger.find_open_session_by_plate(db, plate_number)
    return ParkingSessionResponse(data=ParkingSessionDetail.model_validate(record))


@router.get(
    "/{session_id}",
    response_model=ParkingSessionResponse,
    dependencies=[Depends(require_attendant_or_admin)],
)
async def get_parking_record(session_id: int, db: AsyncSession = Depends(get_db)):
    record = await ledger.get_session(db, session_id)
    return ParkingSessionResponse(data=ParkingSessionDetail.model_validate(record))
