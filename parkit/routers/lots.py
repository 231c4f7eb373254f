from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from parkit import registry
from parkit.auth import get_current_user, require_admin
from parkit.database import get_db
from parkit.routers import page_params
from parkit.schemas import (
    MessageResponse,
    Pagination,
    ParkingLotCreate,
    ParkingLotListResponse,
    ParkingLotOut,
    ParkingLotResponse,
    ParkingLotUpdate,
)

router = APIRouter(prefix="/api/parking-lots", tags=["Parking Lots"])


@router.post(
    "",
    response_model=ParkingLotResponse,
    status_code=HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_parking_lot(body: ParkingLotCreate, db: AsyncSession = Depends(get_db)):
    lot = await registry.create_lot(
        db, body.code, body.name, body.capacity, body.location, body.hourly_rate
    )
    return ParkingLotResponse(data=ParkingLotOut.model_validate(lot))


@router.get("", response_model=ParkingLotListResponse, dependencies=[Depends(get_current_user)])
async def list_parking_lots(paging=Depends(page_params), db: AsyncSession = Depends(get_db)):
    page, limit = paging
    lots, total = await registry.list_lots(db, page, limit)
    return ParkingLotListResponse(
        data=[ParkingLotOut.model_validate(lot) for lot in lots],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{lot_id}", response_model=ParkingLotResponse, dependencies=[Depends(get_current_user)])
async def get_parking_lot(lot_id: int, db: AsyncSession = Depends(get_db)):
    lot = await registry.get_lot(db, lot_id)
    return ParkingLotResponse(data=ParkingLotOut.model_validate(lot))


@router.put("/{lot_id}", response_model=ParkingLotResponse, dependencies=[Depends(require_admin)])
async def update_parking_lot(lot_id: int, body: ParkingLotUpdate, db: AsyncSession = Depends(get_db)):
    lot = await registry.update_lot(
        db, lot_id, body.name, body.capacity, body.location, body.hourly_rate
    )
    return ParkingLotResponse(data=ParkingLotOut.model_validate(lot))


@router.delete("/{lot_id}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
async def delete_parking_lot(lot_id: int, db: AsyncSession = Depends(get_db)):
    await registry.delete_lot(db, lot_id)
    return MessageResponse(message="Parking lot deleted successfully")
