from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from parkit import reports
from parkit.auth import get_current_user, require_admin
from parkit.database import get_db
from parkit.routers import page_params
from parkit.schemas import DashboardResponse, Pagination, ReportResponse

router = APIRouter(prefix="/api/reports", tags=["Reports"])


@router.get("/dashboard-summary", response_model=DashboardResponse, dependencies=[Depends(get_current_user)])
async def dashboard_summary(db: AsyncSession = Depends(get_db)):
    return DashboardResponse(data=await reports.dashboard_summary(db))


@router.get("/outgoing-cars", response_model=ReportResponse, dependencies=[Depends(require_admin)])
async def outgoing_cars(
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    paging=Depends(page_params),
    db: AsyncSession = Depends(get_db),
):
    page, limit = paging
    report = await reports.outgoing_cars_report(db, start_date, end_date, page, limit)
    return ReportResponse(
        records=report["records"],
        summary=report["summary"],
        pagination=Pagination.build(page, limit, report["total"]),
    )


@router.get("/entered-cars", response_model=ReportResponse, dependencies=[Depends(require_admin)])
async def entered_cars(
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    paging=Depends(page_params),
    db: AsyncSession = Depends(get_db),
):
    page, limit = paging
    report = await reports.entered_cars_report(db, start_date, end_date, page, limit)
    return ReportResponse(
        records=report["records"],
        summary=report["summary"],
        pagination=Pagination.build(page, limit, report["total"]),
    )
