import math
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EMAIL_PATTERN = r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$"
PLATE_PATTERN = r"^[A-Za-z0-9-]+$"
LOT_CODE_PATTERN = r"^[A-Za-z0-9_-]+$"


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int):
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


# Users

class UserRegister(BaseModel):
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=6)
    role: Literal["admin", "attendant"]

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class UserLogin(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


class UserOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    role: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AuthData(UserOut):
    token: str


class AuthResponse(BaseModel):
    success: bool = True
    data: AuthData


class UserResponse(BaseModel):
    success: bool = True
    data: UserOut


class UserListResponse(BaseModel):
    success: bool = True
    data: List[UserOut]
    pagination: Pagination


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# Parking lots

class ParkingLotCreate(BaseModel):
    code: str = Field(min_length=2, max_length=50, pattern=LOT_CODE_PATTERN)
    name: str = Field(min_length=2, max_length=100)
    capacity: int = Field(ge=1)
    location: Optional[str] = Field(default=None, max_length=200)
    hourly_rate: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

    @field_validator("code", "name", "location", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class ParkingLotUpdate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    capacity: int = Field(ge=1)
    location: Optional[str] = Field(default=None, max_length=200)
    hourly_rate: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

    @field_validator("name", "location", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class ParkingLotOut(BaseModel):
    id: int
    code: str
    name: str
    capacity: int
    occupied: int
    available_spaces: int
    location: Optional[str] = None
    hourly_rate: float
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ParkingLotResponse(BaseModel):
    success: bool = True
    data: ParkingLotOut


class ParkingLotListResponse(BaseModel):
    success: bool = True
    data: List[ParkingLotOut]
    pagination: Pagination


# Parking sessions

class VehicleEntryCreate(BaseModel):
    plate_number: str = Field(min_length=2, max_length=20, pattern=PLATE_PATTERN)
    parking_lot_id: Optional[int] = None
    parking_code: Optional[str] = None

    @field_validator("plate_number", mode="before")
    @classmethod
    def normalize_plate(cls, value):
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("parking_code", mode="before")
    @classmethod
    def strip_code(cls, value):
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def lot_reference_required(self):
        if self.parking_lot_id is None and not self.parking_code:
            raise ValueError("Either parking_lot_id or parking_code is required")
        return self


class ParkingSessionOut(BaseModel):
    id: int
    plate_number: str
    lot_id: Optional[int] = None
    entry_time: datetime
    exit_time: Optional[datetime] = None
    charged_amount: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


class ParkingSessionDetail(ParkingSessionOut):
    lot_code: Optional[str] = None
    lot_name: Optional[str] = None
    hourly_rate: Optional[float] = None
    duration_hours: Optional[int] = None


class BillOut(ParkingSessionOut):
    duration_hours: int
    hourly_rate: float
    lot_name: str


class VehicleEntryData(BaseModel):
    session: ParkingSessionOut
    lot: ParkingLotOut


class VehicleEntryResponse(BaseModel):
    success: bool = True
    message: str = "Vehicle entry recorded"
    data: VehicleEntryData


class VehicleExitData(BaseModel):
    bill: BillOut
    lot: ParkingLotOut


class VehicleExitResponse(BaseModel):
    success: bool = True
    message: str = "Exit recorded"
    data: VehicleExitData


class ParkingSessionResponse(BaseModel):
    success: bool = True
    data: ParkingSessionDetail


class ParkingSessionListResponse(BaseModel):
    success: bool = True
    data: List[ParkingSessionDetail]
    pagination: Pagination


# Reports

class ActivityItem(BaseModel):
    id: int
    plate_number: str
    activity: Literal["Entry", "Exit"]
    time: datetime


class TodaySummary(BaseModel):
    check_ins: int
    check_outs: int


class OccupancySummary(BaseModel):
    capacity: int
    occupied: int
    available: int


class DashboardData(BaseModel):
    today_summary: TodaySummary
    occupancy: OccupancySummary
    recent_activity: List[ActivityItem]


class DashboardResponse(BaseModel):
    success: bool = True
    data: DashboardData


class ReportRecord(BaseModel):
    id: int
    plate_number: str
    lot_name: Optional[str] = None
    entry_time: datetime
    exit_time: Optional[datetime] = None
    duration_hours: int
    fee: float


class ReportSummary(BaseModel):
    total_records: int
    total_amount: Optional[float] = None


class ReportResponse(BaseModel):
    success: bool = True
    records: List[ReportRecord]
    summary: ReportSummary
    pagination: Pagination
