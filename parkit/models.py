from sqlalchemy import Column, ForeignKey, Index, Integer, Numeric, String, TIMESTAMP, Text, text

from parkit.clock import utcnow
from parkit.database import Base

ROLE_ADMIN = "admin"
ROLE_ATTENDANT = "attendant"


class ParkingLot(Base):
    __tablename__ = "parking_lots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    capacity = Column(Integer, nullable=False)
    occupied = Column(Integer, nullable=False, default=0)
    location = Column(String(200), nullable=True)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    created_at = Column(TIMESTAMP, default=utcnow)

    @property
    def available_spaces(self):
        return self.capacity - self.occupied


class ParkingSession(Base):
    __tablename__ = "parking_sessions"
    __table_args__ = (
        # One open session per plate, whichever worker wrote it.
        Index(
            "uq_parking_sessions_open_plate",
            "plate_number",
            unique=True,
            sqlite_where=text("exit_time IS NULL"),
            postgresql_where=text("exit_time IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    plate_number = Column(String(20), nullable=False, index=True)
    lot_id = Column(Integer, ForeignKey("parking_lots.id", ondelete="SET NULL"), nullable=True)
    entry_time = Column(TIMESTAMP, nullable=False, default=utcnow)
    exit_time = Column(TIMESTAMP, nullable=True)
    charged_amount = Column(Numeric(10, 2), nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow)

    @property
    def is_active(self):
        return self.exit_time is None


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_ATTENDANT)
    created_at = Column(TIMESTAMP, default=utcnow)
