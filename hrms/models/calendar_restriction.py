from sqlalchemy import Column, Integer, String, Date, DateTime
from sqlalchemy.sql import func
from hrms.database import Base

class CalendarRestriction(Base):
    __tablename__ = "calendar_restrictions"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, unique=True, nullable=False)
    type = Column(String, nullable=False)  # e.g. "HOLIDAY", "BLACKOUT"
    reason = Column(String, nullable=True)
    created_by_user_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
