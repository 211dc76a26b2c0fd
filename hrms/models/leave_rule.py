from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from hrms.database import Base

class LeaveRule(Base):
    __tablename__ = "leave_rules"

    id = Column(Integer, primary_key=True, index=True)
    grade_id = Column(Integer, ForeignKey("grades.id"), unique=True, nullable=False)
    annual_limit = Column(Float, default=0.0, nullable=False)   # days; 0 means unset
    medical_limit = Column(Float, default=0.0, nullable=False)  # days; 0 means unset
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    grade = relationship("Grade", back_populates="leave_rule")
