from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from ..database import Base


class ConflictLog(Base):
    """
    Audit trail of scheduling attempts that collided with existing interviews.
    Written by schedule/reschedule; only an explicit resolve call updates it.
    """
    __tablename__ = "interview_conflicts"

    id = Column(Integer, primary_key=True, index=True)
    employer_id = Column(Integer, ForeignKey("employers.id"), nullable=False, index=True)
    conflict_date = Column(DateTime(timezone=True), nullable=False)  # attempted start (UTC)
    conflicting_interview_ids = Column(JSON, nullable=False, default=list)
    conflict_type = Column(String(20), nullable=False)  # overlapping | back_to_back
    resolved = Column(Boolean, nullable=False, default=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
