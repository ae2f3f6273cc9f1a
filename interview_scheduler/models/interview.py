from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base

INTERVIEW_TYPES = ("phone", "video", "onsite", "technical")
INTERVIEW_STATUSES = ("scheduled", "completed", "cancelled")


class Interview(Base):
    __tablename__ = "interviews"
    __table_args__ = (
        Index("ix_interviews_employer_status_start", "employer_id", "status", "scheduled_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    application_id = Column(Integer, ForeignKey("applications.id"), nullable=False)
    employer_id = Column(Integer, ForeignKey("employers.id"), nullable=False)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False)

    scheduled_at = Column(DateTime(timezone=True), nullable=False)  # stored in UTC
    duration = Column(Integer, nullable=False, default=60)  # minutes
    interview_type = Column(String(20), nullable=False, default="video")  # phone | video | onsite | technical

    # Lifecycle: scheduled -> completed | cancelled. Moving the time keeps the
    # interview "scheduled" and only flips was_rescheduled.
    status = Column(String(20), nullable=False, default="scheduled")
    was_rescheduled = Column(Boolean, nullable=False, default=False)

    location = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    application = relationship("Application", back_populates="interviews")
    employer = relationship("Employer", back_populates="interviews")
    candidate = relationship("Candidate")
    job = relationship("Job")

    def __repr__(self) -> str:
        return f"<Interview(id={self.id}, employer={self.employer_id}, at={self.scheduled_at}, status={self.status})>"
