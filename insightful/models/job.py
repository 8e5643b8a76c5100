# Job model - one uploaded meeting file and its processing lifecycle (PENDING -> PROCESSING -> COMPLETED/FAILED)

import enum

from sqlalchemy import Column, Integer, String, DateTime, Text, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from insightful.core.database import Base


class JobStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_final(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class MeetingJob(Base):
    """Meeting analysis job owned by a single user"""

    __tablename__ = "meeting_jobs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Owner (subject of the access token)
    user_id = Column(String(255), nullable=False, index=True)

    # Source file
    file_name = Column(String(255), nullable=True)  # Display name, user can rename
    file_key = Column(String(500), nullable=True)  # Object key in the bucket
    file_url = Column(String(1000), nullable=True)  # Public URL
    content_type = Column(String(100), nullable=True)

    status = Column(
        Enum(JobStatus, name="job_status", native_enum=False, length=20),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
    )

    # Error message if failed
    error_message = Column(Text, nullable=True)

    # Queue message/task ID for tracking
    task_id = Column(String(255), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    analysis_result = relationship(
        "AnalysisResult",
        back_populates="job",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<MeetingJob(id={self.id}, user_id='{self.user_id}', status={self.status.value if self.status else None})>"

    def is_owned_by(self, user_id: str) -> bool:
        return self.user_id == user_id
