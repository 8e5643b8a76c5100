# AnalysisResult model - transcript, summary, action items and key decisions produced for a job

from sqlalchemy import Column, Integer, DateTime, Text, ForeignKey, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from insightful.core.database import Base


class AnalysisResult(Base):
    """Output of the external analysis pipeline, one per job"""

    __tablename__ = "analysis_results"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    job_id = Column(
        Integer,
        ForeignKey("meeting_jobs.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    transcript = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)

    # [{"task": ..., "assignee": ..., "due_date": ...}]
    action_items = Column(JSON, nullable=True)

    # [{"text": ..., "context": ...}]
    key_decisions = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    job = relationship("MeetingJob", back_populates="analysis_result")

    def __repr__(self):
        return f"<AnalysisResult(id={self.id}, job_id={self.job_id})>"
