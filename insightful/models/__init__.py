# SQLAlchemy database models - MeetingJob, AnalysisResult

from .job import MeetingJob, JobStatus
from .analysis import AnalysisResult
