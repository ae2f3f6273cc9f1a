from .application import Application
from .candidate import Candidate
from .conflict_log import ConflictLog
from .employer import Employer
from .interview import Interview
from .job import Job
from .user import User

__all__ = [
    "Application",
    "Candidate",
    "ConflictLog",
    "Employer",
    "Interview",
    "Job",
    "User",
]
