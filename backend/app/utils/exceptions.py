"""
Custom exception classes
"""
from fastapi import HTTPException


class PriorityScoringError(RuntimeError):
    """The scoring model could not be reached or rejected the request"""


class CaseNotFoundError(HTTPException):
    """Raised when an on-demand analysis names a case that doesn't exist"""
    def __init__(self, case_id: str):
        super().__init__(
            status_code=404,
            detail=f"Case {case_id} not found"
        )


class AIServiceError(HTTPException):
    """Raised by the API when priority scoring fails for a single case"""
    def __init__(self, reason: str = "priority scoring unavailable"):
        super().__init__(
            status_code=503,
            detail=f"AI service error: {reason}"
        )
