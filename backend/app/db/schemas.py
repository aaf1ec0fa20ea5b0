"""
Pydantic validation schemas
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional, List, Dict
from datetime import datetime
from uuid import UUID

from app.db.models import CasePriority, CaseStatus, CaseType, DelayImpact, NoteCategory

# ============================================================================
# Case Schemas
# ============================================================================

class CaseNoteOut(BaseModel):
    id: UUID
    content: str
    category: NoteCategory
    created_by_id: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CasePriorityOut(BaseModel):
    """Scheduling view of a case"""
    id: UUID
    case_number: str
    title: str
    case_type: CaseType
    status: CaseStatus
    priority: CasePriority
    priority_score: int
    client_id: UUID
    assigned_lawyer_id: Optional[UUID] = None
    filing_date: datetime
    hearing_date: Optional[datetime] = None
    deadline_date: Optional[datetime] = None
    expected_completion_date: Optional[datetime] = None

    ai_complexity_score: int
    ai_urgency_factors: List[str]
    ai_delay_risk_factors: List[str]
    ai_estimated_duration: Optional[int] = None
    ai_similar_cases_count: int
    ai_success_probability: int
    ai_last_analyzed_at: Optional[datetime] = None

    is_delayed: bool
    delay_days: int
    delay_impact: DelayImpact

    model_config = ConfigDict(from_attributes=True)


class CaseAnalysisResponse(BaseModel):
    success: bool = True
    message: str
    case: CasePriorityOut
    latest_note: Optional[CaseNoteOut] = None


class CaseListResponse(BaseModel):
    success: bool = True
    count: int
    cases: List[CasePriorityOut]

# ============================================================================
# Scheduler Schemas
# ============================================================================

class AnalyzeAllResponse(BaseModel):
    success: bool
    started: bool
    message: str


class SchedulerStatusOut(BaseModel):
    state: str
    is_processing: bool
    healthy: bool
    last_run_at: Optional[datetime] = None
    last_daily_run_at: Optional[datetime] = None
    jobs_registered: int = 0


class CaseTypeStats(BaseModel):
    count: int
    avg_priority_score: float


class CaseStatisticsOut(BaseModel):
    total_cases: int
    active_cases: int
    delayed_cases: int
    average_priority_score: float
    by_status: Dict[str, int]
    by_type: Dict[str, CaseTypeStats]
    by_priority: Dict[str, int]
