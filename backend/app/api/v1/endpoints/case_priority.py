"""
Case priority endpoints: trigger analysis, score one case on demand, list prioritized and urgent cases.
Authentication and role checks are applied by the surrounding gateway.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.logger import logger
from app.db import schemas
from app.db.database import get_db
from app.services.background_jobs import CasePriorityScheduler, case_priority_scheduler
from app.services.case_priority_service import CasePriorityService, case_priority_service
from app.services.workload_service import WorkloadService, workload_service
from app.utils.exceptions import AIServiceError

router = APIRouter()


def get_scheduler() -> CasePriorityScheduler:
    return case_priority_scheduler


def get_priority_service() -> CasePriorityService:
    return case_priority_service


def get_workload_service() -> WorkloadService:
    return workload_service


@router.post("/analyze-all", response_model=schemas.AnalyzeAllResponse, status_code=status.HTTP_202_ACCEPTED)
async def analyze_all_cases(scheduler: CasePriorityScheduler = Depends(get_scheduler)):
    """
    Start a priority analysis run in the background. Returns immediately;
    `started` is false when a run is already in progress.
    """
    started = scheduler.trigger_hourly_analysis()
    message = (
        "AI analysis started for all active cases. This may take several minutes to complete."
        if started
        else "AI analysis is already running."
    )
    return {"success": True, "started": started, "message": message}


@router.post("/cases/{case_id}/analyze", response_model=schemas.CaseAnalysisResponse)
async def analyze_case(
    case_id: UUID,
    db: Session = Depends(get_db),
    scheduler: CasePriorityScheduler = Depends(get_scheduler),
):
    """Score one case now and return it with the analysis note."""
    try:
        case = await scheduler.analyze_case_now(case_id, db=db)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("On-demand priority analysis failed for case %s", case_id)
        raise AIServiceError(str(e))

    return {
        "success": True,
        "message": "AI analysis completed",
        "case": case,
        "latest_note": case.notes[-1] if case.notes else None,
    }


@router.get("/lawyers/{lawyer_id}/cases", response_model=schemas.CaseListResponse)
def get_prioritized_cases(
    lawyer_id: UUID,
    limit: int = Query(20, ge=1, le=100),
    min_score: int = Query(0, ge=0, le=100),
    db: Session = Depends(get_db),
    service: CasePriorityService = Depends(get_priority_service),
):
    cases = service.get_prioritized_cases_for_lawyer(db, lawyer_id, limit=limit, min_score=min_score)
    return {"success": True, "count": len(cases), "cases": cases}


@router.get("/urgent", response_model=schemas.CaseListResponse)
def get_urgent_cases(
    limit: int = Query(10, ge=1, le=100),
    lawyer_id: Optional[UUID] = None,
    db: Session = Depends(get_db),
    service: CasePriorityService = Depends(get_priority_service),
):
    cases = service.get_urgent_cases(db, limit=limit, lawyer_id=lawyer_id)
    return {"success": True, "count": len(cases), "cases": cases}


@router.get("/status", response_model=schemas.SchedulerStatusOut)
def get_scheduler_status(scheduler: CasePriorityScheduler = Depends(get_scheduler)):
    return scheduler.status()


@router.get("/stats", response_model=schemas.CaseStatisticsOut)
def get_case_statistics(
    db: Session = Depends(get_db),
    service: WorkloadService = Depends(get_workload_service),
):
    return service.compute_case_statistics(db)
