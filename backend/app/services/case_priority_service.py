"""
Applies priority analyses to cases and drives batched scoring runs.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.logger import logger
from app.db.models import Case, CaseNote, CasePriority, CaseStatus, NoteCategory
from app.services.case_priority_scoring_service import (
    AnalysisResult,
    CasePriorityScoringService,
    case_priority_scoring_service,
)
from app.services.case_store import CaseStore, case_store
from app.utils.helpers import chunked, utcnow


def priority_label(score: int) -> CasePriority:
    if score >= 90:
        return CasePriority.critical
    if score >= 75:
        return CasePriority.urgent
    if score >= 60:
        return CasePriority.high
    if score >= 40:
        return CasePriority.medium
    return CasePriority.low


@dataclass
class CaseAnalysisOutcome:
    case_id: str
    case_number: str
    success: bool
    priority_score: Optional[int] = None
    priority: Optional[str] = None
    used_fallback: bool = False
    error: Optional[str] = None


@dataclass
class BatchRunResult:
    batches: int = 0
    outcomes: list[CaseAnalysisOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    def as_dict(self) -> dict[str, Any]:
        return {
            "batches": self.batches,
            "attempted": len(self.outcomes),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": [
                {"case_number": o.case_number, "error": o.error}
                for o in self.outcomes if not o.success
            ],
        }


class CasePriorityService:
    """
    Batch orchestrator for case priority analysis.

    Cases are scored `batch_size` at a time with all calls in a batch running
    concurrently; results are then persisted one case at a time so a failing
    case (scoring or save) never blocks its siblings. The next batch starts
    only after every call in the current batch has settled and
    `batch_delay_seconds` has elapsed.
    """

    def __init__(
        self,
        scoring_service: Optional[CasePriorityScoringService] = None,
        store: Optional[CaseStore] = None,
        batch_size: Optional[int] = None,
        batch_delay_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.scoring_service = scoring_service or case_priority_scoring_service
        self.store = store or case_store
        self.batch_size = max(1, int(batch_size or settings.SCHEDULER_BATCH_SIZE))
        self.batch_delay_seconds = (
            settings.SCHEDULER_BATCH_DELAY_SECONDS if batch_delay_seconds is None else batch_delay_seconds
        )
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Applying a result
    # ------------------------------------------------------------------

    def apply_analysis(self, case: Case, result: AnalysisResult, now: Optional[datetime] = None) -> CaseNote:
        """Write the analysis onto the case and append the system note (no commit)."""
        now = now or utcnow()

        case.priority_score = result.priority_score
        case.priority = priority_label(result.priority_score)

        case.ai_complexity_score = result.complexity_score
        case.ai_urgency_factors = list(result.urgency_factors)
        case.ai_delay_risk_factors = list(result.delay_risk_factors)
        case.ai_estimated_duration = result.estimated_duration
        case.ai_similar_cases_count = result.similar_cases_count
        case.ai_success_probability = result.success_probability
        # Same instant for both so the case is not re-selected as "updated since analysis"
        case.ai_last_analyzed_at = now
        case.updated_at = now

        if case.expected_completion_date is None or case.status == CaseStatus.assigned:
            case.expected_completion_date = now + timedelta(days=result.estimated_duration)

        note = CaseNote(
            content=f"AI Analysis: Priority Score {result.priority_score}/100. {result.reasoning}",
            created_by_id=None,
            category=NoteCategory.general,
            is_private=False,
            created_at=now,
        )
        case.notes.append(note)
        return note

    async def analyze_case(self, db: Session, case: Case, now: Optional[datetime] = None) -> AnalysisResult:
        """Score, apply and persist one case. Errors propagate to the caller."""
        result = await self.scoring_service.score(case, now)
        self._persist(db, case, result, now)
        return result

    def _persist(self, db: Session, case: Case, result: AnalysisResult, now: Optional[datetime]) -> None:
        try:
            self.apply_analysis(case, result, now)
            self.store.save(db, case)
        except Exception:
            db.rollback()
            raise

    # ------------------------------------------------------------------
    # Batch run
    # ------------------------------------------------------------------

    async def run_batches(self, db: Session, cases: Sequence[Case], now: Optional[datetime] = None) -> BatchRunResult:
        run = BatchRunResult()
        batches = list(chunked(list(cases), self.batch_size))

        for index, batch in enumerate(batches):
            run.batches += 1
            logger.info("Priority batch %d/%d: scoring %d cases", index + 1, len(batches), len(batch))

            # Capture identifiers up front; a rollback expires loaded attributes
            identities = [(str(c.id), c.case_number) for c in batch]
            results = await asyncio.gather(
                *(self.scoring_service.score(c, now) for c in batch),
                return_exceptions=True,
            )

            for case, (case_id, case_number), result in zip(batch, identities, results):
                run.outcomes.append(self._settle(db, case, case_id, case_number, result, now))

            if index < len(batches) - 1:
                await self._sleep(self.batch_delay_seconds)

        logger.info(
            "Priority run finished: batches=%d attempted=%d succeeded=%d failed=%d",
            run.batches, len(run.outcomes), run.succeeded, run.failed,
        )
        return run

    def _settle(
        self,
        db: Session,
        case: Case,
        case_id: str,
        case_number: str,
        result: Any,
        now: Optional[datetime],
    ) -> CaseAnalysisOutcome:
        if isinstance(result, BaseException):
            logger.warning("Priority scoring failed for case %s: %s", case_number, result)
            return CaseAnalysisOutcome(
                case_id=case_id,
                case_number=case_number,
                success=False,
                error=f"scoring: {result}",
            )

        try:
            self._persist(db, case, result, now)
        except Exception as exc:
            logger.warning("Saving priority analysis failed for case %s: %s", case_number, exc)
            return CaseAnalysisOutcome(
                case_id=case_id,
                case_number=case_number,
                success=False,
                error=f"persistence: {exc}",
            )

        logger.info("Case %s analyzed - priority %d", case_number, result.priority_score)
        return CaseAnalysisOutcome(
            case_id=case_id,
            case_number=case_number,
            success=True,
            priority_score=result.priority_score,
            priority=priority_label(result.priority_score).value,
            used_fallback=result.is_fallback,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_prioritized_cases_for_lawyer(
        self,
        db: Session,
        lawyer_id: Any,
        limit: int = 20,
        min_score: int = 0,
    ) -> list[Case]:
        return self.store.find_prioritized_for_lawyer(db, lawyer_id, limit=limit, min_score=min_score)

    def get_urgent_cases(
        self,
        db: Session,
        limit: int = 10,
        lawyer_id: Any = None,
        now: Optional[datetime] = None,
    ) -> list[Case]:
        return self.store.find_urgent(
            db,
            now or utcnow(),
            limit=limit,
            min_score=settings.URGENT_PRIORITY_THRESHOLD,
            min_delay_days=settings.URGENT_DELAY_DAYS,
            hearing_window_days=settings.URGENT_HEARING_WINDOW_DAYS,
            lawyer_id=lawyer_id,
        )


case_priority_service = CasePriorityService()
