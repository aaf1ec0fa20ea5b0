from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.logger import logger
from app.db.models import TERMINAL_STATUSES, Case
from app.services.case_store import CaseStore, case_store


@dataclass
class WorkloadRebalanceResult:
    lawyers: int = 0
    updated: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "lawyers": self.lawyers,
            "updated": len(self.updated),
            "errors": len(self.errors),
        }


def _key(value: Any) -> str:
    return str(getattr(value, "value", value))


class WorkloadService:
    """Daily maintenance: per-lawyer active case counts and platform case statistics."""

    def __init__(self, store: Optional[CaseStore] = None) -> None:
        self.store = store or case_store

    def rebalance_lawyer_workloads(self, db: Session) -> WorkloadRebalanceResult:
        lawyers = self.store.find_active_lawyers(db)
        result = WorkloadRebalanceResult(lawyers=len(lawyers))

        for lawyer in lawyers:
            lawyer_id = str(lawyer.id)
            try:
                active = self.store.count_active_cases_for_lawyer(db, lawyer.id)
                lawyer.active_cases = active
                self.store.save_user(db, lawyer)
                result.updated[lawyer_id] = active
            except Exception as exc:
                db.rollback()
                logger.warning("Workload update failed for lawyer %s: %s", lawyer_id, exc)
                result.errors[lawyer_id] = str(exc)

        logger.info(
            "Lawyer workloads rebalanced: lawyers=%d updated=%d errors=%d",
            result.lawyers, len(result.updated), len(result.errors),
        )
        return result

    def compute_case_statistics(self, db: Session) -> dict[str, Any]:
        total = db.query(func.count(Case.id)).scalar() or 0
        active = (
            db.query(func.count(Case.id))
            .filter(Case.status.notin_(TERMINAL_STATUSES))
            .scalar()
            or 0
        )
        delayed = (
            db.query(func.count(Case.id))
            .filter(Case.is_delayed.is_(True))
            .scalar()
            or 0
        )
        avg_score = db.query(func.avg(Case.priority_score)).scalar()

        by_status = {
            _key(status): count
            for status, count in db.query(Case.status, func.count(Case.id)).group_by(Case.status).all()
        }
        by_priority = {
            _key(priority): count
            for priority, count in db.query(Case.priority, func.count(Case.id)).group_by(Case.priority).all()
        }
        by_type = {
            _key(case_type): {
                "count": count,
                "avg_priority_score": round(float(avg or 0), 2),
            }
            for case_type, count, avg in db.query(
                Case.case_type,
                func.count(Case.id),
                func.avg(Case.priority_score),
            ).group_by(Case.case_type).all()
        }

        return {
            "total_cases": int(total),
            "active_cases": int(active),
            "delayed_cases": int(delayed),
            "average_priority_score": round(float(avg_score or 0), 2),
            "by_status": by_status,
            "by_type": by_type,
            "by_priority": by_priority,
        }


workload_service = WorkloadService()
