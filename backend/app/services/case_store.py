from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session, selectinload

from app.db.models import (
    ACTIVE_MANAGEMENT_STATUSES,
    TERMINAL_STATUSES,
    Case,
    User,
    UserRole,
)


def _as_uuid(value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


class CaseStore:
    """Read/write contract the scheduler needs from the case and user tables."""

    def _with_context(self, query):
        return query.options(
            selectinload(Case.assigned_lawyer),
            selectinload(Case.client),
            selectinload(Case.documents),
            selectinload(Case.milestones),
        )

    def find_cases_for_analysis(
        self,
        db: Session,
        now: datetime,
        limit: int = 20,
        reanalyze_after_hours: int = 24,
    ) -> list[Case]:
        """
        Non-terminal cases that were never analyzed, were analyzed more than
        `reanalyze_after_hours` ago, or are under active management and were
        modified after their last analysis. Unordered selection.
        """
        stale_before = now - timedelta(hours=reanalyze_after_hours)
        query = (
            db.query(Case)
            .filter(
                or_(
                    Case.ai_last_analyzed_at.is_(None),
                    Case.ai_last_analyzed_at < stale_before,
                    and_(
                        Case.status.in_(ACTIVE_MANAGEMENT_STATUSES),
                        Case.ai_last_analyzed_at < Case.updated_at,
                    ),
                ),
                Case.status.notin_(TERMINAL_STATUSES),
            )
            .limit(max(1, int(limit)))
        )
        return self._with_context(query).all()

    def get_case(self, db: Session, case_id: Any) -> Case | None:
        try:
            key = _as_uuid(case_id)
        except ValueError:
            return None
        return self._with_context(db.query(Case).filter(Case.id == key)).first()

    def save(self, db: Session, case: Case) -> None:
        db.add(case)
        db.commit()

    def find_prioritized_for_lawyer(
        self,
        db: Session,
        lawyer_id: Any,
        limit: int = 20,
        min_score: int = 0,
    ) -> list[Case]:
        return (
            db.query(Case)
            .options(selectinload(Case.client))
            .filter(
                Case.assigned_lawyer_id == _as_uuid(lawyer_id),
                Case.status.notin_(TERMINAL_STATUSES),
                Case.priority_score >= int(min_score),
            )
            .order_by(
                Case.priority_score.desc(),
                Case.hearing_date.is_(None),
                Case.hearing_date.asc(),
            )
            .limit(max(1, int(limit)))
            .all()
        )

    def find_urgent(
        self,
        db: Session,
        now: datetime,
        limit: int = 10,
        min_score: int = 80,
        min_delay_days: int = 30,
        hearing_window_days: int = 7,
        lawyer_id: Any = None,
    ) -> list[Case]:
        """High score, long delay, or a hearing inside the window (past hearings included)."""
        hearing_before = now + timedelta(days=hearing_window_days)
        query = db.query(Case).options(
            selectinload(Case.client),
            selectinload(Case.assigned_lawyer),
        ).filter(
            or_(
                Case.priority_score >= min_score,
                and_(Case.is_delayed.is_(True), Case.delay_days >= min_delay_days),
                and_(Case.hearing_date.isnot(None), Case.hearing_date <= hearing_before),
            ),
            Case.status.notin_(TERMINAL_STATUSES),
        )
        if lawyer_id is not None:
            query = query.filter(Case.assigned_lawyer_id == _as_uuid(lawyer_id))
        return query.order_by(Case.priority_score.desc()).limit(max(1, int(limit))).all()

    def count_active_cases_for_lawyer(self, db: Session, lawyer_id: Any) -> int:
        return (
            db.query(func.count(Case.id))
            .filter(
                Case.assigned_lawyer_id == _as_uuid(lawyer_id),
                Case.status.notin_(TERMINAL_STATUSES),
            )
            .scalar()
            or 0
        )

    def find_active_lawyers(self, db: Session) -> list[User]:
        return (
            db.query(User)
            .filter(User.role == UserRole.lawyer, User.is_active.is_(True))
            .order_by(User.created_at.asc())
            .all()
        )

    def save_user(self, db: Session, user: User) -> None:
        db.add(user)
        db.commit()


case_store = CaseStore()
