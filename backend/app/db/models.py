"""
SQLAlchemy ORM Models
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    TIMESTAMP,
    Uuid,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy import Index

from app.db.database import Base
from app.utils.helpers import days_between, utcnow

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# ============================================================================
# Enums
# ============================================================================

class UserRole(str, enum.Enum):
    """User roles"""
    client = "client"
    lawyer = "lawyer"
    admin = "admin"

class CaseStatus(str, enum.Enum):
    """Case lifecycle status"""
    pending_assignment = "pending_assignment"
    assigned = "assigned"
    in_progress = "in_progress"
    under_review = "under_review"
    awaiting_hearing = "awaiting_hearing"
    in_court = "in_court"
    completed = "completed"
    dismissed = "dismissed"
    settled = "settled"
    appealed = "appealed"

# No further scheduling analysis once a case reaches one of these
TERMINAL_STATUSES = (
    CaseStatus.completed,
    CaseStatus.dismissed,
    CaseStatus.settled,
)

# Statuses whose updates trigger re-analysis before the daily refresh
ACTIVE_MANAGEMENT_STATUSES = (
    CaseStatus.assigned,
    CaseStatus.in_progress,
    CaseStatus.awaiting_hearing,
)

class CasePriority(str, enum.Enum):
    """Priority label derived from priority_score"""
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"
    critical = "critical"

class DelayImpact(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"

class CaseType(str, enum.Enum):
    criminal = "Criminal"
    civil = "Civil"
    corporate = "Corporate"
    family = "Family"
    property = "Property"
    labor = "Labor"
    tax = "Tax"
    constitutional = "Constitutional"
    environmental = "Environmental"
    intellectual_property = "Intellectual Property"
    immigration = "Immigration"
    banking = "Banking"
    insurance = "Insurance"
    consumer_protection = "Consumer Protection"
    other = "Other"

class CourtLevel(str, enum.Enum):
    district = "District"
    high_court = "High Court"
    supreme_court = "Supreme Court"
    tribunal = "Tribunal"
    other = "Other"

class NoteCategory(str, enum.Enum):
    general = "general"
    strategy = "strategy"
    evidence = "evidence"
    client_communication = "client_communication"
    court_update = "court_update"

class MilestoneStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    overdue = "overdue"


# ============================================================================
# Models
# ============================================================================

class User(Base):
    """Client / lawyer / admin account"""
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.client, index=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")

    # Lawyer profile
    specialization = Column(JSONType, nullable=False, default=list)
    experience = Column(Integer, nullable=True)  # years

    # Case statistics (active_cases is owned by the workload rebalancer)
    total_cases = Column(Integer, nullable=False, default=0)
    active_cases = Column(Integer, nullable=False, default=0)
    completed_cases = Column(Integer, nullable=False, default=0)
    success_rate = Column(Float, nullable=False, default=0)

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    client_cases = relationship("Case", back_populates="client", foreign_keys="Case.client_id")
    assigned_cases = relationship("Case", back_populates="assigned_lawyer", foreign_keys="Case.assigned_lawyer_id")


class Case(Base):
    """Legal case with AI priority scoring and delay tracking"""
    __tablename__ = "cases"
    __table_args__ = (
        Index("ix_cases_status_priority_score", "status", "priority_score"),
        Index("ix_cases_lawyer_status", "assigned_lawyer_id", "status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Case Identification
    case_number = Column(String(100), unique=True, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    case_type = Column(SQLEnum(CaseType), nullable=False, index=True)
    sub_category = Column(String(100), nullable=True)

    # Parties
    client_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_lawyer_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Court
    court_name = Column(String(255), nullable=False)
    court_level = Column(SQLEnum(CourtLevel), nullable=False)
    judge_name = Column(String(255), nullable=True)

    estimated_value = Column(Float, nullable=False, default=0)

    # Status
    status = Column(SQLEnum(CaseStatus), nullable=False, default=CaseStatus.pending_assignment, index=True)
    priority = Column(SQLEnum(CasePriority), nullable=False, default=CasePriority.medium)
    priority_score = Column(Integer, nullable=False, default=50)

    # Important dates
    filing_date = Column(TIMESTAMP, nullable=False)
    hearing_date = Column(TIMESTAMP, nullable=True, index=True)
    deadline_date = Column(TIMESTAMP, nullable=True)
    expected_completion_date = Column(TIMESTAMP, nullable=True)

    # AI analysis
    ai_complexity_score = Column(Integer, nullable=False, default=50)
    ai_urgency_factors = Column(JSONType, nullable=False, default=list)
    ai_delay_risk_factors = Column(JSONType, nullable=False, default=list)
    ai_estimated_duration = Column(Integer, nullable=True)  # days
    ai_similar_cases_count = Column(Integer, nullable=False, default=0)
    ai_success_probability = Column(Integer, nullable=False, default=50)
    ai_last_analyzed_at = Column(TIMESTAMP, nullable=True, index=True)

    # Delay tracking (derived on every save, see update_delay_info)
    is_delayed = Column(Boolean, nullable=False, default=False)
    delay_days = Column(Integer, nullable=False, default=0)
    delay_impact = Column(SQLEnum(DelayImpact), nullable=False, default=DelayImpact.low)
    delay_reasons = Column(JSONType, nullable=False, default=list)

    # Optimistic concurrency
    version_id = Column(Integer, nullable=False)

    # Timestamps
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    # Relationships
    client = relationship("User", back_populates="client_cases", foreign_keys=[client_id])
    assigned_lawyer = relationship("User", back_populates="assigned_cases", foreign_keys=[assigned_lawyer_id])
    documents = relationship("CaseDocument", back_populates="case", cascade="all, delete-orphan")
    milestones = relationship("CaseMilestone", back_populates="case", cascade="all, delete-orphan")
    notes = relationship(
        "CaseNote",
        back_populates="case",
        cascade="all, delete-orphan",
        order_by="CaseNote.created_at",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def update_delay_info(self, now: datetime | None = None) -> None:
        """
        Recompute is_delayed / delay_days / delay_impact.

        A case is delayed once its expected completion date has passed, or
        while it is still awaiting a hearing whose date has passed.
        """
        now = now or utcnow()
        is_delayed = False
        delay_days = 0

        if self.expected_completion_date and now > self.expected_completion_date:
            is_delayed = True
            delay_days = days_between(self.expected_completion_date, now)

        if (
            self.hearing_date
            and now > self.hearing_date
            and self.status == CaseStatus.awaiting_hearing
        ):
            is_delayed = True
            delay_days = max(delay_days, days_between(self.hearing_date, now))

        self.is_delayed = is_delayed
        self.delay_days = delay_days
        self.delay_impact = delay_impact_for(delay_days)


def delay_impact_for(delay_days: int) -> DelayImpact:
    if delay_days > 180:
        return DelayImpact.critical
    if delay_days > 90:
        return DelayImpact.high
    if delay_days > 30:
        return DelayImpact.medium
    return DelayImpact.low


@event.listens_for(Case, "before_insert")
@event.listens_for(Case, "before_update")
def _refresh_case_delay_info(mapper, connection, target: Case) -> None:
    target.update_delay_info()


class CaseDocument(Base):
    """Document attached to a case (metadata only)"""
    __tablename__ = "case_documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    document_type = Column(String(50), nullable=False, default="other")
    uploaded_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    case = relationship("Case", back_populates="documents")


class CaseMilestone(Base):
    __tablename__ = "case_milestones"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    status = Column(SQLEnum(MilestoneStatus), nullable=False, default=MilestoneStatus.pending)
    due_date = Column(TIMESTAMP, nullable=True)
    completed_date = Column(TIMESTAMP, nullable=True)

    case = relationship("Case", back_populates="milestones")


class CaseNote(Base):
    """Case note; created_by_id is NULL for system-authored notes"""
    __tablename__ = "case_notes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    category = Column(SQLEnum(NoteCategory), nullable=False, default=NoteCategory.general)
    is_private = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    case = relationship("Case", back_populates="notes")
