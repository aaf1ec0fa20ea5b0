"""Pytest configuration: in-memory SQLite database, case/user factories, fake scorer."""

from __future__ import annotations

import itertools
import os
from datetime import datetime, timedelta
from typing import Generator, Optional

import pytest
from sqlalchemy.orm import Session

# Override env BEFORE importing app modules so Settings picks up test values.
os.environ.update(
    {
        "DATABASE_URL": "sqlite://",
        "AWS_REGION": "ap-south-1",
        "AWS_ACCESS_KEY_ID": "",
        "AWS_SECRET_ACCESS_KEY": "",
        "SCHEDULER_ENABLED": "false",
        "DEBUG": "true",
    }
)

from app.db.database import Base, SessionLocal, engine  # noqa: E402
from app.db.models import (  # noqa: E402
    Case,
    CaseStatus,
    CaseType,
    CourtLevel,
    User,
    UserRole,
)
from app.services.case_priority_scoring_service import AnalysisResult  # noqa: E402
from app.utils.helpers import utcnow  # noqa: E402


@pytest.fixture(autouse=True)
def _create_tables():
    """Create all tables before each test and drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def now() -> datetime:
    return utcnow()


@pytest.fixture()
def make_user(db: Session):
    counter = itertools.count(1)

    def _make(role: UserRole = UserRole.lawyer, **kwargs) -> User:
        n = next(counter)
        user = User(
            name=kwargs.pop("name", f"User {n}"),
            email=kwargs.pop("email", f"user{n}@example.com"),
            role=role,
            **kwargs,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture()
def make_case(db: Session, make_user):
    counter = itertools.count(1)
    owner: dict[str, User] = {}

    def _make(**kwargs) -> Case:
        if "client" not in kwargs and "client_id" not in kwargs:
            if "client" not in owner:
                owner["client"] = make_user(role=UserRole.client, name="Asha Client")
            kwargs["client"] = owner["client"]

        n = next(counter)
        fields = {
            "case_number": f"PT-2024-{n:04d}",
            "title": f"Land title dispute {n}",
            "description": "Dispute over title to agricultural land in the village records.",
            "case_type": CaseType.property,
            "court_name": "Delhi High Court",
            "court_level": CourtLevel.high_court,
            "status": CaseStatus.in_progress,
            "filing_date": utcnow() - timedelta(days=40),
        }
        fields.update(kwargs)
        case = Case(**fields)
        db.add(case)
        db.commit()
        return case

    return _make


class FakeScorer:
    """Stands in for CasePriorityScoringService; keyed by case number."""

    def __init__(
        self,
        results: Optional[dict[str, AnalysisResult]] = None,
        errors: Optional[dict[str, Exception]] = None,
        default_score: int = 65,
    ) -> None:
        self.results = results or {}
        self.errors = errors or {}
        self.default_score = default_score
        self.calls: list[str] = []

    async def score(self, case: Case, now: Optional[datetime] = None) -> AnalysisResult:
        self.calls.append(case.case_number)
        if case.case_number in self.errors:
            raise self.errors[case.case_number]
        return self.results.get(
            case.case_number,
            AnalysisResult(priority_score=self.default_score, estimated_duration=120, reasoning="Routine matter"),
        )


@pytest.fixture()
def fake_scorer() -> FakeScorer:
    return FakeScorer()
