"""Tests for the command-line case priority job."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from jobs import case_priority_job


@pytest.fixture()
def scheduler():
    instance = MagicMock()
    instance.run_hourly_analysis = AsyncMock()
    instance.run_daily_maintenance = AsyncMock()
    instance.analyze_case_now = AsyncMock()
    with patch.object(case_priority_job, "CasePriorityScheduler", return_value=instance):
        yield instance


@pytest.mark.asyncio
async def test_default_runs_hourly_analysis(scheduler):
    scheduler.run_hourly_analysis.return_value = MagicMock(as_dict=MagicMock(return_value={"selected": 4}))

    summary = await case_priority_job.run_case_priority_job()

    assert summary == {"selected": 4}
    scheduler.run_daily_maintenance.assert_not_awaited()


@pytest.mark.asyncio
async def test_skipped_run(scheduler):
    scheduler.run_hourly_analysis.return_value = None

    assert await case_priority_job.run_case_priority_job() == {"skipped": True}


@pytest.mark.asyncio
async def test_daily_flag(scheduler):
    scheduler.run_daily_maintenance.return_value = MagicMock(
        as_dict=MagicMock(return_value={"workload": {"lawyers": 2}})
    )

    summary = await case_priority_job.run_case_priority_job(daily=True)

    assert summary == {"workload": {"lawyers": 2}}
    scheduler.run_hourly_analysis.assert_not_awaited()


@pytest.mark.asyncio
async def test_single_case(scheduler, make_case):
    case = make_case(priority_score=77)
    scheduler.analyze_case_now.return_value = case

    summary = await case_priority_job.run_case_priority_job(case_id=str(case.id))

    scheduler.analyze_case_now.assert_awaited_once_with(str(case.id))
    assert summary["case_number"] == case.case_number
    assert summary["priority_score"] == 77
    assert summary["priority"] == "medium"
    assert summary["last_analyzed_at"] is None
