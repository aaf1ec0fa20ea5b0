from __future__ import annotations

import argparse
import asyncio
import json

from app.core.logger import logger
from app.services.background_jobs import CasePriorityScheduler


async def run_case_priority_job(case_id: str | None = None, daily: bool = False) -> dict:
    scheduler = CasePriorityScheduler()

    if daily:
        summary = await scheduler.run_daily_maintenance()
        return summary.as_dict()

    if case_id:
        case = await scheduler.analyze_case_now(case_id)
        return {
            "case_id": str(case.id),
            "case_number": case.case_number,
            "priority": case.priority.value,
            "priority_score": case.priority_score,
            "last_analyzed_at": case.ai_last_analyzed_at.isoformat() if case.ai_last_analyzed_at else None,
        }

    summary = await scheduler.run_hourly_analysis()
    if summary is None:
        return {"skipped": True}
    logger.info("Case priority job completed: %s", summary.as_dict())
    return summary.as_dict()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run case priority analysis")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--case-id", dest="case_id", help="Analyze one case immediately")
    group.add_argument("--daily", action="store_true", help="Run daily statistics and workload rebalance")
    args = parser.parse_args()

    summary = asyncio.run(run_case_priority_job(case_id=args.case_id, daily=args.daily))
    print(json.dumps(summary, indent=2, default=str))


if __name__ == "__main__":
    main()
