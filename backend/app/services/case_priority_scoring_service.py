"""
Case priority scoring with AWS Bedrock (Claude).

Turns a case into a bounded summary, asks the model for a JSON priority
assessment and normalizes whatever comes back into an AnalysisResult.
Malformed model output never raises; transport/API errors do.
"""

from __future__ import annotations

import asyncio
import json
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.logger import logger
from app.db.models import Case, MilestoneStatus
from app.utils.exceptions import PriorityScoringError
from app.utils.helpers import clamp, days_between, truncate_text, utcnow

MAX_TITLE_CHARS = 200
MAX_DESCRIPTION_CHARS = 1500

DEFAULT_PRIORITY_SCORE = 50
DEFAULT_COMPLEXITY_SCORE = 50
DEFAULT_ESTIMATED_DURATION = 30
DEFAULT_SUCCESS_PROBABILITY = 50
DEFAULT_SIMILAR_CASES = 0
MAX_ESTIMATED_DURATION = 3650  # days
MAX_SIMILAR_CASES = 1_000_000
FALLBACK_REASONING = "Default analysis due to parsing error"
COMPLETED_REASONING = "AI analysis completed"

SYSTEM_PROMPT = (
    "You are an expert legal case analyst and scheduler for an Indian law firm. "
    "Your job is to analyze legal cases and provide priority scores, urgency assessments, "
    "and delay predictions to help optimize case scheduling and resource allocation.\n\n"
    "Always respond in valid JSON format with the specified structure. "
    "Consider Indian legal system context, court procedures, and typical case timelines."
)

_LEADING_FENCE_RE = re.compile(r"^\s*```(?:json)?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"```\s*$")


@dataclass
class AnalysisResult:
    priority_score: int = DEFAULT_PRIORITY_SCORE
    complexity_score: int = DEFAULT_COMPLEXITY_SCORE
    urgency_factors: list[str] = field(default_factory=list)
    delay_risk_factors: list[str] = field(default_factory=list)
    estimated_duration: int = DEFAULT_ESTIMATED_DURATION
    success_probability: int = DEFAULT_SUCCESS_PROBABILITY
    similar_cases_count: int = DEFAULT_SIMILAR_CASES
    reasoning: str = COMPLETED_REASONING
    is_fallback: bool = False

    @classmethod
    def fallback(cls) -> "AnalysisResult":
        return cls(reasoning=FALLBACK_REASONING, is_fallback=True)


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (OverflowError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _bounded_int(value: Any, default: int, lower: int, upper: Optional[int] = None) -> int:
    number = _to_number(value)
    if number is None:
        number = default
    return int(round(clamp(number, lower, upper)))


def _to_string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    text = str(value).strip()
    return [text] if text else []


class CasePriorityScoringService:
    """Scores one case at a time against the Bedrock model."""

    def __init__(self, client: Any = None, model_id: Optional[str] = None) -> None:
        self.model_id = (model_id or settings.priority_model_id).strip()
        self.max_tokens = settings.PRIORITY_MAX_TOKENS
        self.temperature = settings.PRIORITY_TEMPERATURE
        self.client = client or boto3.client(
            "bedrock-runtime",
            region_name=settings.AWS_REGION,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
            config=Config(read_timeout=settings.PRIORITY_READ_TIMEOUT),
        )

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------

    def build_case_summary(self, case: Case, now: Optional[datetime] = None) -> dict[str, Any]:
        now = now or utcnow()
        lawyer = case.assigned_lawyer
        milestones = list(case.milestones or [])
        completed_milestones = [
            m for m in milestones if m.status == MilestoneStatus.completed
        ]

        return {
            "case_number": case.case_number,
            "title": truncate_text(case.title or "", MAX_TITLE_CHARS),
            "description": truncate_text(case.description or "", MAX_DESCRIPTION_CHARS),
            "case_type": _enum_value(case.case_type),
            "sub_category": case.sub_category,
            "status": _enum_value(case.status),
            "case_age_days": days_between(case.filing_date, now) if case.filing_date else 0,
            "court_level": _enum_value(case.court_level),
            "estimated_value": float(case.estimated_value or 0),
            "days_until_hearing": days_between(now, case.hearing_date) if case.hearing_date else None,
            "has_deadline": case.deadline_date is not None,
            "lawyer_assigned": lawyer is not None,
            "lawyer_experience": (lawyer.experience or 0) if lawyer else 0,
            "lawyer_specialization": list(lawyer.specialization or []) if lawyer else [],
            "current_delay_days": case.delay_days or 0,
            "is_delayed": bool(case.is_delayed),
            "document_count": len(case.documents or []),
            "milestones_count": len(milestones),
            "completed_milestones": len(completed_milestones),
        }

    def build_prompt(self, summary: dict[str, Any]) -> str:
        case_type = summary["case_type"]
        if summary.get("sub_category"):
            case_type = f"{case_type} ({summary['sub_category']})"

        hearing = summary.get("days_until_hearing")
        hearing_text = f"{hearing} days" if hearing is not None else "Not scheduled"

        if summary.get("lawyer_assigned"):
            experience_text = f"{summary['lawyer_experience']} years"
            specialization_text = ", ".join(summary["lawyer_specialization"]) or "General"
        else:
            experience_text = "Not assigned"
            specialization_text = "Not assigned"

        return (
            "Analyze this legal case and provide a comprehensive assessment:\n\n"
            "CASE DETAILS:\n"
            f"- Case Number: {summary['case_number']}\n"
            f"- Title: {summary['title']}\n"
            f"- Type: {case_type}\n"
            f"- Description: {summary['description']}\n"
            f"- Status: {summary['status']}\n"
            f"- Case Age: {summary['case_age_days']} days\n"
            f"- Court Level: {summary['court_level']}\n"
            f"- Estimated Value: ₹{summary['estimated_value']:,.0f}\n"
            f"- Days Until Hearing: {hearing_text}\n"
            f"- Has Hard Deadline: {'Yes' if summary['has_deadline'] else 'No'}\n"
            f"- Current Delay: {summary['current_delay_days']} days\n"
            f"- Is Delayed: {'Yes' if summary['is_delayed'] else 'No'}\n"
            f"- Documents: {summary['document_count']}\n"
            f"- Milestones: {summary['completed_milestones']}/{summary['milestones_count']} completed\n"
            f"- Lawyer Experience: {experience_text}\n"
            f"- Lawyer Specialization: {specialization_text}\n\n"
            "ANALYSIS REQUIRED:\n"
            "1. Priority Score (0-100): Consider urgency, complexity, delays, deadlines\n"
            "2. Complexity Score (0-100): Based on case type, value, court level\n"
            "3. Urgency Factors: List specific factors making this case urgent\n"
            "4. Delay Risk Factors: Identify potential causes of delays\n"
            "5. Estimated Duration: Days to complete the case (positive integer)\n"
            "6. Success Probability (0-100): Based on case type and lawyer match\n"
            "7. Similar Cases Count: Estimate based on case type and characteristics\n\n"
            "PRIORITY SCORING CRITERIA:\n"
            "- High Priority (80-100): Critical deadlines, high-value cases, significant delays\n"
            "- Medium-High Priority (60-79): Important cases with moderate urgency\n"
            "- Medium Priority (40-59): Standard cases with normal timeline\n"
            "- Low-Medium Priority (20-39): Routine cases, no immediate deadlines\n"
            "- Low Priority (0-19): Non-urgent, preliminary matters\n\n"
            "Respond ONLY with valid JSON in this exact format:\n"
            "{\n"
            '  "priorityScore": number,\n'
            '  "complexityScore": number,\n'
            '  "urgencyFactors": ["factor1", "factor2"],\n'
            '  "delayRiskFactors": ["risk1", "risk2"],\n'
            '  "estimatedDuration": number,\n'
            '  "successProbability": number,\n'
            '  "similarCasesCount": number,\n'
            '  "reasoning": "Brief explanation of priority score"\n'
            "}"
        )

    # ------------------------------------------------------------------
    # Model call
    # ------------------------------------------------------------------

    def _invoke_bedrock(self, prompt: str) -> str:
        payload = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
        }
        try:
            response = self.client.invoke_model(modelId=self.model_id, body=json.dumps(payload))
        except (BotoCoreError, ClientError) as exc:
            logger.error("Bedrock priority scoring failed: %s", exc)
            raise PriorityScoringError(f"Bedrock priority scoring error: {exc}") from exc
        data = json.loads(response["body"].read())

        text = ""
        for part in data.get("content", []):
            if isinstance(part, dict) and part.get("type", "text") == "text":
                text += part.get("text", "")
        return text

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    def _extract_json(self, text: str) -> Any:
        data = _TRAILING_FENCE_RE.sub("", _LEADING_FENCE_RE.sub("", text or "")).strip()
        if not data:
            return None
        try:
            return json.loads(data)
        except ValueError:
            # JSONDecodeError, or an integer literal past the conversion limit
            pass
        obj = re.search(r"\{.*\}", data, re.DOTALL)
        if obj:
            try:
                return json.loads(obj.group(0))
            except ValueError:
                return None
        return None

    def parse_response(self, text: str) -> AnalysisResult:
        parsed = self._extract_json(text)
        if not isinstance(parsed, dict):
            logger.warning("Priority response is not a JSON object, using defaults: %s", truncate_text(text or "", 300))
            return AnalysisResult.fallback()

        if _to_number(parsed.get("priorityScore")) is None:
            logger.warning("Priority response has no usable priorityScore, using defaults: %s", truncate_text(text or "", 300))
            return AnalysisResult.fallback()

        reasoning = str(parsed.get("reasoning") or "").strip() or COMPLETED_REASONING

        return AnalysisResult(
            priority_score=_bounded_int(parsed.get("priorityScore"), DEFAULT_PRIORITY_SCORE, 0, 100),
            complexity_score=_bounded_int(parsed.get("complexityScore"), DEFAULT_COMPLEXITY_SCORE, 0, 100),
            urgency_factors=_to_string_list(parsed.get("urgencyFactors")),
            delay_risk_factors=_to_string_list(parsed.get("delayRiskFactors")),
            estimated_duration=_bounded_int(parsed.get("estimatedDuration"), DEFAULT_ESTIMATED_DURATION, 1, MAX_ESTIMATED_DURATION),
            success_probability=_bounded_int(parsed.get("successProbability"), DEFAULT_SUCCESS_PROBABILITY, 0, 100),
            similar_cases_count=_bounded_int(parsed.get("similarCasesCount"), DEFAULT_SIMILAR_CASES, 0, MAX_SIMILAR_CASES),
            reasoning=reasoning,
        )

    async def score(self, case: Case, now: Optional[datetime] = None) -> AnalysisResult:
        # Summary is built on the caller's thread; only the HTTP call is offloaded
        prompt = self.build_prompt(self.build_case_summary(case, now))
        text = await asyncio.to_thread(self._invoke_bedrock, prompt)
        return self.parse_response(text)


case_priority_scoring_service = CasePriorityScoringService()
