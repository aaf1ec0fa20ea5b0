"""Tests for prompt construction, Bedrock invocation and response parsing."""

from __future__ import annotations

import io
import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from app.db.models import CaseDocument, CaseMilestone, CaseStatus, MilestoneStatus
from app.services.case_priority_scoring_service import (
    FALLBACK_REASONING,
    MAX_ESTIMATED_DURATION,
    MAX_SIMILAR_CASES,
    SYSTEM_PROMPT,
    AnalysisResult,
    CasePriorityScoringService,
)
from app.utils.exceptions import PriorityScoringError


def _bedrock_response(text: str) -> dict:
    body = {"content": [{"type": "text", "text": text}]}
    return {"body": io.BytesIO(json.dumps(body).encode("utf-8"))}


@pytest.fixture()
def bedrock_client():
    return MagicMock()


@pytest.fixture()
def service(bedrock_client):
    return CasePriorityScoringService(client=bedrock_client, model_id="test-model")


class TestPrompt:
    def test_prompt_carries_case_facts(self, service, make_case, make_user, now):
        lawyer = make_user(name="R. Iyer", experience=15, specialization=["Property Law"])
        case = make_case(
            status=CaseStatus.assigned,
            estimated_value=2_500_000,
            filing_date=now - timedelta(days=40),
            assigned_lawyer=lawyer,
        )

        prompt = service.build_prompt(service.build_case_summary(case, now))

        assert "Case Age: 40 days" in prompt
        assert "Court Level: High Court" in prompt
        assert "₹2,500,000" in prompt
        assert "Type: Property" in prompt
        assert "Lawyer Experience: 15 years" in prompt
        assert "Lawyer Specialization: Property Law" in prompt
        assert "Days Until Hearing: Not scheduled" in prompt
        assert '"priorityScore": number' in prompt

    def test_summary_counts_documents_and_milestones(self, service, make_case, db, now):
        case = make_case(hearing_date=now + timedelta(days=5, hours=1))
        case.documents.append(CaseDocument(filename="plaint.pdf", document_type="petition"))
        case.milestones.extend([
            CaseMilestone(title="File plaint", status=MilestoneStatus.completed),
            CaseMilestone(title="Serve notice", status=MilestoneStatus.pending),
        ])
        db.commit()

        summary = service.build_case_summary(case, now)

        assert summary["document_count"] == 1
        assert summary["milestones_count"] == 2
        assert summary["completed_milestones"] == 1
        assert summary["days_until_hearing"] == 5
        assert summary["lawyer_assigned"] is False

    def test_unassigned_case_prompt(self, service, make_case, now):
        prompt = service.build_prompt(service.build_case_summary(make_case(), now))

        assert "Lawyer Experience: Not assigned" in prompt

    def test_long_description_is_truncated(self, service, make_case, now):
        case = make_case(description="x" * 5000)

        summary = service.build_case_summary(case, now)

        assert len(summary["description"]) < 1600


class TestParseResponse:
    def test_valid_json(self, service):
        text = json.dumps({
            "priorityScore": 82,
            "complexityScore": 70,
            "urgencyFactors": ["Hearing next week"],
            "delayRiskFactors": ["Pending evidence"],
            "estimatedDuration": 180,
            "successProbability": 65,
            "similarCasesCount": 12,
            "reasoning": "Hearing is close and value is high",
        })

        result = service.parse_response(text)

        assert result == AnalysisResult(
            priority_score=82,
            complexity_score=70,
            urgency_factors=["Hearing next week"],
            delay_risk_factors=["Pending evidence"],
            estimated_duration=180,
            success_probability=65,
            similar_cases_count=12,
            reasoning="Hearing is close and value is high",
        )

    def test_code_fences_are_stripped(self, service):
        text = '```json\n{"priorityScore": 45, "reasoning": "Standard"}\n```'

        result = service.parse_response(text)

        assert result.priority_score == 45
        assert result.is_fallback is False

    def test_json_embedded_in_prose(self, service):
        text = 'Here is my assessment:\n{"priorityScore": 30, "estimatedDuration": 90}\nThanks.'

        result = service.parse_response(text)

        assert result.priority_score == 30
        assert result.estimated_duration == 90
        assert result.reasoning == "AI analysis completed"

    def test_out_of_range_values_are_clamped(self, service):
        text = json.dumps({
            "priorityScore": 140,
            "complexityScore": -5,
            "estimatedDuration": 0,
            "successProbability": 101,
            "similarCasesCount": -3,
        })

        result = service.parse_response(text)

        assert result.priority_score == 100
        assert result.complexity_score == 0
        assert result.estimated_duration == 1
        assert result.success_probability == 100
        assert result.similar_cases_count == 0

    def test_numeric_strings_are_accepted(self, service):
        result = service.parse_response('{"priorityScore": "77.6", "complexityScore": "high"}')

        assert result.priority_score == 78
        assert result.complexity_score == 50

    def test_truncated_json_falls_back(self, service):
        result = service.parse_response('{"priorityScore": 82, "complexityScore": 7')

        assert result.is_fallback is True
        assert result.priority_score == 50
        assert result.estimated_duration == 30
        assert result.reasoning == FALLBACK_REASONING

    def test_missing_priority_score_falls_back(self, service):
        result = service.parse_response('{"complexityScore": 90, "reasoning": "no score"}')

        assert result.is_fallback is True
        assert result.priority_score == 50
        assert result.complexity_score == 50
        assert result.reasoning

    def test_empty_response_falls_back(self, service):
        assert service.parse_response("").is_fallback is True

    def test_non_object_json_falls_back(self, service):
        assert service.parse_response("[1, 2, 3]").is_fallback is True

    def test_oversized_integer_priority_falls_back(self, service):
        result = service.parse_response('{"priorityScore": 1' + "0" * 400 + "}")

        assert result.is_fallback is True
        assert result.priority_score == 50

    def test_integer_past_conversion_limit_falls_back(self, service):
        result = service.parse_response('{"priorityScore": 1' + "0" * 5000 + "}")

        assert result.is_fallback is True
        assert result.priority_score == 50

    def test_oversized_secondary_field_uses_default(self, service):
        result = service.parse_response('{"priorityScore": 70, "complexityScore": 1' + "0" * 400 + "}")

        assert result.priority_score == 70
        assert result.complexity_score == 50

    def test_duration_and_similar_cases_are_capped(self, service):
        result = service.parse_response(
            '{"priorityScore": 70, "estimatedDuration": 3000000, "similarCasesCount": 99999999999}'
        )

        assert result.estimated_duration == MAX_ESTIMATED_DURATION
        assert result.similar_cases_count == MAX_SIMILAR_CASES

    def test_fence_inside_reasoning_is_kept(self, service):
        text = '```json\n{"priorityScore": 55, "reasoning": "Cites ```Order 39``` of the CPC"}\n```'

        result = service.parse_response(text)

        assert result.priority_score == 55
        assert result.reasoning == "Cites ```Order 39``` of the CPC"

    def test_zero_scores_are_kept(self, service):
        result = service.parse_response('{"priorityScore": 0, "successProbability": 0}')

        assert result.priority_score == 0
        assert result.success_probability == 0
        assert result.is_fallback is False


class TestScore:
    @pytest.mark.asyncio
    async def test_score_calls_bedrock_with_system_prompt(self, service, bedrock_client, make_case, now):
        bedrock_client.invoke_model.return_value = _bedrock_response('{"priorityScore": 64}')

        result = await service.score(make_case(), now)

        assert result.priority_score == 64
        kwargs = bedrock_client.invoke_model.call_args.kwargs
        assert kwargs["modelId"] == "test-model"
        body = json.loads(kwargs["body"])
        assert body["system"] == SYSTEM_PROMPT
        assert body["temperature"] == pytest.approx(0.2)
        assert body["max_tokens"] == 1000
        assert body["messages"][0]["role"] == "user"

    @pytest.mark.asyncio
    async def test_invoke_error_propagates(self, service, bedrock_client, make_case, now):
        bedrock_client.invoke_model.side_effect = RuntimeError("throttled")

        with pytest.raises(RuntimeError, match="throttled"):
            await service.score(make_case(), now)

    @pytest.mark.asyncio
    async def test_client_error_is_wrapped(self, service, bedrock_client, make_case, now):
        bedrock_client.invoke_model.side_effect = ClientError(
            {"Error": {"Code": "ThrottlingException", "Message": "Rate exceeded"}},
            "InvokeModel",
        )

        with pytest.raises(PriorityScoringError, match="Bedrock priority scoring error"):
            await service.score(make_case(), now)

    @pytest.mark.asyncio
    async def test_unparseable_model_text_returns_fallback(self, service, bedrock_client, make_case, now):
        bedrock_client.invoke_model.return_value = _bedrock_response("I cannot help with that.")

        result = await service.score(make_case(), now)

        assert result.is_fallback is True
        assert result.priority_score == 50
