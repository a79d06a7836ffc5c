"""
Test suite for the Structured Analysis Requester

This module tests the analysis service to ensure:
- A blank job description is rejected before any model call
- candidateAnalysis is present exactly when a resume was supplied
- Code-fenced JSON replies are accepted
- Unreadable replies are retried, then reported with a retry message
- Timeouts and provider errors map onto the service's own errors

Run tests with: pytest backend/tests/test_analysis_service.py -v
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError, RateLimitError

from errors import (
    RequestTimeoutError,
    ResponseFormatError,
    UpstreamServiceError,
    ValidationError,
)
from services.analysis_service import (
    USER_RETRY_MESSAGE,
    AnalysisService,
    clean_json_response,
    parse_analysis,
)


# ============================================================================
# FIXTURES
# ============================================================================

def _completion(content):
    """Build a mock chat completion carrying the given message content."""
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def service(mock_client):
    return AnalysisService(client=mock_client, model="test-model", timeout=5, max_attempts=2)


def _openai_request():
    return httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


# ============================================================================
# REPLY PARSING
# ============================================================================

class TestCleanJsonResponse:

    def test_strips_json_fence(self):
        assert clean_json_response('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_bare_fence(self):
        assert clean_json_response('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_leaves_plain_json(self):
        assert clean_json_response('  {"a": 1} ') == '{"a": 1}'


class TestParseAnalysis:

    def test_candidate_dropped_without_resume(self, analysis_payload_factory):
        raw = json.dumps(analysis_payload_factory(with_candidate=True))
        result = parse_analysis(raw, resume_supplied=False)
        assert result.candidateAnalysis is None

    def test_candidate_kept_with_resume(self, analysis_payload_factory):
        raw = json.dumps(analysis_payload_factory(with_candidate=True))
        result = parse_analysis(raw, resume_supplied=True)

        assert result.candidateAnalysis is not None
        assert result.candidateAnalysis.authenticityScore == "Medium"
        assert result.candidateAnalysis.keywordStuffingAnalysis.riskLevel == "Elevated"

    def test_missing_candidate_with_resume_is_rejected(self, analysis_payload_factory):
        raw = json.dumps(analysis_payload_factory())
        with pytest.raises(ResponseFormatError):
            parse_analysis(raw, resume_supplied=True)

    def test_optional_arrays_default_to_empty(self, analysis_payload_factory):
        payload = analysis_payload_factory()
        del payload["targetCompanies"]
        result = parse_analysis(json.dumps(payload), resume_supplied=False)
        assert result.targetCompanies == []

    def test_invalid_json(self):
        with pytest.raises(ResponseFormatError) as exc_info:
            parse_analysis("{not json", resume_supplied=False)
        assert exc_info.value.message == USER_RETRY_MESSAGE

    def test_missing_required_field(self, analysis_payload_factory):
        payload = analysis_payload_factory()
        del payload["sampleResume"]
        with pytest.raises(ResponseFormatError):
            parse_analysis(json.dumps(payload), resume_supplied=False)

    def test_non_object_reply(self):
        with pytest.raises(ResponseFormatError):
            parse_analysis("[1, 2, 3]", resume_supplied=False)

    def test_empty_reply(self):
        with pytest.raises(ResponseFormatError):
            parse_analysis(None, resume_supplied=False)


# ============================================================================
# SERVICE
# ============================================================================

class TestAnalyze:

    @pytest.mark.asyncio
    async def test_blank_job_description_makes_no_call(self, service, mock_client):
        with pytest.raises(ValidationError) as exc_info:
            await service.analyze("   \n ")

        assert exc_info.value.message == "A Job Description is required."
        mock_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_without_resume(self, service, mock_client, analysis_payload_factory):
        mock_client.chat.completions.create.return_value = _completion(
            json.dumps(analysis_payload_factory())
        )

        result = await service.analyze("Senior backend engineer, Python")

        assert result.title == "Senior Backend Engineer"
        assert result.candidateAnalysis is None

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        schema = kwargs["response_format"]["json_schema"]["schema"]
        assert kwargs["model"] == "test-model"
        assert kwargs["response_format"]["type"] == "json_schema"
        assert "candidateAnalysis" not in schema["properties"]
        assert "No candidate provided" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_with_resume(self, service, mock_client, analysis_payload_factory):
        mock_client.chat.completions.create.return_value = _completion(
            json.dumps(analysis_payload_factory(with_candidate=True))
        )

        result = await service.analyze("Senior backend engineer", "Jane Doe, Python since 2015")

        assert result.candidateAnalysis is not None
        assert result.candidateAnalysis.overallMatchPercentage == 82

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        schema = kwargs["response_format"]["json_schema"]["schema"]
        assert "candidateAnalysis" in schema["required"]
        prompt = kwargs["messages"][1]["content"]
        assert "Jane Doe, Python since 2015" in prompt
        assert "FORENSIC AUDIT" in prompt

    @pytest.mark.asyncio
    async def test_blank_resume_is_treated_as_absent(self, service, mock_client, analysis_payload_factory):
        mock_client.chat.completions.create.return_value = _completion(
            json.dumps(analysis_payload_factory(with_candidate=True))
        )

        result = await service.analyze("Data engineer", "   ")

        assert result.candidateAnalysis is None

    @pytest.mark.asyncio
    async def test_fenced_reply(self, service, mock_client, analysis_payload_factory):
        fenced = "```json\n" + json.dumps(analysis_payload_factory()) + "\n```"
        mock_client.chat.completions.create.return_value = _completion(fenced)

        result = await service.analyze("Data engineer")

        assert result.title == "Senior Backend Engineer"

    @pytest.mark.asyncio
    async def test_retries_unreadable_reply(self, service, mock_client, analysis_payload_factory):
        mock_client.chat.completions.create.side_effect = [
            _completion("Sorry, I cannot help with that."),
            _completion(json.dumps(analysis_payload_factory(title="Data Engineer"))),
        ]

        result = await service.analyze("Data engineer")

        assert result.title == "Data Engineer"
        assert mock_client.chat.completions.create.call_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, service, mock_client, analysis_payload_factory):
        # Resume supplied but the reply never carries candidateAnalysis
        mock_client.chat.completions.create.return_value = _completion(
            json.dumps(analysis_payload_factory())
        )

        with pytest.raises(ResponseFormatError) as exc_info:
            await service.analyze("Data engineer", "Some resume")

        assert exc_info.value.message == USER_RETRY_MESSAGE
        assert mock_client.chat.completions.create.call_count == 2

    @pytest.mark.asyncio
    async def test_timeout(self, mock_client):
        async def slow_create(**kwargs):
            await asyncio.sleep(1)

        mock_client.chat.completions.create = slow_create
        service = AnalysisService(client=mock_client, timeout=0.01, max_attempts=1)

        with pytest.raises(RequestTimeoutError):
            await service.analyze("Data engineer")

    @pytest.mark.asyncio
    async def test_provider_error(self, service, mock_client):
        mock_client.chat.completions.create.side_effect = APIConnectionError(request=_openai_request())

        with pytest.raises(UpstreamServiceError):
            await service.analyze("Data engineer")

        assert mock_client.chat.completions.create.call_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, service, mock_client, analysis_payload_factory):
        rate_limited = RateLimitError(
            "Rate limit reached",
            response=httpx.Response(429, request=_openai_request()),
            body=None,
        )
        mock_client.chat.completions.create.side_effect = [
            rate_limited,
            _completion(json.dumps(analysis_payload_factory())),
        ]

        with patch("services.analysis_service._backoff_delay", return_value=0):
            result = await service.analyze("Data engineer")

        assert result.title == "Senior Backend Engineer"
        assert mock_client.chat.completions.create.call_count == 2

    @pytest.mark.asyncio
    async def test_persistent_rate_limit(self, service, mock_client):
        mock_client.chat.completions.create.side_effect = RateLimitError(
            "Rate limit reached",
            response=httpx.Response(429, request=_openai_request()),
            body=None,
        )

        with patch("services.analysis_service._backoff_delay", return_value=0):
            with pytest.raises(UpstreamServiceError):
                await service.analyze("Data engineer")
