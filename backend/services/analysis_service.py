# backend/services/analysis_service.py
"""
Structured Analysis Requester

Sends a job description (and optionally a resume) to the analysis model,
constrained by an explicit JSON schema, and parses the reply into an
AnalysisResult.

Features:
- One prompt covering the benchmark report and, with a resume, the forensic
  candidate audit
- Schema-constrained generation through OpenAI structured outputs
- Code-fence stripping and strict validation of the reply
- Bounded retries on unreadable replies and rate limits
- Per-call timeout
"""

import asyncio
import json
import logging
import random
import re
from typing import Optional

from openai import APIError, APITimeoutError, AsyncOpenAI, RateLimitError
from pydantic import ValidationError as PydanticValidationError

import config
from errors import (
    RequestTimeoutError,
    ResponseFormatError,
    UpstreamServiceError,
    ValidationError,
)
from models import AnalysisResult
from prompts.analysis_prompts import AnalysisPrompts, analysis_response_schema

logger = logging.getLogger(__name__)


FENCE_START_RE = re.compile(r"^\s*```(?:json)?[ \t]*\n?", re.IGNORECASE)
FENCE_END_RE = re.compile(r"\n?```\s*$")

USER_RETRY_MESSAGE = "Invalid AI response format. Please edit your input and try again."


def clean_json_response(text: str) -> str:
    """Remove markdown code fences wrapped around a JSON reply."""
    cleaned = FENCE_START_RE.sub("", text or "", count=1)
    cleaned = FENCE_END_RE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_analysis(raw: Optional[str], resume_supplied: bool) -> AnalysisResult:
    """
    Parse and validate a raw model reply.

    Args:
        raw: Text returned by the model
        resume_supplied: Whether the request carried a resume

    Returns:
        Validated AnalysisResult. Without a resume, candidateAnalysis is
        always None.

    Raises:
        ResponseFormatError: If the reply is not JSON, does not match the
            schema, or lacks candidateAnalysis when a resume was supplied
    """
    if not raw:
        logger.error("Analysis model returned an empty reply")
        raise ResponseFormatError(USER_RETRY_MESSAGE)

    try:
        data = json.loads(clean_json_response(raw))
    except json.JSONDecodeError as e:
        logger.error(f"JSON parsing failed. Raw response: {raw[:2000]}")
        raise ResponseFormatError(USER_RETRY_MESSAGE, cause=e) from e

    if not isinstance(data, dict):
        logger.error(f"Analysis reply is not a JSON object. Raw response: {raw[:2000]}")
        raise ResponseFormatError(USER_RETRY_MESSAGE)

    if not resume_supplied:
        data.pop("candidateAnalysis", None)

    try:
        result = AnalysisResult.model_validate(data)
    except PydanticValidationError as e:
        logger.error(f"Analysis reply failed validation: {e}. Raw response: {raw[:2000]}")
        raise ResponseFormatError(USER_RETRY_MESSAGE, cause=e) from e

    if resume_supplied and result.candidateAnalysis is None:
        logger.error("Resume supplied but reply has no candidateAnalysis")
        raise ResponseFormatError(USER_RETRY_MESSAGE, details={"missing": "candidateAnalysis"})

    return result


def _backoff_delay(attempt: int) -> float:
    return min(20, 2 ** attempt) + random.random()


class AnalysisService:
    """
    Client for the schema-constrained analysis call.

    Wraps AsyncOpenAI chat completions with a json_schema response format.
    """

    SCHEMA_NAME = "recruitment_analysis"

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        temperature: Optional[float] = None
    ):
        """
        Initialize the analysis service.

        Args:
            client: AsyncOpenAI client (created from OPENAI_API_KEY if omitted)
            model: Chat model name
            timeout: Seconds allowed per model call
            max_attempts: Total attempts per analysis (at least 1)
            temperature: Sampling temperature
        """
        self.client = client or AsyncOpenAI(api_key=config.OPENAI_API_KEY)
        self.model = model or config.ANALYSIS_MODEL
        self.timeout = timeout if timeout is not None else config.ANALYSIS_TIMEOUT_SECONDS
        self.max_attempts = max(1, max_attempts if max_attempts is not None else config.ANALYSIS_MAX_ATTEMPTS)
        self.temperature = temperature if temperature is not None else config.ANALYSIS_TEMPERATURE

        logger.info(f"AnalysisService initialized with model {self.model}")

    async def analyze(
        self,
        job_description: str,
        resume_text: Optional[str] = None
    ) -> AnalysisResult:
        """
        Produce a recruiting intelligence report.

        Args:
            job_description: Job description text (must not be blank)
            resume_text: Optional candidate resume text

        Returns:
            AnalysisResult; candidateAnalysis is populated iff a resume was given

        Raises:
            ValidationError: Blank job description
            ResponseFormatError: Reply unreadable after all attempts
            RequestTimeoutError: A call exceeded the timeout
            UpstreamServiceError: Provider error or persistent rate limiting
        """
        if not job_description or not job_description.strip():
            raise ValidationError("A Job Description is required.", field="jobDescription")

        resume = resume_text.strip() if resume_text and resume_text.strip() else None
        jd = job_description.strip()

        prompt = AnalysisPrompts.role_strategy(jd, resume)
        schema = analysis_response_schema(include_candidate=resume is not None)

        logger.info(
            f"Analyzing job description ({len(jd)} chars), "
            f"resume={'yes' if resume else 'no'}"
        )

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                raw = await self._request(prompt, schema)
                result = parse_analysis(raw, resume_supplied=resume is not None)
                logger.info(f"Analysis complete: '{result.title}' (attempt {attempt})")
                return result

            except ResponseFormatError as e:
                last_error = e
                logger.warning(f"Unreadable analysis reply (attempt {attempt}/{self.max_attempts})")

            except RateLimitError as e:
                last_error = UpstreamServiceError(
                    "The analysis service is busy. Please try again shortly.",
                    cause=e
                )
                if attempt < self.max_attempts:
                    wait = _backoff_delay(attempt)
                    logger.warning(f"Rate limit hit. Retrying in {wait:.1f}s...")
                    await asyncio.sleep(wait)

        raise last_error

    async def _request(self, prompt: str, schema: dict) -> Optional[str]:
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    temperature=self.temperature,
                    response_format={
                        "type": "json_schema",
                        "json_schema": {
                            "name": self.SCHEMA_NAME,
                            "schema": schema,
                        },
                    },
                    messages=[
                        {"role": "system", "content": AnalysisPrompts.SYSTEM},
                        {"role": "user", "content": prompt},
                    ],
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, APITimeoutError) as e:
            logger.error(f"Analysis request timed out after {self.timeout}s")
            raise RequestTimeoutError(
                "The analysis took too long. Try a shorter job description or resume.",
                cause=e
            ) from e
        except RateLimitError:
            raise
        except APIError as e:
            logger.error(f"Analysis request failed: {e}")
            raise UpstreamServiceError(
                "Analysis failed. The input might be too long or complex for the current API limits.",
                cause=e
            ) from e

        content = response.choices[0].message.content
        logger.debug(f"RAW analysis JSON (trunc): {(content or '')[:900]}")
        return content


# Singleton instance
_analysis_service_instance: Optional[AnalysisService] = None


def get_analysis_service() -> AnalysisService:
    """
    Get or create the shared AnalysisService instance.

    Returns:
        Shared AnalysisService instance
    """
    global _analysis_service_instance

    if _analysis_service_instance is None:
        _analysis_service_instance = AnalysisService()

    return _analysis_service_instance


def reset_analysis_service():
    """Reset the singleton instance (useful for testing)."""
    global _analysis_service_instance
    _analysis_service_instance = None
    logger.info("AnalysisService singleton reset")
