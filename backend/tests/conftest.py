"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest before running tests.
It puts the backend on the import path, makes sure no real API key is
needed, and resets every service singleton between tests.
"""

import os
import sys

# Add backend directory to path for imports FIRST
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Only set dummy values if not already set by the environment
os.environ.setdefault("OPENAI_API_KEY", "test-api-key-for-testing")

import pytest

from services.analysis_service import reset_analysis_service
from services.history_store import reset_history
from services.narration_service import reset_narration_service
from services.voice_session import reset_voice_controller


@pytest.fixture(autouse=True)
def reset_singletons():
    """Give every test fresh service singletons."""
    reset_analysis_service()
    reset_history()
    reset_narration_service()
    reset_voice_controller()
    yield
    reset_analysis_service()
    reset_history()
    reset_narration_service()
    reset_voice_controller()


@pytest.fixture
def analysis_payload_factory():
    """
    Factory fixture for raw analysis replies as the model returns them.
    Returns a function that builds a dict; pass with_candidate=True to
    include a forensic candidate audit.
    """
    def create_payload(title: str = "Senior Backend Engineer", with_candidate: bool = False) -> dict:
        payload = {
            "title": title,
            "jobSummary": "Own the payments platform and mentor a small team.",
            "priorityRequirements": ["Python", "PostgreSQL", "Distributed systems", "AWS", "Mentoring"],
            "essentialCvElements": ["Production ownership", "Scale metrics"],
            "hiringManagerPreferences": ["Calm under pressure"],
            "submissionTips": ["Lead with payments experience"],
            "targetCompanies": ["Stripe", "Adyen"],
            "keywords": {
                "primary": ["Python", "FastAPI"],
                "secondary": ["Kafka"],
                "booleanStrings": ['("Python" AND "FastAPI")'],
            },
            "techGlossary": [{"term": "Kafka", "explanation": "Distributed event log."}],
            "sampleResume": "# Jane Doe\njane@example.com\n## Experience\n* Led **payments** rebuild",
            "audioScript": "This role needs a strong Python engineer. Focus on payments depth.",
        }
        if with_candidate:
            payload["candidateAnalysis"] = {
                "overallMatchPercentage": 82,
                "skillMatchPercentage": 76.5,
                "matchingStrengths": ["Python"],
                "criticalGaps": ["Kafka"],
                "employmentGaps": [],
                "shortTermAssignments": ["3 months at Acme"],
                "authenticityScore": "Medium",
                "authenticityReasoning": "Skills list is broader than the experience shows.",
                "keywordStuffingAnalysis": {
                    "riskLevel": "Elevated",
                    "findings": "Summary repeats JD phrasing.",
                    "detectedArtificialClusters": ["event-driven payments platform"],
                },
                "recruiterQuestions": ["Walk me through your Kafka work."],
            }
        return payload

    return create_payload


@pytest.fixture
def analysis_result(analysis_payload_factory):
    """A validated AnalysisResult without a candidate audit."""
    from models import AnalysisResult
    return AnalysisResult.model_validate(analysis_payload_factory())
