# backend/prompts/analysis_prompts.py
"""
Analysis Prompt Templates

Prompt text and JSON response schema for the recruiting intelligence report,
plus the system instruction for the realtime vetting session.

Usage:
    from prompts.analysis_prompts import AnalysisPrompts, analysis_response_schema

    prompt = AnalysisPrompts.role_strategy(job_description, resume_text)
    schema = analysis_response_schema(include_candidate=resume_text is not None)
"""

from typing import Any, Dict, Optional


class AnalysisPrompts:
    """
    Static prompt builders for the analysis and voice features.

    All methods return plain strings ready for LLM consumption.
    """

    SYSTEM = (
        "You are a senior technical recruiter and sourcing strategist. "
        "You must return STRICT JSON ONLY (no prose, no markdown) following the given schema."
    )

    NO_CANDIDATE = (
        "No candidate provided. Analyze the requirement for a target candidate benchmark profile."
    )

    FORENSIC_AUDIT = """
FORENSIC AUDIT INSTRUCTIONS:
1. Scan for "Keyword Stuffing": Does the candidate have lists of skills that are not supported by the experience section?
2. Scan for "JD Injection": Cross-reference the resume wording against the job description above. Flag unique phrases or specific jargon copied verbatim into the skills or summary sections without supporting experience.
3. Authenticity: Score the likelihood that this resume was modified specifically to game this Job Description.
""".strip()

    BASE_STRUCTURE = """
MANDATORY OUTPUT STRUCTURE (JSON):
- title: Job Title.
- jobSummary: 2-3 sentence overview.
- priorityRequirements: Array of top 5 critical skills.
- essentialCvElements: Array of CV markers.
- hiringManagerPreferences: Array of cultural/soft preferences.
- submissionTips: Array of sell-in tips.
- targetCompanies: Array of companies.
- keywords: { primary: [], secondary: [], booleanStrings: [] }
- techGlossary: [{ term: string, explanation: string }]
- sampleResume: Professional Markdown benchmark. Start with "# Name", then one contact line, then "## " sections with "* " bullets.
- audioScript: Spoken briefing script for the recruiter.
""".strip()

    CANDIDATE_STRUCTURE = """
- candidateAnalysis:
    - overallMatchPercentage: (Number 0-100)
    - skillMatchPercentage: (Number 0-100)
    - matchingStrengths: []
    - criticalGaps: []
    - employmentGaps: []
    - shortTermAssignments: []
    - authenticityScore: 'High' | 'Medium' | 'Low' | 'Caution'
    - authenticityReasoning: String explanation.
    - keywordStuffingAnalysis:
        - riskLevel: 'Low' | 'Elevated' | 'High'
        - findings: Detail if they used JD-specific phrases unnaturally.
        - detectedArtificialClusters: List phrases copied directly from JD.
    - recruiterQuestions: []
""".strip()

    @staticmethod
    def role_strategy(job_description: str, resume_text: Optional[str] = None) -> str:
        """
        Build the single analysis prompt.

        Args:
            job_description: The role's job description (already validated)
            resume_text: Candidate resume text, or None for a benchmark-only report

        Returns:
            Prompt string
        """
        if resume_text:
            candidate_block = f"Candidate Resume for Analysis:\n{resume_text}"
            audit_block = AnalysisPrompts.FORENSIC_AUDIT
            structure = f"{AnalysisPrompts.BASE_STRUCTURE}\n{AnalysisPrompts.CANDIDATE_STRUCTURE}"
        else:
            candidate_block = AnalysisPrompts.NO_CANDIDATE
            audit_block = ""
            structure = (
                f"{AnalysisPrompts.BASE_STRUCTURE}\n"
                "- Do NOT include candidateAnalysis: no resume was provided."
            )

        sections = [
            f"Role Strategy Analysis for Job Description:\n{job_description}",
            candidate_block,
            "TASK: Provide a deep recruitment strategy.",
        ]
        if audit_block:
            sections.append(audit_block)
        sections.append(structure)

        return "\n\n".join(sections)

    @staticmethod
    def vetting_session_instruction(role_title: str) -> str:
        """System instruction for the realtime voice session."""
        return (
            f"You are a Recruitment Lead for the following role: {role_title}. "
            "Discuss sourcing strategy, vetting, and forensic candidate audits."
        )


def _string_array() -> Dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}}


def _candidate_schema() -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "overallMatchPercentage": {"type": "number"},
            "skillMatchPercentage": {"type": "number"},
            "matchingStrengths": _string_array(),
            "criticalGaps": _string_array(),
            "employmentGaps": _string_array(),
            "shortTermAssignments": _string_array(),
            "authenticityScore": {"type": "string", "enum": ["High", "Medium", "Low", "Caution"]},
            "authenticityReasoning": {"type": "string"},
            "keywordStuffingAnalysis": {
                "type": "object",
                "properties": {
                    "riskLevel": {"type": "string", "enum": ["Low", "Elevated", "High"]},
                    "findings": {"type": "string"},
                    "detectedArtificialClusters": _string_array(),
                },
                "required": ["riskLevel", "findings", "detectedArtificialClusters"],
            },
            "recruiterQuestions": _string_array(),
        },
        "required": [
            "overallMatchPercentage",
            "skillMatchPercentage",
            "matchingStrengths",
            "criticalGaps",
            "employmentGaps",
            "shortTermAssignments",
            "authenticityScore",
            "authenticityReasoning",
            "keywordStuffingAnalysis",
            "recruiterQuestions",
        ],
    }


REQUIRED_FIELDS = [
    "title",
    "jobSummary",
    "priorityRequirements",
    "essentialCvElements",
    "techGlossary",
    "sampleResume",
    "audioScript",
    "keywords",
]


def analysis_response_schema(include_candidate: bool) -> Dict[str, Any]:
    """
    JSON schema for the analysis response.

    candidateAnalysis only exists in the schema (and is then required) when a
    resume was supplied.
    """
    properties: Dict[str, Any] = {
        "title": {"type": "string"},
        "jobSummary": {"type": "string"},
        "priorityRequirements": _string_array(),
        "essentialCvElements": _string_array(),
        "hiringManagerPreferences": _string_array(),
        "submissionTips": _string_array(),
        "targetCompanies": _string_array(),
        "keywords": {
            "type": "object",
            "properties": {
                "primary": _string_array(),
                "secondary": _string_array(),
                "booleanStrings": _string_array(),
            },
            "required": ["primary", "secondary", "booleanStrings"],
        },
        "techGlossary": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "term": {"type": "string"},
                    "explanation": {"type": "string"},
                },
                "required": ["term", "explanation"],
            },
        },
        "sampleResume": {"type": "string"},
        "audioScript": {"type": "string"},
    }
    required = list(REQUIRED_FIELDS)

    if include_candidate:
        properties["candidateAnalysis"] = _candidate_schema()
        required.append("candidateAnalysis")

    return {"type": "object", "properties": properties, "required": required}
