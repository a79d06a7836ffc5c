# models.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class TechTerm(BaseModel):
    model_config = ConfigDict(frozen=True)

    term: str
    explanation: str


class Keywords(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary: List[str]
    secondary: List[str]
    booleanStrings: List[str]


class KeywordStuffingAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    riskLevel: Literal["Low", "Elevated", "High"]
    findings: str
    detectedArtificialClusters: List[str]


class CandidateAnalysis(BaseModel):
    """
    Forensic audit of a supplied resume against the job description.

    Only present on an AnalysisResult whose request included a resume.
    """
    model_config = ConfigDict(frozen=True)

    # 0-100 by convention, the model is not forced to respect it
    overallMatchPercentage: float
    skillMatchPercentage: float
    matchingStrengths: List[str]
    criticalGaps: List[str]
    employmentGaps: List[str]
    shortTermAssignments: List[str]
    authenticityScore: Literal["High", "Medium", "Low", "Caution"]
    authenticityReasoning: str
    keywordStuffingAnalysis: KeywordStuffingAnalysis
    recruiterQuestions: List[str]


class AnalysisResult(BaseModel):
    """One recruiting intelligence report, as returned by the analysis model."""
    model_config = ConfigDict(frozen=True)

    title: str
    jobSummary: str
    priorityRequirements: List[str]
    essentialCvElements: List[str]
    hiringManagerPreferences: List[str] = []
    submissionTips: List[str] = []
    targetCompanies: List[str] = []
    keywords: Keywords
    techGlossary: List[TechTerm]
    sampleResume: str
    audioScript: str
    candidateAnalysis: Optional[CandidateAnalysis] = None


class HistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    createdAt: datetime
    title: str
    analysis: AnalysisResult


# ---------- API payloads ----------

class AnalyzeRequest(BaseModel):
    jobDescription: str
    resumeText: Optional[str] = None


class ExtractedDocument(BaseModel):
    filename: str
    characters: int
    text: str


class HistorySummary(BaseModel):
    id: str
    createdAt: datetime
    title: str
    hasCandidate: bool = False


class HistoryListing(BaseModel):
    currentId: Optional[str] = None
    entries: List[HistorySummary] = Field(default_factory=list)
