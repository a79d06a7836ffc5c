# backend/prompts/__init__.py
"""
Analysis Prompts Package

Contains the LLM prompt templates and JSON response schema for role analysis.
"""

from .analysis_prompts import (
    AnalysisPrompts,
    analysis_response_schema
)

__all__ = [
    "AnalysisPrompts",
    "analysis_response_schema"
]
