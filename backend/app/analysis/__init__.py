"""Text-quality content analysis."""

from backend.app.analysis.text_quality import (
    AnalysisAbortedError,
    TextQualityOrchestrator,
    extract_topic,
)
from backend.app.analysis.types import TextQualityResult

__all__ = [
    "AnalysisAbortedError",
    "TextQualityOrchestrator",
    "TextQualityResult",
    "extract_topic",
]
