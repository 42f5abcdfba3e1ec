"""
Services package - Business logic and external integrations.

Includes AI extraction, error analysis, the pipeline orchestrator and review.
"""

from .error_analysis import ErrorAnalysisClient
from .extraction import ExtractionClient
from .inference import InferenceClient, InferenceConfig
from .pipeline import DocumentPipeline
from .review import ReviewService

__all__ = [
    "DocumentPipeline",
    "ErrorAnalysisClient",
    "ExtractionClient",
    "InferenceClient",
    "InferenceConfig",
    "ReviewService",
]
