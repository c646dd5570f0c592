"""
AI Services Module

Provides AI-powered functionality for Atelier over the Gemini REST API:
- Tag analysis for character registration
- Prompt decomposition into attribute columns
- Wildcard list expansion
"""

from .providers import AIProvider, GeminiProvider, ProviderResult, ProviderStatus
from .service import AINotConfiguredError, AIService, AITaskError, create_ai_service
from .tasks import (
    PromptDecompositionTask,
    TagAnalysisTask,
    TaskResult,
    WildcardExpansionTask,
)

__all__ = [
    "AIProvider",
    "GeminiProvider",
    "ProviderResult",
    "ProviderStatus",
    "AINotConfiguredError",
    "AIService",
    "AITaskError",
    "create_ai_service",
    "PromptDecompositionTask",
    "TagAnalysisTask",
    "TaskResult",
    "WildcardExpansionTask",
]
