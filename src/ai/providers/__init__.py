"""
AI Providers Module

HTTP-based AI providers for Atelier:
- GeminiProvider: Google Gemini REST API
"""

from .base import AIProvider, ProviderResult, ProviderStatus
from .gemini import DEFAULT_MODEL, GeminiProvider, SafetyBlockError

__all__ = [
    "AIProvider",
    "ProviderResult",
    "ProviderStatus",
    "DEFAULT_MODEL",
    "GeminiProvider",
    "SafetyBlockError",
]
