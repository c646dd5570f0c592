"""
AI Prompts Module

Prompt templates for AI-powered tasks.
"""

from .prompt_decomposition import (
    PROMPT_DECOMPOSITION_PROMPT,
    build_decomposition_prompt,
)
from .tag_analysis import TAG_ANALYSIS_PROMPT, build_tag_analysis_prompt
from .wildcard_expansion import (
    WILDCARD_SYSTEM_INSTRUCTION,
    build_wildcard_prompt,
)

__all__ = [
    "PROMPT_DECOMPOSITION_PROMPT",
    "build_decomposition_prompt",
    "TAG_ANALYSIS_PROMPT",
    "build_tag_analysis_prompt",
    "WILDCARD_SYSTEM_INSTRUCTION",
    "build_wildcard_prompt",
]
