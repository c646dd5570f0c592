"""
AI Tasks Module

Task-specific logic for AI-powered operations.
"""

from .base import AITask, TaskResult
from .prompt_decomposition import PromptDecompositionTask, row_summary
from .tag_analysis import TagAnalysisTask
from .wildcard_expansion import WildcardExpansionInput, WildcardExpansionTask

__all__ = [
    "AITask",
    "TaskResult",
    "PromptDecompositionTask",
    "row_summary",
    "TagAnalysisTask",
    "WildcardExpansionInput",
    "WildcardExpansionTask",
]
