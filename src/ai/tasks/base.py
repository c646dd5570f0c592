"""
Abstract Base Task

A task turns typed input into a prompt and the provider's answer back into
typed output.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class TaskResult:
    """Result from an AI task execution."""

    success: bool
    output: Optional[Any] = None
    error: Optional[str] = None
    provider_id: str = ""
    model: str = ""
    blocked: bool = False
    execution_time_ms: int = 0


class AITask(ABC):
    """Abstract base class for AI-powered tasks."""

    # Task identifier (e.g., "tag_analysis")
    task_type: str = ""

    # Whether the provider should return (and parse) JSON
    json_mode: bool = True

    # Per-call timeout in seconds
    timeout: int = 60

    @abstractmethod
    def build_prompt(self, input_data: Any) -> str:
        """
        Build the prompt for this task.

        Args:
            input_data: Task-specific input

        Returns:
            Prompt string for the AI provider
        """

    @abstractmethod
    def parse_result(self, raw_output: Any) -> Any:
        """
        Convert the provider output into the task's result type.

        Args:
            raw_output: Parsed JSON (or plain text) from the provider
        """

    def get_system_instruction(self, input_data: Any) -> Optional[str]:
        """System prompt sent alongside the user prompt, if any."""
        return None

    def validate_output(self, output: Any) -> bool:
        """Accept any non-None output unless a task says otherwise."""
        return output is not None
