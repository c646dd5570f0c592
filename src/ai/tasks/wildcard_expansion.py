"""
Wildcard Expansion Task

Generates additional wildcard lines in plain-text mode.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from ..prompts import WILDCARD_SYSTEM_INSTRUCTION, build_wildcard_prompt
from .base import AITask

SAMPLE_LINES = 30


@dataclass
class WildcardExpansionInput:
    """Existing wildcard lines plus the user's directive."""

    lines: List[str]
    directive: str


class WildcardExpansionTask(AITask):
    """Task for expanding a wildcard list with new one-per-line items."""

    task_type = "wildcard_expansion"
    json_mode = False

    def build_prompt(self, input_data: WildcardExpansionInput) -> str:
        sample = input_data.lines[-SAMPLE_LINES:]
        truncated = len(input_data.lines) > SAMPLE_LINES
        return build_wildcard_prompt(sample, input_data.directive, truncated=truncated)

    def get_system_instruction(self, input_data: Any) -> Optional[str]:
        return WILDCARD_SYSTEM_INSTRUCTION

    def parse_result(self, raw_output: Any) -> List[str]:
        if not isinstance(raw_output, str):
            return []
        lines = []
        for line in raw_output.splitlines():
            line = line.strip().lstrip("-*").strip()
            if line and not line.startswith("```"):
                lines.append(line)
        return lines

    def validate_output(self, output: Any) -> bool:
        return isinstance(output, list) and len(output) > 0
