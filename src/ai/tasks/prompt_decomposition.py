"""
Prompt Decomposition Task

Splits prompt lines into attribute columns (character, clothing, place, ...).
"""

import uuid
from typing import Any, List

from ...store.models import DECOMPOSITION_FIELDS, DecomposedRow
from ..prompts import build_decomposition_prompt
from .base import AITask


def row_summary(row: DecomposedRow) -> str:
    """Non-empty attribute values joined in column order."""
    values = [getattr(row, name) for name in DECOMPOSITION_FIELDS]
    return ", ".join(v for v in values if v and v.strip())


class PromptDecompositionTask(AITask):
    """
    Task for decomposing a chunk of prompt lines.

    Input is a list of lines, output a list of DecomposedRow with fresh ids
    and a computed summary.
    """

    task_type = "prompt_decomposition"
    timeout = 90

    def build_prompt(self, input_data: List[str]) -> str:
        return build_decomposition_prompt(input_data, DECOMPOSITION_FIELDS)

    def parse_result(self, raw_output: Any) -> List[DecomposedRow]:
        if isinstance(raw_output, dict):
            raw_output = [raw_output]
        if not isinstance(raw_output, list):
            return []

        rows: List[DecomposedRow] = []
        for item in raw_output:
            if not isinstance(item, dict):
                continue
            row = DecomposedRow.model_validate({**item, "id": uuid.uuid4().hex[:9]})
            row.summary = row_summary(row)
            rows.append(row)
        return rows

    def validate_output(self, output: Any) -> bool:
        return isinstance(output, list) and len(output) > 0
