"""
Tag Analysis Task

Classifies a LoRA's trigger words into base features and variations.
"""

import logging
from typing import Any, Dict, List

from ...store.models import TagAnalysis, TagVariation
from ..prompts import build_tag_analysis_prompt
from .base import AITask

logger = logging.getLogger(__name__)


def _as_words(value: Any) -> List[str]:
    if isinstance(value, str):
        return [w.strip() for w in value.split(",") if w.strip()]
    if isinstance(value, list):
        return [str(w).strip() for w in value if w is not None and str(w).strip()]
    return []


class TagAnalysisTask(AITask):
    """
    Task for splitting trigger words into base and variation prompts.

    The model sometimes answers with a list of objects instead of a single
    object; those are merged into one TagAnalysis.
    """

    task_type = "tag_analysis"
    timeout = 60

    def build_prompt(self, input_data: List[str]) -> str:
        return build_tag_analysis_prompt(input_data)

    def parse_result(self, raw_output: Any) -> TagAnalysis:
        items: List[Dict[str, Any]]
        if isinstance(raw_output, dict):
            items = [raw_output]
        elif isinstance(raw_output, list):
            items = [x for x in raw_output if isinstance(x, dict)]
        else:
            logger.warning("[ai-service] Unexpected tag analysis output: %r", type(raw_output))
            items = []

        base: List[str] = []
        variations: List[TagVariation] = []
        for item in items:
            for word in _as_words(item.get("base")):
                if word not in base:
                    base.append(word)
            for variation in item.get("variations") or []:
                if not isinstance(variation, dict):
                    continue
                prompts = _as_words(variation.get("prompts"))
                name = str(variation.get("name") or "").strip()
                if prompts or name:
                    variations.append(TagVariation(name=name or f"Variation {len(variations) + 1}", prompts=prompts))

        return TagAnalysis(base=base, variations=variations)

    def validate_output(self, output: Any) -> bool:
        return isinstance(output, TagAnalysis) and bool(output.base or output.variations)
