"""
Tag Analysis Prompt

Splits a LoRA's trigger words into features shared by every image of the
character and outfit/variant groups.
"""

from typing import List

# fmt: off
TAG_ANALYSIS_PROMPT = """\
You organize trigger words of a character LoRA for an image generation tool.

Split the words below into:
- "base": words describing the character itself in every image (name, \
hair, eyes, body, species, permanent accessories).
- "variations": groups of words that only belong to one outfit, form or \
costume. Give each group a short English "name" and its "prompts".

Rules:
1. Use every input word exactly once, unchanged.
2. Do not invent words that are not in the input.
3. If nothing looks like an outfit, return an empty "variations" list.

Return ONLY valid JSON in this shape:
{"base": ["word", ...], "variations": [{"name": "Outfit", "prompts": ["word", ...]}]}

Trigger words:
"""
# fmt: on


def build_tag_analysis_prompt(trigger_words: List[str]) -> str:
    """Complete prompt for a list of trigger words."""
    return TAG_ANALYSIS_PROMPT + "\n".join(trigger_words)
