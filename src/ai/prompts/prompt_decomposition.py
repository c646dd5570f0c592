"""
Prompt Decomposition Prompt

Asks for one JSON object per prompt line with the attribute columns used by
the prompt table.
"""

from typing import List, Sequence

# fmt: off
PROMPT_DECOMPOSITION_PROMPT = """\
This is a technical metadata task for Stable Diffusion image prompts. \
Process the input mechanically and produce JSON.

For every input line return one object with these keys: {fields}
Put each comma-separated element of the line into the best matching key. \
Use an empty string for keys without content. Keep the original wording.
Only organize the information objectively, no judgement is required. \
Return ONLY a JSON array with one object per input line, in input order.

Technical Metadata to Parse:
"""
# fmt: on


def build_decomposition_prompt(lines: List[str], fields: Sequence[str]) -> str:
    """Complete prompt for a chunk of prompt lines."""
    header = PROMPT_DECOMPOSITION_PROMPT.format(fields=", ".join(fields))
    return header + "\n".join(lines)
