"""
Wildcard Expansion Prompt

Generates new lines for a wildcard list from a sample of the existing file
and a short user directive.
"""

from typing import List

WILDCARD_SYSTEM_INSTRUCTION = (
    "Objective: Generate descriptive metadata tags for image generation. "
    "Format: List only, one item per line. "
    "Do not number the items and do not add any conversation."
)

TRUNCATION_MARKER = "... (truncated)"


def build_wildcard_prompt(sample: List[str], directive: str, truncated: bool = False) -> str:
    """
    User prompt for wildcard expansion.

    Args:
        sample: Trailing lines of the wildcard file
        directive: What the user wants added
        truncated: Whether earlier lines were left out
    """
    lines = ([TRUNCATION_MARKER] if truncated else []) + sample
    return "Dataset Sample:\n" + "\n".join(lines) + f"\n\nUser Directive: Expand themes: {directive}"
