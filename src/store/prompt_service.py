"""
Atelier Store - Situations and Prompt Generator

Situation templates are named blocks of prompt lines kept in
data/situations.json. The generator crosses characters (and their
costumes) with situation lines to produce one prompt per combination.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .layout import NotFoundError, StoreLayout

logger = logging.getLogger(__name__)

PROMPT_DELIMITER = ", "


class PromptEntry(BaseModel):
    """One character/costume row fed to the generator."""
    name: str = ""
    base: str = ""
    costume: str = ""


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    entries: List[PromptEntry] = Field(default_factory=list)
    situations: List[str] = Field(default_factory=list)
    global_prompt: str = Field(default="", alias="globalPrompt")
    position: Literal["prefix", "suffix"] = "prefix"


def _join(parts: List[Optional[str]]) -> str:
    return PROMPT_DELIMITER.join(p.strip() for p in parts if p and p.strip())


def generate_prompts(
    entries: List[PromptEntry],
    situations: List[str],
    global_prompt: str = "",
    position: str = "prefix",
) -> str:
    """
    Build newline-separated prompts for every entry x situation line.

    Blank situation lines are ignored; with none left each entry yields one
    prompt. ``global_prompt`` is added before or after each line.
    """
    lines = [s.strip() for s in situations if s and s.strip()] or [""]
    results: List[str] = []
    for entry in entries:
        core = _join([entry.base, entry.costume])
        for situation in lines:
            prompt = _join([entry.name, core, situation])
            if global_prompt and global_prompt.strip():
                if position == "suffix":
                    prompt = _join([prompt, global_prompt])
                else:
                    prompt = _join([global_prompt, prompt])
            results.append(prompt)
    return "\n".join(results)


class PromptService:
    """Situation template storage."""

    def __init__(self, layout: StoreLayout):
        self.layout = layout

    def get_situations(self) -> Dict[str, str]:
        data = self.layout.read_json(self.layout.situations_path, default={})
        return {str(k): str(v) for k, v in data.items()} if isinstance(data, dict) else {}

    def save_situations(self, situations: Dict[str, str]) -> Dict[str, str]:
        """Replace the whole mapping."""
        self.layout.write_json(self.layout.situations_path, dict(situations))
        return dict(situations)

    def delete_situation(self, name: str) -> Dict[str, str]:
        situations = self.get_situations()
        if name not in situations:
            raise NotFoundError(f"Situation not found: {name}")
        del situations[name]
        self.layout.write_json(self.layout.situations_path, situations)
        return situations

    def situation_lines(self, names: List[str]) -> List[str]:
        """Lines of the named templates, in order."""
        situations = self.get_situations()
        lines: List[str] = []
        for name in names:
            lines.extend(situations.get(name, "").splitlines())
        return lines
