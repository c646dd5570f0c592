"""
Atelier Store - Characters and Favorite Lists

Characters live in data/characters.json, favorite list names in
data/lists.json. A list name is referenced by string from a character's
``series`` and ``favoriteLists`` and from LoRA metadata ``favoriteLists``,
so renaming or deleting a list rewrites all of them.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from ..utils.paths import basename_of, parent_of, stem_of
from .layout import ConflictError, NotFoundError, StoreLayout
from .meta_store import MetaStore
from .models import (
    Character,
    CharacterInput,
    CharacterLora,
    FileNode,
    MetaRecord,
    TagAnalysis,
    Variation,
)

logger = logging.getLogger(__name__)

PROMPT_DELIMITER = ", "
DEFAULT_SERIES = "Uncategorized"
DEFAULT_VARIATION = "Default"

TagAnalyzer = Callable[[List[str]], TagAnalysis]


def combine_prompts(base: List[str], extra: List[str]) -> str:
    """Join base fragments then variation fragments, skipping blanks."""
    return PROMPT_DELIMITER.join(p.strip() for p in [*base, *extra] if p and p.strip())


def split_trigger_words(text: Optional[str]) -> List[str]:
    return [w.strip() for w in (text or "").split(",") if w.strip()]


def preview_url(preview_path: Optional[str]) -> Optional[str]:
    """URL under which the API serves a LoRA preview."""
    if not preview_path:
        return None
    return f"/api/loras/image?path={quote(preview_path)}"


class CharacterService:
    """
    Service for characters and favorite lists.

    Args:
        layout: Store layout manager
        meta_store: LoRA metadata store (for list cascades)
    """

    def __init__(self, layout: StoreLayout, meta_store: MetaStore):
        self.layout = layout
        self.meta_store = meta_store

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load_raw(self) -> List[Dict[str, Any]]:
        data = self.layout.read_json(self.layout.characters_path, default=[])
        return data if isinstance(data, list) else []

    def _save_raw(self, data: List[Dict[str, Any]]) -> None:
        self.layout.write_json(self.layout.characters_path, data)

    def _index_of(self, data: List[Dict[str, Any]], character_id: str) -> int:
        for i, item in enumerate(data):
            if item.get("id") == character_id:
                return i
        raise NotFoundError(f"Character not found: {character_id}")

    # =========================================================================
    # Characters
    # =========================================================================

    def list_characters(self) -> List[Character]:
        return [Character.model_validate(c) for c in self._load_raw()]

    def get(self, character_id: str) -> Character:
        data = self._load_raw()
        return Character.model_validate(data[self._index_of(data, character_id)])

    def create(self, payload: CharacterInput) -> Character:
        """Create a character with a fresh id and timestamp."""
        character = Character.model_validate({
            **payload.to_patch(),
            "id": str(uuid.uuid4()),
            "createdAt": datetime.now(timezone.utc).isoformat(),
        })
        for variation in character.variations:
            if not variation.id:
                variation.id = str(uuid.uuid4())
        data = self._load_raw()
        data.append(character.to_json())
        self._save_raw(data)
        logger.info("[characters] Created %s (%s)", character.name, character.id)
        return character

    def update(self, character_id: str, payload: CharacterInput) -> Character:
        """Merge ``payload`` into an existing character."""
        data = self._load_raw()
        idx = self._index_of(data, character_id)
        merged = {**data[idx], **payload.to_patch(), "id": character_id}
        character = Character.model_validate(merged)
        data[idx] = character.to_json()
        self._save_raw(data)
        return character

    def delete(self, character_id: str) -> None:
        data = self._load_raw()
        idx = self._index_of(data, character_id)
        removed = data.pop(idx)
        self._save_raw(data)
        logger.info("[characters] Deleted %s", removed.get("name") or character_id)

    def reorder(self, characters: List[Character]) -> int:
        """Persist the full character list in the given order."""
        self._save_raw([c.to_json() for c in characters])
        return len(characters)

    def combined_prompt(self, character_id: str, variation_id: Optional[str] = None) -> str:
        """
        Prompt for a variation: base fragments then the variation's own.

        Without ``variation_id`` only the base fragments are joined.
        """
        character = self.get(character_id)
        if not variation_id:
            return combine_prompts(character.base_prompts, [])
        for variation in character.variations:
            if variation.id == variation_id:
                return combine_prompts(character.base_prompts, variation.prompts)
        raise NotFoundError(f"Variation not found: {variation_id}")

    # =========================================================================
    # Favorite Lists
    # =========================================================================

    def get_lists(self) -> List[str]:
        data = self.layout.read_json(self.layout.lists_path, default=[])
        return [str(x) for x in data] if isinstance(data, list) else []

    def save_lists(self, names: List[str]) -> List[str]:
        """Replace the list of names, dropping blanks and repeats."""
        cleaned: List[str] = []
        for name in names:
            name = (name or "").strip()
            if name and name not in cleaned:
                cleaned.append(name)
        self.layout.write_json(self.layout.lists_path, cleaned)
        return cleaned

    def rename_list(self, old: str, new: str) -> List[str]:
        """Rename a list and every reference to it."""
        new = (new or "").strip()
        if not new:
            raise ValueError("List name cannot be empty")
        lists = self.get_lists()
        if old not in lists:
            raise NotFoundError(f"List not found: {old}")
        if new != old and new in lists:
            raise ConflictError(f"List already exists: {new}")

        lists = [new if name == old else name for name in lists]
        self.layout.write_json(self.layout.lists_path, lists)

        data = self._load_raw()
        for item in data:
            if item.get("series") == old:
                item["series"] = new
            refs = item.get("favoriteLists")
            if isinstance(refs, list) and old in refs:
                item["favoriteLists"] = list(dict.fromkeys(new if r == old else r for r in refs))
        self._save_raw(data)

        touched = self.meta_store.rename_list_reference(old, new)
        logger.info("[lists] Renamed '%s' -> '%s' (%d LoRA record(s))", old, new, touched)
        return lists

    def delete_list(self, name: str) -> List[str]:
        """Delete a list and remove every reference to it."""
        lists = [n for n in self.get_lists() if n != name]
        self.layout.write_json(self.layout.lists_path, lists)

        data = self._load_raw()
        for item in data:
            if item.get("series") == name:
                item["series"] = ""
            refs = item.get("favoriteLists")
            if isinstance(refs, list) and name in refs:
                item["favoriteLists"] = [r for r in refs if r != name]
        self._save_raw(data)

        self.meta_store.remove_list_reference(name)
        return lists

    # =========================================================================
    # Registration from LoRA
    # =========================================================================

    def build_from_lora(
        self,
        lora: FileNode,
        record: Optional[MetaRecord] = None,
        name: Optional[str] = None,
        analyze: Optional[TagAnalyzer] = None,
    ) -> CharacterInput:
        """
        Build a character payload from a scanned LoRA file.

        Base prompts start with the ``<lora:stem:1>`` tag followed by the
        trigger words. With ``analyze`` the words are split into base and
        variation prompts; if that fails the plain words are used.
        """
        stem = stem_of(lora.name)
        words = split_trigger_words(record.trigger_words if record else None) or list(lora.trained_words)
        image = preview_url(lora.preview_path)

        base = [f"<lora:{stem}:1>"]
        variations: List[Variation] = []

        analysis: Optional[TagAnalysis] = None
        if analyze is not None and words:
            try:
                analysis = analyze(words)
            except Exception as e:
                logger.warning("[characters] Tag analysis failed for %s, using plain words: %s", lora.path, e)

        if analysis is not None and (analysis.base or analysis.variations):
            base.extend(analysis.base)
            for item in analysis.variations:
                variations.append(Variation(
                    id=str(uuid.uuid4()),
                    name=item.name,
                    image=image,
                    prompts=list(item.prompts),
                ))
        else:
            base.extend(words)

        if image and not variations:
            variations.append(Variation(id=str(uuid.uuid4()), name=DEFAULT_VARIATION, image=image, prompts=[]))

        series = basename_of(parent_of(lora.path)) or DEFAULT_SERIES
        display_name = name or (record.alias if record and record.alias else None) or stem

        return CharacterInput(
            name=display_name,
            series=series,
            notes=f"LoRA: {lora.path}",
            base_prompts=base,
            variations=variations,
            loras=[CharacterLora(path=lora.path, weight=1.0)],
        )

    def register_from_lora(
        self,
        lora: FileNode,
        record: Optional[MetaRecord] = None,
        name: Optional[str] = None,
        analyze: Optional[TagAnalyzer] = None,
    ) -> Character:
        """Create a character from a LoRA file."""
        return self.create(self.build_from_lora(lora, record, name, analyze))
