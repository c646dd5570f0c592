"""
Atelier Store - Data Models

Pydantic v2 models for the JSON documents kept in the data directory
(characters.json, lists.json, lora_meta.json, situations.json, config.json)
and for the scanned LoRA asset tree.

Wire names are camelCase to match the documents written by earlier versions
of the app; Python attributes are snake_case. All models accept either form
on input (populate_by_name).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..clients.civitai_client import CivitaiImage


# =============================================================================
# Enums
# =============================================================================

class GenerationLabel(str, Enum):
    """Base-model family detected for a LoRA file."""
    ILLUSTRIOUS = "Illustrious"
    NOOBAI = "NoobAI"
    PONY = "Pony"
    FLUX = "Flux"
    SD3 = "SD3"
    SDXL = "SDXL"
    SD2 = "SD2"
    SD15 = "SD1.5"
    UNKNOWN = "Unknown"


class SortMode(str, Enum):
    """Display ordering of sibling files."""
    NAME = "name"
    CUSTOM = "custom"


# =============================================================================
# LoRA Metadata (data/lora_meta.json)
# =============================================================================

class _MetaFields(BaseModel):
    """Fields shared by stored metadata records and patches."""
    model_config = ConfigDict(populate_by_name=True)

    trigger_words: Optional[str] = Field(default=None, alias="triggerWords")
    notes: Optional[str] = None
    favorite: Optional[bool] = None
    favorite_lists: Optional[List[str]] = Field(default=None, alias="favoriteLists")
    civitai_url: Optional[str] = Field(default=None, alias="civitaiUrl")
    order: Optional[int] = None
    custom_tags: Optional[List[str]] = Field(default=None, alias="customTags")
    alias: Optional[str] = None
    tag_images: Optional[Dict[str, str]] = Field(default=None, alias="tagImages")
    civitai_images: Optional[List[str]] = Field(default=None, alias="civitaiImages")
    generation: Optional[GenerationLabel] = None


class MetaRecord(_MetaFields):
    """
    Metadata overlay for one asset path.

    Unknown keys already on disk are kept so older documents load unchanged.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class MetaPatch(_MetaFields):
    """
    Partial update for a MetaRecord.

    Unknown keys are rejected. Only the fields actually sent are merged.
    """
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def to_patch(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


# =============================================================================
# Asset Tree
# =============================================================================

class FileNode(BaseModel):
    """A recognized model file in the scanned tree."""
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    type: Literal["file"] = "file"
    name: str
    path: str
    size: int = 0
    mtime: Optional[datetime] = None
    preview_path: Optional[str] = Field(default=None, alias="previewPath")
    model_id: Optional[int] = Field(default=None, alias="modelId")
    trained_words: List[str] = Field(default_factory=list, alias="trainedWords")
    generation: GenerationLabel = GenerationLabel.UNKNOWN
    civitai_images: List[str] = Field(default_factory=list, alias="civitaiImages")
    civitai_url: Optional[str] = Field(default=None, alias="civitaiUrl")


class DirectoryNode(BaseModel):
    """A directory in the scanned tree. Children are in scan order."""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["directory"] = "directory"
    name: str
    path: str
    children: List["AssetNode"] = Field(default_factory=list)


AssetNode = Annotated[Union[FileNode, DirectoryNode], Field(discriminator="type")]

DirectoryNode.model_rebuild()


class LoraFilesResponse(BaseModel):
    """Response for GET /loras/files."""
    model_config = ConfigDict(populate_by_name=True)

    files: List[AssetNode] = Field(default_factory=list)
    meta: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    root_dir: str = Field(default="", alias="rootDir")


# =============================================================================
# Characters (data/characters.json)
# =============================================================================

class Variation(BaseModel):
    """A costume/pose variant of a character."""
    id: str = ""
    name: str = ""
    image: Optional[str] = None
    prompts: List[str] = Field(default_factory=list)


class CharacterLora(BaseModel):
    """A LoRA attached to a character."""
    path: str
    weight: float = 1.0


class Character(BaseModel):
    """Character profile with shared base prompts and variations."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    name: str = ""
    series: str = ""
    notes: str = ""
    base_prompts: List[str] = Field(default_factory=list, alias="basePrompts")
    variations: List[Variation] = Field(default_factory=list)
    favorite_lists: List[str] = Field(default_factory=list, alias="favoriteLists")
    loras: List[CharacterLora] = Field(default_factory=list)
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class CharacterInput(BaseModel):
    """Create/update payload for a character (id is server-assigned)."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: Optional[str] = None
    series: Optional[str] = None
    notes: Optional[str] = None
    base_prompts: Optional[List[str]] = Field(default=None, alias="basePrompts")
    variations: Optional[List[Variation]] = None
    favorite_lists: Optional[List[str]] = Field(default=None, alias="favoriteLists")
    loras: Optional[List[CharacterLora]] = None

    def to_patch(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_unset=True, mode="json")
        data.pop("id", None)
        return data


# =============================================================================
# App Config (data/config.json)
# =============================================================================

class AppConfig(BaseModel):
    """
    Flat user settings document.

    The client stores its own flags here too, so unknown keys are kept.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    lora_dir: str = Field(default="", alias="loraDir")
    wildcard_dir: str = Field(default="", alias="wildcardDir")
    gemini_api_key: Optional[str] = Field(default=None, alias="geminiApiKey")
    gemini_model: Optional[str] = Field(default=None, alias="geminiModel")
    pinned_folders: List[str] = Field(default_factory=list, alias="pinnedFolders")

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# AI Results
# =============================================================================

class TagVariation(BaseModel):
    """Outfit/variant group proposed by tag analysis."""
    name: str
    prompts: List[str] = Field(default_factory=list)


class TagAnalysis(BaseModel):
    """Trigger words split into base features and variations."""
    base: List[str] = Field(default_factory=list)
    variations: List[TagVariation] = Field(default_factory=list)


DECOMPOSITION_FIELDS = (
    "character", "faceHair", "expression", "bodySkin", "clothing",
    "underwear", "poseComp", "partner", "action", "place", "sound",
    "quality", "others",
)


class DecomposedRow(BaseModel):
    """One prompt line split into attribute columns."""
    model_config = ConfigDict(extra="ignore")

    id: str
    character: str = ""
    faceHair: str = ""
    expression: str = ""
    bodySkin: str = ""
    clothing: str = ""
    underwear: str = ""
    poseComp: str = ""
    partner: str = ""
    action: str = ""
    place: str = ""
    sound: str = ""
    quality: str = ""
    others: str = ""
    summary: str = ""

    @field_validator(*DECOMPOSITION_FIELDS, mode="before")
    @classmethod
    def _coerce_str(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, list):
            return ", ".join(str(x) for x in v if x)
        return str(v)


class DecompositionResult(BaseModel):
    """Aggregate result of a prompt decomposition batch."""
    rows: List[DecomposedRow] = Field(default_factory=list)
    total: int = 0
    skipped: int = 0
    cancelled: bool = False


# =============================================================================
# Operation Results
# =============================================================================

class ModelDescription(BaseModel):
    """Response for GET /loras/model-description."""
    model_config = ConfigDict(populate_by_name=True)

    description: str = ""
    is_local: bool = Field(default=False, alias="isLocal")
    images: List[CivitaiImage] = Field(default_factory=list)


class MoveItemResult(BaseModel):
    """Outcome of moving one source path."""
    source: str
    success: bool
    new_path: Optional[str] = Field(default=None, alias="newPath")
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class BatchMoveResult(BaseModel):
    """Outcome of a batch move. Succeeds if any item moved."""
    success: bool
    moved: int = 0
    failed: int = 0
    results: List[MoveItemResult] = Field(default_factory=list)


class ReorderResult(BaseModel):
    """Outcome of a reorder operation."""
    success: bool = True
    changed: bool = False
    order: List[str] = Field(default_factory=list)
