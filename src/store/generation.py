"""
Atelier Store - Generation Label Detection

Guesses the base-model family of a LoRA from whatever hints are available:
the cached label in lora_meta.json, the Civitai sidecar, the filename, and
for .safetensors files the JSON header embedded at the start of the file.
"""

from __future__ import annotations

import json
import logging
import re
import struct
from pathlib import Path
from typing import Any, Dict, Optional, Pattern, Tuple

from .models import GenerationLabel

logger = logging.getLogger(__name__)

MAX_HEADER_BYTES = 100 * 1024 * 1024

# Short tokens must not touch a letter or digit (nor a preceding dot)
_ALONE = r"(?<![a-z0-9.]){}(?![a-z0-9])"

# Checked top to bottom; earlier labels win when hints overlap
LABEL_PATTERNS: Tuple[Tuple[GenerationLabel, Pattern[str]], ...] = tuple(
    (label, re.compile("|".join(needles)))
    for label, needles in (
        (GenerationLabel.ILLUSTRIOUS, (r"illust",)),
        (GenerationLabel.NOOBAI, (r"noob",)),
        (GenerationLabel.PONY, (r"pony",)),
        (GenerationLabel.FLUX, (r"flux",)),
        (GenerationLabel.SD3, (r"sd ?3",)),
        (GenerationLabel.SDXL, (r"sd_?xl", _ALONE.format(r"xl"))),
        (GenerationLabel.SD2, (r"sd ?2", r"(?<![a-z0-9.])v2-(?=\d)")),
        (GenerationLabel.SD15, (r"sd ?1", _ALONE.format(r"1\.5"))),
    )
)

HEADER_HINT_KEYS = (
    "ss_base_model_version",
    "modelspec.architecture",
    "ss_sd_model_name",
    "ss_base_model",
)


def infer_label(text: Optional[str]) -> Optional[GenerationLabel]:
    """
    Map a free-form hint to a generation label.

    Returns None when nothing matches, so callers can fall through to the
    next source.
    """
    if not text:
        return None
    lowered = str(text).lower()
    for label, pattern in LABEL_PATTERNS:
        if pattern.search(lowered):
            return label
    return None


def read_safetensors_metadata(path: Path) -> Dict[str, Any]:
    """
    Read the ``__metadata__`` block of a .safetensors header.

    Returns an empty dict for anything that does not look like a sane
    header (short file, oversized length prefix, invalid JSON).
    """
    try:
        file_size = path.stat().st_size
        with open(path, "rb") as f:
            prefix = f.read(8)
            if len(prefix) < 8:
                return {}
            header_size = struct.unpack("<Q", prefix)[0]
            if header_size > MAX_HEADER_BYTES or header_size > file_size - 8:
                logger.debug("[scan] Rejecting header of %d bytes in %s", header_size, path.name)
                return {}
            header = json.loads(f.read(header_size).decode("utf-8"))
    except (OSError, ValueError) as e:
        logger.debug("[scan] Unreadable safetensors header %s: %s", path.name, e)
        return {}

    metadata = header.get("__metadata__") if isinstance(header, dict) else None
    return metadata if isinstance(metadata, dict) else {}


def label_from_header(path: Path) -> Optional[GenerationLabel]:
    """Infer a label from the safetensors header hints."""
    metadata = read_safetensors_metadata(path)
    for key in HEADER_HINT_KEYS:
        label = infer_label(metadata.get(key))
        if label:
            return label
    return None


def sidecar_base_model(info: Optional[Dict[str, Any]]) -> Optional[str]:
    """Base-model string from a Civitai sidecar."""
    if not info:
        return None
    base = info.get("baseModel")
    if not base:
        versions = info.get("modelVersions")
        if isinstance(versions, list) and versions and isinstance(versions[0], dict):
            base = versions[0].get("baseModel")
    return base if isinstance(base, str) else None


def detect_generation(
    path: Path,
    cached: Optional[str] = None,
    info: Optional[Dict[str, Any]] = None,
) -> GenerationLabel:
    """
    Detect the generation label for a model file.

    Order: cached label, sidecar base model, filename, safetensors header.
    """
    if cached and cached != GenerationLabel.UNKNOWN.value:
        try:
            return GenerationLabel(cached)
        except ValueError:
            logger.debug("[scan] Ignoring unknown cached generation %r for %s", cached, path.name)

    label = infer_label(sidecar_base_model(info)) or infer_label(path.name)
    if label:
        return label

    if path.suffix.lower() == ".safetensors":
        label = label_from_header(path)
        if label:
            return label

    return GenerationLabel.UNKNOWN
