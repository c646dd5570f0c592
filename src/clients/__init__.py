"""API clients for external services."""

from .civitai_client import CivitaiClient, CivitaiImage, CivitaiModel, CivitaiModelVersion, normalize_images

__all__ = [
    "CivitaiClient",
    "CivitaiImage",
    "CivitaiModel",
    "CivitaiModelVersion",
    "normalize_images",
]
