"""
Atelier Utils Package

Utility functions and helpers for the Atelier application.
"""

from .paths import (
    MODEL_EXTENSIONS,
    PathTraversalError,
    format_size,
    is_same_path,
    normalize_path,
    parent_of,
    path_key,
    resolve_within,
    stem_of,
    strip_model_extension,
)

__all__ = [
    "MODEL_EXTENSIONS",
    "PathTraversalError",
    "format_size",
    "is_same_path",
    "normalize_path",
    "parent_of",
    "path_key",
    "resolve_within",
    "stem_of",
    "strip_model_extension",
]
