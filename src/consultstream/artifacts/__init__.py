"""Artifact extraction module.

Separates narrative text from the structured widget blocks the model
embeds in its answers.
"""

from .extractor import ExtractionResult, FenceScanner, extract, parse_artifact
from .models import FOLLOW_UP_KINDS, Artifact, ArtifactKind

__all__ = [
    "Artifact",
    "ArtifactKind",
    "ExtractionResult",
    "FOLLOW_UP_KINDS",
    "FenceScanner",
    "extract",
    "parse_artifact",
]
