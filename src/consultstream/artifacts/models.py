"""Data models for structured artifacts embedded in assistant text."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ArtifactKind(str, Enum):
    """Widget kinds the dashboard knows how to render."""

    CHART = "chart"
    FRAMEWORK = "framework"
    KPI = "kpi"
    IMAGE_REQUEST = "image_request"
    IMAGE = "image"


# Placeholder kinds and the kind they become once their follow-up resolves
FOLLOW_UP_KINDS: dict[ArtifactKind, ArtifactKind] = {
    ArtifactKind.IMAGE_REQUEST: ArtifactKind.IMAGE,
}


class Artifact(BaseModel):
    """A typed widget payload extracted from a fenced block.

    The payload is opaque to the pipeline; only the kind and title are
    interpreted.
    """

    model_config = ConfigDict(frozen=True)

    type: ArtifactKind = Field(description="Widget kind")
    title: str = Field(description="Widget title shown above the rendering")
    data: dict[str, Any] = Field(default_factory=dict, description="Kind-specific payload")

    @property
    def needs_follow_up(self) -> bool:
        """Whether this artifact is a placeholder awaiting a secondary fetch."""
        return self.type in FOLLOW_UP_KINDS
