"""
Pydantic schemas for artifacts and their versions
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class ArtifactKind(str, Enum):
    """Artifact kind enumeration"""
    CODE = "code"
    DIAGRAM = "diagram"
    DOCUMENT = "document"


class ArtifactVersionRecord(BaseModel):
    """Full snapshot of one artifact version as returned by the version store"""
    model_config = ConfigDict(frozen=True)

    id: str
    version_number: int = Field(..., ge=1)
    title: str
    kind: ArtifactKind
    content: str
    parent_version_id: Optional[int] = None
    user_id: Optional[str] = None
    chat_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class ArtifactVersionSummary(BaseModel):
    """Version listing entry without content"""
    version_number: int
    title: str
    kind: ArtifactKind
    parent_version_id: Optional[int] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_record(cls, record: ArtifactVersionRecord) -> "ArtifactVersionSummary":
        return cls(
            version_number=record.version_number,
            title=record.title,
            kind=record.kind,
            parent_version_id=record.parent_version_id,
            metadata=record.metadata,
            created_at=record.created_at,
        )


class ArtifactSummary(BaseModel):
    """Minimal artifact reference handed back to the primary model"""
    id: str
    title: str
    kind: ArtifactKind
