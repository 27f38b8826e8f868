"""
Artifact API endpoints
Read access to artifact version chains
"""

from fastapi import APIRouter, Depends, Query
from typing import List
import logging

from app.core.dependencies import get_artifact_store
from app.core.exceptions import ErrorCode, OperationException
from app.schemas.artifact import ArtifactVersionRecord, ArtifactVersionSummary
from app.services.artifact_store import ArtifactVersionStore

logger = logging.getLogger(__name__)
router = APIRouter()


def _not_found(artifact_id: str, version_number: int = None) -> OperationException:
    target = f"Version {version_number} of artifact {artifact_id}" if version_number else f"Artifact {artifact_id}"
    return OperationException(
        f"{target} was not found",
        operation="read",
        code=ErrorCode.ARTIFACT_NOT_FOUND,
        artifact_id=artifact_id
    )


@router.get("", response_model=List[ArtifactVersionRecord])
async def list_chat_artifacts(
    chat_id: str = Query(..., description="Conversation whose artifacts to list"),
    store: ArtifactVersionStore = Depends(get_artifact_store)
):
    """Latest version of every artifact created in a chat"""
    return await store.list_by_chat(chat_id)


@router.get("/{artifact_id}", response_model=ArtifactVersionRecord)
async def get_artifact(artifact_id: str, store: ArtifactVersionStore = Depends(get_artifact_store)):
    """Current version of an artifact"""
    record = await store.get_current(artifact_id)
    if record is None:
        raise _not_found(artifact_id)
    return record


@router.get("/{artifact_id}/versions", response_model=List[ArtifactVersionSummary])
async def list_artifact_versions(artifact_id: str, store: ArtifactVersionStore = Depends(get_artifact_store)):
    versions = await store.list_versions(artifact_id)
    if not versions:
        raise _not_found(artifact_id)
    return [ArtifactVersionSummary.from_record(record) for record in versions]


@router.get("/{artifact_id}/versions/{version_number}", response_model=ArtifactVersionRecord)
async def get_artifact_version(
    artifact_id: str,
    version_number: int,
    store: ArtifactVersionStore = Depends(get_artifact_store)
):
    record = await store.get_version(artifact_id, version_number)
    if record is None:
        raise _not_found(artifact_id, version_number)
    return record
