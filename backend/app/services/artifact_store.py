"""
Artifact Version Store
Append-only version chains per artifact with in-memory and SQLAlchemy backends
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.exceptions import DatabaseException, ErrorCode, OperationException
from app.models.models import ArtifactVersion
from app.schemas.artifact import ArtifactKind, ArtifactVersionRecord

logger = logging.getLogger(__name__)


class ArtifactVersionStore(ABC):
    """
    Persistence contract for versioned artifacts

    Version numbers start at 1 and grow by exactly one per save. A saved
    version is visible to readers all at once or not at all.
    """

    @abstractmethod
    async def get_current(self, artifact_id: str) -> Optional[ArtifactVersionRecord]:
        """Return the highest version of an artifact, or None if it does not exist"""

    @abstractmethod
    async def get_version(self, artifact_id: str, version_number: int) -> Optional[ArtifactVersionRecord]:
        """Return one specific version, or None"""

    @abstractmethod
    async def list_versions(self, artifact_id: str) -> List[ArtifactVersionRecord]:
        """Return every version of an artifact in ascending order"""

    @abstractmethod
    async def list_by_chat(self, chat_id: str) -> List[ArtifactVersionRecord]:
        """Return the latest version of each artifact created in a chat"""

    @abstractmethod
    async def save_version(
        self,
        artifact_id: str,
        *,
        content: str,
        title: str,
        kind: ArtifactKind,
        parent_version_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        chat_id: Optional[str] = None,
        expected_current_version: Optional[int] = None
    ) -> ArtifactVersionRecord:
        """
        Append a new version

        Args:
            artifact_id: Stable artifact id
            content: Full content snapshot
            title: Version title
            kind: Artifact kind
            parent_version_id: Version this one was derived from
            metadata: Producing operation, model and timestamps
            user_id: Owner of the version
            chat_id: Conversation the artifact belongs to
            expected_current_version: When given, the save only succeeds if the
                artifact's current version still equals it (0 means "must not exist")

        Returns:
            The saved version

        Raises:
            OperationException: VERSION_CONFLICT when the expected version no longer matches
            DatabaseException: when the backend fails
        """

    @staticmethod
    def _check_expected(artifact_id: str, current: int, expected: Optional[int]) -> None:
        if expected is not None and current != expected:
            raise OperationException(
                f"Artifact {artifact_id} changed while it was being edited "
                f"(expected version {expected}, found {current})",
                operation="save_version",
                code=ErrorCode.VERSION_CONFLICT,
                artifact_id=artifact_id
            )


class InMemoryArtifactStore(ArtifactVersionStore):
    """Process-local store used for development and tests"""

    def __init__(self):
        self._versions: Dict[str, List[ArtifactVersionRecord]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, artifact_id: str) -> asyncio.Lock:
        return self._locks.setdefault(artifact_id, asyncio.Lock())

    async def get_current(self, artifact_id: str) -> Optional[ArtifactVersionRecord]:
        versions = self._versions.get(artifact_id)
        return versions[-1] if versions else None

    async def get_version(self, artifact_id: str, version_number: int) -> Optional[ArtifactVersionRecord]:
        for record in self._versions.get(artifact_id, []):
            if record.version_number == version_number:
                return record
        return None

    async def list_versions(self, artifact_id: str) -> List[ArtifactVersionRecord]:
        return list(self._versions.get(artifact_id, []))

    async def list_by_chat(self, chat_id: str) -> List[ArtifactVersionRecord]:
        latest = [versions[-1] for versions in self._versions.values() if versions]
        return sorted(
            (record for record in latest if record.chat_id == chat_id),
            key=lambda record: record.created_at
        )

    async def save_version(
        self,
        artifact_id: str,
        *,
        content: str,
        title: str,
        kind: ArtifactKind,
        parent_version_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        chat_id: Optional[str] = None,
        expected_current_version: Optional[int] = None
    ) -> ArtifactVersionRecord:
        async with self._lock_for(artifact_id):
            versions = self._versions.setdefault(artifact_id, [])
            current = versions[-1].version_number if versions else 0
            self._check_expected(artifact_id, current, expected_current_version)

            record = ArtifactVersionRecord(
                id=artifact_id,
                version_number=current + 1,
                title=title,
                kind=kind,
                content=content,
                parent_version_id=parent_version_id,
                user_id=user_id,
                chat_id=chat_id,
                metadata=dict(metadata or {}),
                created_at=datetime.now(timezone.utc)
            )
            versions.append(record)
            logger.info(f"Saved artifact {artifact_id} version {record.version_number}")
            return record


class SQLAlchemyArtifactStore(ArtifactVersionStore):
    """
    Database-backed store

    The next version number is computed as max + 1 inside the inserting
    transaction. The (id, version_number) primary key rejects a concurrent
    writer that picked the same number; that writer retries.
    """

    def __init__(self, session_factory: async_sessionmaker, max_retries: int = 3):
        self.session_factory = session_factory
        self.max_retries = max_retries

    @staticmethod
    def _to_record(row: ArtifactVersion) -> ArtifactVersionRecord:
        return ArtifactVersionRecord(
            id=row.id,
            version_number=row.version_number,
            title=row.title,
            kind=ArtifactKind(row.kind),
            content=row.content,
            parent_version_id=row.parent_version_id,
            user_id=row.user_id,
            chat_id=row.chat_id,
            metadata=row.version_metadata or {},
            created_at=row.created_at
        )

    async def get_current(self, artifact_id: str) -> Optional[ArtifactVersionRecord]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(ArtifactVersion)
                    .where(ArtifactVersion.id == artifact_id)
                    .order_by(ArtifactVersion.version_number.desc())
                    .limit(1)
                )
                row = result.scalar_one_or_none()
                return self._to_record(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load artifact {artifact_id}: {e}")
            raise DatabaseException(str(e), operation="get_current", table="artifact_versions") from e

    async def get_version(self, artifact_id: str, version_number: int) -> Optional[ArtifactVersionRecord]:
        try:
            async with self.session_factory() as session:
                row = await session.get(ArtifactVersion, (artifact_id, version_number))
                return self._to_record(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load artifact {artifact_id} version {version_number}: {e}")
            raise DatabaseException(str(e), operation="get_version", table="artifact_versions") from e

    async def list_versions(self, artifact_id: str) -> List[ArtifactVersionRecord]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(ArtifactVersion)
                    .where(ArtifactVersion.id == artifact_id)
                    .order_by(ArtifactVersion.version_number.asc())
                )
                return [self._to_record(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list versions of artifact {artifact_id}: {e}")
            raise DatabaseException(str(e), operation="list_versions", table="artifact_versions") from e

    async def list_by_chat(self, chat_id: str) -> List[ArtifactVersionRecord]:
        latest = (
            select(
                ArtifactVersion.id.label("artifact_id"),
                func.max(ArtifactVersion.version_number).label("latest_version")
            )
            .where(ArtifactVersion.chat_id == chat_id)
            .group_by(ArtifactVersion.id)
            .subquery()
        )
        query = (
            select(ArtifactVersion)
            .join(latest, and_(
                ArtifactVersion.id == latest.c.artifact_id,
                ArtifactVersion.version_number == latest.c.latest_version
            ))
            .order_by(ArtifactVersion.created_at.asc())
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                return [self._to_record(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list artifacts of chat {chat_id}: {e}")
            raise DatabaseException(str(e), operation="list_by_chat", table="artifact_versions") from e

    async def save_version(
        self,
        artifact_id: str,
        *,
        content: str,
        title: str,
        kind: ArtifactKind,
        parent_version_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        chat_id: Optional[str] = None,
        expected_current_version: Optional[int] = None
    ) -> ArtifactVersionRecord:
        for attempt in range(1, self.max_retries + 1):
            async with self.session_factory() as session:
                try:
                    result = await session.execute(
                        select(func.max(ArtifactVersion.version_number))
                        .where(ArtifactVersion.id == artifact_id)
                    )
                    current = result.scalar() or 0
                    self._check_expected(artifact_id, current, expected_current_version)

                    row = ArtifactVersion(
                        id=artifact_id,
                        version_number=current + 1,
                        title=title,
                        kind=ArtifactKind(kind).value,
                        content=content,
                        parent_version_id=parent_version_id,
                        user_id=user_id,
                        chat_id=chat_id,
                        version_metadata=dict(metadata or {}),
                        created_at=datetime.now(timezone.utc)
                    )
                    session.add(row)
                    await session.commit()

                    logger.info(f"Saved artifact {artifact_id} version {row.version_number}")
                    return self._to_record(row)

                except IntegrityError:
                    await session.rollback()
                    logger.warning(
                        f"Version number race on artifact {artifact_id} "
                        f"(attempt {attempt}/{self.max_retries}), retrying"
                    )
                except SQLAlchemyError as e:
                    await session.rollback()
                    logger.error(f"Failed to save artifact {artifact_id}: {e}")
                    raise DatabaseException(str(e), operation="save_version", table="artifact_versions") from e

        raise OperationException(
            f"Could not allocate a version number for artifact {artifact_id}",
            operation="save_version",
            code=ErrorCode.VERSION_CONFLICT,
            artifact_id=artifact_id
        )
