"""
Core database models for the artifact agent platform
SQLAlchemy models for artifact versions and agent configuration
"""

from sqlalchemy import Column, String, DateTime, Text, JSON, Integer, Index
from datetime import datetime, timezone

from app.db.session import Base


class ArtifactVersion(Base):
    """One immutable snapshot of an artifact; (id, version_number) is unique"""
    __tablename__ = "artifact_versions"
    __table_args__ = (
        Index("ix_artifact_versions_chat_id", "chat_id"),
    )

    id = Column(String(36), primary_key=True)
    version_number = Column(Integer, primary_key=True, autoincrement=False)
    title = Column(Text, nullable=False)
    kind = Column(String(20), nullable=False)  # code, diagram, document
    content = Column(Text, nullable=False)
    parent_version_id = Column(Integer, nullable=True)
    user_id = Column(String(255), nullable=True)
    chat_id = Column(String(255), nullable=True)
    version_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<ArtifactVersion(id='{self.id}', version={self.version_number}, kind='{self.kind}')>"


class AgentConfigEntry(Base):
    """Agent configuration document stored under a composite key like python_agent_google"""
    __tablename__ = "agent_configs"

    config_key = Column(String(255), primary_key=True)
    config_data = Column(JSON, nullable=False)
    updated_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<AgentConfigEntry(config_key='{self.config_key}')>"
