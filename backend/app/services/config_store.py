"""
Agent configuration store
Read/update-by-key access to agent configuration documents
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.exceptions import DatabaseException
from app.models.models import AgentConfigEntry

logger = logging.getLogger(__name__)


def deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``patch`` into a copy of ``base``; nested dicts merge, other values replace"""
    merged = copy.deepcopy(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class AgentConfigStore(ABC):
    """Key-value access to agent configuration documents"""

    @abstractmethod
    async def get(self, config_key: str) -> Optional[Dict[str, Any]]:
        """Return the configuration document, or None when the key is unknown"""

    @abstractmethod
    async def put(self, config_key: str, config_data: Dict[str, Any], updated_by: Optional[str] = None) -> Dict[str, Any]:
        """Replace the configuration document"""

    async def update(
        self,
        config_key: str,
        patch: Dict[str, Any],
        updated_by: Optional[str] = None,
        validate: Optional[Callable[[Dict[str, Any]], Any]] = None
    ) -> Dict[str, Any]:
        """
        Deep-merge a partial document into the stored one

        ``validate`` is called with the merged document before it is stored;
        whatever it raises propagates and nothing is written.
        """
        current = await self.get(config_key) or {}
        merged = deep_merge(current, patch)
        if validate is not None:
            validate(merged)
        return await self.put(config_key, merged, updated_by=updated_by)

    async def seed_missing(self, configs: Dict[str, Dict[str, Any]]) -> int:
        """Store each document whose key is absent; returns how many were added"""
        added = 0
        for config_key, config_data in configs.items():
            if await self.get(config_key) is None:
                await self.put(config_key, config_data, updated_by="seed")
                added += 1
        return added


class InMemoryAgentConfigStore(AgentConfigStore):
    """Process-local configuration, seeded from a dict"""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None):
        self._data: Dict[str, Dict[str, Any]] = copy.deepcopy(initial or {})

    async def get(self, config_key: str) -> Optional[Dict[str, Any]]:
        data = self._data.get(config_key)
        return copy.deepcopy(data) if data is not None else None

    async def put(self, config_key: str, config_data: Dict[str, Any], updated_by: Optional[str] = None) -> Dict[str, Any]:
        self._data[config_key] = copy.deepcopy(config_data)
        logger.info(f"Configuration {config_key} updated by {updated_by or 'system'}")
        return copy.deepcopy(config_data)


class SQLAlchemyAgentConfigStore(AgentConfigStore):
    """Configuration documents stored in the agent_configs table"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get(self, config_key: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.session_factory() as session:
                entry = await session.get(AgentConfigEntry, config_key)
                return copy.deepcopy(entry.config_data) if entry else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load configuration {config_key}: {e}")
            raise DatabaseException(str(e), operation="get_config", table="agent_configs") from e

    async def put(self, config_key: str, config_data: Dict[str, Any], updated_by: Optional[str] = None) -> Dict[str, Any]:
        async with self.session_factory() as session:
            try:
                entry = await session.get(AgentConfigEntry, config_key)
                if entry is None:
                    entry = AgentConfigEntry(config_key=config_key, config_data=config_data, updated_by=updated_by)
                    session.add(entry)
                else:
                    entry.config_data = config_data
                    entry.updated_by = updated_by
                await session.commit()
                logger.info(f"Configuration {config_key} updated by {updated_by or 'system'}")
                return copy.deepcopy(config_data)
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Failed to store configuration {config_key}: {e}")
                raise DatabaseException(str(e), operation="put_config", table="agent_configs") from e
