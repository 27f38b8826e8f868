"""
Dependency injection for the artifact agent platform
Manages the service container lifecycle and exposes FastAPI dependencies
"""

from dataclasses import dataclass
from typing import Optional
import logging

from fastapi import Header

from app.agents.orchestrator import ChatOrchestrator
from app.agents.registry import ArtifactAgentRegistry
from app.agents.tool_config_resolver import ToolConfigResolver
from app.core.config import Settings, settings as default_settings
from app.core.default_configs import default_agent_configs
from app.core.generation import GenerationClient
from app.core.llm_providers import create_chat_model_pool
from app.schemas.chat import Identity
from app.services.activity_logger import AgentActivityLogger
from app.services.artifact_store import ArtifactVersionStore, SQLAlchemyArtifactStore
from app.services.config_store import AgentConfigStore, SQLAlchemyAgentConfigStore
from app.services.tool_config_cache import RedisToolConfigCache, create_tool_config_cache

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Shared services; one instance per application"""
    artifact_store: ArtifactVersionStore
    config_store: AgentConfigStore
    resolver: ToolConfigResolver
    registry: ArtifactAgentRegistry
    orchestrator: ChatOrchestrator


def build_services(
    settings: Settings,
    artifact_store: ArtifactVersionStore,
    config_store: AgentConfigStore,
    generation_client=None,
    cache=None
) -> ServiceContainer:
    """Wire the services together; tests pass in-memory stores and a fake generation client"""
    generation_client = generation_client or GenerationClient(create_chat_model_pool(settings))
    cache = cache or create_tool_config_cache(settings)
    activity_logger = AgentActivityLogger()

    resolver = ToolConfigResolver(config_store, cache, provider=settings.AGENT_PROVIDER)
    registry = ArtifactAgentRegistry(resolver, generation_client, artifact_store, activity_logger)
    orchestrator = ChatOrchestrator(
        resolver,
        generation_client,
        registry,
        max_tool_rounds=settings.ORCHESTRATOR_MAX_TOOL_ROUNDS,
        temperature=settings.ORCHESTRATOR_TEMPERATURE,
        provider=settings.AGENT_PROVIDER,
        activity_logger=activity_logger
    )
    return ServiceContainer(
        artifact_store=artifact_store,
        config_store=config_store,
        resolver=resolver,
        registry=registry,
        orchestrator=orchestrator
    )


# Global container instance
_services: Optional[ServiceContainer] = None


async def initialize_services(container: Optional[ServiceContainer] = None) -> ServiceContainer:
    """Initialize the global service container and seed missing agent configuration"""
    global _services

    if container is None:
        from app.db.session import AsyncSessionLocal

        container = build_services(
            default_settings,
            artifact_store=SQLAlchemyArtifactStore(AsyncSessionLocal),
            config_store=SQLAlchemyAgentConfigStore(AsyncSessionLocal)
        )

    added = await container.config_store.seed_missing(default_agent_configs(default_settings.AGENT_PROVIDER))
    if added:
        logger.info(f"Seeded {added} default agent configurations")

    _services = container
    logger.info("Service container initialized")
    return container


async def cleanup_services() -> None:
    """Release the global service container"""
    global _services
    if _services is None:
        return

    cache = _services.resolver.cache
    if isinstance(cache, RedisToolConfigCache):
        await cache.redis.aclose()

    _services = None
    logger.info("Service container cleanup completed")


def get_services() -> ServiceContainer:
    if _services is None:
        raise RuntimeError("Services not initialized. Call initialize_services() first.")
    return _services


# FastAPI dependency functions

def get_artifact_store() -> ArtifactVersionStore:
    return get_services().artifact_store


def get_config_store() -> AgentConfigStore:
    return get_services().config_store


def get_resolver() -> ToolConfigResolver:
    return get_services().resolver


def get_orchestrator() -> ChatOrchestrator:
    return get_services().orchestrator


def get_identity(x_user_id: Optional[str] = Header(None)) -> Identity:
    """Opaque caller identity from the X-User-Id header"""
    return Identity(user_id=x_user_id or None)
