"""
Agent configuration API endpoints
Read and partially update configuration documents by composite key
"""

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError
from typing import Any, Dict
import logging

from app.agents.tool_config_resolver import ToolConfigResolver
from app.core.dependencies import get_config_store, get_identity, get_resolver
from app.schemas.agent_config import (
    AgentToolConfig, AgentType, ChatAgentConfig, ConfigResponse, ProviderToolsAgentConfig, parse_config_key
)
from app.schemas.chat import Identity
from app.services.config_store import AgentConfigStore

logger = logging.getLogger(__name__)
router = APIRouter()

CONFIG_MODELS = {
    AgentType.CHAT_MODEL_AGENT: ChatAgentConfig,
    AgentType.PROVIDER_TOOLS_AGENT: ProviderToolsAgentConfig,
}


def _agent_type_for(config_key: str) -> AgentType:
    parsed = parse_config_key(config_key)
    if parsed is None:
        raise HTTPException(status_code=404, detail=f"Unknown configuration key: {config_key}")
    return parsed[0]


@router.get("/{config_key}", response_model=ConfigResponse)
async def get_config(config_key: str, store: AgentConfigStore = Depends(get_config_store)):
    _agent_type_for(config_key)
    config_data = await store.get(config_key)
    if config_data is None:
        raise HTTPException(status_code=404, detail=f"Configuration {config_key} not found")
    return ConfigResponse(config_key=config_key, config_data=config_data)


@router.patch("/{config_key}", response_model=ConfigResponse)
async def update_config(
    config_key: str,
    patch: Dict[str, Any] = Body(...),
    identity: Identity = Depends(get_identity),
    store: AgentConfigStore = Depends(get_config_store),
    resolver: ToolConfigResolver = Depends(get_resolver)
):
    """
    Deep-merge a partial document into the stored configuration

    The merged document must still validate; the cached copy is dropped so
    the next turn sees the change.
    """
    agent_type = _agent_type_for(config_key)
    model = CONFIG_MODELS.get(agent_type, AgentToolConfig)
    try:
        saved = await store.update(config_key, patch, updated_by=identity.user_id, validate=model.model_validate)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    await resolver.invalidate(config_key)
    logger.info(f"Configuration {config_key} updated")
    return ConfigResponse(config_key=config_key, config_data=saved)
