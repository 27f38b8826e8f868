"""
Unified LLM Provider System for the artifact agent platform
Multi-provider chat model abstraction with auto-detection and fallback support
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Type, List, Tuple
from dataclasses import dataclass, field
from enum import Enum
import logging

# LangChain imports
from langchain_openai import ChatOpenAI
from langchain_core.language_models.chat_models import BaseChatModel


class ProviderType(Enum):
    """Supported LLM provider types"""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    FALLBACK = "fallback"


@dataclass
class ProviderConfig:
    """Unified provider configuration"""
    provider_type: ProviderType
    api_key: str
    model: str
    temperature: float = 0.2
    max_tokens: int = 4000
    timeout: int = 60
    base_url: Optional[str] = None
    extra_params: Dict[str, Any] = field(default_factory=dict)


class BaseLLMProvider(ABC):
    """Base LLM provider interface"""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def get_provider_type(self) -> ProviderType:
        """Return provider type"""
        pass

    @abstractmethod
    def validate_api_key(self, api_key: str) -> bool:
        """Validate API key format"""
        pass

    @abstractmethod
    def get_default_models(self) -> List[str]:
        """Return list of supported default models"""
        pass

    @abstractmethod
    def create_llm_instance(self) -> BaseChatModel:
        """Create chat model instance"""
        pass

    def get_provider_info(self) -> Dict[str, Any]:
        """Return provider information"""
        return {
            "provider": self.get_provider_type().value,
            "model": self.config.model,
            "api_key_valid": self.validate_api_key(self.config.api_key),
            "supported_models": self.get_default_models(),
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens
        }


class OpenAIProvider(BaseLLMProvider):
    """OpenAI provider implementation"""

    def get_provider_type(self) -> ProviderType:
        return ProviderType.OPENAI

    def validate_api_key(self, api_key: str) -> bool:
        """OpenAI API key format: sk-..."""
        return bool(api_key and api_key.startswith("sk-") and len(api_key) > 20)

    def get_default_models(self) -> List[str]:
        return ["gpt-4o-mini", "gpt-4o", "gpt-4.1", "gpt-4.1-mini"]

    def create_llm_instance(self) -> BaseChatModel:
        return ChatOpenAI(
            model=self.config.model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            timeout=self.config.timeout,
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            **self.config.extra_params
        )


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Claude provider implementation"""

    def get_provider_type(self) -> ProviderType:
        return ProviderType.ANTHROPIC

    def validate_api_key(self, api_key: str) -> bool:
        """Anthropic API key format: sk-ant-..."""
        return bool(api_key and api_key.startswith("sk-ant-") and len(api_key) > 20)

    def get_default_models(self) -> List[str]:
        return ["claude-sonnet-4-20250514", "claude-3-5-haiku-latest"]

    def create_llm_instance(self) -> BaseChatModel:
        try:
            from langchain_anthropic import ChatAnthropic
        except ImportError:
            self.logger.error("langchain_anthropic not installed")
            raise ImportError("Please install: pip install langchain-anthropic")
        return ChatAnthropic(
            model=self.config.model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            timeout=self.config.timeout,
            api_key=self.config.api_key,
            **self.config.extra_params
        )


class GoogleProvider(BaseLLMProvider):
    """Google Gemini provider implementation"""

    def get_provider_type(self) -> ProviderType:
        return ProviderType.GOOGLE

    def validate_api_key(self, api_key: str) -> bool:
        """Google API key format: AIza..."""
        return bool(api_key and api_key.startswith("AIza") and len(api_key) > 20)

    def get_default_models(self) -> List[str]:
        return ["gemini-2.0-flash-001", "gemini-2.5-flash", "gemini-2.5-pro"]

    def create_llm_instance(self) -> BaseChatModel:
        try:
            from langchain_google_genai import ChatGoogleGenerativeAI
        except ImportError:
            self.logger.error("langchain_google_genai not installed")
            raise ImportError("Please install: pip install langchain-google-genai")
        return ChatGoogleGenerativeAI(
            model=self.config.model,
            temperature=self.config.temperature,
            max_output_tokens=self.config.max_tokens,
            google_api_key=self.config.api_key,
            **self.config.extra_params
        )


class FallbackProvider(BaseLLMProvider):
    """Fallback provider for local development without an API key"""

    def get_provider_type(self) -> ProviderType:
        return ProviderType.FALLBACK

    def validate_api_key(self, api_key: str) -> bool:
        """Fallback mode is always valid"""
        return True

    def get_default_models(self) -> List[str]:
        return ["mock-model"]

    def create_llm_instance(self) -> BaseChatModel:
        from langchain_core.language_models.fake_chat_models import FakeListChatModel

        # Structured calls parse these as JSON objects; chat turns show them verbatim
        responses = [
            json.dumps({"content": "# Generated by the fallback provider\nprint('hello')\n"}),
            "Fallback mode is active. Please configure a valid API key for production use.",
        ]
        return FakeListChatModel(responses=responses)


class LLMProviderFactory:
    """LLM provider factory for auto-detection and creation"""

    _providers: Dict[ProviderType, Type[BaseLLMProvider]] = {
        ProviderType.OPENAI: OpenAIProvider,
        ProviderType.ANTHROPIC: AnthropicProvider,
        ProviderType.GOOGLE: GoogleProvider,
        ProviderType.FALLBACK: FallbackProvider
    }

    @classmethod
    def detect_provider_from_key(cls, api_key: str) -> ProviderType:
        """Auto-detect provider from API key format"""
        if not api_key:
            return ProviderType.FALLBACK

        # sk-ant- must be checked before the generic sk- prefix
        patterns = [
            (ProviderType.ANTHROPIC, r"^sk-ant-[A-Za-z0-9\-_]{40,}$"),
            (ProviderType.OPENAI, r"^sk-[A-Za-z0-9\-_]{40,}$"),
            (ProviderType.GOOGLE, r"^AIza[A-Za-z0-9\-_]{35,}$"),
        ]

        for provider_type, pattern in patterns:
            if re.match(pattern, api_key):
                return provider_type

        return ProviderType.FALLBACK

    @classmethod
    def get_provider_from_config(cls, provider_name: str) -> ProviderType:
        """Get provider type from config name"""
        provider_map = {
            "openai": ProviderType.OPENAI,
            "anthropic": ProviderType.ANTHROPIC,
            "claude": ProviderType.ANTHROPIC,
            "google": ProviderType.GOOGLE,
            "gemini": ProviderType.GOOGLE,
            "fallback": ProviderType.FALLBACK,
            "mock": ProviderType.FALLBACK
        }

        return provider_map.get(provider_name.lower(), ProviderType.FALLBACK)

    @classmethod
    def create_provider(cls, config: ProviderConfig) -> BaseLLMProvider:
        """Create provider instance"""
        provider_class = cls._providers.get(config.provider_type, FallbackProvider)
        return provider_class(config)

    @classmethod
    def create_from_env(cls,
                        api_key: str,
                        provider_name: Optional[str] = None,
                        model: Optional[str] = None,
                        **kwargs) -> BaseLLMProvider:
        """Create provider from environment configuration"""

        # Explicit setting first, then auto-detection
        if provider_name:
            provider_type = cls.get_provider_from_config(provider_name)
        else:
            provider_type = cls.detect_provider_from_key(api_key)

        if not model:
            temp_provider = cls._providers[provider_type](
                ProviderConfig(provider_type, api_key, "temp")
            )
            default_models = temp_provider.get_default_models()
            model = default_models[0] if default_models else "default-model"

        config = ProviderConfig(
            provider_type=provider_type,
            api_key=api_key,
            model=model,
            temperature=kwargs.get("temperature", 0.2),
            max_tokens=kwargs.get("max_tokens", 4000),
            timeout=kwargs.get("timeout", 60),
            base_url=kwargs.get("base_url"),
            extra_params=kwargs.get("extra_params", {})
        )

        return cls.create_provider(config)

    @classmethod
    def list_available_providers(cls) -> List[str]:
        """List available provider names"""
        return [provider.value for provider in cls._providers.keys()]


class ChatModelPool:
    """
    Per-model cache of chat model instances

    Agents name a model id per call, so instances are created on demand and
    shared between turns for the same (model, temperature) pair.
    """

    def __init__(self, api_key: str, provider_name: Optional[str] = None,
                 default_model: Optional[str] = None, **config_kwargs):
        self.api_key = api_key
        self.provider_name = provider_name
        self.default_model = default_model
        self.config_kwargs = config_kwargs
        self._models: Dict[Tuple[str, float], BaseChatModel] = {}
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def provider_type(self) -> ProviderType:
        if self.provider_name:
            return LLMProviderFactory.get_provider_from_config(self.provider_name)
        return LLMProviderFactory.detect_provider_from_key(self.api_key)

    def resolve_model_id(self, model_id: Optional[str]) -> str:
        """Pick the requested model, the configured default or the provider default"""
        if model_id:
            return model_id
        if self.default_model:
            return self.default_model
        provider = LLMProviderFactory.create_from_env(self.api_key, self.provider_name)
        return provider.config.model

    def get_model(self, model_id: Optional[str] = None, temperature: Optional[float] = None) -> BaseChatModel:
        """Return a cached chat model for the given id and temperature"""
        resolved = self.resolve_model_id(model_id)
        temp = self.config_kwargs.get("temperature", 0.2) if temperature is None else temperature
        key = (resolved, temp)

        if key not in self._models:
            kwargs = dict(self.config_kwargs)
            kwargs["temperature"] = temp
            provider = LLMProviderFactory.create_from_env(
                api_key=self.api_key,
                provider_name=self.provider_name,
                model=resolved,
                **kwargs
            )
            self._models[key] = provider.create_llm_instance()
            self.logger.info(
                f"Chat model created: {provider.get_provider_type().value}/{resolved} (temperature={temp})"
            )

        return self._models[key]

    def get_provider_info(self) -> Dict[str, Any]:
        """Get provider information without creating a model"""
        return {
            "provider": self.provider_type.value,
            "default_model": self.default_model,
            "cached_models": [model for model, _ in self._models.keys()]
        }


def create_chat_model_pool(settings_obj) -> ChatModelPool:
    """Create the chat model pool from application settings"""
    return ChatModelPool(
        api_key=settings_obj.LLM_API_KEY,
        provider_name=settings_obj.LLM_PROVIDER,
        default_model=settings_obj.LLM_MODEL,
        temperature=settings_obj.LLM_TEMPERATURE,
        max_tokens=settings_obj.LLM_MAX_TOKENS,
        timeout=settings_obj.LLM_TIMEOUT
    )
