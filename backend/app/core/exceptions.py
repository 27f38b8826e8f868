"""
Standardized exception handling for the artifact agent platform
Provides consistent error types, user-facing messages and correlation tracking
"""

import logging
from typing import Dict, Any, Optional, List
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

from app.core.correlation import get_correlation_id


class ErrorSeverity(str, Enum):
    """Error severity levels for consistent categorization"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Error categories for consistent classification"""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    BUSINESS_LOGIC = "business_logic"
    DATABASE = "database"
    CONFIGURATION = "configuration"
    LLM_SERVICE = "llm_service"
    AGENT = "agent"
    STREAMING = "streaming"
    SYSTEM = "system"


class ErrorCode(str, Enum):
    """Machine-readable error codes shared by every layer"""
    # Provider errors
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PROVIDER_NOT_FOUND = "PROVIDER_NOT_FOUND"
    PROVIDER_DISABLED = "PROVIDER_DISABLED"
    PROVIDER_CONFIG_INVALID = "PROVIDER_CONFIG_INVALID"
    PROVIDER_API_ERROR = "PROVIDER_API_ERROR"

    # Agent errors
    AGENT_CREATION_FAILED = "AGENT_CREATION_FAILED"
    AGENT_NOT_FOUND = "AGENT_NOT_FOUND"
    AGENT_DISABLED = "AGENT_DISABLED"
    AGENT_TYPE_INVALID = "AGENT_TYPE_INVALID"

    # Configuration errors
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    CONFIG_VALIDATION_FAILED = "CONFIG_VALIDATION_FAILED"

    # Model errors
    MODEL_NOT_SUPPORTED = "MODEL_NOT_SUPPORTED"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    MODEL_DISABLED = "MODEL_DISABLED"

    # Streaming errors
    STREAMING_FAILED = "STREAMING_FAILED"
    REASONING_FAILED = "REASONING_FAILED"

    # Rate limiting and authentication
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"

    # Database errors
    DATABASE_CONNECTION_FAILED = "DATABASE_CONNECTION_FAILED"
    DATABASE_QUERY_FAILED = "DATABASE_QUERY_FAILED"
    DATABASE_VALIDATION_FAILED = "DATABASE_VALIDATION_FAILED"

    # Artifact operation errors
    OPERATION_INVALID = "OPERATION_INVALID"
    ARTIFACT_NOT_FOUND = "ARTIFACT_NOT_FOUND"
    REVERT_OUT_OF_RANGE = "REVERT_OUT_OF_RANGE"
    VERSION_CONFLICT = "VERSION_CONFLICT"


def get_user_friendly_message(code: ErrorCode, **context: Any) -> str:
    """
    Translate an error code into text that can be shown to the end user

    Args:
        code: Error code to describe
        **context: Optional provider, agent, config_key or model names

    Returns:
        A short natural-language explanation
    """
    provider = context.get("provider")
    agent = context.get("agent")
    config_key = context.get("config_key")
    model = context.get("model")

    messages = {
        ErrorCode.PROVIDER_UNAVAILABLE: (
            f"The {provider} provider is currently unavailable. Please try again later."
            if provider else "The AI provider is currently unavailable. Please try again later."
        ),
        ErrorCode.PROVIDER_NOT_FOUND: "The requested AI provider was not found.",
        ErrorCode.PROVIDER_DISABLED: (
            f"The {provider} provider is currently disabled." if provider
            else "The AI provider is currently disabled."
        ),
        ErrorCode.PROVIDER_CONFIG_INVALID: "The AI provider configuration is invalid. Please contact an administrator.",
        ErrorCode.PROVIDER_API_ERROR: "The AI provider returned an error. Please try again.",
        ErrorCode.AGENT_CREATION_FAILED: "Failed to initialize the AI agent. Please try again.",
        ErrorCode.AGENT_NOT_FOUND: (
            f"The {agent} agent was not found." if agent else "The requested agent was not found."
        ),
        ErrorCode.AGENT_DISABLED: (
            f"The {agent} agent is currently disabled." if agent else "This agent is currently disabled."
        ),
        ErrorCode.AGENT_TYPE_INVALID: "The requested agent type is not valid.",
        ErrorCode.INVALID_CONFIGURATION: (
            f'The configuration for "{config_key}" is invalid. Please check your settings.'
            if config_key else "The configuration is invalid. Please check your settings."
        ),
        ErrorCode.CONFIG_NOT_FOUND: (
            f'Configuration for "{config_key}" was not found. Please check your setup.'
            if config_key else "Required configuration was not found. Please check your setup."
        ),
        ErrorCode.CONFIG_VALIDATION_FAILED: "Configuration validation failed. Please check your settings and try again.",
        ErrorCode.MODEL_NOT_SUPPORTED: (
            f'The model "{model}" is not supported by this provider.'
            if model else "The requested model is not supported."
        ),
        ErrorCode.MODEL_NOT_FOUND: (
            f'The model "{model}" was not found. Please select a different model.'
            if model else "The requested model was not found."
        ),
        ErrorCode.MODEL_DISABLED: (
            f'The model "{model}" is currently disabled.'
            if model else "The selected model is currently disabled."
        ),
        ErrorCode.STREAMING_FAILED: "Failed to stream the response. Please try again.",
        ErrorCode.REASONING_FAILED: "Failed to process reasoning content. The response may be incomplete.",
        ErrorCode.RATE_LIMIT_EXCEEDED: "You have exceeded the rate limit. Please wait a moment before trying again.",
        ErrorCode.AUTHENTICATION_FAILED: "Authentication failed. Please check your credentials.",
        ErrorCode.DATABASE_CONNECTION_FAILED: "Unable to connect to the database. Please try again later.",
        ErrorCode.DATABASE_QUERY_FAILED: "Database query failed. Please try again later.",
        ErrorCode.DATABASE_VALIDATION_FAILED: "Database validation failed. Please check your input and try again.",
        ErrorCode.OPERATION_INVALID: "The requested artifact operation is not valid.",
        ErrorCode.ARTIFACT_NOT_FOUND: "The requested artifact was not found.",
        ErrorCode.REVERT_OUT_OF_RANGE: "The requested version cannot be restored.",
        ErrorCode.VERSION_CONFLICT: "The artifact was changed by someone else. Please try again.",
    }
    return messages.get(code, "An unexpected error occurred. Please try again later.")


class ErrorDetails(BaseModel):
    """Standardized error details structure"""
    code: ErrorCode
    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    timestamp: datetime
    correlation_id: Optional[str] = None
    context: Dict[str, Any] = {}
    suggestions: List[str] = []
    recoverable: bool = True
    retry_after_seconds: Optional[int] = None


class ArtifactAgentsException(Exception):
    """
    Base exception class for all platform errors
    Carries standardized error information and the active correlation id
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        recoverable: bool = True,
        retry_after_seconds: Optional[int] = None,
        correlation_id: Optional[str] = None,
        original_error: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.original_error = original_error
        self.details = ErrorDetails(
            code=code,
            message=message,
            category=category,
            severity=severity,
            timestamp=datetime.now(timezone.utc),
            correlation_id=correlation_id or get_correlation_id(),
            context=context or {},
            suggestions=suggestions or [],
            recoverable=recoverable,
            retry_after_seconds=retry_after_seconds
        )

    @property
    def code(self) -> ErrorCode:
        return self.details.code

    @property
    def correlation_id(self) -> Optional[str]:
        return self.details.correlation_id

    def user_message(self) -> str:
        """Natural-language explanation safe to show in the chat surface"""
        return get_user_friendly_message(self.details.code, **self.details.context)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        return {
            "error": {
                "code": self.details.code.value,
                "message": self.user_message(),
                "detail": self.details.message,
                "category": self.details.category.value,
                "severity": self.details.severity.value,
                "timestamp": self.details.timestamp.isoformat(),
                "correlation_id": self.details.correlation_id,
                "context": self.details.context,
                "suggestions": self.details.suggestions,
                "recoverable": self.details.recoverable,
                "retry_after_seconds": self.details.retry_after_seconds
            }
        }

    def to_log_dict(self) -> Dict[str, Any]:
        """Convert exception to structured logging format"""
        return {
            "error_code": self.details.code.value,
            "error_message": self.details.message,
            "error_category": self.details.category.value,
            "error_severity": self.details.severity.value,
            "correlation_id": self.details.correlation_id,
            "context": self.details.context,
            "recoverable": self.details.recoverable
        }


# Specific exception classes for the error taxonomy

class ConfigurationException(ArtifactAgentsException):
    """Raised when configuration is missing, malformed or incomplete. Fails the turn."""

    def __init__(
        self,
        message: str,
        config_key: str,
        code: ErrorCode = ErrorCode.INVALID_CONFIGURATION,
        **kwargs
    ):
        super().__init__(
            message=message,
            code=code,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            context={"config_key": config_key},
            suggestions=[
                "Review the agent configuration for this key",
                "Make sure every enabled tool has a description and prompts"
            ],
            recoverable=False,
            **kwargs
        )


class ProviderException(ArtifactAgentsException):
    """Raised when the upstream model provider fails. Aborts the turn."""

    def __init__(
        self,
        message: str,
        provider: str,
        code: ErrorCode = ErrorCode.PROVIDER_API_ERROR,
        model: Optional[str] = None,
        **kwargs
    ):
        retry_after = 60 if code == ErrorCode.RATE_LIMIT_EXCEEDED else None
        super().__init__(
            message=message,
            code=code,
            category=ErrorCategory.LLM_SERVICE,
            severity=ErrorSeverity.HIGH,
            context={"provider": provider, "model": model},
            suggestions=[
                "Check API key validity",
                "Verify model availability"
            ],
            retry_after_seconds=retry_after,
            **kwargs
        )


class AgentException(ArtifactAgentsException):
    """Raised when a sub-agent is disabled or misconfigured. Non-fatal to the turn."""

    def __init__(
        self,
        message: str,
        agent: str,
        code: ErrorCode = ErrorCode.AGENT_DISABLED,
        **kwargs
    ):
        super().__init__(
            message=message,
            code=code,
            category=ErrorCategory.AGENT,
            severity=ErrorSeverity.MEDIUM,
            context={"agent": agent},
            suggestions=["Enable the agent or the requested operation in its configuration"],
            **kwargs
        )


class OperationException(ArtifactAgentsException):
    """Raised when an artifact operation cannot be carried out as requested"""

    def __init__(
        self,
        message: str,
        operation: str,
        code: ErrorCode = ErrorCode.OPERATION_INVALID,
        artifact_id: Optional[str] = None,
        **kwargs
    ):
        category = {
            ErrorCode.ARTIFACT_NOT_FOUND: ErrorCategory.NOT_FOUND,
            ErrorCode.VERSION_CONFLICT: ErrorCategory.CONFLICT,
        }.get(code, ErrorCategory.BUSINESS_LOGIC)
        super().__init__(
            message=message,
            code=code,
            category=category,
            severity=ErrorSeverity.LOW,
            context={"operation": operation, "artifact_id": artifact_id},
            **kwargs
        )

    def user_message(self) -> str:
        # The raw message already explains the problem in plain terms
        return self.details.message


class StreamingException(ArtifactAgentsException):
    """Raised when the event stream contract is broken or the stream fails"""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.STREAMING_FAILED, **kwargs):
        super().__init__(
            message=message,
            code=code,
            category=ErrorCategory.STREAMING,
            severity=ErrorSeverity.HIGH,
            **kwargs
        )


class DatabaseException(ArtifactAgentsException):
    """Raised when database operations fail"""

    def __init__(
        self,
        message: str,
        operation: str,
        table: Optional[str] = None,
        code: ErrorCode = ErrorCode.DATABASE_QUERY_FAILED,
        **kwargs
    ):
        super().__init__(
            message=message,
            code=code,
            category=ErrorCategory.DATABASE,
            severity=ErrorSeverity.HIGH,
            context={"operation": operation, "table": table},
            suggestions=[
                "Check database connectivity",
                "Review query parameters"
            ],
            retry_after_seconds=10,
            **kwargs
        )


def map_provider_error(error: Exception, provider: str, model: Optional[str] = None) -> ArtifactAgentsException:
    """
    Classify a raw provider failure by its message

    Args:
        error: Exception raised by the model client
        provider: Provider name used for the call
        model: Model id used for the call

    Returns:
        A ProviderException for recognized failures, otherwise a StreamingException
    """
    if isinstance(error, ArtifactAgentsException):
        return error

    text = str(error)
    lowered = text.lower()

    if "api key" in lowered:
        return ProviderException(
            f"{provider} API authentication failed: {text}",
            provider=provider, code=ErrorCode.AUTHENTICATION_FAILED, model=model, original_error=error
        )
    if "quota" in lowered or "rate limit" in lowered:
        return ProviderException(
            f"{provider} API rate limit exceeded: {text}",
            provider=provider, code=ErrorCode.RATE_LIMIT_EXCEEDED, model=model, original_error=error
        )
    if "model" in lowered:
        return ProviderException(
            f"Model {model} is not supported or available: {text}",
            provider=provider, code=ErrorCode.MODEL_NOT_SUPPORTED, model=model, original_error=error
        )
    return StreamingException(f"Failed to generate response: {text}", original_error=error)


# Exception handlers for FastAPI

async def artifact_agents_exception_handler(request: Request, exc: ArtifactAgentsException) -> JSONResponse:
    """
    Global exception handler for platform exceptions
    """
    logger = logging.getLogger("exception_handler")

    logger.error(
        f"Platform exception occurred: {exc.details.code.value}",
        extra=exc.to_log_dict()
    )

    status_code = _get_status_code_for_category(exc.details.category)

    return JSONResponse(
        status_code=status_code,
        content=exc.to_dict(),
        headers=_get_error_headers(exc.details)
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handler for standard HTTP exceptions, keeping the platform error envelope
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": "HTTP_ERROR",
                "message": str(exc.detail),
                "category": _get_category_for_status(exc.status_code).value,
                "correlation_id": get_correlation_id(),
                "context": {"status_code": exc.status_code, "path": request.url.path}
            }
        }
    )


# Utility functions

def _get_status_code_for_category(category: ErrorCategory) -> int:
    """Map error categories to HTTP status codes"""
    category_status_map = {
        ErrorCategory.VALIDATION: 400,
        ErrorCategory.AUTHENTICATION: 401,
        ErrorCategory.NOT_FOUND: 404,
        ErrorCategory.CONFLICT: 409,
        ErrorCategory.BUSINESS_LOGIC: 422,
        ErrorCategory.DATABASE: 503,
        ErrorCategory.CONFIGURATION: 500,
        ErrorCategory.LLM_SERVICE: 502,
        ErrorCategory.AGENT: 422,
        ErrorCategory.STREAMING: 500,
        ErrorCategory.SYSTEM: 500
    }
    return category_status_map.get(category, 500)


def _get_category_for_status(status_code: int) -> ErrorCategory:
    """Map HTTP status codes to error categories"""
    status_category_map = {
        400: ErrorCategory.VALIDATION,
        401: ErrorCategory.AUTHENTICATION,
        404: ErrorCategory.NOT_FOUND,
        409: ErrorCategory.CONFLICT,
        422: ErrorCategory.BUSINESS_LOGIC,
        503: ErrorCategory.DATABASE
    }
    return status_category_map.get(status_code, ErrorCategory.SYSTEM)


def _get_error_headers(error_details: ErrorDetails) -> Dict[str, str]:
    """Generate appropriate headers for error responses"""
    headers = {
        "X-Error-Code": error_details.code.value,
        "X-Error-Category": error_details.category.value
    }

    if error_details.correlation_id:
        headers["X-Correlation-Id"] = error_details.correlation_id

    if error_details.retry_after_seconds:
        headers["Retry-After"] = str(error_details.retry_after_seconds)

    return headers
