"""
Structured Generation Client
Wraps chat model calls that return token streams or partial structured objects
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple, Union

from langchain_core.messages import AIMessageChunk, BaseMessage, HumanMessage, SystemMessage
from langchain_core.tools import BaseTool
from langchain_core.utils.json import parse_partial_json

from app.core.exceptions import (
    ArtifactAgentsException, ErrorCode, StreamingException, map_provider_error
)
from app.core.llm_providers import ChatModelPool

logger = logging.getLogger(__name__)

STRUCTURED_OUTPUT_INSTRUCTIONS = (
    "Respond with a single JSON object of the form {{\"{field}\": \"...\"}} where the "
    "value of \"{field}\" is the complete result as a string. Do not add any text "
    "before or after the JSON object."
)

LIST_OUTPUT_INSTRUCTIONS = (
    "Respond with a single JSON object of the form {{\"{field}\": [...]}} where each "
    "element of \"{field}\" is an object with the string fields {item_fields}. Do not add "
    "any text before or after the JSON object."
)


def message_text(message: BaseMessage) -> str:
    """Extract plain text from a message or chunk whose content may be a list of parts"""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


def strip_json_fence(text: str) -> str:
    """Drop a markdown code fence wrapped around a JSON payload"""
    stripped = text.lstrip()
    if stripped.startswith("```"):
        newline = stripped.find("\n")
        stripped = stripped[newline + 1:] if newline != -1 else ""
        fence_end = stripped.rfind("```")
        if fence_end != -1:
            stripped = stripped[:fence_end]
    return stripped


def parse_partial_object(buffer: str) -> Optional[Dict[str, Any]]:
    """Parse a possibly truncated JSON object, returning None until one is recognizable"""
    payload = strip_json_fence(buffer).strip()
    if not payload.startswith("{"):
        return None
    try:
        parsed = parse_partial_json(payload)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


class GenerationClient:
    """
    Model-call capability used by the orchestrator and the artifact agents

    Given a model id, a system prompt and an output field, produces either a
    stream of partial structured objects (each one a complete regeneration of
    the object so far) or a stream of raw text tokens.
    """

    def __init__(self, model_pool: ChatModelPool, default_temperature: Optional[float] = None):
        self.model_pool = model_pool
        self.default_temperature = default_temperature
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def provider_name(self) -> str:
        return self.model_pool.provider_type.value

    def resolve_model_id(self, model_id: Optional[str]) -> str:
        return self.model_pool.resolve_model_id(model_id)

    def _raise_mapped(self, error: Exception, model_id: Optional[str]) -> None:
        mapped = map_provider_error(error, provider=self.provider_name, model=model_id)
        if mapped is error:
            raise error
        self.logger.error(f"Model call failed ({mapped.details.code.value}): {error}")
        raise mapped from error

    async def stream_object(
        self,
        *,
        system_prompt: str,
        prompt: str,
        model_id: Optional[str] = None,
        field: str = "content",
        temperature: Optional[float] = None
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Stream partial objects as the model writes them

        Yields:
            The whole object parsed so far, each time the value of ``field`` changes

        Raises:
            ProviderException: upstream authentication, rate-limit or model failures
            StreamingException: the stream failed or produced no value for ``field``
        """
        messages = [
            SystemMessage(content=f"{system_prompt}\n\n{STRUCTURED_OUTPUT_INSTRUCTIONS.format(field=field)}"),
            HumanMessage(content=prompt),
        ]
        model = self.model_pool.get_model(model_id, self._temperature(temperature))

        buffer = ""
        last_value: Optional[str] = None
        try:
            async for chunk in model.astream(messages):
                buffer += message_text(chunk)
                partial = parse_partial_object(buffer)
                if not partial:
                    continue
                value = partial.get(field)
                if isinstance(value, str) and value != last_value:
                    last_value = value
                    yield partial
        except ArtifactAgentsException:
            raise
        except Exception as e:
            self._raise_mapped(e, model_id)

        final = parse_partial_object(buffer)
        if not final or not isinstance(final.get(field), str):
            raise StreamingException(
                f"Model response did not contain a '{field}' value",
                code=ErrorCode.STREAMING_FAILED,
                context={"field": field, "response_preview": buffer[:200]}
            )
        if final.get(field) != last_value:
            yield final

    async def generate_object(
        self,
        *,
        system_prompt: str,
        prompt: str,
        model_id: Optional[str] = None,
        field: str = "content",
        temperature: Optional[float] = None
    ) -> Dict[str, Any]:
        """Run a structured generation to completion and return the final object"""
        result: Dict[str, Any] = {}
        async for partial in self.stream_object(
            system_prompt=system_prompt,
            prompt=prompt,
            model_id=model_id,
            field=field,
            temperature=temperature,
        ):
            result = partial
        return result

    async def stream_items(
        self,
        *,
        system_prompt: str,
        prompt: str,
        item_fields: Tuple[str, ...],
        model_id: Optional[str] = None,
        field: str = "items",
        temperature: Optional[float] = None
    ) -> AsyncIterator[Dict[str, str]]:
        """
        Stream the elements of a list-valued field one by one

        An element is yielded once the model has moved on to the next one, or
        when the response ends. Elements missing any of ``item_fields`` are
        dropped.

        Raises:
            ProviderException: upstream authentication, rate-limit or model failures
            StreamingException: the response did not contain a list under ``field``
        """
        instructions = LIST_OUTPUT_INSTRUCTIONS.format(
            field=field, item_fields=", ".join(f'"{name}"' for name in item_fields)
        )
        messages = [
            SystemMessage(content=f"{system_prompt}\n\n{instructions}"),
            HumanMessage(content=prompt),
        ]
        model = self.model_pool.get_model(model_id, self._temperature(temperature))

        def complete(item: Any) -> bool:
            return isinstance(item, dict) and all(
                isinstance(item.get(name), str) and item[name].strip() for name in item_fields
            )

        buffer = ""
        seen = 0
        try:
            async for chunk in model.astream(messages):
                buffer += message_text(chunk)
                partial = parse_partial_object(buffer)
                items = partial.get(field) if partial else None
                if not isinstance(items, list):
                    continue
                # every element before the last one is closed
                while seen < len(items) - 1:
                    item = items[seen]
                    seen += 1
                    if complete(item):
                        yield {name: item[name] for name in item_fields}
        except ArtifactAgentsException:
            raise
        except Exception as e:
            self._raise_mapped(e, model_id)

        final = parse_partial_object(buffer)
        items = final.get(field) if final else None
        if not isinstance(items, list):
            raise StreamingException(
                f"Model response did not contain a '{field}' list",
                code=ErrorCode.STREAMING_FAILED,
                context={"field": field, "response_preview": buffer[:200]}
            )
        for item in items[seen:]:
            if complete(item):
                yield {name: item[name] for name in item_fields}

    async def stream_text(
        self,
        *,
        system_prompt: str,
        prompt: str,
        model_id: Optional[str] = None,
        temperature: Optional[float] = None
    ) -> AsyncIterator[str]:
        """Stream raw text deltas in generation order"""
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=prompt)]
        model = self.model_pool.get_model(model_id, self._temperature(temperature))
        try:
            async for chunk in model.astream(messages):
                text = message_text(chunk)
                if text:
                    yield text
        except ArtifactAgentsException:
            raise
        except Exception as e:
            self._raise_mapped(e, model_id)

    async def stream_chat(
        self,
        *,
        messages: List[BaseMessage],
        model_id: Optional[str] = None,
        tools: Optional[Sequence[Union[BaseTool, Dict[str, Any]]]] = None,
        temperature: Optional[float] = None
    ) -> AsyncIterator[AIMessageChunk]:
        """Stream a chat completion, with tools bound when any are given"""
        model = self.model_pool.get_model(model_id, self._temperature(temperature))
        runnable = model
        if tools:
            try:
                runnable = model.bind_tools(list(tools))
            except NotImplementedError:
                self.logger.warning(f"{type(model).__name__} does not support tool calling; tools ignored")
        try:
            async for chunk in runnable.astream(messages):
                yield chunk
        except ArtifactAgentsException:
            raise
        except Exception as e:
            self._raise_mapped(e, model_id)

    def _temperature(self, temperature: Optional[float]) -> Optional[float]:
        return self.default_temperature if temperature is None else temperature
