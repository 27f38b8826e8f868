"""
Specialized Streaming Agent base

One agent per artifact kind. Each agent runs the generate/create/update/fix/
explain/revert operations against the version store and streams the artifact
to the UI while it is being produced.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, ClassVar, Dict, List, Optional
import logging
import uuid

from pydantic import BaseModel, Field

from app.core.exceptions import (
    AgentException, ArtifactAgentsException, ErrorCode, OperationException, get_user_friendly_message
)
from app.schemas.agent_config import AgentToolConfig, AgentType, OperationToolConfig
from app.schemas.artifact import ArtifactKind, ArtifactVersionRecord
from app.schemas.chat import Identity
from app.services.activity_logger import AgentActivityLogger, AgentOperationCategory, AgentOperationType
from app.services.artifact_store import ArtifactVersionStore
from app.streaming.channel import ArtifactWriter, StreamSink


class Operation(str, Enum):
    """Operations a specialized agent can run"""
    GENERATE = "generate"
    CREATE = "create"
    UPDATE = "update"
    FIX = "fix"
    EXPLAIN = "explain"
    REVERT = "revert"
    SUGGESTION = "suggestion"


class OperationRequest(BaseModel):
    """Input of a specialized agent"""
    operation: Operation
    instruction: str = ""
    artifact_id: Optional[str] = None
    target_version: Optional[int] = None
    error_info: Optional[str] = None
    model_id: Optional[str] = None
    stream_to_ui: bool = True


class AgentResult(BaseModel):
    """Outcome of an agent execution, handed back to the orchestrator as the tool result"""
    success: bool
    output: Any = None
    error_code: Optional[str] = None


Handler = Callable[[OperationRequest, Optional[StreamSink], Identity], Awaitable[Dict[str, Any]]]


class SpecializedStreamingAgent(ABC):
    """
    Base class for the code, diagram and document agents

    Subclasses set the class attributes and implement ``validate_content``.
    Structured agents stream whole-buffer replacements; the document agent
    overrides ``_produce`` to stream appended text.
    """

    agent_type: ClassVar[AgentType]
    kind: ClassVar[ArtifactKind]
    default_title: ClassVar[str]
    display_name: ClassVar[str]
    activity_type: ClassVar[AgentOperationType]
    # used by explain when the caller gives no instruction
    explain_instruction: ClassVar[str]

    def __init__(
        self,
        config: AgentToolConfig,
        generation_client,
        store: ArtifactVersionStore,
        activity_logger: Optional[AgentActivityLogger] = None
    ):
        self.config = config
        self.generation_client = generation_client
        self.store = store
        self.activity_logger = activity_logger or AgentActivityLogger()
        self.logger = logging.getLogger(self.__class__.__name__)

        self._handlers: Dict[Operation, Handler] = {
            Operation.GENERATE: self._generate,
            Operation.CREATE: self._create,
            Operation.UPDATE: self._update,
            Operation.FIX: self._fix,
            Operation.EXPLAIN: self._explain,
            Operation.REVERT: self._revert,
            Operation.SUGGESTION: self._suggest,
        }
        missing = [operation.value for operation in Operation if operation not in self._handlers]
        if missing:
            raise AgentException(
                f"{self.__class__.__name__} has no handler for: {', '.join(missing)}",
                agent=self.agent_type.value,
                code=ErrorCode.AGENT_CREATION_FAILED
            )

    @abstractmethod
    def validate_content(self, content: str) -> List[str]:
        """Return advisory warnings about generated content"""

    async def execute(
        self,
        request: OperationRequest,
        sink: Optional[StreamSink],
        identity: Identity
    ) -> AgentResult:
        """
        Run one operation

        Never raises for operational failures; they come back as an unsuccessful
        AgentResult whose output is a user-facing "Error: ..." string.
        Cancellation is propagated.
        """
        try:
            async with self.activity_logger.track(
                self.agent_type,
                self.activity_type,
                AgentOperationCategory.GENERATION,
                user_id=identity.user_id,
                resource_id=request.artifact_id,
                resource_type=self.kind.value,
                model_id=request.model_id,
                operation_metadata={"operation": request.operation.value}
            ) as activity:
                self._check_enabled(request.operation)
                output = await self._handlers[request.operation](request, sink, identity)
                activity.resource_id = output.get("id", activity.resource_id)
            return AgentResult(success=True, output=output)

        except ArtifactAgentsException as e:
            self.logger.warning(
                f"{request.operation.value} failed: {e.details.message}",
                extra=e.to_log_dict()
            )
            return AgentResult(success=False, output=f"Error: {e.user_message()}", error_code=e.code.value)
        except Exception as e:
            self.logger.error(f"{request.operation.value} failed unexpectedly: {e}", exc_info=True)
            return AgentResult(
                success=False,
                output=f"Error: {get_user_friendly_message(ErrorCode.STREAMING_FAILED)}",
                error_code=ErrorCode.STREAMING_FAILED.value
            )

    # Configuration

    def _check_enabled(self, operation: Operation) -> None:
        if not self.config.enabled:
            raise AgentException(f"{self.agent_type.value} is disabled", agent=self.display_name)
        tool = self.config.tools.get(operation.value)
        if tool is None or not tool.enabled:
            raise AgentException(
                f"{operation.value} is disabled for {self.agent_type.value}",
                agent=f"{self.display_name} {operation.value}"
            )

    def _tool(self, operation: Operation) -> OperationToolConfig:
        return self.config.tools[operation.value]

    def _system_prompt(self, operation: Operation) -> str:
        parts = [self.config.system_prompt, self._tool(operation).system_prompt]
        return "\n\n".join(part.strip() for part in parts if part and part.strip())

    def _title_from(self, instruction: str) -> str:
        lines = instruction.strip().splitlines()
        title = lines[0][:100].strip() if lines else ""
        return title or self.default_title

    # Content production

    async def _produce(
        self,
        system_prompt: str,
        prompt: str,
        model_id: Optional[str],
        writer: Optional[ArtifactWriter]
    ) -> str:
        """Generate the full content, streaming each partial snapshot to the writer"""
        if writer is None:
            result = await self.generation_client.generate_object(
                system_prompt=system_prompt, prompt=prompt, model_id=model_id, field="content"
            )
            return result["content"]

        content = ""
        async for partial in self.generation_client.stream_object(
            system_prompt=system_prompt, prompt=prompt, model_id=model_id, field="content"
        ):
            content = partial["content"]
            writer.replace(content)
        return content

    def _emit_full(self, writer: ArtifactWriter, content: str) -> None:
        """Send a complete snapshot as a single delta"""
        writer.replace(content)

    def _advise(self, content: str, operation: Operation) -> None:
        for warning in self.validate_content(content):
            self.logger.warning(f"{operation.value}: {warning}; keeping content")

    @asynccontextmanager
    async def _artifact_stream(
        self,
        sink: Optional[StreamSink],
        request: OperationRequest,
        artifact_id: str,
        title: str,
        restore: Optional[str] = None,
        clear: bool = True
    ) -> AsyncIterator[Optional[ArtifactWriter]]:
        """
        Open an artifact stream and always close it with one finish event

        Errors still close the stream before propagating. When ``restore`` is
        given, the panel is first reset to that content so a half-written
        buffer is never the last thing shown. Cancellation leaves the stream
        open so nothing is reported as complete.
        """
        writer = None
        if sink is not None and request.stream_to_ui:
            writer = ArtifactWriter(sink, artifact_id, self.kind.value, title)
            writer.open(clear=clear)
        try:
            yield writer
        except Exception:
            if writer:
                if restore is not None:
                    writer.replace(restore)
                writer.finish()
            raise
        if writer:
            writer.finish()

    # Persistence

    async def _load_current(self, request: OperationRequest) -> ArtifactVersionRecord:
        operation = request.operation.value
        if not request.artifact_id:
            raise OperationException(f"The {operation} operation requires an artifact id", operation=operation)

        current = await self.store.get_current(request.artifact_id)
        if current is None:
            raise OperationException(
                f"Artifact {request.artifact_id} was not found",
                operation=operation,
                code=ErrorCode.ARTIFACT_NOT_FOUND,
                artifact_id=request.artifact_id
            )
        if current.kind != self.kind:
            raise OperationException(
                f"Artifact {request.artifact_id} is a {current.kind.value} artifact, "
                f"not a {self.kind.value} artifact",
                operation=operation,
                artifact_id=request.artifact_id
            )
        return current

    async def _save(
        self,
        request: OperationRequest,
        identity: Identity,
        *,
        artifact_id: str,
        content: str,
        title: str,
        metadata: Dict[str, Any],
        parent_version_id: Optional[int] = None,
        expected_current_version: Optional[int] = None
    ) -> Optional[ArtifactVersionRecord]:
        if not request.stream_to_ui:
            self.logger.info(f"Artifact {artifact_id} not saved: streaming disabled")
            return None
        if identity.user_id is None:
            self.logger.debug(f"Saving artifact {artifact_id} without a user")
        return await self.store.save_version(
            artifact_id,
            content=content,
            title=title,
            kind=self.kind,
            parent_version_id=parent_version_id,
            metadata=metadata,
            user_id=identity.user_id,
            chat_id=identity.chat_id,
            expected_current_version=expected_current_version
        )

    def _summary(self, artifact_id: str, title: str) -> Dict[str, Any]:
        return {"id": artifact_id, "title": title, "kind": self.kind.value}

    # Handlers

    async def _generate(self, request: OperationRequest, sink: Optional[StreamSink], identity: Identity) -> Dict[str, Any]:
        content = await self._produce(
            self._system_prompt(Operation.GENERATE), request.instruction, request.model_id, writer=None
        )
        self._advise(content, Operation.GENERATE)
        return {"content": content, "generated": True}

    async def _create(self, request: OperationRequest, sink: Optional[StreamSink], identity: Identity) -> Dict[str, Any]:
        artifact_id = str(uuid.uuid4())
        title = self._title_from(request.instruction)

        async with self._artifact_stream(sink, request, artifact_id, title, restore="") as writer:
            content = await self._produce(
                self._system_prompt(Operation.CREATE), request.instruction, request.model_id, writer
            )
            self._advise(content, Operation.CREATE)
            await self._save(
                request, identity,
                artifact_id=artifact_id,
                content=content,
                title=title,
                metadata={
                    "updateType": Operation.CREATE.value,
                    "agent": self.agent_type.value,
                    "modelUsed": self.generation_client.resolve_model_id(request.model_id),
                    "createdAt": datetime.now(timezone.utc).isoformat(),
                },
                expected_current_version=0
            )

        self.logger.info(f"Created {self.kind.value} artifact {artifact_id}")
        return self._summary(artifact_id, title)

    async def _edit(
        self,
        request: OperationRequest,
        sink: Optional[StreamSink],
        identity: Identity,
        substitutions: Dict[str, str]
    ) -> Dict[str, Any]:
        """Shared body of update, fix and explain: template prompt, full replacement, new version"""
        operation = request.operation
        current = await self._load_current(request)

        prompt = self._tool(operation).user_prompt_template or ""
        for placeholder, value in {"{currentContent}": current.content, **substitutions}.items():
            prompt = prompt.replace(placeholder, value)

        async with self._artifact_stream(
            sink, request, current.id, current.title, restore=current.content
        ) as writer:
            content = await self._produce(self._system_prompt(operation), prompt, request.model_id, writer)
            self._advise(content, operation)
            await self._save(
                request, identity,
                artifact_id=current.id,
                content=content,
                title=current.title,
                parent_version_id=current.version_number,
                metadata={
                    "updateType": operation.value,
                    "agent": self.agent_type.value,
                    "modelUsed": self.generation_client.resolve_model_id(request.model_id),
                    "updatedAt": datetime.now(timezone.utc).isoformat(),
                    "previousVersion": current.version_number,
                },
                expected_current_version=current.version_number
            )

        self.logger.info(f"Applied {operation.value} to artifact {current.id} (was version {current.version_number})")
        return self._summary(current.id, current.title)

    async def _update(self, request: OperationRequest, sink: Optional[StreamSink], identity: Identity) -> Dict[str, Any]:
        return await self._edit(request, sink, identity, {"{updateInstruction}": request.instruction})

    async def _fix(self, request: OperationRequest, sink: Optional[StreamSink], identity: Identity) -> Dict[str, Any]:
        error_info = request.error_info or request.instruction
        return await self._edit(request, sink, identity, {"{errorInfo}": error_info})

    async def _explain(self, request: OperationRequest, sink: Optional[StreamSink], identity: Identity) -> Dict[str, Any]:
        instruction = request.instruction.strip() or self.explain_instruction
        return await self._edit(request, sink, identity, {"{updateInstruction}": instruction})

    async def _revert(self, request: OperationRequest, sink: Optional[StreamSink], identity: Identity) -> Dict[str, Any]:
        current = await self._load_current(request)
        current_version = current.version_number

        if request.target_version is None and current_version <= 1:
            raise OperationException(
                "Cannot revert: No previous version exists",
                operation=Operation.REVERT.value,
                code=ErrorCode.REVERT_OUT_OF_RANGE,
                artifact_id=current.id
            )
        target_version = request.target_version if request.target_version is not None else current_version - 1
        if target_version < 1 or target_version >= current_version:
            raise OperationException(
                f"Cannot revert to version {target_version}: Current version is {current_version}",
                operation=Operation.REVERT.value,
                code=ErrorCode.REVERT_OUT_OF_RANGE,
                artifact_id=current.id
            )

        target = await self.store.get_version(current.id, target_version)
        if target is None:
            raise OperationException(
                f"Version {target_version} of artifact {current.id} was not found",
                operation=Operation.REVERT.value,
                code=ErrorCode.ARTIFACT_NOT_FOUND,
                artifact_id=current.id
            )

        async with self._artifact_stream(
            sink, request, current.id, target.title, restore=current.content
        ) as writer:
            if writer:
                self._emit_full(writer, target.content)
            await self._save(
                request, identity,
                artifact_id=current.id,
                content=target.content,
                title=target.title,
                parent_version_id=current_version,
                metadata={
                    "updateType": Operation.REVERT.value,
                    "revertedFrom": current_version,
                    "revertedTo": target_version,
                    "revertedAt": datetime.now(timezone.utc).isoformat(),
                    "modelUsed": self.generation_client.resolve_model_id(request.model_id),
                },
                expected_current_version=current_version
            )

        self.logger.info(f"Reverted artifact {current.id} from version {current_version} to {target_version}")
        return {
            **self._summary(current.id, target.title),
            "isRevert": True,
            "revertedFrom": current_version,
            "revertedTo": target_version,
        }

    async def _suggest(self, request: OperationRequest, sink: Optional[StreamSink], identity: Identity) -> Dict[str, Any]:
        raise OperationException(
            f"Suggestions are only available for documents, not {self.kind.value} artifacts",
            operation=Operation.SUGGESTION.value,
            artifact_id=request.artifact_id
        )
