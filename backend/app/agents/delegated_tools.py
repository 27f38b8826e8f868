"""
Delegated tools

Specialized agents are exposed to the primary model as langchain
StructuredTools built for each turn. A tool's coroutine closes over the
turn's sink, identity and artifact context, turns the model's arguments into
an OperationRequest and returns a small JSON summary as the tool result.
The provider tools agent is exposed the same way but returns its text.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Tuple, Type

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, Field, create_model

from app.agents.base import Operation, OperationRequest
from app.agents.registry import PROVIDER_TOOLS_TOOL, ArtifactAgentRegistry
from app.core.exceptions import ArtifactAgentsException, OperationException
from app.schemas.agent_config import NamedParameterSet, SimpleParameter, ToolDescriptor
from app.schemas.artifact import ArtifactKind, ArtifactSummary
from app.schemas.chat import Identity
from app.streaming.channel import StreamSink

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b", re.IGNORECASE
)
VERSION_PATTERN = re.compile(r"\bversion\s+(\d+)\b", re.IGNORECASE)

REVERT_KEYWORDS = ("revert", "restore", "roll back", "rollback", "undo")
FIX_KEYWORDS = ("fix", "error", "errors", "bug", "bugs", "traceback", "exception", "broken")
EXPLAIN_KEYWORDS = ("explain", "comment", "comments", "annotate")
UPDATE_KEYWORDS = (
    "update", "change", "modify", "edit", "add", "remove", "rename", "refactor",
    "improve", "extend", "rewrite", "adjust", "replace",
)
CREATE_KEYWORDS = ("write", "create", "new", "generate", "make", "build", "draft")


def keyword_pattern(keywords: Tuple[str, ...]) -> "re.Pattern[str]":
    """Whole-word match for any of the keywords"""
    return re.compile(r"\b(?:" + "|".join(re.escape(keyword) for keyword in keywords) + r")\b", re.IGNORECASE)


REVERT_PATTERN = keyword_pattern(REVERT_KEYWORDS)
FIX_PATTERN = keyword_pattern(FIX_KEYWORDS)
EXPLAIN_PATTERN = keyword_pattern(EXPLAIN_KEYWORDS)
UPDATE_PATTERN = keyword_pattern(UPDATE_KEYWORDS)
CREATE_PATTERN = keyword_pattern(CREATE_KEYWORDS)
EDIT_PATTERNS = (REVERT_PATTERN, FIX_PATTERN, EXPLAIN_PATTERN, UPDATE_PATTERN)

# Named parameters that map onto OperationRequest fields
OPTIONAL_NAMED_FIELDS: Dict[str, Any] = {
    "artifact_id": Optional[str],
    "target_version": Optional[int],
    "error_info": Optional[str],
}


@dataclass
class ArtifactContextEntry:
    artifact_id: str
    title: str
    kind: ArtifactKind


class ConversationArtifactContext:
    """Artifacts known to the current turn, most recent last"""

    def __init__(self, entries: Optional[List[ArtifactContextEntry]] = None):
        self.entries: List[ArtifactContextEntry] = list(entries or [])

    def __len__(self) -> int:
        return len(self.entries)

    def record(self, artifact_id: str, title: str, kind: ArtifactKind) -> None:
        self.entries = [entry for entry in self.entries if entry.artifact_id != artifact_id]
        self.entries.append(ArtifactContextEntry(artifact_id, title, ArtifactKind(kind)))

    def find(self, artifact_id: str) -> Optional[ArtifactContextEntry]:
        return next((entry for entry in self.entries if entry.artifact_id == artifact_id), None)

    def latest(self, kind: Optional[ArtifactKind] = None) -> Optional[ArtifactContextEntry]:
        for entry in reversed(self.entries):
            if kind is None or entry.kind == kind:
                return entry
        return None

    def enrich(self, instruction: str) -> str:
        """Append the known artifacts so follow-up instructions need not restate ids"""
        if not self.entries:
            return instruction
        listing = "\n".join(
            f"- {entry.title} ({entry.kind.value}): {entry.artifact_id}" for entry in self.entries
        )
        return f"{instruction}\n\nArtifacts in this conversation:\n{listing}"


def parse_simple_input(
    text: str,
    context: ConversationArtifactContext,
    kind: ArtifactKind
) -> OperationRequest:
    """
    Infer an OperationRequest from a single free-text argument

    An artifact id in the text selects that artifact. Without one, a request
    that asks to write, create or generate something makes a new artifact,
    and a request that only asks for a change edits the most recent artifact
    of the same kind. Keywords match whole words. Revert, fix and explain
    keywords pick those operations; anything else on an existing artifact is
    an update, and anything else without one creates a new artifact.
    """
    match = UUID_PATTERN.search(text)

    artifact_id = match.group(0) if match else None
    if artifact_id is None and not CREATE_PATTERN.search(text):
        latest = context.latest(kind)
        if latest is not None and any(pattern.search(text) for pattern in EDIT_PATTERNS):
            artifact_id = latest.artifact_id

    if artifact_id is None:
        return OperationRequest(operation=Operation.CREATE, instruction=text)

    if REVERT_PATTERN.search(text):
        version = VERSION_PATTERN.search(text)
        return OperationRequest(
            operation=Operation.REVERT,
            instruction=text,
            artifact_id=artifact_id,
            target_version=int(version.group(1)) if version else None
        )
    if FIX_PATTERN.search(text):
        return OperationRequest(operation=Operation.FIX, instruction=text, artifact_id=artifact_id, error_info=text)
    if EXPLAIN_PATTERN.search(text):
        return OperationRequest(operation=Operation.EXPLAIN, instruction=text, artifact_id=artifact_id)
    return OperationRequest(operation=Operation.UPDATE, instruction=text, artifact_id=artifact_id)


def _model_name(tool_name: str) -> str:
    return f"{tool_name[:1].upper()}{tool_name[1:]}Input"


def build_args_schema(descriptor: ToolDescriptor) -> Type[BaseModel]:
    """Pydantic argument model for a delegated tool"""
    schema = descriptor.input_parameter_schema

    if isinstance(schema, SimpleParameter):
        return create_model(
            _model_name(descriptor.name),
            **{schema.parameter_name: (str, Field(..., description=schema.parameter_description))}
        )

    fields: Dict[str, Any] = {}
    for name, param in schema.parameters.items():
        if param.enum:
            annotation: Any = Literal[tuple(param.enum)]
        elif name == "operation":
            annotation = Operation
        else:
            annotation = OPTIONAL_NAMED_FIELDS.get(name, str)

        if name in ("operation", "instruction"):
            fields[name] = (annotation, Field(..., description=param.parameter_description))
        else:
            fields[name] = (Optional[annotation], Field(None, description=param.parameter_description))
    return create_model(_model_name(descriptor.name), **fields)


class DelegatedToolset:
    """
    The delegated tools of one chat turn

    Collects the summaries of every artifact the turn touched and keeps the
    conversation artifact context current between tool calls.
    """

    def __init__(
        self,
        registry: ArtifactAgentRegistry,
        sink: Optional[StreamSink],
        identity: Identity,
        context: Optional[ConversationArtifactContext] = None,
        model_id: Optional[str] = None,
        provider: Optional[str] = None
    ):
        self.registry = registry
        self.sink = sink
        self.identity = identity
        self.context = context or ConversationArtifactContext()
        self.model_id = model_id
        self.provider = provider
        self.artifacts: List[ArtifactSummary] = []
        self.logger = logging.getLogger(self.__class__.__name__)

    def build(self, descriptors: List[ToolDescriptor]) -> List[StructuredTool]:
        return [self._build_tool(descriptor) for descriptor in descriptors]

    def _build_tool(self, descriptor: ToolDescriptor) -> StructuredTool:
        async def run_delegated_tool(**kwargs: Any) -> str:
            return await self.run(descriptor, kwargs)

        return StructuredTool.from_function(
            coroutine=run_delegated_tool,
            name=descriptor.name,
            description=descriptor.description,
            args_schema=build_args_schema(descriptor)
        )

    def to_request(self, descriptor: ToolDescriptor, kind: ArtifactKind, args: Dict[str, Any]) -> OperationRequest:
        schema = descriptor.input_parameter_schema

        if isinstance(schema, SimpleParameter):
            request = parse_simple_input(str(args.get(schema.parameter_name, "")), self.context, kind)
        elif isinstance(schema, NamedParameterSet):
            operation = args.get("operation")
            try:
                operation = Operation(operation)
            except ValueError:
                raise OperationException(f"Unknown operation '{operation}'", operation=str(operation))
            request = OperationRequest(
                operation=operation,
                instruction=args.get("instruction") or "",
                artifact_id=args.get("artifact_id"),
                target_version=args.get("target_version"),
                error_info=args.get("error_info")
            )
            if operation in (Operation.GENERATE, Operation.CREATE):
                request.artifact_id = None
            elif request.artifact_id is None:
                latest = self.context.latest(kind)
                if latest is not None:
                    request.artifact_id = latest.artifact_id

        if request.operation != Operation.REVERT:
            request.instruction = self.context.enrich(request.instruction)
        request.model_id = self.model_id
        return request

    async def run(self, descriptor: ToolDescriptor, args: Dict[str, Any]) -> str:
        """Execute a delegated tool call; failures come back as an "Error: ..." string"""
        if descriptor.name == PROVIDER_TOOLS_TOOL:
            return await self.run_provider_tools(descriptor, args)

        try:
            agent = await self.registry.create_agent(descriptor.name, self.provider)
            request = self.to_request(descriptor, agent.kind, args)
        except ArtifactAgentsException as e:
            self.logger.warning(f"Tool {descriptor.name} could not start: {e.details.message}", extra=e.to_log_dict())
            return f"Error: {e.user_message()}"

        self.logger.info(f"Tool {descriptor.name} -> {request.operation.value} ({request.artifact_id or 'new'})")
        result = await agent.execute(request, self.sink, self.identity)
        if not result.success:
            return result.output

        output = result.output
        if "id" in output:
            summary = ArtifactSummary(id=output["id"], title=output["title"], kind=output["kind"])
            self.context.record(summary.id, summary.title, summary.kind)
            self.artifacts = [item for item in self.artifacts if item.id != summary.id] + [summary]
        return json.dumps(output)

    async def run_provider_tools(self, descriptor: ToolDescriptor, args: Dict[str, Any]) -> str:
        """Web search, URL context and code execution; the result is the agent's text"""
        schema = descriptor.input_parameter_schema
        parameter = schema.parameter_name if isinstance(schema, SimpleParameter) else "instruction"
        try:
            agent = await self.registry.create_provider_tools_agent(self.provider)
        except ArtifactAgentsException as e:
            self.logger.warning(f"Tool {descriptor.name} could not start: {e.details.message}", extra=e.to_log_dict())
            return f"Error: {e.user_message()}"

        self.logger.info(f"Tool {descriptor.name} -> provider tools {agent.config.enabled_tools()}")
        result = await agent.execute(str(args.get(parameter, "")), self.identity, self.model_id)
        return result.output
