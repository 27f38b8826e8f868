"""
Document artifacts

Documents are produced as plain markdown text rather than a structured
object, so the UI receives appended text deltas instead of replacements.
The suggestion operation leaves the document untouched and streams proposed
edits for the user to accept or reject.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from app.agents.base import Operation, OperationRequest, SpecializedStreamingAgent
from app.agents.validation import validate_document
from app.schemas.agent_config import AgentType
from app.schemas.artifact import ArtifactKind
from app.schemas.chat import Identity
from app.services.activity_logger import AgentOperationType
from app.streaming.channel import ArtifactWriter, StreamSink

SUGGESTION_FIELDS = ("originalText", "suggestedText", "description")


class DocumentAgent(SpecializedStreamingAgent):
    """Writes and edits markdown documents"""

    agent_type = AgentType.DOCUMENT_AGENT
    kind = ArtifactKind.DOCUMENT
    default_title = "Document"
    display_name = "Document"
    activity_type = AgentOperationType.DOCUMENT_GENERATION
    explain_instruction = (
        "Add short explanatory notes after each section that clarify its key points and any terms "
        "a newcomer would not know."
    )

    def validate_content(self, content: str) -> List[str]:
        return validate_document(content)

    async def _produce(
        self,
        system_prompt: str,
        prompt: str,
        model_id: Optional[str],
        writer: Optional[ArtifactWriter]
    ) -> str:
        parts: List[str] = []
        async for delta in self.generation_client.stream_text(
            system_prompt=system_prompt, prompt=prompt, model_id=model_id
        ):
            parts.append(delta)
            if writer:
                writer.append(delta)
        return "".join(parts)

    def _emit_full(self, writer: ArtifactWriter, content: str) -> None:
        writer.append(content)

    async def _suggest(self, request: OperationRequest, sink: Optional[StreamSink], identity: Identity) -> Dict[str, Any]:
        """Stream proposed edits of a document without changing it"""
        current = await self._load_current(request)

        prompt = self._tool(Operation.SUGGESTION).user_prompt_template or ""
        for placeholder, value in {"{currentContent}": current.content, "{instruction}": request.instruction}.items():
            prompt = prompt.replace(placeholder, value)

        suggestions: List[Dict[str, Any]] = []
        async with self._artifact_stream(sink, request, current.id, current.title, clear=False) as writer:
            async for item in self.generation_client.stream_items(
                system_prompt=self._system_prompt(Operation.SUGGESTION),
                prompt=prompt,
                model_id=request.model_id,
                field="suggestions",
                item_fields=SUGGESTION_FIELDS
            ):
                suggestion = {
                    "id": str(uuid.uuid4()),
                    "documentId": current.id,
                    **item,
                    "createdAt": datetime.now(timezone.utc).isoformat(),
                    "userId": identity.user_id,
                    "chatId": identity.chat_id,
                }
                suggestions.append(suggestion)
                if writer:
                    writer.suggest(suggestion)

        self.logger.info(f"Suggested {len(suggestions)} edits for document {current.id}")
        output = {**self._summary(current.id, current.title), "isSuggestion": True, "suggestionCount": len(suggestions)}
        if sink is None or not request.stream_to_ui:
            output["suggestions"] = suggestions
        return output
