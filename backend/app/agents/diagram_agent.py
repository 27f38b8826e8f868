"""
Mermaid diagram artifacts
"""

from typing import List

from app.agents.base import SpecializedStreamingAgent
from app.agents.validation import validate_mermaid_diagram
from app.schemas.agent_config import AgentType
from app.schemas.artifact import ArtifactKind
from app.services.activity_logger import AgentOperationType


class DiagramAgent(SpecializedStreamingAgent):
    """Writes and edits Mermaid diagrams; streams whole-buffer replacements"""

    agent_type = AgentType.MERMAID_AGENT
    kind = ArtifactKind.DIAGRAM
    default_title = "Mermaid Diagram"
    display_name = "Mermaid"
    activity_type = AgentOperationType.DIAGRAM_GENERATION
    explain_instruction = (
        "Add %% comments that explain what each node, edge and subgraph in this diagram represents."
    )

    def validate_content(self, content: str) -> List[str]:
        return validate_mermaid_diagram(content)
