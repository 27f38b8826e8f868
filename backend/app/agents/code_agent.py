"""
Python code artifacts
"""

from typing import List

from app.agents.base import SpecializedStreamingAgent
from app.agents.validation import validate_python_code
from app.schemas.agent_config import AgentType
from app.schemas.artifact import ArtifactKind
from app.services.activity_logger import AgentOperationType


class CodeAgent(SpecializedStreamingAgent):
    """Writes and edits Python code; streams whole-buffer replacements"""

    agent_type = AgentType.PYTHON_AGENT
    kind = ArtifactKind.CODE
    default_title = "Python Code"
    display_name = "Python"
    activity_type = AgentOperationType.CODE_GENERATION
    explain_instruction = (
        "Add detailed comments to explain what this code does, including function purposes, "
        "complex logic, and key implementation details."
    )

    def validate_content(self, content: str) -> List[str]:
        return validate_python_code(content)
