from app.db.session import Base
from .models import ArtifactVersion, AgentConfigEntry

__all__ = [
    "Base",
    "ArtifactVersion",
    "AgentConfigEntry"
]
