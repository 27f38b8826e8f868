"""
Agent activity logging
Structured records of agent operations with duration and outcome
"""

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

from app.core.correlation import get_correlation_id
from app.core.exceptions import ArtifactAgentsException
from app.schemas.agent_config import AgentType


class AgentOperationType(str, Enum):
    TOOL_INVOCATION = "tool_invocation"
    CODE_GENERATION = "code_generation"
    DOCUMENT_GENERATION = "document_generation"
    DIAGRAM_GENERATION = "diagram_generation"


class AgentOperationCategory(str, Enum):
    GENERATION = "generation"
    TOOL_USE = "tool_use"


@dataclass
class AgentActivity:
    """One agent operation as recorded in the activity log"""
    agent_type: AgentType
    operation_type: AgentOperationType
    operation_category: AgentOperationCategory
    correlation_id: Optional[str] = None
    user_id: Optional[str] = None
    resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    model_id: Optional[str] = None
    duration_ms: Optional[int] = None
    success: Optional[bool] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    operation_metadata: Dict[str, Any] = field(default_factory=dict)

    def to_log_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["agent_type"] = self.agent_type.value
        data["operation_type"] = self.operation_type.value
        data["operation_category"] = self.operation_category.value
        return data


class PerformanceTracker:
    """Wall-clock duration of an operation"""

    def __init__(self):
        self._start = time.perf_counter()

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._start) * 1000)


class AgentActivityLogger:
    """Writes agent activity records to the standard logging pipeline"""

    def __init__(self, enabled: bool = True, logger_name: str = "agent_activity"):
        self.enabled = enabled
        self.logger = logging.getLogger(logger_name)

    def log(self, activity: AgentActivity) -> None:
        if not self.enabled:
            return
        outcome = "ok" if activity.success else f"failed ({activity.error_type})"
        self.logger.info(
            f"{activity.agent_type.value}.{activity.operation_type.value} {outcome} "
            f"in {activity.duration_ms}ms [{activity.correlation_id}]",
            extra={"agent_activity": activity.to_log_dict()}
        )

    @asynccontextmanager
    async def track(
        self,
        agent_type: AgentType,
        operation_type: AgentOperationType,
        operation_category: AgentOperationCategory,
        **fields: Any
    ) -> AsyncIterator[AgentActivity]:
        """
        Record an activity around a block of work

        The yielded activity may be enriched inside the block (resource id,
        metadata). Exceptions are recorded and re-raised.
        """
        activity = AgentActivity(
            agent_type=agent_type,
            operation_type=operation_type,
            operation_category=operation_category,
            correlation_id=get_correlation_id(),
            **fields
        )
        tracker = PerformanceTracker()
        try:
            yield activity
            if activity.success is None:
                activity.success = True
        except Exception as e:
            activity.success = False
            activity.error_type = e.details.code.value if isinstance(e, ArtifactAgentsException) else type(e).__name__
            activity.error_message = str(e)
            raise
        finally:
            activity.duration_ms = tracker.elapsed_ms()
            self.log(activity)
