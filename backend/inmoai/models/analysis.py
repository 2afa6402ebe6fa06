"""
Models describing one orchestration run: the classified primary agent
payload, the state machine states and the result handed to the API layer.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from inmoai.models.property import AnalysisReport, PropertyRecord


class FailureSignal(BaseModel):
    """The primary agent answered but reported its own failure."""

    kind: Literal["failure"] = "failure"
    message: str


class StructuredPayload(BaseModel):
    """The primary agent returned both metrics and narrative markup."""

    kind: Literal["structured"] = "structured"
    data: dict[str, Any]


class TextPayload(BaseModel):
    """Anything else: bare text or an object missing required fields."""

    kind: Literal["text"] = "text"
    data: dict[str, Any] = Field(default_factory=dict)


PrimaryPayload = FailureSignal | StructuredPayload | TextPayload


class OrchestrationState(str, Enum):
    """States of the report generation state machine."""

    IDLE = "idle"
    TRYING_PRIMARY = "trying_primary"
    PRIMARY_SUCCEEDED = "primary_succeeded"
    TRYING_FALLBACK = "trying_fallback"
    FALLBACK_SUCCEEDED = "fallback_succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {
            OrchestrationState.PRIMARY_SUCCEEDED,
            OrchestrationState.FALLBACK_SUCCEEDED,
            OrchestrationState.FAILED,
        }


class ReportSource(str, Enum):
    """Which agent produced the report."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class Notice(BaseModel):
    """A user-visible message raised during orchestration."""

    level: Literal["warning", "error"] = "warning"
    message: str


class OrchestrationResult(BaseModel):
    """Outcome of a single submission."""

    state: OrchestrationState
    source: ReportSource | None = None
    report: AnalysisReport | None = None
    record: PropertyRecord | None = None
    notices: list[Notice] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.report is not None


class StreamEvent(BaseModel):
    """Event sent during streaming analysis."""

    type: str = Field(description="Event type: status, notice, result, error")
    message: str = Field(default="", description="Human-readable message")
    state: OrchestrationState | None = Field(default=None, description="Orchestrator state")
    data: dict[str, Any] | None = Field(default=None, description="Additional event data")
