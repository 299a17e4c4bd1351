"""
Tool call schemas - context threaded through a voice session's tool calls,
and the uniform result every tool returns.
"""
import json
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class ToolCallContext(BaseModel):
    """Identifiers known so far in a call. Immutable: tools return an updated copy."""
    model_config = ConfigDict(frozen=True)

    call_id: str
    org_id: str
    lead_id: Optional[str] = None
    contact_id: Optional[str] = None
    interaction_id: Optional[str] = None


class ToolResult(BaseModel):
    success: bool
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class ToolExecution(BaseModel):
    """A tool's result plus the context to use for the next tool call."""
    result: ToolResult
    context: ToolCallContext


class VapiToolCall(BaseModel):
    """One entry of a Vapi `toolCalls` / `toolCallList` array."""
    model_config = ConfigDict(extra="ignore")

    id: str
    type: Optional[str] = None
    function: dict[str, Any] = Field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.function.get("name") or ""

    @property
    def arguments(self) -> dict[str, Any]:
        """Arguments as a dict. Some assistants send them as a JSON string."""
        args = self.function.get("arguments") or {}
        if isinstance(args, str):
            try:
                args = json.loads(args)
            except ValueError:
                return {}
        return args if isinstance(args, dict) else {}
