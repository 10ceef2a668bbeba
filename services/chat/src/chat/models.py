# services/chat/src/chat/models.py

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

## CHAT MODELS ##


class ContentPart(BaseModel):
    """One ordered part of a message's content (only text parts carry text)."""

    type: str = "text"
    text: Optional[str] = None


class ChatMessage(BaseModel):
    """
    A single conversation turn as sent by the browser.

    ``content`` is either plain text or an ordered list of parts; ``parts``
    is accepted as an alternative field for clients that send both.
    """

    role: Literal["user", "assistant", "system", "tool"]
    content: Union[str, List[ContentPart], None] = None
    parts: Optional[List[ContentPart]] = None
    tool_call_id: Optional[str] = None

    def text(self) -> str:
        """Flatten the content to plain text."""
        if isinstance(self.content, str):
            if self.content or not self.parts:
                return self.content
            pieces = self.parts
        else:
            pieces = self.content or self.parts or []
        return "".join(p.text or "" for p in pieces if p.type == "text")


class ChatRequest(BaseModel):
    """Request body for the chat endpoints: the full message history."""

    messages: List[ChatMessage] = Field(..., min_length=1)


## TOOL CALL MODELS ##


class ToolCallRecord(BaseModel):
    """A tool call made by the model during one orchestration step."""

    id: str
    name: str
    arguments: str = "{}"
    args: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None
    duration_ms: Optional[float] = None


class ToolResult(BaseModel):
    """
    Result of executing one tool call.

    ``payload`` is either the formatted success object or ``{"error": msg}``.
    """

    tool_call_id: str
    name: str
    payload: Dict[str, Any]
    duration_ms: Optional[float] = None

    @property
    def is_error(self) -> bool:
        return "error" in self.payload


## STREAM MODELS ##

StreamEventType = Literal[
    "step", "text", "tool_call", "tool_result", "finish", "error", "debug", "done"
]


class StreamEvent(BaseModel):
    """One ordered chunk of the streamed response."""

    type: StreamEventType
    content: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool: Optional[str] = None
    state: Optional[Literal["pending", "result"]] = None
    args: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    step: Optional[int] = None
    steps: Optional[int] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


## ORCHESTRATION MODELS ##


class OrchestrationResult(BaseModel):
    """Everything a finished orchestration produced; filled in as it runs."""

    question: str = ""
    text_parts: List[str] = Field(default_factory=list)
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    steps: int = 0
    finish_reason: Optional[Literal["stop", "step_limit"]] = None
    completed: bool = False

    @property
    def answer(self) -> str:
        return "".join(self.text_parts)


class ConversationLogEntry(BaseModel):
    """Row appended to the conversation log table."""

    org_id: str
    question: str
    tool_calls: List[Dict[str, Any]] = Field(default_factory=list)
    response: str
    model: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
