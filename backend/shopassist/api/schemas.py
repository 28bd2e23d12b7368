from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(_CamelModel):
    tenant_id: str = Field(alias="tenantId", min_length=1)
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    message: str = Field(min_length=1)
    conversation_history: List[HistoryMessage] = Field(default_factory=list, alias="conversationHistory")


class ChatResponse(_CamelModel):
    type: Literal["message", "tool_result"]
    provider: str
    model: str
    text: Optional[str] = None
    action: Optional[str] = None
    params: Optional[Dict[str, Any]] = None
    tool_result: Optional[Dict[str, Any]] = Field(default=None, alias="toolResult")
    grounded_text: Optional[str] = Field(default=None, alias="groundedText")
    error: Optional[str] = None


class ActionRequest(_CamelModel):
    tenant_id: str = Field(alias="tenantId", min_length=1)
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    action: str = Field(min_length=1)
    params: Dict[str, Any] = Field(default_factory=dict)


class ActionResponse(BaseModel):
    action: str
    result: Dict[str, Any]
