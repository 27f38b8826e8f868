"""
Pydantic schemas for the chat streaming endpoint
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal


class ChatMessage(BaseModel):
    """One message of the conversation history"""
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    """Schema for a chat turn"""
    chat_id: Optional[str] = Field(None, description="Conversation the artifacts belong to")
    messages: List[ChatMessage] = Field(..., min_length=1, description="Conversation history, oldest first")
    model_id: Optional[str] = Field(None, description="Requested primary model")


class Identity(BaseModel):
    """Opaque caller identity passed through to persistence"""
    user_id: Optional[str] = None
    chat_id: Optional[str] = None
