"""
Pydantic schemas for request/response validation
Separate from SQLAlchemy models for clean API contracts

Wire names follow the original web client (questionId, chatHistory).
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from generation.chat import MAX_MESSAGE_LENGTH
from generation.schemas import GenerationLedger


# ==========================================
# GENERATION SCHEMAS
# ==========================================

class GenerateRequest(BaseModel):
    """Batch of titles to generate. Size bounds are enforced by the orchestrator (→ 400)."""
    titles: List[str] = Field(..., description="Coding problem titles, 1-20 per request")


class GenerateResponse(BaseModel):
    success: bool
    data: Optional[GenerationLedger] = None
    message: Optional[str] = None
    error: Optional[str] = None


# ==========================================
# CHAT SCHEMAS
# ==========================================

class ChatMessage(BaseModel):
    id: str = Field(..., min_length=1)
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1, max_length=5000)
    timestamp: datetime


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(..., alias="questionId", min_length=1)
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    chat_history: List[ChatMessage] = Field(default_factory=list, alias="chatHistory", max_length=50)


class ChatResponseData(BaseModel):
    response: str


# ==========================================
# GENERIC ENVELOPE
# ==========================================

class ApiResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None


class QuestionStats(BaseModel):
    total: int
    by_difficulty: Dict[str, int]
