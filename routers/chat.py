"""
Chat Router — /api/chat

POST /api/chat {"questionId": ..., "message": ..., "chatHistory": [...]}
Tutor-style answer about one stored question.
"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from database import crud
from database.crud import StoreError
from database.database import get_db
from database.schemas import ApiResponse, ChatRequest, ChatResponseData
from generation.chat import generate_chat_response
from generation.errors import ServiceError, ValidationError
from generation.gpt_client import GenerationClient
from routers.deps import get_llm_client
from services.rate_limit import rate_limited

router = APIRouter(prefix="/api", tags=["chat"])

log = logging.getLogger(__name__)


@router.post("/chat", response_model=ApiResponse, response_model_exclude_none=True)
async def chat(
    request: ChatRequest,
    response: Response,
    _limit=Depends(rate_limited("chat")),
    db: Session = Depends(get_db),
    client: GenerationClient = Depends(get_llm_client),
):
    try:
        question = crud.get_question(db, request.question_id)
    except StoreError as e:
        log.error(f"[API] chat lookup failed: {e}")
        response.status_code = 500
        return ApiResponse(success=False, error="Database operation failed")

    if question is None:
        response.status_code = 404
        return ApiResponse(success=False, error="Question not found")

    try:
        answer = await generate_chat_response(client, question, request.message, request.chat_history)
    except ValidationError as e:
        response.status_code = 400
        return ApiResponse(success=False, error=str(e))
    except ServiceError as e:
        log.warning(f"[API] chat generation failed for {request.question_id}: {e}")
        response.status_code = 503
        return ApiResponse(success=False, error="AI service temporarily unavailable. Please try again later.")

    return ApiResponse(
        success=True,
        data=ChatResponseData(response=answer),
        message="Chat response generated successfully",
    )
