"""
Shared FastAPI dependencies — wiring of the generation core.
Tests swap any of these through app.dependency_overrides.
"""

from fastapi import Depends, HTTPException

from database.crud import QuestionStore
from database.database import SessionLocal
from generation.gpt_client import GenerationClient, get_generation_client
from generation.orchestrator import GenerationOrchestrator
from services.cache import ResultCache, get_cache


def get_llm_client() -> GenerationClient:
    try:
        return get_generation_client()
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))


def get_question_store(cache: ResultCache = Depends(get_cache)) -> QuestionStore:
    return QuestionStore(SessionLocal, cache)


def get_orchestrator(
    client: GenerationClient = Depends(get_llm_client),
    store: QuestionStore = Depends(get_question_store),
) -> GenerationOrchestrator:
    return GenerationOrchestrator(client=client, store=store)
