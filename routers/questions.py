"""
Questions Router — read side of the question store.

GET  /api/questions                      — all questions, newest first
GET  /api/questions?id=<id>              — one question (404 if unknown)
GET  /api/questions?search=<term>        — title / description contains term
GET  /api/questions?difficulty=<Easy|Medium|Hard>
GET  /api/questions?topic=<topic>
HEAD /api/questions                      — store liveness probe

Every read goes through the TTL cache; QuestionStore invalidates on writes.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from database import crud
from database.crud import StoreError
from database.database import get_db
from database.schemas import ApiResponse
from generation.schemas import Difficulty, Question
from services.cache import cache_keys, cached
from services.rate_limit import rate_limited

router = APIRouter(prefix="/api", tags=["questions"])

log = logging.getLogger(__name__)


# ─── Cached loaders ────────────────────────────────────────────────────────────

@cached(lambda db, question_id: cache_keys.question(question_id))
def _load_question(db: Session, question_id: str) -> Optional[Question]:
    return crud.get_question(db, question_id)


@cached(lambda db: cache_keys.all_questions())
def _load_all(db: Session) -> List[Question]:
    return crud.get_all_questions(db)


@cached(lambda db, term: cache_keys.search(term.lower()))
def _load_search(db: Session, term: str) -> List[Question]:
    return crud.search_questions(db, term)


@cached(lambda db, difficulty: cache_keys.by_difficulty(difficulty.value))
def _load_by_difficulty(db: Session, difficulty: Difficulty) -> List[Question]:
    return crud.get_questions_by_difficulty(db, difficulty)


@cached(lambda db, topic: cache_keys.by_topic(topic.lower()))
def _load_by_topic(db: Session, topic: str) -> List[Question]:
    return crud.get_questions_by_topic(db, topic)


def _fail(response: Response, status_code: int, error: str) -> ApiResponse:
    response.status_code = status_code
    return ApiResponse(success=False, error=error)


# ─── Endpoints ─────────────────────────────────────────────────────────────────

@router.get("/questions", response_model=ApiResponse, response_model_exclude_none=True)
def list_questions(
    response: Response,
    id: Optional[str] = Query(None, description="Question ID"),
    search: Optional[str] = Query(None, description="Search term (title or description)"),
    difficulty: Optional[str] = Query(None, description="Easy | Medium | Hard"),
    topic: Optional[str] = Query(None, description="Exact topic name"),
    _limit=Depends(rate_limited("api")),
    db: Session = Depends(get_db),
):
    try:
        if id is not None:
            if not id.strip():
                return _fail(response, 400, "Invalid question ID provided")
            question = _load_question(db, id.strip())
            if question is None:
                return _fail(response, 404, "Question not found")
            return ApiResponse(success=True, data=question)

        if search is not None:
            if not search.strip():
                return _fail(response, 400, "Invalid search term provided")
            questions = _load_search(db, search.strip())
            return ApiResponse(
                success=True,
                data=questions,
                message=f'Found {len(questions)} questions matching "{search.strip()}"',
            )

        if difficulty is not None:
            try:
                level = Difficulty(difficulty)
            except ValueError:
                return _fail(response, 400, "Invalid difficulty level. Must be Easy, Medium, or Hard")
            questions = _load_by_difficulty(db, level)
            return ApiResponse(success=True, data=questions, message=f"Found {len(questions)} {level.value} questions")

        if topic is not None:
            if not topic.strip():
                return _fail(response, 400, "Invalid topic provided")
            questions = _load_by_topic(db, topic.strip())
            return ApiResponse(success=True, data=questions, message=f'Found {len(questions)} questions on "{topic.strip()}"')

        questions = _load_all(db)
        return ApiResponse(success=True, data=questions, message=f"Retrieved {len(questions)} questions")

    except StoreError as e:
        log.error(f"[API] GET /api/questions failed: {e}")
        return _fail(response, 500, "Database operation failed")


@router.head("/questions")
def questions_probe(db: Session = Depends(get_db)):
    try:
        crud.get_question_count(db)
    except StoreError:
        return Response(status_code=503)
    return Response(status_code=200)
