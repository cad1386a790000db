"""
CRUD operations for the question store
All database operations go through these functions

Every SQLAlchemy failure surfaces as StoreError. QuestionStore adapts the
session-based functions for callers that own no session (the orchestrator)
and invalidates the read cache on writes.
"""

import functools
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database.database import SessionLocal
from database.models import QuestionRecord
from generation.schemas import Difficulty, Question
from services.cache import ResultCache, cache as default_cache, cache_keys

log = logging.getLogger(__name__)


class StoreError(Exception):
    pass


def _store_operation(action: str):
    """Roll back and re-raise SQLAlchemy failures as StoreError."""
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(db: Session, *args, **kwargs):
            try:
                return fn(db, *args, **kwargs)
            except SQLAlchemyError as e:
                db.rollback()
                log.error(f"[STORE] failed to {action}: {e}")
                raise StoreError(f"Failed to {action}: {e}") from e
        return wrapper
    return decorator


# ==========================================
# CONVERSION
# ==========================================

def _to_record(question: Question) -> QuestionRecord:
    data = question.model_dump(mode="json")
    return QuestionRecord(
        id=question.id,
        title=question.title,
        difficulty=question.difficulty.value,
        topics=data["topics"],
        description=question.description,
        example=data["example"],
        solution_python=question.solution_python,
        step_by_step_explanation=data["step_by_step_explanation"],
        pseudocode=data["pseudocode"],
        created_at=question.created_at.isoformat(),
        updated_at=question.updated_at.isoformat() if question.updated_at else None,
    )


def _to_question(record: QuestionRecord) -> Question:
    try:
        return Question(
            id=record.id,
            title=record.title,
            difficulty=record.difficulty,
            topics=record.topics,
            description=record.description,
            example=record.example,
            solution_python=record.solution_python,
            step_by_step_explanation=record.step_by_step_explanation,
            pseudocode=record.pseudocode,
            created_at=datetime.fromisoformat(record.created_at),
            updated_at=datetime.fromisoformat(record.updated_at) if record.updated_at else None,
        )
    except (SchemaValidationError, ValueError, TypeError) as e:
        raise StoreError(f"Failed to parse question data for '{record.id}': {e}") from e


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ==========================================
# QUESTION CRUD
# ==========================================

@_store_operation("save question")
def save_question(db: Session, question: Question) -> List[str]:
    """
    Upsert by id. Any other row holding the same title is replaced (last writer wins).
    Returns the ids of replaced rows.
    """
    replaced = [
        row.id for row in db.query(QuestionRecord.id).filter(
            QuestionRecord.title == question.title,
            QuestionRecord.id != question.id,
        ).all()
    ]
    if replaced:
        db.query(QuestionRecord).filter(QuestionRecord.id.in_(replaced)).delete(synchronize_session=False)
    db.merge(_to_record(question))
    db.commit()
    return replaced


@_store_operation("get question")
def get_question(db: Session, question_id: str) -> Optional[Question]:
    """Get question by ID"""
    if not question_id or not isinstance(question_id, str):
        return None
    record = db.query(QuestionRecord).filter(QuestionRecord.id == question_id).first()
    return _to_question(record) if record else None


@_store_operation("get all questions")
def get_all_questions(db: Session) -> List[Question]:
    """All questions, newest first"""
    records = db.query(QuestionRecord).order_by(QuestionRecord.created_at.desc()).all()
    return [_to_question(r) for r in records]


@_store_operation("get questions by difficulty")
def get_questions_by_difficulty(db: Session, difficulty: Difficulty) -> List[Question]:
    records = db.query(QuestionRecord).filter(
        QuestionRecord.difficulty == Difficulty(difficulty).value
    ).order_by(QuestionRecord.created_at.desc()).all()
    return [_to_question(r) for r in records]


@_store_operation("search questions")
def search_questions(db: Session, term: str) -> List[Question]:
    """Questions whose title or description contains term (case-insensitive), newest first"""
    if not term or not isinstance(term, str) or not term.strip():
        return []
    pattern = f"%{_escape_like(term.strip())}%"
    records = db.query(QuestionRecord).filter(
        or_(
            QuestionRecord.title.ilike(pattern, escape="\\"),
            QuestionRecord.description.ilike(pattern, escape="\\"),
        )
    ).order_by(QuestionRecord.created_at.desc()).all()
    return [_to_question(r) for r in records]


@_store_operation("get questions by topic")
def get_questions_by_topic(db: Session, topic: str) -> List[Question]:
    if not topic or not isinstance(topic, str) or not topic.strip():
        return []
    wanted = topic.strip().lower()
    # topics is a JSON list; match exact entries rather than substrings of the encoded text
    return [q for q in get_all_questions(db) if any(t.lower() == wanted for t in q.topics)]


@_store_operation("delete question")
def delete_question(db: Session, question_id: str) -> bool:
    if not question_id or not isinstance(question_id, str):
        return False
    deleted = db.query(QuestionRecord).filter(QuestionRecord.id == question_id).delete(synchronize_session=False)
    db.commit()
    return deleted > 0


@_store_operation("get question count")
def get_question_count(db: Session) -> int:
    return db.query(func.count(QuestionRecord.id)).scalar() or 0


@_store_operation("count questions by difficulty")
def count_by_difficulty(db: Session) -> Dict[str, int]:
    counts = {d.value: 0 for d in Difficulty}
    rows = db.query(QuestionRecord.difficulty, func.count(QuestionRecord.id)).group_by(QuestionRecord.difficulty).all()
    for difficulty, count in rows:
        counts[difficulty] = count
    return counts


def get_question_stats(db: Session) -> Dict[str, object]:
    return {"total": get_question_count(db), "by_difficulty": count_by_difficulty(db)}


# ==========================================
# SESSION-OWNING STORE
# ==========================================

class QuestionStore:
    """
    Persistence capability handed to the orchestrator.
    One short-lived session per call; writes invalidate the cached read paths.
    """

    def __init__(self, session_factory=SessionLocal, cache: Optional[ResultCache] = None):
        self.session_factory = session_factory
        self.cache = default_cache if cache is None else cache

    @contextmanager
    def _session(self):
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def _invalidate(self, *question_ids: str) -> None:
        self.cache.delete_prefix(cache_keys.ALL_PREFIX)
        for question_id in question_ids:
            self.cache.delete(cache_keys.question(question_id))

    def save_question(self, question: Question) -> None:
        with self._session() as db:
            replaced = save_question(db, question)
        self._invalidate(question.id, *replaced)
        if replaced:
            log.info(f"[STORE] '{question.title}' replaced {len(replaced)} older record(s)")

    def get_question(self, question_id: str) -> Optional[Question]:
        with self._session() as db:
            return get_question(db, question_id)

    def list_questions(self) -> List[Question]:
        with self._session() as db:
            return get_all_questions(db)

    def search(self, term: str) -> List[Question]:
        with self._session() as db:
            return search_questions(db, term)

    def count_by_difficulty(self) -> Dict[str, int]:
        with self._session() as db:
            return count_by_difficulty(db)

    def delete_question(self, question_id: str) -> bool:
        with self._session() as db:
            deleted = delete_question(db, question_id)
        if deleted:
            self._invalidate(question_id)
        return deleted
