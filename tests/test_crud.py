from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import crud
from database.crud import QuestionStore, StoreError
from generation.schemas import Difficulty, Question
from services.cache import ResultCache, cache_keys

BASE_TIME = datetime(2026, 2, 1, 8, 0, tzinfo=timezone.utc)


def make_question(question_id, title, minutes=0, **overrides):
    data = {
        "id": question_id,
        "title": title,
        "difficulty": "Easy",
        "topics": ["arrays", "hashing"],
        "description": f"Solve the {title} problem using a hash map.",
        "example": {"input": "[2, 7, 11, 15], 9", "output": "[0, 1]", "explanation": "2 + 7 = 9"},
        "solution_python": "def two_sum(nums, target):\n    seen = {}\n    return seen",
        "step_by_step_explanation": ["Walk the list once.", "Look up the complement."],
        "pseudocode": None,
        "created_at": BASE_TIME + timedelta(minutes=minutes),
    }
    data.update(overrides)
    return Question(**data)


def test_round_trip_preserves_every_field(db):
    question = make_question(
        "q1", "Two Sum",
        pseudocode=["FOR each n", "  CHECK complement"],
        updated_at=BASE_TIME + timedelta(hours=1),
    )
    crud.save_question(db, question)

    assert crud.get_question(db, "q1") == question


def test_missing_question_is_none(db):
    assert crud.get_question(db, "nope") is None
    assert crud.get_question(db, "") is None


def test_same_id_is_upserted(db):
    crud.save_question(db, make_question("q1", "Two Sum"))
    crud.save_question(db, make_question("q1", "Two Sum", difficulty="Hard"))

    assert crud.get_question_count(db) == 1
    assert crud.get_question(db, "q1").difficulty is Difficulty.HARD


def test_same_title_last_writer_wins(db):
    crud.save_question(db, make_question("q1", "Two Sum"))

    replaced = crud.save_question(db, make_question("q2", "Two Sum", minutes=5))

    assert replaced == ["q1"]
    assert crud.get_question(db, "q1") is None
    assert crud.get_question(db, "q2").title == "Two Sum"
    assert crud.get_question_count(db) == 1


def test_list_is_newest_first(db):
    crud.save_question(db, make_question("q1", "Oldest", minutes=0))
    crud.save_question(db, make_question("q3", "Newest", minutes=20))
    crud.save_question(db, make_question("q2", "Middle", minutes=10))

    assert [q.id for q in crud.get_all_questions(db)] == ["q3", "q2", "q1"]


def test_search_title_and_description_case_insensitive(db):
    crud.save_question(db, make_question("q1", "Two Sum"))
    crud.save_question(db, make_question("q2", "Valid Parentheses", minutes=1, description="Check bracket balance with a stack."))

    assert [q.id for q in crud.search_questions(db, "two")] == ["q1"]
    assert [q.id for q in crud.search_questions(db, "STACK")] == ["q2"]
    assert crud.search_questions(db, "   ") == []


def test_search_treats_wildcards_literally(db):
    crud.save_question(db, make_question("q1", "Two Sum"))

    assert crud.search_questions(db, "%") == []
    assert crud.search_questions(db, "_") == []


def test_filter_by_difficulty_and_topic(db):
    crud.save_question(db, make_question("q1", "Two Sum", topics=["Arrays"]))
    crud.save_question(db, make_question("q2", "Word Ladder", difficulty="Hard", topics=["graphs", "bfs"]))

    assert [q.id for q in crud.get_questions_by_difficulty(db, Difficulty.HARD)] == ["q2"]
    assert [q.id for q in crud.get_questions_by_topic(db, "arrays")] == ["q1"]
    assert crud.get_questions_by_topic(db, "graph") == []


def test_count_by_difficulty_reports_every_level(db):
    assert crud.count_by_difficulty(db) == {"Easy": 0, "Medium": 0, "Hard": 0}

    crud.save_question(db, make_question("q1", "Two Sum"))
    crud.save_question(db, make_question("q2", "Word Ladder", difficulty="Hard"))
    crud.save_question(db, make_question("q3", "Trapping Rain Water", difficulty="Hard"))

    assert crud.count_by_difficulty(db) == {"Easy": 1, "Medium": 0, "Hard": 2}
    assert crud.get_question_stats(db) == {"total": 3, "by_difficulty": {"Easy": 1, "Medium": 0, "Hard": 2}}


def test_delete(db):
    crud.save_question(db, make_question("q1", "Two Sum"))

    assert crud.delete_question(db, "q1")
    assert not crud.delete_question(db, "q1")


def test_store_invalidates_cached_reads(session_factory):
    cache = ResultCache()
    store = QuestionStore(session_factory, cache)
    store.save_question(make_question("q1", "Two Sum"))
    cache.set(cache_keys.all_questions(), ["stale"])
    cache.set(cache_keys.search("two"), ["stale"])
    cache.set(cache_keys.question("q1"), "stale")
    cache.set("unrelated", "kept")

    store.save_question(make_question("q2", "Two Sum", minutes=1))

    assert not cache.has(cache_keys.all_questions())
    assert not cache.has(cache_keys.search("two"))
    assert not cache.has(cache_keys.question("q1"))
    assert cache.get("unrelated") == "kept"
    assert [q.id for q in store.list_questions()] == ["q2"]


def test_store_helpers(question_store):
    question_store.save_question(make_question("q1", "Two Sum"))

    assert question_store.get_question("q1").title == "Two Sum"
    assert [q.id for q in question_store.search("sum")] == ["q1"]
    assert question_store.count_by_difficulty()["Easy"] == 1
    assert question_store.delete_question("q1")
    assert question_store.list_questions() == []


def test_database_failures_raise_store_error():
    # no tables created
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    store = QuestionStore(sessionmaker(bind=engine), ResultCache())

    with pytest.raises(StoreError, match="Failed to save question"):
        store.save_question(make_question("q1", "Two Sum"))
    with pytest.raises(StoreError, match="Failed to get all questions"):
        store.list_questions()
