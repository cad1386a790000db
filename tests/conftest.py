import asyncio
import json

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.crud import QuestionStore, StoreError
from database.database import Base
from database import models  # noqa: F401
from services.cache import ResultCache

TITLE_PREFIX = "Generate comprehensive metadata for a coding problem with the title: "


def question_payload(title, **overrides):
    data = {
        "title": title,
        "difficulty": "Easy",
        "topics": ["math", "conditionals"],
        "description": f"Write a function that solves the problem: {title}.",
        "example": {"input": "4", "output": "Even", "explanation": "4 is divisible by 2."},
        "solution_python": "def solve(n):\n    return 'Even' if n % 2 == 0 else 'Odd'",
        "step_by_step_explanation": ["Take n modulo 2.", "Return Even for 0, otherwise Odd."],
        "pseudocode": ["IF n MOD 2 == 0 RETURN Even", "ELSE RETURN Odd"],
    }
    data.update(overrides)
    return json.dumps(data)


def title_from_prompt(prompt):
    first_line = prompt.splitlines()[0]
    if not first_line.startswith(TITLE_PREFIX):
        return None
    return json.loads(first_line[len(TITLE_PREFIX):])


class FakeLLM:
    """
    Scripted generation client.

    responder(title, attempt) returns the raw text for that attempt, or an
    Exception instance to raise. Chat prompts get `chat_reply`.
    """

    def __init__(self, responder=None, events=None, chat_reply="Try using the modulo operator."):
        self.responder = responder or (lambda title, attempt: question_payload(title))
        self.events = events if events is not None else []
        self.chat_reply = chat_reply
        self.calls = []
        self.prompts = []

    async def generate(self, prompt, **kwargs):
        self.prompts.append(prompt)
        title = title_from_prompt(prompt)
        if title is None:
            return self.chat_reply
        self.calls.append(title)
        self.events.append(("generate", title))
        await asyncio.sleep(0)
        result = self.responder(title, self.calls.count(title))
        if isinstance(result, Exception):
            raise result
        return result


class RecordingStore:
    def __init__(self, events=None, fail_for=(), error=None):
        self.saved = []
        self.events = events if events is not None else []
        self.fail_for = set(fail_for)
        self.error = error or StoreError("disk full")

    def save_question(self, question):
        if question.title in self.fail_for:
            raise self.error
        self.saved.append(question)
        self.events.append(("save", question.title))


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def no_sleep():
    return SleepRecorder()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def question_store(session_factory):
    return QuestionStore(session_factory, ResultCache())
