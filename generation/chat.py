"""
Tutor chat — answer a learner's message about one stored question.

The question itself is the context; only the last MAX_HISTORY_TURNS turns of the
conversation are replayed to keep the prompt bounded.
"""

from typing import List, Optional

from generation.errors import ValidationError
from generation.retry import Retry
from generation.schemas import Question

MAX_MESSAGE_LENGTH = 1000
MAX_HISTORY_TURNS = 10

CHAT_PROMPT = """You are an AI coding tutor helping students understand programming problems.

QUESTION CONTEXT:
- Title: {title}
- Difficulty: {difficulty}
- Topics: {topics}
- Description: {description}
- Solution:
{solution}

PREVIOUS CONVERSATION:
{history}

CURRENT USER QUESTION: {message}

You can explain the solution in different ways, suggest alternative approaches or
optimizations, clarify programming concepts, help debug code, explain time/space
complexity, or give hints without revealing the complete solution.

GUIDELINES:
- Keep responses concise but informative (max 300 words)
- Use clear, beginner-friendly language
- Include code examples when helpful
- Be encouraging and focus on understanding

Response:"""


def _format_history(history) -> str:
    lines = []
    for turn in list(history or [])[-MAX_HISTORY_TURNS:]:
        role = turn.role if hasattr(turn, "role") else turn.get("role")
        content = turn.content if hasattr(turn, "content") else turn.get("content")
        speaker = "User" if role == "user" else "Assistant"
        lines.append(f"{speaker}: {content}")
    return "\n".join(lines) or "(none)"


def build_chat_prompt(question: Question, message: str, history: Optional[List] = None) -> str:
    return CHAT_PROMPT.format(
        title=question.title,
        difficulty=question.difficulty.value,
        topics=", ".join(question.topics),
        description=question.description,
        solution=question.solution_python,
        history=_format_history(history),
        message=message,
    )


async def generate_chat_response(
    client,
    question: Question,
    message: str,
    history: Optional[List] = None,
    retry: Optional[Retry] = None,
) -> str:
    """
    Raises:
        ValidationError — blank or over-long message
        ServiceError    — the service failed on every attempt
    """
    text = (message or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty", field="message")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters", field="message")

    retry = retry or Retry(attempts=3)
    answer = await retry.run(client.generate, build_chat_prompt(question, text, history))
    return answer.strip()
