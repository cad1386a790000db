"""
Response parser — raw LLM text → validated Question fields.

The model is asked for exactly one JSON object but routinely wraps it in a
```json fence or surrounds it with prose. Parsing is two-stage:

  1. parse_question_response(): locate + decode the object, check mandatory keys
     (title, difficulty, description), coerce list-typed optional keys leniently.
  2. build_question(): validate the fields into the strict Question model.

Both stages surface failures as a single ParseError; parse failures are
deterministic and are never retried.
"""

import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as SchemaValidationError

from generation.errors import ParseError
from generation.schemas import Question

log = logging.getLogger("generation.pipeline")

REQUIRED_FIELDS = ("title", "difficulty", "description")

_FENCED_OBJECT = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL | re.IGNORECASE)


# ─── JSON extraction ───────────────────────────────────────────────────────────

def _locate_candidates(text: str) -> List[str]:
    """Greedy outermost-brace slice first, then the contents of a fenced block."""
    candidates = []
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    fenced = _FENCED_OBJECT.search(text)
    if fenced and fenced.group(1) not in candidates:
        candidates.append(fenced.group(1))
    return candidates


def extract_json_object(raw: str) -> Dict[str, Any]:
    text = (raw or "").strip()
    candidates = _locate_candidates(text)
    if not candidates:
        raise ParseError("no structured payload found")

    last_error: Optional[Exception] = None
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if isinstance(data, dict):
            return data
    if last_error is None:
        raise ParseError("no structured payload found")
    raise ParseError(f"undecodable payload: {last_error}")


# ─── Field coercion ────────────────────────────────────────────────────────────

def parse_question_response(raw: str) -> Dict[str, Any]:
    """
    Turn one generation response into Question fields (without id / timestamps).

    Raises ParseError only for a missing/undecodable payload or missing mandatory
    keys. Malformed optional list fields are coerced instead:
    topics / step_by_step_explanation → [] and pseudocode → None.
    """
    data = extract_json_object(raw)

    if any(not data.get(key) for key in REQUIRED_FIELDS):
        missing = [key for key in REQUIRED_FIELDS if not data.get(key)]
        log.warning(f"[PARSE] incomplete payload, missing: {', '.join(missing)}")
        raise ParseError("incomplete payload")

    topics = data.get("topics")
    steps = data.get("step_by_step_explanation")
    pseudocode = data.get("pseudocode")

    return {
        "title": data["title"],
        "difficulty": data["difficulty"],
        "description": data["description"],
        "topics": topics if isinstance(topics, list) else [],
        "example": data.get("example"),
        "solution_python": data.get("solution_python"),
        "step_by_step_explanation": steps if isinstance(steps, list) else [],
        "pseudocode": pseudocode if isinstance(pseudocode, list) else None,
    }


# ─── Materialization ───────────────────────────────────────────────────────────

def _describe_schema_error(error: SchemaValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    return f"{location}: {first.get('msg', 'invalid value')}"


def build_question(
    fields: Dict[str, Any],
    *,
    question_id: str,
    title: str,
    created_at: datetime,
) -> Question:
    """
    Materialize a complete Question. The caller's sanitized title always wins
    over whatever title the model echoed back.
    """
    payload = dict(fields)
    payload.update(id=question_id, title=title, created_at=created_at, updated_at=None)
    try:
        return Question.model_validate(payload)
    except SchemaValidationError as e:
        raise ParseError(f"invalid payload: {_describe_schema_error(e)}") from e
