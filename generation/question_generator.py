"""
Question generation prompt + single-title generation step.

generate_question_fields() is one unit of work for the orchestrator:
prompt → LLM (through the retry policy) → parsed fields.
"""

import json
from typing import Any, Dict

from generation.question_parser import parse_question_response
from generation.retry import Retry


# ─── Generation Prompt ─────────────────────────────────────────────────────────

QUESTION_PROMPT = """Generate comprehensive metadata for a coding problem with the title: {title_json}

OUTPUT FORMAT — respond with ONLY a valid JSON object, no markdown, no explanation:
{{
  "title": {title_json},
  "difficulty": "<Easy|Medium|Hard>",
  "topics": ["<topic1>", "<topic2>", ...],
  "description": "<clear, beginner-friendly problem description, under 2000 characters>",
  "example": {{
    "input": "<sample input with proper formatting>",
    "output": "<expected output with proper formatting>",
    "explanation": "<why this output is correct>"
  }},
  "solution_python": "<complete, executable Python solution with comments>",
  "step_by_step_explanation": ["<step 1>", "<step 2>", ...],
  "pseudocode": ["<pseudocode line 1>", "<pseudocode line 2>", ...]
}}

RULES:
1. Description must be clear, educational and beginner-friendly (10-2000 characters)
2. Code must be properly formatted, executable and well-commented, with error handling
3. Topics: 1-10 relevant programming concepts
4. Difficulty must match the complexity of the problem
5. Provide 3-5 step-by-step explanations, including time and space complexity
6. The solution must handle edge cases
7. Return ONLY the JSON object
"""


def build_prompt(title: str) -> str:
    # JSON-quote the title so quotes/braces in user input cannot break the template
    return QUESTION_PROMPT.format(title_json=json.dumps(title, ensure_ascii=False))


async def generate_question_fields(client, title: str, retry: Retry) -> Dict[str, Any]:
    """
    Generate + parse one question.

    Raises:
        ServiceError  — every attempt failed or came back empty (RetryExhaustedError)
        ParseError    — the final non-empty response could not be parsed
    """
    raw = await retry.run(client.generate, build_prompt(title))
    return parse_question_response(raw)
