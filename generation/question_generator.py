"""
Prompt construction for quiz generation

The prompt is a pure function of (document text, question count): the same
extracted content always produces the same request.
"""

import os

from errors import ValidationError

# ── Config ───────────────────────────────────────────────────────────────────

MAX_PROMPT_CHARS = int(os.getenv("MAX_PROMPT_CHARS", 12000))
MAX_QUESTIONS = int(os.getenv("MAX_QUESTIONS", 20))


SYSTEM_PROMPT = (
    "You are an expert teacher who writes multiple-choice quizzes from course material. "
    "Output only valid JSON."
)


# ─── MCQ Generation Prompt ─────────────────────────────────────────────────────

QUIZ_PROMPT = """Generate exactly {count} multiple-choice questions that test understanding of the course material below.

COURSE MATERIAL (use ONLY information from this text; do NOT copy sentences verbatim):
---
{content}
---

OUTPUT FORMAT — respond with ONLY a JSON object, no markdown, no explanation:
{{
  "questions": [
    {{
      "prompt": "<clear, self-contained question stem>",
      "options": ["<option>", "<option>", "<option>", "<option>"],
      "correct_index": <0-based integer index of the single correct option>,
      "explanation": "<one or two sentences on why the answer is correct>"
    }}
  ]
}}

RULES:
1. "questions" must contain exactly {count} items
2. Each question has between 2 and 6 distinct options; 4 is preferred
3. Exactly ONE option is correct and "correct_index" is a single integer pointing at it
4. Distractors must be plausible; do NOT use "All of the above" or "None of the above"
5. Do not ask about the document itself (page numbers, headings, formatting)
6. Return ONLY the JSON object
"""


def check_question_count(count: int) -> int:
    if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= MAX_QUESTIONS:
        raise ValidationError(f"question_count must be between 1 and {MAX_QUESTIONS}, got {count!r}")
    return count


def truncate_content(text: str, limit: int = MAX_PROMPT_CHARS) -> str:
    """Cut text to at most `limit` characters, on a word boundary when possible"""
    if len(text) <= limit:
        return text
    cut = text[:limit]
    boundary = cut.rfind(" ")
    if boundary > limit * 0.8:
        cut = cut[:boundary]
    return cut.rstrip()


def build_prompt(content: str, count: int, max_chars: int = MAX_PROMPT_CHARS) -> str:
    """
    Build the user-turn prompt embedding the document text, the question count
    and the output schema.
    """
    check_question_count(count)
    return QUIZ_PROMPT.format(count=count, content=truncate_content(content, max_chars))
