"""
Schema validation of generation output

Everything the generation service returns is untrusted until it passes here.
A malformed-but-successful response is a content problem, not a transient
fault: it raises SchemaValidationError and is never retried at this layer.

Issues reported back name the offending location and rule only; they never
echo the model's text.
"""

import json
import logging
import re
from typing import Any, List, Optional

from pydantic import ValidationError as PydanticValidationError

from errors import SchemaValidationError
from generation.schemas import GeneratedQuestion

log = logging.getLogger(__name__)


# ─── JSON extraction ───────────────────────────────────────────────────────────

def extract_json_payload(raw: str, document_id: Optional[str] = None) -> Any:
    """
    Parse the model's reply as JSON, tolerating ```json fences and chatter
    around a single top-level object or array.
    """
    text = (raw or "").strip()
    text = re.sub(r"^```(?:json)?\s*", "", text, flags=re.MULTILINE)
    text = re.sub(r"\s*```$", "", text, flags=re.MULTILINE)

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        raise SchemaValidationError("Response contains no JSON", issues=["payload: no JSON found"], document_id=document_id)
    start = min(starts)
    end = max(text.rfind("}"), text.rfind("]")) + 1
    try:
        return json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise SchemaValidationError(
            "Response is not valid JSON",
            issues=[f"payload: invalid JSON at position {e.pos}"],
            document_id=document_id,
        ) from e


def _question_items(payload: Any, document_id: Optional[str]) -> List[Any]:
    # Accept both {"questions": [...]} and a bare [...]
    if isinstance(payload, dict):
        items = payload.get("questions")
    elif isinstance(payload, list):
        items = payload
    else:
        items = None

    if not isinstance(items, list):
        raise SchemaValidationError(
            "Response has no question list",
            issues=["questions: expected a list"],
            document_id=document_id,
        )
    if not items:
        raise SchemaValidationError(
            "Response contains no questions",
            issues=["questions: empty"],
            document_id=document_id,
        )
    return items


def _format_issue(index: int, error: dict) -> str:
    loc = ".".join(str(part) for part in error.get("loc", ()))
    where = f"questions[{index}]" + (f".{loc}" if loc else "")
    return f"{where}: {error.get('msg', error.get('type', 'invalid'))}"


# ─── Main entry ────────────────────────────────────────────────────────────────

def validate_questions(items: List[Any], document_id: Optional[str] = None) -> List[GeneratedQuestion]:
    """
    Validate every item against the question schema. All-or-nothing: one bad
    question rejects the whole response.
    """
    questions: List[GeneratedQuestion] = []
    issues: List[str] = []

    for index, item in enumerate(items):
        if isinstance(item, GeneratedQuestion):
            item = item.model_dump()
        if not isinstance(item, dict):
            issues.append(f"questions[{index}]: expected an object")
            continue
        try:
            questions.append(GeneratedQuestion.model_validate(item))
        except PydanticValidationError as e:
            issues.extend(_format_issue(index, err) for err in e.errors())

    if issues:
        log.warning("validate: rejected document=%s issues=%s", document_id, len(issues))
        raise SchemaValidationError(
            f"Generated questions failed validation ({len(issues)} issue(s))",
            issues=issues,
            document_id=document_id,
        )
    return questions


def parse_generated_questions(
    raw: str,
    desired_count: int,
    document_id: Optional[str] = None,
) -> List[GeneratedQuestion]:
    """
    Raw model reply → validated questions.

    More questions than requested are cut to the first `desired_count`;
    fewer (but at least one) are accepted as they are.

    Raises:
        SchemaValidationError: no JSON, no question list, or any invalid question
    """
    payload = extract_json_payload(raw, document_id=document_id)
    questions = validate_questions(_question_items(payload, document_id), document_id=document_id)

    if len(questions) > desired_count:
        log.info("validate: trimming document=%s returned=%s requested=%s", document_id, len(questions), desired_count)
        questions = questions[:desired_count]
    elif len(questions) < desired_count:
        log.warning("validate: short response document=%s returned=%s requested=%s", document_id, len(questions), desired_count)

    return questions
