"""
Quiz Parser
Parses and normalizes LLM-generated question lists
"""
import json
import re
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class QuizParseError(Exception):
    """Base exception for quiz parsing errors"""
    pass


class InvalidJSONError(QuizParseError):
    """Raised when JSON cannot be parsed even after cleanup"""
    pass


class ValidationError(QuizParseError):
    """Raised when a generated question is structurally unusable"""
    pass


REQUIRED_FIELDS = {"question"}
VALID_TYPES = {"mcq", "short-answer", "true-false", "multiple-select"}
VALID_DIFFICULTIES = {"easy", "medium", "hard"}
LETTERS = "ABCDEFGH"


def _strip_markdown(text: str) -> str:
    """Remove markdown code block formatting"""
    pattern = r"```(?:json)?\s*([\s\S]*?)\s*```"
    match = re.search(pattern, text)
    if match:
        return match.group(1).strip()

    text = re.sub(r"```", "", text)
    return text.strip()


def _extract_json_array(text: str) -> str:
    """
    Extract JSON array from text by finding outermost brackets

    Raises:
        InvalidJSONError: If no valid array brackets found
    """
    first_bracket = text.find("[")
    last_bracket = text.rfind("]")

    if first_bracket == -1 or last_bracket == -1:
        raise InvalidJSONError("No JSON array found in response")

    if first_bracket >= last_bracket:
        raise InvalidJSONError("Invalid JSON array brackets")

    return text[first_bracket:last_bracket + 1]


def _fix_common_json_issues(text: str) -> str:
    """Fix common JSON formatting issues from LLM output"""
    # Trailing commas before ] or }
    text = re.sub(r",\s*([}\]])", r"\1", text)

    # Control characters except newlines and tabs
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", text)

    # Raw newlines inside strings
    lines = text.split("\n")
    text = " ".join(line.strip() for line in lines if line.strip())

    return text


def _clean_response(raw_response: str) -> str:
    text = raw_response.strip()
    text = _strip_markdown(text)
    text = _extract_json_array(text)
    return _fix_common_json_issues(text)


def _resolve_letter(answer: str, options: List[str]) -> str:
    """Map a bare option letter ("B") onto the option text"""
    letter = answer.strip().upper()
    if options and len(letter) == 1 and letter in LETTERS[:len(options)]:
        if letter not in {o.strip().upper() for o in options}:
            return options[LETTERS.index(letter)]
    return answer.strip()


def _normalize_question(item: Dict[str, Any], index: int, default_type: str) -> Dict[str, Any]:
    """
    Validate one generated question and bring it into question-document shape

    Raises:
        ValidationError: If a required field is missing or mistyped
    """
    missing = REQUIRED_FIELDS - set(item.keys())
    if missing:
        raise ValidationError(f"Question {index + 1}: Missing required fields: {missing}")

    if not isinstance(item["question"], str) or not item["question"].strip():
        raise ValidationError(f"Question {index + 1}: 'question' must be a non-empty string")

    qtype = str(item.get("type") or default_type).strip().lower()
    if qtype not in VALID_TYPES:
        raise ValidationError(f"Question {index + 1}: unsupported type '{qtype}'")

    options = item.get("options") or []
    if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
        raise ValidationError(f"Question {index + 1}: 'options' must be a list of strings")
    options = [o.strip() for o in options]

    answer = item.get("correctAnswer", item.get("answer"))
    if isinstance(answer, str):
        answer = _resolve_letter(answer, options)
        if qtype == "multiple-select":
            answer = [answer]
    elif isinstance(answer, list) and all(isinstance(a, str) for a in answer):
        answer = [_resolve_letter(a, options) for a in answer]
        if qtype != "multiple-select" and len(answer) == 1:
            answer = answer[0]
    else:
        raise ValidationError(f"Question {index + 1}: 'correctAnswer' must be a string or list of strings")

    difficulty = str(item.get("difficulty") or "medium").strip().lower()
    if difficulty not in VALID_DIFFICULTIES:
        difficulty = "medium"

    points = item.get("points", 1)
    if not isinstance(points, int) or isinstance(points, bool) or points < 1:
        points = 1

    return {
        "id": f"q{index + 1}",
        "question": item["question"].strip(),
        "type": qtype,
        "options": options or None,
        "correctAnswer": answer,
        "explanation": str(item.get("explanation") or "").strip(),
        "difficulty": difficulty,
        "points": points,
    }


def parse_quiz_json(raw_response: str, default_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Parse and normalize a question list from an LLM response

    Attempts direct JSON parsing first, then applies cleanup rules
    if initial parsing fails.

    Args:
        raw_response: Raw string response from LLM
        default_type: Question type for items that do not state one

    Returns:
        List of question dictionaries with ids q1..qN

    Raises:
        InvalidJSONError: If JSON cannot be parsed after cleanup
        ValidationError: If the question list is unusable
    """
    if not raw_response or not raw_response.strip():
        raise InvalidJSONError("Empty response received")

    if not default_type or default_type == "mixed":
        default_type = "mcq"

    logger.debug(f"Parsing quiz response ({len(raw_response)} chars)")

    try:
        data = json.loads(raw_response.strip())
        logger.debug("Direct JSON parse successful")
    except json.JSONDecodeError as e:
        logger.debug(f"Direct parse failed: {e}. Attempting cleanup...")

        try:
            cleaned = _clean_response(raw_response)
            data = json.loads(cleaned)
            logger.debug("JSON parse successful after cleanup")
        except json.JSONDecodeError as e2:
            logger.error(f"JSON parse failed after cleanup: {e2}")
            raise InvalidJSONError(
                f"Failed to parse JSON: {e2}. "
                f"Original error: {e}"
            )

    if isinstance(data, dict) and isinstance(data.get("questions"), list):
        data = data["questions"]

    if not isinstance(data, list):
        raise ValidationError(f"Expected a JSON array, got {type(data).__name__}")

    if len(data) == 0:
        raise ValidationError("Quiz array is empty")

    questions = []
    for idx, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValidationError(f"Question {idx + 1}: Expected object, got {type(item).__name__}")
        questions.append(_normalize_question(item, idx, default_type))

    logger.info(f"✅ Successfully parsed {len(questions)} quiz questions")

    return questions
