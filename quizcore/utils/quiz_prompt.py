"""
Quiz Prompt Builder
Constructs prompts for generating quiz questions from generation parameters
"""
from typing import Tuple

from quizcore.models.quiz import GenerateQuizRequest


SYSTEM_INSTRUCTION = "You are an expert educator. Return ONLY valid JSON."

EXAMPLE_SCHEMA = """[
  {
    "question": "Which gas do plants absorb during photosynthesis?",
    "type": "mcq",
    "options": ["Oxygen", "Carbon dioxide", "Nitrogen", "Helium"],
    "correctAnswer": "Carbon dioxide",
    "explanation": "Plants take in carbon dioxide and release oxygen.",
    "difficulty": "easy",
    "points": 1
  },
  {
    "question": "Which of these are needed for photosynthesis?",
    "type": "multiple-select",
    "options": ["Light", "Water", "Salt", "Carbon dioxide"],
    "correctAnswer": ["Light", "Water", "Carbon dioxide"],
    "explanation": "Light, water and carbon dioxide are the inputs.",
    "difficulty": "medium",
    "points": 2
  }
]"""

TYPE_RULES = {
    "mcq": "Every question is \"mcq\" with exactly 4 options and one correctAnswer copied verbatim from the options.",
    "true-false": "Every question is \"true-false\" with options [\"True\", \"False\"] and correctAnswer \"True\" or \"False\".",
    "short-answer": "Every question is \"short-answer\" with no options and a short exact correctAnswer (one to three words).",
    "multiple-select": "Every question is \"multiple-select\" with 4 options and correctAnswer a list of every correct option.",
    "mixed": "Mix mcq, true-false, short-answer and multiple-select questions and set \"type\" on each question.",
}

LEVEL_NAMES = {
    "jsc": "Junior School Certificate (grade 8)",
    "ssc": "Secondary School Certificate (grade 10)",
    "hsc": "Higher Secondary Certificate (grade 12)",
    "bsc": "undergraduate",
    "msc": "postgraduate",
}


def _level_name(academic_level: str) -> str:
    if academic_level.startswith("class-"):
        return f"class {academic_level.split('-', 1)[1]}"
    return LEVEL_NAMES.get(academic_level, academic_level)


def build_generation_prompt(request: GenerateQuizRequest) -> str:
    """
    Build a prompt asking for a JSON question list

    Args:
        request: Generation parameters

    Returns:
        A complete prompt string requesting structured JSON output
    """
    instructions = f"\nADDITIONAL INSTRUCTIONS:\n{request.instructions}\n" if request.instructions else ""

    prompt = f"""Generate exactly {request.questionCount} quiz questions for {_level_name(request.academicLevel)} students.

SUBJECT: {request.subject}
TOPIC: {request.topic}
LANGUAGE: write every question, option and explanation in {request.language}
DIFFICULTY: {request.difficulty}

QUESTION TYPE:
- {TYPE_RULES[request.questionType]}

STRICT FORMATTING RULES:
- Output ONLY a valid JSON array
- Do NOT include markdown code blocks (no ```)
- Do NOT include any explanation, preamble, or additional text
- Do NOT include trailing commas
- "difficulty" must be "easy", "medium" or "hard"
- "points" must be a positive integer
- Every question needs a one or two sentence "explanation"
{instructions}
REQUIRED OUTPUT SCHEMA:
{EXAMPLE_SCHEMA}

Generate {request.questionCount} questions as a JSON array. Output ONLY the JSON array, nothing else."""

    return prompt


def build_generation_messages(request: GenerateQuizRequest) -> Tuple[str, str]:
    """Return (system_message, user_message) for chat-style APIs"""
    return SYSTEM_INSTRUCTION, build_generation_prompt(request)
