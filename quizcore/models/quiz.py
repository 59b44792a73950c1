"""
Quiz Models
Pydantic models for quiz documents, questions and quiz requests
FILE: quizcore/models/quiz.py
"""
from datetime import datetime
from typing import List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from quizcore.utils.clock import utc_now

QuestionType = Literal["mcq", "short-answer", "true-false", "multiple-select", "mixed"]
Difficulty = Literal["easy", "medium", "hard"]
QuizLanguage = Literal["english", "bengali", "hindi"]
QuizStatus = Literal["draft", "published", "archived"]
AcademicLevel = Literal[
    "class-1", "class-2", "class-3", "class-4", "class-5", "class-6", "class-7",
    "jsc", "ssc", "hsc", "bsc", "msc",
]

RawAnswer = Union[str, List[str]]


class Question(BaseModel):
    """
    One test item within a quiz
    SECURITY: correctAnswer and explanation are never sent to a learner
    before the attempt is completed
    """
    id: str = Field(..., min_length=1, description="Question id, unique within its quiz")
    question: str = Field(..., min_length=1, description="Question text")
    type: QuestionType = Field(..., description="Question type")
    options: Optional[List[str]] = Field(default=None, description="Answer options")
    correctAnswer: RawAnswer = Field(..., description="Correct answer (list for multiple-select) - PRIVATE")
    explanation: str = Field(default="", description="Shown after scoring")
    difficulty: Difficulty = Field(default="medium")
    points: int = Field(default=1, ge=1, description="Points awarded when correct")
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "q1",
                "question": "Which gas do plants absorb during photosynthesis?",
                "type": "mcq",
                "options": ["Oxygen", "Carbon dioxide", "Nitrogen", "Helium"],
                "correctAnswer": "Carbon dioxide",
                "explanation": "Plants take in CO2 and release O2.",
                "difficulty": "easy",
                "points": 1
            }
        }


class Quiz(BaseModel):
    """Quiz document as stored in MongoDB"""
    quizId: str = Field(default_factory=lambda: f"quiz_{uuid4().hex[:12]}")
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    subject: str = Field(..., min_length=1)
    topic: str = Field(default="")
    academicLevel: AcademicLevel
    difficulty: Difficulty
    language: QuizLanguage = "english"
    questionType: Optional[QuestionType] = None
    questions: List[Question] = Field(default_factory=list)
    timeLimit: Optional[int] = Field(default=None, ge=1, description="Minutes")
    estimatedTime: Optional[int] = Field(default=None, ge=1, description="Minutes")
    totalPoints: Optional[int] = Field(default=None, ge=0)
    instructions: Optional[str] = Field(default=None, max_length=2000)
    tags: List[str] = Field(default_factory=list)
    createdBy: str
    isPublic: bool = True
    status: QuizStatus = "published"
    attempts: int = Field(default=0, ge=0, description="Completed attempts")
    averageScore: int = Field(default=0, ge=0)
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)


class QuizCreateRequest(BaseModel):
    """Request model for creating a quiz from an explicit question list"""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    subject: str = Field(..., min_length=1, max_length=100)
    topic: str = Field(default="", max_length=200)
    academicLevel: AcademicLevel
    difficulty: Difficulty
    language: QuizLanguage = "english"
    questions: List[Question] = Field(..., min_length=1)
    timeLimit: Optional[int] = Field(default=None, ge=1)
    estimatedTime: Optional[int] = Field(default=None, ge=1)
    instructions: Optional[str] = Field(default=None, max_length=2000)
    tags: List[str] = Field(default_factory=list)
    isPublic: bool = True
    status: QuizStatus = "published"


class QuizUpdateRequest(BaseModel):
    """
    Partial update of a quiz by its owner
    Only the fields present and non-null in the body are changed. Archiving goes
    through DELETE, so status here is draft or published.
    """
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    subject: Optional[str] = Field(default=None, min_length=1, max_length=100)
    topic: Optional[str] = Field(default=None, max_length=200)
    academicLevel: Optional[AcademicLevel] = None
    difficulty: Optional[Difficulty] = None
    language: Optional[QuizLanguage] = None
    questions: Optional[List[Question]] = Field(default=None, min_length=1)
    timeLimit: Optional[int] = Field(default=None, ge=1)
    estimatedTime: Optional[int] = Field(default=None, ge=1)
    instructions: Optional[str] = Field(default=None, max_length=2000)
    tags: Optional[List[str]] = None
    isPublic: Optional[bool] = None
    status: Optional[Literal["draft", "published"]] = None


class QuizListFilters(BaseModel):
    """Filters for listing a user's quizzes; list fields match any of their values"""
    status: Optional[QuizStatus] = None
    subject: List[str] = Field(default_factory=list)
    difficulty: List[Difficulty] = Field(default_factory=list)
    language: List[QuizLanguage] = Field(default_factory=list)
    academicLevel: List[AcademicLevel] = Field(default_factory=list)


class GenerateQuizRequest(BaseModel):
    """Request model for LLM quiz generation"""
    academicLevel: AcademicLevel
    subject: str = Field(..., min_length=1, max_length=100)
    topic: str = Field(..., min_length=1, max_length=200)
    language: QuizLanguage = "english"
    questionType: QuestionType = "mcq"
    difficulty: Difficulty = "medium"
    questionCount: int = Field(default=5, ge=1, le=50)
    timeLimit: Optional[int] = Field(default=None, ge=1)
    instructions: Optional[str] = Field(default=None, max_length=1000)
    title: Optional[str] = Field(default=None, max_length=200)
    isPublic: bool = True
    llmProvider: Optional[str] = Field(default=None, description="openai, anthropic or grok")

    class Config:
        json_schema_extra = {
            "example": {
                "academicLevel": "ssc",
                "subject": "Biology",
                "topic": "Photosynthesis",
                "language": "english",
                "questionType": "mixed",
                "difficulty": "medium",
                "questionCount": 10,
                "timeLimit": 15
            }
        }


class PublicQuestion(BaseModel):
    """Question as shown to a learner (no correct answer, no explanation)"""
    id: str
    question: str
    type: QuestionType
    options: Optional[List[str]] = None
    difficulty: Difficulty
    points: int


class QuizPublicView(BaseModel):
    """Quiz as shown to a learner before completing it"""
    quizId: str
    title: str
    description: Optional[str] = None
    subject: str
    topic: str
    academicLevel: AcademicLevel
    difficulty: Difficulty
    language: QuizLanguage
    questions: List[PublicQuestion]
    questionCount: int
    timeLimit: Optional[int] = None
    estimatedTime: Optional[int] = None
    totalPoints: Optional[int] = None
    instructions: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    status: QuizStatus

    @classmethod
    def from_quiz(cls, quiz: Quiz) -> "QuizPublicView":
        return cls(
            quizId=quiz.quizId,
            title=quiz.title,
            description=quiz.description,
            subject=quiz.subject,
            topic=quiz.topic,
            academicLevel=quiz.academicLevel,
            difficulty=quiz.difficulty,
            language=quiz.language,
            questions=[
                PublicQuestion(
                    id=q.id,
                    question=q.question,
                    type=q.type,
                    options=q.options,
                    difficulty=q.difficulty,
                    points=q.points
                )
                for q in quiz.questions
            ],
            questionCount=len(quiz.questions),
            timeLimit=quiz.timeLimit,
            estimatedTime=quiz.estimatedTime,
            totalPoints=quiz.totalPoints,
            instructions=quiz.instructions,
            tags=quiz.tags,
            status=quiz.status
        )


class QuizListItem(BaseModel):
    """Model for quiz list items"""
    quizId: str
    title: str
    subject: str
    topic: str
    difficulty: Difficulty
    questionCount: int
    status: QuizStatus
    attempts: int
    averageScore: int
    createdAt: datetime
