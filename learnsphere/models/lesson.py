from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class LessonType(str, Enum):
    VIDEO = "video"
    DOCUMENT = "document"
    IMAGE = "image"
    QUIZ = "quiz"


class LessonCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    content: Optional[str] = None
    duration: float = Field(default=0, ge=0)
    type: LessonType = LessonType.VIDEO
    position: int = 0
    allow_download: bool = True
    attachments: list[dict] = []
    pass_score: int = Field(default=80, ge=0, le=100)
    points_reward: int = Field(default=10, ge=0)


class LessonUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    content: Optional[str] = None
    duration: Optional[float] = Field(default=None, ge=0)
    type: Optional[LessonType] = None
    position: Optional[int] = None
    allow_download: Optional[bool] = None
    attachments: Optional[list[dict]] = None
    pass_score: Optional[int] = Field(default=None, ge=0, le=100)
    points_reward: Optional[int] = Field(default=None, ge=0)


class ProgressUpdate(BaseModel):
    is_completed: Optional[bool] = None
    time_spent: int = Field(default=0, ge=0)


def _check_options(options: list[str]) -> list[str]:
    if not options:
        raise ValueError("A question needs at least one option")
    if any(not opt.strip() for opt in options):
        raise ValueError("Options must be non-empty strings")
    return options


class QuestionCreate(BaseModel):
    question: str = Field(min_length=1)
    options: list[str]
    correct_index: int = Field(ge=0)
    position: Optional[int] = None

    @model_validator(mode="after")
    def correct_index_in_range(self):
        _check_options(self.options)
        if self.correct_index >= len(self.options):
            raise ValueError("correct_index must point at one of the options")
        return self


class QuestionUpdate(BaseModel):
    """Partial update. Range of correct_index is checked against the stored row by the service."""
    question: Optional[str] = Field(default=None, min_length=1)
    options: Optional[list[str]] = None
    correct_index: Optional[int] = Field(default=None, ge=0)
    position: Optional[int] = None

    @model_validator(mode="after")
    def options_well_formed(self):
        if self.options is not None:
            _check_options(self.options)
        return self


class QuizSubmission(BaseModel):
    answers: list[int]
