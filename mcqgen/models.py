"""Pydantic models for the MCQ generation backend."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


OPTION_LABELS = ("A", "B", "C", "D")


class QuestionRecord(BaseModel):
    """Structured MCQ parsed from an assistant reply.

    The model is deliberately lenient: the parser may produce partial records
    and validity is decided by :mod:`mcqgen.validators`.
    """

    model_config = ConfigDict(populate_by_name=True)

    question_lines: List[str] = Field(default_factory=list, alias="question")
    options: Dict[str, str] = Field(default_factory=dict)
    correct_answer: Optional[str] = Field(default=None, alias="correctAnswer")
    explanation: str = ""


class StoredQuestion(BaseModel):
    """Question record persisted in the ``mcqs`` collection."""

    model_config = ConfigDict(populate_by_name=True)

    book: str
    category: str
    chapter: Optional[str] = None
    mcq: QuestionRecord
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")


class AskRequest(BaseModel):
    """Input body for /ask."""

    model_config = ConfigDict(populate_by_name=True)

    query: str = ""
    category: str
    session_id: str = Field(
        alias="sessionId", validation_alias=AliasChoices("sessionId", "userId")
    )
    count: int = Field(default=1, ge=1, le=10)
    chapter: Optional[str] = None
    force_generate: bool = Field(default=False, alias="forceGenerate")

    @field_validator("category", "session_id")
    @classmethod
    def require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("chapter")
    @classmethod
    def blank_chapter_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()


class AskResponse(BaseModel):
    answers: Union[QuestionRecord, List[QuestionRecord]]


class ErrorResponse(BaseModel):
    error: str
    details: str


class ScoreSubmission(BaseModel):
    """Input body for POST /leaderboard."""

    username: str = Field(min_length=1, max_length=64)
    score: int = Field(ge=0)

    @field_validator("username")
    @classmethod
    def strip_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("username must not be blank")
        return value


class LeaderboardEntry(BaseModel):
    username: str
    score: int
    date: datetime = Field(default_factory=datetime.utcnow)


class LeaderboardResponse(BaseModel):
    entries: List[LeaderboardEntry]


__all__ = [
    "OPTION_LABELS",
    "AskRequest",
    "AskResponse",
    "ErrorResponse",
    "LeaderboardEntry",
    "LeaderboardResponse",
    "QuestionRecord",
    "ScoreSubmission",
    "StoredQuestion",
]
