"""Domain entities shared by the ingestion and review components."""
from __future__ import annotations

import uuid
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from revision_ai.scheduling import SchedulingState


def new_id() -> str:
    return uuid.uuid4().hex


class Difficulty(str, Enum):
    EASY = 'Easy'
    MEDIUM = 'Medium'
    HARD = 'Hard'

    @classmethod
    def parse(cls, value, default: 'Difficulty' = None) -> 'Difficulty':
        """Lenient mapping of user or model supplied labels.

        Accepts enum members, names in any case, and the 0..5 numeric scale.
        """
        default = default or cls.MEDIUM
        if value is None or value == '':
            return default
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return default
        if isinstance(value, (int, float)):
            n = int(value)
            if n <= 2:
                return cls.EASY
            if n == 3:
                return cls.MEDIUM
            return cls.HARD
        t = str(value).strip().lower()
        if t.isdigit():
            return cls.parse(int(t), default)
        if 'easy' in t or 'simple' in t:
            return cls.EASY
        if 'hard' in t or 'difficult' in t:
            return cls.HARD
        if 'medium' in t or 'moderate' in t:
            return cls.MEDIUM
        return default


class UploadedFile(BaseModel):
    name: str
    mime_type: str
    uploaded_at: datetime


class Subject(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    name: str
    description: str = ''
    difficulty: Difficulty = Difficulty.MEDIUM
    files: List[UploadedFile] = Field(default_factory=list)
    created_at: datetime

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Subject name is required')
        return v


class Topic(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    subject_id: str
    title: str
    content: str
    difficulty: Difficulty = Difficulty.MEDIUM
    truncated: bool = False
    created_at: datetime


class FlashcardDraft(BaseModel):
    question: str
    answer: str
    difficulty: Difficulty = Difficulty.MEDIUM


class Flashcard(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    subject_id: str
    topic_id: Optional[str] = None
    question: str
    answer: str
    difficulty: Difficulty = Difficulty.MEDIUM
    state: SchedulingState
    version: int = Field(0, ge=0)
    created_at: datetime


class ReviewEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    flashcard_id: str
    user_id: str
    grade: int = Field(..., ge=0, le=5)
    reviewed_at: datetime


class DailyActivity(BaseModel):
    user_id: str
    day: date
    activity_count: int = Field(1, ge=1)
