"""
Case Study Models
A case study is an ordered sequence of sections, each carrying reading
content and an ordered sequence of questions.
"""
from datetime import datetime, timezone
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, model_validator
import uuid


QuestionType = Literal["multiple-choice", "multiple-choice-feedback", "text", "essay"]
SectionType = Literal["reading", "discussion", "activity"]

CHOICE_QUESTION_TYPES = ("multiple-choice", "multiple-choice-feedback")


class Question(BaseModel):
    """Single question inside a section"""
    id: str = Field(
        default_factory=lambda: f"q_{uuid.uuid4().hex[:10]}",
        description="Question identifier, unique within the case study"
    )
    text: str = Field(..., description="Question prompt")
    type: QuestionType = Field(..., description="Question kind")
    options: Optional[List[str]] = Field(
        default=None,
        description="Answer options for multiple-choice kinds"
    )
    correctAnswer: Optional[int] = Field(
        default=None,
        ge=0,
        description="Index of the correct option (multiple-choice only)"
    )
    points: int = Field(default=0, ge=0, description="Points available")
    
    @model_validator(mode="after")
    def validate_options(self):
        """Choice questions need options, and the correct index must exist"""
        if self.type in CHOICE_QUESTION_TYPES and not self.options:
            raise ValueError(f"Question type '{self.type}' requires options")
        if self.correctAnswer is not None and self.options is not None:
            if self.correctAnswer >= len(self.options):
                raise ValueError(
                    f"correctAnswer {self.correctAnswer} is out of range "
                    f"for {len(self.options)} options"
                )
        return self
    
    @property
    def is_choice(self) -> bool:
        return self.type in CHOICE_QUESTION_TYPES


class Section(BaseModel):
    """One unit of case-study content"""
    id: str = Field(
        default_factory=lambda: f"sec_{uuid.uuid4().hex[:10]}",
        description="Section identifier"
    )
    title: str = Field(..., description="Section title")
    content: str = Field(default="", description="Body content")
    type: SectionType = Field(default="reading", description="Section kind")
    questions: List[Question] = Field(default_factory=list)
    order: int = Field(default=0, ge=0)
    discussionPrompt: Optional[str] = None
    activityInstructions: Optional[str] = None


class CaseStudy(BaseModel):
    """Case study document as stored in MongoDB"""
    id: str = Field(
        default_factory=lambda: f"cs_{uuid.uuid4().hex[:12]}",
        description="Case study identifier"
    )
    title: str = Field(..., description="Case study title")
    description: str = Field(default="")
    sections: List[Section] = Field(default_factory=list)
    totalPoints: int = Field(default=0, ge=0)
    courseId: Optional[str] = None
    teacherId: str = Field(..., description="Owning instructor")
    createdAt: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updatedAt: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CreateCaseStudyRequest(BaseModel):
    """Request model for creating a case study"""
    title: str = Field(..., min_length=1)
    description: str = ""
    sections: List[Section] = Field(default_factory=list)
    courseId: Optional[str] = None
    teacherId: str = Field(..., min_length=1)
    
    class Config:
        json_schema_extra = {
            "example": {
                "title": "The Failing Supply Chain",
                "description": "A retailer's logistics crisis",
                "teacherId": "teacher_1",
                "sections": [
                    {
                        "title": "Background",
                        "content": "In 2019 the company ...",
                        "type": "reading",
                        "questions": [
                            {
                                "text": "What was the root cause?",
                                "type": "multiple-choice",
                                "options": ["Demand", "Supply", "Weather"],
                                "correctAnswer": 1,
                                "points": 5
                            }
                        ]
                    }
                ]
            }
        }
