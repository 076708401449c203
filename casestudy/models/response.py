"""
Response Models
One stored response per (student, question) once submitted
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional
from pydantic import BaseModel, Field
import uuid


class ResponseRecord(BaseModel):
    """
    Stored answer to one question
    
    A missing points value means the response is still waiting for grading
    """
    id: str = Field(
        default_factory=lambda: f"resp_{uuid.uuid4().hex[:12]}",
        description="Response identifier"
    )
    studentId: str = Field(..., description="Student document id")
    sessionId: str = Field(...)
    caseStudyId: str = Field(...)
    sectionId: str = Field(...)
    questionId: str = Field(...)
    response: str = Field(..., description="Submitted text (option text for choice questions)")
    points: Optional[int] = Field(default=None, ge=0)
    maxPoints: int = Field(default=0, ge=0)
    submittedAt: Optional[datetime] = Field(default_factory=lambda: datetime.now(timezone.utc))
    gradedAt: Optional[datetime] = None
    gradedBy: Optional[str] = None
    
    @property
    def is_pending_grading(self) -> bool:
        return self.points is None


class SubmitSectionRequest(BaseModel):
    """Answers for one section, keyed by question id"""
    answers: Dict[str, str] = Field(
        default_factory=dict,
        description="Raw answers: option index for choice questions, text otherwise"
    )
    
    class Config:
        json_schema_extra = {
            "example": {
                "answers": {
                    "q_1a2b3c4d5e": "1",
                    "q_6f7a8b9c0d": "Cash flow was mismanaged because ..."
                }
            }
        }


class SubmitSectionResponse(BaseModel):
    """Result of a section submission"""
    responseIds: List[str]
    responses: List[ResponseRecord]


class GradeResponseRequest(BaseModel):
    """Points assigned by an external grading actor"""
    points: int = Field(..., ge=0)
    gradedBy: str = Field(default="instructor", min_length=1)
