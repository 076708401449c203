"""
Session Models
Durable session document plus the request/response bodies of the
session endpoints
"""
from datetime import datetime, timezone
from typing import List, Literal, Optional
from pydantic import BaseModel, Field
import uuid


class Session(BaseModel):
    """A running instance of a case study"""
    id: str = Field(
        default_factory=lambda: f"session_{uuid.uuid4().hex[:12]}",
        description="Unique session identifier"
    )
    sessionCode: str = Field(..., description="Human-enterable join code")
    sessionType: Literal["case-study", "standalone"] = "case-study"
    caseStudyId: Optional[str] = Field(default=None, description="Case study reference")
    teacherId: str = Field(..., description="Owning instructor")
    active: bool = Field(default=False)
    studentsJoined: List[str] = Field(default_factory=list)
    releasedSections: List[int] = Field(
        default_factory=lambda: [0],
        description="Section indices released by the instructor (0-based)"
    )
    currentReleasedSection: int = Field(
        default=0,
        description="Most recently released section index (-1 means none)"
    )
    createdAt: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    startedAt: Optional[datetime] = None
    endedAt: Optional[datetime] = None
    lastActivityAt: Optional[datetime] = None
    
    class Config:
        json_schema_extra = {
            "example": {
                "id": "session_abc123def456",
                "sessionCode": "K7Q2ZP",
                "sessionType": "case-study",
                "caseStudyId": "cs_1a2b3c4d5e6f",
                "teacherId": "teacher_1",
                "active": True,
                "studentsJoined": ["stu_9f8e7d6c5b4a"],
                "releasedSections": [0, 1],
                "currentReleasedSection": 1
            }
        }


class CreateSessionRequest(BaseModel):
    """Request model for creating a session"""
    caseStudyId: str = Field(..., min_length=1)
    teacherId: str = Field(..., min_length=1)


class ReleaseSectionRequest(BaseModel):
    """Request model for releasing a section"""
    sectionIndex: Optional[int] = Field(
        default=None,
        ge=0,
        description="Section index to release; omit to release the next section"
    )


class JoinSessionRequest(BaseModel):
    """Request model for a student joining by code"""
    studentId: str = Field(..., min_length=1, description="Instructor-assigned or self-chosen id")
    name: str = Field(..., min_length=1)
    
    class Config:
        json_schema_extra = {
            "example": {
                "studentId": "Jane_Doe 42",
                "name": "Jane Doe"
            }
        }


class JoinLookupResponse(BaseModel):
    """What the join page needs before the student identifies themself"""
    sessionId: str
    sessionCode: str
    caseStudyId: Optional[str]
    caseStudyTitle: str
    sectionCount: int
    releasedSections: List[int]


class TimeoutSweepResponse(BaseModel):
    """Result of the inactive-session sweep"""
    timedOut: int = Field(..., ge=0)
