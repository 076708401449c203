"""
Progress Models
Derived (never persisted) progress views and live-status payloads
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field


StudentStep = Literal["join", "reading", "review", "waiting", "conclusion", "completed"]


class ProgressSnapshot(BaseModel):
    """Where a student should be, derived from releases and responses"""
    completed: List[int] = Field(default_factory=list, description="Completed section indices")
    resumeIndex: int = Field(..., ge=0)
    maxReleased: int = Field(..., ge=0)
    canAdvance: bool = False
    canRetreat: bool = False


class ReconcileResult(BaseModel):
    """Outcome of feeding one live-status update to the reconciler"""
    newlyReleased: List[int] = Field(default_factory=list)
    autoAdvanceTo: Optional[int] = None
    notify: Optional[int] = None


class LiveStatus(BaseModel):
    """Subset of session fields mirrored on the live-status channel"""
    active: bool = False
    currentSection: int = 0
    releasedSections: List[int] = Field(default_factory=lambda: [0])
    startedAt: Optional[datetime] = None
    endedAt: Optional[datetime] = None


class StudentSessionSnapshot(BaseModel):
    """Full state pushed to a connected student"""
    sessionId: str
    studentId: Optional[str] = None
    step: StudentStep
    currentSection: int
    sectionCount: int
    progress: ProgressSnapshot
    pendingNotification: Optional[int] = None
    answeredQuestionIds: List[str] = Field(default_factory=list)


class PerformanceSummary(BaseModel):
    """Points and completion summary for one student in one session"""
    earnedPoints: int = 0
    possiblePoints: int = 0
    percentage: int = 0
    answeredQuestions: int = 0
    totalQuestions: int = 0
    completionRate: int = 0
    pendingGrading: int = 0
    performanceLevel: Literal["Excellent", "Proficient", "Developing", "Beginning"] = "Beginning"
    pointsBySection: Dict[str, int] = Field(default_factory=dict)
