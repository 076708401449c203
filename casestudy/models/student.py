"""
Student Models
"""
from datetime import datetime, timezone
from typing import List
from pydantic import BaseModel, Field
import uuid


class Student(BaseModel):
    """Student identity record keyed by the normalized student id"""
    id: str = Field(
        default_factory=lambda: f"stu_{uuid.uuid4().hex[:12]}",
        description="Document identifier"
    )
    studentId: str = Field(..., description="Normalized student identifier")
    displayId: str = Field(default="", description="Student identifier as shown to instructors")
    name: str = Field(...)
    courseIds: List[str] = Field(default_factory=list)
    createdAt: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
