"""
Student Service
Student identity records, looked up by normalized student id
"""
from typing import Optional
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase

from casestudy.models.student import Student
from casestudy.utils.identifiers import (
    format_student_id_for_display,
    normalize_student_id
)

logger = logging.getLogger(__name__)


class StudentServiceError(Exception):
    """Raised when a student database operation fails"""
    pass


class StudentService:
    """Service class for student documents"""
    
    COLLECTION_NAME = "students"
    
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[self.COLLECTION_NAME]
    
    async def get_by_student_id(self, raw_student_id: str) -> Optional[Student]:
        normalized = normalize_student_id(raw_student_id)
        if not normalized:
            return None
        
        try:
            doc = await self.collection.find_one({"studentId": normalized})
        except Exception as e:
            logger.error(f"❌ Student lookup failed for {normalized}: {e}")
            raise StudentServiceError(f"Failed to look up student: {str(e)}")
        
        if not doc:
            logger.debug(f"Student not found: {normalized}")
            return None
        
        doc.pop("_id", None)
        return Student(**doc)
    
    async def create_student(self, raw_student_id: str, name: str) -> Student:
        normalized = normalize_student_id(raw_student_id)
        if not normalized:
            raise ValueError("Student id must contain at least one letter or digit")
        
        student = Student(
            studentId=normalized,
            displayId=format_student_id_for_display(raw_student_id),
            name=name.strip()
        )
        try:
            await self.collection.insert_one(student.model_dump())
        except Exception as e:
            logger.error(f"❌ Failed to create student {normalized}: {e}")
            raise StudentServiceError(f"Failed to create student: {str(e)}")
        
        logger.info(f"✅ Created student {student.id} ({normalized})")
        return student
    
    async def get_or_create(self, raw_student_id: str, name: str) -> Student:
        student = await self.get_by_student_id(raw_student_id)
        if student:
            return student
        return await self.create_student(raw_student_id, name)
