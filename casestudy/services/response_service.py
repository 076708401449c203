"""
Response Service
Stores student responses, grades them at submission time where possible,
and lets an external grading actor finish the rest
"""
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase

from casestudy.models.case_study import CaseStudy
from casestudy.models.response import ResponseRecord
from casestudy.models.session import Session
from casestudy.services.grading import can_submit_section, grade_answer, is_answer_provided
from casestudy.services.progress_deriver import normalize_released_sections
from casestudy.services.session_service import SessionService

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class ResponseServiceError(Exception):
    """Raised when a response database operation fails"""
    pass


class ResponseNotFoundError(Exception):
    """Raised when a response does not exist"""
    pass


class SubmissionValidationError(Exception):
    """Raised when a section submission is not acceptable"""
    pass


def _submitted_at(response: ResponseRecord) -> datetime:
    value = response.submittedAt
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ResponseService:
    """Service class for response documents"""
    
    COLLECTION_NAME = "responses"
    
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[self.COLLECTION_NAME]
        self.session_service = SessionService(db)
    
    @staticmethod
    def _to_response(doc: dict) -> ResponseRecord:
        doc.pop("_id", None)
        return ResponseRecord(**doc)
    
    async def fetch_responses(self, student_doc_id: str, session_id: str) -> List[ResponseRecord]:
        """
        All responses of one student in one session, oldest first
        
        Responses without a submission time sort first.
        """
        try:
            cursor = self.collection.find({"studentId": student_doc_id, "sessionId": session_id})
            responses = [self._to_response(doc) async for doc in cursor]
        except Exception as e:
            logger.error(
                f"❌ Failed to fetch responses for student {student_doc_id} "
                f"in session {session_id}: {e}"
            )
            raise ResponseServiceError(f"Failed to fetch responses: {str(e)}")
        
        responses.sort(key=_submitted_at)
        logger.debug(f"📊 {len(responses)} responses for student {student_doc_id} in {session_id}")
        return responses
    
    async def list_by_session(self, session_id: str) -> List[ResponseRecord]:
        """All responses in a session, newest first"""
        try:
            cursor = self.collection.find({"sessionId": session_id})
            responses = [self._to_response(doc) async for doc in cursor]
        except Exception as e:
            logger.error(f"❌ Failed to list responses for session {session_id}: {e}")
            raise ResponseServiceError(f"Failed to list responses: {str(e)}")
        
        responses.sort(key=_submitted_at, reverse=True)
        return responses
    
    async def submit_response(self, record: ResponseRecord) -> str:
        try:
            await self.collection.insert_one(record.model_dump())
        except Exception as e:
            logger.error(f"❌ Failed to store response to question {record.questionId}: {e}")
            raise ResponseServiceError(f"Failed to store response: {str(e)}")
        
        points_str = "pending" if record.points is None else f"{record.points}/{record.maxPoints}"
        logger.info(
            f"✅ Stored response {record.id} - student {record.studentId}, "
            f"question {record.questionId}, points {points_str}"
        )
        return record.id
    
    async def submit_section(
        self,
        session: Session,
        case_study: CaseStudy,
        student_doc_id: str,
        section_index: int,
        answers: Mapping[str, str],
        existing: Optional[List[ResponseRecord]] = None
    ) -> List[ResponseRecord]:
        """
        Submit a student's answers for one section
        
        Questions the student already answered are left untouched, so there
        is at most one response per (student, question).
        
        Args:
            session: Session being worked on
            case_study: Case study the session runs
            student_doc_id: Student document id
            section_index: Section being submitted
            answers: Raw answers keyed by question id
            existing: The student's current responses, fetched when omitted
        
        Returns:
            Newly stored responses
        
        Raises:
            SubmissionValidationError: Unknown or unreleased section, or
                missing answers
        """
        if not 0 <= section_index < len(case_study.sections):
            raise SubmissionValidationError(f"Section {section_index} does not exist")
        
        max_released = max(normalize_released_sections(session.releasedSections))
        if section_index > max_released:
            raise SubmissionValidationError(f"Section {section_index} has not been released")
        
        if existing is None:
            existing = await self.fetch_responses(student_doc_id, session.id)
        answered_ids = {response.questionId for response in existing}
        
        section = case_study.sections[section_index]
        if not can_submit_section(section, answered_ids, answers):
            raise SubmissionValidationError("Answer every question before submitting")
        
        created: List[ResponseRecord] = []
        for question in section.questions:
            if question.id in answered_ids:
                continue
            raw_answer = answers.get(question.id)
            if not is_answer_provided(question, raw_answer):
                continue
            
            points, text = grade_answer(question, raw_answer)
            record = ResponseRecord(
                studentId=student_doc_id,
                sessionId=session.id,
                caseStudyId=case_study.id,
                sectionId=section.id,
                questionId=question.id,
                response=text,
                points=points,
                maxPoints=question.points
            )
            await self.submit_response(record)
            created.append(record)
        
        try:
            await self.session_service.update_activity(session.id)
        except Exception as e:
            logger.warning(f"⚠️ Could not update activity for session {session.id}: {e}")
        
        logger.info(
            f"✅ Section {section_index} submitted by {student_doc_id} "
            f"in session {session.id}: {len(created)} new responses"
        )
        return created
    
    async def grade_response(self, response_id: str, points: int, graded_by: str) -> ResponseRecord:
        """
        Set points on a response, moving it out of the pending state
        
        Raises:
            ResponseNotFoundError: Unknown response
            ValueError: Points outside 0..maxPoints
        """
        try:
            doc = await self.collection.find_one({"id": response_id})
        except Exception as e:
            logger.error(f"❌ Failed to retrieve response {response_id}: {e}")
            raise ResponseServiceError(f"Failed to retrieve response: {str(e)}")
        
        if not doc:
            logger.warning(f"⚠️ Response not found: {response_id}")
            raise ResponseNotFoundError(f"Response not found: {response_id}")
        
        record = self._to_response(doc)
        if not 0 <= points <= record.maxPoints:
            raise ValueError(f"Points must be between 0 and {record.maxPoints}")
        
        update: Dict[str, object] = {
            "points": points,
            "gradedAt": datetime.now(timezone.utc),
            "gradedBy": graded_by
        }
        try:
            await self.collection.update_one({"id": response_id}, {"$set": update})
        except Exception as e:
            logger.error(f"❌ Failed to grade response {response_id}: {e}")
            raise ResponseServiceError(f"Failed to grade response: {str(e)}")
        
        logger.info(f"✅ Graded response {response_id}: {points}/{record.maxPoints} by {graded_by}")
        return record.model_copy(update=update)
