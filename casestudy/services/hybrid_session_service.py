"""
Hybrid Session Service
Keeps the durable session document and the live-status record in step.
The durable store is authoritative; the live channel exists for fast
fan-out to connected students.
"""
from datetime import datetime, timezone
from typing import Optional
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase

from casestudy.models.progress import LiveStatus
from casestudy.models.session import Session
from casestudy.models.student import Student
from casestudy.services.case_study_service import CaseStudyService
from casestudy.services.live_status import LiveStatusChannel, LiveStatusError
from casestudy.services.session_service import SessionService

logger = logging.getLogger(__name__)


class HybridSessionService:
    """Instructor-side session lifecycle across both stores"""
    
    def __init__(self, db: AsyncIOMotorDatabase, live_channel: LiveStatusChannel):
        self.db = db
        self.session_service = SessionService(db)
        self.case_study_service = CaseStudyService(db)
        self.live_channel = live_channel
    
    async def create(self, case_study_id: str, teacher_id: str) -> Session:
        """Create the durable session and its live mirror"""
        await self.case_study_service.require_case_study(case_study_id)
        
        session = await self.session_service.create_session(case_study_id, teacher_id)
        await self.live_channel.create_live_session(
            session.id,
            LiveStatus(
                active=False,
                currentSection=session.currentReleasedSection,
                releasedSections=list(session.releasedSections)
            )
        )
        return session
    
    async def start(self, session_id: str) -> Session:
        await self.session_service.start_session(session_id)
        session = await self.session_service.require_session(session_id)
        await self.live_channel.update_status(
            session_id,
            active=True,
            currentSection=session.currentReleasedSection,
            releasedSections=list(session.releasedSections),
            startedAt=session.startedAt or datetime.now(timezone.utc)
        )
        logger.info(f"🎬 Session {session_id} is live (code {session.sessionCode})")
        return session
    
    async def release_section(self, session_id: str, section_index: Optional[int] = None) -> Session:
        """
        Release a section and push the new release set to students
        
        Args:
            session_id: Session id
            section_index: Section to release; defaults to the one after the
                highest released section
        
        Raises:
            ValueError: Index outside the case study
        """
        session = await self.session_service.require_session(session_id)
        case_study = await self.case_study_service.require_case_study(session.caseStudyId)
        
        if section_index is None:
            section_index = max(session.releasedSections or [0]) + 1
        
        if not 0 <= section_index < len(case_study.sections):
            raise ValueError(
                f"Section {section_index} does not exist "
                f"(case study has {len(case_study.sections)} sections)"
            )
        
        session = await self.session_service.release_section(session_id, section_index)
        await self.live_channel.update_status(
            session_id,
            currentSection=section_index,
            releasedSections=list(session.releasedSections)
        )
        return session
    
    async def end(self, session_id: str) -> Session:
        await self.session_service.end_session(session_id)
        await self.live_channel.end_live_session(session_id)
        logger.info(f"🛑 Session {session_id} ended")
        return await self.session_service.require_session(session_id)
    
    async def student_join(self, session: Session, student: Student) -> None:
        """Durable join is required; live presence is best effort"""
        await self.session_service.join_session(session.id, student.id)
        
        try:
            await self.live_channel.join_live_session(session.id, student.id, student.name)
        except LiveStatusError as e:
            logger.warning(f"⚠️ Live session join failed (non-critical): {e}")
