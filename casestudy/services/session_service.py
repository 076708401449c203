"""
Session Service
MongoDB operations for case-study sessions: creation, join codes,
section releases, joins and inactivity timeouts
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase

from casestudy.core.config import settings
from casestudy.models.session import Session
from casestudy.utils.identifiers import generate_session_code

logger = logging.getLogger(__name__)

# Attempts at finding an unused join code before giving up
MAX_CODE_ATTEMPTS = 10


class SessionServiceError(Exception):
    """Raised when a session database operation fails"""
    pass


class SessionNotFoundError(Exception):
    """Raised when a session id or join code matches nothing"""
    pass


class SessionInactiveError(Exception):
    """Raised when a join code belongs to a session that has ended"""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    # Mongo hands back naive UTC datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SessionService:
    """Service class for session documents"""
    
    COLLECTION_NAME = "sessions"
    
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[self.COLLECTION_NAME]
    
    @staticmethod
    def _to_session(doc: dict) -> Session:
        doc.pop("_id", None)
        return Session(**doc)
    
    async def _generate_unique_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_session_code()
            existing = await self.collection.find_one({"sessionCode": code, "active": True})
            if not existing:
                return code
        raise SessionServiceError("Could not generate a unique session code")
    
    async def create_session(self, case_study_id: str, teacher_id: str) -> Session:
        """
        Create a new (not yet started) session with the first section released
        
        Args:
            case_study_id: Case study the session runs
            teacher_id: Owning instructor
        
        Returns:
            Created Session
        """
        try:
            session = Session(
                sessionCode=await self._generate_unique_code(),
                caseStudyId=case_study_id,
                teacherId=teacher_id,
                releasedSections=[0],
                currentReleasedSection=0,
                active=False
            )
            await self.collection.insert_one(session.model_dump())
            logger.info(
                f"✅ Created session {session.id} (code {session.sessionCode}) "
                f"for case study {case_study_id}"
            )
            return session
        
        except SessionServiceError:
            raise
        except Exception as e:
            logger.error(f"❌ Failed to create session for case study {case_study_id}: {e}")
            raise SessionServiceError(f"Failed to create session: {str(e)}")
    
    async def get_session(self, session_id: str) -> Optional[Session]:
        """Retrieve a session by id"""
        try:
            doc = await self.collection.find_one({"id": session_id})
        except Exception as e:
            logger.error(f"❌ Failed to retrieve session {session_id}: {e}")
            raise SessionServiceError(f"Failed to retrieve session: {str(e)}")
        
        if not doc:
            logger.warning(f"⚠️ Session not found: {session_id}")
            return None
        
        logger.debug(f"✅ Retrieved session: {session_id}")
        return self._to_session(doc)
    
    async def require_session(self, session_id: str) -> Session:
        session = await self.get_session(session_id)
        if not session:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return session
    
    async def _find_by_code(self, code: str) -> List[Session]:
        normalized = code.strip().upper()
        try:
            cursor = self.collection.find({"sessionCode": normalized})
            return [self._to_session(doc) async for doc in cursor]
        except Exception as e:
            logger.error(f"❌ Failed to look up session code {normalized}: {e}")
            raise SessionServiceError(f"Failed to look up session: {str(e)}")
    
    async def get_session_by_code(self, code: str) -> Optional[Session]:
        """Active session for a join code, or None"""
        sessions = await self._find_by_code(code)
        active = [session for session in sessions if session.active]
        if not active:
            logger.warning(f"⚠️ No active session for code: {code}")
            return None
        return active[0]
    
    async def fetch_session_for_join(self, code: str) -> Session:
        """
        Resolve a join code for a student
        
        Raises:
            SessionNotFoundError: Code matches no session
            SessionInactiveError: Code matches only ended sessions
        """
        sessions = await self._find_by_code(code)
        if not sessions:
            logger.warning(f"⚠️ Session not found for code: {code}")
            raise SessionNotFoundError("Session not found")
        
        for session in sessions:
            if session.active:
                return session
        
        logger.warning(f"⚠️ Session for code {code} is no longer active")
        raise SessionInactiveError("This session is no longer active")
    
    async def _update(self, session_id: str, update: dict, action: str) -> bool:
        try:
            result = await self.collection.update_one({"id": session_id}, update)
        except Exception as e:
            logger.error(f"❌ Failed to {action} for session {session_id}: {e}")
            raise SessionServiceError(f"Failed to {action}: {str(e)}")
        
        if result.matched_count == 0:
            logger.error(f"❌ Session not found: {session_id}")
            raise SessionNotFoundError(f"Session not found: {session_id}")
        
        return result.modified_count > 0
    
    async def start_session(self, session_id: str) -> bool:
        now = _utcnow()
        changed = await self._update(
            session_id,
            {"$set": {"active": True, "startedAt": now, "lastActivityAt": now}},
            "start session"
        )
        logger.info(f"✅ Started session {session_id}")
        return changed
    
    async def end_session(self, session_id: str) -> bool:
        changed = await self._update(
            session_id,
            {"$set": {"active": False, "endedAt": _utcnow()}},
            "end session"
        )
        logger.info(f"✅ Ended session {session_id}")
        return changed
    
    async def release_section(self, session_id: str, section_index: int) -> Session:
        """
        Release a section to students
        
        Releasing an already released section is a no-op.
        
        Returns:
            The session after the release
        """
        if section_index < 0:
            raise ValueError(f"Invalid section index: {section_index}")
        
        session = await self.require_session(session_id)
        if section_index in session.releasedSections:
            logger.info(f"Section {section_index} already released in session {session_id}")
            return session
        
        await self._update(
            session_id,
            {
                "$addToSet": {"releasedSections": section_index},
                "$set": {
                    "currentReleasedSection": section_index,
                    "lastActivityAt": _utcnow()
                }
            },
            "release section"
        )
        session.releasedSections = session.releasedSections + [section_index]
        session.currentReleasedSection = section_index
        logger.info(
            f"✅ Released section {section_index} in session {session_id} "
            f"(released: {session.releasedSections})"
        )
        return session
    
    async def join_session(self, session_id: str, student_doc_id: str) -> bool:
        """Record a student as joined; joining twice only refreshes activity"""
        changed = await self._update(
            session_id,
            {
                "$addToSet": {"studentsJoined": student_doc_id},
                "$set": {"lastActivityAt": _utcnow()}
            },
            "join session"
        )
        logger.info(f"✅ Student {student_doc_id} joined session {session_id}")
        return changed
    
    async def update_activity(self, session_id: str) -> None:
        await self._update(
            session_id,
            {"$set": {"lastActivityAt": _utcnow()}},
            "update activity"
        )
    
    async def timeout_inactive_sessions(self, now: Optional[datetime] = None) -> int:
        """
        End active sessions with no activity for the configured timeout
        
        Sessions that never recorded activity are measured from createdAt.
        
        Returns:
            Number of sessions ended
        """
        now = now or _utcnow()
        cutoff = now - timedelta(minutes=settings.session_inactivity_timeout_minutes)
        
        try:
            stale_ids = []
            async for doc in self.collection.find({"active": True}):
                last_activity = _as_aware(doc.get("lastActivityAt") or doc.get("createdAt"))
                if last_activity is None or last_activity < cutoff:
                    stale_ids.append(doc["id"])
            
            if not stale_ids:
                return 0
            
            result = await self.collection.update_many(
                {"id": {"$in": stale_ids}},
                {"$set": {"active": False, "endedAt": now}}
            )
            logger.info(f"🕒 Timed out {result.modified_count} inactive sessions")
            return result.modified_count
        
        except Exception as e:
            logger.error(f"❌ Failed to time out inactive sessions: {e}")
            raise SessionServiceError(f"Failed to time out sessions: {str(e)}")
    
    async def list_by_teacher(self, teacher_id: str, limit: int = 50) -> List[Session]:
        try:
            cursor = self.collection.find({"teacherId": teacher_id}).sort("createdAt", -1).limit(limit)
            sessions = [self._to_session(doc) async for doc in cursor]
            logger.info(f"📊 Retrieved {len(sessions)} sessions for teacher {teacher_id}")
            return sessions
        except Exception as e:
            logger.error(f"❌ Failed to list sessions for teacher {teacher_id}: {e}")
            raise SessionServiceError(f"Failed to list sessions: {str(e)}")
