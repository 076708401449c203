"""
Live Status Channel
Low-latency mirror of the session fields students react to
(releasedSections, currentSection, active) plus student presence.

Status is stored in the `live_sessions` collection and pushed to
in-process subscribers on every status write. Delivery is at-least-once:
subscribers see the full status each time and must tolerate repeats.
"""
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase

from casestudy.models.progress import LiveStatus

logger = logging.getLogger(__name__)

StatusCallback = Callable[[LiveStatus], None]


class LiveStatusError(Exception):
    """Raised when the live-status store cannot be read or written"""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LiveStatusChannel:
    """Live session status with push subscriptions"""
    
    COLLECTION_NAME = "live_sessions"
    
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[self.COLLECTION_NAME]
        self._subscribers: Dict[str, List[StatusCallback]] = defaultdict(list)
    
    # ==================== SUBSCRIPTIONS ====================
    
    def subscribe(self, session_id: str, on_update: StatusCallback) -> Callable[[], None]:
        """
        Register a callback for status pushes of one session
        
        Returns:
            Function that removes the subscription; safe to call twice
        """
        self._subscribers[session_id].append(on_update)
        logger.debug(
            f"Subscribed to live status of {session_id} "
            f"({len(self._subscribers[session_id])} subscribers)"
        )
        
        def unsubscribe() -> None:
            callbacks = self._subscribers.get(session_id)
            if callbacks and on_update in callbacks:
                callbacks.remove(on_update)
                if not callbacks:
                    del self._subscribers[session_id]
        
        return unsubscribe
    
    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, ()))
    
    def publish(self, session_id: str, status: LiveStatus) -> None:
        """Push a status to every subscriber of the session"""
        for callback in list(self._subscribers.get(session_id, ())):
            try:
                callback(status)
            except Exception as e:
                logger.error(f"❌ Live status subscriber for {session_id} failed: {e}", exc_info=True)
    
    # ==================== STATUS ====================
    
    async def create_live_session(self, session_id: str, status: Optional[LiveStatus] = None) -> LiveStatus:
        status = status or LiveStatus()
        now = _utcnow()
        doc = {
            "sessionId": session_id,
            "status": status.model_dump(),
            "students": {},
            "activity": {"lastActivity": now, "teacherPresent": False}
        }
        try:
            await self.collection.replace_one({"sessionId": session_id}, doc, upsert=True)
        except Exception as e:
            logger.error(f"❌ Failed to create live session {session_id}: {e}")
            raise LiveStatusError(f"Failed to create live session: {str(e)}")
        
        logger.info(f"✅ Created live session {session_id}")
        return status
    
    async def get_status(self, session_id: str) -> Optional[LiveStatus]:
        try:
            doc = await self.collection.find_one({"sessionId": session_id}, {"status": 1})
        except Exception as e:
            logger.error(f"❌ Failed to read live status of {session_id}: {e}")
            raise LiveStatusError(f"Failed to read live status: {str(e)}")
        
        if not doc or not doc.get("status"):
            return None
        return LiveStatus(**doc["status"])
    
    async def update_status(self, session_id: str, **fields) -> LiveStatus:
        """
        Partially update the status, then push the full status to subscribers
        
        Args:
            session_id: Session id
            **fields: LiveStatus fields to set
        
        Returns:
            Status after the update
        """
        unknown = set(fields) - set(LiveStatus.model_fields)
        if unknown:
            raise ValueError(f"Unknown live status fields: {sorted(unknown)}")
        
        update = {f"status.{key}": value for key, value in fields.items()}
        update["activity.lastActivity"] = _utcnow()
        
        try:
            await self.collection.update_one({"sessionId": session_id}, {"$set": update}, upsert=True)
        except Exception as e:
            logger.error(f"❌ Failed to update live status of {session_id}: {e}")
            raise LiveStatusError(f"Failed to update live status: {str(e)}")
        
        status = await self.get_status(session_id) or LiveStatus(**fields)
        self.publish(session_id, status)
        return status
    
    async def release_section(self, session_id: str, section_index: int) -> LiveStatus:
        current = await self.get_status(session_id) or LiveStatus()
        released = list(current.releasedSections)
        if section_index not in released:
            released.append(section_index)
        
        logger.info(f"🔔 Live release of section {section_index} in {session_id}")
        return await self.update_status(
            session_id,
            currentSection=section_index,
            releasedSections=released
        )
    
    async def end_live_session(self, session_id: str) -> LiveStatus:
        return await self.update_status(session_id, active=False, endedAt=_utcnow())
    
    # ==================== PRESENCE ====================
    
    async def join_live_session(self, session_id: str, student_id: str, name: str) -> None:
        now = _utcnow()
        try:
            await self.collection.update_one(
                {"sessionId": session_id},
                {"$set": {
                    f"students.{student_id}": {
                        "name": name,
                        "joinedAt": now,
                        "present": True,
                        "lastSeen": now
                    }
                }},
                upsert=True
            )
        except Exception as e:
            logger.error(f"❌ Failed to add {student_id} to live session {session_id}: {e}")
            raise LiveStatusError(f"Failed to join live session: {str(e)}")
    
    async def update_presence(self, session_id: str, student_id: str, present: bool) -> None:
        try:
            await self.collection.update_one(
                {"sessionId": session_id},
                {"$set": {
                    f"students.{student_id}.present": present,
                    f"students.{student_id}.lastSeen": _utcnow()
                }}
            )
        except Exception as e:
            logger.error(f"❌ Failed to update presence of {student_id} in {session_id}: {e}")
            raise LiveStatusError(f"Failed to update presence: {str(e)}")


# ==================== SINGLETON ====================

_live_status_channel: Optional[LiveStatusChannel] = None


def get_live_status_channel() -> LiveStatusChannel:
    """
    Get or create the process-wide channel
    
    Subscriptions live in this instance, so every router must share it.
    """
    global _live_status_channel
    
    if _live_status_channel is None:
        from casestudy.db.mongodb import get_database
        _live_status_channel = LiveStatusChannel(get_database())
    
    return _live_status_channel
