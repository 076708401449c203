"""
Shared FastAPI dependencies
"""
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from casestudy.services.case_study_service import CaseStudyService
from casestudy.services.hybrid_session_service import HybridSessionService
from casestudy.services.live_status import LiveStatusChannel, get_live_status_channel
from casestudy.services.response_service import ResponseService
from casestudy.services.session_service import SessionService
from casestudy.services.student_service import StudentService


async def get_db() -> AsyncIOMotorDatabase:
    """Dependency to get MongoDB database instance"""
    from casestudy.db.mongodb import get_database
    return get_database()


def get_live_channel() -> LiveStatusChannel:
    return get_live_status_channel()


def get_session_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> SessionService:
    return SessionService(db)


def get_case_study_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> CaseStudyService:
    return CaseStudyService(db)


def get_student_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> StudentService:
    return StudentService(db)


def get_response_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> ResponseService:
    return ResponseService(db)


def get_hybrid_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    live_channel: LiveStatusChannel = Depends(get_live_channel)
) -> HybridSessionService:
    return HybridSessionService(db, live_channel)
