"""
Session API Routes (instructor side)
Create, start, release sections, end, and sweep inactive sessions
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, HTTPException, Depends, Query, status

from casestudy.api.dependencies import get_hybrid_service, get_session_service
from casestudy.models.session import (
    CreateSessionRequest,
    ReleaseSectionRequest,
    Session,
    TimeoutSweepResponse
)
from casestudy.services.case_study_service import CaseStudyNotFoundError
from casestudy.services.hybrid_session_service import HybridSessionService
from casestudy.services.live_status import LiveStatusError
from casestudy.services.session_service import (
    SessionNotFoundError,
    SessionService,
    SessionServiceError
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions")


@router.post(
    "",
    response_model=Session,
    status_code=status.HTTP_201_CREATED,
    summary="Create a session",
    description="""
    Create a session for a case study.
    
    The session starts inactive with section 0 released. Students can join
    once it has been started.
    """
)
async def create_session(
    request: CreateSessionRequest,
    service: HybridSessionService = Depends(get_hybrid_service)
) -> Session:
    try:
        return await service.create(request.caseStudyId, request.teacherId)
    
    except CaseStudyNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    
    except (SessionServiceError, LiveStatusError) as e:
        logger.error(f"Session creation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )


@router.get(
    "",
    response_model=List[Session],
    summary="List an instructor's sessions"
)
async def list_sessions(
    teacher_id: str = Query(..., alias="teacherId", min_length=1),
    service: SessionService = Depends(get_session_service)
) -> List[Session]:
    try:
        return await service.list_by_teacher(teacher_id)
    
    except SessionServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )


@router.post(
    "/timeout-inactive",
    response_model=TimeoutSweepResponse,
    summary="End inactive sessions",
    description="End every active session with no activity for the configured timeout."
)
async def timeout_inactive_sessions(
    service: SessionService = Depends(get_session_service)
) -> TimeoutSweepResponse:
    try:
        return TimeoutSweepResponse(timedOut=await service.timeout_inactive_sessions())
    
    except SessionServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )


@router.get(
    "/{session_id}",
    response_model=Session,
    summary="Get a session"
)
async def get_session(
    session_id: str,
    service: SessionService = Depends(get_session_service)
) -> Session:
    try:
        session = await service.get_session(session_id)
    
    except SessionServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    
    if not session:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


@router.post(
    "/{session_id}/start",
    response_model=Session,
    summary="Start a session"
)
async def start_session(
    session_id: str,
    service: HybridSessionService = Depends(get_hybrid_service)
) -> Session:
    try:
        return await service.start(session_id)
    
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    
    except (SessionServiceError, LiveStatusError) as e:
        logger.error(f"Starting session {session_id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )


@router.post(
    "/{session_id}/release",
    response_model=Session,
    summary="Release a section",
    description="""
    Release a section to students. Omit `sectionIndex` to release the
    section after the highest one released so far. Releasing a section
    twice is harmless.
    """
)
async def release_section(
    session_id: str,
    request: Optional[ReleaseSectionRequest] = None,
    service: HybridSessionService = Depends(get_hybrid_service)
) -> Session:
    section_index = request.sectionIndex if request else None
    
    try:
        return await service.release_section(session_id, section_index)
    
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    
    except (SessionNotFoundError, CaseStudyNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    
    except (SessionServiceError, LiveStatusError) as e:
        logger.error(f"Releasing section in {session_id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    
    except Exception as e:
        logger.error(f"Unexpected error releasing section: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while releasing the section"
        )


@router.post(
    "/{session_id}/end",
    response_model=Session,
    summary="End a session"
)
async def end_session(
    session_id: str,
    service: HybridSessionService = Depends(get_hybrid_service)
) -> Session:
    try:
        return await service.end(session_id)
    
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    
    except (SessionServiceError, LiveStatusError) as e:
        logger.error(f"Ending session {session_id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
