"""
Student API Routes
Join by code, submit sections, and read derived progress
"""
import logging
from typing import Optional, Tuple
from fastapi import APIRouter, HTTPException, Depends, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from casestudy.api.dependencies import (
    get_case_study_service,
    get_db,
    get_live_channel,
    get_response_service,
    get_session_service
)
from casestudy.models.case_study import CaseStudy
from casestudy.models.progress import (
    PerformanceSummary,
    ProgressSnapshot,
    StudentSessionSnapshot
)
from casestudy.models.response import SubmitSectionRequest, SubmitSectionResponse
from casestudy.models.session import JoinLookupResponse, JoinSessionRequest, Session
from casestudy.services.case_study_service import (
    CaseStudyNotFoundError,
    CaseStudyService,
    CaseStudyServiceError
)
from casestudy.services.grading import summarize_performance
from casestudy.services.live_status import LiveStatusChannel
from casestudy.services.progress_deriver import derive_progress
from casestudy.services.response_service import (
    ResponseService,
    ResponseServiceError,
    SubmissionValidationError
)
from casestudy.services.session_service import (
    SessionInactiveError,
    SessionNotFoundError,
    SessionService,
    SessionServiceError
)
from casestudy.services.student_service import StudentServiceError
from casestudy.services.student_session import StudentSessionController

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


async def _load_session_and_case_study(
    session_id: str,
    student_doc_id: str,
    session_service: SessionService,
    case_study_service: CaseStudyService
) -> Tuple[Session, CaseStudy]:
    try:
        session = await session_service.require_session(session_id)
        case_study = await case_study_service.require_case_study(session.caseStudyId)
    
    except (SessionNotFoundError, CaseStudyNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    
    except (SessionServiceError, CaseStudyServiceError) as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    
    if student_doc_id not in session.studentsJoined:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student has not joined this session"
        )
    
    return session, case_study


# ==================== JOIN ====================

@router.get(
    "/join/{code}",
    response_model=JoinLookupResponse,
    summary="Look up a session by join code"
)
async def lookup_session(
    code: str,
    session_service: SessionService = Depends(get_session_service),
    case_study_service: CaseStudyService = Depends(get_case_study_service)
) -> JoinLookupResponse:
    try:
        session = await session_service.fetch_session_for_join(code)
        case_study = await case_study_service.require_case_study(session.caseStudyId)
    
    except (SessionNotFoundError, CaseStudyNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    
    except SessionInactiveError as e:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=str(e))
    
    except (SessionServiceError, CaseStudyServiceError) as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    
    return JoinLookupResponse(
        sessionId=session.id,
        sessionCode=session.sessionCode,
        caseStudyId=session.caseStudyId,
        caseStudyTitle=case_study.title,
        sectionCount=len(case_study.sections),
        releasedSections=session.releasedSections
    )


@router.post(
    "/join/{code}",
    response_model=StudentSessionSnapshot,
    summary="Join a session",
    description="""
    Join a session by code. The student id is normalized (case, whitespace,
    underscores) so the same person always maps to one identity.
    
    Returns where the student should start: the first incomplete released
    section, or the last released section when everything released is done.
    """
)
async def join_session(
    code: str,
    request: JoinSessionRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    live_channel: LiveStatusChannel = Depends(get_live_channel)
) -> StudentSessionSnapshot:
    controller = StudentSessionController.from_db(db, live_channel)
    
    try:
        await controller.load(code)
        return await controller.join(request.studentId, request.name)
    
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    
    except (SessionNotFoundError, CaseStudyNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    
    except SessionInactiveError as e:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=str(e))
    
    except (SessionServiceError, CaseStudyServiceError, StudentServiceError, ResponseServiceError) as e:
        logger.error(f"Join failed for code {code}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    
    except Exception as e:
        logger.error(f"Unexpected error joining session {code}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while joining the session"
        )


# ==================== PROGRESS ====================

@router.get(
    "/sessions/{session_id}/students/{student_doc_id}/progress",
    response_model=ProgressSnapshot,
    summary="Derived progress for a student"
)
async def get_progress(
    session_id: str,
    student_doc_id: str,
    current: Optional[int] = Query(default=None, ge=0, description="Section the student is on"),
    session_service: SessionService = Depends(get_session_service),
    case_study_service: CaseStudyService = Depends(get_case_study_service),
    response_service: ResponseService = Depends(get_response_service)
) -> ProgressSnapshot:
    session, case_study = await _load_session_and_case_study(
        session_id, student_doc_id, session_service, case_study_service
    )
    
    try:
        responses = await response_service.fetch_responses(student_doc_id, session_id)
    except ResponseServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    
    # Visiting a question-free section is only known to a live connection
    visited = range(current + 1) if current is not None else ()
    return derive_progress(
        session.releasedSections,
        case_study.sections,
        responses,
        current_index=current,
        visited_sections=visited
    )


@router.get(
    "/sessions/{session_id}/students/{student_doc_id}/summary",
    response_model=PerformanceSummary,
    summary="Points and completion summary for a student"
)
async def get_summary(
    session_id: str,
    student_doc_id: str,
    session_service: SessionService = Depends(get_session_service),
    case_study_service: CaseStudyService = Depends(get_case_study_service),
    response_service: ResponseService = Depends(get_response_service)
) -> PerformanceSummary:
    _, case_study = await _load_session_and_case_study(
        session_id, student_doc_id, session_service, case_study_service
    )
    
    try:
        responses = await response_service.fetch_responses(student_doc_id, session_id)
    except ResponseServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    
    return summarize_performance(case_study, responses)


# ==================== SUBMISSION ====================

@router.post(
    "/sessions/{session_id}/students/{student_doc_id}/sections/{section_index}/submit",
    response_model=SubmitSectionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a section's answers",
    description="""
    Store the student's answers for one released section.
    
    - multiple-choice answers are graded immediately
    - multiple-choice-feedback answers always earn full points
    - text and essay answers are stored without points until graded
    """
)
async def submit_section(
    session_id: str,
    student_doc_id: str,
    section_index: int,
    request: SubmitSectionRequest,
    session_service: SessionService = Depends(get_session_service),
    case_study_service: CaseStudyService = Depends(get_case_study_service),
    response_service: ResponseService = Depends(get_response_service)
) -> SubmitSectionResponse:
    session, case_study = await _load_session_and_case_study(
        session_id, student_doc_id, session_service, case_study_service
    )
    
    if not session.active:
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="This session is no longer active"
        )
    
    try:
        created = await response_service.submit_section(
            session,
            case_study,
            student_doc_id,
            section_index,
            request.answers
        )
        return SubmitSectionResponse(
            responseIds=[record.id for record in created],
            responses=created
        )
    
    except SubmissionValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    
    except ResponseServiceError as e:
        logger.error(f"Submission failed for {student_doc_id} in {session_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
