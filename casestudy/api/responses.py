"""
Response API Routes
Instructor view of responses and grading of pending ones
"""
import logging
from typing import List
from fastapi import APIRouter, HTTPException, Depends, status

from casestudy.api.dependencies import get_response_service
from casestudy.models.response import GradeResponseRequest, ResponseRecord
from casestudy.services.response_service import (
    ResponseNotFoundError,
    ResponseService,
    ResponseServiceError
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get(
    "/sessions/{session_id}/responses",
    response_model=List[ResponseRecord],
    summary="All responses in a session, newest first"
)
async def list_session_responses(
    session_id: str,
    service: ResponseService = Depends(get_response_service)
) -> List[ResponseRecord]:
    try:
        return await service.list_by_session(session_id)
    
    except ResponseServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )


@router.post(
    "/responses/{response_id}/grade",
    response_model=ResponseRecord,
    summary="Grade a response"
)
async def grade_response(
    response_id: str,
    request: GradeResponseRequest,
    service: ResponseService = Depends(get_response_service)
) -> ResponseRecord:
    try:
        return await service.grade_response(response_id, request.points, request.gradedBy)
    
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    
    except ResponseNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    
    except ResponseServiceError as e:
        logger.error(f"Grading {response_id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
