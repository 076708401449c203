"""
Case Study API Routes
"""
import logging
from typing import List
from fastapi import APIRouter, HTTPException, Depends, Query, status

from casestudy.api.dependencies import get_case_study_service
from casestudy.models.case_study import CaseStudy, CreateCaseStudyRequest
from casestudy.services.case_study_service import (
    CaseStudyNotFoundError,
    CaseStudyService,
    CaseStudyServiceError
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/case-studies")


@router.post(
    "",
    response_model=CaseStudy,
    status_code=status.HTTP_201_CREATED,
    summary="Create a case study"
)
async def create_case_study(
    request: CreateCaseStudyRequest,
    service: CaseStudyService = Depends(get_case_study_service)
) -> CaseStudy:
    try:
        return await service.create_case_study(request)
    
    except CaseStudyServiceError as e:
        logger.error(f"Case study creation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )


@router.get(
    "",
    response_model=List[CaseStudy],
    summary="List an instructor's case studies"
)
async def list_case_studies(
    teacher_id: str = Query(..., alias="teacherId", min_length=1),
    service: CaseStudyService = Depends(get_case_study_service)
) -> List[CaseStudy]:
    try:
        return await service.list_by_teacher(teacher_id)
    
    except CaseStudyServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )


@router.get(
    "/{case_study_id}",
    response_model=CaseStudy,
    summary="Get a case study"
)
async def get_case_study(
    case_study_id: str,
    service: CaseStudyService = Depends(get_case_study_service)
) -> CaseStudy:
    try:
        case_study = await service.get_case_study(case_study_id)
    
    except CaseStudyServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    
    if not case_study:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Case study not found"
        )
    return case_study


@router.put(
    "/{case_study_id}",
    response_model=CaseStudy,
    summary="Replace a case study",
    description="Replace a case study's content. Total points are recomputed."
)
async def update_case_study(
    case_study_id: str,
    request: CreateCaseStudyRequest,
    service: CaseStudyService = Depends(get_case_study_service)
) -> CaseStudy:
    try:
        existing = await service.require_case_study(case_study_id)
        updated = existing.model_copy(update={
            "title": request.title,
            "description": request.description,
            "sections": [
                section.model_copy(update={"order": index})
                for index, section in enumerate(request.sections)
            ],
            "courseId": request.courseId
        })
        return await service.update_case_study(updated)
    
    except CaseStudyNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    
    except CaseStudyServiceError as e:
        logger.error(f"Case study update failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
