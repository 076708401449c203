"""
Case Study Service
MongoDB CRUD for case studies
"""
from datetime import datetime, timezone
from typing import List, Optional
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase

from casestudy.models.case_study import CaseStudy, CreateCaseStudyRequest

logger = logging.getLogger(__name__)


class CaseStudyServiceError(Exception):
    """Raised when a case study database operation fails"""
    pass


class CaseStudyNotFoundError(Exception):
    """Raised when a case study does not exist"""
    pass


def _total_points(case_study: CaseStudy) -> int:
    return sum(q.points for section in case_study.sections for q in section.questions)


class CaseStudyService:
    """Service class for case study documents"""
    
    COLLECTION_NAME = "case_studies"
    
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[self.COLLECTION_NAME]
    
    async def create_case_study(self, request: CreateCaseStudyRequest) -> CaseStudy:
        # Section order follows list position
        sections = [
            section.model_copy(update={"order": index})
            for index, section in enumerate(request.sections)
        ]
        case_study = CaseStudy(
            title=request.title,
            description=request.description,
            sections=sections,
            courseId=request.courseId,
            teacherId=request.teacherId
        )
        case_study.totalPoints = _total_points(case_study)
        
        try:
            await self.collection.insert_one(case_study.model_dump())
            logger.info(
                f"✅ Created case study {case_study.id} with "
                f"{len(case_study.sections)} sections ({case_study.totalPoints} points)"
            )
            return case_study
        except Exception as e:
            logger.error(f"❌ Failed to create case study '{request.title}': {e}")
            raise CaseStudyServiceError(f"Failed to create case study: {str(e)}")
    
    async def get_case_study(self, case_study_id: str) -> Optional[CaseStudy]:
        try:
            doc = await self.collection.find_one({"id": case_study_id})
        except Exception as e:
            logger.error(f"❌ Failed to retrieve case study {case_study_id}: {e}")
            raise CaseStudyServiceError(f"Failed to retrieve case study: {str(e)}")
        
        if not doc:
            logger.warning(f"⚠️ Case study not found: {case_study_id}")
            return None
        
        doc.pop("_id", None)
        return CaseStudy(**doc)
    
    async def require_case_study(self, case_study_id: Optional[str]) -> CaseStudy:
        case_study = await self.get_case_study(case_study_id) if case_study_id else None
        if not case_study:
            raise CaseStudyNotFoundError("Case study not found")
        return case_study
    
    async def update_case_study(self, case_study: CaseStudy) -> CaseStudy:
        """Replace a case study, recomputing its total points"""
        case_study.totalPoints = _total_points(case_study)
        case_study.updatedAt = datetime.now(timezone.utc)
        
        try:
            result = await self.collection.replace_one(
                {"id": case_study.id},
                case_study.model_dump()
            )
        except Exception as e:
            logger.error(f"❌ Failed to update case study {case_study.id}: {e}")
            raise CaseStudyServiceError(f"Failed to update case study: {str(e)}")
        
        if result.matched_count == 0:
            raise CaseStudyNotFoundError(f"Case study not found: {case_study.id}")
        
        logger.info(f"✅ Updated case study {case_study.id}")
        return case_study
    
    async def list_by_teacher(self, teacher_id: str) -> List[CaseStudy]:
        try:
            cursor = self.collection.find({"teacherId": teacher_id}).sort("createdAt", -1)
            case_studies = []
            async for doc in cursor:
                doc.pop("_id", None)
                case_studies.append(CaseStudy(**doc))
            return case_studies
        except Exception as e:
            logger.error(f"❌ Failed to list case studies for teacher {teacher_id}: {e}")
            raise CaseStudyServiceError(f"Failed to list case studies: {str(e)}")
